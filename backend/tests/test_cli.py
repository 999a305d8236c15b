"""
CLI command tests via Flask's CLI runner.
"""

from backoffice.services import order_service, settings_service, register_service


def test_system_init_is_idempotent(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=['system', 'init', '--threshold', '2800'])
    assert result.exit_code == 0, result.output
    assert "DONE" in result.output

    result = runner.invoke(args=['system', 'init'])
    assert result.exit_code == 0, result.output
    assert "Terminals already configured" in result.output

    assert settings_service.get_wholesale_threshold() == (280000, True)
    assert [t.terminal_number for t in register_service.list_terminals()] == ["T-01", "T-02", "T-03"]


def test_web_orders_poll_once(app, db_session, ring):
    order = order_service.create_web_order([{"product_id": ring.id, "quantity": 1}])

    result = app.test_cli_runner().invoke(args=['web-orders', 'poll', '--once'])

    assert result.exit_code == 0, result.output
    assert f"Order #{order.order_number}" in result.output


def test_sessions_list(app, db_session, open_session):
    result = app.test_cli_runner().invoke(args=['sessions', 'list', '--status', 'open'])

    assert result.exit_code == 0, result.output
    assert open_session.session_number in result.output
