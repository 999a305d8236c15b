from .catalog import Product, InventoryMovement, StockAlert
from .customers import Customer, CreditTransaction
from .orders import Order, OrderItem
from .registers import PosTerminal, PosSession, PosTransaction
from .settings import BusinessRule, DocumentSequence

__all__ = [
    'Product', 'InventoryMovement', 'StockAlert',
    'Customer', 'CreditTransaction',
    'Order', 'OrderItem',
    'PosTerminal', 'PosSession', 'PosTransaction',
    'BusinessRule', 'DocumentSequence',
]
