from .auth import User, SessionToken
from .stores import Store
from .inventory import Product, StockMovement
from .orders import Order, OrderLine, OrderStatusHistory
from .ledger import Payment, Due

__all__ = [
    'User', 'SessionToken',
    'Store',
    'Product', 'StockMovement',
    'Order', 'OrderLine', 'OrderStatusHistory',
    'Payment', 'Due',
]
