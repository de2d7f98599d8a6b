from .auth import User
from .inventory import InventoryUnit
from .orders import Order, OrderLine
from .sales import Sale, SaleLine
from .security import SecurityEvent

__all__ = [
    'User',
    'InventoryUnit',
    'Order', 'OrderLine',
    'Sale', 'SaleLine',
    'SecurityEvent',
]
