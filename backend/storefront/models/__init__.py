from .catalog import Product
from .cart import CartItem
from .orders import Order, OrderItem
from .sales import Sale, SaleLine
from .membership import MembershipApplication, NumberSequence

__all__ = [
    'Product',
    'CartItem',
    'Order', 'OrderItem',
    'Sale', 'SaleLine',
    'MembershipApplication', 'NumberSequence',
]
