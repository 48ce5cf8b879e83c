from .catalog import Product, Variant
from .sales import Sale, SaleItem, PAYMENT_METHODS
from .auth import User, SessionToken, ROLES
from .settings import Setting

__all__ = [
    'Product', 'Variant',
    'Sale', 'SaleItem', 'PAYMENT_METHODS',
    'User', 'SessionToken', 'ROLES',
    'Setting',
]
