from .catalog import Category, Product, Distributor, ParLevel
from .audit import ProductAction
from .auth import UserProfile

__all__ = [
    'Category', 'Product', 'Distributor', 'ParLevel',
    'ProductAction',
    'UserProfile',
]
