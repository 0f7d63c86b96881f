from .auth import User, SessionToken, ApiKey
from .inventory import Product, StockMovement
from .customers import Customer, Payment
from .sales import Sale, SaleItem
from .finance import Expense, CashClosing

__all__ = [
    'User', 'SessionToken', 'ApiKey',
    'Product', 'StockMovement',
    'Customer', 'Payment',
    'Sale', 'SaleItem',
    'Expense', 'CashClosing',
]
