from .auth import User, SessionToken
from .catalog import Product, Customer, Supplier, Employee
from .cash import CashSession, CashMovement, NumberSequence
from .orders import Order, OrderItem
from .sales import Sale, SaleItem
from .invoices import Invoice

__all__ = [
    'User', 'SessionToken',
    'Product', 'Customer', 'Supplier', 'Employee',
    'CashSession', 'CashMovement', 'NumberSequence',
    'Order', 'OrderItem',
    'Sale', 'SaleItem',
    'Invoice',
]
