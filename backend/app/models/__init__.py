from .auth import User
from .distributors import Distributor, DistributorContact, SalesStaffDistributor
from .catalog import Product, Category
from .sales import Invoice, InvoiceItem, Payment, INVOICE_STATUSES, OPEN_STATUSES
from . import triggers  # noqa: F401

__all__ = [
    'User',
    'Distributor', 'DistributorContact', 'SalesStaffDistributor',
    'Product', 'Category',
    'Invoice', 'InvoiceItem', 'Payment',
    'INVOICE_STATUSES', 'OPEN_STATUSES',
]
