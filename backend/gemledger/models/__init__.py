from .auth import User, SessionToken
from .inventory import InventoryItem
from .sales import Sale, Invoice, Payment, InvoiceVersion
from .quotations import Quotation, QuotationItem, ApprovalRule
from .documents import DocumentSequence, ActivityLog

__all__ = [
    'User', 'SessionToken',
    'InventoryItem',
    'Sale', 'Invoice', 'Payment', 'InvoiceVersion',
    'Quotation', 'QuotationItem', 'ApprovalRule',
    'DocumentSequence', 'ActivityLog',
]
