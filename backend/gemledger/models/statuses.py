# Overview: Closed status vocabularies for invoices, sales and quotations.

from __future__ import annotations

from enum import Enum


class PaymentStatus(str, Enum):
    """Payment state shared by an invoice and every sale it covers."""
    UNPAID = "UNPAID"
    PARTIAL = "PARTIAL"
    PAID = "PAID"


class InvoiceStatus(str, Enum):
    ISSUED = "ISSUED"
    PAID = "PAID"


class QuotationStatus(str, Enum):
    DRAFT = "DRAFT"
    SENT = "SENT"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    APPROVED = "APPROVED"
    ACCEPTED = "ACCEPTED"
    ACTIVE = "ACTIVE"  # quotations created before the approval workflow existed
    CONVERTED = "CONVERTED"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"


class InventoryStatus(str, Enum):
    IN_STOCK = "IN_STOCK"
    RESERVED = "RESERVED"
    SOLD = "SOLD"


class PricingMode(str, Enum):
    PER_CARAT = "PER_CARAT"
    FLAT = "FLAT"


class PriceOverrideType(str, Enum):
    AMOUNT = "AMOUNT"
    PERCENT = "PERCENT"


class RuleType(str, Enum):
    MARGIN = "MARGIN"
    AMOUNT = "AMOUNT"


class PaymentMethod(str, Enum):
    CASH = "CASH"
    BANK_TRANSFER = "BANK_TRANSFER"
    UPI = "UPI"
    CARD = "CARD"
    CHEQUE = "CHEQUE"
    ONLINE = "ONLINE"
