"""
Centralized enums for document types and statuses.
Single source of truth for the business constants shared by numbering and layout.
"""

from enum import Enum


class DocumentType(str, Enum):
    """Document kinds that receive their own numbering sequence."""
    INVOICE = "invoice"
    QUOTATION = "quotation"
    PROFORMA = "proforma"

    @property
    def prefix(self) -> str:
        return DOCUMENT_PREFIXES[self]

    @property
    def label(self) -> str:
        return DOCUMENT_TITLES[self]

    @classmethod
    def from_value(cls, value) -> "DocumentType":
        if isinstance(value, cls):
            return value
        raw = str(value or "").strip().lower()
        for member in cls:
            if raw in (member.value, member.prefix.lower(), member.label.lower()):
                return member
        raise ValueError(f"Unknown document type: {value!r}")


class DocumentStatus(str, Enum):
    """Possible states of a document."""
    DRAFT = "draft"
    PENDING = "Pending"
    PAID = "Paid"
    OVERDUE = "Overdue"


DOCUMENT_PREFIXES = {
    DocumentType.INVOICE: "INV",
    DocumentType.QUOTATION: "QTN",
    DocumentType.PROFORMA: "PRF",
}

DOCUMENT_TITLES = {
    DocumentType.INVOICE: "INVOICE",
    DocumentType.QUOTATION: "QUOTATION",
    DocumentType.PROFORMA: "PROFORMA INVOICE",
}

# Types that require the customer's KRA PIN before finalizing
DOCUMENT_TYPES_REQUIRING_PIN = (DocumentType.INVOICE, DocumentType.PROFORMA)
