from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from document_engine.enums import DocumentStatus, DocumentType


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass(frozen=True)
class LineItem:
    id: str
    name: str
    quantity: Any
    unit_price: Any
    description: Optional[str] = None
    weight: Optional[Any] = None

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "LineItem":
        return cls(
            id=str(raw.get("id") or ""),
            name=str(raw.get("name") or ""),
            quantity=raw.get("quantity", 0),
            unit_price=raw.get("unitPrice", raw.get("unit_price", 0)),
            description=_clean(raw.get("description")),
            weight=raw.get("weight"),
        )

    @property
    def display_name(self) -> str:
        return self.description or self.name


@dataclass(frozen=True)
class Customer:
    name: str
    id: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    kra_pin: Optional[str] = None

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Customer":
        raw = raw or {}
        return cls(
            name=str(raw.get("name") or "").strip(),
            id=_clean(raw.get("id")),
            phone=_clean(raw.get("phone")),
            email=_clean(raw.get("email")),
            address=_clean(raw.get("address")),
            kra_pin=_clean(raw.get("kraPin", raw.get("kra_pin"))),
        )


@dataclass(frozen=True)
class InvoiceRecord:
    """Invoice-like document handed over by the editing screens.

    ``id`` is empty until the document is finalized and receives its number.
    """

    doc_type: DocumentType
    customer: Customer
    items: Tuple[LineItem, ...]
    issued_date: Any = None
    id: Optional[str] = None
    due_date: Any = None
    valid_until: Any = None
    freight_rate: Any = 0
    currency_rate: Any = 1
    status: str = DocumentStatus.PENDING.value
    client_responsibilities: Optional[str] = None
    terms_and_conditions: Optional[str] = None

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "InvoiceRecord":
        doc_type = DocumentType.from_value(raw.get("type") or raw.get("doc_type") or "invoice")
        items: List[LineItem] = []
        for item in raw.get("items") or []:
            items.append(item if isinstance(item, LineItem) else LineItem.from_dict(item))
        return cls(
            doc_type=doc_type,
            customer=Customer.from_dict(raw.get("customer") or {}),
            items=tuple(items),
            issued_date=raw.get("issuedDate", raw.get("issued_date")) or date.today().isoformat(),
            id=_clean(raw.get("id")),
            due_date=_clean(raw.get("dueDate", raw.get("due_date"))),
            valid_until=_clean(raw.get("quotationValidUntil", raw.get("valid_until"))),
            freight_rate=raw.get("freightRate", raw.get("freight_rate")) or 0,
            currency_rate=raw.get("currencyRate", raw.get("currency_rate")) or 1,
            status=str(raw.get("status") or DocumentStatus.PENDING.value),
            client_responsibilities=_clean(raw.get("clientResponsibilities", raw.get("client_responsibilities"))),
            terms_and_conditions=_clean(raw.get("termsAndConditions", raw.get("terms_and_conditions"))),
        )

    @property
    def deadline(self) -> Any:
        if self.doc_type == DocumentType.QUOTATION:
            return self.valid_until or self.due_date
        return self.due_date


@dataclass(frozen=True)
class LayoutBox:
    x: float
    y: float
    width: float
    height: float
    title: Optional[str] = None

    @property
    def bottom(self) -> float:
        return self.y + self.height


@dataclass(frozen=True)
class BoxField:
    """A label/value row inside a box; an empty value means the row is skipped."""

    label: str
    value: Any = None
    color: Optional[Tuple[int, int, int]] = None
    bold: bool = False

    @property
    def is_present(self) -> bool:
        return self.value is not None and str(self.value).strip() != ""

    @property
    def text(self) -> str:
        value = str(self.value).strip()
        return f"{self.label} {value}" if self.label else value


@dataclass
class ImageAsset:
    data: bytes
    width: int
    height: int

    @property
    def aspect(self) -> float:
        return self.width / self.height if self.height else 1.0

    def fit_within(self, max_w: float, max_h: float) -> Tuple[float, float]:
        img_w = max_w
        img_h = max_w / self.aspect
        if img_h > max_h:
            img_h = max_h
            img_w = max_h * self.aspect
        return img_w, img_h
