import os
from dataclasses import dataclass, field, replace
from typing import Optional, Tuple

from dotenv import load_dotenv


DEFAULT_FOOTER_TEXT = (
    "If you have any questions about this invoice, please contact: "
    "Tel: +254 700 420 897 | Email: info@konsutltd.co.ke | Ruiru, Kenya"
)

DEFAULT_BANK_DETAILS = (
    "Bank: I&M BANK",
    "Branch: RUIRU BRANCH",
    "Account No (KSH): XXXXXXXXXXXXX",
    "Account No (USD): 05507023231250",
    "SWIFT CODE: IMBLKENA",
    "BANK CODE: 57 | BRANCH CODE: 055",
)

PAGE_SIZES = {
    "a4": (210.0, 297.0),
    "letter": (215.9, 279.4),
    "legal": (215.9, 355.6),
}


@dataclass(frozen=True)
class CompanyInfo:
    name: str = "KONSUT Ltd"
    address1: str = "P.O BOX 21162-00100"
    address2: str = "G.P.O NAIROBI"
    phone: str = "+254 700 420 897"
    email: str = "info@konsutltd.co.ke"
    pin: str = "P052435869T"
    logo_path: Optional[str] = None


@dataclass(frozen=True)
class EngineConfig:
    company: CompanyInfo = field(default_factory=CompanyInfo)
    currency: str = "Ksh"
    foreign_currency: str = "USD"
    tax_rate: float = 0.16
    footer_text: str = DEFAULT_FOOTER_TEXT
    bank_details: Tuple[str, ...] = DEFAULT_BANK_DETAILS
    page_size: str = "a4"
    page_margin: float = 15.0
    box_gap: float = 5.0
    include_watermark: bool = True
    include_barcode: bool = False
    include_payment_details: bool = True
    include_descriptions: bool = True
    logo_timeout: float = 3.0
    sequence_store_path: str = "document_sequences.json"
    database_url: Optional[str] = None

    @property
    def page_width(self) -> float:
        return PAGE_SIZES.get(self.page_size, PAGE_SIZES["a4"])[0]

    @property
    def page_height(self) -> float:
        return PAGE_SIZES.get(self.page_size, PAGE_SIZES["a4"])[1]

    def with_overrides(self, **changes) -> "EngineConfig":
        return replace(self, **changes)


def _read_float_env(name: str, default: float, *, min_value: float = 0.0) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw.replace(",", "."))
    except ValueError:
        return default
    return value if value >= min_value else default


def _read_bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _read_lines_env(name: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return tuple(line.strip() for line in raw.split("|") if line.strip())


def _read_company() -> CompanyInfo:
    defaults = CompanyInfo()
    return CompanyInfo(
        name=os.getenv("COMPANY_NAME") or defaults.name,
        address1=os.getenv("COMPANY_ADDRESS1") or defaults.address1,
        address2=os.getenv("COMPANY_ADDRESS2") or defaults.address2,
        phone=os.getenv("COMPANY_PHONE") or defaults.phone,
        email=os.getenv("COMPANY_EMAIL") or defaults.email,
        pin=os.getenv("COMPANY_PIN") or defaults.pin,
        logo_path=os.getenv("COMPANY_LOGO_PATH") or None,
    )


def load_config() -> EngineConfig:
    load_dotenv()
    defaults = EngineConfig()

    page_size = (os.getenv("PAGE_SIZE") or defaults.page_size).strip().lower()
    if page_size not in PAGE_SIZES:
        page_size = defaults.page_size

    return EngineConfig(
        company=_read_company(),
        currency=os.getenv("INVOICE_CURRENCY") or defaults.currency,
        foreign_currency=os.getenv("INVOICE_FOREIGN_CURRENCY") or defaults.foreign_currency,
        tax_rate=_read_float_env("INVOICE_TAX_RATE", defaults.tax_rate),
        footer_text=os.getenv("INVOICE_FOOTER_TEXT") or defaults.footer_text,
        bank_details=_read_lines_env("INVOICE_BANK_DETAILS", defaults.bank_details),
        page_size=page_size,
        page_margin=_read_float_env("PAGE_MARGIN", defaults.page_margin, min_value=1.0),
        include_watermark=_read_bool_env("INCLUDE_WATERMARK", defaults.include_watermark),
        include_barcode=_read_bool_env("INCLUDE_BARCODE", defaults.include_barcode),
        include_payment_details=_read_bool_env("INCLUDE_PAYMENT_DETAILS", defaults.include_payment_details),
        include_descriptions=_read_bool_env("INCLUDE_DESCRIPTIONS", defaults.include_descriptions),
        logo_timeout=_read_float_env("LOGO_TIMEOUT", defaults.logo_timeout, min_value=0.1),
        sequence_store_path=os.getenv("SEQUENCE_STORE_PATH") or defaults.sequence_store_path,
        database_url=os.getenv("DATABASE_URL") or None,
    )
