"""
Turns an invoice-like record into a printable PDF.

Validation and logo loading run before the sequence store is touched, so a
rejected record or a broken asset never consumes a number. The file is written only after the layout and the
page-numbering pass both succeeded.
"""
import logging
import os
import platform
import re
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from document_engine.config import EngineConfig, load_config
from document_engine.enums import DOCUMENT_TYPES_REQUIRING_PIN
from document_engine.errors import ValidationError
from document_engine.layout.backends import FpdfBackend, RecordingBackend, RenderBackend
from document_engine.layout.composer import ComposedDocument, DocumentComposer
from document_engine.models import ImageAsset, InvoiceRecord
from document_engine.services.assets import build_barcode, load_image_asset
from document_engine.services.document_totals import (
    Totals,
    calculate_freight,
    calculate_line_item,
    calculate_totals,
    validate_currency_rate,
)
from document_engine.services.sequence_store import SequenceStore, build_sequence_store

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME = re.compile(r'[\\/:*?"<>|]+')


@dataclass(frozen=True)
class GeneratedDocument:
    path: Path
    number: str
    totals: Totals
    page_count: int
    preview: bool = False


def validate_record(record: InvoiceRecord) -> None:
    """Reject records that cannot be printed; raises ``ValidationError``."""
    if not record.customer.name:
        raise ValidationError("Customer name is required", field="customer.name")
    if record.doc_type in DOCUMENT_TYPES_REQUIRING_PIN and not record.customer.kra_pin:
        raise ValidationError(
            f"Customer KRA PIN is required for {record.doc_type.label.lower()} documents",
            field="customer.kra_pin",
        )
    if not record.items:
        raise ValidationError("At least one line item is required", field="items")
    for item in record.items:
        calculate_line_item(item)
    validate_currency_rate(record.currency_rate)


def compute_totals(record: InvoiceRecord, config: EngineConfig) -> Totals:
    freight = calculate_freight(record.items, record.freight_rate)
    return calculate_totals(record.items, config.tax_rate, freight_amount=freight)


def build_filename(company_name: str, record: InvoiceRecord, number: str) -> str:
    raw = f"{company_name}_{record.doc_type.label}_{number}.pdf"
    return _UNSAFE_FILENAME.sub("-", raw)


def load_logo(config: EngineConfig) -> Optional[ImageAsset]:
    return load_image_asset(config.company.logo_path, timeout=config.logo_timeout)


def _resolve_number(record: InvoiceRecord, store: SequenceStore, finalize: bool) -> str:
    if record.id:
        return record.id
    if finalize:
        return str(store.get_next(record.doc_type))
    return str(store.peek_next(record.doc_type))


def compose_document(
    record: InvoiceRecord,
    number: str,
    backend: RenderBackend,
    *,
    config: EngineConfig,
    totals: Optional[Totals] = None,
    logo: Optional[ImageAsset] = None,
) -> ComposedDocument:
    """Lay ``record`` out on ``backend`` without touching numbering or files.

    ``logo`` is loaded by the caller; the barcode depends on ``number`` and is
    built here.
    """
    totals = totals or compute_totals(record, config)
    barcode = build_barcode(number) if config.include_barcode else None
    composer = DocumentComposer(backend, config, logo=logo, barcode=barcode)
    return composer.compose(record, number, totals)


def build_drawing_plan(
    record: InvoiceRecord,
    number: str = "DRAFT",
    *,
    config: Optional[EngineConfig] = None,
) -> RecordingBackend:
    """Validated drawing plan for ``record``; nothing is numbered or written."""
    config = config or load_config()
    validate_record(record)
    backend = RecordingBackend(config.page_width, config.page_height)
    compose_document(record, number, backend, config=config, logo=load_logo(config))
    return backend


def generate_document_pdf(
    record: InvoiceRecord,
    *,
    config: Optional[EngineConfig] = None,
    store: Optional[SequenceStore] = None,
    output_dir: Optional[Union[str, Path]] = None,
    finalize: bool = True,
) -> GeneratedDocument:
    """
    Generate the PDF for ``record``.

    Args:
        record: Invoice, quotation or proforma to print.
        config: Engine configuration; read from the environment when omitted.
        store: Sequence store issuing document numbers.
        output_dir: Target directory; the system temp directory by default.
        finalize: When False the next number is only peeked (preview), so
            nothing is consumed.

    Returns:
        ``GeneratedDocument`` with the file path, number, totals and page count.
    """
    config = config or load_config()
    validate_record(record)
    totals = compute_totals(record, config)
    logo = load_logo(config)

    store = store or build_sequence_store(config)
    number = _resolve_number(record, store, finalize)

    backend = FpdfBackend(config.page_width, config.page_height)
    composed = compose_document(record, number, backend, config=config, totals=totals, logo=logo)

    target_dir = Path(output_dir) if output_dir else Path(tempfile.gettempdir())
    path = backend.save(target_dir / build_filename(config.company.name, record, number))
    logger.info("Wrote %s (%d page(s)) to %s", number, composed.page_count, path)
    return GeneratedDocument(
        path=path,
        number=number,
        totals=totals,
        page_count=composed.page_count,
        preview=not finalize,
    )


def open_pdf(path: Union[str, Path]) -> None:
    path = str(path)
    try:
        os.startfile(path)
    except AttributeError:
        runner = "open" if platform.system() == "Darwin" else "xdg-open"
        try:
            subprocess.run([runner, path], check=False)
        except OSError:
            logger.debug("Could not open the PDF automatically.", exc_info=True)
    except OSError:
        logger.debug("Opening the PDF failed.", exc_info=True)


def generate_pdf_and_open(record: InvoiceRecord, **kwargs) -> GeneratedDocument:
    result = generate_document_pdf(record, **kwargs)
    open_pdf(result.path)
    return result
