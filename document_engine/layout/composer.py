"""
Lays an invoice-like document out page by page.

Sections are drawn in a fixed order. Each one is measured first, then
``LayoutCursor.ensure_space`` decides whether it still fits on the current
page. The item table is the exception: its height depends on row wrapping, so
the backend paginates it and the cursor is synced from the table's end.

Page numbers need the final page count and are stamped in a second pass.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from document_engine.config import EngineConfig
from document_engine.enums import DocumentStatus, DocumentType
from document_engine.errors import CompositionFailure, DocumentEngineError
from document_engine.layout.backends import (
    COLOR_WHITE,
    RenderBackend,
    TableColumn,
    TableSpec,
    TextStyle,
)
from document_engine.layout.cursor import LayoutCursor
from document_engine.layout.sizer import SectionSizer
from document_engine.models import BoxField, Customer, ImageAsset, InvoiceRecord, LayoutBox
from document_engine.services.document_totals import ONE, Totals, line_freight, to_decimal
from document_engine.services.number_locale import (
    format_currency,
    format_date,
    format_decimal,
    format_percent,
    format_quantity,
)

logger = logging.getLogger(__name__)

COLOR_BRAND = (0, 153, 255)
COLOR_TEXT_DARK = (31, 41, 55)
COLOR_BOX_BORDER = (200, 200, 200)
COLOR_BOX_HEADER = (240, 240, 240)
COLOR_WATERMARK = (230, 230, 230)
COLOR_FOOTER = (50, 50, 50)

STATUS_COLORS = {
    DocumentStatus.PAID.value: (16, 185, 129),
    DocumentStatus.OVERDUE.value: (239, 68, 68),
}
STATUS_COLOR_DEFAULT = (245, 158, 11)

DETAILS_TITLES = {
    DocumentType.INVOICE: "Invoice Details:",
    DocumentType.QUOTATION: "Quote Details:",
    DocumentType.PROFORMA: "Proforma Details:",
}
NUMBER_LABELS = {
    DocumentType.INVOICE: "Invoice No:",
    DocumentType.QUOTATION: "Quote No:",
    DocumentType.PROFORMA: "Proforma No:",
}

LOGO_MAX_W = 80.0
LOGO_MAX_H = 40.0
BARCODE_SIZE = 25.0
HEADER_MIN_HEIGHT = 35.0
TITLE_BAR_HEIGHT = 10.0
GRAND_TOTAL_BAR = 10.0
SECTION_GAP = 10.0
FOOTER_LINE_HEIGHT = 4.0

BODY = TextStyle(size=9)
BOX_TITLE = TextStyle(size=9, style="B", color=COLOR_BRAND)
FOOTER = TextStyle(size=8, style="I", color=COLOR_FOOTER)
PAGE_NUMBER = TextStyle(size=8, color=COLOR_FOOTER)


@dataclass(frozen=True)
class ComposedDocument:
    number: str
    totals: Totals
    page_count: int


def bill_to_fields(customer: Customer) -> List[BoxField]:
    return [
        BoxField("Customer ID:", customer.id),
        BoxField("Name:", customer.name or "N/A"),
        BoxField("Phone:", customer.phone),
        BoxField("Email:", customer.email),
        BoxField("KRA PIN:", customer.kra_pin),
        BoxField("Address:", customer.address),
    ]


def details_fields(record: InvoiceRecord, number: str) -> List[BoxField]:
    deadline_label = "Valid Until:" if record.doc_type == DocumentType.QUOTATION else "Due Date:"
    deadline = record.deadline
    return [
        BoxField(NUMBER_LABELS[record.doc_type], number),
        BoxField("Issued Date:", format_date(record.issued_date) if record.issued_date else None),
        BoxField(deadline_label, format_date(deadline) if deadline else None),
        BoxField("Status:", record.status, color=STATUS_COLORS.get(record.status, STATUS_COLOR_DEFAULT), bold=True),
    ]


class DocumentComposer:
    def __init__(
        self,
        backend: RenderBackend,
        config: Optional[EngineConfig] = None,
        *,
        logo: Optional[ImageAsset] = None,
        barcode: Optional[ImageAsset] = None,
        sizer: Optional[SectionSizer] = None,
    ):
        self.backend = backend
        self.config = config or EngineConfig()
        self.logo = logo
        self.barcode = barcode
        self.sizer = sizer or SectionSizer(backend, style=BODY)
        self.cursor = LayoutCursor(self.config.page_height, self.config.page_margin)

    # -- geometry ----------------------------------------------------------

    @property
    def margin(self) -> float:
        return self.config.page_margin

    @property
    def content_width(self) -> float:
        return self.config.page_width - 2 * self.margin

    @property
    def half_width(self) -> float:
        return (self.content_width - self.config.box_gap) / 2

    @property
    def right_box_x(self) -> float:
        return self.margin + self.half_width + self.config.box_gap

    # -- entry points --------------------------------------------------------

    def compose(self, record: InvoiceRecord, number: str, totals: Totals) -> ComposedDocument:
        """Run both passes; backend failures surface as ``CompositionFailure``."""
        try:
            page_count = self.compose_content(record, number, totals)
            self.stamp_page_numbers(page_count)
        except DocumentEngineError:
            raise
        except Exception as exc:
            logger.error("Composition of %s failed: %s", number, exc)
            raise CompositionFailure(f"Could not compose document {number}: {exc}") from exc
        return ComposedDocument(number=number, totals=totals, page_count=page_count)

    def compose_content(self, record: InvoiceRecord, number: str, totals: Totals) -> int:
        self.cursor = LayoutCursor(self.config.page_height, self.config.page_margin)
        self._start_page()

        self._draw_header()
        self._draw_title_bar(record.doc_type.label)
        self._draw_detail_boxes(record, number)
        self._draw_item_table(record)
        self._draw_summary_boxes(record, totals)
        self._draw_custom_sections(record)
        self._draw_footer_text()

        backend_pages = self.backend.get_page_count()
        if backend_pages != self.cursor.page_count:
            logger.warning(
                "Cursor ended on page %d but backend holds %d pages.",
                self.cursor.page_count,
                backend_pages,
            )
        return backend_pages

    def stamp_page_numbers(self, page_count: int) -> None:
        x = self.config.page_width - self.margin
        y = self.config.page_height - 5
        for index in range(page_count):
            self.backend.set_page(index)
            self.backend.draw_text(f"Page {index + 1} of {page_count}", x, y, PAGE_NUMBER, align="right")

    # -- page handling -------------------------------------------------------

    def _start_page(self) -> None:
        self.backend.add_page()
        self._draw_watermark()

    def _ensure_space(self, height: float) -> None:
        if self.cursor.ensure_space(height):
            self._start_page()

    def _draw_watermark(self) -> None:
        if not self.config.include_watermark:
            return
        text = self.config.company.name.upper()
        style = TextStyle(size=60, style="B", color=COLOR_WATERMARK)
        self.backend.draw_text(
            text,
            self.config.page_width / 2,
            self.config.page_height / 2,
            style,
            align="center",
            angle=45,
        )

    def _draw_decoration(self, kind: str, image: ImageAsset, x: float, y: float, w: float, h: float) -> bool:
        try:
            self.backend.draw_image(image, x, y, w, h)
            return True
        except Exception as exc:
            logger.warning("%s could not be drawn and was omitted: %s", kind, exc)
            logger.debug("%s draw failure", kind, exc_info=True)
            return False

    # -- sections ------------------------------------------------------------

    def _company_lines(self) -> List[str]:
        company = self.config.company
        lines = [company.address1, company.address2]
        if company.phone:
            lines.append(f"Phone: {company.phone}")
        if company.email:
            lines.append(f"Email: {company.email}")
        if company.pin:
            lines.append(f"PIN: {company.pin}")
        return [line for line in lines if line]

    def _draw_header(self) -> None:
        details = self._company_lines()
        text_height = 5 + 7 + 5 * max(len(details) - 1, 0)
        logo_size = self.logo.fit_within(LOGO_MAX_W, LOGO_MAX_H) if self.logo else (0.0, 0.0)
        barcode_height = BARCODE_SIZE if self.barcode else 0.0
        height = max(HEADER_MIN_HEIGHT, text_height, logo_size[1], barcode_height)

        self._ensure_space(height)
        top = self.cursor.y

        if self.logo is not None:
            self._draw_decoration("Logo", self.logo, self.margin, top, *logo_size)
        if self.barcode is not None:
            x = (self.config.page_width - BARCODE_SIZE) / 2
            self._draw_decoration("Barcode", self.barcode, x, top, BARCODE_SIZE, BARCODE_SIZE)

        right = self.config.page_width - self.margin
        y = top + 5
        self.backend.draw_text(
            self.config.company.name, right, y, TextStyle(size=20, style="B", color=COLOR_BRAND), align="right"
        )
        y += 7
        detail_style = TextStyle(size=10, color=COLOR_TEXT_DARK)
        for line in details:
            self.backend.draw_text(line, right, y, detail_style, align="right")
            y += 5

        self.cursor.advance(height + SECTION_GAP)

    def _draw_title_bar(self, title: str) -> None:
        self._ensure_space(TITLE_BAR_HEIGHT)
        y = self.cursor.y
        self.backend.draw_rect(self.margin, y, self.content_width, TITLE_BAR_HEIGHT, fill_color=COLOR_BRAND)
        self.backend.draw_text(
            title,
            self.config.page_width / 2,
            y + 7,
            TextStyle(size=14, style="B", color=COLOR_WHITE),
            align="center",
        )
        self.cursor.advance(TITLE_BAR_HEIGHT + 5)

    def _draw_detail_boxes(self, record: InvoiceRecord, number: str) -> None:
        left = bill_to_fields(record.customer)
        right = details_fields(record, number)
        height = self._fit_to_page(self.sizer.measure_pair(left, right, self.half_width), "Detail boxes")

        self._ensure_space(height)
        y = self.cursor.y
        self._draw_box(LayoutBox(self.margin, y, self.half_width, height, "Bill To:"), left)
        self._draw_box(LayoutBox(self.right_box_x, y, self.half_width, height, DETAILS_TITLES[record.doc_type]), right)
        self.cursor.advance(height + SECTION_GAP)

    def _item_table(self, record: InvoiceRecord) -> TableSpec:
        freights = [line_freight(item, record.freight_rate) for item in record.items]
        with_freight = any(f > 0 for f in freights)

        columns = [
            TableColumn("Description", 0.46),
            TableColumn("Qty", 0.10, "center"),
            TableColumn("Unit Price", 0.22, "right"),
            TableColumn("Total", 0.22, "right"),
        ]
        if with_freight:
            columns.append(TableColumn("Freight", 0.18, "right"))

        rows = []
        for item, freight in zip(record.items, freights):
            name = item.display_name if self.config.include_descriptions else item.name
            unit_price = to_decimal(item.unit_price)
            row = [
                name,
                format_quantity(item.quantity),
                format_decimal(unit_price),
                format_decimal(unit_price * to_decimal(item.quantity)),
            ]
            if with_freight:
                row.append(format_decimal(freight))
            rows.append(row)
        return TableSpec(columns=columns, rows=rows, style=BODY)

    def _draw_item_table(self, record: InvoiceRecord) -> None:
        result = self.backend.draw_table(
            self._item_table(record),
            x=self.margin,
            y=self.cursor.y,
            width=self.content_width,
            top=self.margin,
            bottom=self.cursor.bottom,
            on_new_page=self._draw_watermark,
        )
        self.cursor.update_from_table(result.final_y, result.page_index)
        self.cursor.advance(SECTION_GAP)

    def _summary_fields(self, record: InvoiceRecord, totals: Totals) -> List[BoxField]:
        symbol = self.config.currency
        fields = [
            BoxField("Subtotal", format_currency(totals.subtotal, symbol)),
            BoxField(f"VAT ({format_percent(totals.tax_rate)})", format_currency(totals.tax_amount, symbol)),
        ]
        if totals.freight_amount > 0:
            fields.append(BoxField("Freight", format_currency(totals.freight_amount, symbol)))
        rate = to_decimal(record.currency_rate, ONE)
        if rate > 0 and rate != ONE:
            converted = totals.in_currency(rate)
            fields.append(
                BoxField(
                    f"Total ({self.config.foreign_currency})",
                    format_currency(converted.grand_total, self.config.foreign_currency),
                )
            )
        return fields

    def _draw_summary_boxes(self, record: InvoiceRecord, totals: Totals) -> None:
        summary = self._summary_fields(record, totals)
        summary_height = self.sizer.measure_box(summary, self.half_width) + GRAND_TOTAL_BAR
        bank = [BoxField("", line) for line in self.config.bank_details] if self.config.include_payment_details else []
        height = summary_height
        if bank:
            height = max(summary_height, self.sizer.measure_box(bank, self.half_width))
        height = self._fit_to_page(height, "Summary boxes")

        self._ensure_space(height)
        y = self.cursor.y
        if bank:
            self._draw_box(LayoutBox(self.margin, y, self.half_width, height, "Payment Details"), bank)
        box = LayoutBox(self.right_box_x, y, self.half_width, height, "Summary")
        self._draw_summary_box(box, summary, format_currency(totals.grand_total, self.config.currency))
        self.cursor.advance(height + SECTION_GAP)

    def _draw_custom_sections(self, record: InvoiceRecord) -> None:
        for title, text in (
            ("Client Responsibilities", record.client_responsibilities),
            ("Terms & Conditions", record.terms_and_conditions),
        ):
            if text and text.strip():
                self._draw_text_section(title, text)

    def _draw_text_section(self, title: str, text: str) -> None:
        """Full-width titled box; long text continues on following pages."""
        m = self.sizer.metrics
        lines = self.backend.measure_text(text, m.content_width(self.content_width), BODY)
        chrome = m.header_strip + m.top_padding + m.bottom_padding
        heading = title
        while lines:
            # Start here when two lines (or the last one) fit; the rest continues overleaf.
            self._ensure_space(chrome + min(len(lines), 2) * m.line_height)
            # At least one line per box so a cramped page cannot stall the loop.
            fits = max(1, int((self.cursor.remaining - chrome) // m.line_height))
            chunk, lines = lines[:fits], lines[fits:]
            height = chrome + len(chunk) * m.line_height
            box = LayoutBox(self.margin, self.cursor.y, self.content_width, height, heading)
            self._draw_box_frame(box)
            self._draw_lines(box, chunk, BODY)
            self.cursor.advance(height + 5)
            heading = f"{title} (cont.)"

    def _draw_footer_text(self) -> None:
        text = self.config.footer_text
        if not text:
            return
        lines = self.backend.measure_text(text, self.content_width, FOOTER)
        height = len(lines) * FOOTER_LINE_HEIGHT
        self._ensure_space(height)
        # Pinned to the bottom of the page unless content already runs past it.
        y = max(self.cursor.y, self.cursor.bottom - height)
        center = self.config.page_width / 2
        for line in lines:
            y += FOOTER_LINE_HEIGHT
            self.backend.draw_text(line, center, y - 1, FOOTER, align="center")
        self.cursor.y = y

    # -- boxes -----------------------------------------------------------------

    def _fit_to_page(self, height: float, section: str) -> float:
        limit = self.cursor.bottom - self.margin
        if height <= limit:
            return height
        logger.warning("%s need %.1fmm but a page holds %.1fmm; content truncated.", section, height, limit)
        return limit

    def _draw_box_frame(self, box: LayoutBox) -> None:
        self.backend.draw_rect(box.x, box.y, box.width, box.height, draw_color=COLOR_BOX_BORDER)
        if box.title:
            header = self.sizer.metrics.header_strip
            self.backend.draw_rect(box.x, box.y, box.width, header, fill_color=COLOR_BOX_HEADER)
            self.backend.draw_text(box.title, box.x + 3, box.y + 5, BOX_TITLE)

    def _baseline(self, box: LayoutBox, line_no: int) -> float:
        m = self.sizer.metrics
        return box.y + m.header_strip + m.top_padding + line_no * m.line_height + m.line_height * 0.75

    def _line_capacity(self, box: LayoutBox) -> int:
        m = self.sizer.metrics
        usable = box.height - m.header_strip - m.top_padding - m.bottom_padding
        return max(0, int((usable + 1e-6) // m.line_height))

    def _draw_lines(self, box: LayoutBox, lines: Sequence[str], style: TextStyle) -> None:
        x = box.x + self.sizer.metrics.text_inset
        for n, line in enumerate(lines):
            self.backend.draw_text(line, x, self._baseline(box, n), style)

    def _draw_box(self, box: LayoutBox, fields: Sequence[BoxField]) -> None:
        self._draw_box_frame(box)
        m = self.sizer.metrics
        x = box.x + m.text_inset
        width = m.content_width(box.width)
        line_no = 0
        for field in fields:
            if not field.is_present:
                continue
            lines = self.backend.measure_text(field.text, width, BODY)
            # Boxes clamped to a page show only the lines that fit.
            room = self._line_capacity(box) - line_no
            if room <= 0:
                return
            if field.color is not None and len(lines) == 1 and field.label:
                baseline = self._baseline(box, line_no)
                self.backend.draw_text(field.label, x, baseline, BODY)
                value_x = x + self.backend.string_width(f"{field.label} ", BODY)
                value_style = BODY.with_(color=field.color, style="B" if field.bold else "")
                self.backend.draw_text(str(field.value).strip(), value_x, baseline, value_style)
                line_no += 1
                continue
            style = BODY.with_(style="B") if field.bold else BODY
            for line in lines[:room]:
                self.backend.draw_text(line, x, self._baseline(box, line_no), style)
                line_no += 1

    def _draw_summary_box(self, box: LayoutBox, fields: Sequence[BoxField], grand_total: str) -> None:
        self._draw_box_frame(box)
        m = self.sizer.metrics
        label_x = box.x + m.text_inset
        value_x = box.x + box.width - m.text_inset
        line_no = 0
        for field in fields:
            baseline = self._baseline(box, line_no)
            self.backend.draw_text(field.label, label_x, baseline, BODY)
            self.backend.draw_text(str(field.value), value_x, baseline, BODY, align="right")
            line_no += 1

        bar_y = box.y + m.header_strip + m.top_padding + line_no * m.line_height + 1
        self.backend.draw_rect(box.x, bar_y, box.width, GRAND_TOTAL_BAR, fill_color=COLOR_BRAND)
        total_style = TextStyle(size=9, style="B", color=COLOR_WHITE)
        self.backend.draw_text("Grand Total", label_x, bar_y + 6.5, total_style)
        self.backend.draw_text(grand_total, value_x, bar_y + 6.5, total_style, align="right")
