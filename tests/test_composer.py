import unittest
from decimal import Decimal

from document_engine.config import EngineConfig
from document_engine.enums import DocumentType
from document_engine.errors import CompositionFailure
from document_engine.layout.backends import RecordingBackend
from document_engine.layout.composer import DocumentComposer
from document_engine.models import Customer, ImageAsset, InvoiceRecord, LineItem
from document_engine.services.document_totals import calculate_freight, calculate_totals

PAGE_BOTTOM = 297 - 15


class _BrokenImageBackend(RecordingBackend):
    def draw_image(self, image, x, y, w, h):
        raise RuntimeError("unsupported image")


class _BrokenRectBackend(RecordingBackend):
    def draw_rect(self, *args, **kwargs):
        raise RuntimeError("renderer crashed")


def _record(items=None, **overrides):
    values = dict(
        doc_type=DocumentType.INVOICE,
        customer=Customer(name="Acme Traders", phone="0711 222 333", kra_pin="P051234567X"),
        items=tuple(items or (
            LineItem(id="1", name="Router", quantity=2, unit_price=100),
            LineItem(id="2", name="Switch", quantity=1, unit_price=150),
        )),
        issued_date="2025-03-01",
        due_date="2025-03-31",
    )
    values.update(overrides)
    return InvoiceRecord(**values)


def _compose(record, backend=None, config=None, **kwargs):
    config = config or EngineConfig(footer_text="Thank you for your business.")
    backend = backend or RecordingBackend(config.page_width, config.page_height)
    freight = calculate_freight(record.items, record.freight_rate)
    totals = calculate_totals(record.items, config.tax_rate, freight_amount=freight)
    composed = DocumentComposer(backend, config, **kwargs).compose(record, "INV-2025-000001", totals)
    return backend, composed


class DocumentComposerTests(unittest.TestCase):
    def test_sections_are_drawn_in_order(self):
        backend, composed = _compose(_record(terms_and_conditions="Payment within 30 days."))
        texts = backend.texts(0)

        order = [
            texts.index("KONSUT Ltd"),
            texts.index("INVOICE"),
            texts.index("Bill To:"),
            texts.index("Invoice Details:"),
            texts.index("Description"),
            texts.index("Payment Details"),
            texts.index("Summary"),
            texts.index("Terms & Conditions"),
            texts.index("Thank you for your business."),
            texts.index("Page 1 of 1"),
        ]
        self.assertEqual(order, sorted(order))
        self.assertEqual(composed.page_count, 1)

    def test_summary_figures(self):
        backend, composed = _compose(_record())
        texts = backend.texts()
        self.assertIn("VAT (16%)", texts)
        self.assertIn("Ksh 350.00", texts)
        self.assertIn("Ksh 56.00", texts)
        self.assertIn("Ksh 406.00", texts)
        self.assertNotIn("Freight", texts)
        self.assertEqual(composed.totals.grand_total, Decimal("406.00"))

    def test_fractional_vat_rate_is_labelled_exactly(self):
        config = EngineConfig(tax_rate=0.165, footer_text="")
        items = (LineItem(id="1", name="Router", quantity=1, unit_price=100),)
        backend, composed = _compose(_record(items=items), config=config)
        texts = backend.texts()
        self.assertIn("VAT (16.5%)", texts)
        self.assertNotIn("VAT (17%)", texts)
        self.assertIn("Ksh 16.50", texts)
        self.assertEqual(composed.totals.tax_amount, Decimal("16.50"))

    def test_long_terms_start_on_the_current_page(self):
        terms = "\n".join(f"Clause {n}." for n in range(1, 61))
        backend, composed = _compose(_record(terms_and_conditions=terms))

        first_page = backend.texts(0)
        self.assertIn("Summary", first_page)
        self.assertIn("Terms & Conditions", first_page)
        self.assertIn("Clause 1.", first_page)
        self.assertGreater(composed.page_count, 1)
        self.assertIn("Terms & Conditions (cont.)", backend.texts(1))
        self.assertIn("Clause 60.", backend.texts())
        for op in backend.operations:
            if op.kind == "draw_rect":
                self.assertLessEqual(op.args["y"] + op.args["h"], PAGE_BOTTOM + 1e-6, op)

    def test_detail_box_taller_than_a_page_is_clamped(self):
        address = "Plot 42 Industrial Area Road " * 250
        customer = Customer(name="Acme Traders", kra_pin="P051234567X", address=address)
        with self.assertLogs("document_engine.layout.composer", level="WARNING") as logs:
            backend, composed = _compose(_record(customer=customer))

        self.assertTrue(any("truncated" in line for line in logs.output))
        self.assertIn("Bill To:", backend.texts())
        self.assertIn(f"Page 1 of {composed.page_count}", backend.texts(0))
        for op in backend.operations:
            if op.kind == "draw_rect":
                self.assertLessEqual(op.args["y"] + op.args["h"], PAGE_BOTTOM + 1e-6, op)
            elif op.kind == "draw_text" and op.args["angle"] == 0:
                self.assertLessEqual(op.args["y"], 297, op)
                if "Industrial" in op.args["text"]:
                    self.assertLessEqual(op.args["y"], PAGE_BOTTOM, op)

    def test_freight_column_and_summary_line(self):
        items = (
            LineItem(id="1", name="Cable drum", quantity=2, unit_price=100, weight=5),
            LineItem(id="2", name="Licence", quantity=1, unit_price=150),
        )
        backend, _ = _compose(_record(items=items, freight_rate=10))
        texts = backend.texts()
        self.assertEqual(texts.count("Freight"), 2)
        self.assertIn("100.00", texts)
        self.assertIn("Ksh 100.00", texts)

    def test_foreign_currency_total(self):
        backend, _ = _compose(_record(currency_rate=130))
        texts = backend.texts()
        self.assertIn("Total (USD)", texts)
        self.assertIn("USD 3.12", texts)

    def test_quotation_labels(self):
        record = _record(doc_type=DocumentType.QUOTATION, valid_until="2025-04-15", due_date=None)
        backend, _ = _compose(record)
        texts = backend.texts()
        self.assertIn("QUOTATION", texts)
        self.assertIn("Quote Details:", texts)
        self.assertIn("Valid Until: 15/04/2025", texts)

    def test_long_table_paginates_with_repeated_header(self):
        items = [LineItem(id=str(n), name=f"Item {n}", quantity=1, unit_price=10) for n in range(60)]
        backend, composed = _compose(_record(items=items))

        self.assertGreater(composed.page_count, 1)
        self.assertEqual(backend.get_page_count(), composed.page_count)
        self.assertIn("Description", backend.texts(1))
        for page in range(composed.page_count):
            self.assertIn(f"Page {page + 1} of {composed.page_count}", backend.texts(page))
            self.assertIn("KONSUT LTD", backend.texts(page))

    def test_nothing_drawn_below_bottom_margin(self):
        items = [LineItem(id=str(n), name=f"Item {n}", quantity=1, unit_price=10) for n in range(45)]
        backend, _ = _compose(_record(items=items, terms_and_conditions="Line\n" * 30))
        for op in backend.operations:
            if op.kind == "draw_rect":
                self.assertLessEqual(op.args["y"] + op.args["h"], PAGE_BOTTOM + 1e-6, op)

    def test_watermark_can_be_disabled(self):
        config = EngineConfig(include_watermark=False, footer_text="")
        backend, _ = _compose(_record(), config=config)
        self.assertNotIn("KONSUT LTD", backend.texts())

    def test_logo_is_drawn_aspect_fitted(self):
        logo = ImageAsset(data=b"png", width=400, height=100)
        backend, _ = _compose(_record(), logo=logo)
        images = [op for op in backend.operations if op.kind == "draw_image"]
        self.assertEqual(len(images), 1)
        self.assertAlmostEqual(images[0].args["w"], 80)
        self.assertAlmostEqual(images[0].args["h"], 20)

    def test_logo_failure_is_logged_and_omitted(self):
        logo = ImageAsset(data=b"png", width=100, height=100)
        with self.assertLogs("document_engine.layout.composer", level="WARNING"):
            backend, composed = _compose(_record(), backend=_BrokenImageBackend(), logo=logo)
        self.assertEqual([op for op in backend.operations if op.kind == "draw_image"], [])
        self.assertIn("Page 1 of 1", backend.texts())

    def test_backend_failure_becomes_composition_failure(self):
        with self.assertRaises(CompositionFailure) as ctx:
            _compose(_record(), backend=_BrokenRectBackend())
        self.assertIsInstance(ctx.exception.__cause__, RuntimeError)

    def test_plan_replays_onto_another_backend(self):
        backend, _ = _compose(_record())
        target = backend.replay(RecordingBackend())
        self.assertEqual(target.get_page_count(), backend.get_page_count())
        self.assertEqual(target.texts(), backend.texts())


if __name__ == "__main__":
    unittest.main()
