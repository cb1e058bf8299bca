import os
import unittest
from unittest import mock

from document_engine.config import EngineConfig, load_config


class LoadConfigTests(unittest.TestCase):
    def _load(self, env):
        with mock.patch.dict(os.environ, env, clear=True), mock.patch("document_engine.config.load_dotenv"):
            return load_config()

    def test_defaults(self):
        config = self._load({})
        self.assertEqual(config, EngineConfig())
        self.assertEqual((config.page_width, config.page_height), (210.0, 297.0))

    def test_environment_overrides(self):
        config = self._load(
            {
                "COMPANY_NAME": "Acme Ltd",
                "INVOICE_TAX_RATE": "0,08",
                "INVOICE_BANK_DETAILS": "Bank: X | Branch: Y",
                "PAGE_SIZE": "Letter",
                "INCLUDE_WATERMARK": "no",
                "DATABASE_URL": "postgresql://localhost/invoices",
            }
        )
        self.assertEqual(config.company.name, "Acme Ltd")
        self.assertAlmostEqual(config.tax_rate, 0.08)
        self.assertEqual(config.bank_details, ("Bank: X", "Branch: Y"))
        self.assertEqual(config.page_size, "letter")
        self.assertFalse(config.include_watermark)
        self.assertEqual(config.database_url, "postgresql://localhost/invoices")

    def test_bad_values_fall_back(self):
        config = self._load({"INVOICE_TAX_RATE": "lots", "PAGE_SIZE": "tabloid", "PAGE_MARGIN": "0"})
        self.assertEqual(config.tax_rate, 0.16)
        self.assertEqual(config.page_size, "a4")
        self.assertEqual(config.page_margin, 15.0)

    def test_with_overrides(self):
        config = EngineConfig().with_overrides(currency="KES")
        self.assertEqual(config.currency, "KES")


if __name__ == "__main__":
    unittest.main()
