import unittest
from datetime import date
from decimal import Decimal

from document_engine.services.number_locale import (
    format_currency,
    format_date,
    format_decimal,
    format_percent,
    format_quantity,
)


class NumberLocaleTests(unittest.TestCase):
    def test_format_decimal_groups_thousands(self):
        self.assertEqual(format_decimal(1234.5), "1,234.50")
        self.assertEqual(format_decimal(Decimal("1234567.891")), "1,234,567.89")
        self.assertEqual(format_decimal(-1234.5), "-1,234.50")
        self.assertEqual(format_decimal("0.005"), "0.01")

    def test_format_currency(self):
        self.assertEqual(format_currency(Decimal("406"), "Ksh"), "Ksh 406.00")
        self.assertEqual(format_currency(None), "-")

    def test_format_percent(self):
        self.assertEqual(format_percent(Decimal("0.16")), "16%")
        self.assertEqual(format_percent(0.075, decimals=1), "7.5%")

    def test_format_percent_keeps_fractional_rates_exact(self):
        self.assertEqual(format_percent(0.165), "16.5%")
        self.assertEqual(format_percent("0.1625"), "16.25%")
        self.assertEqual(format_percent(0.1), "10%")
        self.assertEqual(format_percent(Decimal("0.160")), "16%")

    def test_format_quantity(self):
        self.assertEqual(format_quantity(3), "3")
        self.assertEqual(format_quantity("2.0"), "2")
        self.assertEqual(format_quantity(1.25), "1.25")

    def test_format_date(self):
        self.assertEqual(format_date("2025-03-09"), "09/03/2025")
        self.assertEqual(format_date("2025-03-09T10:00:00Z"), "09/03/2025")
        self.assertEqual(format_date(date(2024, 12, 31)), "31/12/2024")
        self.assertEqual(format_date(None), "-")
        self.assertEqual(format_date("soon"), "soon")


if __name__ == "__main__":
    unittest.main()
