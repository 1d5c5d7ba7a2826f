"""Locale catalogs: fallback to English, number and date formatting."""
import unittest
from datetime import date, datetime
from decimal import Decimal

from youandme_assistant.app.errors import MissingResourceError
from youandme_assistant.app.preprocess import get_preprocessor
from youandme_assistant.data.locale_store import LocaleStore


class TestLocaleStore(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        cls.locales = LocaleStore(currency_symbol="€")

    def test_all_catalogs_loaded(self):
        self.assertEqual(self.locales.languages, ["el", "en", "es", "fr"])

    def test_normalize_language(self):
        self.assertEqual(self.locales.normalize_language("en-GB"), "en")
        self.assertEqual(self.locales.normalize_language("EL"), "el")
        self.assertEqual(self.locales.normalize_language("fr_CA"), "fr")
        self.assertEqual(self.locales.normalize_language("de"), "en")
        self.assertEqual(self.locales.normalize_language(None), "en")
        self.assertEqual(self.locales.normalize_language(""), "en")

    def test_partial_catalog_falls_back_per_key(self):
        self.assertFalse(self.locales.has("travel.help", "fr"))
        self.assertEqual(self.locales.resolve("travel.help", "fr"), self.locales.resolve("travel.help", "en"))
        self.assertEqual(self.locales.resolve("report.expenses_by_category", "fr"), "Dépenses par catégorie")

    def test_missing_everywhere_raises(self):
        with self.assertRaises(MissingResourceError) as cm:
            self.locales.resolve("no.such.key", "el")
        self.assertEqual(cm.exception.key, "no.such.key")
        self.assertEqual(cm.exception.kind, "resource_gap")

    def test_template(self):
        self.assertEqual(
            self.locales.template("finance.shared_settle", "en", debtor="Sam", creditor="Alex", amount="€25.00"),
            "Sam owes Alex €25.00 to settle up.",
        )

    def test_format_currency_english(self):
        self.assertEqual(self.locales.format_currency(Decimal("1234.5"), "en"), "€1,234.50")
        self.assertEqual(self.locales.format_currency(Decimal("-12"), "en"), "-€12.00")
        self.assertEqual(self.locales.format_currency(Decimal("1499.5"), "en", places=0), "€1,500")

    def test_format_currency_greek(self):
        self.assertEqual(self.locales.format_currency(Decimal("1234.5"), "el"), "1.234,50 €")

    def test_format_rounds_half_up(self):
        self.assertEqual(self.locales.format_number(Decimal("2.345"), "en"), "2.35")
        self.assertEqual(self.locales.format_number(Decimal("0.125"), "en"), "0.13")

    def test_format_percent(self):
        self.assertEqual(self.locales.format_percent(Decimal("33.333"), "en"), "33.3%")
        self.assertEqual(self.locales.format_percent(Decimal("12.5"), "fr"), "12,5 %")

    def test_format_dates(self):
        self.assertEqual(self.locales.format_date(date(2026, 10, 3), "en"), "2026-10-03")
        self.assertEqual(self.locales.format_date(date(2026, 10, 3), "el"), "03/10/2026")
        self.assertEqual(self.locales.format_datetime(datetime(2026, 10, 18, 9, 5), "en"), "2026-10-18 09:05")

    def test_month_name(self):
        self.assertEqual(self.locales.month_name(10, "en"), "October")
        self.assertEqual(self.locales.month_name(10, "el"), "Οκτώβριος")

    def test_synonyms_include_english_after_own_language(self):
        terms = self.locales.synonyms("spend", "el")
        self.assertIn("spent", terms)
        self.assertLess(terms.index("ξοδεψ*"), terms.index("spent"))

    def test_synonym_classes_keep_catalog_order(self):
        categories = self.locales.synonym_classes("category.")
        self.assertEqual(categories[0], "category.groceries")
        self.assertIn("category.subscription", categories)


class TestPreprocessor(unittest.TestCase):

    def test_normalize_text(self):
        pre = get_preprocessor()
        self.assertEqual(pre.normalize_text("  What’s my BALANCE?! "), "what's my balance")
        self.assertEqual(pre.normalize_text("Πόσο ξόδεψα;"), "ποσο ξοδεψα")
        self.assertEqual(pre.normalize_text("Spent 1,234.50 on food."), "spent 1,234.50 on food")

    def test_normalize_term_keeps_prefix_marker(self):
        pre = get_preprocessor()
        self.assertEqual(pre.normalize_term("Δαπάν*"), "δαπαν*")
        self.assertEqual(pre.normalize_terms(["Food", "food", "*"]), ["food"])


if __name__ == "__main__":
    unittest.main()
