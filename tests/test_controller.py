"""Controller: routing between agents, trip lookup and the report pipeline."""
import unittest
from datetime import datetime

from youandme_assistant.app.controller import Controller
from youandme_assistant.app.errors import EmptyQueryError, InvalidReportRequestError
from youandme_assistant.data.locale_store import LocaleStore
from youandme_assistant.schemas.io_models import Query, ReportRequest

from fakes import TODAY, FailingTripSource, InMemoryFinancialDataSource, InMemoryTripSource, sample_trip


class TestController(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        cls.locales = LocaleStore(currency_symbol="€")

    def setUp(self):
        self.controller = Controller(
            InMemoryFinancialDataSource(),
            InMemoryTripSource(sample_trip()),
            locale_store=self.locales,
        )

    def test_finance_query(self):
        result = self.controller.answer_query("u1", Query(text="What's my current balance?"), "finance", TODAY)
        self.assertEqual(result.intent, "balance")
        self.assertIn("€800.00", result.response.message)

    def test_process_query_returns_response_only(self):
        response = self.controller.process_query("u1", Query(text="Show my loans"), today=TODAY)
        self.assertTrue(response.message.startswith("You have 1 active loans"))

    def test_empty_query(self):
        for text in ("", "   "):
            with self.subTest(text=text):
                with self.assertRaises(EmptyQueryError):
                    self.controller.answer_query("u1", Query(text=text), "finance", TODAY)

    def test_unknown_variant(self):
        with self.assertRaises(ValueError):
            self.controller.answer_query("u1", Query(text="hi"), "shopping", TODAY)

    def test_travel_looks_up_active_trip(self):
        result = self.controller.answer_query("u1", Query(text="What should I pack?"), "travel", TODAY)
        self.assertEqual(result.intent, "packing-list")
        self.assertTrue(result.response.message.startswith("For your trip to **Reykjavik**"))

    def test_trip_in_query_wins(self):
        query = Query.model_validate({"text": "What should I pack?", "tripContext": {"destination": "Dubai"}})
        result = self.controller.answer_query("u1", query, "travel", TODAY)
        self.assertTrue(result.response.message.startswith("For your trip to **Dubai**"))

    def test_trip_lookup_failure_degrades(self):
        controller = Controller(InMemoryFinancialDataSource(), FailingTripSource(), locale_store=self.locales)
        result = controller.answer_query("u1", Query(text="What should I pack?"), "travel", TODAY)
        self.assertEqual(result.response.type, "info")
        self.assertTrue(result.response.message.startswith("🧳 **Packing essentials:**"))

    def test_finance_ignores_trip_source(self):
        controller = Controller(InMemoryFinancialDataSource(), FailingTripSource(), locale_store=self.locales)
        result = controller.answer_query("u1", Query(text="Show my loans"), "finance", TODAY)
        self.assertEqual(result.response.type, "info")

    def test_suggestions(self):
        finance = self.controller.get_suggestions("u1", "en", "finance")
        self.assertEqual(finance[0], "How much did I spend this month?")
        travel = self.controller.get_suggestions("u1", "en", "travel")
        self.assertEqual(travel[1], "What's the weather like at my destination?")
        with self.assertRaises(ValueError):
            self.controller.get_suggestions("u1", "en", "shopping")

    def test_generate_report(self):
        req = ReportRequest.model_validate({
            "reportType": "shared_expenses",
            "format": "csv",
            "dateRange": {"from": "2026-10-01", "to": "2026-10-31"},
        })
        rendered = self.controller.generate_report("u1", req, datetime(2026, 10, 18, 12, 0))
        self.assertEqual(rendered.filename, "shared_expenses_20261018.csv")
        self.assertEqual(rendered.content_type, "text/csv")
        self.assertIn("Sam owes Alex €25.00 to settle up.", rendered.content.decode("utf-8-sig"))

    def test_generate_report_invalid(self):
        with self.assertRaises(InvalidReportRequestError):
            self.controller.generate_report("u1", ReportRequest(report_type="nope"))

    def test_report_types(self):
        types = self.controller.list_report_types("fr")
        self.assertEqual(types[0].display_name, "Dépenses par catégorie")
        self.assertEqual(len(types), 8)


if __name__ == "__main__":
    unittest.main()
