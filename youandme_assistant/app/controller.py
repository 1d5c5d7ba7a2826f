"""Controller: the four public operations of the assistant.

Routes a query to the finance or travel agent, serves suggestions, and runs
the report pipeline (builder -> renderer). The controller is the last guard:
anything unclassified that escapes a component is logged and re-raised as an
AssistantError so callers only ever see classified failures.
"""
from datetime import date, datetime
from typing import List, Optional

from ..agents.base_agent import BaseAgent
from ..agents.finance_agent import FinanceAgent
from ..agents.suggestions import suggest
from ..agents.travel_agent import TravelAgent
from ..data.locale_store import LocaleStore, get_locale_store
from ..data.sources import FinancialDataSource, TripDataSource
from ..reports.builder import ReportModelBuilder
from ..reports.catalog import list_report_types
from ..reports.renderers import RenderedReport, render
from ..schemas.io_models import (
    ChatbotResponse,
    Query,
    QueryResponse,
    ReportRequest,
    ReportTypeDescriptor,
    TripContext,
)
from ..utils.concurrency import run_with_timeout
from ..utils.logger import get_logger
from .errors import AssistantError, EmptyQueryError, ExternalFetchError, ReportGenerationError

logger = get_logger("controller")


class Controller:
    def __init__(self, finance_source: FinancialDataSource, trip_source: Optional[TripDataSource] = None,
                 locale_store: Optional[LocaleStore] = None):
        self.locales = locale_store or get_locale_store()
        self.trip_source = trip_source
        self.agents = {
            "finance": FinanceAgent(finance_source, locale_store=locale_store),
            "travel": TravelAgent(locale_store=locale_store),
        }
        self.report_builder = ReportModelBuilder(finance_source, locale_store)

    def _agent(self, variant: str) -> BaseAgent:
        try:
            return self.agents[variant]
        except KeyError:
            raise ValueError(f"unknown chatbot variant '{variant}'")

    # ------------------------------------------------------------------
    # dialogue
    # ------------------------------------------------------------------
    def process_query(self, user_id: str, query: Query, variant: str = "finance",
                      today: Optional[date] = None) -> ChatbotResponse:
        return self.answer_query(user_id, query, variant, today).response

    def answer_query(self, user_id: str, query: Query, variant: str = "finance",
                     today: Optional[date] = None) -> QueryResponse:
        """Like process_query, but also reports which intent answered."""
        if not query.text or not query.text.strip():
            raise EmptyQueryError()
        agent = self._agent(variant)
        today = today or date.today()
        logger.info("[%s] query from %s: %r (language=%s)", variant, user_id, query.text, query.language)

        trip = query.trip_context
        if variant == "travel" and trip is None:
            trip = self._active_trip(user_id)
        try:
            intent, response = agent.respond(query, user_id, today, trip)
        except AssistantError:
            raise
        except Exception as e:
            logger.exception("[%s] query processing failed for %s", variant, user_id)
            raise AssistantError("Query processing failed", detail=repr(e)) from e
        return QueryResponse(response=response, intent=intent.id)

    def _active_trip(self, user_id: str) -> Optional[TripContext]:
        if self.trip_source is None:
            return None
        try:
            return run_with_timeout(self.trip_source.fetch, user_id, what="trip lookup")
        except ExternalFetchError as e:
            # without a trip the answers are just less personal
            logger.warning("Trip lookup for %s failed, answering without trip: %s", user_id, e.detail)
            return None

    def get_suggestions(self, user_id: str, language: str = "en", variant: str = "finance") -> List[str]:
        self._agent(variant)
        trip = self._active_trip(user_id) if variant == "travel" else None
        return suggest(variant, language, trip, self.locales)

    # ------------------------------------------------------------------
    # reports
    # ------------------------------------------------------------------
    def generate_report(self, user_id: str, request: ReportRequest,
                        generated_at: Optional[datetime] = None) -> RenderedReport:
        model = self.report_builder.build(user_id, request, generated_at)
        try:
            rendered = render(model, request.format, self.locales)
        except AssistantError:
            raise
        except Exception as e:
            logger.exception("Rendering %s as %s failed", request.report_type, request.format)
            raise ReportGenerationError("Report rendering failed", detail=repr(e)) from e
        logger.info("Generated %s (%d bytes) for %s", rendered.filename, len(rendered.content), user_id)
        return rendered

    def list_report_types(self, language: str = "en") -> List[ReportTypeDescriptor]:
        return list_report_types(language, self.locales)
