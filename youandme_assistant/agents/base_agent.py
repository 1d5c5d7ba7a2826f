"""BaseAgent shared by the finance and travel assistants.

An agent turns one query into one ChatbotResponse: match the intent (falling
back to recent history for follow-ups), run the intent's handler, and wrap
any collaborator failure into a localized error response.
"""
from abc import ABC, abstractmethod
from calendar import monthrange
from datetime import date, timedelta
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Sequence, Tuple
from urllib.parse import urlencode

from ..app.config import Config
from ..app.errors import ExternalFetchError, MissingResourceError
from ..data.locale_store import LocaleStore, get_locale_store
from ..nlu.entity_extractor import UNIT_DAYS
from ..nlu.intent_model import IntentMatcher
from ..schemas.io_models import (
    ChatbotResponse,
    Confidence,
    Intent,
    Query,
    QuickAction,
    ReportOffer,
    TripContext,
    Turn,
)
from ..utils.concurrency import run_with_timeout
from ..utils.logger import get_logger
from .suggestions import suggest

logger = get_logger("agents")

# a new explicit period replaces whatever period the earlier turn had
_PERIOD_SLOTS = ("period", "date_range", "date_range_invalid")


class TurnContext(NamedTuple):
    """Per-request inputs every handler sees."""
    user_id: str
    language: str
    today: date
    trip: Optional[TripContext] = None


class Period(NamedTuple):
    start: date
    end: date
    label: str

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1


Handler = Callable[[Intent, TurnContext], ChatbotResponse]


class BaseAgent(ABC):
    name: str = "base"
    unknown_key: str = "unknown.finance"
    invalid_range_key: str = "finance.invalid_range"

    def __init__(self, matcher: IntentMatcher, locale_store: Optional[LocaleStore] = None,
                 max_history_turns: Optional[int] = None):
        self.matcher = matcher
        self.locales = locale_store or get_locale_store()
        self.max_history_turns = max_history_turns or Config.MAX_HISTORY_TURNS
        self.handlers: Dict[str, Handler] = self._handlers()
        missing = set(matcher.intent_ids) - set(self.handlers)
        if missing:
            raise ValueError(f"{self.name} agent has no handler for: {', '.join(sorted(missing))}")

    @abstractmethod
    def _handlers(self) -> Dict[str, Handler]:
        """Intent id -> handler for every intent the matcher can produce."""
        ...

    # ------------------------------------------------------------------
    # entry point
    # ------------------------------------------------------------------
    def handle(self, query: Query, user_id: str, today: date,
               trip_context: Optional[TripContext] = None) -> ChatbotResponse:
        return self.respond(query, user_id, today, trip_context)[1]

    def respond(self, query: Query, user_id: str, today: date,
                trip_context: Optional[TripContext] = None) -> Tuple[Intent, ChatbotResponse]:
        """The matched intent and the answer for one query."""
        language = self.locales.normalize_language(query.language)
        trip = trip_context or query.trip_context
        ctx = TurnContext(user_id=user_id, language=language, today=today, trip=trip)

        intent = self.resolve_intent(query.text, query.history, language, trip)
        logger.info("[%s] intent=%s confidence=%s slots=%s",
                    self.name, intent.id, intent.confidence.name, sorted(intent.slots))

        if intent.is_unknown:
            return intent, self._unknown(ctx)
        if intent.slots.get("date_range_invalid"):
            return intent, self._warn(self.t(self.invalid_range_key, ctx))
        try:
            return intent, self.handlers[intent.id](intent, ctx)
        except ExternalFetchError as e:
            logger.warning("[%s] %s: %s (%s)", self.name, intent.id, e.message, e.detail)
            return intent, self._error(ctx, "error.data_unavailable")
        except MissingResourceError as e:
            logger.error("[%s] %s: %s (%s)", self.name, intent.id, e.message, e.detail)
            return intent, self._error(ctx)
        except Exception:
            logger.exception("[%s] handler for %s failed", self.name, intent.id)
            return intent, self._error(ctx)

    def resolve_intent(self, text: str, history: Sequence[Turn], language: str,
                       trip: Optional[TripContext] = None) -> Intent:
        """Match ``text``; an unmatched follow-up borrows the intent of a recent user turn."""
        intent = self.matcher.match(text, language, trip)
        if not intent.is_unknown:
            return intent

        slots = self.matcher.followup_slots(text, language)
        if not slots and not self.matcher.starts_as_followup(text, language):
            return intent

        for turn in reversed(list(history)[-self.max_history_turns:]):
            if turn.role != "user":
                continue
            previous = self.matcher.match(turn.text, language, trip)
            if previous.is_unknown:
                continue
            merged = dict(previous.slots)
            if any(k in slots for k in _PERIOD_SLOTS):
                for k in _PERIOD_SLOTS:
                    merged.pop(k, None)
            merged.update(slots)
            return Intent(id=previous.id, confidence=Confidence.CONTEXT, slots=merged)
        return intent

    # ------------------------------------------------------------------
    # response builders
    # ------------------------------------------------------------------
    def _respond(self, message: str, type: str = "info", quick_actions: Optional[List[QuickAction]] = None,
                 action_link: Optional[str] = None, report_offer: Optional[ReportOffer] = None) -> ChatbotResponse:
        return ChatbotResponse(
            message=message,
            type=type,
            quick_actions=quick_actions or [],
            action_link=action_link,
            report_offer=report_offer,
        )

    def _ok(self, message: str, **extras) -> ChatbotResponse:
        return self._respond(message, "info", **extras)

    def _warn(self, message: str, **extras) -> ChatbotResponse:
        return self._respond(message, "warning", **extras)

    def _action(self, message: str, **extras) -> ChatbotResponse:
        return self._respond(message, "action", **extras)

    def _error(self, ctx: TurnContext, key: str = "error.generic") -> ChatbotResponse:
        return self._respond(self.locales.resolve(key, ctx.language), "error")

    def _unknown(self, ctx: TurnContext) -> ChatbotResponse:
        texts = suggest(self.name, ctx.language, ctx.trip, self.locales)
        return self._ok(
            self.locales.resolve(self.unknown_key, ctx.language),
            quick_actions=[QuickAction(label=t, value=t) for t in texts],
        )

    # ------------------------------------------------------------------
    # helpers for handlers
    # ------------------------------------------------------------------
    def t(self, key: str, ctx: TurnContext, **values: Any) -> str:
        return self.locales.template(key, ctx.language, **values)

    def money(self, value, ctx: TurnContext, places: int = 2) -> str:
        return self.locales.format_currency(value, ctx.language, places)

    def ask(self, key: str, ctx: TurnContext) -> QuickAction:
        """Quick action that sends a localized question back to the assistant."""
        text = self.locales.resolve(key, ctx.language)
        return QuickAction(label=text, value=text)

    def link(self, key: str, route: str, ctx: TurnContext) -> QuickAction:
        return QuickAction(label=self.locales.resolve(key, ctx.language), value=route)

    def _fetch(self, fn: Callable, *args, what: str = "fetch", **kwargs):
        return run_with_timeout(fn, *args, what=what, **kwargs)

    # ------------------------------------------------------------------
    # periods
    # ------------------------------------------------------------------
    def resolve_period(self, slots: Dict[str, Any], ctx: TurnContext, default: str = "this_month") -> Period:
        """Dates and display label for the period slots, relative to ``ctx.today``."""
        if "date_range" in slots:
            start, end = slots["date_range"]
            return Period(start, end, self.t(
                "period.range", ctx,
                start=self.locales.format_date(start, ctx.language),
                end=self.locales.format_date(end, ctx.language),
            ))
        key = slots.get("period") or default
        start, end = period_bounds(key, ctx.today)
        if key.startswith("past_"):
            _, n, unit = key.split("_")
            return Period(start, end, self.t(f"period.past_{unit}", ctx, n=n))
        return Period(start, end, self.t(f"period.{key}", ctx))

    def previous_period(self, period: Period) -> Period:
        """The equally long period that ends the day before ``period`` starts."""
        end = period.start - timedelta(days=1)
        return Period(end - timedelta(days=period.days - 1), end, "")

    def month_label(self, months_ahead: int, ctx: TurnContext) -> str:
        """'August 2028' for the month ``months_ahead`` months after ``ctx.today``."""
        year, month = divmod(ctx.today.year * 12 + ctx.today.month - 1 + months_ahead, 12)
        return f"{self.locales.month_name(month + 1, ctx.language)} {year}"

    def range_label(self, start: date, end: date, ctx: TurnContext) -> str:
        return self.t(
            "period.range_label", ctx,
            start=self.locales.format_date(start, ctx.language),
            end=self.locales.format_date(end, ctx.language),
        )


def period_bounds(key: str, today: date):
    """(start, end) for a period key such as 'last_month' or 'past_3_week'."""
    if key.startswith("past_"):
        _, n, unit = key.split("_")
        return today - timedelta(days=int(n) * UNIT_DAYS[unit] - 1), today
    if key == "today":
        return today, today
    if key == "yesterday":
        d = today - timedelta(days=1)
        return d, d
    if key == "this_week":
        return today - timedelta(days=today.weekday()), today
    if key == "last_week":
        end = today - timedelta(days=today.weekday() + 1)
        return end - timedelta(days=6), end
    if key == "this_month":
        return today.replace(day=1), today
    if key == "last_month":
        end = today.replace(day=1) - timedelta(days=1)
        return end.replace(day=1), end
    if key == "this_year":
        return date(today.year, 1, 1), today
    if key == "last_year":
        return date(today.year - 1, 1, 1), date(today.year - 1, 12, 31)
    raise ValueError(f"unknown period '{key}'")


def month_bounds(year: int, month: int):
    return date(year, month, 1), date(year, month, monthrange(year, month)[1])


def report_route(report_type: str, start: date, end: date, category: Optional[str] = None,
                 fmt: Optional[str] = None) -> str:
    params = [("type", report_type), ("from", start.isoformat()), ("to", end.isoformat())]
    if category:
        params.append(("category", category))
    if fmt:
        params.append(("format", fmt))
    return "/reports?" + urlencode(params)
