"""Travel Agent: static travel guidance personalised with the user's active trip."""
from decimal import Decimal
from typing import Dict, Optional

from ..data.locale_store import LocaleStore
from ..data.travel_catalog import DEFAULT_CLIMATE, packing_sections
from ..nlu.intent_model import IntentMatcher, travel_matcher
from ..schemas.io_models import ChatbotResponse, Intent, TripContext
from .base_agent import BaseAgent, Handler, TurnContext


def travel_page(page: str) -> str:
    return f"/travel?page={page}"


class TravelAgent(BaseAgent):
    name = "travel"
    unknown_key = "unknown.travel"

    def __init__(self, matcher: Optional[IntentMatcher] = None, locale_store: Optional[LocaleStore] = None,
                 max_history_turns: Optional[int] = None):
        matcher = matcher or travel_matcher(locale_store)
        super().__init__(matcher, locale_store or matcher.locales, max_history_turns)

    def _handlers(self) -> Dict[str, Handler]:
        return {
            "packing-list": self._packing_list,
            "best-time": self._best_time,
            "weather": self._weather,
            "customs": self._customs,
            "trip-budget": self._trip_budget,
            "documents": self._documents,
            "itinerary": self._itinerary,
            "help": self._help,
        }

    # ------------------------------------------------------------------
    # trip personalisation
    # ------------------------------------------------------------------
    def trip_prefix(self, trip: Optional[TripContext], ctx: TurnContext) -> str:
        """'For your trip to **Paris** (2026-12-01–2026-12-10, budget: €1,500):' or '' without a trip."""
        if trip is None or not trip.is_active:
            return ""
        cities = ""
        if trip.city_names:
            cities = self.t("travel.prefix_cities", ctx, cities=", ".join(trip.city_names))

        has_dates = trip.start_date is not None and trip.end_date is not None
        budget = self.money(trip.budget, ctx, places=0) if trip.budget else None
        if has_dates:
            start = self.locales.format_date(trip.start_date, ctx.language)
            end = self.locales.format_date(trip.end_date, ctx.language)
            if budget:
                details = self.t("travel.prefix_dates_budget", ctx, start=start, end=end, budget=budget)
            else:
                details = self.t("travel.prefix_dates", ctx, start=start, end=end)
        elif budget:
            details = self.t("travel.prefix_budget", ctx, budget=budget)
        else:
            details = ""
        return self.t("travel.prefix", ctx, destination=trip.destination.strip(), cities=cities, details=details)

    def _personalise(self, response: ChatbotResponse, ctx: TurnContext) -> ChatbotResponse:
        prefix = self.trip_prefix(ctx.trip, ctx)
        if not prefix:
            return response
        return response.model_copy(update={"message": prefix + response.message})

    def _climate_note(self, intent: Intent, ctx: TurnContext) -> str:
        climate = intent.slots.get("climate")
        return "\n\n" + self.t(f"climate.{climate}", ctx) if climate else ""

    # ------------------------------------------------------------------
    # handlers
    # ------------------------------------------------------------------
    def _packing_list(self, intent: Intent, ctx: TurnContext) -> ChatbotResponse:
        climate = intent.slots.get("climate") or DEFAULT_CLIMATE
        days = intent.slots.get("duration_days")
        activities = list(intent.slots.get("activity") or ())

        if days:
            lines = [self.t("travel.packing_header_days", ctx, days=days)]
        else:
            lines = [self.t("travel.packing_header", ctx)]
        lines.append(self.t(f"climate.{climate}", ctx))
        for section, items in packing_sections(climate, days, activities):
            names = []
            for item, qty in items:
                name = self.locales.resolve(f"packing.item.{item}", ctx.language)
                names.append(f"{name} x{qty}" if qty > 1 else name)
            lines.append(self.t(
                "travel.packing_section", ctx,
                section=self.locales.resolve(f"packing.section.{section}", ctx.language),
                items=", ".join(names),
            ))
        lines.append(self.t("travel.packing_footer", ctx))

        response = self._ok(
            "\n\n".join(lines),
            quick_actions=[
                self.link("action.open_packing", travel_page("packing"), ctx),
                self.ask("action.pack_week", ctx),
            ],
            action_link=travel_page("packing"),
        )
        return self._personalise(response, ctx)

    def _best_time(self, intent: Intent, ctx: TurnContext) -> ChatbotResponse:
        response = self._ok(
            self.t("travel.best_time", ctx) + self._climate_note(intent, ctx),
            quick_actions=[
                self.ask("action.weather_now", ctx),
                self.link("action.open_explore", travel_page("explore"), ctx),
            ],
        )
        return self._personalise(response, ctx)

    def _weather(self, intent: Intent, ctx: TurnContext) -> ChatbotResponse:
        response = self._action(
            self.t("travel.weather", ctx) + self._climate_note(intent, ctx),
            quick_actions=[self.link("action.open_explore", travel_page("explore"), ctx)],
            action_link=travel_page("explore"),
        )
        return self._personalise(response, ctx)

    def _customs(self, intent: Intent, ctx: TurnContext) -> ChatbotResponse:
        response = self._ok(self.t("travel.customs", ctx), action_link=travel_page("explore"))
        return self._personalise(response, ctx)

    def _trip_budget(self, intent: Intent, ctx: TurnContext) -> ChatbotResponse:
        amount = intent.slots.get("amount")
        if amount is None and ctx.trip is not None and ctx.trip.budget:
            amount = ctx.trip.budget
        days = intent.slots.get("duration_days")
        quick_actions = [
            self.link("action.open_budget", travel_page("budget"), ctx),
            self.ask("action.money_to_bring", ctx),
        ]

        if not amount:
            response = self._warn(self.t("travel.budget_missing", ctx),
                                  quick_actions=quick_actions, action_link=travel_page("budget"))
            return self._personalise(response, ctx)

        amount = Decimal(amount)
        if days:
            message = self.t(
                "travel.budget_per_day", ctx,
                budget=self.money(amount, ctx, places=0),
                days=days,
                per_day=self.money(amount / days, ctx),
            )
        else:
            message = self.t("travel.budget_total", ctx, budget=self.money(amount, ctx, places=0))
        response = self._ok(
            message + "\n\n" + self.t("travel.budget_footer", ctx),
            quick_actions=quick_actions,
            action_link=travel_page("budget"),
        )
        return self._personalise(response, ctx)

    def _documents(self, intent: Intent, ctx: TurnContext) -> ChatbotResponse:
        response = self._action(
            self.t("travel.documents", ctx),
            quick_actions=[self.link("action.open_documents", travel_page("documents"), ctx)],
            action_link=travel_page("documents"),
        )
        return self._personalise(response, ctx)

    def _itinerary(self, intent: Intent, ctx: TurnContext) -> ChatbotResponse:
        response = self._action(
            self.t("travel.itinerary", ctx),
            quick_actions=[
                self.link("action.open_itinerary", travel_page("itinerary"), ctx),
                self.ask("action.things_to_do", ctx),
            ],
            action_link=travel_page("itinerary"),
        )
        return self._personalise(response, ctx)

    def _help(self, intent: Intent, ctx: TurnContext) -> ChatbotResponse:
        return self._unknown(ctx).model_copy(update={"message": self.t("travel.help", ctx)})
