"""Curated starter questions shown in the chat widgets."""
from typing import List, Optional, Sequence, Tuple

from ..app.config import Config
from ..data.locale_store import LocaleStore, get_locale_store
from ..schemas.io_models import TripContext

# (locale key, tags) in display order
FINANCE_SUGGESTIONS: Sequence[Tuple[str, Tuple[str, ...]]] = (
    ("suggest.finance.spent_this_month", ()),
    ("suggest.finance.balance", ()),
    ("suggest.finance.top_expenses", ()),
    ("suggest.finance.category", ()),
    ("suggest.finance.compare", ()),
    ("suggest.finance.budget", ()),
    ("suggest.finance.forecast", ()),
    ("suggest.finance.shared", ()),
    ("suggest.finance.tips", ()),
    ("suggest.finance.export", ()),
)

TRAVEL_SUGGESTIONS: Sequence[Tuple[str, Tuple[str, ...]]] = (
    ("suggest.travel.pack", ("trip",)),
    ("suggest.travel.best_time", ()),
    ("suggest.travel.weather", ("trip",)),
    ("suggest.travel.customs", ()),
    ("suggest.travel.budget", ("trip",)),
    ("suggest.travel.documents", ("trip",)),
    ("suggest.travel.itinerary", ()),
    ("suggest.travel.help", ()),
)

CATALOGS = {"finance": FINANCE_SUGGESTIONS, "travel": TRAVEL_SUGGESTIONS}


def suggest(variant: str, language: str = "en", trip_context: Optional[TripContext] = None,
            locale_store: Optional[LocaleStore] = None) -> List[str]:
    """Suggestion texts for a chatbot variant, trip-related ones first when a trip is active."""
    locales = locale_store or get_locale_store()
    language = locales.normalize_language(language)
    try:
        catalog = list(CATALOGS[variant])
    except KeyError:
        raise ValueError(f"unknown chatbot variant '{variant}'")

    if trip_context is not None and trip_context.is_active:
        # sorted() is stable, so catalog order holds within each group
        catalog = sorted(catalog, key=lambda entry: "trip" not in entry[1])

    return [locales.resolve(key, language) for key, _ in catalog[:Config.MAX_SUGGESTIONS]]
