"""Rule-based slot extraction for the finance and travel assistants.

Extractors read the normalized query (plus trip context for travel slots) and
return a value or None. They never consult the clock: relative periods are
returned as keys (``last_month``, ``past_3_week``) and turned into dates by the
dialogue policy.
"""
import re
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Optional, Tuple

import dateparser
from rapidfuzz import fuzz, process

from ..data.locale_store import LocaleStore, get_locale_store
from ..data.travel_catalog import CLIMATE_KEYWORDS, classify_climate
from ..schemas.io_models import TripContext
from ..utils.logger import get_logger
from .rules import ParsedQuery, _contains_any, find_term, longest_term, parse_query

logger = get_logger("nlu")

PERIOD_KEYS = (
    "today", "yesterday",
    "this_week", "last_week",
    "this_month", "last_month",
    "this_year", "last_year",
)
UNIT_DAYS = {"day": 1, "week": 7, "month": 30, "year": 365}

# date_range value when both dates parsed but the start is after the end
INVALID_RANGE = "invalid"

_ISO_DATE = r"\d{4}-\d{1,2}-\d{1,2}"
_NUMERIC_DATE = r"\d{1,2}[/.-]\d{1,2}[/.-]\d{2,4}"
_WORD_DATE = r"\d{1,2}\s+[^\W\d]{3,}\s+\d{4}"
DATE_RE = re.compile(rf"(?<![\d/.-])(?:{_ISO_DATE}|{_NUMERIC_DATE}|{_WORD_DATE})(?![\d/.-])")
NUMBER_UNIT_RE = re.compile(r"(?<![\d.,/-])(\d{1,3})\s+([^\W\d]+)")
AMOUNT_RE = re.compile(
    r"€\s*(\d[\d.,]*\d|\d)"
    r"|(\d[\d.,]*\d|\d)\s*(?:€|eur\b|euros?\b|ευρω\b)"
)
PERCENT_RE = re.compile(
    r"(\d+(?:[.,]\d+)?)\s*(?:%|percent\b|per cent\b|τοις εκατο\b|por ciento\b|pour cent\b)"
)

FUZZY_CUTOFF = 85
FUZZY_MIN_LEN = 5


def parse_amount(raw: str) -> Optional[Decimal]:
    """Parse '1,234.50', '1.234,50', '1500' or '12,5' into a Decimal."""
    s = raw.strip()
    if "," in s and "." in s:
        # whichever separator comes last is the decimal point
        if s.rfind(",") > s.rfind("."):
            s = s.replace(".", "").replace(",", ".")
        else:
            s = s.replace(",", "")
    elif "," in s:
        s = s.replace(",", "") if re.fullmatch(r"\d{1,3}(?:,\d{3})+", s) else s.replace(",", ".")
    elif "." in s and re.fullmatch(r"\d{1,3}(?:\.\d{3})+", s):
        s = s.replace(".", "")
    try:
        return Decimal(s)
    except InvalidOperation:
        return None


class EntityExtractor:
    def __init__(self, locale_store: Optional[LocaleStore] = None):
        self.locales = locale_store or get_locale_store()
        self._fuzzy_choices = {lang: self._category_words(lang) for lang in self.locales.languages}
        self._known_words = {lang: self._vocabulary(lang) for lang in self.locales.languages}
        self.extractors = {
            "period": self._slot_period,
            "date_range": self._slot_date_range,
            "category": self._slot_category,
            "percentage": self._slot_percentage,
            "amount": self._slot_amount,
            "report_type": self._slot_report_type,
            "report_format": self._slot_report_format,
            "duration_days": self._slot_duration_days,
            "destination": self._slot_destination,
            "climate": self._slot_climate,
            "activity": self._slot_activity,
        }

    # ------------------------------------------------------------------
    # public API
    # ------------------------------------------------------------------
    def extract(self, names: Iterable[str], query: ParsedQuery, language: str,
                context: Optional[TripContext] = None, cache: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        slots: Dict[str, Any] = {}
        for name in names:
            value = self.extract_one(name, query, language, context, cache)
            if value is None:
                continue
            if name == "date_range" and value == INVALID_RANGE:
                slots["date_range_invalid"] = True
                continue
            slots[name] = value
        return slots

    def extract_one(self, name: str, query: ParsedQuery, language: str,
                    context: Optional[TripContext] = None, cache: Optional[Dict[str, Any]] = None):
        if cache is not None and name in cache:
            return cache[name]
        fn = self.extractors.get(name)
        if fn is None:
            raise KeyError(f"unknown slot extractor '{name}'")
        try:
            value = fn(query, language, context)
        except Exception as e:
            # a failing extractor leaves its slot empty
            logger.warning("slot '%s' extraction failed: %s", name, e)
            value = None
        if cache is not None:
            cache[name] = value
        return value

    def category_of(self, raw: Optional[str], language: str = "en") -> Optional[str]:
        """Canonical category id for a stored category name ('Food' -> 'groceries')."""
        if not raw or not raw.strip():
            return None
        return self.extract_one("category", parse_query(raw), language)

    def same_category(self, a: Optional[str], b: Optional[str]) -> bool:
        if not a or not b:
            return False
        ca, cb = self.category_of(a), self.category_of(b)
        if ca and cb:
            return ca == cb
        return a.strip().casefold() == b.strip().casefold()

    # ------------------------------------------------------------------
    # finance slots
    # ------------------------------------------------------------------
    def _slot_period(self, q: ParsedQuery, language: str, context) -> Optional[str]:
        units = self._units(q, language)
        if units:
            n, unit = units[0]
            return f"past_{n}_{unit}"
        for key in PERIOD_KEYS:
            if _contains_any(q.tokens, self.locales.synonyms(f"period.{key}", language)):
                return key
        return None

    def _slot_date_range(self, q: ParsedQuery, language: str, context):
        found = []
        for m in DATE_RE.finditer(q.text):
            d = self._parse_date(m.group(0), language)
            if d is not None:
                found.append(d)
        if len(found) < 2:
            return None
        start, end = found[0], found[1]
        if start > end:
            return INVALID_RANGE
        return (start, end)

    def _slot_category(self, q: ParsedQuery, language: str, context) -> Optional[str]:
        # the longest matching synonym wins, so "φαγητό έξω" is dining rather than food
        best, best_len = None, 0
        for cls in self.locales.synonym_classes("category."):
            n = longest_term(q.tokens, self.locales.synonyms(cls, language))
            if n > best_len:
                best, best_len = cls, n
        if best:
            return best.split(".", 1)[1]
        # typo tolerance on words the catalogs don't already know
        choices = self._fuzzy_choices.get(language) or self._fuzzy_choices["en"]
        known = self._known_words.get(language) or self._known_words["en"]
        for token in q.tokens:
            if len(token) < FUZZY_MIN_LEN or token in known:
                continue
            hit = process.extractOne(token, list(choices), scorer=fuzz.ratio, score_cutoff=FUZZY_CUTOFF)
            if hit:
                return choices[hit[0]]
        return None

    def _slot_percentage(self, q: ParsedQuery, language: str, context) -> Optional[Decimal]:
        m = PERCENT_RE.search(q.text)
        if not m:
            return None
        value = parse_amount(m.group(1))
        if value is None or value <= 0 or value > 100:
            return None
        return value

    def _slot_amount(self, q: ParsedQuery, language: str, context) -> Optional[Decimal]:
        m = AMOUNT_RE.search(q.text)
        if not m:
            return None
        value = parse_amount(m.group(1) or m.group(2))
        if value is None or value <= 0:
            return None
        return value

    def _slot_report_type(self, q: ParsedQuery, language: str, context) -> Optional[str]:
        for cls in self.locales.synonym_classes("reporttype."):
            if _contains_any(q.tokens, self.locales.synonyms(cls, language)):
                return cls.split(".", 1)[1]
        return None

    def _slot_report_format(self, q: ParsedQuery, language: str, context) -> Optional[str]:
        for fmt in ("pdf", "csv"):
            if _contains_any(q.tokens, self.locales.synonyms(f"format.{fmt}", language)):
                return fmt
        return None

    # ------------------------------------------------------------------
    # travel slots
    # ------------------------------------------------------------------
    def _slot_duration_days(self, q: ParsedQuery, language: str, context) -> Optional[int]:
        units = self._units(q, language)
        if units:
            n, unit = units[0]
            return n * UNIT_DAYS[unit]
        if context is not None:
            return context.duration_days
        return None

    def _slot_destination(self, q: ParsedQuery, language: str, context) -> Optional[str]:
        place = self._place_in_query(q)
        if place:
            return place.title()
        if context is not None and context.is_active:
            return context.destination.strip()
        return None

    def _slot_climate(self, q: ParsedQuery, language: str, context) -> Optional[str]:
        place = self._place_in_query(q)
        if place:
            return classify_climate(place)
        if context is not None and context.is_active:
            return classify_climate(
                context.destination,
                context.country,
                " ".join(context.city_names),
                context.name,
            )
        return None

    def _slot_activity(self, q: ParsedQuery, language: str, context) -> Optional[Tuple[str, ...]]:
        found = tuple(
            cls.split(".", 1)[1]
            for cls in self.locales.synonym_classes("activity.")
            if _contains_any(q.tokens, self.locales.synonyms(cls, language))
        )
        return found or None

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    def _units(self, q: ParsedQuery, language: str) -> List[Tuple[int, str]]:
        """All '<number> <unit word>' pairs, e.g. '3 months' -> (3, 'month')."""
        out = []
        for m in NUMBER_UNIT_RE.finditer(q.text):
            n = int(m.group(1))
            word = m.group(2)
            for unit in UNIT_DAYS:
                if n > 0 and word in self.locales.synonyms(f"unit.{unit}", language):
                    out.append((n, unit))
                    break
        return out

    def _place_in_query(self, q: ParsedQuery) -> Optional[str]:
        for _, keywords in CLIMATE_KEYWORDS:
            for k in keywords:
                if find_term(q.tokens, k) >= 0:
                    return k
        return None

    def _parse_date(self, raw: str, language: str) -> Optional[date]:
        if re.fullmatch(r"\d{4}-\d{2}-\d{2}", raw):
            try:
                return date.fromisoformat(raw)
            except ValueError:
                return None
        parsed = dateparser.parse(
            raw,
            languages=[language],
            settings={"DATE_ORDER": "DMY", "REQUIRE_PARTS": ["day", "month", "year"]},
        )
        return parsed.date() if parsed else None

    def _category_words(self, language: str) -> Dict[str, str]:
        words: Dict[str, str] = {}
        for cls in self.locales.synonym_classes("category."):
            for term in self.locales.synonyms(cls, language):
                body = term.rstrip("*")
                if " " not in body and len(body) >= FUZZY_MIN_LEN:
                    words.setdefault(body, cls.split(".", 1)[1])
        return words

    def _vocabulary(self, language: str) -> frozenset:
        words = set()
        for table in (self.locales.synonym_table.get(language, {}), self.locales.synonym_table["en"]):
            for terms in table.values():
                for term in terms:
                    words.update(term.rstrip("*").split())
        return frozenset(words)


_extractor: Optional[EntityExtractor] = None


def get_entity_extractor() -> EntityExtractor:
    global _extractor
    if _extractor is None:
        _extractor = EntityExtractor()
    return _extractor
