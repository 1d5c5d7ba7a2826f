"""Ordered rule-table intent matcher.

One matcher implementation serves both assistants; the variant is just the
rule table it is built with. Matching is pure: the same text, language and
context always give the same intent and slots.
"""
from typing import Any, Dict, Optional, Sequence

from ..app.preprocess import get_preprocessor
from ..data.locale_store import LocaleStore, get_locale_store
from ..schemas.io_models import UNKNOWN_INTENT, Confidence, Intent, TripContext
from .entity_extractor import EntityExtractor, get_entity_extractor
from .rules import (
    FINANCE_FOLLOWUP_SLOTS,
    FINANCE_RULES,
    TRAVEL_FOLLOWUP_SLOTS,
    TRAVEL_RULES,
    ParsedQuery,
    Rule,
    _contains_any,
    find_term,
    parse_query,
)


class IntentMatcher:
    def __init__(self, rules: Sequence[Rule], followup_slots: Sequence[str] = (),
                 locale_store: Optional[LocaleStore] = None,
                 extractor: Optional[EntityExtractor] = None):
        self.rules = tuple(rules)
        self.followup_slot_names = tuple(followup_slots)
        self.locales = locale_store or get_locale_store()
        self.extractor = extractor or (
            EntityExtractor(self.locales) if locale_store is not None else get_entity_extractor()
        )

    @property
    def intent_ids(self):
        return tuple(r.intent_id for r in self.rules)

    def match(self, text: str, language: str = "en", context: Optional[TripContext] = None) -> Intent:
        """First rule whose pattern set matches wins; no match gives the ``unknown`` sentinel."""
        language = self.locales.normalize_language(language)
        q = parse_query(text)
        cache: Dict[str, Any] = {}
        for rule in self.rules:
            if any(self._pattern_matches(p, q, language, context, cache) for p in rule.patterns):
                slots = self.extractor.extract(rule.slots, q, language, context, cache)
                return Intent(id=rule.intent_id, confidence=Confidence.EXACT, slots=slots)
        return UNKNOWN_INTENT

    def followup_slots(self, text: str, language: str = "en") -> Dict[str, Any]:
        """Slots that let an unmatched query refine an earlier question ('and last month?').

        Only the query itself counts; trip context would make every query look like a follow-up.
        """
        language = self.locales.normalize_language(language)
        return self.extractor.extract(self.followup_slot_names, parse_query(text), language)

    def starts_as_followup(self, text: str, language: str = "en") -> bool:
        language = self.locales.normalize_language(language)
        tokens = parse_query(text).tokens
        return any(find_term(tokens[:3], t) == 0 for t in self.locales.synonyms("followup", language))

    def _pattern_matches(self, pattern, q: ParsedQuery, language: str, context, cache) -> bool:
        return all(self._term_present(term, q, language, context, cache) for term in pattern)

    def _term_present(self, term: str, q: ParsedQuery, language: str, context, cache) -> bool:
        if term.startswith("@"):
            name = term[1:]
            if name.endswith(".*"):
                classes = self.locales.synonym_classes(name[:-1])
            else:
                classes = [name]
            return any(_contains_any(q.tokens, self.locales.synonyms(c, language)) for c in classes)
        if term.startswith("="):
            return self.extractor.extract_one(term[1:], q, language, context, cache) is not None
        return find_term(q.tokens, get_preprocessor().normalize_term(term)) >= 0


def finance_matcher(locale_store: Optional[LocaleStore] = None) -> IntentMatcher:
    return IntentMatcher(FINANCE_RULES, FINANCE_FOLLOWUP_SLOTS, locale_store)


def travel_matcher(locale_store: Optional[LocaleStore] = None) -> IntentMatcher:
    return IntentMatcher(TRAVEL_RULES, TRAVEL_FOLLOWUP_SLOTS, locale_store)
