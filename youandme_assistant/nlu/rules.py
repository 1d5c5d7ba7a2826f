"""Priority-ordered intent rules for the finance and travel assistants.

A rule matches when ANY of its patterns matches; a pattern matches when ALL of
its terms are present in the normalized query. Terms are:

  "@name"      a synonym class from the locale catalogs (query language + English)
  "@prefix.*"  any synonym class under ``prefix.`` (e.g. every category)
  "=slot"      the named slot extractor finds a value in the query
  other        a literal phrase

Rule order is the contract: the first matching rule wins.
"""
from dataclasses import dataclass
from functools import lru_cache
from typing import NamedTuple, Sequence, Tuple

from ..app.preprocess import get_preprocessor


@dataclass(frozen=True)
class Rule:
    intent_id: str
    patterns: Tuple[Tuple[str, ...], ...]
    slots: Tuple[str, ...] = ()


_PERIOD = ("period", "date_range")

FINANCE_RULES: Tuple[Rule, ...] = (
    Rule("export-report", (("@export",),), _PERIOD + ("report_type", "report_format", "category")),
    Rule("show-transactions", (("@show", "@transaction"),), _PERIOD + ("category",)),
    Rule("health-score", (("@health_score",),), ()),
    Rule("debt-free", (("@debt_free",),), ()),
    Rule("next-payment", (("@next_payment",),), ()),
    Rule("loan-payoff", (("@payoff",), ("extra", "@loan")), ("amount",)),
    Rule("what-if", (("@what_if",),), ("percentage", "amount", "category")),
    Rule("compare-partners", (("@partner_compare",), ("@compare", "@partner")), _PERIOD),
    Rule("compare-months", (("@compare",),), _PERIOD + ("category",)),
    Rule("spending-forecast", (("@forecast",),), ()),
    Rule("budget-status", (("@budget",),), _PERIOD + ("category",)),
    Rule("loan-status", (("@loan",),), ()),
    Rule("savings-goals", (("@goal",),), ()),
    Rule("shared-expenses", (("@shared",),), _PERIOD),
    Rule("top-expenses", (("@top", "@spend"), ("@top", "@transaction")), _PERIOD + ("category",)),
    Rule("daily-average", (("@daily_average",),), _PERIOD + ("category",)),
    Rule("category-spending", (
        ("@spend", "=category"),
        ("@how_much", "=category"),
        ("@spend", "@category_generic"),
    ), _PERIOD + ("category",)),
    Rule("subscriptions", (("@recurring",),), ()),
    Rule("income-sources", (("@income_sources",),), _PERIOD),
    Rule("income-summary", (("@income",),), _PERIOD),
    Rule("saving-tips", (("@save_tips",),), _PERIOD + ("percentage",)),
    Rule("balance", (("@balance",),), _PERIOD),
    Rule("spending-summary", (("@spend",), ("@how_much",)), _PERIOD),
    Rule("help", (("@help",),), ()),
)

# an unmatched query carrying one of these is read as a follow-up
FINANCE_FOLLOWUP_SLOTS = ("period", "date_range", "category")


_TRIP = ("destination", "climate", "duration_days")

TRAVEL_RULES: Tuple[Rule, ...] = (
    Rule("packing-list", (("@packing",),), _TRIP + ("activity",)),
    Rule("best-time", (("@best_time",),), _TRIP),
    Rule("weather", (("@weather",),), _TRIP),
    Rule("customs", (("@customs",),), ("destination",)),
    Rule("trip-budget", (("@trip_budget",),), _TRIP + ("amount",)),
    Rule("documents", (("@documents",),), ("destination",)),
    Rule("itinerary", (("@itinerary",),), _TRIP),
    Rule("help", (("@help",),), ()),
)

TRAVEL_FOLLOWUP_SLOTS = ("duration_days", "activity", "amount")

FINANCE_INTENTS = tuple(r.intent_id for r in FINANCE_RULES)
TRAVEL_INTENTS = tuple(r.intent_id for r in TRAVEL_RULES)


# ---------------------------------------------------------------------------
# token matching
# ---------------------------------------------------------------------------

class ParsedQuery(NamedTuple):
    text: str
    tokens: Tuple[str, ...]


def parse_query(text: str) -> ParsedQuery:
    pre = get_preprocessor()
    normalized = pre.normalize_text(text)
    return ParsedQuery(normalized, tuple(pre.tokenize(normalized)))


@lru_cache(maxsize=4096)
def _term_tokens(term: str) -> Tuple[Tuple[str, ...], bool]:
    prefix = term.endswith("*")
    body = term[:-1] if prefix else term
    return tuple(get_preprocessor().tokenize(body)), prefix


def find_term(tokens: Sequence[str], term: str) -> int:
    """Token index where ``term`` starts in ``tokens``, or -1.

    Terms are normalized phrases; a trailing '*' lets the last word match as a prefix.
    """
    words, prefix = _term_tokens(term)
    n = len(words)
    if not n:
        return -1
    for i in range(len(tokens) - n + 1):
        if tuple(tokens[i:i + n - 1]) != words[:-1]:
            continue
        last = tokens[i + n - 1]
        if last == words[-1] or (prefix and last.startswith(words[-1])):
            return i
    return -1


def _contains_any(tokens: Sequence[str], terms: Sequence[str]) -> bool:
    return any(find_term(tokens, t) >= 0 for t in terms)


def longest_term(tokens: Sequence[str], terms: Sequence[str]) -> int:
    """Word count of the longest term present in ``tokens`` (0 when none is)."""
    return max((len(_term_tokens(t)[0]) for t in terms if find_term(tokens, t) >= 0), default=0)
