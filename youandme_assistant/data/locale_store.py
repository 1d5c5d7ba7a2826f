"""Locale helpers: load the per-language string/synonym catalogs and format values.

Catalogs live in ``raw/locales/<language>.json``. English must be complete;
other languages may be partial and fall back to English per key. Everything is
loaded once and only read afterwards.
"""
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional, Tuple
import json
import os

from ..app.config import Config
from ..app.errors import MissingResourceError
from ..app.preprocess import get_preprocessor
from ..utils.logger import get_logger

LOCALES_DIR = os.path.join(os.path.dirname(__file__), "raw", "locales")
FALLBACK_LANGUAGE = "en"

logger = get_logger("locale")


class LocaleStore:
    def __init__(self, locales_dir: Optional[str] = None, currency_symbol: Optional[str] = None):
        self.locales_dir = locales_dir or LOCALES_DIR
        self.currency_symbol = currency_symbol or Config.CURRENCY_SYMBOL
        self.strings: Dict[str, Dict[str, str]] = {}
        self.formats: Dict[str, Dict[str, str]] = {}
        self.synonym_table: Dict[str, Dict[str, Tuple[str, ...]]] = {}
        self._load()

    def _load(self):
        pre = get_preprocessor()
        for fname in sorted(os.listdir(self.locales_dir)):
            if not fname.endswith(".json"):
                continue
            lang = fname[:-5].lower()
            with open(os.path.join(self.locales_dir, fname), encoding="utf-8") as f:
                data = json.load(f)
            self.strings[lang] = dict(data.get("strings", {}))
            self.formats[lang] = dict(data.get("format", {}))
            self.synonym_table[lang] = {
                cls: tuple(pre.normalize_terms(terms))
                for cls, terms in data.get("synonyms", {}).items()
            }
        if FALLBACK_LANGUAGE not in self.strings:
            raise MissingResourceError("locale catalog", FALLBACK_LANGUAGE)
        logger.info("Loaded locale catalogs: %s", ", ".join(sorted(self.strings)))

    # ------------------------------------------------------------------
    # languages
    # ------------------------------------------------------------------
    @property
    def languages(self) -> List[str]:
        return sorted(self.strings)

    def normalize_language(self, language: Optional[str]) -> str:
        """Map a caller-supplied code to a supported one ('en-GB' -> 'en', 'de' -> 'en')."""
        if not language:
            return FALLBACK_LANGUAGE
        base = language.strip().lower().replace("_", "-").split("-")[0]
        if base in self.strings and base in Config.SUPPORTED_LANGUAGES:
            return base
        return FALLBACK_LANGUAGE

    # ------------------------------------------------------------------
    # strings
    # ------------------------------------------------------------------
    def has(self, key: str, language: str) -> bool:
        return key in self.strings.get(language, {})

    def resolve(self, key: str, language: str) -> str:
        value = self.strings.get(language, {}).get(key)
        if value is None:
            value = self.strings[FALLBACK_LANGUAGE].get(key)
        if value is None:
            logger.error("Locale key '%s' missing for '%s' and English", key, language)
            raise MissingResourceError(key, language)
        return value

    def template(self, key: str, language: str, **values: Any) -> str:
        return self.resolve(key, language).format(**values)

    # ------------------------------------------------------------------
    # synonyms
    # ------------------------------------------------------------------
    def synonyms(self, cls: str, language: str) -> Tuple[str, ...]:
        """Terms of a synonym class for ``language`` followed by the English terms."""
        own = self.synonym_table.get(language, {}).get(cls, ())
        if language == FALLBACK_LANGUAGE:
            return own
        fallback = self.synonym_table[FALLBACK_LANGUAGE].get(cls, ())
        return own + tuple(t for t in fallback if t not in own)

    def synonym_classes(self, prefix: str) -> List[str]:
        """Class names under ``prefix`` in English catalog order ('category.' -> all categories)."""
        return [c for c in self.synonym_table[FALLBACK_LANGUAGE] if c.startswith(prefix)]

    # ------------------------------------------------------------------
    # number / date formatting
    # ------------------------------------------------------------------
    def _fmt(self, key: str, language: str) -> str:
        value = self.formats.get(language, {}).get(key)
        if value is None:
            value = self.formats[FALLBACK_LANGUAGE].get(key)
        if value is None:
            raise MissingResourceError(f"format.{key}", language)
        return value

    def format_number(self, value, language: str, places: int = 2) -> str:
        q = Decimal(value).quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)
        sign = "-" if q < 0 else ""
        integer, _, frac = f"{abs(q):,.{places}f}".partition(".")
        out = integer.replace(",", self._fmt("group", language))
        if places:
            out += self._fmt("decimal", language) + frac
        return sign + out

    def format_currency(self, value, language: str, places: int = 2) -> str:
        amount = self.format_number(abs(Decimal(value)), language, places)
        sign = "-" if Decimal(value).quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP) < 0 else ""
        return sign + self._fmt("currency", language).format(symbol=self.currency_symbol, amount=amount)

    def format_percent(self, value, language: str, places: int = 1) -> str:
        return self._fmt("percent", language).format(value=self.format_number(value, language, places))

    def format_date(self, value, language: str) -> str:
        return value.strftime(self._fmt("date", language))

    def format_datetime(self, value, language: str) -> str:
        return value.strftime(self._fmt("datetime", language))

    def month_name(self, month: int, language: str) -> str:
        return self.resolve(f"month.{month}", language)


# Provide a module-level singleton for convenience
_store: Optional[LocaleStore] = None


def get_locale_store() -> LocaleStore:
    global _store
    if _store is None:
        _store = LocaleStore()
    return _store
