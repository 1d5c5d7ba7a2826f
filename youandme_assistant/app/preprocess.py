#!/usr/bin/env python3
"""
Preprocessing module for the assistant.

This module handles text normalization and token splitting shared by the
intent matcher, the slot extractors and the locale synonym tables.
"""

import re
import unicodedata
from typing import Iterable, List, Optional

_TOKEN_RE = re.compile(r"\w+(?:'\w+)*")
# keeps digits, letters, the currency sign and separators used by amounts and dates
_STRIP_RE = re.compile(r"[^\w\s'€%/.,:-]")


class Preprocessor:
    """Preprocessor for chatbot queries."""

    def normalize_text(self, text: Optional[str]) -> str:
        """
        Normalize user input text.

        Args:
            text: Input text to normalize

        Returns:
            Case-folded text without accents or stray punctuation, single spaced
        """
        if not text:
            return ""

        text = unicodedata.normalize("NFKC", text)
        # typographic apostrophes become plain ones so "what’s" == "what's"
        text = text.replace("’", "'").replace("‘", "'")
        text = self.strip_accents(text.casefold())

        text = _STRIP_RE.sub(" ", text)
        # sentence punctuation is noise once tokens are split; keep it inside numbers/dates
        text = re.sub(r"(?<!\d)[.,:](?!\d)", " ", text)
        text = re.sub(r"\s+", " ", text).strip()
        return text

    def strip_accents(self, text: str) -> str:
        decomposed = unicodedata.normalize("NFD", text)
        stripped = "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")
        # Greek final sigma folds to sigma under casefold already
        return unicodedata.normalize("NFC", stripped)

    def tokenize(self, text: str) -> List[str]:
        """Split normalized text into word tokens (apostrophes stay inside words)."""
        return _TOKEN_RE.findall(text)

    def normalize_term(self, term: str) -> str:
        """Normalize a synonym term, keeping a trailing '*' prefix marker."""
        prefix = term.endswith("*")
        body = self.normalize_text(term[:-1] if prefix else term)
        return body + "*" if prefix else body

    def normalize_terms(self, terms: Iterable[str]) -> List[str]:
        seen = []
        for term in terms:
            n = self.normalize_term(term)
            if n and n != "*" and n not in seen:
                seen.append(n)
        return seen


_preprocessor: Optional[Preprocessor] = None


def get_preprocessor() -> Preprocessor:
    global _preprocessor
    if _preprocessor is None:
        _preprocessor = Preprocessor()
    return _preprocessor
