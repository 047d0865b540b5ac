"""
Text Normalizer for LabelScan

Canonical form for comparing OCR output against catalog keywords:
- Whitespace trimming
- Upper-casing
- Diacritic stripping (OCR tends to drop umlauts and accents)
- Whitespace run collapsing
"""

import re
import unicodedata
from typing import Optional


_WHITESPACE_RE = re.compile(r"\s+")


class TextNormalizer:
    """
    Text normalization for label matching.

    The result is deterministic and total, and normalizing twice gives
    the same string as normalizing once.

    Usage:
        normalizer = TextNormalizer()
        normalizer.normalize("  etupääRusto\\n 2,1 kg ")  # "ETUPAARUSTO 2,1 KG"
    """

    def __init__(self, strip_diacritics: bool = True):
        """
        Initialize the text normalizer.

        Args:
            strip_diacritics: Drop combining marks after canonical decomposition
        """
        self.strip_diacritics = strip_diacritics

    def normalize(self, text: Optional[str]) -> str:
        """
        Normalize raw OCR or keyword text.

        Args:
            text: Raw text, None is treated as empty

        Returns:
            Normalized text
        """
        if not text:
            return ""

        text = text.strip().upper()

        if self.strip_diacritics:
            text = self._strip_diacritics(text)

        return self._collapse_whitespace(text)

    def _strip_diacritics(self, text: str) -> str:
        """Decompose characters and remove non-spacing marks."""
        # NFD rather than NFKD: compatibility forms may decompose to lower case
        decomposed = unicodedata.normalize("NFD", text)
        return "".join(c for c in decomposed if unicodedata.category(c) != "Mn")

    def _collapse_whitespace(self, text: str) -> str:
        # Dropped marks can expose whitespace at the edges, so strip again
        return _WHITESPACE_RE.sub(" ", text).strip()


_default_normalizer = TextNormalizer()


def normalize_text(text: Optional[str]) -> str:
    """Normalize text with the default normalizer."""
    return _default_normalizer.normalize(text)
