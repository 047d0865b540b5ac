"""
Product Matcher

Maps raw OCR text to a catalog product in two tiers:
- Keyword: a normalized keyword is contained in the normalized text
- Fuzzy: best normalized edit-distance similarity above a cutoff
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Tuple

import Levenshtein
from loguru import logger

from labelscan.identification.catalog import Product
from labelscan.ocr.text_normalizer import normalize_text


class MatchMethod(str, Enum):
    """How a product was matched."""
    KEYWORD = "keyword"
    FUZZY = "fuzzy"
    NONE = "none"


@dataclass
class MatchResult:
    """Result of matching one recognition against the catalog."""
    product: Optional[Product]
    method: MatchMethod
    score: float = 0.0

    @property
    def matched(self) -> bool:
        return self.product is not None

    @property
    def product_id(self) -> str:
        return self.product.id if self.product else ""


def similarity(a: str, b: str) -> float:
    """1 - levenshtein(a, b) / max(len(a), len(b)); two empty strings are identical."""
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - Levenshtein.distance(a, b) / longest


class ProductMatcher:
    """
    Two-tier product matcher.

    Catalog order is a priority order for keyword hits. Fuzzy ties keep
    the first candidate seen.

    Usage:
        matcher = ProductMatcher(threshold=0.75)
        result = matcher.match("SIAN MAKSA 1,2 KG", catalog)
        print(result.product_id, result.method)
    """

    DEFAULT_THRESHOLD = 0.75

    def __init__(self, threshold: float = DEFAULT_THRESHOLD):
        """
        Args:
            threshold: Minimum similarity accepted by the fuzzy tier
        """
        self.threshold = threshold

    def match(self, raw_text: str, catalog: Iterable[Product]) -> MatchResult:
        """
        Match OCR text against the catalog.

        Args:
            raw_text: Text returned by the OCR engine
            catalog: Products in priority order

        Returns:
            MatchResult with the product, or None and method NONE
        """
        text = normalize_text(raw_text)
        candidates = self._normalized_keywords(catalog)

        # Exact tier
        for product, keywords in candidates:
            if any(keyword in text for keyword in keywords):
                logger.debug(f"Keyword match: {product.id}")
                return MatchResult(product=product, method=MatchMethod.KEYWORD, score=1.0)

        # Fuzzy tier
        tokens = text.split(" ")
        best_score = 0.0
        best_product: Optional[Product] = None

        for product, keywords in candidates:
            for keyword in keywords:
                for candidate in [text, *tokens]:
                    score = similarity(keyword, candidate)
                    if score > best_score:
                        best_score = score
                        best_product = product

        if best_product is not None and best_score >= self.threshold:
            logger.debug(f"Fuzzy match: {best_product.id} (score={best_score:.2f})")
            return MatchResult(product=best_product, method=MatchMethod.FUZZY, score=best_score)

        return MatchResult(product=None, method=MatchMethod.NONE, score=best_score)

    def _normalized_keywords(self, catalog: Iterable[Product]) -> List[Tuple[Product, List[str]]]:
        result = []
        for product in catalog:
            # An empty keyword would be contained in every text
            keywords = [k for k in (normalize_text(kw) for kw in product.keywords) if k]
            result.append((product, keywords))
        return result


def match_product(
    raw_text: str,
    catalog: Iterable[Product],
    threshold: float = ProductMatcher.DEFAULT_THRESHOLD,
) -> MatchResult:
    """Match with a one-off ProductMatcher."""
    return ProductMatcher(threshold=threshold).match(raw_text, catalog)
