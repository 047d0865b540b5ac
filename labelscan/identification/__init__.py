"""
Product Identification Module

Maps recognized label text to catalog products and weights.
"""

from labelscan.identification.catalog import (
    DEFAULT_PRODUCTS,
    Product,
    ProductCatalog,
    load_catalog,
)
from labelscan.identification.matcher import (
    MatchMethod,
    MatchResult,
    ProductMatcher,
    match_product,
    similarity,
)
from labelscan.identification.weight import extract_kg

__all__ = [
    # Catalog
    "DEFAULT_PRODUCTS",
    "Product",
    "ProductCatalog",
    "load_catalog",
    # Matcher
    "MatchMethod",
    "MatchResult",
    "ProductMatcher",
    "match_product",
    "similarity",
    # Weight
    "extract_kg",
]
