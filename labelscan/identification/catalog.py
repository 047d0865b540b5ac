"""
Product Catalog

Ordered, immutable list of products the matcher can recognize. Order
is priority: the first product whose keyword appears in the OCR text
wins.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Iterator, Optional, Union

import yaml
from loguru import logger


@dataclass(frozen=True)
class Product:
    """A catalog product and the label keywords that identify it."""
    id: str
    name: str
    keywords: tuple = field(default_factory=tuple)

    @classmethod
    def from_dict(cls, data: dict) -> "Product":
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            keywords=tuple(str(k) for k in data.get("keywords") or ()),
        )

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "keywords": list(self.keywords)}


class ProductCatalog:
    """
    Ordered product collection with id lookup.

    Usage:
        catalog = ProductCatalog.from_records([{"id": "A", "name": "Foo", "keywords": ["FOO"]}])
        catalog.get("A").name  # "Foo"
    """

    def __init__(self, products: Iterable[Product] = ()):
        self._products = tuple(products)
        self._by_id = {}
        for product in self._products:
            if product.id in self._by_id:
                logger.warning(f"Duplicate product id in catalog: {product.id}")
                continue
            self._by_id[product.id] = product

    @classmethod
    def from_records(cls, records: Iterable[dict]) -> "ProductCatalog":
        return cls(Product.from_dict(r) for r in records)

    def get(self, product_id: str) -> Optional[Product]:
        return self._by_id.get(product_id)

    def __contains__(self, product_id: object) -> bool:
        return product_id in self._by_id

    def __iter__(self) -> Iterator[Product]:
        return iter(self._products)

    def __len__(self) -> int:
        return len(self._products)

    def __repr__(self) -> str:
        return f"ProductCatalog({len(self._products)} products)"


DEFAULT_PRODUCTS = [
    {"id": "10550", "name": "SIANPÄÄ", "keywords": ["SIANPÄÄ"]},
    {"id": "10567", "name": "SIAN MAKSA", "keywords": ["MAKSA"]},
    {"id": "10568", "name": "PORSAAN SYDÄN", "keywords": ["SYDÄN"]},
    {"id": "10569", "name": "SIAN KIELI", "keywords": ["KIELI"]},
    {"id": "10570", "name": "SORKKA", "keywords": ["SORKKA"]},
    {"id": "10572", "name": "S-KYLKI LUUTON", "keywords": ["LUUTON"]},
    {"id": "10574", "name": "SIAN ETUPOTKA", "keywords": ["ETUPOTKA"]},
    {"id": "10584", "name": "LUUT II (Jalkalui LUUT)", "keywords": ["Jalkalui"]},
    {"id": "10585", "name": "Possaan kylkirusto", "keywords": ["kylkirusto"]},
    {"id": "10794", "name": "Etupään Rusto", "keywords": ["Etupää"]},
    {"id": "10795", "name": "Porsaan Kolmioluu", "keywords": ["Kolmioluu"]},
    {"id": "10797", "name": "S-Rankaluu", "keywords": ["Rankaluu"]},
    {"id": "10793", "name": "Ulkofile", "keywords": ["Ulkofile"]},
    {"id": "10796", "name": "Porsaan kyljysrivi", "keywords": ["kyljysrivi"]},
    {"id": "10792", "name": "Sian munuainen", "keywords": ["munuainen"]},
    {"id": "10798", "name": "Silava", "keywords": ["Silava"]},
]


def load_catalog(path: Optional[Union[str, Path]] = None) -> ProductCatalog:
    """
    Load a catalog from a YAML or JSON file.

    The file holds either a list of products or a mapping with a
    "products" list. Without a path the built-in catalog is returned.
    """
    if path is None:
        return ProductCatalog.from_records(DEFAULT_PRODUCTS)

    path = Path(path)
    with path.open("r", encoding="utf-8") as f:
        if path.suffix.lower() == ".json":
            data = json.load(f)
        else:
            data = yaml.safe_load(f) or []

    if isinstance(data, dict):
        data = data.get("products", [])
    if not isinstance(data, list):
        raise ValueError(f"Catalog file must contain a list of products: {path}")

    catalog = ProductCatalog.from_records(data)
    logger.info(f"Loaded {len(catalog)} products from {path}")
    return catalog
