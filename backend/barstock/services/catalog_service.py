# Overview: Service-layer operations for loading the catalog and creating categories/products.

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field

from ..validation import ConflictError, NotFoundError, ValidationError, require_int
from .cache_service import CatalogCache, get_cache
from .gateway import GatewayError, StoreGateway, get_gateway

logger = logging.getLogger(__name__)

FALLBACK_ORDER_INDEX = 99999
UNCATEGORIZED = "Uncategorized"


class CatalogUnavailableError(Exception):
    """The store is unreachable and no cached snapshot exists."""


@dataclass
class CatalogSnapshot:
    categories: list[dict] = field(default_factory=list)
    products: list[dict] = field(default_factory=list)
    stale: bool = False
    saved_at: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)


def enrich_products(products: list[dict], categories: list[dict]) -> list[dict]:
    """Copy each product with category_name and category_order_index attached."""
    by_id = {c["id"]: c for c in categories}
    enriched = []
    for product in products:
        category = by_id.get(product.get("category_id"))
        order_index = category.get("order_index") if category else None
        enriched.append({
            **product,
            "category_name": category["name"] if category else UNCATEGORIZED,
            "category_order_index": order_index if order_index is not None else FALLBACK_ORDER_INDEX,
        })
    return enriched


def visible_products(products: list[dict], columns: tuple[str, ...]) -> list[dict]:
    """
    Products a station user may count.

    Users holding both bar columns (managers) see everything. A single-bar
    user sees only active products visible to their bar.
    """
    if "bar1" in columns and "bar2" in columns:
        return list(products)
    if "bar1" in columns:
        flag = "visible_to_bar1"
    elif "bar2" in columns:
        flag = "visible_to_bar2"
    else:
        return []
    return [p for p in products if not p.get("is_frozen") and p.get(flag)]


def load_catalog(
    *,
    gateway: StoreGateway | None = None,
    cache: CatalogCache | None = None,
) -> CatalogSnapshot:
    """
    Categories and enriched products, ordered for display.

    Falls back to the local mirror (stale=True) when the store fails.

    Raises:
        CatalogUnavailableError: If the store fails and the mirror is empty
    """
    gateway = gateway or get_gateway()
    cache = cache or get_cache()

    try:
        categories = gateway.query("categories", order=["order_index"])
        products = gateway.query("products", order=["order_index"])
    except GatewayError as exc:
        cached = cache.load()
        if cached and cached.get("products"):
            logger.warning("Catalog load failed (%s); serving cache from %s", exc, cached.get("saved_at"))
            return CatalogSnapshot(
                categories=cached.get("categories") or [],
                products=cached["products"],
                stale=True,
                saved_at=cached.get("saved_at"),
            )
        logger.error("Catalog load failed and no cache is available: %s", exc)
        raise CatalogUnavailableError(f"Catalog unavailable: {exc}") from exc

    enriched = enrich_products(products, categories)
    try:
        saved = cache.save(categories, enriched)
    except OSError as exc:
        logger.warning("Could not write catalog cache %s: %s", cache.path, exc)
        saved_at = None
    else:
        saved_at = saved["saved_at"]

    return CatalogSnapshot(categories=categories, products=enriched, stale=False, saved_at=saved_at)


def create_category(name: str, order_index: int | None = None, *, gateway: StoreGateway | None = None) -> dict:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Category name is required")
    name = name.strip()
    if order_index is not None:
        order_index = require_int(order_index, "order_index")

    gateway = gateway or get_gateway()
    existing = gateway.query("categories", columns=["id", "name", "order_index"])
    if any(c["name"].lower() == name.lower() for c in existing):
        raise ConflictError(f'Category "{name}" already exists')

    if order_index is None:
        # Append after the last category
        indexes = [c["order_index"] for c in existing if c["order_index"] is not None]
        order_index = max(indexes) + 1 if indexes else 1

    category = gateway.insert("categories", {"name": name, "order_index": order_index})
    logger.info("Created category %s (%s)", category["id"], name)
    return category


def create_product(
    category_id: int,
    name: str,
    volume: str | None = None,
    *,
    gateway: StoreGateway | None = None,
) -> dict:
    """New products start active, visible on both stations, with zero stock."""
    category_id = require_int(category_id, "category_id")
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Product name is required")
    if volume is not None and not isinstance(volume, str):
        raise ValidationError("volume must be a string")

    gateway = gateway or get_gateway()
    if gateway.get("categories", category_id) is None:
        raise NotFoundError(f"Category {category_id} not found")

    siblings = gateway.query("products", filters={"category_id": category_id}, columns=["order_index"])
    indexes = [p["order_index"] for p in siblings if p["order_index"] is not None]

    product = gateway.insert(
        "products",
        {
            "category_id": category_id,
            "name": name.strip(),
            "volume": volume.strip() if volume else None,
            "bar1": 0,
            "bar2": 0,
            "cold_room": 0,
            "order_index": max(indexes) + 1 if indexes else 1,
            "is_frozen": False,
            "visible_to_bar1": True,
            "visible_to_bar2": True,
        },
    )
    logger.info("Created product %s (%s) in category %s", product["id"], product["name"], category_id)
    return product
