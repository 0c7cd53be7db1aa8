# Overview: Service-layer operations for par levels, product commercial metadata and the order summary.

"""
Par Levels & Order Summary

A par level is the target total stock of a product across all locations.
The order summary compares current stock with par:

    no_par     no par row for the product
    order      stock < par   -> order_qty = ceil(par - stock)
    overstock  stock > par
    ok         stock == par
"""

from __future__ import annotations

import logging
import math
from typing import Any, Iterable

from ..models import Product
from ..validation import (
    STOCK_COLUMNS,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    enforce_rules_par_level,
    require_int,
    validate_payload,
)
from .gateway import StoreGateway, get_gateway

logger = logging.getLogger(__name__)

STATUS_NO_PAR = "no_par"
STATUS_ORDER = "order"
STATUS_OVERSTOCK = "overstock"
STATUS_OK = "ok"

PRODUCT_META_POLICY = ModelValidationPolicy(writable_fields={"company", "distributor", "unit"})


def list_par_levels(*, gateway: StoreGateway | None = None) -> list[dict]:
    gateway = gateway or get_gateway()
    return gateway.query("par_levels", order=["product_id"])


def upsert_par_level(product_id: int, total_par: Any, *, gateway: StoreGateway | None = None) -> dict:
    """Create or replace the par level of one product."""
    product_id = require_int(product_id, "product_id")
    total_par = enforce_rules_par_level(total_par)

    gateway = gateway or get_gateway()
    if gateway.get("products", product_id) is None:
        raise NotFoundError(f"Product {product_id} not found")
    return gateway.upsert(
        "par_levels",
        {"product_id": product_id, "total_par": total_par},
        on_conflict="product_id",
    )


def upsert_par_levels_bulk(items: Iterable[Any], *, gateway: StoreGateway | None = None) -> list[dict]:
    """
    Upsert many par levels. The whole list is validated before the first write.
    """
    if items is None or isinstance(items, (str, bytes, dict)):
        raise ValidationError("items must be a list")

    rows = []
    seen = set()
    for item in items:
        if not isinstance(item, dict):
            raise ValidationError("Each par level must be an object")
        product_id = require_int(item.get("product_id"), "product_id")
        if product_id in seen:
            raise ValidationError(f"Duplicate product_id {product_id}")
        seen.add(product_id)
        rows.append({"product_id": product_id, "total_par": enforce_rules_par_level(item.get("total_par"))})

    gateway = gateway or get_gateway()
    saved = [gateway.upsert("par_levels", row, on_conflict="product_id") for row in rows]
    logger.info("Upserted %d par levels", len(saved))
    return saved


def update_product_meta(product_id: int, payload: dict, *, gateway: StoreGateway | None = None) -> dict:
    """Update company / distributor label / unit of a product."""
    product_id = require_int(product_id, "product_id")
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_META_POLICY)
    if not patch:
        raise ValidationError("Nothing to update")

    gateway = gateway or get_gateway()
    if gateway.get("products", product_id) is None:
        raise NotFoundError(f"Product {product_id} not found")
    # Blank strings clear the field
    return gateway.update("products", product_id, {k: (v or None) for k, v in patch.items()})


def order_status(total_stock: float, total_par: float | None) -> tuple[str, int]:
    """Returns (status, order_qty)."""
    if total_par is None:
        return STATUS_NO_PAR, 0
    if total_stock < total_par:
        return STATUS_ORDER, math.ceil(total_par - total_stock)
    if total_stock > total_par:
        return STATUS_OVERSTOCK, 0
    return STATUS_OK, 0


def _summary_sort_key(row: dict) -> tuple:
    name = row["distributor_name"]
    return (name is None, (name or "").lower(), (row["name"] or "").lower(), row["product_id"])


def build_order_summary(*, gateway: StoreGateway | None = None) -> list[dict]:
    """One row per product, ordered by distributor (missing last) then product name."""
    gateway = gateway or get_gateway()
    products = gateway.query("products")
    pars = {p["product_id"]: p["total_par"] for p in gateway.query("par_levels")}
    distributors = {d["id"]: d for d in gateway.query("distributors")}

    summary = []
    for product in products:
        total_stock = round(sum(product.get(c) or 0 for c in STOCK_COLUMNS), 2)
        total_par = pars.get(product["id"])
        status, order_qty = order_status(total_stock, total_par)
        distributor = distributors.get(product.get("distributor_id"))
        summary.append({
            "product_id": product["id"],
            "name": product["name"],
            "volume": product.get("volume"),
            "unit": product.get("unit"),
            "company": product.get("company"),
            "category_id": product.get("category_id"),
            "is_frozen": product.get("is_frozen"),
            "bar1": product.get("bar1") or 0,
            "bar2": product.get("bar2") or 0,
            "cold_room": product.get("cold_room") or 0,
            "total_stock": total_stock,
            "total_par": total_par,
            "order_qty": order_qty,
            "status": status,
            "distributor_id": distributor["id"] if distributor else None,
            "distributor_name": distributor["name"] if distributor else None,
            "distributor_whatsapp": distributor["whatsapp"] if distributor else None,
            "distributor_text": product.get("distributor"),
        })

    summary.sort(key=_summary_sort_key)
    return summary
