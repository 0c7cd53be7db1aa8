# Overview: Service-layer operations for distributors and product-distributor links.

from __future__ import annotations

import logging
import re

from ..validation import NotFoundError, ValidationError, require_int
from .gateway import StoreGateway, get_gateway

logger = logging.getLogger(__name__)

_PHONE_NOISE = re.compile(r"[\s+\-()]")


def normalize_phone(raw: str | None) -> str | None:
    """Strip spaces, "+", "-" and parentheses. Blank input becomes None."""
    if raw is None:
        return None
    if not isinstance(raw, str):
        raise ValidationError("whatsapp must be a string")
    cleaned = _PHONE_NOISE.sub("", raw)
    return cleaned or None


def list_distributors(*, gateway: StoreGateway | None = None) -> list[dict]:
    gateway = gateway or get_gateway()
    return gateway.query("distributors", order=["name"])


def save_distributor(
    name: str,
    whatsapp: str | None = None,
    distributor_id: int | None = None,
    *,
    gateway: StoreGateway | None = None,
) -> dict:
    """Insert when distributor_id is None, otherwise update that row."""
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Distributor name is required")
    fields = {"name": name.strip(), "whatsapp": normalize_phone(whatsapp)}

    gateway = gateway or get_gateway()
    if distributor_id is None:
        distributor = gateway.insert("distributors", fields)
        logger.info("Created distributor %s (%s)", distributor["id"], distributor["name"])
        return distributor

    distributor_id = require_int(distributor_id, "distributor_id")
    if gateway.get("distributors", distributor_id) is None:
        raise NotFoundError(f"Distributor {distributor_id} not found")
    return gateway.update("distributors", distributor_id, fields)


def delete_distributor(distributor_id: int, *, gateway: StoreGateway | None = None) -> int:
    """
    Delete a distributor and detach it from its products.

    Returns the number of products that lost the reference.
    """
    distributor_id = require_int(distributor_id, "distributor_id")
    gateway = gateway or get_gateway()
    if gateway.get("distributors", distributor_id) is None:
        raise NotFoundError(f"Distributor {distributor_id} not found")

    linked = gateway.query("products", filters={"distributor_id": distributor_id}, columns=["id"])
    detached = 0
    if linked:
        detached = gateway.update_where("products", [p["id"] for p in linked], {"distributor_id": None})
    gateway.delete("distributors", distributor_id)
    logger.info("Deleted distributor %s; detached %d products", distributor_id, detached)
    return detached


def link_product_to_distributor(
    product_id: int,
    distributor_id: int | None,
    *,
    gateway: StoreGateway | None = None,
) -> dict:
    """Point a product at a distributor; None unlinks it."""
    product_id = require_int(product_id, "product_id")
    gateway = gateway or get_gateway()
    if distributor_id is not None:
        distributor_id = require_int(distributor_id, "distributor_id")
        if gateway.get("distributors", distributor_id) is None:
            raise NotFoundError(f"Distributor {distributor_id} not found")
    if gateway.get("products", product_id) is None:
        raise NotFoundError(f"Product {product_id} not found")
    return gateway.update("products", product_id, {"distributor_id": distributor_id})
