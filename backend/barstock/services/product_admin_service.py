# Overview: Service-layer operations for manager actions on single products.

"""
Product Admin Operations

State machine per product: active <-> frozen; delete is terminal from either.

- freeze:   active -> frozen. Already frozen is a reported no-op (no write).
- unfreeze: frozen -> active. Not frozen is a reported no-op (no write).
- delete:   the pre-delete snapshot is logged BEFORE the delete is issued so
            the audit trail survives the row. Irreversible.
- reorder:  one order_index write per product, independent of each other;
            partial failure is reported and never rolled back.

Every primary write comes first; the action log is written afterwards and its
failure is surfaced as AdminResult.log_error.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass, field
from typing import Any, Sequence

from flask import current_app, has_app_context

from ..time_utils import utcnow
from ..validation import NotFoundError, ValidationError, require_int
from . import action_log_service
from .action_log_service import ACTION_DELETE, ACTION_FREEZE, ACTION_REORDER, ACTION_UNFREEZE
from .gateway import GatewayError, StoreGateway, get_gateway

logger = logging.getLogger(__name__)


class ProductNotFoundError(NotFoundError):
    """Raised when the addressed product does not exist."""


@dataclass(frozen=True)
class FreezeOptions:
    hide_from_bar1: bool = True
    hide_from_bar2: bool = True


@dataclass
class AdminResult:
    success: bool
    message: str | None = None
    product: dict | None = None
    already_frozen: bool = False
    not_frozen: bool = False
    total: int = 0
    updated: int = 0
    failed: int = 0
    errors: list[dict] = field(default_factory=list)
    log_error: str | None = None
    error: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)


def _load_product(gateway: StoreGateway, product_id: int) -> dict:
    product = gateway.get("products", product_id)
    if product is None:
        raise ProductNotFoundError(f"Product {product_id} not found")
    return product


def _stock_snapshot(product: dict) -> dict:
    return {
        "bar1": product.get("bar1"),
        "bar2": product.get("bar2"),
        "cold_room": product.get("cold_room"),
    }


def freeze_product(
    product_id: int,
    actor_id: str,
    options: FreezeOptions | None = None,
    *,
    gateway: StoreGateway | None = None,
) -> AdminResult:
    """
    Freeze a product: hide it from the bar stations and lock its counts.

    Raises:
        ProductNotFoundError: If the product does not exist
        GatewayError: If the read or the freeze write fails
    """
    if not actor_id:
        raise ValidationError("actor is required")
    options = options or FreezeOptions()
    gateway = gateway or get_gateway()

    product = _load_product(gateway, product_id)
    if product["is_frozen"]:
        logger.warning("Product %s is already frozen", product_id)
        return AdminResult(success=False, message="Product is already frozen", product=product, already_frozen=True)

    updated = gateway.update(
        "products",
        product_id,
        {
            "is_frozen": True,
            "frozen_at": utcnow(),
            "frozen_by": actor_id,
            "visible_to_bar1": not options.hide_from_bar1,
            "visible_to_bar2": not options.hide_from_bar2,
        },
    )
    logger.info("Product %s frozen by %s", product_id, actor_id)

    logged = action_log_service.log_action(
        product_id,
        ACTION_FREEZE,
        actor_id,
        {
            "product_name": product["name"],
            "category_id": product.get("category_id"),
            "hide_from_bar1": options.hide_from_bar1,
            "hide_from_bar2": options.hide_from_bar2,
            "previous_state": _stock_snapshot(product),
        },
        gateway=gateway,
    )
    return AdminResult(
        success=True,
        message=f'Product "{product["name"]}" frozen',
        product=updated,
        log_error=logged.error,
    )


def unfreeze_product(product_id: int, actor_id: str, *, gateway: StoreGateway | None = None) -> AdminResult:
    """
    Unfreeze a product and make it visible on both stations again.

    Raises:
        ProductNotFoundError: If the product does not exist
        GatewayError: If the read or the unfreeze write fails
    """
    if not actor_id:
        raise ValidationError("actor is required")
    gateway = gateway or get_gateway()

    product = _load_product(gateway, product_id)
    if not product["is_frozen"]:
        logger.warning("Product %s is not frozen", product_id)
        return AdminResult(success=False, message="Product is not frozen", product=product, not_frozen=True)

    updated = gateway.update(
        "products",
        product_id,
        {
            "is_frozen": False,
            "frozen_at": None,
            "frozen_by": None,
            "visible_to_bar1": True,
            "visible_to_bar2": True,
        },
    )
    logger.info("Product %s unfrozen by %s", product_id, actor_id)

    logged = action_log_service.log_action(
        product_id,
        ACTION_UNFREEZE,
        actor_id,
        {
            "product_name": product["name"],
            "category_id": product.get("category_id"),
            "frozen_at": product.get("frozen_at"),
            "frozen_by": product.get("frozen_by"),
        },
        gateway=gateway,
    )
    return AdminResult(
        success=True,
        message=f'Product "{product["name"]}" unfrozen',
        product=updated,
        log_error=logged.error,
    )


def delete_product(product_id: int, actor_id: str, *, gateway: StoreGateway | None = None) -> AdminResult:
    """
    Hard-delete a product after logging its final state.

    If the delete call fails the log record stays behind as an attempted
    delete and the product remains in the store.

    Raises:
        ProductNotFoundError: If the product does not exist
    """
    if not actor_id:
        raise ValidationError("actor is required")
    gateway = gateway or get_gateway()

    product = _load_product(gateway, product_id)

    logged = action_log_service.log_action(
        product_id,
        ACTION_DELETE,
        actor_id,
        {
            "product_name": product["name"],
            "volume": product.get("volume"),
            "category_id": product.get("category_id"),
            "final_state": _stock_snapshot(product),
            "snapshot": product,
        },
        gateway=gateway,
    )

    try:
        gateway.delete("products", product_id)
    except GatewayError as exc:
        logger.error("Delete of product %s failed after logging: %s", product_id, exc)
        return AdminResult(
            success=False,
            message=f'Product "{product["name"]}" could not be deleted',
            product=product,
            log_error=logged.error,
            error=str(exc),
        )

    logger.info("Product %s deleted by %s", product_id, actor_id)
    return AdminResult(
        success=True,
        message=f'Product "{product["name"]}" deleted',
        product=product,
        log_error=logged.error,
    )


def _validate_order_entries(products: Sequence[Any]) -> list[dict]:
    updates = []
    for entry in products:
        if not isinstance(entry, dict):
            raise ValidationError("Each reorder entry must be an object")
        updates.append({
            "id": require_int(entry.get("id"), "id"),
            "order_index": require_int(entry.get("order_index"), "order_index"),
        })
    return updates


def update_products_order(
    products: Sequence[Any],
    actor_id: str,
    category_id: int | None = None,
    *,
    gateway: StoreGateway | None = None,
    max_workers: int | None = None,
) -> AdminResult:
    """
    Apply new order_index values, one independent write per product.

    Returns:
        AdminResult with total/updated/failed and per-record errors.
    """
    if not actor_id:
        raise ValidationError("actor is required")
    if products is None:
        raise ValidationError("products must be a list")

    updates = _validate_order_entries(products)
    if not updates:
        return AdminResult(success=True, message="Nothing to reorder")

    gateway = gateway or get_gateway()
    if max_workers is None:
        max_workers = current_app.config.get("BULK_MAX_WORKERS", 4) if has_app_context() else 4

    result = AdminResult(success=False, total=len(updates))
    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(updates)))) as executor:
        futures = [
            executor.submit(gateway.update, "products", u["id"], {"order_index": u["order_index"]})
            for u in updates
        ]
        for update, future in zip(updates, futures):
            try:
                future.result()
            except GatewayError as exc:
                result.failed += 1
                result.errors.append({"record_id": update["id"], "error": str(exc)})
            else:
                result.updated += 1

    result.success = result.failed == 0
    if result.failed:
        logger.warning("Reorder: %d of %d writes failed", result.failed, result.total)
        result.message = f"Reordered {result.updated} of {result.total} products"
    else:
        result.message = "Product order updated"

    logged = action_log_service.log_action(
        updates[0]["id"],
        ACTION_REORDER,
        actor_id,
        {
            "bulk": True,
            "category_id": category_id,
            "affected_count": len(updates),
            "affected_ids": [u["id"] for u in updates],
            "updated": result.updated,
            "failed": result.failed,
        },
        gateway=gateway,
    )
    result.log_error = logged.error
    return result
