# Overview: Service-layer operations for the product action log (append-only audit trail).

"""
Product Action Log

Invariants (authoritative):
- Append-only: this module exposes no update or delete of existing records.
- Logging is best-effort and secondary to the primary mutation. The primary
  write happens first; a failed log write is reported through the result and
  the operational log, never raised to the caller.
- History is returned newest first; filters are AND-combined.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from flask import current_app, has_app_context

from ..time_utils import utcnow
from ..validation import ValidationError
from .gateway import GatewayError, StoreGateway, get_gateway

logger = logging.getLogger(__name__)

ACTION_FREEZE = "freeze"
ACTION_UNFREEZE = "unfreeze"
ACTION_DELETE = "delete"
ACTION_REORDER = "reorder"

ACTION_KINDS = (ACTION_FREEZE, ACTION_UNFREEZE, ACTION_DELETE, ACTION_REORDER)

DEFAULT_HISTORY_LIMIT = 100
DEFAULT_PRODUCT_HISTORY_LIMIT = 50


@dataclass
class LogResult:
    success: bool
    record: dict | None = None
    error: str | None = None


def _default_limit(config_key: str, fallback: int) -> int:
    if has_app_context():
        return current_app.config.get(config_key, fallback)
    return fallback


def log_action(
    product_id: int,
    action: str,
    actor_id: str,
    metadata: dict | None = None,
    *,
    gateway: StoreGateway | None = None,
) -> LogResult:
    """
    Append one action record.

    Raises:
        ValidationError: For an unknown action kind or missing actor/product.
            Store failures are returned, not raised.
    """
    if action not in ACTION_KINDS:
        raise ValidationError(f"Unknown action: {action}")
    if product_id is None:
        raise ValidationError("product_id is required")
    if not actor_id:
        raise ValidationError("actor is required")

    gateway = gateway or get_gateway()
    try:
        record = gateway.insert(
            "product_actions",
            {
                "product_id": product_id,
                "action": action,
                "performed_by": actor_id,
                "performed_at": utcnow(),
                "metadata": metadata or {},
            },
        )
    except GatewayError as exc:
        logger.exception("Failed to log %s for product %s", action, product_id)
        return LogResult(success=False, error=str(exc))

    return LogResult(success=True, record=record)


def query_history(
    *,
    action: str | None = None,
    actor_id: str | None = None,
    from_time: datetime | None = None,
    to_time: datetime | None = None,
    limit: int | None = None,
    gateway: StoreGateway | None = None,
) -> list[dict]:
    """
    Newest-first action history.

    from_time / to_time are inclusive bounds on performed_at.
    """
    if action is not None and action not in ACTION_KINDS:
        raise ValidationError(f"Unknown action: {action}")
    if from_time and to_time and from_time > to_time:
        raise ValidationError("from_time must not be after to_time")

    limit = limit if limit is not None else _default_limit("HISTORY_DEFAULT_LIMIT", DEFAULT_HISTORY_LIMIT)
    if limit < 1:
        raise ValidationError("limit must be >= 1")

    filters: dict[str, Any] = {}
    if action:
        filters["action"] = action
    if actor_id:
        filters["performed_by"] = actor_id
    if from_time:
        filters["performed_at__gte"] = from_time
    if to_time:
        filters["performed_at__lte"] = to_time

    gateway = gateway or get_gateway()
    return gateway.query(
        "product_actions",
        filters=filters,
        order=["-performed_at", "-id"],
        limit=limit,
    )


def get_product_history(
    product_id: int,
    *,
    limit: int | None = None,
    gateway: StoreGateway | None = None,
) -> list[dict]:
    """Newest-first history for one product (deleted products included)."""
    limit = limit if limit is not None else _default_limit(
        "PRODUCT_HISTORY_DEFAULT_LIMIT", DEFAULT_PRODUCT_HISTORY_LIMIT
    )
    if limit < 1:
        raise ValidationError("limit must be >= 1")

    gateway = gateway or get_gateway()
    return gateway.query(
        "product_actions",
        filters={"product_id": product_id},
        order=["-performed_at", "-id"],
        limit=limit,
    )
