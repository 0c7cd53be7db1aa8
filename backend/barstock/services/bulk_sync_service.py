# Overview: Service-layer operations for bulk stock sync; batches edits into procedure calls.

"""
Bulk Stock Sync

Pushes a locally edited product set to the store in batches of at most
MAX_BATCH_SIZE rows, one bulk_update_products call per batch.

INVARIANTS:
- Invalid entries (id not a positive int, non-numeric or null quantity) are
  dropped before any call.
- Batches hold disjoint ids, so they are dispatched concurrently and awaited
  together; completion order has no effect on the final state.
- A failing batch never rolls back batches that completed.
- No automatic retry. Re-running with the same payload is idempotent.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeoutError
from dataclasses import asdict, dataclass, field
from typing import Any, Iterable, Sequence

from flask import current_app, has_app_context

from ..validation import STOCK_COLUMNS, ValidationError, is_stock_number
from .gateway import BULK_UPDATE_PROCEDURE, GatewayError, StoreGateway, get_gateway

logger = logging.getLogger(__name__)

MAX_BATCH_SIZE = 1000
DEFAULT_MAX_WORKERS = 4
DEFAULT_TIMEOUT_SECONDS = 30


@dataclass
class SyncResult:
    success: bool
    total: int = 0
    updated: int = 0
    failed: int = 0
    invalid: int = 0
    errors: list[dict] = field(default_factory=list)
    duration_ms: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


def _setting(name: str, default: int) -> int:
    if has_app_context():
        return current_app.config.get(name, default)
    return default


def _resolve_columns(columns: Iterable[str] | None) -> tuple[str, ...]:
    if columns is None:
        return STOCK_COLUMNS
    resolved = tuple(columns)
    if not resolved:
        raise ValidationError("No stock columns available for this user")
    unknown = [c for c in resolved if c not in STOCK_COLUMNS]
    if unknown:
        raise ValidationError(f"Unknown stock columns: {', '.join(unknown)}")
    # Keep canonical column order regardless of caller order
    return tuple(c for c in STOCK_COLUMNS if c in resolved)


def _is_valid_entry(entry: Any) -> bool:
    if not isinstance(entry, dict):
        return False
    product_id = entry.get("id")
    if isinstance(product_id, bool) or not isinstance(product_id, int) or product_id <= 0:
        return False
    # A present quantity must be a number; null is not "missing"
    for column in STOCK_COLUMNS:
        if column in entry and not is_stock_number(entry[column]):
            return False
    return True


def prepare_products(products: Sequence[Any], columns: Iterable[str] | None = None) -> tuple[list[dict], int]:
    """
    Validate and normalize sync entries.

    Returns (payload, invalid_count). Each payload row carries the id plus the
    requested stock columns; missing quantities become 0. The input sequence
    and its dicts are left untouched.
    """
    resolved = _resolve_columns(columns)
    payload = []
    invalid = 0
    for entry in products:
        if not _is_valid_entry(entry):
            invalid += 1
            continue
        row = {"id": entry["id"]}
        for column in resolved:
            row[column] = entry.get(column, 0)
        payload.append(row)
    return payload, invalid


def chunk(items: Sequence[Any], size: int) -> list[list[Any]]:
    if size < 1:
        raise ValueError("chunk size must be >= 1")
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


def _normalize_errors(raw_errors: Any) -> list[dict]:
    normalized = []
    for err in raw_errors or []:
        if isinstance(err, dict):
            record_id = err.get("record_id", err.get("id"))
            normalized.append({"record_id": record_id, "error": str(err.get("error", err))})
        else:
            normalized.append({"record_id": None, "error": str(err)})
    return normalized


def _check_response(data: Any) -> dict:
    if not isinstance(data, dict):
        raise GatewayError("Empty response from bulk update procedure")
    for key in ("updated_count", "failed_count"):
        value = data.get(key)
        if isinstance(value, bool) or not isinstance(value, int):
            raise GatewayError(f"Malformed bulk update response: {key}={value!r}")
    return data


def bulk_sync(
    products: Sequence[Any],
    *,
    columns: Iterable[str] | None = None,
    gateway: StoreGateway | None = None,
    batch_size: int | None = None,
    max_workers: int | None = None,
    timeout: float | None = None,
) -> SyncResult:
    """
    Reconcile edited products with the store.

    Args:
        products: Entries shaped like {"id", "bar1", "bar2", "cold_room"}
        columns: Stock columns the caller may write (defaults to all three)
        gateway: Store gateway (defaults to the app's gateway)
        batch_size / max_workers / timeout: Overrides for the config values

    Returns:
        SyncResult; success is True iff nothing failed.

    Raises:
        ValidationError: If entries were given but none passed validation, or
            columns is empty/unknown. No store call is made in that case.
    """
    if products is None or isinstance(products, (str, bytes, dict)):
        raise ValidationError("products must be a list")

    if len(products) == 0:
        return SyncResult(success=True)

    started = time.perf_counter()
    payload, invalid = prepare_products(products, columns)

    if not payload:
        logger.error("Bulk sync rejected: all %d entries failed validation", len(products))
        raise ValidationError("No valid input: every product failed validation")
    if invalid:
        logger.warning("Bulk sync dropped %d invalid entries", invalid)

    gateway = gateway or get_gateway()
    batch_size = batch_size or _setting("BULK_MAX_BATCH_SIZE", MAX_BATCH_SIZE)
    max_workers = max_workers or _setting("BULK_MAX_WORKERS", DEFAULT_MAX_WORKERS)
    timeout = timeout or _setting("BULK_RPC_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS)

    batches = chunk(payload, min(batch_size, MAX_BATCH_SIZE))
    logger.info("Bulk sync: %d products in %d batch(es)", len(payload), len(batches))

    result = SyncResult(success=False, total=len(payload), invalid=invalid)
    batch_failed = False

    executor = ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(batches))))
    try:
        futures = [
            executor.submit(gateway.call_procedure, BULK_UPDATE_PROCEDURE, {"product_updates": batch})
            for batch in batches
        ]
        for index, (batch, future) in enumerate(zip(batches, futures), start=1):
            try:
                data = _check_response(future.result(timeout=timeout))
            except (GatewayError, FuturesTimeoutError) as exc:
                batch_failed = True
                message = str(exc) or "Procedure timed out"
                logger.error("Bulk sync batch %d/%d failed: %s", index, len(batches), message)
                result.failed += len(batch)
                result.errors.append({
                    "record_id": None,
                    "error": f"Batch {index}/{len(batches)} failed: {message}",
                    "batch_index": index,
                    "records": len(batch),
                })
                continue

            result.updated += data["updated_count"]
            result.failed += data["failed_count"]
            result.errors.extend(_normalize_errors(data.get("errors")))
            logger.debug(
                "Bulk sync batch %d/%d: updated=%d failed=%d",
                index, len(batches), data["updated_count"], data["failed_count"],
            )
    finally:
        executor.shutdown(wait=False, cancel_futures=True)

    result.success = result.failed == 0 and not batch_failed
    result.duration_ms = int(round((time.perf_counter() - started) * 1000))

    log = logger.info if result.success else logger.warning
    log("Bulk sync done: %d/%d updated in %d ms", result.updated, result.total, result.duration_ms)
    return result
