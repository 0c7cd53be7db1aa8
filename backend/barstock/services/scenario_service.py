# Overview: Service-layer operations for scenario sweeps (flag-driven bulk freeze/unfreeze).

"""
Scenario Sweeps

A scenario names one product flag. Running it freezes every product without
that flag and unfreezes every product with it:

    stocks       -> red_flag     weekly count of the core lines
    revision     -> green_flag   full stock revision
    long_freeze  -> yellow_flag  archived / seasonal lines

Policy: only a flag that is exactly True keeps a product active. NULL or a
missing flag counts as unflagged, so the product is frozen.

The two group updates are independent, idempotent state transitions executed
one after the other. There is no rollback: if the second write fails the
first stays applied and re-running the scenario converges.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass

from ..time_utils import utcnow
from ..validation import ValidationError
from . import action_log_service
from .action_log_service import ACTION_FREEZE, ACTION_UNFREEZE
from .gateway import GatewayError, StoreGateway, get_gateway

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Scenario:
    id: str
    name: str
    flag: str
    color: str
    description: str


SCENARIOS = (
    Scenario("stocks", "Stocks", "red_flag", "red", "Weekly count of the core lines"),
    Scenario("revision", "Revision", "green_flag", "green", "Full inventory of every line"),
    Scenario("long_freeze", "Long freeze", "yellow_flag", "yellow", "Archived and seasonal lines"),
)

FLAG_COLUMNS = tuple(s.flag for s in SCENARIOS)


def frozen_fields(actor_id: str | None) -> dict:
    return {
        "is_frozen": True,
        "visible_to_bar1": False,
        "visible_to_bar2": False,
        "frozen_at": utcnow(),
        "frozen_by": actor_id,
    }


def active_fields() -> dict:
    return {
        "is_frozen": False,
        "visible_to_bar1": True,
        "visible_to_bar2": True,
        "frozen_at": None,
        "frozen_by": None,
    }


@dataclass
class ScenarioResult:
    success: bool
    scenario: str | None = None
    active_count: int = 0
    frozen_count: int = 0
    log_error: str | None = None
    error: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)


def resolve_scenario(name: str) -> Scenario:
    """Accepts a scenario id ("stocks"), a flag column ("red_flag") or a colour ("red")."""
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Scenario name is required")
    key = name.strip().lower()
    for scenario in SCENARIOS:
        if key in (scenario.id, scenario.flag, scenario.color):
            return scenario
    raise ValidationError(f"Unknown scenario: {name}")


def partition_by_flag(products: list[dict], flag: str) -> tuple[list[dict], list[dict]]:
    """Split into (with_flag, without_flag) using strict `is True`."""
    with_flag, without_flag = [], []
    for product in products:
        if product.get(flag) is True:
            with_flag.append(product)
        else:
            without_flag.append(product)
    return with_flag, without_flag


def run_scenario(flag_name: str, actor_id: str, *, gateway: StoreGateway | None = None) -> ScenarioResult:
    scenario = resolve_scenario(flag_name)
    if not actor_id:
        raise ValidationError("actor is required")

    gateway = gateway or get_gateway()
    logger.info("Running scenario %s (%s) for %s", scenario.id, scenario.flag, actor_id)

    try:
        products = gateway.query("products", columns=["id", "name", scenario.flag])
    except GatewayError as exc:
        logger.error("Scenario %s: failed to read products: %s", scenario.id, exc)
        return ScenarioResult(success=False, scenario=scenario.id, error=str(exc))

    with_flag, without_flag = partition_by_flag(products, scenario.flag)
    frozen_ids = [p["id"] for p in without_flag]
    active_ids = [p["id"] for p in with_flag]

    try:
        if frozen_ids:
            gateway.update_where("products", frozen_ids, frozen_fields(actor_id))
            logger.info("Scenario %s: froze %d products", scenario.id, len(frozen_ids))
        if active_ids:
            gateway.update_where("products", active_ids, active_fields())
            logger.info("Scenario %s: activated %d products", scenario.id, len(active_ids))
    except GatewayError as exc:
        logger.error("Scenario %s aborted: %s", scenario.id, exc)
        return ScenarioResult(
            success=False,
            scenario=scenario.id,
            active_count=len(active_ids),
            frozen_count=len(frozen_ids),
            error=str(exc),
        )

    result = ScenarioResult(
        success=True,
        scenario=scenario.id,
        active_count=len(active_ids),
        frozen_count=len(frozen_ids),
    )

    if products:
        # Bulk actions are logged against a representative product
        action, subject = (ACTION_FREEZE, frozen_ids[0]) if frozen_ids else (ACTION_UNFREEZE, active_ids[0])
        logged = action_log_service.log_action(
            subject,
            action,
            actor_id,
            {
                "bulk": True,
                "scenario": scenario.id,
                "flag": scenario.flag,
                "active_count": len(active_ids),
                "frozen_count": len(frozen_ids),
                "affected_ids": frozen_ids if action == ACTION_FREEZE else active_ids,
            },
            gateway=gateway,
        )
        result.log_error = logged.error

    return result


def stop_all_scenarios(actor_id: str | None = None, *, gateway: StoreGateway | None = None) -> ScenarioResult:
    """Unconditionally unfreeze every product."""
    gateway = gateway or get_gateway()
    logger.info("Stopping all scenarios")

    try:
        ids = [p["id"] for p in gateway.query("products", columns=["id"])]
        gateway.update_where("products", None, active_fields())
    except GatewayError as exc:
        logger.error("Stopping scenarios failed: %s", exc)
        return ScenarioResult(success=False, error=str(exc))

    result = ScenarioResult(success=True, active_count=len(ids), frozen_count=0)

    if actor_id and ids:
        logged = action_log_service.log_action(
            ids[0],
            ACTION_UNFREEZE,
            actor_id,
            {"bulk": True, "scenario": "stop_all", "affected_count": len(ids)},
            gateway=gateway,
        )
        result.log_error = logged.error

    return result


def get_flags_statistics(*, gateway: StoreGateway | None = None) -> dict:
    gateway = gateway or get_gateway()
    products = gateway.query("products", columns=list(FLAG_COLUMNS))
    return {
        "total": len(products),
        "red": sum(1 for p in products if p.get("red_flag")),
        "green": sum(1 for p in products if p.get("green_flag")),
        "yellow": sum(1 for p in products if p.get("yellow_flag")),
        "no_flags": sum(1 for p in products if not any(p.get(f) for f in FLAG_COLUMNS)),
    }


def update_product_flags(
    product_id: int,
    *,
    red: bool | None = None,
    green: bool | None = None,
    yellow: bool | None = None,
    gateway: StoreGateway | None = None,
) -> dict:
    """Set all three flags at once; omitted flags are cleared."""
    flags = {"red_flag": red, "green_flag": green, "yellow_flag": yellow}
    for column, value in flags.items():
        if value is not None and not isinstance(value, bool):
            raise ValidationError(f"{column} must be true or false")
    gateway = gateway or get_gateway()
    return gateway.update(
        "products",
        product_id,
        {column: bool(value) for column, value in flags.items()},
    )
