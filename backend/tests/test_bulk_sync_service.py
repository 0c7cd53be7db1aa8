"""
Bulk stock sync tests.

Verifies:
- Batching (one procedure call per batch of at most 1000 rows)
- Empty input makes no store call
- Invalid entries are dropped before any call
- Partial failures are aggregated, never raised
- Re-running the same payload is idempotent
"""

import math
import threading
import time

import pytest

from conftest import RecordingGateway, make_product
from barstock.models import Product
from barstock.services import bulk_sync_service
from barstock.services.bulk_sync_service import MAX_BATCH_SIZE, bulk_sync, chunk, prepare_products
from barstock.services.gateway import GatewayError
from barstock.validation import ValidationError


def _gateway_with(n):
    return RecordingGateway({"products": [make_product(i) for i in range(1, n + 1)]})


class TestBatching:

    def test_empty_input_makes_no_call(self, fake_gateway):
        result = bulk_sync([], gateway=fake_gateway)

        assert result.success is True
        assert (result.total, result.updated, result.failed) == (0, 0, 0)
        assert fake_gateway.calls == []

    @pytest.mark.parametrize("count", [1, 999, 1000, 1001, 2500])
    def test_one_call_per_batch(self, count):
        gw = _gateway_with(count)
        products = [{"id": i, "bar1": 1, "bar2": 2, "cold_room": 3} for i in range(1, count + 1)]

        result = bulk_sync(products, gateway=gw)

        calls = gw.calls_to("call_procedure")
        assert len(calls) == math.ceil(count / MAX_BATCH_SIZE)
        assert sum(len(args["product_updates"]) for _, args in calls) == count
        assert all(len(args["product_updates"]) <= MAX_BATCH_SIZE for _, args in calls)
        assert result.success is True
        assert result.total == count
        assert result.updated == count

    def test_batches_preserve_input_order(self):
        gw = _gateway_with(2001)
        products = [{"id": i, "bar1": i} for i in range(1, 2002)]

        bulk_sync(products, gateway=gw)

        sent = [
            row["id"]
            for _, args in sorted(gw.calls_to("call_procedure"), key=lambda a: a[1]["product_updates"][0]["id"])
            for row in args["product_updates"]
        ]
        assert sent == list(range(1, 2002))

    def test_chunk_sizes(self):
        assert [len(c) for c in chunk(list(range(2500)), 1000)] == [1000, 1000, 500]
        with pytest.raises(ValueError):
            chunk([1], 0)


class TestValidation:

    def test_non_numeric_quantity_is_dropped(self):
        gw = _gateway_with(6)

        result = bulk_sync([{"id": 5, "bar1": 3}, {"id": 6, "bar1": "x"}], gateway=gw)

        (call,) = gw.calls_to("call_procedure")
        assert [row["id"] for row in call[1]["product_updates"]] == [5]
        assert result.total == 1
        assert result.invalid == 1
        assert result.success is True

    @pytest.mark.parametrize("entry", [
        {"bar1": 1},
        {"id": None, "bar1": 1},
        {"id": 1, "bar1": True},
        {"id": 1, "bar2": float("nan")},
        {"id": 1, "cold_room": float("inf")},
        {"id": 1, "bar1": "3"},
        {"id": 1, "bar1": None},
        {"id": "1", "bar1": 1},
        {"id": [1], "bar1": 1},
        {"id": {"x": 1}, "bar1": 1},
        {"id": 0, "bar1": 1},
        {"id": 1.0, "bar1": 1},
        "not-a-dict",
    ])
    def test_invalid_entries(self, entry):
        payload, invalid = prepare_products([entry, {"id": 2, "bar1": 1}])
        assert invalid == 1
        assert [row["id"] for row in payload] == [2]

    def test_all_invalid_raises_before_any_call(self, fake_gateway):
        with pytest.raises(ValidationError):
            bulk_sync([{"id": 1, "bar1": "x"}, {"bar2": 1}], gateway=fake_gateway)
        assert fake_gateway.calls == []

    def test_missing_quantities_default_to_zero(self):
        payload, _ = prepare_products([{"id": 1, "bar2": 4}])
        assert payload == [{"id": 1, "bar1": 0, "bar2": 4, "cold_room": 0}]

    def test_columns_restrict_payload(self):
        payload, _ = prepare_products([{"id": 1, "bar1": 1, "bar2": 2, "cold_room": 3}], ["cold_room", "bar1"])
        assert payload == [{"id": 1, "bar1": 1, "cold_room": 3}]

    def test_unknown_column_rejected(self):
        with pytest.raises(ValidationError):
            prepare_products([{"id": 1}], ["bar3"])

    def test_input_is_not_mutated(self):
        entry = {"id": 1, "bar1": 2, "note": "keep"}
        bulk_sync([entry], gateway=_gateway_with(1))
        assert entry == {"id": 1, "bar1": 2, "note": "keep"}


class TestPartialFailure:

    def test_per_record_errors_are_aggregated(self):
        gw = _gateway_with(2)
        result = bulk_sync([{"id": 1, "bar1": 1}, {"id": 99, "bar1": 1}], gateway=gw)

        assert result.success is False
        assert result.updated == 1
        assert result.failed == 1
        assert result.errors == [{"record_id": 99, "error": "Product not found"}]

    def test_failed_batch_keeps_completed_counts(self):
        gw = _gateway_with(1500)
        gw.fail_on("call_procedure", when=lambda name, args: args["product_updates"][0]["id"] > 1000)
        products = [{"id": i, "bar1": 1} for i in range(1, 1501)]

        result = bulk_sync(products, gateway=gw)

        assert result.success is False
        assert result.updated == 1000
        assert result.failed == 500
        (batch_error,) = result.errors
        assert batch_error["record_id"] is None
        assert batch_error["batch_index"] == 2
        assert batch_error["records"] == 500

    def test_malformed_response_is_batch_failure(self):
        gw = _gateway_with(1)
        gw.procedure = lambda batch: {"updated_count": "1"}

        result = bulk_sync([{"id": 1, "bar1": 1}], gateway=gw)

        assert result.success is False
        assert result.failed == 1
        assert result.errors[0]["batch_index"] == 1

    def test_timeout_is_batch_failure(self):
        gw = _gateway_with(1)
        release = threading.Event()

        def slow(batch):
            release.wait(2)
            return {"updated_count": len(batch), "failed_count": 0, "errors": []}

        gw.procedure = slow
        try:
            result = bulk_sync([{"id": 1, "bar1": 1}], gateway=gw, timeout=0.05)
        finally:
            release.set()

        assert result.success is False
        assert result.failed == 1
        assert "timed out" in result.errors[0]["error"]

    def test_batches_run_concurrently(self):
        gw = _gateway_with(3000)
        active = []
        peak = []
        lock = threading.Lock()

        def tracked(batch):
            with lock:
                active.append(1)
                peak.append(len(active))
            time.sleep(0.05)
            with lock:
                active.pop()
            return {"updated_count": len(batch), "failed_count": 0, "errors": []}

        gw.procedure = tracked
        result = bulk_sync([{"id": i, "bar1": 1} for i in range(1, 3001)], gateway=gw, max_workers=3)

        assert result.success is True
        assert max(peak) > 1


class TestAgainstDatabase:

    def test_sync_is_idempotent(self, gateway, catalog, db_session):
        ids = catalog["products"]
        payload = [
            {"id": ids["vodka"], "bar1": 5, "bar2": 4, "cold_room": 3},
            {"id": ids["rum"], "bar1": 0.5, "bar2": 0, "cold_room": 12},
        ]

        first = bulk_sync(payload, gateway=gateway)
        second = bulk_sync(payload, gateway=gateway)

        assert first.success and second.success
        assert first.updated == second.updated == 2
        vodka = db_session.get(Product, ids["vodka"], populate_existing=True)
        assert (vodka.bar1, vodka.bar2, vodka.cold_room) == (5, 4, 3)

    def test_frozen_product_is_reported_not_written(self, gateway, catalog, db_session):
        ids = catalog["products"]
        gateway.update("products", ids["gin"], {"is_frozen": True})

        result = bulk_sync([{"id": ids["gin"], "bar1": 9}], gateway=gateway)

        assert result.success is False
        assert result.errors == [{"record_id": ids["gin"], "error": "Product is frozen"}]
        assert db_session.get(Product, ids["gin"], populate_existing=True).bar1 == 1.5

    def test_oversized_batch_rejected_by_procedure(self, gateway, catalog):
        rows = [{"id": catalog["products"]["vodka"], "bar1": 1}] * 1001
        with pytest.raises(GatewayError):
            gateway.call_procedure("bulk_update_products", {"product_updates": rows})

    def test_settings_from_app_config(self, app, gateway, catalog):
        app.config["BULK_MAX_BATCH_SIZE"] = 1
        try:
            ids = list(catalog["products"].values())
            result = bulk_sync([{"id": i, "bar1": 1} for i in ids], gateway=gateway)
        finally:
            app.config["BULK_MAX_BATCH_SIZE"] = bulk_sync_service.MAX_BATCH_SIZE
        assert result.success is True
        assert result.updated == len(ids)

    def test_bad_ids_never_reach_the_store(self, gateway, catalog, db_session):
        pid = catalog["products"]["vodka"]

        result = bulk_sync(
            [{"id": pid, "bar1": 4}, {"id": [pid], "bar1": 5}, {"id": str(pid), "bar1": 6}],
            gateway=gateway,
        )

        assert result.success is True
        assert (result.total, result.updated, result.invalid) == (1, 1, 2)
        assert db_session.get(Product, pid, populate_existing=True).bar1 == 4
