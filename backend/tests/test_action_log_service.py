from datetime import timedelta

import pytest

from conftest import RecordingGateway
from barstock.services import action_log_service
from barstock.time_utils import utcnow
from barstock.validation import ValidationError


def test_log_action_inserts_record(fake_gateway):
    result = action_log_service.log_action(7, "freeze", "manager@bar.local", {"x": 1}, gateway=fake_gateway)

    assert result.success is True
    (row,) = fake_gateway.rows("product_actions")
    assert row["product_id"] == 7
    assert row["action"] == "freeze"
    assert row["performed_by"] == "manager@bar.local"
    assert row["metadata"] == {"x": 1}
    assert row["performed_at"] is not None


def test_unknown_action_rejected(fake_gateway):
    with pytest.raises(ValidationError):
        action_log_service.log_action(1, "archive", "manager@bar.local", gateway=fake_gateway)
    assert fake_gateway.calls == []


def test_store_failure_is_returned(fake_gateway):
    fake_gateway.fail_on("insert")

    result = action_log_service.log_action(1, "delete", "manager@bar.local", gateway=fake_gateway)

    assert result.success is False
    assert "insert failed" in result.error


def test_query_history_filters_and_order(gateway, db_session):
    for pid, action in [(1, "freeze"), (2, "unfreeze"), (1, "unfreeze"), (3, "delete")]:
        action_log_service.log_action(pid, action, "manager@bar.local", gateway=gateway)
    action_log_service.log_action(4, "freeze", "other@bar.local", gateway=gateway)

    everything = action_log_service.query_history(gateway=gateway)
    assert [r["product_id"] for r in everything] == [4, 3, 1, 2, 1]

    unfreezes = action_log_service.query_history(action="unfreeze", gateway=gateway)
    assert [r["product_id"] for r in unfreezes] == [1, 2]

    mine = action_log_service.query_history(actor_id="other@bar.local", action="freeze", gateway=gateway)
    assert [r["product_id"] for r in mine] == [4]

    assert len(action_log_service.query_history(limit=2, gateway=gateway)) == 2


def test_query_history_time_window(gateway, db_session):
    action_log_service.log_action(1, "freeze", "manager@bar.local", gateway=gateway)
    now = utcnow()

    assert len(action_log_service.query_history(from_time=now - timedelta(minutes=1), gateway=gateway)) == 1
    assert action_log_service.query_history(from_time=now + timedelta(minutes=1), gateway=gateway) == []
    assert action_log_service.query_history(to_time=now - timedelta(minutes=1), gateway=gateway) == []


def test_query_history_rejects_inverted_window(fake_gateway):
    now = utcnow()
    with pytest.raises(ValidationError):
        action_log_service.query_history(from_time=now, to_time=now - timedelta(hours=1), gateway=fake_gateway)


def test_product_history_survives_delete(gateway, catalog, db_session):
    pid = catalog["products"]["rum"]
    action_log_service.log_action(pid, "delete", "manager@bar.local", {"product_name": "Rum"}, gateway=gateway)
    gateway.delete("products", pid)

    (record,) = action_log_service.get_product_history(pid, gateway=gateway)
    assert record["action"] == "delete"
    assert record["metadata"]["product_name"] == "Rum"


def test_default_limit_from_config(app, db_session):
    now = utcnow()
    gw = RecordingGateway({"product_actions": [
        {"id": i, "product_id": i, "action": "freeze", "performed_by": "m", "performed_at": now, "metadata": {}}
        for i in range(1, 6)
    ]})
    app.config["HISTORY_DEFAULT_LIMIT"] = 3
    try:
        items = action_log_service.query_history(gateway=gw)
    finally:
        app.config["HISTORY_DEFAULT_LIMIT"] = action_log_service.DEFAULT_HISTORY_LIMIT
    assert [r["id"] for r in items] == [5, 4, 3]
