"""
Pytest fixtures for barstock backend tests.

Provides the in-memory database app, the test client, seeded catalog rows,
role headers, and a recording in-memory gateway for service-level tests.
"""

import threading

import pytest

from barstock import create_app
from barstock.extensions import db
from barstock.models import Category, Product, UserProfile
from barstock.services.gateway import GatewayError, RecordNotFoundError, StoreGateway

MANAGER_EMAIL = "manager@bar.local"
BAR1_EMAIL = "bar1@bar.local"
BAR2_EMAIL = "bar2@bar.local"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BULK_RPC_TIMEOUT_SECONDS': 5,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app, tmp_path):
    """Create fresh database (and an empty catalog cache) for each test."""
    app.config['LOCAL_CACHE_PATH'] = str(tmp_path / "catalog_cache.json")
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def gateway(app, db_session):
    """The SQLAlchemy gateway registered on the app."""
    return app.extensions["barstock_gateway"]


@pytest.fixture(scope='function')
def profiles(db_session):
    """Manager, bar1 and bar2 profiles."""
    rows = [
        UserProfile(email=MANAGER_EMAIL, role="manager"),
        UserProfile(email=BAR1_EMAIL, role="bar1"),
        UserProfile(email=BAR2_EMAIL, role="bar2"),
    ]
    db_session.add_all(rows)
    db_session.commit()
    return rows


@pytest.fixture(scope='function')
def manager_headers(profiles):
    return {"X-User-Email": MANAGER_EMAIL}


@pytest.fixture(scope='function')
def bar1_headers(profiles):
    return {"X-User-Email": BAR1_EMAIL}


@pytest.fixture(scope='function')
def bar2_headers(profiles):
    return {"X-User-Email": BAR2_EMAIL}


@pytest.fixture(scope='function')
def catalog(db_session):
    """
    Two categories and four products.

    Spirits: Vodka (red), Gin (red+green), Rum (no flags)
    Beer:    Lager (flag columns NULL)
    """
    spirits = Category(name="Spirits", order_index=1)
    beer = Category(name="Beer", order_index=2)
    db_session.add_all([spirits, beer])
    db_session.flush()

    products = {
        "vodka": Product(name="Vodka", volume="0.7", category_id=spirits.id, order_index=1,
                         bar1=2, bar2=1, cold_room=6, red_flag=True),
        "gin": Product(name="Gin", volume="0.7", category_id=spirits.id, order_index=2,
                       bar1=1.5, bar2=0, cold_room=3, red_flag=True, green_flag=True),
        "rum": Product(name="Rum", volume="1.0", category_id=spirits.id, order_index=3,
                       bar1=0, bar2=0.5, cold_room=0),
        "lager": Product(name="Lager", volume="0.5", category_id=beer.id, order_index=1,
                         bar1=24, bar2=12, cold_room=48,
                         red_flag=None, green_flag=None, yellow_flag=None),
    }
    db_session.add_all(products.values())
    db_session.commit()

    return {
        "categories": {"spirits": spirits.id, "beer": beer.id},
        "products": {key: p.id for key, p in products.items()},
    }


class RecordingGateway(StoreGateway):
    """
    In-memory StoreGateway that records every call.

    Failures are injected per method with fail_on(method, exc, when=predicate);
    the bulk update procedure can be replaced through `procedure`.
    """

    def __init__(self, tables=None):
        self.tables = {
            name: {row["id"]: dict(row) for row in rows}
            for name, rows in (tables or {}).items()
        }
        self.calls = []
        self.procedure = None
        self._failures = {}
        self._next_id = 1000
        self._lock = threading.Lock()

    # -- test helpers -----------------------------------------------------

    def fail_on(self, method, exc=None, when=None):
        self._failures[method] = (exc or GatewayError(f"{method} failed"), when)

    def calls_to(self, method):
        return [args for name, args in self.calls if name == method]

    def rows(self, table):
        return list(self.tables.get(table, {}).values())

    def _record(self, method, *args):
        with self._lock:
            self.calls.append((method, args))
        failure = self._failures.get(method)
        if failure:
            exc, when = failure
            if when is None or when(*args):
                raise exc

    def _table(self, table):
        return self.tables.setdefault(table, {})

    # -- contract ----------------------------------------------------------

    def query(self, table, filters=None, order=None, limit=None, columns=None):
        self._record("query", table, filters)
        rows = list(self._table(table).values())
        for key, value in (filters or {}).items():
            name, _, op = key.partition("__")
            if op == "gte":
                rows = [r for r in rows if r.get(name) is not None and r[name] >= value]
            elif op == "lte":
                rows = [r for r in rows if r.get(name) is not None and r[name] <= value]
            elif op == "in":
                rows = [r for r in rows if r.get(name) in value]
            else:
                rows = [r for r in rows if r.get(name) == value]
        rows.sort(key=lambda r: r["id"])
        for item in reversed(list(order or [])):
            name = item.lstrip("-")
            present = [r for r in rows if r.get(name) is not None]
            missing = [r for r in rows if r.get(name) is None]
            present.sort(key=lambda r: r[name], reverse=item.startswith("-"))
            rows = present + missing
        if limit is not None:
            rows = rows[:limit]
        if columns is not None:
            rows = [{c: r.get(c) for c in columns} for r in rows]
        return [dict(r) for r in rows]

    def get(self, table, record_id):
        self._record("get", table, record_id)
        row = self._table(table).get(record_id)
        return dict(row) if row is not None else None

    def update(self, table, record_id, fields):
        self._record("update", table, record_id, fields)
        row = self._table(table).get(record_id)
        if row is None:
            raise RecordNotFoundError(f"{table} {record_id} not found", table=table, record_id=record_id)
        row.update(fields)
        return dict(row)

    def update_where(self, table, ids, fields):
        self._record("update_where", table, ids, fields)
        rows = self._table(table)
        targets = list(rows) if ids is None else [i for i in ids if i in rows]
        for record_id in targets:
            rows[record_id].update(fields)
        return len(targets)

    def insert(self, table, fields):
        self._record("insert", table, fields)
        with self._lock:
            self._next_id += 1
            row = {"id": self._next_id, **fields}
        self._table(table)[row["id"]] = row
        return dict(row)

    def upsert(self, table, fields, on_conflict):
        self._record("upsert", table, fields, on_conflict)
        for row in self._table(table).values():
            if row.get(on_conflict) == fields[on_conflict]:
                row.update(fields)
                return dict(row)
        with self._lock:
            self._next_id += 1
            row = {"id": self._next_id, **fields}
        self._table(table)[row["id"]] = row
        return dict(row)

    def delete(self, table, record_id):
        self._record("delete", table, record_id)
        if self._table(table).pop(record_id, None) is None:
            raise RecordNotFoundError(f"{table} {record_id} not found", table=table, record_id=record_id)

    def call_procedure(self, name, args):
        self._record("call_procedure", name, args)
        batch = args["product_updates"]
        if self.procedure is not None:
            return self.procedure(batch)
        products = self._table("products")
        updated = 0
        errors = []
        for entry in batch:
            row = products.get(entry["id"])
            if row is None:
                errors.append({"record_id": entry["id"], "error": "Product not found"})
                continue
            row.update({k: v for k, v in entry.items() if k != "id"})
            updated += 1
        return {"updated_count": updated, "failed_count": len(errors), "errors": errors}


def make_product(product_id, **fields):
    row = {
        "id": product_id,
        "name": f"Product {product_id}",
        "volume": "0.5",
        "category_id": 1,
        "bar1": 0,
        "bar2": 0,
        "cold_room": 0,
        "order_index": product_id,
        "red_flag": False,
        "green_flag": False,
        "yellow_flag": False,
        "is_frozen": False,
        "frozen_at": None,
        "frozen_by": None,
        "visible_to_bar1": True,
        "visible_to_bar2": True,
        "distributor_id": None,
    }
    row.update(fields)
    return row


@pytest.fixture(scope='function')
def fake_gateway():
    """Empty recording gateway; tests add rows through .tables or RecordingGateway(...)."""
    return RecordingGateway()
