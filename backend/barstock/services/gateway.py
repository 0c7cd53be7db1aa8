# Overview: Remote store gateway; the only seam between services and persistence.

"""
Store Gateway

Every service talks to persistence through the narrow StoreGateway contract:
row queries, single and grouped updates, inserts, upserts, deletes and named
server-side procedures. Rows cross the boundary as plain dicts (the model's
to_dict() shape), never as ORM objects.

SqlAlchemyGateway is the bundled implementation over Flask-SQLAlchemy. Each
call is its own unit of work: it commits on success and rolls back on
failure. Nothing spans multiple calls.

THREADING:
- Worker threads (bulk sync, reorder) may call the gateway without an app
  context; the gateway pushes one so each thread gets its own scoped session.
- Writes are serialized with a process-wide lock because SQLite allows a
  single writer.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Any, Callable, Iterable, Iterator

from flask import Flask, current_app, has_app_context
from sqlalchemy import nulls_last, select
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Category, Distributor, ParLevel, Product, ProductAction, UserProfile
from ..validation import STOCK_COLUMNS

logger = logging.getLogger(__name__)

TABLES = {
    "products": Product,
    "categories": Category,
    "product_actions": ProductAction,
    "distributors": Distributor,
    "par_levels": ParLevel,
    "user_profiles": UserProfile,
}

FILTER_OPERATORS = {"eq", "ne", "lt", "lte", "gt", "gte", "in", "is_null"}

# Keeps IN (...) lists under SQLite's bound-parameter limit
_ID_CHUNK_SIZE = 500

BULK_UPDATE_PROCEDURE = "bulk_update_products"
BULK_UPDATE_MAX_ROWS = 1000


class GatewayError(Exception):
    """A store call failed as a whole (transport, constraint, unknown table)."""

    def __init__(self, message: str, *, table: str | None = None, record_id: Any = None):
        super().__init__(message)
        self.table = table
        self.record_id = record_id


class RecordNotFoundError(GatewayError):
    """Raised when a row addressed by id does not exist."""


class StoreGateway:
    """
    Persistence contract consumed by the service layer.

    filters: {"col": value} for equality or {"col__op": value} with op in
             FILTER_OPERATORS.
    order:   ["col", "-col"]; descending with a leading "-". NULLs sort last.
    """

    def query(
        self,
        table: str,
        filters: dict | None = None,
        order: Iterable[str] | None = None,
        limit: int | None = None,
        columns: Iterable[str] | None = None,
    ) -> list[dict]:
        raise NotImplementedError

    def get(self, table: str, record_id: Any) -> dict | None:
        raise NotImplementedError

    def update(self, table: str, record_id: Any, fields: dict) -> dict:
        raise NotImplementedError

    def update_where(self, table: str, ids: Iterable[Any] | None, fields: dict) -> int:
        """Grouped write. ids=None addresses every row of the table."""
        raise NotImplementedError

    def insert(self, table: str, fields: dict) -> dict:
        raise NotImplementedError

    def upsert(self, table: str, fields: dict, on_conflict: str) -> dict:
        raise NotImplementedError

    def delete(self, table: str, record_id: Any) -> None:
        raise NotImplementedError

    def call_procedure(self, name: str, args: dict) -> dict:
        raise NotImplementedError


def get_gateway() -> StoreGateway:
    """Gateway registered on the current Flask app by create_app()."""
    return current_app.extensions["barstock_gateway"]


class SqlAlchemyGateway(StoreGateway):
    _write_lock = threading.Lock()

    def __init__(self, app: Flask | None = None):
        self._app = app
        self._procedures: dict[str, Callable[[Any, dict], dict]] = {
            BULK_UPDATE_PROCEDURE: self._bulk_update_products,
        }

    def init_app(self, app: Flask) -> None:
        self._app = app
        app.extensions["barstock_gateway"] = self

    # ------------------------------------------------------------------
    # Session plumbing
    # ------------------------------------------------------------------

    @contextmanager
    def _session_scope(self) -> Iterator[Any]:
        if has_app_context():
            yield db.session
            return
        if self._app is None:
            raise GatewayError("Gateway is not bound to an application")
        with self._app.app_context():
            yield db.session

    @contextmanager
    def _unit_of_work(self, table: str | None = None, record_id: Any = None) -> Iterator[Any]:
        with self._write_lock, self._session_scope() as session:
            try:
                yield session
                session.commit()
            except GatewayError:
                session.rollback()
                raise
            except SQLAlchemyError as exc:
                session.rollback()
                raise GatewayError(str(exc.__cause__ or exc), table=table, record_id=record_id) from exc

    # ------------------------------------------------------------------
    # Metadata helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _model(table: str):
        model = TABLES.get(table)
        if model is None:
            raise GatewayError(f"Unknown table: {table}", table=table)
        return model

    @staticmethod
    def _column(model, name: str):
        try:
            return model.__table__.c[name]
        except KeyError:
            raise GatewayError(f"Unknown column: {model.__tablename__}.{name}", table=model.__tablename__)

    @classmethod
    def _attrs(cls, model, fields: dict) -> dict:
        """Translate column names (e.g. "metadata") to mapped attribute keys."""
        mapper = model.__mapper__
        attrs = {}
        for name, value in fields.items():
            column = cls._column(model, name)
            attrs[mapper.get_property_by_column(column).key] = value
        return attrs

    @classmethod
    def _where(cls, model, filters: dict | None) -> list:
        clauses = []
        for key, value in (filters or {}).items():
            name, _, op = key.partition("__")
            op = op or "eq"
            if op not in FILTER_OPERATORS:
                raise GatewayError(f"Unsupported filter operator: {op}", table=model.__tablename__)
            col = cls._column(model, name)
            if op == "eq":
                clauses.append(col.is_(None) if value is None else col == value)
            elif op == "ne":
                clauses.append(col.is_not(None) if value is None else col != value)
            elif op == "lt":
                clauses.append(col < value)
            elif op == "lte":
                clauses.append(col <= value)
            elif op == "gt":
                clauses.append(col > value)
            elif op == "gte":
                clauses.append(col >= value)
            elif op == "in":
                clauses.append(col.in_(list(value)))
            elif op == "is_null":
                clauses.append(col.is_(None) if value else col.is_not(None))
        return clauses

    @classmethod
    def _order_by(cls, model, order: Iterable[str] | None) -> list:
        terms = []
        for item in order or ():
            descending = item.startswith("-")
            col = cls._column(model, item.lstrip("-"))
            terms.append(nulls_last(col.desc() if descending else col.asc()))
        return terms

    @staticmethod
    def _project(row: dict, columns: Iterable[str] | None) -> dict:
        if columns is None:
            return row
        return {name: row.get(name) for name in columns}

    # ------------------------------------------------------------------
    # Contract
    # ------------------------------------------------------------------

    def query(self, table, filters=None, order=None, limit=None, columns=None):
        model = self._model(table)
        stmt = select(model).where(*self._where(model, filters))
        stmt = stmt.order_by(*self._order_by(model, order), model.id.asc())
        if limit is not None:
            stmt = stmt.limit(limit)
        columns = list(columns) if columns is not None else None
        with self._session_scope() as session:
            try:
                rows = session.execute(stmt.execution_options(populate_existing=True)).scalars().all()
            except SQLAlchemyError as exc:
                session.rollback()
                raise GatewayError(str(exc), table=table) from exc
            return [self._project(r.to_dict(), columns) for r in rows]

    def get(self, table, record_id):
        model = self._model(table)
        with self._session_scope() as session:
            try:
                row = session.get(model, record_id, populate_existing=True)
            except SQLAlchemyError as exc:
                session.rollback()
                raise GatewayError(str(exc), table=table, record_id=record_id) from exc
            return row.to_dict() if row is not None else None

    def update(self, table, record_id, fields):
        model = self._model(table)
        attrs = self._attrs(model, fields)
        with self._unit_of_work(table, record_id) as session:
            row = session.get(model, record_id)
            if row is None:
                raise RecordNotFoundError(f"{table} {record_id} not found", table=table, record_id=record_id)
            for key, value in attrs.items():
                setattr(row, key, value)
            session.flush()
            result = row.to_dict()
        return result

    def update_where(self, table, ids, fields):
        model = self._model(table)
        attrs = self._attrs(model, fields)
        with self._unit_of_work(table) as session:
            if ids is None:
                return session.query(model).update(attrs, synchronize_session=False)
            id_list = list(ids)
            count = 0
            for start in range(0, len(id_list), _ID_CHUNK_SIZE):
                chunk = id_list[start:start + _ID_CHUNK_SIZE]
                count += (
                    session.query(model)
                    .filter(model.id.in_(chunk))
                    .update(attrs, synchronize_session=False)
                )
            return count

    def insert(self, table, fields):
        model = self._model(table)
        row = model(**self._attrs(model, fields))
        with self._unit_of_work(table) as session:
            session.add(row)
            session.flush()
            result = row.to_dict()
        return result

    def upsert(self, table, fields, on_conflict):
        model = self._model(table)
        if on_conflict not in fields:
            raise GatewayError(f"Upsert key {on_conflict} missing from fields", table=table)
        conflict_col = self._column(model, on_conflict)
        attrs = self._attrs(model, fields)
        with self._unit_of_work(table) as session:
            row = session.execute(
                select(model).where(conflict_col == fields[on_conflict])
            ).scalars().first()
            if row is None:
                row = model(**attrs)
                session.add(row)
            else:
                for key, value in attrs.items():
                    setattr(row, key, value)
            session.flush()
            result = row.to_dict()
        return result

    def delete(self, table, record_id):
        model = self._model(table)
        with self._unit_of_work(table, record_id) as session:
            row = session.get(model, record_id)
            if row is None:
                raise RecordNotFoundError(f"{table} {record_id} not found", table=table, record_id=record_id)
            session.delete(row)

    def call_procedure(self, name, args):
        procedure = self._procedures.get(name)
        if procedure is None:
            raise GatewayError(f"Unknown procedure: {name}")
        with self._unit_of_work() as session:
            return procedure(session, args or {})

    # ------------------------------------------------------------------
    # Server-side procedures
    # ------------------------------------------------------------------

    @staticmethod
    def _bulk_update_products(session, args: dict) -> dict:
        """
        bulk_update_products(product_updates) -> {updated_count, failed_count, errors}

        Rows that cannot be applied (missing, frozen) are reported per record;
        the remaining rows of the batch are still written.
        """
        updates = args.get("product_updates")
        if not isinstance(updates, list):
            raise GatewayError("product_updates must be a list")
        if len(updates) > BULK_UPDATE_MAX_ROWS:
            raise GatewayError(f"Batch of {len(updates)} exceeds {BULK_UPDATE_MAX_ROWS} rows")

        ids = [u.get("id") for u in updates]
        rows = {
            p.id: p
            for p in session.execute(select(Product).where(Product.id.in_(ids))).scalars()
        }

        updated = 0
        errors = []
        for entry in updates:
            product = rows.get(entry.get("id"))
            if product is None:
                errors.append({"record_id": entry.get("id"), "error": "Product not found"})
                continue
            if product.is_frozen:
                errors.append({"record_id": product.id, "error": "Product is frozen"})
                continue
            for column in STOCK_COLUMNS:
                if column in entry:
                    setattr(product, column, entry[column])
            updated += 1

        session.flush()
        return {"updated_count": updated, "failed_count": len(errors), "errors": errors}
