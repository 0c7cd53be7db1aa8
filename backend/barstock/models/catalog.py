from __future__ import annotations

from ..extensions import db
from barstock.time_utils import to_utc_z


class Category(db.Model):
    """Product grouping shown as one section in the stock table."""
    __tablename__ = "categories"
    __table_args__ = (
        db.UniqueConstraint("name", name="uq_categories_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    order_index = db.Column(db.Integer, nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Category id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "order_index": self.order_index,
            "created_at": to_utc_z(self.created_at),
        }


class Product(db.Model):
    """
    One stocked item with its per-location counts.

    FREEZE INVARIANT:
    - is_frozen=True  -> visible_to_bar1=False, visible_to_bar2=False
    - is_frozen=False -> visible_to_bar1=True,  visible_to_bar2=True
    The three columns are always written together. A single-product freeze
    may explicitly keep one station visible (hide_from_bar1/hide_from_bar2).

    FLAGS:
    red_flag / green_flag / yellow_flag select the weekly-count, full-revision
    and long-freeze scenarios. NULL means "not flagged".
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_category_order", "category_id", "order_index"),
        db.Index("ix_products_frozen", "is_frozen"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    volume = db.Column(db.String(64), nullable=True)

    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=True, index=True)

    # Counts per location; fractional values are allowed (half-empty bottles)
    bar1 = db.Column(db.Float, nullable=False, default=0)
    bar2 = db.Column(db.Float, nullable=False, default=0)
    cold_room = db.Column(db.Float, nullable=False, default=0)

    order_index = db.Column(db.Integer, nullable=True)

    red_flag = db.Column(db.Boolean, nullable=True, default=False)
    green_flag = db.Column(db.Boolean, nullable=True, default=False)
    yellow_flag = db.Column(db.Boolean, nullable=True, default=False)

    is_frozen = db.Column(db.Boolean, nullable=False, default=False)
    frozen_at = db.Column(db.DateTime(timezone=True), nullable=True)
    frozen_by = db.Column(db.String(255), nullable=True)
    visible_to_bar1 = db.Column(db.Boolean, nullable=False, default=True)
    visible_to_bar2 = db.Column(db.Boolean, nullable=False, default=True)

    # Commercial metadata used by par levels and orders
    company = db.Column(db.String(255), nullable=True)
    distributor = db.Column(db.String(255), nullable=True)
    distributor_id = db.Column(
        db.Integer,
        db.ForeignKey("distributors.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    unit = db.Column(db.String(32), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    category = db.relationship("Category", backref=db.backref("products", lazy=True))

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} frozen={self.is_frozen}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "volume": self.volume,
            "category_id": self.category_id,
            "bar1": self.bar1,
            "bar2": self.bar2,
            "cold_room": self.cold_room,
            "order_index": self.order_index,
            "red_flag": self.red_flag,
            "green_flag": self.green_flag,
            "yellow_flag": self.yellow_flag,
            "is_frozen": self.is_frozen,
            "frozen_at": to_utc_z(self.frozen_at),
            "frozen_by": self.frozen_by,
            "visible_to_bar1": self.visible_to_bar1,
            "visible_to_bar2": self.visible_to_bar2,
            "company": self.company,
            "distributor": self.distributor,
            "distributor_id": self.distributor_id,
            "unit": self.unit,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Distributor(db.Model):
    """Supplier that receives order messages (WhatsApp number optional)."""
    __tablename__ = "distributors"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    # Digits only, e.g. "79991234567"
    whatsapp = db.Column(db.String(32), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Distributor id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "whatsapp": self.whatsapp,
            "created_at": to_utc_z(self.created_at),
        }


class ParLevel(db.Model):
    """Target total stock for a product. At most one row per product."""
    __tablename__ = "par_levels"
    __table_args__ = (
        db.UniqueConstraint("product_id", name="uq_par_levels_product"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(
        db.Integer,
        db.ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
    )
    total_par = db.Column(db.Float, nullable=False, default=0)

    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<ParLevel product_id={self.product_id} total_par={self.total_par}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "total_par": self.total_par,
            "updated_at": to_utc_z(self.updated_at),
        }
