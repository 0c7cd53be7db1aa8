from __future__ import annotations

from ..extensions import db
from barstock.time_utils import to_utc_z


class ProductAction(db.Model):
    """
    Append-only audit trail of manager actions on products.

    product_id is intentionally not a foreign key: delete records must outlive
    the product row they describe.

    Bulk actions (scenario sweeps, reorders) are stored against the first
    affected product; the full id list lives in metadata["affected_ids"].
    """
    __tablename__ = "product_actions"
    __table_args__ = (
        db.Index("ix_product_actions_performed_at", "performed_at"),
        db.Index("ix_product_actions_product", "product_id", "performed_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, nullable=False)
    action = db.Column(db.String(16), nullable=False, index=True)
    performed_by = db.Column(db.String(255), nullable=False, index=True)
    performed_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    # "metadata" is reserved on declarative classes
    details = db.Column("metadata", db.JSON, nullable=True)

    def __repr__(self) -> str:
        return f"<ProductAction id={self.id} action={self.action} product_id={self.product_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "action": self.action,
            "performed_by": self.performed_by,
            "performed_at": to_utc_z(self.performed_at),
            "metadata": self.details or {},
        }
