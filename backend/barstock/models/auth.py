from __future__ import annotations

from ..extensions import db
from barstock.time_utils import to_utc_z

ROLE_MANAGER = "manager"
ROLE_BAR1 = "bar1"
ROLE_BAR2 = "bar2"

# Stock columns each role may edit
ROLE_COLUMNS = {
    ROLE_MANAGER: ("bar1", "bar2", "cold_room"),
    ROLE_BAR1: ("bar1", "cold_room"),
    ROLE_BAR2: ("bar2",),
}


class UserProfile(db.Model):
    """
    Role assignment for an authenticated email.

    Authentication itself happens upstream; this table only maps the resolved
    identity to a role.
    """
    __tablename__ = "user_profiles"
    __table_args__ = (
        db.UniqueConstraint("email", name="uq_user_profiles_email"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(16), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    @property
    def available_columns(self) -> tuple[str, ...]:
        return ROLE_COLUMNS.get(self.role, ())

    @property
    def is_manager(self) -> bool:
        return self.role == ROLE_MANAGER

    def __repr__(self) -> str:
        return f"<UserProfile email={self.email!r} role={self.role}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "role": self.role,
            "available_columns": list(self.available_columns),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
