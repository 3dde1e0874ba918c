# storefront/models/auditable.py
from sqlalchemy import Column, DateTime, String, select

SYSTEM_ACTOR = "system"


class Auditable:
    """
    Soft-delete overlay shared by discounts, coupons and orders.

    A row with ``deleted_at`` set is gone from active listings but stays
    readable for history and audit.
    """

    deleted_at = Column(DateTime(timezone=True), nullable=True, index=True)
    deleted_by = Column(String(100), nullable=True)
    deletion_reason = Column(String(255), nullable=True)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def mark_deleted(self, deleted_by: str, reason: str | None, when):
        self.deleted_at = when
        self.deleted_by = deleted_by
        self.deletion_reason = reason


def admin_actor(user_id: int) -> str:
    return f"admin:{user_id}"


def active_only(model, stmt=None):
    """Select (or narrow ``stmt`` to) rows that have not been soft-deleted."""
    if stmt is None:
        stmt = select(model)
    return stmt.where(model.deleted_at.is_(None))


def history(model, stmt=None):
    """Select every row, deleted ones included."""
    if stmt is None:
        stmt = select(model)
    return stmt
