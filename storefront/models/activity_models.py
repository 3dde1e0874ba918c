# storefront/models/activity_models.py
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.sql import func
from storefront.core.db import Base


class UserActivity(Base):
    """Audit trail of back-office mutations (promotions, orders)."""

    __tablename__ = "user_activity"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    actor = Column(String, nullable=False)  # username, or "system" for sweeps
    entity_type = Column(String(30), nullable=True, index=True)
    entity_id = Column(Integer, nullable=True)
    message = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
