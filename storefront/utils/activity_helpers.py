# storefront/utils/activity_helpers.py
import logging
from sqlalchemy.ext.asyncio import AsyncSession
from storefront.models.activity_models import UserActivity
from storefront.models.auditable import SYSTEM_ACTOR

logger = logging.getLogger("storefront.audit")


async def log_user_activity(
    db: AsyncSession,
    user=None,
    message: str = "",
    entity_type: str | None = None,
    entity_id: int | None = None,
    commit: bool = False,
):
    """
    Adds an audit row to the session. The caller is responsible for the commit,
    so the row lands in the same transaction as the change it describes.
    """
    actor = getattr(user, "username", None) or SYSTEM_ACTOR
    activity = UserActivity(
        user_id=getattr(user, "id", None),
        actor=actor,
        entity_type=entity_type,
        entity_id=entity_id,
        message=message,
    )
    db.add(activity)
    logger.info("%s: %s", actor, message)
    if commit:
        await db.commit()
