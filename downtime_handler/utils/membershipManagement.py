from downtime_handler.db.models import (
    HAS_BLOCKED_FIELD,
    TELEGRAM_ID_FIELD,
    MembershipStatus,
)
from downtime_handler.utils.logger import get_logger

logger = get_logger(__name__)


def is_blocked(status: str) -> bool:
    return status == MembershipStatus.KICKED.value


async def update_block_state(collection, user_id: int, status: str) -> None:
    """
    Persist whether a user has blocked the bot after a membership change.

    Only the nested block flag is set; the rest of the document is left alone.
    Failures are logged and swallowed so a broken write never reaches the
    update dispatcher.
    """
    has_blocked = is_blocked(status)
    try:
        result = await collection.update_one(
            {TELEGRAM_ID_FIELD: user_id},
            {"$set": {HAS_BLOCKED_FIELD: has_blocked}},
        )
    except Exception as exc:
        logger.error(
            'Failed to update block state for "%s", got "%s".',
            user_id,
            exc,
            exc_info=True,
        )
        return

    if result.matched_count == 0:
        logger.warning('No user document found for "%s", block state not saved.', user_id)
        return
    logger.info('Set block state to "%s" for user "%s".', has_blocked, user_id)
