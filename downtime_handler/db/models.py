"""
Layout of the user documents shared with the primary bot.

The collection is owned by the primary bot; this service only ever touches
the block flag inside the nested settings object.
"""

from enum import Enum

TELEGRAM_ID_FIELD = "telegramId"
HAS_BLOCKED_FIELD = "userSettings.hasBlocked"


class MembershipStatus(str, Enum):
    CREATOR = "creator"
    ADMINISTRATOR = "administrator"
    MEMBER = "member"
    RESTRICTED = "restricted"
    LEFT = "left"
    KICKED = "kicked"
