"""
Downtime notice for end users.

Registered on the transport as a text-message subscriber: while the
downtime controller is active every incoming text message is answered with
the localized "bot is down" notice.  Send failures are logged, never raised.
"""

from downtime_handler.adapters.telegram import IncomingText
from downtime_handler.config import Settings
from downtime_handler.utils.downtime import DowntimeController
from downtime_handler.utils.locales import resolve_locale, translate
from downtime_handler.utils.logger import get_logger

logger = get_logger(__name__)


class DowntimeNotice:
    def __init__(self, controller: DowntimeController, transport, settings: Settings):
        self._controller = controller
        self._transport = transport
        self._support = settings.SUPPORT_CHAT
        self._default_locale = settings.DEFAULT_LOCALE

    def render(self, locale_code) -> str:
        locale = resolve_locale(locale_code, default=self._default_locale)
        return translate(
            locale,
            "downtimeMessage",
            default=self._default_locale,
            support=self._support,
        )

    async def __call__(self, message: IncomingText) -> None:
        if not self._controller.is_active():
            return
        try:
            await self._transport.send_message(message.chat_id, self.render(message.locale_code))
        except Exception:
            logger.exception('Failed to send downtime notice to "%s".', message.user_id)
