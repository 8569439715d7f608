"""
Telegram transport for the downtime handler.

Wraps an aiogram ``Bot``/``Dispatcher`` pair behind the handful of
capabilities the rest of the service needs: start and stop receiving
updates, send a message, and subscribe to membership changes and incoming
text messages.  Receiving is done with long polling, so starting the
transport is what actually takes traffic over from the primary bot.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode
from aiogram.types import (
    ChatMemberUpdated,
    InlineKeyboardButton,
    InlineKeyboardMarkup,
    Message,
    ReplyKeyboardRemove,
    TelegramObject,
    User,
)

from downtime_handler.utils.alerts import OnCallAlert
from downtime_handler.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class IncomingText:
    user_id: int
    chat_id: int
    locale_code: Optional[str]
    text: str


MembershipCallback = Callable[[int, str], Awaitable[None]]
TextCallback = Callable[[IncomingText], Awaitable[None]]
StartCallback = Callable[[User], Awaitable[None]]

# outer middlewares do not count towards resolve_used_update_types()
ALLOWED_UPDATES = ["message", "my_chat_member"]


class TelegramTransport:
    def __init__(self, token: str, bot: Optional[Bot] = None):
        self.bot = bot or Bot(
            token=token,
            default=DefaultBotProperties(parse_mode=ParseMode.HTML),
        )
        self.dispatcher = Dispatcher()
        self._membership_callbacks: List[MembershipCallback] = []
        self._text_callbacks: List[TextCallback] = []
        self._polling_task: Optional[asyncio.Task] = None
        self._background: set = set()

        self.dispatcher.message.outer_middleware(self._dispatch_message)
        self.dispatcher.my_chat_member.register(self._dispatch_membership)

    # --- subscriptions ---
    def on_membership_change(self, callback: MembershipCallback) -> None:
        self._membership_callbacks.append(callback)

    def on_text_message(self, callback: TextCallback) -> None:
        self._text_callbacks.append(callback)

    async def _dispatch_message(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: Message,
        data: Dict[str, Any],
    ) -> Any:
        if event.text is not None and event.from_user is not None:
            incoming = IncomingText(
                user_id=event.from_user.id,
                chat_id=event.chat.id,
                locale_code=event.from_user.language_code,
                text=event.text,
            )
            for callback in self._text_callbacks:
                await callback(incoming)
        return await handler(event, data)

    async def _dispatch_membership(self, event: ChatMemberUpdated) -> None:
        status = str(getattr(event.new_chat_member.status, "value", event.new_chat_member.status))
        for callback in self._membership_callbacks:
            await callback(event.from_user.id, status)

    # --- lifecycle ---
    @property
    def is_running(self) -> bool:
        return self._polling_task is not None and not self._polling_task.done()

    async def start(self, on_start: Optional[StartCallback] = None) -> None:
        """Begin polling in the background; ``on_start`` runs once the bot identity is known."""
        if self.is_running:
            logger.info("Polling already running, start ignored.")
            return
        self._polling_task = asyncio.create_task(self._poll(on_start))

    async def _poll(self, on_start: Optional[StartCallback]) -> None:
        try:
            bot_user = await self.bot.get_me()
            # getUpdates is rejected while the primary bot has a webhook set
            await self.bot.delete_webhook()
            if on_start is not None:
                self._spawn(on_start(bot_user))
            await self.dispatcher.start_polling(
                self.bot,
                allowed_updates=ALLOWED_UPDATES,
                handle_signals=False,
                close_bot_session=False,
            )
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Polling loop stopped unexpectedly.")

    async def stop(self) -> None:
        task = self._polling_task
        if task is None:
            return
        self._polling_task = None
        if task.done():
            return
        try:
            await self.dispatcher.stop_polling()
        except RuntimeError:
            # polling loop not entered yet (still resolving the bot identity)
            task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        logger.info("Polling stopped.")

    async def close(self) -> None:
        await self.stop()
        await self.bot.session.close()

    def _spawn(self, coro: Awaitable[Any]) -> None:
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    # --- sending ---
    async def send_message(self, chat_id: int, text: str) -> None:
        await self.bot.send_message(
            chat_id=chat_id,
            text=text,
            reply_markup=ReplyKeyboardRemove(remove_keyboard=True),
        )

    async def send_alert(self, alert: OnCallAlert) -> None:
        keyboard = InlineKeyboardMarkup(
            inline_keyboard=[
                [InlineKeyboardButton(text=alert.button_label, url=alert.dashboard_url)]
            ]
        )
        await self.bot.send_message(
            chat_id=alert.recipient,
            text=alert.text,
            reply_markup=keyboard,
        )
