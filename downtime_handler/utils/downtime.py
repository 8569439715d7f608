"""
Downtime state machine.

Owns the UP / PENDING_DOWN / DOWN status and turns "down" and "up" reports
into starting and stopping the failover handler.  A "down" report only
schedules a delayed check; the handler is started (and the on-call admin
alerted) when the check fires and the status is still PENDING_DOWN, which
absorbs outages that recover on their own within the grace delay.

All mutations happen under one ``asyncio.Lock`` so the delayed check and an
"up" report arriving at the same moment never interleave.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Optional

from downtime_handler.utils.alerts import OnCallAlert
from downtime_handler.utils.logger import get_logger

logger = get_logger(__name__)


class DowntimeStatus(str, Enum):
    UP = "up"
    PENDING_DOWN = "pending_down"
    DOWN = "down"


@dataclass
class DowntimeState:
    status: DowntimeStatus = DowntimeStatus.UP
    pending_since: Optional[datetime] = None
    forced: bool = False

    def as_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "pendingSince": self.pending_since.isoformat() if self.pending_since else None,
            "forced": self.forced,
            "active": self.status == DowntimeStatus.DOWN,
        }


class DowntimeController:
    def __init__(
        self,
        transport,
        delay: float,
        alert_factory: Callable[[], OnCallAlert],
        forced: bool = False,
    ):
        self._transport = transport
        self._delay = delay
        self._alert_factory = alert_factory
        self._lock = asyncio.Lock()
        self._timer: Optional[asyncio.Task] = None
        self._background: set = set()
        self.state = DowntimeState(forced=forced)
        if forced:
            self.state.status = DowntimeStatus.DOWN

    def is_active(self) -> bool:
        """Whether incoming messages should get the downtime notice."""
        return self.state.status == DowntimeStatus.DOWN

    @property
    def timer_pending(self) -> bool:
        return self._timer is not None and not self._timer.done()

    async def start(self) -> None:
        """Bring the failover handler up right away when downtime is forced."""
        if self.state.forced:
            logger.warning("Forced downtime enabled, starting failover handler without delay.")
            async with self._lock:
                await self._transport.start(on_start=self._on_forced_start)

    async def report_down(self) -> None:
        async with self._lock:
            if self.state.forced:
                logger.info("Down report ignored, downtime is forced.")
                return
            if self.state.status != DowntimeStatus.UP:
                logger.info(
                    "Down report ignored, already %s since %s.",
                    self.state.status.value,
                    self.state.pending_since,
                )
                return
            self.state.status = DowntimeStatus.PENDING_DOWN
            self.state.pending_since = datetime.now(timezone.utc)
            self._timer = asyncio.create_task(self._confirm_down())
            logger.info("Main instance reported down, confirming in %ss.", self._delay)

    async def report_up(self) -> None:
        async with self._lock:
            self._cancel_timer()
            was_down = self.state.status == DowntimeStatus.DOWN
            self.state.status = DowntimeStatus.UP
            self.state.pending_since = None
            self.state.forced = False
            if was_down:
                await self._transport.stop()
                logger.info("Main instance is back up, stopped handler.")
            else:
                logger.info("Main instance reported up, failover handler not started.")

    async def _confirm_down(self) -> None:
        await asyncio.sleep(self._delay)
        async with self._lock:
            if self._timer is not asyncio.current_task():
                logger.info("Downtime check fired after cancellation, ignoring.")
                return
            self._timer = None
            if self.state.status != DowntimeStatus.PENDING_DOWN:
                logger.info("Downtime check fired while %s, ignoring.", self.state.status.value)
                return
            self.state.status = DowntimeStatus.DOWN
            await self._transport.start(on_start=self._on_confirmed_start)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
            logger.info("Pending downtime check cancelled.")

    async def _on_forced_start(self, bot_user) -> None:
        logger.info('Forced downtime, handler running as "%s".', bot_user.id)

    async def _on_confirmed_start(self, bot_user) -> None:
        logger.warning('Main instance down, starting handler as "%s".', bot_user.id)
        self._spawn(self._send_alert(self._alert_factory()))

    async def _send_alert(self, alert: OnCallAlert) -> None:
        try:
            await self._transport.send_alert(alert)
            logger.info('On-call alert sent to "%s".', alert.recipient)
        except Exception:
            logger.exception('Failed to send on-call alert to "%s".', alert.recipient)

    def _spawn(self, coro) -> None:
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def halt_failover(self) -> None:
        """Stop the failover handler without touching the downtime status."""
        async with self._lock:
            await self._transport.stop()

    async def shutdown(self) -> None:
        async with self._lock:
            self._cancel_timer()
            await self._transport.stop()
        tasks = list(self._background)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
