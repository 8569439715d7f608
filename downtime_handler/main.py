"""
FastAPI application for the downtime handler.

The app exposes the control endpoint the primary bot's environment reports
to, and owns the lifetime of the Telegram transport, the user collection
handle and the downtime controller that ties them together.
"""

import asyncio
from contextlib import asynccontextmanager
from functools import partial
from typing import Optional

from fastapi import FastAPI

from downtime_handler.adapters.telegram import TelegramTransport
from downtime_handler.config import Settings, settings as default_settings
from downtime_handler.db.database import create_client, get_collection
from downtime_handler.middleware import ErrorBoundaryMiddleware, RequestIDMiddleware
from downtime_handler.routers import downtimeRouter
from downtime_handler.utils.alerts import build_oncall_alert
from downtime_handler.utils.downtime import DowntimeController
from downtime_handler.utils.logger import SERVICE_NAME, get_logger
from downtime_handler.utils.membershipManagement import update_block_state
from downtime_handler.utils.noticeManagement import DowntimeNotice

logger = get_logger(__name__)


def install_fatal_error_hook(loop: asyncio.AbstractEventLoop, controller: DowntimeController):
    """Stop the failover handler whenever an exception reaches the event loop."""
    previous = loop.get_exception_handler()
    pending = set()

    def halted(task: asyncio.Task) -> None:
        pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("Failed to stop failover handler.", exc_info=error)

    def handler(loop, context):
        logger.error(
            "Uncaught exception in event loop: %s",
            context.get("message"),
            exc_info=context.get("exception"),
        )
        task = loop.create_task(controller.halt_failover())
        pending.add(task)
        task.add_done_callback(halted)

    loop.set_exception_handler(handler)
    return previous


def create_app(
    settings: Optional[Settings] = None,
    transport=None,
    collection=None,
) -> FastAPI:
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        client = None
        transport_ = transport or TelegramTransport(settings.BOT_TOKEN)
        collection_ = collection
        if collection_ is None:
            client = create_client(settings)
            collection_ = get_collection(client, settings)

        controller = DowntimeController(
            transport_,
            delay=settings.DOWNTIME_DELAY,
            alert_factory=partial(build_oncall_alert, settings),
            forced=settings.FORCE_DOWNTIME,
        )
        transport_.on_membership_change(partial(update_block_state, collection_))
        transport_.on_text_message(DowntimeNotice(controller, transport_, settings))
        app.state.controller = controller

        loop = asyncio.get_running_loop()
        previous_handler = install_fatal_error_hook(loop, controller)
        await controller.start()
        logger.info(
            "Accepting requests via %s:%s/downtime", settings.SERVER_HOST, settings.SERVER_PORT
        )
        yield
        await controller.shutdown()
        loop.set_exception_handler(previous_handler)
        if transport is None:
            await transport_.close()
        if client is not None:
            await client.close()
        logger.info("Downtime handler shut down.")

    app = FastAPI(title="Downtime Handler", lifespan=lifespan)
    app.add_middleware(ErrorBoundaryMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.include_router(downtimeRouter.router)

    @app.get("/")
    async def index():
        """Liveness check."""
        return {"status": "ok", "service": SERVICE_NAME}

    return app


app = create_app()
