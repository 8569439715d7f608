"""HTTP middleware: request id propagation and the process-wide error boundary."""

import uuid

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from downtime_handler.utils.logger import get_logger

logger = get_logger(__name__)

ERROR_MESSAGE = "Error, check your request."


class RequestIDMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


class ErrorBoundaryMiddleware(BaseHTTPMiddleware):
    """Turn any exception escaping a route into the generic error payload (status 200)."""

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as exc:
            request_id = getattr(request.state, "request_id", None)
            logger.exception(
                "Unhandled exception on %s %s",
                request.method,
                request.url.path,
                extra={"request_id": request_id},
            )
            return JSONResponse(
                status_code=200,
                content={
                    "message": ERROR_MESSAGE,
                    "err": {"type": type(exc).__name__, "detail": str(exc)},
                },
            )
