"""
Process entry point.

Loads settings (aborting on missing or invalid environment variables) and
serves the downtime handler's control endpoint with uvicorn.
"""

import uvicorn

from downtime_handler.config import settings
from downtime_handler.main import app


if __name__ == "__main__":
    uvicorn.run(
        app,
        host=settings.SERVER_HOST,
        port=settings.SERVER_PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )
