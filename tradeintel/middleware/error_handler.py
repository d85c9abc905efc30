"""Last-resort error handling middleware."""

import logging
import traceback

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from tradeintel.exceptions import TradeIntelError
from tradeintel.middleware.logging import redact_pii

logger = logging.getLogger(__name__)


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Turn exceptions that escape the routers into safe JSON responses.

    Domain errors keep their status code; anything else becomes a 500 whose
    body carries no exception text outside debug mode, and then only
    redacted.
    """

    def __init__(self, app, debug: bool = False) -> None:
        super().__init__(app)
        self._debug = debug

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except TradeIntelError as exc:
            logger.warning("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, redact_pii(str(exc)))
            return JSONResponse(status_code=exc.status_code, content={"detail": redact_pii(str(exc))})
        except Exception as exc:
            error_msg = redact_pii(str(exc))
            logger.error(
                "Unhandled exception on %s %s: %s\n%s",
                request.method,
                request.url.path,
                error_msg,
                redact_pii(traceback.format_exc()),
            )
            content = {
                "detail": "An internal error occurred. Please try again later.",
                "error_type": type(exc).__name__,
            }
            if self._debug:
                content["message"] = error_msg
            return JSONResponse(status_code=500, content=content)
