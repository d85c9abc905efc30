"""Request logging middleware and structlog setup."""

import logging
import re
import time
import uuid
from typing import Callable

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"

EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
# Phone numbers: optional "+", at least 9 digits with common separators
PHONE_PATTERN = re.compile(r"(?<![\w.])\+?\d[\d\s().-]{7,}\d(?![\w.])")
_REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9-]{1,64}$")
_QUIET_PATHS = frozenset({"/health", "/health/ready", "/metrics"})


def redact_pii(text: str) -> str:
    """Redact email addresses and phone numbers from text."""
    text = EMAIL_PATTERN.sub("[REDACTED_EMAIL]", text)
    return PHONE_PATTERN.sub("[REDACTED_PHONE]", text)


def setup_logging(debug: bool = False) -> None:
    """Configure structlog for JSON output; console rendering in debug."""
    log_level = logging.DEBUG if debug else logging.INFO
    renderer = structlog.dev.ConsoleRenderer() if debug else structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(format="%(message)s", level=log_level)
    # httpx INFO lines include full request URLs
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _request_id(request: Request) -> str:
    incoming = request.headers.get(REQUEST_ID_HEADER, "")
    if _REQUEST_ID_PATTERN.match(incoming):
        return incoming
    return uuid.uuid4().hex[:12]


class LoggingMiddleware(BaseHTTPMiddleware):
    """Log one line per request, tagged with a request id.

    The id is taken from an inbound ``X-Request-ID`` when it looks sane,
    bound into structlog's context for the duration of the request and
    echoed back on the response. Health and metrics probes are not logged.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        request_id = _request_id(request)

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)
        logger = structlog.get_logger()
        start = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            duration_ms = round((time.perf_counter() - start) * 1000, 2)

        if path not in _QUIET_PATHS:
            log = logger.awarning if response.status_code >= 500 else logger.ainfo
            await log(
                "request_completed",
                method=request.method,
                path=redact_pii(path),
                status_code=response.status_code,
                duration_ms=duration_ms,
                client=request.client.host if request.client else "unknown",
            )

        response.headers[REQUEST_ID_HEADER] = request_id
        structlog.contextvars.unbind_contextvars("request_id")
        return response
