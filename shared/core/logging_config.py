"""
Structured JSON logging for the storefront service.

Every record becomes one JSON line carrying the service identity, the
request trace context (request id, correlation id, user id) and, when
present, the exception and any ``extra_fields`` passed by the caller.
"""

import json
import logging
import logging.handlers
import re
import sys
import time
import traceback
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"
CORRELATION_ID_HEADER = "X-Correlation-ID"

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)
user_id_var: ContextVar[Optional[str]] = ContextVar("user_id", default=None)


class StructuredFormatter(logging.Formatter):
    """Formats log records as single-line JSON documents."""

    def __init__(self, service: str = "unknown-service", environment: str = "development", version: str = "1.0.0"):
        super().__init__()
        self.service = service
        self.environment = environment
        self.version = version

    def format(self, record: logging.LogRecord) -> str:
        log_obj: Dict[str, Any] = {
            "@timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service,
            "environment": self.environment,
            "version": self.version,
        }

        trace = get_trace_context()
        if trace:
            log_obj["trace"] = trace

        log_obj["location"] = {
            "file": record.pathname,
            "line": record.lineno,
            "function": record.funcName,
        }

        if record.exc_info and record.exc_info[0] is not None:
            log_obj["error"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "stacktrace": traceback.format_exception(*record.exc_info),
            }

        extra_fields = getattr(record, "extra_fields", None)
        if extra_fields:
            log_obj["custom"] = extra_fields

        duration_ms = getattr(record, "duration_ms", None)
        if duration_ms is not None:
            log_obj["performance"] = {"duration_ms": round(duration_ms, 2)}

        return json.dumps(log_obj, default=str)


class SecurityFilter(logging.Filter):
    """Masks bearer tokens and ``secret=value`` style pairs in log messages."""

    SENSITIVE_KEYS = ("password", "token", "api_key", "apikey", "secret", "authorization", "cookie")
    _pair = re.compile(r"(?i)\b(" + "|".join(SENSITIVE_KEYS) + r")(\s*[=:]\s*)([^\s,;&]+)")
    _bearer = re.compile(r"(?i)\bbearer\s+[A-Za-z0-9\-_\.=]+")

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = self._bearer.sub("Bearer ***REDACTED***", message)
        redacted = self._pair.sub(r"\1\2***REDACTED***", redacted)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def setup_logging(
    service_name: str,
    level: str = "INFO",
    environment: str = "development",
    version: str = "1.0.0",
    log_file: Optional[str] = None,
) -> None:
    """
    Route the root logger through the JSON formatter.

    Args:
        service_name: Name reported in every record
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        environment: Deployment environment label
        version: Service version label
        log_file: Optional path for a rotating file handler next to stdout
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    root_logger.handlers = []

    formatter = StructuredFormatter(service=service_name, environment=environment, version=version)
    handlers: list = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.handlers.RotatingFileHandler(log_file, maxBytes=10485760, backupCount=5))
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(SecurityFilter())
        root_logger.addHandler(handler)

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)

    root_logger.info(
        "Logging initialized",
        extra={"extra_fields": {"service": service_name, "level": level, "file": bool(log_file)}},
    )


class LoggerAdapter(logging.LoggerAdapter):
    """Adapter that keeps caller ``extra`` intact; trace context is added by the formatter."""

    def process(self, msg, kwargs):
        kwargs["extra"] = {**(self.extra or {}), **kwargs.get("extra", {})}
        return msg, kwargs


def get_logger(name: str) -> LoggerAdapter:
    return LoggerAdapter(logging.getLogger(name), {})


def get_trace_context() -> Optional[Dict[str, str]]:
    context = {
        "request_id": request_id_var.get(),
        "correlation_id": correlation_id_var.get(),
        "user_id": user_id_var.get(),
    }
    context = {key: value for key, value in context.items() if value}
    return context or None


def set_request_context(
    request_id: Optional[str] = None,
    correlation_id: Optional[str] = None,
    user_id: Optional[str] = None,
) -> None:
    if request_id:
        request_id_var.set(request_id)
    if correlation_id:
        correlation_id_var.set(correlation_id)
    if user_id:
        user_id_var.set(user_id)


def clear_request_context() -> None:
    request_id_var.set(None)
    correlation_id_var.set(None)
    user_id_var.set(None)


def generate_request_id() -> str:
    return str(uuid.uuid4())


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs each request's start and outcome with its duration, and echoes the
    request id back in the ``X-Request-ID`` response header.

    ``user_resolver`` maps a request to the caller's user id, which then rides
    along in the trace context of every record logged for that request.
    """

    def __init__(self, app, user_resolver: Optional[Callable[[Request], Optional[str]]] = None):
        super().__init__(app)
        self.user_resolver = user_resolver

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or generate_request_id()
        clear_request_context()
        set_request_context(
            request_id=request_id,
            correlation_id=request.headers.get(CORRELATION_ID_HEADER),
            user_id=self.user_resolver(request) if self.user_resolver else None,
        )

        logger = get_logger(__name__)
        fields = {"method": request.method, "path": request.url.path}
        logger.debug(f"Request started: {request.method} {request.url.path}", extra={"extra_fields": fields})

        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.error(
                f"Request failed: {request.method} {request.url.path}",
                exc_info=True,
                extra={"extra_fields": fields, "duration_ms": (time.perf_counter() - start) * 1000},
            )
            raise

        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        logger.log(
            level,
            f"Request completed: {request.method} {request.url.path} {response.status_code}",
            extra={
                "extra_fields": {**fields, "status_code": response.status_code},
                "duration_ms": (time.perf_counter() - start) * 1000,
            },
        )
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
