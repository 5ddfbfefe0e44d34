"""
Structured JSON logging for the CeyLog API.

Every module logs through ``get_logger(__name__)``; ``setup_logging`` is called
once from ``create_app``. Records are emitted as single-line JSON on stdout so
the hosting platform's log drain can index them.

Example usage:
    >>> from core.logging import get_logger, setup_logging
    >>> setup_logging()
    >>> logger = get_logger(__name__)
    >>> logger.info("Report sent", extra={"actor_id": "uid_123"})
"""

import json
import logging
import sys
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

# LogRecord attributes that are not user supplied context
_RESERVED_ATTRS = {
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname', 'filename',
    'module', 'lineno', 'funcName', 'created', 'msecs', 'relativeCreated',
    'thread', 'threadName', 'processName', 'process', 'getMessage', 'exc_info',
    'exc_text', 'stack_info', 'taskName', 'message',
}


class JSONFormatter(logging.Formatter):
    """
    Format log records as one JSON object per line.

    Standard fields are ``time``, ``level``, ``logger`` and ``msg``. Anything
    passed through ``extra=`` is copied in as-is (falling back to ``str`` for
    values json cannot encode).
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry: Dict[str, Any] = {
            "time": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith('_'):
                log_entry[key] = value

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, ensure_ascii=False, default=str)


def get_client_ip(request: Request) -> str:
    """
    Resolve the caller's address, honouring proxy headers.

    Args:
        request: Incoming request

    Returns:
        First ``X-Forwarded-For`` hop, ``X-Real-IP``, the socket peer, or
        ``"unknown"``
    """
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()

    if request.client:
        return request.client.host

    return "unknown"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Log every request with a short correlation id and its duration.

    The id is stored on ``request.state.request_id`` and echoed back in the
    ``X-Request-ID`` response header.

    Example:
        >>> app = FastAPI()
        >>> app.add_middleware(RequestLoggingMiddleware)
    """

    def __init__(self, app, logger_name: str = "ceylog.requests"):
        super().__init__(app)
        self.logger = logging.getLogger(logger_name)

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = str(uuid.uuid4())[:8]
        request.state.request_id = request_id
        client_ip = get_client_ip(request)
        start_time = time.time()

        self.logger.info(
            f"Request started: {request.method} {request.url.path}",
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "client_ip": client_ip,
                "user_agent": request.headers.get("user-agent", ""),
            }
        )

        try:
            response = await call_next(request)
        except Exception as e:
            self.logger.error(
                f"Request failed: {request.method} {request.url.path}",
                extra={
                    "request_id": request_id,
                    "method": request.method,
                    "path": request.url.path,
                    "status": 500,
                    "duration_ms": int((time.time() - start_time) * 1000),
                    "client_ip": client_ip,
                    "error": str(e),
                },
                exc_info=True
            )
            raise

        self.logger.info(
            f"Request completed: {request.method} {request.url.path}",
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "status": response.status_code,
                "duration_ms": int((time.time() - start_time) * 1000),
                "client_ip": client_ip,
            }
        )
        response.headers["X-Request-ID"] = request_id
        return response


def setup_logging(
    level: str = "INFO",
    format_type: str = "json",
    logger_name: Optional[str] = None
) -> None:
    """
    Configure logging output for the process.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_type: ``"json"`` for structured output, anything else for plain text
        logger_name: Logger to configure (root logger when None)
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    if format_type.lower() == "json":
        formatter: logging.Formatter = JSONFormatter()
    else:
        formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    handler.setLevel(numeric_level)

    logger = logging.getLogger(logger_name) if logger_name else logging.getLogger()
    logger.handlers.clear()
    logger.addHandler(handler)
    logger.setLevel(numeric_level)
    if logger_name:
        logger.propagate = False


def get_logger(name: str) -> logging.Logger:
    """Return the logger for a module (use ``__name__``)."""
    return logging.getLogger(name)


def log_with_context(
    logger: logging.Logger,
    level: str,
    message: str,
    request: Optional[Request] = None,
    **kwargs
) -> None:
    """
    Log a message with the request id, path and client address attached.

    Example:
        >>> log_with_context(logger, "warning", "Audit write failed", request=request, actor_id=uid)
    """
    extra_fields = dict(kwargs)

    if request is not None:
        request_id = getattr(request.state, 'request_id', None)
        if request_id:
            extra_fields['request_id'] = request_id
        extra_fields['path'] = request.url.path
        extra_fields['method'] = request.method
        extra_fields['client_ip'] = get_client_ip(request)

    log_method = getattr(logger, level.lower(), logger.info)
    log_method(message, extra=extra_fields)
