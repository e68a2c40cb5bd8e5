"""
Logging setup
One root configuration plus named module loggers
"""

import logging
import time

from fastapi import Request

from elevateu.core.config import LOG_LEVEL, ENVIRONMENT

LOG_FORMAT = "%(asctime)s %(levelname)-7s [%(name)s] env=%(env)s %(message)s"


class _EnvironmentFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.env = ENVIRONMENT
        return True


def configure_logging() -> None:
    """Configure the root logger once at startup"""
    root = logging.getLogger()
    if any(getattr(h, "_elevateu", False) for h in root.handlers):
        return

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(_EnvironmentFilter())
    handler._elevateu = True

    root.addHandler(handler)
    root.setLevel(LOG_LEVEL.upper())


def get_module_logger(module_name: str) -> logging.Logger:
    return logging.getLogger(f"elevateu.{module_name}")


db_logger = get_module_logger("database")
auth_logger = get_module_logger("auth")
api_logger = get_module_logger("api")
socket_logger = get_module_logger("socket")
payment_logger = get_module_logger("payments")


async def log_requests(request: Request, call_next):
    """HTTP middleware: one line per request, level chosen by status code"""
    if request.url.path == "/health":
        return await call_next(request)

    started = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception:
        api_logger.exception("%s %s - 500", request.method, request.url.path)
        raise

    elapsed_ms = (time.perf_counter() - started) * 1000
    status = response.status_code
    if status >= 500:
        level = logging.ERROR
    elif status >= 400:
        level = logging.WARNING
    else:
        level = logging.INFO

    api_logger.log(level, "%s %s - %s (%.1fms)", request.method, request.url.path, status, elapsed_ms)
    return response
