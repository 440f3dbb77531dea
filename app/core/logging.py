import json
import logging
import time
from logging.handlers import RotatingFileHandler
from datetime import datetime, timezone

from fastapi import Request

from app.core.config import settings


class JsonFormatter(logging.Formatter):
    """JSON log formatter with support for extra fields."""

    # Fields to extract from log record's extra dict
    EXTRA_FIELDS = (
        "client_id", "provider_id", "user_id", "reference", "purpose",
        "method", "operator", "amount", "status", "attempt", "reason",
        "is_new_view", "views_count", "settlement_latency_seconds",
        "path", "status_code", "latency_ms", "error",
        "breaker_name", "old_state", "new_state",
    )

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for field in self.EXTRA_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                payload[field] = value

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        # Enums, datetimes and Decimals arrive through extra
        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging() -> None:
    formatter = JsonFormatter()
    stream = logging.StreamHandler()
    stream.setFormatter(formatter)
    handlers: list[logging.Handler] = [stream]
    if settings.log_file:
        file_handler = RotatingFileHandler(
            settings.log_file,
            maxBytes=settings.log_max_bytes,
            backupCount=settings.log_backup_count,
        )
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    root = logging.getLogger()
    root.setLevel(settings.log_level.upper())
    root.handlers = handlers
    # Request lines come from log_requests
    logging.getLogger("uvicorn.access").disabled = True


request_logger = logging.getLogger("http")


async def log_requests(request: Request, call_next):
    """HTTP middleware: one structured line per request, tagged with the caller."""
    started = time.perf_counter()
    response = await call_next(request)
    request_logger.info(
        "http_request",
        extra={
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "latency_ms": round((time.perf_counter() - started) * 1000, 1),
            "client_id": request.headers.get(settings.client_id_header),
        },
    )
    return response
