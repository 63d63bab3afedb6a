"""
DigiDiploma - Centralized Logging Configuration
JSON lines in production, readable text with request context everywhere else
"""

import logging
import sys
import json
import traceback
import uuid
from datetime import datetime
from pathlib import Path
from logging.handlers import RotatingFileHandler
from typing import Any, Dict
from contextvars import ContextVar

from app.core.config import settings


# Context variables for request tracing
request_id_var: ContextVar[str] = ContextVar('request_id', default='')
user_id_var: ContextVar[str] = ContextVar('user_id', default='')
client_ip_var: ContextVar[str] = ContextVar('client_ip', default='')

LOG_MAX_BYTES = 10 * 1024 * 1024
LOG_BACKUP_COUNT = 5

# LogRecord attributes that are never copied into the JSON payload
_RESERVED_ATTRS = frozenset([
    'name', 'msg', 'args', 'created', 'filename', 'funcName',
    'levelname', 'levelno', 'lineno', 'module', 'msecs',
    'pathname', 'process', 'processName', 'relativeCreated',
    'stack_info', 'exc_info', 'exc_text', 'thread', 'threadName',
    'message', 'taskName', 'request_id', 'user_id', 'client_ip',
])


def get_request_id() -> str:
    return request_id_var.get() or ''


def set_request_id(request_id: str) -> None:
    request_id_var.set(request_id)


def get_user_id() -> str:
    return user_id_var.get() or ''


def set_user_id(user_id: str) -> None:
    user_id_var.set(user_id)


def get_client_ip() -> str:
    return client_ip_var.get() or ''


def set_client_ip(client_ip: str) -> None:
    client_ip_var.set(client_ip)


def generate_request_id() -> str:
    """Generate a short unique request ID"""
    return uuid.uuid4().hex[:12]


class JSONFormatter(logging.Formatter):
    """
    One JSON object per line, for log shippers in production.
    Request context and any `extra=` fields are folded into the object.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for key, value in (
            ("request_id", get_request_id()),
            ("user_id", get_user_id()),
            ("client_ip", get_client_ip()),
        ):
            if value:
                log_data[key] = value

        if record.exc_info:
            exc_type, exc_value, _ = record.exc_info
            log_data["exception"] = {
                "type": exc_type.__name__ if exc_type else None,
                "message": str(exc_value) if exc_value else None,
                "traceback": traceback.format_exception(*record.exc_info) if exc_type else None,
            }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith('_'):
                log_data[key] = value

        return json.dumps(log_data, default=str)


class ContextualFormatter(logging.Formatter):
    """Plain-text formatter that exposes request_id/user_id to the format string"""

    def format(self, record: logging.LogRecord) -> str:
        record.request_id = get_request_id() or '-'
        record.user_id = get_user_id() or '-'
        record.client_ip = get_client_ip() or '-'
        return super().format(record)


class DigiDiplomaLogger(logging.Logger):
    """
    Logger with helpers for the events this API emits most
    """

    def log_request(self, method: str, path: str, status_code: int,
                    duration_ms: float, **kwargs) -> None:
        """Log HTTP request details"""
        if status_code >= 500:
            level = logging.ERROR
        elif status_code >= 400:
            level = logging.WARNING
        else:
            level = logging.INFO
        self.log(
            level,
            f"HTTP {method} {path} - {status_code} ({duration_ms:.2f}ms)",
            extra={
                "event_type": "http_request",
                "http_method": method,
                "http_path": path,
                "http_status": status_code,
                "duration_ms": duration_ms,
                **kwargs
            }
        )

    def log_db_query(self, operation: str, table: str, duration_ms: float,
                     rows_affected: int = 0, **kwargs) -> None:
        """Log bulk statements with their row counts"""
        self.debug(
            f"DB {operation} on {table} - {rows_affected} rows ({duration_ms:.2f}ms)",
            extra={
                "event_type": "db_query",
                "db_operation": operation,
                "db_table": table,
                "duration_ms": duration_ms,
                "rows_affected": rows_affected,
                **kwargs
            }
        )

    def log_auth_event(self, event: str, success: bool, user_email: str = None,
                       reason: str = None, **kwargs) -> None:
        """Log authentication events (login, register, otp, password changes)"""
        level = logging.INFO if success else logging.WARNING
        self.log(
            level,
            f"Auth {event}: {'success' if success else 'failed'}" +
            (f" - {user_email}" if user_email else "") +
            (f" - {reason}" if reason else ""),
            extra={
                "event_type": "auth",
                "auth_event": event,
                "auth_success": success,
                "user_email": user_email,
                "failure_reason": reason,
                **kwargs
            }
        )

    def log_integration_event(self, provider: str, operation: str, success: bool,
                              fallback: str = None, **kwargs) -> None:
        """Log calls into vendor SDKs (R2, SendGrid, SMTP, Razorpay, FCM)"""
        level = logging.INFO if success else logging.WARNING
        self.log(
            level,
            f"[{provider}] {operation}: {'ok' if success else 'failed'}" +
            (f" - falling back to {fallback}" if fallback else ""),
            extra={
                "event_type": "integration",
                "provider": provider,
                "operation": operation,
                "integration_success": success,
                "fallback": fallback,
                **kwargs
            }
        )

    def log_error_with_context(self, error: Exception, context: str = None,
                               **kwargs) -> None:
        """Log error with full context"""
        self.error(
            f"Error in {context}: {type(error).__name__}: {str(error)}",
            exc_info=True,
            extra={
                "event_type": "error",
                "error_type": type(error).__name__,
                "error_message": str(error),
                "error_context": context,
                **kwargs
            }
        )

    def log_performance(self, operation: str, duration_ms: float,
                        threshold_ms: float = 1000, **kwargs) -> None:
        """Log performance metrics, warn if over threshold"""
        exceeded = duration_ms > threshold_ms
        self.log(
            logging.WARNING if exceeded else logging.DEBUG,
            f"Performance: {operation} took {duration_ms:.2f}ms" +
            (f" (threshold: {threshold_ms}ms)" if exceeded else ""),
            extra={
                "event_type": "performance",
                "operation": operation,
                "duration_ms": duration_ms,
                "threshold_ms": threshold_ms,
                "exceeded_threshold": exceeded,
                **kwargs
            }
        )


def _file_handler(formatter: logging.Formatter) -> RotatingFileHandler:
    log_file = Path(settings.LOG_DIR) / "digidiploma.log"
    log_file.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        log_file,
        maxBytes=LOG_MAX_BYTES,
        backupCount=LOG_BACKUP_COUNT
    )
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(formatter)
    return handler


def setup_logging() -> DigiDiplomaLogger:
    """Setup logging configuration based on environment"""

    logging.setLoggerClass(DigiDiplomaLogger)

    logger = logging.getLogger("digidiploma")
    logger.__class__ = DigiDiplomaLogger
    logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
    logger.handlers.clear()
    logger.propagate = False

    is_production = settings.is_production()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)

    if is_production:
        json_formatter = JSONFormatter()
        console_handler.setFormatter(json_formatter)
        logger.addHandler(console_handler)
        if settings.LOG_DIR:
            logger.addHandler(_file_handler(json_formatter))
    else:
        detailed_formatter = ContextualFormatter(
            "%(asctime)s | %(levelname)-8s | "
            "[%(request_id)s] [%(user_id)s] %(client_ip)s | "
            "%(funcName)s:%(lineno)d | %(message)s"
        )
        console_handler.setFormatter(ContextualFormatter("%(levelname)-8s | [%(request_id)s] %(message)s"))
        logger.addHandler(console_handler)
        if settings.LOG_DIR:
            logger.addHandler(_file_handler(detailed_formatter))

    # Suppress noisy loggers
    for noisy in ("httpx", "httpcore", "botocore", "boto3", "urllib3",
                  "uvicorn.access", "sqlalchemy.engine"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logger.info(
        "Logging initialized",
        extra={
            "environment": settings.ENVIRONMENT,
            "log_level": settings.LOG_LEVEL,
            "json_logging": is_production
        }
    )

    return logger


logger: DigiDiplomaLogger = setup_logging()


__all__ = [
    'logger',
    'setup_logging',
    'get_request_id',
    'set_request_id',
    'get_user_id',
    'set_user_id',
    'get_client_ip',
    'set_client_ip',
    'generate_request_id',
    'DigiDiplomaLogger',
]
