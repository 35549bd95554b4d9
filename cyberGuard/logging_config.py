"""
Centralized logging configuration for cyberGuard.

Provides structured JSONL logging with rotation, context injection,
and component-specific loggers. Enabled by default with environment
variable configuration.

Request ID Propagation:
    Use `set_request_id()` to set the current request ID in async contexts.
    The request ID will be automatically included in all log records.

    Example:
        from cyberGuard.logging_config import set_request_id, get_logger

        # In middleware or request handler:
        set_request_id(str(uuid.uuid4()))

        # Later in any async code path:
        logger.info("Scanning", extra={"domain": "example.com"})
        # Log will include: "request_id": "<uuid>"
"""
import contextvars
import json
import logging
import logging.handlers
import os
import sys
import traceback
from datetime import datetime, timezone
from typing import Any, Dict, Optional


_request_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "request_id", default=""
)

# Extra attributes promoted to top-level JSON fields
EXTRA_ATTRS = [
    "request_id", "domain", "fqdn", "record_type", "nameserver", "attempt",
    "address", "port", "service", "duration", "status_code", "outcome", "state",
    "error_type", "error_kind", "truncated", "candidates", "found", "concurrency",
    "user_input", "action", "component",
]


def set_request_id(request_id: str) -> contextvars.Token:
    """
    Set the current request ID for this async context.

    Args:
        request_id: The request ID to set

    Returns:
        Token that can be used to reset the context variable
    """
    return _request_id_var.set(request_id)


def get_request_id() -> str:
    """Get the current request ID, or empty string if not set."""
    return _request_id_var.get()


def reset_request_id(token: contextvars.Token) -> None:
    _request_id_var.reset(token)


class JSONLFormatter(logging.Formatter):
    """
    Formatter that outputs logs in JSON Lines format.
    Each log entry is a single-line JSON object with standardized fields.
    Automatically includes request_id from contextvars if set.
    """

    def __init__(self, component: str = "cyberguard"):
        super().__init__()
        self.component = component
        self.hostname = os.getenv("HOSTNAME", os.getenv("COMPUTERNAME", "unknown"))

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc)
            .isoformat()
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "component": self.component,
            "logger": record.name,
            "message": record.getMessage(),
            "hostname": self.hostname,
            "process_id": record.process,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        request_id = get_request_id()
        if request_id:
            log_data["request_id"] = request_id

        if record.exc_info and record.exc_info[0] is not None:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": traceback.format_exception(*record.exc_info),
            }

        for attr in EXTRA_ATTRS:
            if hasattr(record, attr):
                log_data[attr] = getattr(record, attr)

        return json.dumps(log_data, default=str)


class ContextAdapter(logging.LoggerAdapter):
    """
    Logger adapter that automatically injects context into log records.
    Useful for pinning a domain or scan id onto every log in a code path.
    """

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        extra = kwargs.get("extra", {})
        extra.update(self.extra)
        kwargs["extra"] = extra
        return msg, kwargs


def setup_logging(
    component: str = "cyberguard",
    log_level: Optional[str] = None,
    log_file: Optional[str] = None,
    max_bytes: Optional[int] = None,
    backup_count: int = 10,
    enable_console: Optional[bool] = None,
) -> logging.Logger:
    """
    Set up logging configuration for a cyberGuard component.

    Args:
        component: Component name (resolver, aggregator, scanner, probe, api, cli)
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Path to log file (default: logs/cyberguard.jsonl)
        max_bytes: Max bytes per log file before rotation (default: 100MB)
        backup_count: Number of backup files to keep (default: 10)
        enable_console: Whether to enable console logging (default: env or True)

    Returns:
        Configured logger instance
    """
    log_level = (log_level or os.getenv("CYBERGUARD_LOG_LEVEL", "INFO")).upper()
    log_file = log_file or os.getenv("CYBERGUARD_LOG_FILE", "logs/cyberguard.jsonl")
    max_bytes = max_bytes or int(os.getenv("CYBERGUARD_LOG_MAX_BYTES", str(100 * 1024 * 1024)))
    if enable_console is None:
        enable_console = os.getenv("CYBERGUARD_LOG_CONSOLE", "1").lower() not in {"0", "false", "no"}

    numeric_level = getattr(logging, log_level, logging.INFO)

    logger = logging.getLogger(f"cyberguard.{component}")
    logger.setLevel(numeric_level)
    logger.propagate = False

    # Remove existing handlers to avoid duplicates
    logger.handlers.clear()

    log_dir = os.path.dirname(log_file)
    if log_dir and not os.path.exists(log_dir):
        os.makedirs(log_dir, exist_ok=True)

    formatter = JSONLFormatter(component=component)

    try:
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
    except OSError as e:
        sys.stderr.write(f"Failed to set up file logging to {log_file}: {e}\n")

    if enable_console:
        # stderr keeps stdout clean for --json output
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(numeric_level)
        console_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        logger.addHandler(console_handler)

    logger.debug(
        "Logging configured",
        extra={"state": "configured", "component": component},
    )

    return logger


def get_logger(component: str, context: Optional[Dict[str, Any]] = None) -> logging.Logger:
    """
    Get or create a logger for a component with optional context.

    Args:
        component: Component name (resolver, aggregator, scanner, probe, api, cli)
        context: Optional context dictionary to inject into all logs

    Returns:
        Logger or ContextAdapter if context is provided
    """
    logger = logging.getLogger(f"cyberguard.{component}")

    if not logger.handlers:
        logger = setup_logging(component)

    if context:
        return ContextAdapter(logger, context)

    return logger


def sanitize_log_data(data: Dict[str, Any], sensitive_keys: Optional[list] = None) -> Dict[str, Any]:
    """
    Sanitize sensitive data from log dictionaries.

    Args:
        data: Dictionary containing log data
        sensitive_keys: List of keys to redact (case-insensitive)

    Returns:
        Sanitized dictionary with sensitive values replaced
    """
    sensitive_keys = sensitive_keys or [
        "password", "passwd", "pwd", "token", "secret", "api_key",
        "apikey", "auth", "authorization",
    ]

    sanitized = {}
    for key, value in data.items():
        if any(sensitive in key.lower() for sensitive in sensitive_keys):
            sanitized[key] = "***REDACTED***"
        elif isinstance(value, dict):
            sanitized[key] = sanitize_log_data(value, sensitive_keys)
        elif isinstance(value, list) and value and isinstance(value[0], dict):
            sanitized[key] = [sanitize_log_data(item, sensitive_keys) for item in value]
        else:
            sanitized[key] = value

    return sanitized
