"""
Structured Logging Setup

Consistent logging configuration across all services.
Uses JSON format for structured logs in production.
"""

import logging
import sys
import os
from datetime import datetime, timezone
import json


class JsonFormatter(logging.Formatter):
    """JSON log formatter for structured logging"""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "service": getattr(record, "service", "unknown"),
            "message": record.getMessage(),
            "logger": record.name,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Add extra fields
        for key, value in record.__dict__.items():
            if key not in (
                "name", "msg", "args", "levelname", "levelno", "pathname",
                "filename", "module", "exc_info", "exc_text", "stack_info",
                "lineno", "funcName", "created", "msecs", "relativeCreated",
                "thread", "threadName", "processName", "process", "service",
                "message", "taskName",
            ):
                log_data[key] = value

        return json.dumps(log_data, default=str)


class ServiceLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that adds service name to all logs"""

    def process(self, msg: str, kwargs: dict) -> tuple[str, dict]:
        kwargs.setdefault("extra", {})
        kwargs["extra"]["service"] = self.extra.get("service", "unknown")
        return msg, kwargs


def setup_logging(
    service_name: str,
    log_level: str = "INFO",
    json_format: bool = True,
) -> logging.Logger:
    """
    Set up structured logging for a service.

    Args:
        service_name: Name of the service (e.g., "config.sync", "delivery")
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON format (True for production, False for dev)

    Returns:
        Configured logger instance
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    logger = logging.getLogger(f"consentkit.{service_name}")
    logger.setLevel(numeric_level)

    # Clear existing handlers
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(numeric_level)

    if json_format:
        formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    handler.setFormatter(formatter)
    logger.addHandler(handler)

    # Host applications own the root logger
    logger.propagate = False

    return logger


def get_service_logger(service_name: str) -> ServiceLoggerAdapter:
    """
    Get a logger adapter with service context.

    Args:
        service_name: Name of the service

    Returns:
        Logger adapter with service name in all logs
    """
    log_level = os.environ.get("CONSENTKIT_LOG_LEVEL", "INFO")
    json_format = os.environ.get("CONSENTKIT_LOG_FORMAT", "json").lower() == "json"

    logger = setup_logging(service_name, log_level, json_format)
    return ServiceLoggerAdapter(logger, {"service": service_name})


def configure_service_loggers(log_level: str, json_format: bool) -> None:
    """Re-apply level and format to every consentkit logger created so far."""
    for name in list(logging.root.manager.loggerDict):
        if name.startswith("consentkit."):
            setup_logging(name[len("consentkit."):], log_level, json_format)


# Convenience loggers for common operations
def log_config_source(
    logger: logging.LoggerAdapter,
    source: str,
    version: str,
    reason: str | None = None,
) -> None:
    """Log where the active configuration came from (network or cache)"""
    if source == "network":
        logger.info(
            f"Config loaded from network (version: {version})",
            extra={"config_source": source, "config_version": version},
        )
    else:
        logger.warning(
            f"Config loaded from cache (version: {version}): {reason}",
            extra={"config_source": source, "config_version": version, "reason": reason},
        )


def log_delivery(
    logger: logging.LoggerAdapter,
    endpoint: str,
    success: bool = True,
    error: str | None = None,
) -> None:
    """Log a backend delivery outcome"""
    if success:
        logger.debug(
            f"Delivered {endpoint}",
            extra={"endpoint": endpoint},
        )
    else:
        logger.warning(
            f"Delivery failed for {endpoint}, event queued: {error}",
            extra={"endpoint": endpoint, "error": error},
        )


def log_flush(
    logger: logging.LoggerAdapter,
    success_count: int,
    failure_count: int,
) -> None:
    """Log the outcome of a pending-event flush"""
    log_method = logger.warning if failure_count else logger.info
    log_method(
        f"Pending events flushed: {success_count} delivered, {failure_count} still pending",
        extra={"success_count": success_count, "failure_count": failure_count},
    )
