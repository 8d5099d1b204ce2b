"""
Structured JSON logging for the reports page and its data sources.

Usage:
    from delivery_reports.app.logging import configure_logging, get_logger

    # At page start-up; Streamlit reruns make repeat calls cheap no-ops
    configure_logging("delivery-reports", log_level="INFO")

    # In any module
    logger = get_logger(__name__)
    logger.info("report_fetch_started", report_type="monthly")
"""

import logging
import sys
from typing import Optional, Tuple

import structlog

# Loggers of libraries the page runs under, routed to our stream.
_THIRD_PARTY_LOGGERS = ("streamlit",)

_active_settings: Optional[Tuple[str, int]] = None
_active_handler: Optional[logging.Handler] = None


def _is_active(settings: Tuple[str, int]) -> bool:
    return (
        settings == _active_settings
        and _active_handler is not None
        and _active_handler in logging.getLogger().handlers
    )


def configure_logging(service_name: str, log_level: str = "INFO") -> bool:
    """
    Configure structlog to render one JSON object per line on stdout.

    Every entry carries the ISO timestamp, level, logger name, the service
    name and any values bound through ``structlog.contextvars``.

    Streamlit re-executes the page script on every interaction, so a call
    with the settings already in force does nothing. Returns True when the
    configuration was (re)applied.
    """
    global _active_settings, _active_handler

    level = getattr(logging, log_level.upper(), logging.INFO)
    settings = (service_name, level)
    if _is_active(settings):
        return False

    def add_service_name(logger, method_name, event_dict):
        event_dict["service"] = service_name
        return event_dict

    structlog.configure(
        processors=[
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.StackInfoRenderer(),
            add_service_name,
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger = logging.getLogger()
    for h in root_logger.handlers[:]:
        root_logger.removeHandler(h)
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    for name in _THIRD_PARTY_LOGGERS:
        lib_logger = logging.getLogger(name)
        lib_logger.handlers = [handler]
        lib_logger.propagate = False

    _active_settings = settings
    _active_handler = handler
    return True


def get_logger(name: str):
    """Structured logger for a module (pass ``__name__``)."""
    return structlog.get_logger(name)
