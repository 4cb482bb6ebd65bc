"""
Structured logging for the SDK.

Log lines are structlog events rendered as JSON and routed through the
stdlib ``aizu`` logger, so host applications control handlers and levels
the usual way.
"""

import logging

import structlog


LOGGER_NAME = "aizu"


def configure_logging(debug: bool = False) -> None:
    """Configure structlog once and set the SDK log level.

    An application that already configured structlog keeps its processors.
    The ``aizu`` logger is process-wide, so debug output enabled by one
    client is never turned off by another client created later.
    """
    if not structlog.is_configured():
        structlog.configure(
            processors=[
                structlog.stdlib.filter_by_level,
                structlog.stdlib.add_logger_name,
                structlog.stdlib.add_log_level,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.JSONRenderer(),
            ],
            wrapper_class=structlog.stdlib.BoundLogger,
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )

    sdk_logger = logging.getLogger(LOGGER_NAME)
    if debug:
        sdk_logger.setLevel(logging.DEBUG)
        if not sdk_logger.handlers:
            sdk_logger.addHandler(logging.StreamHandler())
    elif sdk_logger.level == logging.NOTSET:
        sdk_logger.setLevel(logging.WARNING)


def get_logger(name: str = LOGGER_NAME):
    """Return a structlog logger bound to an ``aizu.*`` stdlib logger."""
    return structlog.get_logger(name)
