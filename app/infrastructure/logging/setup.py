"""Structlog configuration for the relay.

Every event carries ``service`` and ``environment`` so relay lines can be
told apart from other workloads in the shared log group. Production renders
JSON; local runs use the console renderer. Under pytest nothing is emitted.

Usage:
    from infrastructure.logging import configure_logging, get_module_logger

    configure_logging()  # once, from the FastAPI lifespan

    logger = get_module_logger()
    logger.info("notification_sent", notification_id=notification.id)
"""

import inspect
import logging
import sys
from typing import Any, List, MutableMapping, Optional

import structlog
from structlog.stdlib import BoundLogger
from structlog.typing import Processor

SERVICE_NAME = "notification-relay"


def _is_test_environment() -> bool:
    return "pytest" in sys.modules


def service_labels(environment: str):
    """Processor adding the service name and environment to each event."""

    def _add_labels(
        _logger: Any, _method: str, event_dict: MutableMapping[str, Any]
    ) -> MutableMapping[str, Any]:
        event_dict.setdefault("service", SERVICE_NAME)
        event_dict.setdefault("environment", environment)
        return event_dict

    return _add_labels


def _silence_for_tests() -> BoundLogger:
    logging.basicConfig(format="%(message)s", level=logging.CRITICAL + 1, force=True)
    logging.root.setLevel(logging.CRITICAL + 1)
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    return structlog.stdlib.get_logger()


def build_processors(is_production: bool, environment: str) -> List[Processor]:
    """Processor chain shared by every relay logger."""
    processors: List[Processor] = [
        structlog.contextvars.merge_contextvars,
        service_labels(environment),
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.CallsiteParameterAdder(
            parameters=[
                structlog.processors.CallsiteParameter.FILENAME,
                structlog.processors.CallsiteParameter.LINENO,
                structlog.processors.CallsiteParameter.FUNC_NAME,
            ]
        ),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if is_production:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())
    return processors


def configure_logging(
    log_level: Optional[str] = None,
    is_production: Optional[bool] = None,
) -> BoundLogger:
    """Configure structlog and the stdlib root logger.

    Args:
        log_level: Overrides ``LOG_LEVEL`` from settings.
        is_production: Overrides ``settings.is_production`` (JSON output).

    Returns:
        A logger bound to the configured pipeline.
    """
    if _is_test_environment():
        return _silence_for_tests()

    from infrastructure.services.providers import get_settings

    settings = get_settings()
    log_level = log_level or settings.LOG_LEVEL
    if is_production is None:
        is_production = settings.is_production
    environment = "production" if is_production else (settings.PREFIX.strip("-") or "local")

    structlog.configure(
        processors=build_processors(is_production, environment),
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, log_level.upper(), logging.INFO),
    )
    return structlog.stdlib.get_logger()


def get_module_logger() -> BoundLogger:
    """Logger bound to the calling module.

    Binds ``component`` (last dotted segment) and ``module_path``, e.g.
    ``component="dispatcher"`` for ``modules.notifications.dispatcher``.
    """
    logger = structlog.stdlib.get_logger()

    current_frame = inspect.currentframe()
    caller = current_frame.f_back if current_frame is not None else None
    module = inspect.getmodule(caller) if caller is not None else None
    if module is None:
        return logger.bind(component="unknown")

    module_name = module.__name__
    return logger.bind(component=module_name.rsplit(".", 1)[-1], module_path=module_name)
