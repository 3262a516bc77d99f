import pytest
import structlog

from infrastructure.logging.setup import (
    SERVICE_NAME,
    build_processors,
    service_labels,
)


@pytest.mark.unit
def test_service_labels_added_without_overwriting():
    processor = service_labels("staging")

    event = processor(None, "info", {"event": "notification_sent"})
    overridden = processor(None, "info", {"event": "x", "environment": "custom"})

    assert event["service"] == SERVICE_NAME
    assert event["environment"] == "staging"
    assert overridden["environment"] == "custom"


@pytest.mark.unit
def test_production_chain_renders_json():
    processors = build_processors(is_production=True, environment="production")

    assert isinstance(processors[-1], structlog.processors.JSONRenderer)
    assert processors[0] is structlog.contextvars.merge_contextvars


@pytest.mark.unit
def test_local_chain_renders_console():
    processors = build_processors(is_production=False, environment="local")

    assert isinstance(processors[-1], structlog.dev.ConsoleRenderer)
