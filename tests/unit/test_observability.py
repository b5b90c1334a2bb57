"""Unit tests for logging and tracing helpers."""

import json
import logging
import os
from unittest.mock import MagicMock, patch

import pytest
from opentelemetry.sdk.trace import TracerProvider

from pickup_ordering_service.observability.config import (
    TraceContextFilter,
    build_providers,
    configure_logging,
    get_service_resource,
)
from pickup_ordering_service.observability.decorators import traced


def make_record() -> logging.LogRecord:
    return logging.LogRecord("orders", logging.INFO, __file__, 1, "Order placed", None, None)


@pytest.mark.unit
class TestTraceContextFilter:
    """Tests for TraceContextFilter."""

    def test_blank_ids_outside_span(self) -> None:
        """Test that records outside a span still carry both keys."""
        record = make_record()

        assert TraceContextFilter().filter(record) is True
        assert record.trace_id == ""
        assert record.span_id == ""

    def test_ids_inside_span(self) -> None:
        """Test that records inside a span carry hex trace and span ids."""
        tracer = TracerProvider().get_tracer("tests")
        record = make_record()

        with tracer.start_as_current_span("checkout") as span:
            TraceContextFilter().filter(record)
            context = span.get_span_context()

        assert record.trace_id == format(context.trace_id, "032x")
        assert len(record.span_id) == 16


@pytest.mark.unit
class TestConfigureLogging:
    """Tests for configure_logging function."""

    @pytest.fixture(autouse=True)
    def restore_root_logger(self):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield
        root.handlers = handlers
        root.setLevel(level)

    @patch.dict(os.environ, {}, clear=True)
    def test_single_json_handler(self) -> None:
        """Test that repeated calls leave exactly one handler."""
        configure_logging("DEBUG")
        configure_logging("DEBUG")

        root = logging.getLogger()
        assert len(root.handlers) == 1
        assert root.level == logging.DEBUG

    @patch.dict(os.environ, {"LOG_LEVEL": "warning"}, clear=True)
    def test_environment_level_wins(self) -> None:
        """Test that LOG_LEVEL overrides the argument."""
        configure_logging("DEBUG")

        assert logging.getLogger().level == logging.WARNING

    @patch.dict(os.environ, {}, clear=True)
    def test_unknown_level_falls_back_to_info(self) -> None:
        """Test that an unknown level name is treated as INFO."""
        configure_logging("CHATTY")

        assert logging.getLogger().level == logging.INFO

    @patch.dict(os.environ, {}, clear=True)
    def test_emits_json(self) -> None:
        """Test that formatted records are JSON with trace keys."""
        configure_logging("INFO")
        handler = logging.getLogger().handlers[0]
        record = make_record()
        handler.filter(record)

        payload = json.loads(handler.format(record))

        assert payload["message"] == "Order placed"
        assert payload["level"] == "INFO"
        assert "trace_id" in payload


@pytest.mark.unit
class TestProviders:
    """Tests for provider construction."""

    @patch.dict(os.environ, {"OTEL_SERVICE_NAME": "pickup-test", "ENVIRONMENT": "test"})
    def test_service_resource(self) -> None:
        """Test that the resource names the service and environment."""
        attributes = get_service_resource().attributes

        assert attributes["service.name"] == "pickup-test"
        assert attributes["deployment.environment"] == "test"

    def test_no_exporters_when_disabled(self) -> None:
        """Test that disabled export builds providers without span processors."""
        tracer_provider, meter_provider = build_providers(get_service_resource(), export=False)

        assert isinstance(tracer_provider, TracerProvider)
        assert meter_provider is not None


@pytest.mark.unit
class TestTraced:
    """Tests for the traced decorator."""

    def test_sync_function_returns_value(self) -> None:
        """Test that wrapped sync functions behave unchanged."""

        @traced("menu.lookup")
        def lookup(dish_id: str) -> str:
            return dish_id.upper()

        assert lookup("d1") == "D1"
        assert lookup.__name__ == "lookup"

    @pytest.mark.asyncio
    async def test_async_function_reraises(self) -> None:
        """Test that exceptions from wrapped coroutines propagate."""

        @traced()
        async def fail() -> None:
            raise ValueError("slot taken")

        with pytest.raises(ValueError, match="slot taken"):
            await fail()

    def test_failure_recorded_on_span(self) -> None:
        """Test that a raised error is attached to the span."""
        span = MagicMock()
        tracer = MagicMock()
        tracer.start_as_current_span.return_value.__enter__.return_value = span

        with patch("pickup_ordering_service.observability.decorators.trace.get_tracer", return_value=tracer):

            @traced("orders.update")
            def update() -> None:
                raise RuntimeError("backend down")

        with pytest.raises(RuntimeError):
            update()

        span.set_attribute.assert_any_call("success", False)
        span.record_exception.assert_called_once()
