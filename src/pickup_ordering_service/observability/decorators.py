"""OpenTelemetry tracing decorators."""

import asyncio
import functools
from collections.abc import Callable
from typing import Any, TypeVar

from opentelemetry import trace
from opentelemetry.trace import Span

F = TypeVar("F", bound=Callable[..., Any])

SERVICE_NAME = "pickup-ordering-service"


def _record_failure(span: Span, error: Exception) -> None:
    span.set_attribute("success", False)
    span.set_attribute("error.type", type(error).__name__)
    span.set_attribute("error.message", str(error))
    span.record_exception(error)


def traced(span_name: str | None = None) -> Callable[[F], F]:
    """Decorator to run a function inside an OpenTelemetry span.

    The span is marked successful when the function returns and carries the
    exception details when it raises. The exception is re-raised.

    Args:
        span_name: Name for the span (defaults to the function's qualified name)

    Returns:
        Decorated function with tracing

    Example:
        @traced("checkout.place_order")
        async def place_order(self, cart_id: str) -> Order:
            ...
    """

    def decorator(func: F) -> F:
        name = span_name or func.__qualname__
        tracer = trace.get_tracer(SERVICE_NAME)

        if asyncio.iscoroutinefunction(func):

            @functools.wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                with tracer.start_as_current_span(name, record_exception=False) as span:
                    span.set_attribute("function.name", func.__name__)
                    try:
                        result = await func(*args, **kwargs)
                    except Exception as e:
                        _record_failure(span, e)
                        raise
                    span.set_attribute("success", True)
                    return result

            return async_wrapper  # type: ignore

        @functools.wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
            with tracer.start_as_current_span(name, record_exception=False) as span:
                span.set_attribute("function.name", func.__name__)
                try:
                    result = func(*args, **kwargs)
                except Exception as e:
                    _record_failure(span, e)
                    raise
                span.set_attribute("success", True)
                return result

        return sync_wrapper  # type: ignore

    return decorator
