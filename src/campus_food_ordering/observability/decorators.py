"""OpenTelemetry tracing decorators."""

import asyncio
import functools
from collections.abc import Callable
from typing import Any, TypeVar

from opentelemetry import trace
from opentelemetry.trace import Span

F = TypeVar("F", bound=Callable[..., Any])


def _record_arguments(span: Span, record_args: tuple[str, ...], kwargs: dict[str, Any]) -> None:
    for name in record_args:
        if name in kwargs and kwargs[name] is not None:
            span.set_attribute(f"arg.{name}", str(kwargs[name]))


def _record_failure(span: Span, error: Exception) -> None:
    span.set_attribute("success", False)
    span.set_attribute("error.type", type(error).__name__)
    span.record_exception(error)


def traced(
    span_name: str | None = None,
    service_name: str = "campus-food-ordering",
    record_args: tuple[str, ...] = (),
) -> Callable[[F], F]:
    """Decorator that wraps a function call in an OpenTelemetry span.

    Exceptions are recorded on the span and re-raised. Keyword arguments named
    in ``record_args`` are attached to the span as ``arg.<name>`` attributes.

    Args:
        span_name: Name for the span (defaults to the function name)
        service_name: Tracer name and ``service.name`` span attribute
        record_args: Keyword argument names to copy onto the span

    Returns:
        Decorated function with tracing

    Example:
        @traced("checkout.place_order", record_args=("user_id",))
        async def place_order(user_id: str, cart_lines: list[CartLine]) -> CheckoutResult:
            ...
    """

    def decorator(func: F) -> F:
        name = span_name or func.__name__
        tracer = trace.get_tracer(service_name)

        @functools.wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            with tracer.start_as_current_span(name) as span:
                span.set_attribute("service.name", service_name)
                _record_arguments(span, record_args, kwargs)
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    _record_failure(span, e)
                    raise
                span.set_attribute("success", True)
                return result

        @functools.wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
            with tracer.start_as_current_span(name) as span:
                span.set_attribute("service.name", service_name)
                _record_arguments(span, record_args, kwargs)
                try:
                    result = func(*args, **kwargs)
                except Exception as e:
                    _record_failure(span, e)
                    raise
                span.set_attribute("success", True)
                return result

        if asyncio.iscoroutinefunction(func):
            return async_wrapper  # type: ignore
        return sync_wrapper  # type: ignore

    return decorator
