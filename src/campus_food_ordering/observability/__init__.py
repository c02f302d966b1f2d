"""Logging, tracing and metrics for the campus food ordering service."""

from campus_food_ordering.observability.config import configure_logging, setup_observability
from campus_food_ordering.observability.decorators import traced

__all__ = ["configure_logging", "setup_observability", "traced"]
