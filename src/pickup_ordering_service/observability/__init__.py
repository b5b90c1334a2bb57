"""Logging, tracing and metrics for the ordering service."""

from pickup_ordering_service.observability.config import configure_logging, setup_observability
from pickup_ordering_service.observability.decorators import traced

__all__ = ["configure_logging", "setup_observability", "traced"]
