"""Domain services."""

from . import delivery_decision
from .serialization import serialize_notification

__all__ = ["delivery_decision", "serialize_notification"]
