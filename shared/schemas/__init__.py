"""Shared schemas for intent routing"""

from .intent import (
    DEFAULT_INTENT,
    IntentEntry,
    IntentPayload,
)

__all__ = [
    "DEFAULT_INTENT",
    "IntentEntry",
    "IntentPayload",
]
