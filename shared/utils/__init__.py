"""Shared utilities module"""

from shared.utils.intent_responses import (
    get_suggested_response,
    greeting_response,
    limited_mode_response,
    is_memory_question,
)

__all__ = [
    "get_suggested_response",
    "greeting_response",
    "limited_mode_response",
    "is_memory_question",
]
