"""Prompts for local models"""

from .intent_classification import (
    INTENT_CLASSIFICATION_PROMPT,
    VALID_INTENTS,
    build_intent_prompt,
)

__all__ = [
    "INTENT_CLASSIFICATION_PROMPT",
    "VALID_INTENTS",
    "build_intent_prompt",
]
