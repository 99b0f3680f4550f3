"""Canonical intent payload schema"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, model_validator

DEFAULT_INTENT = "question"


class IntentEntry(BaseModel):
    """A single classified intent"""

    intent: str
    confidence: float = 0.8
    reasoning: Optional[str] = None

    class Config:
        extra = "allow"


class IntentPayload(BaseModel):
    """Normalized intent classification

    Always carries at least one intent and a non-empty primary intent.
    Fields accept both snake_case names and the camelCase wire aliases.
    """

    intents: List[IntentEntry] = Field(default_factory=list)
    primary_intent: str = Field(default="", alias="primaryIntent")
    entities: List[Any] = Field(default_factory=list)
    requires_memory_access: bool = Field(default=False, alias="requiresMemoryAccess")
    capture_screen: Optional[bool] = Field(default=None, alias="captureScreen")
    source_text: Optional[str] = Field(default=None, alias="sourceText")
    suggested_response: Optional[str] = Field(default=None, alias="suggestedResponse")

    class Config:
        populate_by_name = True
        extra = "allow"

    @model_validator(mode="after")
    def _ensure_intent(self) -> "IntentPayload":
        if not self.intents:
            self.intents = [IntentEntry(intent=self.primary_intent or DEFAULT_INTENT)]
        if not self.primary_intent:
            self.primary_intent = self.intents[0].intent or DEFAULT_INTENT
        if self.entities is None:
            self.entities = []
        return self

    @property
    def intent_names(self) -> List[str]:
        return [entry.intent for entry in self.intents]

    def entity_value(self, entity_type: str) -> Any:
        """Value of the first entity of the given type"""
        for entity in self.entities:
            if isinstance(entity, dict) and entity.get("type") == entity_type:
                return entity.get("value")
        return None

    def to_wire(self) -> Dict[str, Any]:
        """camelCase dict, as agents receive it"""
        return self.model_dump(by_alias=True, exclude_none=True)
