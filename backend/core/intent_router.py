"""Intent Router - Maps classified intents to workflow steps

Normalizes arbitrarily shaped intent input into an IntentPayload, then
fans each intent out to the agents mapped to it, building the parameters
each agent expects.
"""

import json
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError

from core.workflow import WorkflowStep
from shared.schemas.intent import DEFAULT_INTENT, IntentEntry, IntentPayload

logger = logging.getLogger(__name__)

# Intent -> ordered agent list (hyphen and underscore forms)
INTENT_AGENT_MAP: Dict[str, List[str]] = {
    # Screen capture
    "capture-screen": ["ScreenCaptureAgent"],
    "capture-window": ["ScreenCaptureAgent"],
    "extract-text": ["ScreenCaptureAgent"],

    # Memory
    "memory-store": ["UserMemoryAgent"],
    "memory_store": ["UserMemoryAgent"],
    "memory-retrieve": ["UserMemoryAgent"],
    "memory_retrieve": ["UserMemoryAgent"],
    "memory-search": ["UserMemoryAgent"],
    "memory_search": ["UserMemoryAgent"],
    "memory-list": ["UserMemoryAgent"],
    "memory_list": ["UserMemoryAgent"],
    "memory-delete": ["UserMemoryAgent"],
    "memory_delete": ["UserMemoryAgent"],
    "memory-update": ["UserMemoryAgent"],
    "memory_update": ["UserMemoryAgent"],

    # Multi-agent
    "command": ["UserMemoryAgent", "AutomationAgent"],
    "appointment": ["UserMemoryAgent"],
    "task": ["UserMemoryAgent"],
    "reminder": ["UserMemoryAgent"],
    "automation": ["UserMemoryAgent"],

    # Context-aware
    "question": ["UserMemoryAgent"],
    "greeting": ["UserMemoryAgent"],
    "conversation": ["UserMemoryAgent"],
    "help": ["UserMemoryAgent"],
    "creative": ["UserMemoryAgent"],
    "analysis": ["UserMemoryAgent"],
    "calculation": ["UserMemoryAgent"],
    "system_info": ["UserMemoryAgent"],

    # Utility
    "parse-intent": ["IntentParserAgent"],
    "enrich-memory": ["MemoryEnrichmentAgent"],
}

SCREEN_CAPTURE_AGENT = "ScreenCaptureAgent"

OCR_OPTIONS = {"languages": ["eng"], "confidence": 0.7}

# Intents whose memory-agent step stores the exchange as context
CONTEXT_INTENTS = (
    "command", "appointment", "task", "question", "greeting", "help",
    "creative", "analysis", "calculation", "system_info",
)

FALLBACK_TEXT_FIELDS = ("sourceText", "source_text", "message", "query", "text", "content", "prompt")

# Classification fields, never taken as the user's text
CLASSIFICATION_FIELDS = frozenset({"primaryIntent", "primary_intent", "intent", "intents"})


def _timestamp() -> str:
    return datetime.utcnow().isoformat()


def _first_string(value: Any) -> Optional[str]:
    """Depth-first search for the first non-empty string"""
    if isinstance(value, str):
        return value if value.strip() else None
    if isinstance(value, dict):
        for key, item in value.items():
            if key in CLASSIFICATION_FIELDS:
                continue
            found = _first_string(item)
            if found:
                return found
    if isinstance(value, (list, tuple)):
        for item in value:
            found = _first_string(item)
            if found:
                return found
    return None


def agents_for_intent(intent: str) -> List[str]:
    agents = INTENT_AGENT_MAP.get(intent, [])
    logger.debug(f"🔍 Intent '{intent}' maps to agents: {agents}")
    return list(agents)


class IntentRouter:
    """Turns intent payloads into workflow steps"""

    def __init__(self, intent_map: Optional[Dict[str, List[str]]] = None):
        self.intent_map = dict(INTENT_AGENT_MAP if intent_map is None else intent_map)

    # ==================== Normalization ====================

    def normalize(self, payload: Any) -> IntentPayload:
        """Normalize any supported input shape into an IntentPayload

        Raises:
            ValueError: payload is neither a string nor a mapping
        """
        if isinstance(payload, IntentPayload):
            return payload

        if isinstance(payload, str):
            try:
                parsed = json.loads(payload)
            except ValueError:
                logger.debug("🔄 String payload is not JSON, treating as a question")
                return IntentPayload(
                    intents=[IntentEntry(intent=DEFAULT_INTENT)],
                    primary_intent=DEFAULT_INTENT,
                    capture_screen=False,
                    source_text=payload,
                )
            if isinstance(parsed, dict):
                return self._extract(parsed)
            return IntentPayload(primary_intent=DEFAULT_INTENT, source_text=payload, capture_screen=False)

        if isinstance(payload, dict):
            return self._extract(payload)

        raise ValueError("Invalid intent payload: must be a string or a mapping")

    def _extract(self, payload: Dict[str, Any]) -> IntentPayload:
        nested = payload.get("payload")
        if isinstance(nested, dict) and nested.get("intents"):
            logger.debug("📦 Found nested payload structure")
            return self._validate(nested, payload)

        message = payload.get("message")
        if isinstance(message, str):
            try:
                parsed = json.loads(message)
            except ValueError:
                parsed = None
            if isinstance(parsed, dict):
                logger.debug("📦 Parsed message-wrapped payload")
                return self._extract(parsed)

        wrapped = payload.get("intentPayload")
        if isinstance(wrapped, dict) and wrapped.get("intents"):
            logger.debug("📦 Found intentPayload nested structure")
            return self._validate(wrapped, payload)

        if isinstance(payload.get("intents"), list):
            logger.debug("📦 Found direct intent payload")
            return self._validate(payload, payload)

        return self._fallback(payload)

    def _validate(self, data: Dict[str, Any], original: Dict[str, Any]) -> IntentPayload:
        data = dict(data)
        data["intents"] = [
            {"intent": entry} if isinstance(entry, str) else entry
            for entry in data.get("intents") or []
            if isinstance(entry, (str, dict))
        ]
        if data.get("entities") is None:
            data.pop("entities", None)
        try:
            return IntentPayload.model_validate(data)
        except ValidationError as e:
            logger.warning(f"⚠️ Malformed intent payload, using fallback: {e.error_count()} errors")
            return self._fallback(original)

    def _fallback(self, payload: Dict[str, Any]) -> IntentPayload:
        logger.debug("🔄 Using fallback structure for unknown payload format")

        source_text = None
        for key in FALLBACK_TEXT_FIELDS:
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                source_text = value
                break
        if source_text is None:
            source_text = _first_string(payload)
        if source_text is None:
            logger.warning("⚠️ No text field in payload, using serialized payload as source text")
            source_text = "[System Generated] " + json.dumps(payload, default=str)

        intent = payload.get("primaryIntent") or payload.get("intent")
        if not isinstance(intent, str) or not intent:
            intent = DEFAULT_INTENT
        entities = payload.get("entities")

        return IntentPayload(
            intents=[IntentEntry(intent=intent)],
            primary_intent=intent,
            entities=entities if isinstance(entities, list) else [],
            requires_memory_access=bool(payload.get("requiresMemoryAccess", False)),
            capture_screen=bool(payload.get("captureScreen", False)),
            source_text=source_text,
            suggested_response=payload.get("suggestedResponse") or payload.get("response"),
        )

    # ==================== Step Construction ====================

    @staticmethod
    def should_capture_screen(payload: IntentPayload) -> bool:
        return payload.capture_screen is True or (
            payload.requires_memory_access and payload.capture_screen is not False
        )

    def build_steps(
        self,
        payload: IntentPayload,
        context: Optional[Dict[str, Any]] = None,
        is_available: Optional[Callable[[str], bool]] = None,
    ) -> List[WorkflowStep]:
        """Build the workflow for a normalized payload

        Args:
            payload: Normalized intent payload
            context: Caller context copied into every step
            is_available: Optional predicate; agents it rejects are skipped

        Returns:
            Ordered workflow steps (possibly empty)
        """
        context = dict(context or {})
        steps: List[WorkflowStep] = []

        if self.should_capture_screen(payload):
            if is_available is None or is_available(SCREEN_CAPTURE_AGENT):
                logger.info("📸 Adding ScreenCaptureAgent to workflow")
                steps.append(WorkflowStep(
                    agent=SCREEN_CAPTURE_AGENT,
                    params=self.screen_capture_params(),
                    context={**context, "stepName": "screenshot_capture"},
                ))
            else:
                logger.warning("⚠️ ScreenCaptureAgent not registered, skipping capture")

        wire = payload.to_wire()
        for entry in payload.intents:
            intent = entry.intent
            agent_names = self.intent_map.get(intent, [])
            if not agent_names:
                logger.info(f"⚠️ No agents mapped for intent: {intent}")
                continue

            for index, agent_name in enumerate(agent_names):
                if is_available is not None and not is_available(agent_name):
                    logger.warning(f"⚠️ Agent {agent_name} not registered, skipping for intent {intent}")
                    continue
                steps.append(WorkflowStep(
                    agent=agent_name,
                    params=self.params_for(intent, payload, context, agent_name),
                    context={
                        **context,
                        "stepName": f"{intent}_{agent_name.lower()}_processing",
                        "intent": intent,
                        "agentIndex": index,
                        "totalAgentsForIntent": len(agent_names),
                        "originalPayload": wire,
                    },
                ))
                logger.debug(f"  ✅ Added {agent_name} for intent: {intent}")

        logger.info(f"🔄 Built workflow with {len(steps)} steps")
        return steps

    # ==================== Parameter Builders ====================

    def params_for(
        self,
        intent: str,
        payload: IntentPayload,
        context: Dict[str, Any],
        agent_name: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Parameters for an agent handling an intent"""
        builder = self._agent_builders().get(agent_name)
        if builder is not None:
            return builder(intent, payload, context)
        return self.intent_params(intent, payload, context)

    def _agent_builders(self) -> Dict[str, Callable[[str, IntentPayload, Dict[str, Any]], Dict[str, Any]]]:
        return {
            "UserMemoryAgent": self.memory_agent_params,
            "SchedulingAgent": self.scheduling_agent_params,
            "TaskAgent": self.task_agent_params,
            "ReminderAgent": self.reminder_agent_params,
            "AutomationAgent": self.automation_agent_params,
            "ScreenCaptureAgent": lambda intent, payload, context: self.screen_capture_params(),
            "IntentParserAgent": self.intent_parser_params,
            "MemoryEnrichmentAgent": self.memory_enrichment_params,
        }

    def intent_params(self, intent: str, payload: IntentPayload, context: Dict[str, Any]) -> Dict[str, Any]:
        """Intent-based parameters for agents without a dedicated builder"""
        source_text = payload.source_text
        entities = payload.entities

        if intent in ("memory_store", "memory-store"):
            return {
                "action": "store_intent_classification",
                "data": {**payload.to_wire(), "timestamp": _timestamp()},
            }
        if intent in ("memory_retrieve", "memory-retrieve", "memory_search"):
            return {"action": "memory-retrieve", "query": source_text or "recent memories", "limit": 10}
        if intent == "memory_list":
            return {"action": "list_memories", "limit": 20}
        if intent == "command":
            return {"action": "execute_command", "command": source_text, "entities": entities, "context": context}
        if intent == "appointment":
            return {"action": "schedule_appointment", "description": source_text, "entities": entities, "context": context}
        if intent == "task":
            return {"action": "create_task", "description": source_text, "entities": entities, "context": context}
        if intent in ("capture-screen", "capture-window"):
            return self.screen_capture_params()
        if intent == "extract-text":
            return {"action": "extract_text_from_image", "ocrOptions": dict(OCR_OPTIONS)}
        if intent == "parse-intent":
            return {"text": source_text, "context": entities}

        logger.debug(f"🤷 Using default params for intent: {intent}")
        return {"action": intent, "data": payload.to_wire()}

    def memory_agent_params(self, intent: str, payload: IntentPayload, context: Dict[str, Any]) -> Dict[str, Any]:
        source_text = payload.source_text
        entities = payload.entities
        extra = payload.model_extra or {}

        if intent in ("memory_store", "memory-store"):
            return {
                "action": "store_intent_classification",
                "data": {**payload.to_wire(), "timestamp": _timestamp()},
            }

        if intent in ("memory-delete", "memory_delete"):
            return {
                "action": "memory-delete",
                "memoryId": extra.get("memoryId") or payload.entity_value("memoryId"),
                "timestamp": _timestamp(),
            }

        if intent in ("memory-update", "memory_update"):
            return {
                "action": "memory-update",
                "data": {**payload.to_wire(), "timestamp": _timestamp()},
            }

        if intent in ("memory-retrieve", "memory_retrieve", "memory_search", "memory-search"):
            limit = payload.entity_value("limit") or 50
            offset = payload.entity_value("offset") or 0
            search_query = extra.get("searchQuery") or payload.entity_value("searchQuery")
            if not search_query:
                search_query = self.query_from_entities(entities)
            return {
                "action": "memory-retrieve",
                "searchQuery": search_query or None,
                "pagination": extra.get("pagination") or {"limit": limit, "offset": offset},
                "limit": limit,
                "offset": offset,
                "timestamp": _timestamp(),
            }

        if intent in CONTEXT_INTENTS:
            return {
                "action": "store_context",
                "data": {
                    **payload.to_wire(),
                    "intent": intent,
                    "sourceText": source_text,
                    "entities": entities,
                    "timestamp": _timestamp(),
                },
            }

        return {"action": "query_memories", "query": source_text or "recent memories", "limit": 10}

    @staticmethod
    def query_from_entities(entities: List[Any]) -> Optional[str]:
        """Join entity values into a search query"""
        values = []
        for entity in entities or []:
            value = entity.get("value") if isinstance(entity, dict) else entity
            if isinstance(value, str) and value:
                values.append(value)
        return " ".join(values) if values else None

    @staticmethod
    def scheduling_agent_params(intent: str, payload: IntentPayload, context: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "action": "schedule_appointment",
            "appointment": {"description": payload.source_text, "entities": payload.entities, "context": context},
            "timestamp": _timestamp(),
        }

    @staticmethod
    def task_agent_params(intent: str, payload: IntentPayload, context: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "action": "create_task",
            "task": {
                "description": payload.source_text,
                "entities": payload.entities,
                "priority": "normal",
                "context": context,
            },
            "timestamp": _timestamp(),
        }

    @staticmethod
    def reminder_agent_params(intent: str, payload: IntentPayload, context: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "action": "create_reminder",
            "reminder": {"description": payload.source_text, "entities": payload.entities, "context": context},
            "timestamp": _timestamp(),
        }

    @staticmethod
    def automation_agent_params(intent: str, payload: IntentPayload, context: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "action": "execute_automation",
            "automation": {"description": payload.source_text, "entities": payload.entities, "context": context},
            "timestamp": _timestamp(),
        }

    @staticmethod
    def screen_capture_params() -> Dict[str, Any]:
        return {"action": "capture_and_extract", "includeOCR": True, "ocrOptions": dict(OCR_OPTIONS)}

    @staticmethod
    def intent_parser_params(intent: str, payload: IntentPayload, context: Dict[str, Any]) -> Dict[str, Any]:
        return {"text": payload.source_text, "context": payload.entities}

    @staticmethod
    def memory_enrichment_params(intent: str, payload: IntentPayload, context: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "action": "enrich_context",
            "text": payload.source_text,
            "entities": payload.entities,
            "context": context,
        }
