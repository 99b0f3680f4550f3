"""Local Fallback Orchestrator

Handles user messages when the remote backend is unreachable. The message
is classified locally (unless the caller already classified it) and then
routed by intent:

- command: re-enters the main intent router / workflow path
- memory_store: answers immediately, stores in the background
- memory_retrieve: searches memory, phrases the answer with the local LLM
- greeting: canned, time-of-day aware
- question (default): local LLM, canned "limited local mode" on failure
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Union

from core.intent_router import IntentRouter
from shared.utils.intent_responses import (
    GENERIC_ERROR_RESPONSE,
    MEMORY_ERROR_RESPONSE,
    NO_MEMORIES_RESPONSE,
    NO_PREVIOUS_CONVERSATION_RESPONSE,
    REPHRASE_RESPONSE,
    get_suggested_response,
    greeting_response,
    is_memory_question,
    limited_mode_response,
)

logger = logging.getLogger(__name__)

ExecuteAgent = Callable[..., Awaitable[Dict[str, Any]]]
Ask = Callable[..., Awaitable[Dict[str, Any]]]

INTENT_PARSER_AGENT = "IntentParserAgent"
MEMORY_AGENT = "UserMemoryAgent"
LLM_AGENT = "LocalLLMAgent"
SCREEN_CAPTURE_AGENT = "ScreenCaptureAgent"

MEMORY_CONTEXT_LIMIT = 3


def _now() -> str:
    return datetime.utcnow().isoformat()


def _response(response: str, handled_by: str, method: str, success: bool = True, **extra) -> Dict[str, Any]:
    data = {
        "success": success,
        "response": response,
        "handled_by": handled_by,
        "method": method,
        "timestamp": _now(),
    }
    data.update(extra)
    return data


def _agent_result(envelope: Dict[str, Any]) -> Dict[str, Any]:
    result = envelope.get("result")
    return result if isinstance(result, dict) else {}


class LocalFallbackOrchestrator:
    """Intent-specific local handling on top of the shared agent set"""

    def __init__(self, execute_agent: ExecuteAgent, ask: Ask):
        self._execute_agent = execute_agent
        self._ask = ask
        self._background: Set[asyncio.Task] = set()
        logger.info("🏠 Local Fallback Orchestrator initialized")

    @property
    def pending_tasks(self) -> int:
        return len(self._background)

    async def handle(
        self,
        message: str,
        intent: Optional[Union[Dict[str, Any], str]] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Handle a message locally

        Args:
            message: User message
            intent: Optional pre-classified intent data (primaryIntent / intents),
                or a bare intent name
            context: Caller context passed to every agent

        Returns:
            {success, response, handled_by, method, timestamp, ...}
        """
        context = dict(context or {})
        if isinstance(intent, str):
            intent = {"primaryIntent": intent}
        try:
            logger.info("🔄 Local orchestration started")

            if intent and (intent.get("primaryIntent") or intent.get("intents")):
                logger.info(f"✅ Using pre-classified intent: {intent.get('primaryIntent')}")
                classification = self._from_pre_classified(message, intent)
            else:
                if intent:
                    context = {**intent, **context}
                classification = await self.classify(message, context)

            if classification is None:
                logger.warning("⚠️ Local intent classification failed, using fallback response")
                return _response(REPHRASE_RESPONSE, "fallback", "error_fallback")

            return await self.route(message, classification, context)
        except Exception as e:
            logger.error(f"❌ Local orchestration failed: {e}")
            return _response(GENERIC_ERROR_RESPONSE, "error_handler", "local_error", success=False, error=str(e))

    @staticmethod
    def _from_pre_classified(message: str, intent: Dict[str, Any]) -> Dict[str, Any]:
        primary = intent.get("primaryIntent")
        if not primary:
            intents = intent.get("intents") or []
            first = intents[0] if intents else None
            primary = first.get("intent") if isinstance(first, dict) else first
        primary = primary or "question"

        suggested = intent.get("suggestedResponse")
        if primary == "memory_retrieve" and not suggested:
            suggested = get_suggested_response("memory_retrieve", message)

        return {
            "intent": primary,
            "confidence": intent.get("confidence", 0.8),
            "entities": intent.get("entities") or [],
            "captureScreen": intent.get("captureScreen") is True,
            "requiresMemoryAccess": intent.get("requiresMemoryAccess") is True,
            "suggestedResponse": suggested,
            "sourceText": intent.get("sourceText") or message,
            "method": "pre_classified",
        }

    async def classify(self, message: str, context: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Classify a message with the local intent parser"""
        logger.info("🧠 Classifying intent locally")
        envelope = await self._execute_agent(
            INTENT_PARSER_AGENT,
            {"action": "parse-intent", "message": message, "userContext": context.get("userContext", {})},
            context,
        )
        if not envelope.get("success"):
            logger.warning(f"⚠️ {INTENT_PARSER_AGENT} failed: {envelope.get('error')}")
            return None

        result = _agent_result(envelope)
        if not result.get("intent"):
            return None
        logger.info(f"🎯 Intent classified as: {result['intent']} (confidence: {result.get('confidence', 'N/A')})")
        return result

    async def route(self, message: str, classification: Dict[str, Any], context: Dict[str, Any]) -> Dict[str, Any]:
        intent = classification.get("intent")
        if intent == "command":
            return await self.handle_command(message, classification, context)
        if intent == "memory_store":
            return await self.handle_memory_store(message, classification, context)
        if intent == "memory_retrieve":
            return await self.handle_memory_retrieve(message, classification.get("entities") or [], context)
        if intent == "greeting":
            return self.handle_greeting(message)
        return await self.handle_question(message, classification, context)

    # ==================== Intent Handlers ====================

    async def handle_command(self, message: str, classification: Dict[str, Any], context: Dict[str, Any]) -> Dict[str, Any]:
        """Send command intents through the main intent router"""
        logger.info("🎯 Routing command intent through unified orchestration")
        intent = classification.get("intent", "command")
        payload = {
            "intents": [{
                "intent": intent,
                "confidence": classification.get("confidence", 0.8),
                "reasoning": "Local classification",
            }],
            "primaryIntent": intent,
            "entities": classification.get("entities") or [],
            "requiresMemoryAccess": classification.get("requiresMemoryAccess") is True,
            "captureScreen": classification.get("captureScreen") is True,
            "suggestedResponse": classification.get("suggestedResponse"),
            "sourceText": message,
        }
        try:
            result = await self._ask(payload, {**context, "source": "local_unified_orchestration"})
        except Exception as e:
            logger.error(f"❌ Unified orchestration failed: {e}")
            return _response(
                "I had trouble processing that command. Please try again.",
                "error_handler", "unified_orchestration_error", success=False, error=str(e),
            )

        response = (
            result.get("response")
            or classification.get("suggestedResponse")
            or "Command processed successfully."
        )
        return _response(
            response, "UnifiedOrchestration", "unified_command_processing",
            success=bool(result.get("success")), orchestration_result=result,
        )

    async def handle_memory_store(self, message: str, classification: Dict[str, Any], context: Dict[str, Any]) -> Dict[str, Any]:
        """Confirm right away; the memory write happens in the background"""
        logger.info("💾 Handling local memory store")
        params = {
            "action": "memory-store",
            "sourceText": classification.get("sourceText") or message,
            "suggestedResponse": classification.get("suggestedResponse") or "I'll remember that for you.",
            "primaryIntent": "memory_store",
            "entities": classification.get("entities") or [],
            "metadata": {"timestamp": _now(), "source": "local_orchestration"},
        }
        self._spawn(self._store_in_background(params, context), "memory store")
        return _response(get_suggested_response("memory_store", message), MEMORY_AGENT, "local_memory_store")

    async def handle_memory_retrieve(self, message: str, entities: List[Any], context: Dict[str, Any]) -> Dict[str, Any]:
        """Search memory and phrase what was found"""
        logger.info("🔍 Handling local memory retrieve")
        query = IntentRouter.query_from_entities(entities) or message

        try:
            envelope = await self._execute_agent(
                MEMORY_AGENT, {"action": "memory-search", "query": query, "limit": 5}, context,
            )
        except Exception as e:
            logger.error(f"❌ Local memory retrieve failed: {e}")
            return _response(MEMORY_ERROR_RESPONSE, "fallback", "memory_retrieve_error")

        memories = _agent_result(envelope).get("results") or []
        if not envelope.get("success") or not memories:
            canned = NO_PREVIOUS_CONVERSATION_RESPONSE if is_memory_question(message) else NO_MEMORIES_RESPONSE
            return _response(canned, MEMORY_AGENT, "memory_not_found")

        logger.info(f"📚 Found {len(memories)} memories")
        memory_context = "\n".join(
            f"{'PRIMARY' if index == 0 else 'CONTEXT'}: {memory.get('source_text')}"
            for index, memory in enumerate(memories[:MEMORY_CONTEXT_LIMIT])
        )
        prompt = (
            "Based on the stored memories below, answer the user's question.\n\n"
            f"STORED MEMORIES:\n{memory_context}\n\n"
            f'QUESTION: "{message}"\n\n'
            "Answer based on the memories above. If no relevant information is found, "
            'say "I don\'t have that information stored."'
        )
        llm = await self._execute_agent(
            LLM_AGENT, {"action": "query", "prompt": prompt, "options": {"maxTokens": 60, "temperature": 0.2}}, context,
        )
        answer = _agent_result(llm).get("response")
        if llm.get("success") and answer:
            return _response(
                answer, f"{MEMORY_AGENT} + {LLM_AGENT}", "local_memory_retrieve_with_llm", memories=len(memories),
            )

        listing = ", ".join(
            str(memory.get("source_text") or memory.get("suggested_response")) for memory in memories
        )
        return _response(f"I found this information: {listing}", MEMORY_AGENT, "local_memory_retrieve", memories=len(memories))

    @staticmethod
    def handle_greeting(message: str) -> Dict[str, Any]:
        return _response(greeting_response(message), "local_greeting", "pattern_greeting")

    async def handle_question(self, message: str, classification: Dict[str, Any], context: Dict[str, Any]) -> Dict[str, Any]:
        """Answer with the local LLM; canned local-mode text when it fails"""
        logger.info("❓ Handling local question")
        question = message

        if classification.get("captureScreen"):
            capture = await self._execute_agent(SCREEN_CAPTURE_AGENT, {"action": "capture_and_extract"}, context)
            captured = _agent_result(capture)
            if capture.get("success") and captured:
                context = {
                    **context,
                    "screenshot": captured.get("screenshot"),
                    "extractedText": captured.get("extractedText"),
                }
                extracted = (captured.get("extractedText") or "No text extracted")[:500]
                question = f"{message}\n\nScreen content: {extracted}"
            else:
                logger.warning(f"⚠️ Screen capture failed: {capture.get('error')}")

        if is_memory_question(question):
            prompt = f"No relevant memories found. Answer briefly in 1 sentence:\n\nQuestion: {question}\n\nBrief response (don't make up details):"
        else:
            prompt = f"Answer briefly in 1-2 sentences:\n\nQuestion: {question}\n\nBrief answer:"

        llm = await self._execute_agent(
            LLM_AGENT,
            {"action": "query", "prompt": prompt, "options": {"maxTokens": 120, "temperature": 0.2}},
            context,
        )
        answer = _agent_result(llm).get("response")
        if llm.get("success") and answer:
            self._spawn(self._store_in_background({
                "action": "memory-store",
                "sourceText": message,
                "entities": classification.get("entities") or [],
                "category": "question",
                "metadata": {
                    "intent": "question",
                    "timestamp": _now(),
                    "confidence": classification.get("confidence"),
                    "llmResponse": answer,
                },
            }, context), "question context")
            return _response(
                answer, "local_llm_question_handler", "local_llm_response", confidence=classification.get("confidence"),
            )

        logger.warning(f"⚠️ Local LLM unavailable for question: {llm.get('error')}")
        return _response(
            limited_mode_response(), "local_question_handler", "local_fallback", confidence=classification.get("confidence"),
        )

    # ==================== Background Work ====================

    def _spawn(self, coro: Awaitable[Any], label: str):
        task = asyncio.create_task(coro, name=f"local-fallback:{label}")
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _store_in_background(self, params: Dict[str, Any], context: Dict[str, Any]):
        logger.info("🚀 [BACKGROUND] Storing memory")
        try:
            result = await self._execute_agent(MEMORY_AGENT, params, context)
        except Exception as e:
            logger.error(f"❌ [BACKGROUND] Memory storage failed: {e}")
            return
        if result.get("success"):
            logger.info("✅ [BACKGROUND] Memory stored")
        else:
            logger.warning(f"⚠️ [BACKGROUND] Memory storage failed: {result.get('error')}")

    async def drain(self):
        """Wait for outstanding background tasks"""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
