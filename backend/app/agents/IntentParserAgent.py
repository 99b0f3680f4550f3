"""IntentParserAgent - local intent classification

Asks LocalLLMAgent to classify the message with the shared prompt and
falls back to keyword rules when the model is unavailable or its answer
cannot be parsed.

Actions:
    parse-intent: {message | text} -> {intent, confidence, entities, captureScreen, suggestedResponse, method}
"""

import json
import logging
import re

from shared.prompts.intent_classification import (
    KEYWORD_RULES,
    SCREEN_KEYWORDS,
    VALID_INTENTS,
    build_intent_prompt,
)

logger = logging.getLogger("agents.IntentParserAgent")

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


def parse_model_output(text):
    """Extract a classification dict from model output, or None"""
    match = _JSON_OBJECT.search(text or "")
    if not match:
        return None
    try:
        data = json.loads(match.group(0))
    except ValueError:
        return None
    if not isinstance(data, dict) or data.get("intent") not in VALID_INTENTS:
        return None
    return data


def classify_by_keywords(message):
    normalized = (message or "").lower()
    intent = "question"
    for candidate, patterns in KEYWORD_RULES:
        if any(re.search(pattern, normalized) for pattern in patterns):
            intent = candidate
            break
    capture = any(re.search(pattern, normalized) for pattern in SCREEN_KEYWORDS)
    return {"intent": intent, "confidence": 0.6, "entities": [], "captureScreen": capture}


AGENT_FORMAT = {
    "name": "IntentParserAgent",
    "description": "Local intent classification with keyword fallback",
}


async def bootstrap(config, context):
    return {"success": True}


async def execute(params, context):
    action = params.get("action", "parse-intent")
    if action != "parse-intent":
        return {"success": False, "error": f"Unknown action: {action}"}

    message = params.get("message") or params.get("text")
    if not message:
        return {"success": False, "error": "message is required"}

    classification = None
    method = "keyword"
    execute_agent = context.get("execute_agent")
    if execute_agent is not None:
        envelope = await execute_agent(
            "LocalLLMAgent",
            {"action": "query", "prompt": build_intent_prompt(message), "options": {"maxTokens": 120, "temperature": 0.0}},
            {},
        )
        result = envelope.get("result") or {}
        if envelope.get("success"):
            classification = parse_model_output(result.get("response"))
            if classification is not None:
                method = "local_llm"

    if classification is None:
        logger.info("🔤 Using keyword intent rules")
        classification = classify_by_keywords(message)

    entities = classification.get("entities")
    return {
        "intent": classification["intent"],
        "confidence": float(classification.get("confidence") or 0.6),
        "entities": entities if isinstance(entities, list) else [],
        "captureScreen": classification.get("captureScreen") is True,
        "suggestedResponse": classification.get("suggestedResponse"),
        "method": method,
    }


AGENT_FORMAT["bootstrap"] = bootstrap
AGENT_FORMAT["execute"] = execute
AGENT_FORMAT["classify_by_keywords"] = classify_by_keywords
