"""Default agent set registered on orchestrator initialization

Each agent's full source is read from this directory and stored in the
registry ``code`` column, so the stored copy is what actually runs.
"""

import os
from typing import Any, Dict, List

import aiofiles

from app.core.config import settings
from core.agent_registry import AgentDefinition

AGENTS_DIR = os.path.dirname(os.path.abspath(__file__))


def default_agent_specs() -> List[Dict[str, Any]]:
    return [
        {
            "name": "LocalLLMAgent",
            "description": "Local LLM query capability (Ollama HTTP API)",
            "dependencies": ["httpx"],
            "execution_target": "backend",
            "config": {
                "endpoint": settings.local_llm_endpoint,
                "model": settings.local_llm_model,
                "timeout": settings.local_llm_timeout,
            },
            "parameters": {"action": ["query", "check-availability"]},
        },
        {
            "name": "IntentParserAgent",
            "description": "Local intent classification with keyword fallback",
            "dependencies": ["shared.prompts.intent_classification"],
            "execution_target": "backend",
            "parameters": {"action": ["parse-intent"]},
        },
        {
            "name": "UserMemoryAgent",
            "description": "Stores and retrieves user memories",
            "dependencies": ["sqlalchemy", "app.db.models", "database"],
            "execution_target": "backend",
            "requires_database": True,
            "database_type": "sqlite",
            "parameters": {
                "action": [
                    "memory-store", "store_intent_classification", "store_context",
                    "memory-retrieve", "memory-search", "query_memories",
                    "memory-list", "list_memories", "memory-update", "memory-delete",
                ],
            },
        },
    ]


async def load_default_definitions() -> List[AgentDefinition]:
    """Build definitions for the default agents, source included"""
    definitions = []
    for spec in default_agent_specs():
        file_path = os.path.join(AGENTS_DIR, f"{spec['name']}.py")
        async with aiofiles.open(file_path, "r", encoding="utf-8") as f:
            code = await f.read()
        definitions.append(AgentDefinition(code=code, file_path=file_path, **spec))
    return definitions
