"""Shared fixtures for orchestrator tests"""

import os
import sys

# backend/ for app, core and cli; repository root for shared
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOCAL_LLM_ENDPOINT", "http://127.0.0.1:9")

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402

from app.db.database import create_session_factory  # noqa: E402
from core.orchestrator import AgentOrchestrator  # noqa: E402


FAKE_LLM_AGENT = '''
async def execute(params, context):
    prompt = params.get("prompt") or ""
    if "Classify the user's message" in prompt:
        return {"success": True, "response": "not json"}
    return {"success": True, "response": "The capital of France is Paris."}

AGENT_FORMAT = {"execute": execute}
'''


@pytest.fixture
def session_factory():
    """In-memory SQLite session factory"""
    factory = create_session_factory("sqlite://")
    yield factory
    factory.kw["bind"].dispose()


@pytest_asyncio.fixture
async def orchestrator(session_factory):
    """Initialized orchestrator without default agents"""
    instance = AgentOrchestrator()
    await instance.initialize({
        "database": session_factory,
        "register_default_agents": False,
        "preload_agents": [],
        "agents_dir": None,
        "step_timeout": 5,
    })
    yield instance
    await instance.shutdown()


@pytest_asyncio.fixture
async def default_orchestrator(session_factory):
    """Initialized orchestrator with the built-in agents and a fake local LLM"""
    instance = AgentOrchestrator()
    await instance.initialize({
        "database": session_factory,
        "preload_agents": [],
        "step_timeout": 5,
    })
    await instance.register_agent("LocalLLMAgent", {"code": FAKE_LLM_AGENT, "execution_target": "backend"})
    yield instance
    await instance.shutdown()
