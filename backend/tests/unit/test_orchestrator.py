"""Unit tests for AgentOrchestrator"""

import pytest

from core.errors import AgentNotFound, OrchestratorNotInitialized, StoreUnavailable, WorkflowNotFound
from core.orchestrator import AgentOrchestrator, get_orchestrator, reset_orchestrator


ECHO_AGENT = '''
async def execute(params, context):
    return {"echo": params.get("value"), "step": context.get("current_step")}

AGENT_FORMAT = {"description": "Echoes its input", "execute": execute}
'''

PAUSING_AGENT = '''
async def execute(params, context):
    return context["workflow_controls"].pause("need approval")

AGENT_FORMAT = {"execute": execute}
'''

WINDOW_AGENT = '''
async def execute(params, context):
    context["hide_all_windows"]()
    return {"hidden": True, "has_orchestrator": context.get("orchestrator") is not None}

AGENT_FORMAT = {"execute": execute}
'''


class TestLifecycle:
    """Initialization guards"""

    @pytest.mark.asyncio
    async def test_uninitialized_operations(self):
        orchestrator = AgentOrchestrator()

        with pytest.raises(OrchestratorNotInitialized):
            await orchestrator.execute_agent("EchoAgent")
        with pytest.raises(OrchestratorNotInitialized):
            await orchestrator.register_agent("EchoAgent", {"code": ECHO_AGENT})

        asked = await orchestrator.ask("hello")
        assert asked["success"] is False
        assert "not initialized" in asked["error"]

        local = await orchestrator.handle_local_orchestration("hello")
        assert local["success"] is False
        assert local["method"] == "not_initialized"

    @pytest.mark.asyncio
    async def test_initialize_is_idempotent(self, orchestrator):
        again = await orchestrator.initialize()
        assert again["success"] is True

    def test_global_instance(self):
        reset_orchestrator()
        first = get_orchestrator()
        assert get_orchestrator() is first
        reset_orchestrator()
        assert get_orchestrator() is not first
        reset_orchestrator()


class TestRegistrationAndExecution:
    """Register, load and execute agents"""

    @pytest.mark.asyncio
    async def test_register_and_execute(self, orchestrator):
        registered = await orchestrator.register_agent("EchoAgent", {"code": ECHO_AGENT, "dependencies": "json"})
        assert registered == {"success": True, "agent": "EchoAgent", "persisted": True}

        envelope = await orchestrator.execute_agent("EchoAgent", {"action": "echo", "value": 7})

        assert envelope["success"] is True
        assert envelope["result"]["echo"] == 7
        assert orchestrator.is_agent_loaded("EchoAgent")
        assert orchestrator.get_definition("EchoAgent").dependencies == ["json"]
        assert "EchoAgent" in orchestrator.registered_agents()

    @pytest.mark.asyncio
    async def test_unresolved_dependency_reported_on_envelope(self, orchestrator):
        await orchestrator.register_agent(
            "EchoAgent", {"code": ECHO_AGENT, "dependencies": "json, definitely-not-a-real-package-xyz"}
        )

        envelope = await orchestrator.execute_agent("EchoAgent", {"value": 1})

        assert envelope["success"] is True
        assert envelope["unresolved_dependencies"] == ["definitely-not-a-real-package-xyz"]

    @pytest.mark.asyncio
    async def test_reregister_replaces_cached_instance(self, orchestrator):
        await orchestrator.register_agent("EchoAgent", {"code": ECHO_AGENT})
        first = await orchestrator.load_agent("EchoAgent")

        await orchestrator.register_agent("EchoAgent", {"code": ECHO_AGENT, "description": "v2"})
        assert not orchestrator.is_agent_loaded("EchoAgent")

        second = await orchestrator.load_agent("EchoAgent")
        assert second is not first
        assert second.description == "v2"

    @pytest.mark.asyncio
    async def test_register_from_file(self, orchestrator, tmp_path):
        agent_file = tmp_path / "FileEcho.py"
        agent_file.write_text(ECHO_AGENT)

        await orchestrator.register_agent("FileEcho", str(agent_file))
        envelope = await orchestrator.execute_agent("FileEcho", {"value": "x"})

        assert envelope["result"]["echo"] == "x"
        assert orchestrator.get_definition("FileEcho").execution_target == "backend"

    @pytest.mark.asyncio
    async def test_force_reregister(self, orchestrator):
        await orchestrator.register_agent("EchoAgent", {"code": ECHO_AGENT, "description": "old"})

        result = await orchestrator.force_reregister_agent("EchoAgent", {"code": ECHO_AGENT, "description": "new"})

        assert result["success"] is True
        assert orchestrator.get_definition("EchoAgent").description == "new"

    @pytest.mark.asyncio
    async def test_force_reregister_unknown(self, orchestrator):
        with pytest.raises(AgentNotFound):
            await orchestrator.force_reregister_agent("Ghost")

    @pytest.mark.asyncio
    async def test_unknown_agent_envelope(self, orchestrator):
        envelope = await orchestrator.execute_agent("Ghost", {"action": "x"})

        assert envelope["success"] is False
        assert envelope["agent"] == "Ghost"
        assert "not found" in envelope["error"]
        assert orchestrator.is_agent_available("Ghost") is False

    @pytest.mark.asyncio
    async def test_window_controls_binding(self, session_factory):
        hidden = []
        orchestrator = AgentOrchestrator()
        await orchestrator.initialize({
            "database": session_factory,
            "register_default_agents": False,
            "preload_agents": [],
            "window_controls": {"hide_all_windows": lambda: hidden.append(True)},
        })
        try:
            await orchestrator.register_agent("WindowAgent", {"code": WINDOW_AGENT})
            envelope = await orchestrator.execute_agent("WindowAgent", {})
        finally:
            await orchestrator.shutdown()

        assert envelope["result"] == {"hidden": True, "has_orchestrator": True}
        assert hidden == [True]


class TestStoreFallback:
    """Registration keeps working when the store is unusable"""

    @pytest.mark.asyncio
    async def test_unopenable_store_falls_back_to_memory(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        orchestrator = AgentOrchestrator()

        started = await orchestrator.initialize({
            "database_url": f"sqlite:///{blocker}/agents.db",
            "register_default_agents": False,
            "preload_agents": [],
            "agents_dir": None,
        })
        try:
            assert started["success"] is True
            assert orchestrator.registry is None

            registered = await orchestrator.register_agent("EchoAgent", {"code": ECHO_AGENT})
            envelope = await orchestrator.execute_agent("EchoAgent", {"value": 5})
        finally:
            await orchestrator.shutdown()

        assert registered == {"success": True, "agent": "EchoAgent", "persisted": False}
        assert envelope["success"] is True
        assert envelope["result"]["echo"] == 5

    @pytest.mark.asyncio
    async def test_store_errors_use_memory_definitions(self, orchestrator, monkeypatch):
        def unavailable(*args, **kwargs):
            raise StoreUnavailable("database is locked")

        monkeypatch.setattr(orchestrator.registry, "upsert", unavailable)
        monkeypatch.setattr(orchestrator.registry, "find", unavailable)
        monkeypatch.setattr(orchestrator.registry, "names", unavailable)

        registered = await orchestrator.register_agent("EchoAgent", {"code": ECHO_AGENT})
        envelope = await orchestrator.execute_agent("EchoAgent", {"value": "memory"})

        assert registered["persisted"] is False
        assert envelope["success"] is True
        assert envelope["result"]["echo"] == "memory"
        assert orchestrator.registered_agents() == ["EchoAgent"]


class TestWorkflows:
    """Workflow execution through the facade"""

    @pytest.mark.asyncio
    async def test_execute_workflow(self, orchestrator):
        await orchestrator.register_agent("EchoAgent", {"code": ECHO_AGENT})

        result = await orchestrator.execute_workflow(
            [{"agent": "EchoAgent", "params": {"value": 1}}, {"agent": "EchoAgent", "params": {"value": 2}}],
            {"userId": "u1"},
            name="echo_twice",
        )

        assert result["success"] is True
        assert result["status"] == "completed"
        assert result["workflow"] == "echo_twice"
        assert [r["result"]["step"] for r in result["results"]] == [0, 1]
        assert result["context"]["EchoAgent_result"]["result"]["echo"] == 2

    @pytest.mark.asyncio
    async def test_pause_and_resume_workflow(self, orchestrator):
        await orchestrator.register_agent("EchoAgent", {"code": ECHO_AGENT})
        await orchestrator.register_agent("PauseAgent", {"code": PAUSING_AGENT})

        paused = await orchestrator.execute_workflow([{"agent": "PauseAgent"}, {"agent": "EchoAgent"}])
        assert paused["status"] == "paused"
        assert paused["reason"] == "need approval"
        assert orchestrator.get_statistics()["paused_workflows"] == [paused["workflow_id"]]

        resumed = await orchestrator.resume_workflow(paused["workflow_id"])
        assert resumed["status"] == "completed"
        assert resumed["steps"] == 2

        with pytest.raises(WorkflowNotFound):
            await orchestrator.resume_workflow(paused["workflow_id"])

    @pytest.mark.asyncio
    async def test_discard_paused_workflow(self, orchestrator):
        await orchestrator.register_agent("PauseAgent", {"code": PAUSING_AGENT})

        paused = await orchestrator.execute_workflow([{"agent": "PauseAgent"}, {"agent": "PauseAgent"}])

        assert orchestrator.discard_workflow(paused["workflow_id"]) is True
        assert orchestrator.get_statistics()["paused_workflows"] == []


class TestAsk:
    """Intent routing with the built-in agents"""

    @pytest.mark.asyncio
    async def test_defaults_registered(self, default_orchestrator):
        names = default_orchestrator.registered_agents()
        assert {"LocalLLMAgent", "IntentParserAgent", "UserMemoryAgent"} <= set(names)

    @pytest.mark.asyncio
    async def test_memory_store_then_search(self, default_orchestrator):
        stored = await default_orchestrator.ask({
            "intents": [{"intent": "memory_store"}],
            "sourceText": "My dentist appointment is on Friday",
        })

        assert stored["success"] is True
        assert stored["primary_intent"] == "memory_store"
        assert stored["steps"] == 1
        assert stored["intents_processed"][0]["agent"] == "UserMemoryAgent"

        found = await default_orchestrator.execute_agent(
            "UserMemoryAgent", {"action": "memory-search", "query": "when is my dentist appointment"}
        )
        results = found["result"]["results"]
        assert results[0]["source_text"] == "My dentist appointment is on Friday"
        assert results[0]["similarity"] > 0

    @pytest.mark.asyncio
    async def test_command_skips_unregistered_agents(self, default_orchestrator):
        result = await default_orchestrator.ask({"intents": ["command"], "sourceText": "open notes"})

        assert result["success"] is True
        assert [step["agent"] for step in result["intents_processed"]] == ["UserMemoryAgent"]
        assert result["total_steps"] == 1

    @pytest.mark.asyncio
    async def test_no_actionable_intents(self, default_orchestrator):
        result = await default_orchestrator.ask({"intents": ["dance"], "sourceText": "let's dance"})

        assert result["success"] is True
        assert result["steps"] == 0
        assert result["message"] == "No actionable intents found"

    @pytest.mark.asyncio
    async def test_invalid_payload(self, default_orchestrator):
        result = await default_orchestrator.ask(42)

        assert result["success"] is False
        assert "Invalid intent payload" in result["error"]


class TestLocalOrchestration:
    """Offline handling with the built-in agents"""

    @pytest.mark.asyncio
    async def test_keyword_greeting(self, default_orchestrator):
        result = await default_orchestrator.handle_local_orchestration("hello there")

        assert result["success"] is True
        assert result["handled_by"] == "local_greeting"

    @pytest.mark.asyncio
    async def test_question_uses_local_llm(self, default_orchestrator):
        result = await default_orchestrator.handle_local_orchestration("what is the capital of France?")
        await default_orchestrator.fallback.drain()

        assert result["response"] == "The capital of France is Paris."
        assert result["method"] == "local_llm_response"

        listed = await default_orchestrator.execute_agent("UserMemoryAgent", {"action": "memory-list"})
        assert listed["result"]["results"][0]["category"] == "question"

    @pytest.mark.asyncio
    async def test_store_then_recall(self, default_orchestrator):
        stored = await default_orchestrator.handle_local_orchestration("remember that my locker code is 4711")
        await default_orchestrator.fallback.drain()
        assert stored["method"] == "local_memory_store"

        recalled = await default_orchestrator.handle_local_orchestration("do you remember my locker code")

        assert recalled["method"] == "local_memory_retrieve_with_llm"
        assert recalled["memories"] >= 1
