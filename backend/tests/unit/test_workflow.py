"""Unit tests for the WorkflowEngine"""

import asyncio

import pytest

from core.errors import WorkflowNotFound
from core.workflow import (
    Continue,
    Fail,
    JumpTo,
    Pause,
    Stop,
    WorkflowEngine,
    WorkflowStatus,
    WorkflowStep,
    classify_outcome,
)


class ScriptedAgents:
    """Step executor whose agents are plain async callables"""

    def __init__(self, agents):
        self.agents = agents
        self.calls = []

    async def __call__(self, name, params, context):
        self.calls.append(name)
        result = await self.agents[name](params, context)
        if isinstance(result, dict) and result.get("success") is False:
            return {"success": False, "agent": name, "action": params.get("action"), "error": result["error"]}
        return {"success": True, "agent": name, "action": params.get("action"), "result": result}


async def ok(params, context):
    return {"seen_step": context["current_step"], "previous": len(context["previous_results"])}


async def failing(params, context):
    return {"success": False, "error": "exploded"}


class TestClassifyOutcome:
    """Envelope -> outcome mapping"""

    step = WorkflowStep(agent="A")

    def test_failure(self):
        assert classify_outcome(self.step, {"success": False, "error": "x"}) == Fail("x")

    def test_plain_success(self):
        assert classify_outcome(self.step, {"success": True, "result": {}}) == Continue()

    def test_directives_in_result(self):
        def envelope(directive):
            return {"success": True, "result": {"workflowControl": directive}}

        assert classify_outcome(self.step, envelope({"action": "stop", "reason": "done"})) == Stop("done")
        assert classify_outcome(self.step, envelope({"action": "pause"})) == Pause(None)
        assert classify_outcome(self.step, envelope({"action": "next", "targetStep": 2})) == JumpTo(2)
        assert classify_outcome(self.step, envelope({"action": "start"})) == JumpTo(0)
        assert classify_outcome(self.step, envelope({"action": "next"})) == Continue()

    def test_directive_on_envelope(self):
        envelope = {"success": True, "workflow_control": {"action": "goto", "target_step": 1}}
        assert classify_outcome(self.step, envelope) == JumpTo(1)


class TestWorkflowEngine:
    """Sequential execution semantics"""

    @pytest.mark.asyncio
    async def test_runs_steps_in_order(self):
        agents = ScriptedAgents({"A": ok, "B": ok, "C": ok})
        engine = WorkflowEngine(agents)

        result = await engine.run([{"agent": "A"}, {"agent": "B"}, {"agent": "C"}], {"user": "u1"})

        assert result.status == WorkflowStatus.COMPLETED
        assert result.success is True
        assert agents.calls == ["A", "B", "C"]
        assert [r["result"]["seen_step"] for r in result.results] == [0, 1, 2]
        assert [r["result"]["previous"] for r in result.results] == [0, 1, 2]
        assert result.context["user"] == "u1"
        assert result.context["B_result"]["success"] is True
        assert "step_2_result" in result.context

    @pytest.mark.asyncio
    async def test_stops_on_failure(self):
        agents = ScriptedAgents({"A": ok, "B": failing, "C": ok})
        engine = WorkflowEngine(agents)

        result = await engine.run([{"agent": "A"}, {"agent": "B"}, {"agent": "C"}])

        assert result.status == WorkflowStatus.FAILED
        assert result.success is False
        assert agents.calls == ["A", "B"]
        data = result.to_dict()
        assert data["steps"] == 2
        assert data["total_steps"] == 3
        assert "Step 1 (B) failed: exploded" in data["error"]

    @pytest.mark.asyncio
    async def test_continue_on_error(self):
        agents = ScriptedAgents({"A": failing, "B": ok})
        engine = WorkflowEngine(agents)

        result = await engine.run([{"agent": "A", "continueOnError": True}, {"agent": "B"}])

        assert result.status == WorkflowStatus.COMPLETED
        assert agents.calls == ["A", "B"]
        # completed, but one step failed
        assert result.success is False

    @pytest.mark.asyncio
    async def test_jump_via_controls(self):
        visits = {"count": 0}

        async def looping(params, context):
            visits["count"] += 1
            if visits["count"] < 3:
                context["workflow_controls"].start(1)
            return {"visit": visits["count"]}

        agents = ScriptedAgents({"A": ok, "Loop": looping, "C": ok})
        engine = WorkflowEngine(agents)

        result = await engine.run([{"agent": "A"}, {"agent": "Loop"}, {"agent": "C"}])

        assert result.status == WorkflowStatus.COMPLETED
        assert agents.calls == ["A", "Loop", "Loop", "Loop", "C"]
        assert result.results[1]["workflowControl"] == {"action": "start", "targetStep": 1}

    @pytest.mark.asyncio
    async def test_stop_directive(self):
        async def stopper(params, context):
            return {"workflowControl": {"action": "stop", "reason": "enough"}}

        agents = ScriptedAgents({"A": stopper, "B": ok})
        result = await WorkflowEngine(agents).run([{"agent": "A"}, {"agent": "B"}])

        assert result.status == WorkflowStatus.STOPPED
        assert result.success is False
        assert result.to_dict()["reason"] == "enough"
        assert agents.calls == ["A"]

    @pytest.mark.asyncio
    async def test_jump_back_via_directive(self):
        visits = {"first": 0}

        async def first(params, context):
            visits["first"] += 1
            return {"visit": visits["first"]}

        async def rewind(params, context):
            if visits["first"] < 2:
                return {"workflowControl": {"action": "next", "targetStep": 0}}
            return {}

        agents = ScriptedAgents({"First": first, "Rewind": rewind})
        result = await WorkflowEngine(agents).run([{"agent": "First"}, {"agent": "Rewind"}])

        assert result.status == WorkflowStatus.COMPLETED
        assert visits["first"] == 2
        assert agents.calls == ["First", "Rewind", "First", "Rewind"]

    @pytest.mark.asyncio
    async def test_non_integer_jump_target_fails_step(self):
        async def bad_target(params, context):
            return {"workflowControl": {"action": "next", "targetStep": "second"}}

        agents = ScriptedAgents({"A": bad_target, "B": ok})
        result = await WorkflowEngine(agents).run([{"agent": "A"}, {"agent": "B"}])

        assert result.status == WorkflowStatus.FAILED
        assert result.success is False
        assert agents.calls == ["A"]
        assert "Invalid jump target 'second'" in result.to_dict()["error"]

    def test_boolean_jump_target_is_invalid(self):
        envelope = {"success": True, "result": {"workflowControl": {"action": "goto", "targetStep": True}}}
        assert classify_outcome(WorkflowStep(agent="A"), envelope) == Fail("Invalid jump target True from A")

    @pytest.mark.asyncio
    async def test_invalid_jump_fails(self):
        async def jumper(params, context):
            return {"workflowControl": {"action": "jump", "targetStep": 7}}

        result = await WorkflowEngine(ScriptedAgents({"A": jumper})).run([{"agent": "A"}])

        assert result.status == WorkflowStatus.FAILED
        assert "Invalid jump target 7" in result.to_dict()["error"]

    @pytest.mark.asyncio
    async def test_pause_and_resume(self):
        async def pauser(params, context):
            return {"workflowControl": {"action": "pause", "reason": "waiting for user"}}

        agents = ScriptedAgents({"A": pauser, "B": ok})
        engine = WorkflowEngine(agents)

        paused = await engine.run([{"agent": "A"}, {"agent": "B"}])
        assert paused.status == WorkflowStatus.PAUSED
        assert paused.paused is True
        assert engine.paused_workflows == [paused.workflow_id]

        resumed = await engine.resume(paused.workflow_id)
        assert resumed.status == WorkflowStatus.COMPLETED
        assert resumed.workflow_id == paused.workflow_id
        assert agents.calls == ["A", "B"]
        assert engine.paused_workflows == []

    @pytest.mark.asyncio
    async def test_discard_paused_workflow(self):
        async def pauser(params, context):
            return {"workflowControl": {"action": "pause"}}

        engine = WorkflowEngine(ScriptedAgents({"A": pauser}))
        paused = await engine.run([{"agent": "A"}, {"agent": "A"}])

        assert engine.discard(paused.workflow_id) is True
        assert engine.discard(paused.workflow_id) is False
        with pytest.raises(WorkflowNotFound):
            await engine.resume(paused.workflow_id)

    @pytest.mark.asyncio
    async def test_paused_workflows_are_capped(self):
        async def pauser(params, context):
            return {"workflowControl": {"action": "pause"}}

        engine = WorkflowEngine(ScriptedAgents({"A": pauser}), max_paused=2)
        runs = [await engine.run([{"agent": "A"}, {"agent": "A"}]) for _ in range(3)]

        # oldest dropped first
        assert engine.paused_workflows == [runs[1].workflow_id, runs[2].workflow_id]

    @pytest.mark.asyncio
    async def test_resume_unknown_workflow(self):
        engine = WorkflowEngine(ScriptedAgents({}))
        with pytest.raises(WorkflowNotFound):
            await engine.resume("missing")

    @pytest.mark.asyncio
    async def test_step_timeout(self):
        async def slow(params, context):
            await asyncio.sleep(1)
            return {}

        engine = WorkflowEngine(ScriptedAgents({"Slow": slow}), step_timeout=0.05)
        result = await engine.run([{"agent": "Slow"}])

        assert result.status == WorkflowStatus.FAILED
        assert "timed out" in result.results[0]["error"]

    @pytest.mark.asyncio
    async def test_max_executions_guards_loops(self):
        async def forever(params, context):
            return {"workflowControl": {"action": "start", "targetStep": 0}}

        engine = WorkflowEngine(ScriptedAgents({"A": forever}), max_executions=5)
        result = await engine.run([{"agent": "A"}])

        assert result.status == WorkflowStatus.FAILED
        assert len(result.results) == 5
        assert "exceeded 5" in result.to_dict()["error"]

    @pytest.mark.asyncio
    async def test_executor_exception_becomes_failed_step(self):
        async def broken(name, params, context):
            raise RuntimeError("executor down")

        result = await WorkflowEngine(broken).run([{"agent": "A", "params": {"action": "go"}}])

        assert result.status == WorkflowStatus.FAILED
        assert result.results[0]["error"] == "executor down"
        assert result.results[0]["action"] == "go"

    @pytest.mark.asyncio
    async def test_empty_workflow_completes(self):
        result = await WorkflowEngine(ScriptedAgents({})).run([])
        assert result.status == WorkflowStatus.COMPLETED
        assert result.success is True

    def test_step_requires_agent(self):
        with pytest.raises(ValueError):
            WorkflowStep.from_dict({"params": {}})
