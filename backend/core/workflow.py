"""Workflow Engine - Sequential Multi-Step Agent Execution

Runs an ordered list of agent steps over a shared context. After each
step the result envelope is classified into one outcome:

1. Continue: advance to the next step
2. JumpTo: move to an arbitrary step index
3. Pause: suspend; the workflow can be resumed later by id
4. Stop: finish early with status "stopped"
5. Fail: halt (unless the step opted into continue_on_error)

Agents steer the workflow either by returning a ``workflowControl``
directive in their result, or by calling the ``workflow_controls`` handle
injected into their context.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from core.errors import StepFailure, WorkflowNotFound

logger = logging.getLogger(__name__)

StepExecutor = Callable[[str, Dict[str, Any], Dict[str, Any]], Awaitable[Dict[str, Any]]]


class WorkflowStatus:
    """Workflow lifecycle states"""
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    STOPPED = "stopped"
    FAILED = "failed"


TERMINAL_STATUSES = (WorkflowStatus.COMPLETED, WorkflowStatus.STOPPED, WorkflowStatus.FAILED)


@dataclass(frozen=True)
class WorkflowStep:
    """One agent invocation in a workflow"""

    agent: str
    params: Dict[str, Any] = field(default_factory=dict)
    context: Dict[str, Any] = field(default_factory=dict)
    continue_on_error: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WorkflowStep":
        if not data.get("agent"):
            raise ValueError("Workflow step requires an agent name")
        return cls(
            agent=data["agent"],
            params=dict(data.get("params") or {}),
            context=dict(data.get("context") or {}),
            continue_on_error=bool(data.get("continueOnError", data.get("continue_on_error", False))),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "agent": self.agent,
            "params": self.params,
            "context": self.context,
            "continueOnError": self.continue_on_error,
        }


# ==================== Step Outcomes ====================

@dataclass(frozen=True)
class Continue:
    pass


@dataclass(frozen=True)
class JumpTo:
    index: int


@dataclass(frozen=True)
class Pause:
    reason: Optional[str] = None


@dataclass(frozen=True)
class Stop:
    reason: Optional[str] = None


@dataclass(frozen=True)
class Fail:
    error: str


StepOutcome = Union[Continue, JumpTo, Pause, Stop, Fail]


def _directive(envelope: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Find a workflow control directive in an envelope or its agent result"""
    for source in (envelope, envelope.get("result")):
        if isinstance(source, dict):
            directive = source.get("workflowControl") or source.get("workflow_control")
            if isinstance(directive, dict):
                return directive
    return None


def classify_outcome(step: WorkflowStep, envelope: Dict[str, Any]) -> StepOutcome:
    """Map a step's result envelope to an outcome"""
    if not envelope.get("success"):
        return Fail(str(envelope.get("error") or "Step failed"))

    directive = _directive(envelope)
    if directive is None:
        return Continue()

    action = directive.get("action")
    target = directive.get("targetStep", directive.get("target_step"))
    reason = directive.get("reason")

    if action == "stop":
        return Stop(reason)
    if action == "pause":
        return Pause(reason)
    if action in ("start", "next", "jump", "goto") and target is not None:
        if isinstance(target, bool) or not isinstance(target, int):
            return Fail(f"Invalid jump target {target!r} from {step.agent}")
        return JumpTo(target)
    if action == "start":
        return JumpTo(0)
    return Continue()


class WorkflowControls:
    """Control handle injected into each step's context

    The directive builders return a dict meant to be placed in the agent's
    result under ``workflowControl``; they also record the directive so an
    agent may simply call them and return normally.
    """

    def __init__(self, state: "WorkflowState"):
        self._state = state
        self.pending: Optional[Dict[str, Any]] = None

    def _emit(self, directive: Dict[str, Any]) -> Dict[str, Any]:
        self.pending = directive
        return directive

    def start(self, step: int = 0) -> Dict[str, Any]:
        return self._emit({"action": "start", "targetStep": step})

    def next(self, step: Optional[int] = None) -> Dict[str, Any]:
        directive: Dict[str, Any] = {"action": "next"}
        if step is not None:
            directive["targetStep"] = step
        return self._emit(directive)

    def stop(self, reason: Optional[str] = None) -> Dict[str, Any]:
        return self._emit({"action": "stop", "reason": reason})

    def pause(self, reason: Optional[str] = None) -> Dict[str, Any]:
        return self._emit({"action": "pause", "reason": reason})

    def get_current_step(self) -> int:
        return self._state.current_step

    def get_total_steps(self) -> int:
        return len(self._state.steps)

    def get_results(self) -> List[Dict[str, Any]]:
        return list(self._state.results)

    def get_context(self) -> Dict[str, Any]:
        return dict(self._state.context)

    def get_status(self) -> str:
        return self._state.status


@dataclass
class WorkflowState:
    """Mutable state of one workflow run"""

    steps: List[WorkflowStep]
    context: Dict[str, Any] = field(default_factory=dict)
    workflow_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    current_step: int = 0
    results: List[Dict[str, Any]] = field(default_factory=list)
    status: str = WorkflowStatus.RUNNING
    executions: int = 0
    error: Optional[str] = None
    reason: Optional[str] = None

    def transition(self, status: str):
        if self.status in TERMINAL_STATUSES:
            raise RuntimeError(f"Workflow {self.workflow_id} already {self.status}")
        self.status = status


@dataclass
class WorkflowResult:
    """Outcome of a workflow run (or of a paused segment)"""

    state: WorkflowState
    name: Optional[str] = None

    @property
    def status(self) -> str:
        return self.state.status

    @property
    def paused(self) -> bool:
        return self.state.status == WorkflowStatus.PAUSED

    @property
    def results(self) -> List[Dict[str, Any]]:
        return self.state.results

    @property
    def context(self) -> Dict[str, Any]:
        return self.state.context

    @property
    def workflow_id(self) -> str:
        return self.state.workflow_id

    @property
    def success(self) -> bool:
        return self.state.status == WorkflowStatus.COMPLETED and all(
            result.get("success") for result in self.state.results
        )

    def to_dict(self, include_context: bool = False) -> Dict[str, Any]:
        data = {
            "success": self.success,
            "workflow": self.name,
            "status": self.status,
            "steps": len(self.state.results),
            "total_steps": len(self.state.steps),
            "current_step": self.state.current_step,
            "paused": self.paused,
            "workflow_id": self.workflow_id,
            "results": self.results,
            "timestamp": datetime.utcnow().isoformat(),
        }
        if self.state.error:
            data["error"] = self.state.error
        if self.state.reason:
            data["reason"] = self.state.reason
        if include_context:
            data["context"] = self.context
        return data


class WorkflowEngine:
    """Executes workflows step by step

    ``execute_step(agent, params, context)`` runs one agent and returns its
    envelope; the engine never calls agents directly.
    """

    def __init__(
        self,
        execute_step: StepExecutor,
        step_timeout: Optional[float] = None,
        max_executions: int = 100,
        max_paused: int = 100,
    ):
        self._execute_step = execute_step
        self.step_timeout = step_timeout
        self.max_executions = max_executions
        self.max_paused = max_paused
        self._paused: Dict[str, WorkflowState] = {}
        logger.info("🏗️ Workflow Engine initialized")

    @property
    def paused_workflows(self) -> List[str]:
        return list(self._paused)

    async def run(
        self,
        steps: List[Union[WorkflowStep, Dict[str, Any]]],
        shared_context: Optional[Dict[str, Any]] = None,
        name: Optional[str] = None,
    ) -> WorkflowResult:
        """Run a workflow from its first step"""
        state = WorkflowState(
            steps=[s if isinstance(s, WorkflowStep) else WorkflowStep.from_dict(s) for s in steps],
            context=dict(shared_context or {}),
        )
        logger.info(f"🎯 Starting workflow {state.workflow_id} ({len(state.steps)} steps)")
        await self._drive(state)
        return WorkflowResult(state=state, name=name)

    async def resume(self, workflow_id: str) -> WorkflowResult:
        """Continue a paused workflow after the step that paused it

        Raises:
            WorkflowNotFound: no paused workflow with this id
        """
        state = self._paused.pop(workflow_id, None)
        if state is None:
            raise WorkflowNotFound(workflow_id)

        logger.info(f"▶️ Resuming workflow {workflow_id} at step {state.current_step}")
        state.status = WorkflowStatus.RUNNING
        state.reason = None
        await self._drive(state)
        return WorkflowResult(state=state)

    def discard(self, workflow_id: str) -> bool:
        """Forget a paused workflow without resuming it"""
        if self._paused.pop(workflow_id, None) is None:
            return False
        logger.info(f"🗑️ Discarded paused workflow {workflow_id}")
        return True

    def _keep_paused(self, state: WorkflowState):
        self._paused[state.workflow_id] = state
        while len(self._paused) > self.max_paused:
            oldest = next(iter(self._paused))
            del self._paused[oldest]
            logger.warning(f"⚠️ Dropped paused workflow {oldest} (more than {self.max_paused} paused)")

    async def _drive(self, state: WorkflowState):
        total = len(state.steps)

        while state.current_step < total:
            if state.executions >= self.max_executions:
                state.error = f"Workflow exceeded {self.max_executions} step executions"
                logger.error(f"❌ {state.error}")
                state.transition(WorkflowStatus.FAILED)
                return

            index = state.current_step
            step = state.steps[index]
            state.executions += 1

            logger.info(f"🔄 Step {index + 1}/{total}: {step.agent}")
            controls = WorkflowControls(state)
            envelope = await self._run_step(step, index, state, controls)

            if controls.pending and envelope.get("success") and _directive(envelope) is None:
                envelope = {**envelope, "workflowControl": controls.pending}

            state.results.append(envelope)
            self._merge_result(state, step, index, envelope)

            outcome = classify_outcome(step, envelope)

            if isinstance(outcome, Fail):
                if step.continue_on_error:
                    logger.warning(f"⚠️ Step {index + 1} ({step.agent}) failed, continuing: {outcome.error}")
                    state.current_step = index + 1
                    continue
                state.error = str(StepFailure(step.agent, index, outcome.error))
                logger.error(f"❌ {state.error}")
                state.transition(WorkflowStatus.FAILED)
                return

            if isinstance(outcome, Stop):
                logger.info(f"⏹️ Workflow stopped at step {index + 1}: {outcome.reason}")
                state.reason = outcome.reason
                state.current_step = index + 1
                state.transition(WorkflowStatus.STOPPED)
                return

            if isinstance(outcome, Pause):
                logger.info(f"⏸️ Workflow paused at step {index + 1}: {outcome.reason}")
                state.reason = outcome.reason
                state.current_step = index + 1
                state.transition(WorkflowStatus.PAUSED)
                self._keep_paused(state)
                return

            if isinstance(outcome, JumpTo):
                if not 0 <= outcome.index < total:
                    state.error = f"Invalid jump target {outcome.index} from step {index}"
                    logger.error(f"❌ {state.error}")
                    state.transition(WorkflowStatus.FAILED)
                    return
                logger.info(f"↪️ Jumping from step {index + 1} to step {outcome.index + 1}")
                state.current_step = outcome.index
                continue

            state.current_step = index + 1

        state.transition(WorkflowStatus.COMPLETED)
        logger.info(f"✅ Workflow {state.workflow_id} completed ({len(state.results)} executions)")

    async def _run_step(
        self,
        step: WorkflowStep,
        index: int,
        state: WorkflowState,
        controls: WorkflowControls,
    ) -> Dict[str, Any]:
        step_context = {
            **state.context,
            **step.context,
            "previous_results": list(state.results),
            "current_step": index,
            "total_steps": len(state.steps),
            "workflow_controls": controls,
            "workflow_id": state.workflow_id,
        }

        call = self._execute_step(step.agent, step.params, step_context)
        try:
            if self.step_timeout:
                return await asyncio.wait_for(call, timeout=self.step_timeout)
            return await call
        except asyncio.TimeoutError:
            return self._failed(step, f"Step timed out after {self.step_timeout}s")
        except Exception as e:
            return self._failed(step, str(e))

    @staticmethod
    def _failed(step: WorkflowStep, error: str) -> Dict[str, Any]:
        return {
            "success": False,
            "agent": step.agent,
            "action": step.params.get("action"),
            "error": error,
            "timestamp": datetime.utcnow().isoformat(),
        }

    @staticmethod
    def _merge_result(state: WorkflowState, step: WorkflowStep, index: int, envelope: Dict[str, Any]):
        state.context[f"{step.agent}_result"] = envelope
        state.context[f"step_{index}_result"] = envelope
