"""API routes for the agent orchestrator."""
import logging
from typing import Any, Dict

from fastapi import APIRouter, HTTPException

from app.api.models import (
    AgentListResponse,
    AgentRegistration,
    AgentSummary,
    AskRequest,
    ExecuteRequest,
    LocalRequest,
    WorkflowRequest,
)
from core.errors import AgentNotFound, OrchestratorNotInitialized, WorkflowNotFound
from core.orchestrator import get_orchestrator

logger = logging.getLogger(__name__)
router = APIRouter()


def _orchestrator():
    orchestrator = get_orchestrator()
    if not orchestrator.initialized:
        raise HTTPException(status_code=503, detail=str(OrchestratorNotInitialized()))
    return orchestrator


@router.get("/agents", response_model=AgentListResponse)
async def list_agents():
    """List registered agents.

    Returns:
        Registered agents with their load state
    """
    orchestrator = _orchestrator()
    summaries = []
    for name in orchestrator.registered_agents():
        definition = orchestrator.get_definition(name)
        if definition is None:
            continue
        summaries.append(AgentSummary(
            name=name,
            description=definition.description,
            dependencies=definition.dependencies,
            execution_target=definition.execution_target,
            loaded=orchestrator.is_agent_loaded(name),
        ))
    return AgentListResponse(agents=summaries, total=len(summaries))


@router.post("/agents/{name}")
async def register_agent(name: str, request: AgentRegistration) -> Dict[str, Any]:
    """Register or update an agent definition.

    Args:
        name: Agent name
        request: Agent definition

    Returns:
        Registration result
    """
    orchestrator = _orchestrator()
    definition = request.model_dump(exclude={"force"})
    try:
        if request.force:
            return await orchestrator.force_reregister_agent(name, definition)
        return await orchestrator.register_agent(name, definition)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.post("/agents/{name}/execute")
async def execute_agent(name: str, request: ExecuteRequest) -> Dict[str, Any]:
    """Execute a single agent.

    Returns:
        Execution envelope {success, agent, action, result | error, timestamp}
    """
    orchestrator = _orchestrator()
    if not orchestrator.is_agent_available(name):
        raise HTTPException(status_code=404, detail=str(AgentNotFound(name)))
    return await orchestrator.execute_agent(name, request.params, request.context)


@router.post("/workflows")
async def execute_workflow(request: WorkflowRequest) -> Dict[str, Any]:
    """Run a multi-step workflow."""
    orchestrator = _orchestrator()
    steps = [step.model_dump() for step in request.steps]
    result = await orchestrator.execute_workflow(steps, request.context, name=request.name)
    logger.info(f"🏁 Workflow {result['workflow_id']} finished with status {result['status']}")
    return result


@router.post("/workflows/{workflow_id}/resume")
async def resume_workflow(workflow_id: str) -> Dict[str, Any]:
    """Resume a paused workflow."""
    orchestrator = _orchestrator()
    try:
        return await orchestrator.resume_workflow(workflow_id)
    except WorkflowNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/orchestration/ask")
async def ask(request: AskRequest) -> Dict[str, Any]:
    """Route an intent payload to agents."""
    return await get_orchestrator().ask(request.payload, request.context)


@router.post("/orchestration/local")
async def local(request: LocalRequest) -> Dict[str, Any]:
    """Handle a message with local-only orchestration."""
    return await get_orchestrator().handle_local_orchestration(
        request.message, request.intent, request.context
    )
