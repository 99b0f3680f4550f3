"""Core orchestration components for the Agent Orchestrator

This package contains the registry-backed agent runtime:
- agent_registry: Persistent agent definitions
- dependency_resolver / sandbox / agent_loader: Turning definitions into live agents
- workflow: Sequential multi-step workflow engine
- intent_router / local_fallback: Intent payload routing
- orchestrator: Facade that wires everything together
"""

from core.agent_registry import AgentDefinition, AgentRegistry
from core.agent_loader import AgentLoader, LoadedAgent
from core.errors import (
    AgentNotFound,
    DependencyUnresolved,
    EvaluationFailure,
    NoExecutableCode,
    OrchestrationError,
    OrchestratorNotInitialized,
    StepFailure,
    StoreUnavailable,
    WorkflowNotFound,
)
from core.intent_router import IntentRouter
from core.orchestrator import AgentOrchestrator, get_orchestrator, reset_orchestrator
from core.workflow import WorkflowEngine, WorkflowResult, WorkflowStatus, WorkflowStep

__version__ = "1.0.0"

__all__ = [
    # Registry
    "AgentDefinition",
    "AgentRegistry",
    # Loader
    "AgentLoader",
    "LoadedAgent",
    # Workflow
    "WorkflowEngine",
    "WorkflowResult",
    "WorkflowStatus",
    "WorkflowStep",
    # Routing
    "IntentRouter",
    # Orchestrator
    "AgentOrchestrator",
    "get_orchestrator",
    "reset_orchestrator",
    # Errors
    "OrchestrationError",
    "AgentNotFound",
    "NoExecutableCode",
    "EvaluationFailure",
    "DependencyUnresolved",
    "StepFailure",
    "StoreUnavailable",
    "OrchestratorNotInitialized",
    "WorkflowNotFound",
]
