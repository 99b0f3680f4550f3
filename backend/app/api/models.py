"""Pydantic models for API requests and responses."""
from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any, Union


class AgentRegistration(BaseModel):
    """Agent definition submitted for registration."""
    description: Optional[str] = Field(None, description="Human-readable description")
    parameters: Dict[str, Any] = Field(default_factory=dict, description="Parameter schema")
    dependencies: List[str] = Field(default_factory=list, description="Declared dependency names")
    execution_target: str = Field(default="frontend", description="frontend or backend")
    requires_database: bool = Field(default=False, description="Whether the agent needs a database")
    database_type: Optional[str] = Field(None, description="sqlite or duckdb")
    code: Optional[str] = Field(None, description="Full agent source")
    bootstrap_source: Optional[str] = Field(None, description="Bootstrap source (legacy agents)")
    config: Dict[str, Any] = Field(default_factory=dict, description="Agent configuration")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Orchestrator metadata")
    force: bool = Field(default=False, description="Delete the stored definition before registering")


class ExecuteRequest(BaseModel):
    """Single agent execution request."""
    params: Dict[str, Any] = Field(default_factory=dict, description="Agent parameters (action, ...)")
    context: Dict[str, Any] = Field(default_factory=dict, description="Call context")


class WorkflowStepModel(BaseModel):
    """One workflow step."""
    agent: str = Field(..., description="Agent name")
    params: Dict[str, Any] = Field(default_factory=dict, description="Agent parameters")
    context: Dict[str, Any] = Field(default_factory=dict, description="Step context")
    continueOnError: bool = Field(default=False, description="Keep going when this step fails")


class WorkflowRequest(BaseModel):
    """Workflow execution request."""
    steps: List[WorkflowStepModel] = Field(..., description="Ordered workflow steps")
    context: Dict[str, Any] = Field(default_factory=dict, description="Shared workflow context")
    name: Optional[str] = Field(None, description="Optional workflow name")


class AskRequest(BaseModel):
    """Intent payload routing request."""
    payload: Any = Field(..., description="Intent payload (string or object)")
    context: Dict[str, Any] = Field(default_factory=dict, description="Caller context")


class LocalRequest(BaseModel):
    """Local (offline) orchestration request."""
    message: str = Field(..., description="User message")
    intent: Optional[Union[Dict[str, Any], str]] = Field(None, description="Pre-classified intent data or intent name")
    context: Dict[str, Any] = Field(default_factory=dict, description="Caller context")


class AgentSummary(BaseModel):
    """Registered agent summary."""
    name: str = Field(..., description="Agent name")
    description: Optional[str] = Field(None, description="Agent description")
    dependencies: List[str] = Field(default_factory=list, description="Declared dependencies")
    execution_target: str = Field(..., description="frontend or backend")
    loaded: bool = Field(..., description="Whether a live instance is cached")


class AgentListResponse(BaseModel):
    """Registered agents."""
    agents: List[AgentSummary] = Field(..., description="Registered agents")
    total: int = Field(..., description="Number of registered agents")


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = Field(..., description="Service status")
    initialized: bool = Field(..., description="Whether the orchestrator is initialized")
    registered_agents: int = Field(..., description="Number of registered agents")
    loaded_agents: int = Field(..., description="Number of loaded agents")
