"""Error taxonomy for the orchestration core.

Only AgentNotFound, NoExecutableCode and OrchestratorNotInitialized escape
to callers. The others are recovered locally: evaluation failures degrade a
single agent, unresolved dependencies are omitted from the injected context,
step failures are recorded in workflow results and an unavailable store
degrades registration to memory only.
"""


class OrchestrationError(Exception):
    """Base class for orchestration errors."""


class AgentNotFound(OrchestrationError):
    """Agent is absent from the registry and from the legacy file fallback."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Agent {name} not found in registry or file system")


class NoExecutableCode(OrchestrationError):
    """Definition carries neither source code nor a file path."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Agent {name} has no code or file path")


class EvaluationFailure(OrchestrationError):
    """Stored agent source failed to evaluate."""

    def __init__(self, name: str, reason: str):
        self.name = name
        self.reason = reason
        super().__init__(f"Failed to evaluate agent {name}: {reason}")


class DependencyUnresolved(OrchestrationError):
    """A declared dependency could not be resolved."""

    def __init__(self, dependency: str, reason: str):
        self.dependency = dependency
        self.reason = reason
        super().__init__(f"Dependency {dependency} could not be resolved: {reason}")


class StepFailure(OrchestrationError):
    """An agent step in a workflow returned a failure."""

    def __init__(self, agent: str, step: int, error: str):
        self.agent = agent
        self.step = step
        self.error = error
        super().__init__(f"Step {step} ({agent}) failed: {error}")


class StoreUnavailable(OrchestrationError):
    """The registry backing store cannot be reached."""


class OrchestratorNotInitialized(OrchestrationError):
    """An operation was attempted before initialize()."""

    def __init__(self):
        super().__init__("AgentOrchestrator not initialized. Call initialize() first.")


class WorkflowNotFound(OrchestrationError):
    """No paused workflow exists under the given id."""

    def __init__(self, workflow_id: str):
        self.workflow_id = workflow_id
        super().__init__(f"No paused workflow with id {workflow_id}")
