"""Agent Orchestrator - Single Entry Point for Agent Execution

Composes the registry, dependency resolver, loader, workflow engine,
intent router and local fallback into one facade. Callers register agent
definitions, execute single agents, run workflows, and hand over intent
payloads (online) or raw messages (offline).
"""

import logging
import os
from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

import aiofiles
from sqlalchemy.exc import SQLAlchemyError

from app.core.config import settings
from core.agent_loader import AgentLoader, LoadedAgent
from core.agent_registry import AgentDefinition, AgentRegistry
from core.dependency_resolver import DependencyResolver
from core.errors import AgentNotFound, OrchestratorNotInitialized, StoreUnavailable
from core.intent_router import IntentRouter
from core.local_fallback import LocalFallbackOrchestrator
from core.sandbox import AgentSandbox
from core.workflow import WorkflowEngine, WorkflowStatus, WorkflowStep
from shared.utils.intent_responses import GENERIC_ERROR_RESPONSE

logger = logging.getLogger(__name__)

DefinitionInput = Union[AgentDefinition, Dict[str, Any], str]


class AgentOrchestrator:
    """Facade over the orchestration core

    Configuration keys accepted by ``initialize``:
        database: SQLAlchemy session factory for the registry (host-owned)
        database_url: URL used when no session factory is given
        agents_dir: directory of legacy file-backed agents
        context: orchestrator-level context merged into every agent call
        window_controls: object or dict with hide_all_windows/show_all_windows
        capabilities: extra host-provided dependency capabilities
        register_default_agents / preload_agents / allowed_imports
        step_timeout / max_executions / max_paused
    """

    def __init__(self):
        self.initialized = False
        self.registry: Optional[AgentRegistry] = None
        self.resolver: Optional[DependencyResolver] = None
        self.loader: Optional[AgentLoader] = None
        self.engine: Optional[WorkflowEngine] = None
        self.router = IntentRouter()
        self.fallback: Optional[LocalFallbackOrchestrator] = None
        self.context: Dict[str, Any] = {}
        self.window_controls: Any = None
        self.agents_dir: Optional[str] = None
        self._memory_definitions: Dict[str, AgentDefinition] = {}
        self._owned_engine = None
        logger.info("🎼 Agent Orchestrator created (call initialize())")

    # ==================== Lifecycle ====================

    async def initialize(self, config: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Build the orchestration core and register the default agents"""
        if self.initialized:
            logger.info("ℹ️ Agent Orchestrator already initialized")
            return {"success": True, "agent_count": len(self.registered_agents())}

        config = dict(config or {})
        self.context = dict(config.get("context") or {})
        self.window_controls = config.get("window_controls")
        self.agents_dir = config.get("agents_dir", settings.agents_dir)

        session_factory = config.get("database")
        if session_factory is None:
            try:
                session_factory = self._open_store(config.get("database_url") or settings.database_url)
            except StoreUnavailable as e:
                logger.warning(f"⚠️ Registry store unavailable, using in-memory registration: {e}")

        self.registry = AgentRegistry(session_factory) if session_factory is not None else None
        if self.registry is not None:
            try:
                self.registry.ensure_schema()
            except StoreUnavailable as e:
                logger.warning(f"⚠️ Registry store unavailable, using in-memory registration: {e}")
                self.registry = None

        capabilities = dict(config.get("capabilities") or {})
        if session_factory is not None:
            capabilities["database"] = session_factory
        if self.window_controls is not None:
            capabilities["window_controls"] = self.window_controls
        self.resolver = DependencyResolver(provided=capabilities)

        sandbox = AgentSandbox(
            allowed_imports=config.get("allowed_imports", settings.sandbox_allowed_imports),
            agents_dir=self.agents_dir,
        )
        self.loader = AgentLoader(
            lookup=self._lookup_definition,
            resolver=self.resolver,
            sandbox=sandbox,
            agents_dir=self.agents_dir,
            context_provider=lambda: dict(self.context),
            bindings_provider=self._agent_bindings,
        )
        self.engine = WorkflowEngine(
            execute_step=self._execute_step,
            step_timeout=config.get("step_timeout", settings.step_timeout),
            max_executions=config.get("max_executions", settings.workflow_max_executions),
            max_paused=config.get("max_paused", settings.workflow_max_paused),
        )
        self.fallback = LocalFallbackOrchestrator(execute_agent=self.execute_agent, ask=self.ask)
        self.initialized = True

        if config.get("register_default_agents", settings.register_default_agents):
            await self._register_default_agents()

        for name in config.get("preload_agents", settings.preload_agents):
            try:
                await self.loader.load_agent(name)
            except Exception as e:
                logger.warning(f"⚠️ Failed to preload agent {name}: {e}")

        agent_count = len(self.registered_agents())
        logger.info(f"✅ Agent Orchestrator initialized ({agent_count} agents)")
        return {"success": True, "agent_count": agent_count}

    def _open_store(self, database_url: str):
        """Session factory for an orchestrator-owned engine"""
        from app.db.database import create_session_factory

        try:
            session_factory = create_session_factory(database_url)
        except (OSError, ImportError, SQLAlchemyError) as e:
            raise StoreUnavailable(f"Cannot open {database_url}: {e}") from e
        self._owned_engine = session_factory.kw.get("bind")
        return session_factory

    async def shutdown(self):
        """Wait for background work, drop caches and release owned resources"""
        if not self.initialized:
            return
        await self.fallback.drain()
        self.loader.clear_cache()
        if self._owned_engine is not None:
            self._owned_engine.dispose()
            self._owned_engine = None
        self.initialized = False
        logger.info("👋 Agent Orchestrator shut down")

    def _require_initialized(self):
        if not self.initialized:
            raise OrchestratorNotInitialized()

    async def _register_default_agents(self):
        from app.agents.defaults import load_default_definitions

        for definition in await load_default_definitions():
            await self.register_agent(definition.name, definition)

    # ==================== Registration ====================

    async def register_agent(self, name: str, definition: DefinitionInput) -> Dict[str, Any]:
        """Register (insert or update) an agent definition

        Args:
            name: Agent name
            definition: AgentDefinition, dict (snake_case or camelCase), or a
                path to a file-backed agent

        Returns:
            {success, agent, persisted}
        """
        self._require_initialized()

        if isinstance(definition, str):
            definition = await self._definition_from_file(name, definition)
        elif isinstance(definition, dict):
            definition = AgentDefinition.from_dict(definition, name=name)
        elif definition.name != name:
            definition = replace(definition, name=name)

        persisted = False
        if self.registry is not None:
            try:
                self.registry.upsert(definition)
                self._memory_definitions.pop(name, None)
                persisted = True
            except StoreUnavailable as e:
                logger.warning(f"⚠️ Storing {name} in memory only: {e}")
        if not persisted:
            self._memory_definitions[name] = definition

        # Next use picks up the new definition
        self.loader.unload_agent(name)
        logger.info(f"📝 Registered agent: {name}")
        return {"success": True, "agent": name, "persisted": persisted}

    async def _definition_from_file(self, name: str, file_path: str) -> AgentDefinition:
        async with aiofiles.open(file_path, "r", encoding="utf-8") as f:
            code = await f.read()
        return AgentDefinition(name=name, code=code, file_path=file_path, execution_target="backend")

    async def force_reregister_agent(self, name: str, definition: Optional[DefinitionInput] = None) -> Dict[str, Any]:
        """Delete an agent's stored definition and register it again"""
        self._require_initialized()

        if definition is None:
            definition = self._lookup_definition(name)
            if definition is None:
                from app.agents.defaults import load_default_definitions

                defaults = {d.name: d for d in await load_default_definitions()}
                definition = defaults.get(name)
            if definition is None:
                raise AgentNotFound(name)

        if self.registry is not None:
            try:
                self.registry.delete(name)
            except StoreUnavailable as e:
                logger.warning(f"⚠️ Could not delete {name} from registry: {e}")
        self._memory_definitions.pop(name, None)
        self.loader.unload_agent(name)

        logger.info(f"🔁 Force re-registering agent: {name}")
        return await self.register_agent(name, definition)

    def _lookup_definition(self, name: str) -> Optional[AgentDefinition]:
        if self.registry is not None:
            try:
                definition = self.registry.find(name)
                if definition is not None:
                    return definition
            except StoreUnavailable as e:
                logger.warning(f"⚠️ Registry lookup failed for {name}: {e}")
        return self._memory_definitions.get(name)

    def get_definition(self, name: str) -> Optional[AgentDefinition]:
        """Stored definition for an agent (registry first, then memory)"""
        self._require_initialized()
        return self._lookup_definition(name)

    def registered_agents(self) -> List[str]:
        """Names of all registered agents (store and memory)"""
        names: List[str] = []
        if self.registry is not None:
            try:
                names.extend(self.registry.names())
            except StoreUnavailable as e:
                logger.warning(f"⚠️ Registry listing failed: {e}")
        names.extend(name for name in self._memory_definitions if name not in names)
        return names

    def is_agent_available(self, name: str) -> bool:
        """Registered, loaded, or present as a legacy agent file"""
        if self.loader is not None and self.loader.is_loaded(name):
            return True
        if name in self._memory_definitions or self._lookup_definition(name) is not None:
            return True
        return bool(self.agents_dir) and os.path.isfile(os.path.join(self.agents_dir, f"{name}.py"))

    # ==================== Agent Cache ====================

    async def load_agent(self, name: str) -> LoadedAgent:
        self._require_initialized()
        return await self.loader.load_agent(name)

    def unload_agent(self, name: str) -> bool:
        self._require_initialized()
        return self.loader.unload_agent(name)

    async def reload_agent(self, name: str) -> LoadedAgent:
        self._require_initialized()
        return await self.loader.reload_agent(name)

    def clear_agent_cache(self):
        self._require_initialized()
        self.loader.clear_cache()

    def get_agent(self, name: str) -> Optional[LoadedAgent]:
        self._require_initialized()
        return self.loader.get_agent(name)

    def loaded_agents(self) -> List[str]:
        self._require_initialized()
        return self.loader.loaded_names()

    def is_agent_loaded(self, name: str) -> bool:
        self._require_initialized()
        return self.loader.is_loaded(name)

    # ==================== Execution ====================

    async def execute_agent(
        self,
        name: str,
        params: Optional[Dict[str, Any]] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Execute one agent; returns {success, agent, action, result | error, timestamp}"""
        self._require_initialized()
        return await self.loader.execute(name, params, context)

    async def _execute_step(self, name: str, params: Dict[str, Any], context: Dict[str, Any]) -> Dict[str, Any]:
        return await self.loader.execute(name, params, context)

    def _agent_bindings(self) -> Dict[str, Any]:
        bindings = {
            "orchestrator": self,
            "execute_agent": self.execute_agent,
            "get_agent": self.get_agent,
        }
        if self.window_controls is not None:
            for key in ("hide_all_windows", "show_all_windows"):
                if isinstance(self.window_controls, dict):
                    control = self.window_controls.get(key)
                else:
                    control = getattr(self.window_controls, key, None)
                if control is not None:
                    bindings[key] = control
        return bindings

    async def execute_workflow(
        self,
        steps: List[Union[WorkflowStep, Dict[str, Any]]],
        shared_context: Optional[Dict[str, Any]] = None,
        name: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Run a workflow; see WorkflowResult.to_dict() for the result shape"""
        self._require_initialized()
        result = await self.engine.run(steps, shared_context, name=name)
        return result.to_dict(include_context=True)

    async def resume_workflow(self, workflow_id: str) -> Dict[str, Any]:
        """Resume a paused workflow (WorkflowNotFound for unknown ids)"""
        self._require_initialized()
        result = await self.engine.resume(workflow_id)
        return result.to_dict(include_context=True)

    def discard_workflow(self, workflow_id: str) -> bool:
        """Drop a paused workflow that will not be resumed"""
        self._require_initialized()
        return self.engine.discard(workflow_id)

    # ==================== Intent Handling ====================

    async def ask(self, intent_payload: Any, context: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Route an intent payload through the workflow engine"""
        if not self.initialized:
            return {
                "success": False,
                "error": str(OrchestratorNotInitialized()),
                "fallback": GENERIC_ERROR_RESPONSE,
            }

        context = dict(context or {})
        try:
            payload = self.router.normalize(intent_payload)
            steps = self.router.build_steps(payload, context, is_available=self.is_agent_available)
            summary = {
                "requires_memory_access": payload.requires_memory_access,
                "capture_screen": payload.capture_screen,
                "source_text": (payload.source_text or "")[:100],
                "suggested_response": payload.suggested_response,
            }

            if not steps:
                logger.info("⚠️ No workflow steps created")
                return {
                    "success": True,
                    "primary_intent": payload.primary_intent,
                    "intents_processed": [],
                    "workflow_status": WorkflowStatus.COMPLETED,
                    "steps": 0,
                    "total_steps": 0,
                    "message": "No actionable intents found",
                    "timestamp": datetime.utcnow().isoformat(),
                    "context": summary,
                }

            result = await self.engine.run(
                steps,
                {**context, "originalPayload": payload.to_wire(), "userId": context.get("userId", "default_user")},
                name="intent_workflow",
            )
            return {
                "success": result.status == WorkflowStatus.COMPLETED,
                "primary_intent": payload.primary_intent,
                "intents_processed": result.results,
                "workflow_status": result.status,
                "workflow_id": result.workflow_id,
                "steps": len(result.results),
                "total_steps": len(steps),
                "timestamp": datetime.utcnow().isoformat(),
                "context": summary,
            }
        except Exception as e:
            logger.error(f"❌ ask() failed: {e}")
            return {"success": False, "error": str(e), "fallback": GENERIC_ERROR_RESPONSE}

    async def handle_local_orchestration(
        self,
        message: str,
        intent: Optional[Union[Dict[str, Any], str]] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Handle a message without the remote backend"""
        if not self.initialized:
            return {
                "success": False,
                "error": str(OrchestratorNotInitialized()),
                "response": GENERIC_ERROR_RESPONSE,
                "handled_by": "error_handler",
                "method": "not_initialized",
                "timestamp": datetime.utcnow().isoformat(),
            }
        return await self.fallback.handle(message, intent, context)

    def get_statistics(self) -> Dict[str, Any]:
        self._require_initialized()
        return {
            "registered_agents": self.registered_agents(),
            "loaded_agents": self.loader.loaded_names(),
            "paused_workflows": self.engine.paused_workflows,
            "background_tasks": self.fallback.pending_tasks,
        }


# Global orchestrator instance (singleton pattern)
_orchestrator: Optional[AgentOrchestrator] = None


def get_orchestrator() -> AgentOrchestrator:
    """Get the global orchestrator instance"""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = AgentOrchestrator()
    return _orchestrator


def reset_orchestrator():
    """Reset the global orchestrator (for testing)"""
    global _orchestrator
    _orchestrator = None
