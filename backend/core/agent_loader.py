"""Agent Loader / Executor

Turns stored agent definitions into live, executable instances:

- definitions come from the orchestrator lookup (registry, then memory),
  falling back to legacy ``<agents_dir>/<name>.py`` files
- stored source is evaluated by AgentSandbox; legacy files are imported
- instances are cached per name, concurrent loads share one in-flight task
- execution resolves dependencies, bootstraps once, and wraps the agent
  result in a uniform envelope
"""

import asyncio
import dis
import importlib.util
import inspect
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from core.agent_registry import AgentDefinition
from core.dependency_resolver import DependencyResolver
from core.errors import AgentNotFound, EvaluationFailure, NoExecutableCode
from core.sandbox import AgentSandbox

logger = logging.getLogger(__name__)

DefinitionLookup = Callable[[str], Union[Optional[AgentDefinition], Awaitable[Optional[AgentDefinition]]]]
ContextProvider = Callable[[], Dict[str, Any]]

CAPABILITY_NAMES = ("AGENT_FORMAT", "AGENT", "default")


# Reference bodies for placeholder detection
def _pass_body():
    pass


def _ellipsis_body():
    ...


async def _async_pass_body():
    pass


async def _async_ellipsis_body():
    ...


def _documented_body():
    """Placeholder"""


async def _async_documented_body():
    """Placeholder"""


def _opnames(code) -> tuple:
    # opcode names only; constant indexes shift when a docstring is present
    return tuple(instruction.opname for instruction in dis.get_instructions(code))


_PLACEHOLDER_SHAPES = frozenset(
    _opnames(f.__code__)
    for f in (
        _pass_body, _ellipsis_body, _async_pass_body, _async_ellipsis_body,
        _documented_body, _async_documented_body,
    )
)


def is_placeholder(func: Any) -> bool:
    """True for functions flagged as placeholders or whose body is only pass/..."""
    if getattr(func, "__agent_placeholder__", False):
        return True

    func = getattr(func, "__func__", func)
    code = getattr(func, "__code__", None)
    if code is None:
        return False
    if code.co_names or _opnames(code) not in _PLACEHOLDER_SHAPES:
        return False
    # docstrings may live in co_consts
    return all(
        const is None or const is Ellipsis or isinstance(const, str)
        for const in code.co_consts
    )


def now_iso() -> str:
    return datetime.utcnow().isoformat()


@dataclass
class LoadedAgent:
    """A live agent instance"""

    definition: AgentDefinition
    execute: Optional[Callable] = None
    bootstrap: Optional[Callable] = None
    helpers: Dict[str, Callable] = field(default_factory=dict)
    capability: Any = None
    degraded: bool = False
    load_error: Optional[str] = None
    bootstrapped: bool = False
    _bootstrap_lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def description(self) -> Optional[str]:
        return self.definition.description

    @property
    def dependencies(self) -> List[str]:
        return self.definition.dependencies

    @property
    def config(self) -> Dict[str, Any]:
        return self.definition.config

    @property
    def execution_target(self) -> str:
        return self.definition.execution_target

    async def run_bootstrap(self, config: Dict[str, Any], context: Dict[str, Any]) -> Any:
        """Run bootstrap at most once per instance"""
        async with self._bootstrap_lock:
            if self.bootstrapped:
                return None
            result = None
            if self.bootstrap is not None:
                logger.info(f"🚀 Bootstrapping agent: {self.name}")
                result = self.bootstrap(config, context)
                if inspect.isawaitable(result):
                    result = await result
            self.bootstrapped = True
            return result

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "dependencies": list(self.dependencies),
            "execution_target": self.execution_target,
            "bootstrapped": self.bootstrapped,
            "degraded": self.degraded,
            "load_error": self.load_error,
            "helpers": sorted(self.helpers),
        }


def _degraded_execute(reason: str) -> Callable:
    async def execute(params, context):
        return {"success": False, "agent": "DummyAgent", "error": reason}

    return execute


def _member(capability: Any, key: str) -> Any:
    if isinstance(capability, dict):
        return capability.get(key)
    return getattr(capability, key, None)


def _public_callables(capability: Any) -> Dict[str, Callable]:
    if isinstance(capability, dict):
        items = capability.items()
    else:
        items = ((key, getattr(capability, key, None)) for key in dir(capability))

    helpers = {}
    for key, value in items:
        if key.startswith("_") or key in ("execute", "bootstrap", "code"):
            continue
        if inspect.isroutine(value):
            helpers[key] = value
    return helpers


def find_capability(namespace: Dict[str, Any]) -> Any:
    """Locate the capability object in an evaluated namespace"""
    for key in CAPABILITY_NAMES:
        if namespace.get(key) is not None:
            return namespace[key]
    if callable(namespace.get("execute")):
        return {
            key: value for key, value in namespace.items()
            if not key.startswith("__")
        }
    return None


class AgentLoader:
    """Loads, caches and executes agents"""

    def __init__(
        self,
        lookup: DefinitionLookup,
        resolver: DependencyResolver,
        sandbox: AgentSandbox,
        agents_dir: Optional[str] = None,
        context_provider: Optional[ContextProvider] = None,
        bindings_provider: Optional[ContextProvider] = None,
    ):
        self._lookup = lookup
        self.resolver = resolver
        self.sandbox = sandbox
        self.agents_dir = agents_dir
        self._context_provider = context_provider
        self._bindings_provider = bindings_provider
        self._cache: Dict[str, LoadedAgent] = {}
        self._inflight: Dict[str, asyncio.Task] = {}
        logger.info("📦 Agent Loader initialized")

    # ==================== Loading ====================

    async def load_agent(self, name: str) -> LoadedAgent:
        """Get a loaded agent, loading it on first use

        Concurrent callers for the same uncached name share one load.

        Raises:
            AgentNotFound: no definition in the lookup or agents_dir
            NoExecutableCode: definition has neither code nor file path
        """
        cached = self._cache.get(name)
        if cached is not None:
            return cached

        task = self._inflight.get(name)
        if task is None:
            task = asyncio.create_task(self._load(name))
            self._inflight[name] = task

            def _forget(done: asyncio.Task, key: str = name):
                if self._inflight.get(key) is done:
                    del self._inflight[key]

            task.add_done_callback(_forget)

        return await asyncio.shield(task)

    async def _load(self, name: str) -> LoadedAgent:
        definition = await self._find_definition(name)
        if definition is None:
            raise AgentNotFound(name)
        if not definition.code and not definition.file_path:
            raise NoExecutableCode(name)

        agent = await self._instantiate(definition)
        self._cache[name] = agent
        if agent.degraded:
            logger.warning(f"⚠️ Loaded degraded agent {name}: {agent.load_error}")
        else:
            logger.info(f"✅ Loaded agent: {name}")
        return agent

    async def _find_definition(self, name: str) -> Optional[AgentDefinition]:
        definition = self._lookup(name)
        if inspect.isawaitable(definition):
            definition = await definition
        if definition is not None:
            return definition

        if self.agents_dir:
            file_path = os.path.join(self.agents_dir, f"{name}.py")
            if os.path.isfile(file_path):
                logger.info(f"📁 Loading agent {name} from file: {file_path}")
                return AgentDefinition(name=name, file_path=file_path, execution_target="backend")
        return None

    async def _instantiate(self, definition: AgentDefinition) -> LoadedAgent:
        name = definition.name
        try:
            if definition.code:
                namespace = self.sandbox.evaluate(name, definition.code, definition.dependencies)
            else:
                namespace = self._import_file(name, definition.file_path)

            capability = find_capability(namespace)
            if capability is None:
                return self._degraded(definition, f"Agent {name} defines no capability object or execute function")

            if inspect.isclass(capability):
                capability = self._instantiate_class(capability)

            return self._build(definition, capability)
        except EvaluationFailure as e:
            logger.error(f"❌ {e}")
            return self._degraded(definition, str(e))

    @staticmethod
    def _instantiate_class(cls: type) -> Any:
        try:
            return cls()
        except TypeError:
            # constructor needs arguments; use class-level callables
            return cls

    def _import_file(self, name: str, file_path: str) -> Dict[str, Any]:
        """Import a legacy file-backed agent module"""
        try:
            spec = importlib.util.spec_from_file_location(f"agents.{name}", file_path)
            if spec is None or spec.loader is None:
                raise ImportError(f"Cannot import {file_path}")
            module = importlib.util.module_from_spec(spec)
            spec.loader.exec_module(module)
        except Exception as e:
            raise EvaluationFailure(name, f"{type(e).__name__}: {e}") from e
        return vars(module)

    def _build(self, definition: AgentDefinition, capability: Any) -> LoadedAgent:
        name = definition.name
        execute = _member(capability, "execute")
        bootstrap = _member(capability, "bootstrap")

        if definition.description is None:
            definition.description = _member(capability, "description")

        if execute is None:
            legacy_code = _member(capability, "code")
            if isinstance(legacy_code, str) or isinstance(bootstrap, str):
                return self._build_string_based(definition, capability)
            return self._degraded(definition, f"Agent {name} is missing execute function")

        if not callable(execute):
            return self._degraded(definition, f"Agent {name} execute is not callable")
        if is_placeholder(execute):
            return self._degraded(definition, f"Agent {name} has a placeholder execute function")
        if bootstrap is not None and not callable(bootstrap):
            bootstrap = None

        return LoadedAgent(
            definition=definition,
            execute=execute,
            bootstrap=bootstrap,
            helpers=_public_callables(capability),
            capability=capability,
        )

    def _build_string_based(self, definition: AgentDefinition, capability: Any) -> LoadedAgent:
        """Legacy agents whose bootstrap/code fields are source fragments"""
        name = definition.name
        bootstrap_source = _member(capability, "bootstrap")
        code_source = _member(capability, "code")

        try:
            bootstrap = None
            if isinstance(bootstrap_source, str):
                bootstrap = self.sandbox.compile_fragment(
                    name, bootstrap_source, ("config", "context"), definition.dependencies
                )
            if not isinstance(code_source, str):
                return self._degraded(definition, f"Agent {name} is missing execute code")
            execute = self.sandbox.compile_fragment(
                name, code_source, ("params", "context"), definition.dependencies
            )
        except EvaluationFailure as e:
            logger.error(f"❌ {e}")
            return self._degraded(definition, str(e))

        if is_placeholder(execute):
            return self._degraded(definition, f"Agent {name} has a placeholder execute function")

        logger.info(f"ℹ️ Agent {name} uses string-based format")
        return LoadedAgent(definition=definition, execute=execute, bootstrap=bootstrap, capability=capability)

    @staticmethod
    def _degraded(definition: AgentDefinition, reason: str) -> LoadedAgent:
        return LoadedAgent(
            definition=definition,
            execute=_degraded_execute(reason),
            degraded=True,
            load_error=reason,
        )

    # ==================== Cache Management ====================

    def get_agent(self, name: str) -> Optional[LoadedAgent]:
        return self._cache.get(name)

    def is_loaded(self, name: str) -> bool:
        return name in self._cache

    def loaded_names(self) -> List[str]:
        return list(self._cache)

    def unload_agent(self, name: str) -> bool:
        """Drop an agent from the cache; the next use reloads it"""
        removed = self._cache.pop(name, None) is not None
        if removed:
            logger.info(f"🗑️ Unloaded agent: {name}")
        return removed

    async def reload_agent(self, name: str) -> LoadedAgent:
        self.unload_agent(name)
        return await self.load_agent(name)

    def clear_cache(self):
        count = len(self._cache)
        self._cache.clear()
        logger.info(f"🧹 Cleared agent cache ({count} agents)")

    # ==================== Execution ====================

    async def execute(
        self,
        name: str,
        params: Optional[Dict[str, Any]] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Execute an agent and wrap the outcome in an envelope

        Returns:
            {success, agent, action, result | error, timestamp}
        """
        params = params or {}
        action = params.get("action")

        try:
            agent = await self.load_agent(name)

            resolution = await self.resolver.resolve_all(agent.dependencies)
            unresolved = resolution.unresolved
            enhanced_context = self._enhance_context(context, resolution.resolved)

            await agent.run_bootstrap(agent.config, enhanced_context)

            logger.debug(f"⚙️ Executing {name} (action={action})")
            result = agent.execute(params, enhanced_context)
            if inspect.isawaitable(result):
                result = await result

            if isinstance(result, dict) and result.get("success") is False:
                envelope = {
                    "success": False,
                    "agent": name,
                    "action": action,
                    "error": result.get("error") or "Agent reported failure",
                    "result": result,
                    "timestamp": now_iso(),
                }
            else:
                envelope = {
                    "success": True,
                    "agent": name,
                    "action": action,
                    "result": result,
                    "timestamp": now_iso(),
                }
            if unresolved:
                envelope["unresolved_dependencies"] = unresolved
            return envelope
        except Exception as e:
            logger.error(f"❌ Agent {name} execution failed: {e}")
            return {
                "success": False,
                "agent": name,
                "action": action,
                "error": str(e),
                "timestamp": now_iso(),
            }

    def _enhance_context(self, context: Optional[Dict[str, Any]], dependencies: Dict[str, Any]) -> Dict[str, Any]:
        enhanced: Dict[str, Any] = {}
        if self._context_provider is not None:
            enhanced.update(self._context_provider())
        enhanced.update(context or {})
        enhanced.update(dependencies)
        if self._bindings_provider is not None:
            enhanced.update(self._bindings_provider())
        return enhanced
