"""Agent Sandbox - Restricted evaluation of stored agent source

Stored agent code runs in a fresh module namespace with a reduced set of
builtins. Imports go through a guarded importer that only admits the
configured allow-list plus the agent's own declared dependencies.

This is an interpreter-level boundary for trusted-but-stored code, not a
security sandbox against hostile input.
"""

import builtins
import importlib
import logging
import textwrap
from typing import Any, Callable, Dict, Iterable, Optional, Sequence

from core.errors import EvaluationFailure

logger = logging.getLogger(__name__)

BLOCKED_BUILTINS = frozenset({
    "eval", "exec", "compile", "open", "input", "breakpoint",
    "exit", "quit", "help", "__import__",
})

FRAGMENT_NAME = "__agent_fragment__"


class GuardedImporter:
    """__import__ replacement restricted to a permission set"""

    def __init__(self, agent_name: str, allowed: Iterable[str]):
        self.agent_name = agent_name
        self.allowed = frozenset(
            name.replace("-", "_") for name in allowed if name
        )

    def permits(self, module_name: str) -> bool:
        for allowed in self.allowed:
            if module_name == allowed or module_name.startswith(allowed + "."):
                return True
        return False

    def __call__(self, name, globals=None, locals=None, fromlist=(), level=0):
        if level:
            raise ImportError(f"Relative imports are not allowed in agent {self.agent_name}")
        if not self.permits(name):
            raise ImportError(f"Import of '{name}' is not allowed in agent {self.agent_name}")
        return builtins.__import__(name, globals, locals, fromlist, level)

    def import_module(self, name: str):
        """importlib.import_module with the same permission check"""
        if not self.permits(name):
            raise ImportError(f"Import of '{name}' is not allowed in agent {self.agent_name}")
        return importlib.import_module(name)


class AgentSandbox:
    """Evaluates agent source into a module namespace"""

    def __init__(self, allowed_imports: Sequence[str] = (), agents_dir: Optional[str] = None):
        self.allowed_imports = list(allowed_imports)
        self.agents_dir = agents_dir

    def _build_namespace(self, agent_name: str, dependencies: Iterable[str]) -> Dict[str, Any]:
        importer = GuardedImporter(agent_name, [*self.allowed_imports, *dependencies])

        safe_builtins = {
            key: value for key, value in vars(builtins).items()
            if key not in BLOCKED_BUILTINS
        }
        safe_builtins["__import__"] = importer

        agent_logger = logging.getLogger(f"agents.{agent_name}")
        return {
            "__builtins__": safe_builtins,
            "__name__": f"agent_{agent_name}",
            "__file__": f"<agent:{agent_name}>",
            "AGENTS_DIR": self.agents_dir,
            "logger": agent_logger,
            "console": agent_logger,
            "import_module": importer.import_module,
        }

    def evaluate(self, agent_name: str, code: str, dependencies: Iterable[str] = ()) -> Dict[str, Any]:
        """Run agent source and return the resulting namespace

        Raises:
            EvaluationFailure: source does not compile or raises while running
        """
        namespace = self._build_namespace(agent_name, dependencies)
        try:
            compiled = compile(code, f"<agent:{agent_name}>", "exec")
            exec(compiled, namespace)
        except Exception as e:
            raise EvaluationFailure(agent_name, f"{type(e).__name__}: {e}") from e

        logger.debug(f"🧪 Evaluated source for {agent_name}")
        return namespace

    def compile_fragment(
        self,
        agent_name: str,
        body: str,
        arg_names: Sequence[str],
        dependencies: Iterable[str] = (),
    ) -> Callable:
        """Wrap a source fragment as the body of an async function

        Used by string-based agents whose bootstrap/code fields hold a
        function body rather than a module.
        """
        body = textwrap.dedent(body or "").strip("\n") or "pass"
        source = (
            f"async def {FRAGMENT_NAME}({', '.join(arg_names)}):\n"
            f"{textwrap.indent(body, '    ')}\n"
        )
        namespace = self.evaluate(agent_name, source, dependencies)
        return namespace[FRAGMENT_NAME]
