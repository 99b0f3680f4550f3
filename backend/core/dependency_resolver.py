"""Dependency Resolver

Turns an agent's declared dependency names into live capabilities keyed
by a camelCase identifier. Names are looked up in three places, in order:
host-provided capabilities, the built-in platform table, and installed
external packages.
"""

import asyncio
import importlib
import logging
import re
from dataclasses import dataclass, field
from importlib import metadata
from types import ModuleType
from typing import Any, Dict, Iterable, List, Mapping, Optional

from core.errors import DependencyUnresolved

logger = logging.getLogger(__name__)

# Platform names -> standard library modules
BUILTIN_MODULES: Dict[str, str] = {
    "os": "os",
    "sys": "sys",
    "process": "os",
    "path": "os.path",
    "os.path": "os.path",
    "pathlib": "pathlib",
    "fs": "pathlib",
    "shutil": "shutil",
    "subprocess": "subprocess",
    "child_process": "subprocess",
    "signal": "signal",
    "tempfile": "tempfile",
    "platform": "platform",
    "glob": "glob",
    "io": "io",
    "json": "json",
    "asyncio": "asyncio",
}

_CAMEL_PATTERN = re.compile(r"[-.](\w)")


def to_camel_case(name: str) -> str:
    """Convert a dependency name to its context key

    Examples:
        python-dateutil -> pythonDateutil
        os.path -> osPath
        child_process -> child_process
    """
    return _CAMEL_PATTERN.sub(lambda m: m.group(1).upper(), name)


@dataclass
class Resolution:
    """Result of one resolve call"""

    resolved: Dict[str, Any] = field(default_factory=dict)
    failures: List[DependencyUnresolved] = field(default_factory=list)

    @property
    def unresolved(self) -> List[str]:
        return [failure.dependency for failure in self.failures]


class DependencyResolver:
    """Resolves declared dependency names to capabilities

    A failing name is logged, reported in the call's ``Resolution`` and left
    out of the result; the rest of the batch still resolves.
    """

    def __init__(
        self,
        provided: Optional[Mapping[str, Any]] = None,
        builtin_modules: Optional[Mapping[str, str]] = None,
    ):
        self.provided: Dict[str, Any] = dict(provided or {})
        self.builtin_modules = dict(BUILTIN_MODULES if builtin_modules is None else builtin_modules)
        self._distributions: Optional[Dict[str, List[str]]] = None

    def provide(self, name: str, capability: Any):
        """Register a host-provided capability"""
        self.provided[name] = capability

    async def resolve(self, names: Iterable[str]) -> Dict[str, Any]:
        """Mapping of camelCase name -> capability for every name that resolved"""
        return (await self.resolve_all(names)).resolved

    async def resolve_all(self, names: Iterable[str]) -> Resolution:
        """Resolve dependencies concurrently, keeping this call's failures"""
        names = [name for name in names if name]
        resolution = Resolution()
        if not names:
            return resolution

        outcomes = await asyncio.gather(
            *(self._resolve_one(name) for name in names),
            return_exceptions=True,
        )

        for name, outcome in zip(names, outcomes):
            if isinstance(outcome, DependencyUnresolved):
                logger.warning(f"⚠️ {outcome}")
                resolution.failures.append(outcome)
            elif isinstance(outcome, Exception):
                failure = DependencyUnresolved(name, str(outcome))
                logger.warning(f"⚠️ {failure}")
                resolution.failures.append(failure)
            else:
                resolution.resolved[to_camel_case(name)] = outcome

        logger.debug(f"🔗 Resolved {len(resolution.resolved)}/{len(names)} dependencies")
        return resolution

    async def _resolve_one(self, name: str) -> Any:
        if name in self.provided:
            return self.provided[name]

        module_name = self.builtin_modules.get(name)
        if module_name is not None:
            try:
                return importlib.import_module(module_name)
            except ImportError as e:
                raise DependencyUnresolved(name, f"platform module unavailable: {e}") from e

        return await asyncio.to_thread(self._import_external, name)

    def _import_external(self, name: str) -> ModuleType:
        candidates = [name]
        normalized = name.replace("-", "_")
        if normalized != name:
            candidates.append(normalized)
        for module_name in self._modules_for_distribution(name):
            if module_name not in candidates:
                candidates.append(module_name)

        errors = []
        for candidate in candidates:
            try:
                return importlib.import_module(candidate)
            except ImportError as e:
                errors.append(f"{candidate}: {e}")

        raise DependencyUnresolved(name, "; ".join(errors) or "not installed")

    def _modules_for_distribution(self, distribution: str) -> List[str]:
        """Top-level modules provided by an installed distribution"""
        if self._distributions is None:
            inverted: Dict[str, List[str]] = {}
            for module_name, dists in metadata.packages_distributions().items():
                for dist in dists:
                    inverted.setdefault(_canonical(dist), []).append(module_name)
            self._distributions = inverted
        return self._distributions.get(_canonical(distribution), [])


def _canonical(name: str) -> str:
    return re.sub(r"[-_.]+", "-", name).lower()
