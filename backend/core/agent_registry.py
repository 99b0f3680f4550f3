"""Agent Registry - Persistent Catalog of Agent Definitions

This module stores executable agent definitions as data. Each row carries
the agent's description, declared dependencies, execution target and the
full source of its capability object, so agents can be added or updated
without shipping new code. The registry is pure storage: loading and
executing agents is the loader's job.
"""

import logging
import re
from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from core.errors import StoreUnavailable

logger = logging.getLogger(__name__)

EXECUTION_TARGETS = ("frontend", "backend")
DATABASE_TYPES = ("sqlite", "duckdb")

# camelCase / legacy keys accepted by AgentDefinition.from_dict
_KEY_ALIASES = {
    "executionTarget": "execution_target",
    "requiresDatabase": "requires_database",
    "databaseKind": "database_type",
    "databaseType": "database_type",
    "database_kind": "database_type",
    "bootstrapSource": "bootstrap_source",
    "bootstrap": "bootstrap_source",
    "orchestrator_metadata": "metadata",
    "orchestratorMetadata": "metadata",
    "filePath": "file_path",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
}

_BOOTSTRAP_PATTERN = re.compile(
    r"^(?P<indent>[ \t]*)(?:async[ \t]+)?def[ \t]+bootstrap[ \t]*\(.*?$",
    re.MULTILINE,
)


def normalize_dependencies(value: Union[str, List[str], None]) -> List[str]:
    """Normalize a dependency declaration to an ordered list of names.

    Accepts a comma-joined string ("a, b, c") or a list; anything else
    yields an empty list.
    """
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, (list, tuple)):
        items = [str(item) for item in value]
    else:
        return []
    return [item.strip() for item in items if item and item.strip()]


def extract_bootstrap_source(code: Optional[str]) -> Optional[str]:
    """Extract the source of the bootstrap function from full agent code."""
    if not code or "bootstrap" not in code:
        return None

    match = _BOOTSTRAP_PATTERN.search(code)
    if not match:
        return None

    indent = len(match.group("indent"))
    lines = code[match.start():].splitlines()
    collected = [lines[0]]
    for line in lines[1:]:
        stripped = line.strip()
        if stripped and (len(line) - len(line.lstrip())) <= indent:
            break
        collected.append(line)

    while collected and not collected[-1].strip():
        collected.pop()
    return "\n".join(collected)


@dataclass
class AgentDefinition:
    """A stored agent definition (one registry row)."""

    name: str
    description: Optional[str] = None
    parameters: Dict[str, Any] = field(default_factory=dict)
    dependencies: List[str] = field(default_factory=list)
    execution_target: str = "frontend"
    requires_database: bool = False
    database_type: Optional[str] = None
    bootstrap_source: Optional[str] = None
    code: Optional[str] = None
    version: str = "v1"
    config: Dict[str, Any] = field(default_factory=dict)
    secrets: Dict[str, Any] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)
    memory: Optional[Dict[str, Any]] = None
    file_path: Optional[str] = None  # legacy file-backed agents, never persisted
    id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        self.dependencies = normalize_dependencies(self.dependencies)
        if self.execution_target not in EXECUTION_TARGETS:
            raise ValueError(f"Invalid execution target: {self.execution_target}")
        if self.database_type is not None and self.database_type not in DATABASE_TYPES:
            raise ValueError(f"Invalid database type: {self.database_type}")
        if self.bootstrap_source is None and self.code:
            self.bootstrap_source = extract_bootstrap_source(self.code)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], name: Optional[str] = None) -> "AgentDefinition":
        """Build a definition from a dict using snake_case or camelCase keys."""
        known = {f.name for f in fields(cls)}
        values: Dict[str, Any] = {}
        for key, value in data.items():
            key = _KEY_ALIASES.get(key, key)
            if key in known and value is not None:
                values[key] = value
        if name:
            values["name"] = name
        if "name" not in values:
            raise ValueError("Agent definition requires a name")
        return cls(**values)

    def to_dict(self, include_code: bool = True) -> Dict[str, Any]:
        """Serialize to a JSON-friendly dict."""
        data = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
            "dependencies": list(self.dependencies),
            "execution_target": self.execution_target,
            "requires_database": self.requires_database,
            "database_type": self.database_type,
            "version": self.version,
            "config": self.config,
            "metadata": self.metadata,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_code:
            data["bootstrap_source"] = self.bootstrap_source
            data["code"] = self.code
        return data


class AgentRegistry:
    """SQLAlchemy-backed registry of agent definitions

    The table (and its indexes) is created lazily on first use. Every
    SQLAlchemy failure surfaces as StoreUnavailable so that callers can
    degrade to in-memory registration.
    """

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory
        self._schema_ready = False
        logger.info("🗂️ Agent Registry created (lazy initialization)")

    def ensure_schema(self):
        """Create the agents table and indexes if they do not exist"""
        if self._schema_ready:
            return
        from app.db.database import init_db

        try:
            init_db(self._session_factory)
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"Cannot create agents table: {e}") from e
        self._schema_ready = True
        logger.info("📚 Agent Registry schema ready")

    def upsert(self, definition: AgentDefinition) -> AgentDefinition:
        """Insert a definition, or update the mutable fields of an existing one

        Returns:
            The stored definition (with id and timestamps)
        """
        from app.db.models import AgentRecord

        self.ensure_schema()
        try:
            with self._session_factory() as session:
                record = session.execute(
                    select(AgentRecord).where(AgentRecord.name == definition.name)
                ).scalar_one_or_none()

                if record is None:
                    record = AgentRecord(
                        name=definition.name,
                        version=definition.version or "v1",
                        secrets=definition.secrets or {},
                        memory=definition.memory,
                    )
                    session.add(record)
                    logger.debug(f"   Inserted: {definition.name}")
                else:
                    record.updated_at = datetime.utcnow()
                    logger.debug(f"   Updated: {definition.name}")

                record.description = definition.description
                record.parameters = definition.parameters or {}
                record.dependencies = normalize_dependencies(definition.dependencies)
                record.execution_target = definition.execution_target or "frontend"
                record.requires_database = bool(definition.requires_database)
                record.database_type = definition.database_type
                record.bootstrap = definition.bootstrap_source
                record.code = definition.code
                record.config = definition.config or {}
                record.orchestrator_metadata = definition.metadata or {}

                session.commit()
                session.refresh(record)
                stored = self._to_definition(record)
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"Cannot store agent {definition.name}: {e}") from e

        stored.file_path = definition.file_path
        return stored

    def find(self, name: str) -> Optional[AgentDefinition]:
        """Get a definition by name"""
        from app.db.models import AgentRecord

        self.ensure_schema()
        try:
            with self._session_factory() as session:
                record = session.execute(
                    select(AgentRecord).where(AgentRecord.name == name)
                ).scalar_one_or_none()
                return self._to_definition(record) if record else None
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"Cannot read agent {name}: {e}") from e

    def list(self) -> List[AgentDefinition]:
        """Get all stored definitions, oldest first"""
        from app.db.models import AgentRecord

        self.ensure_schema()
        try:
            with self._session_factory() as session:
                records = session.execute(
                    select(AgentRecord).order_by(AgentRecord.created_at, AgentRecord.name)
                ).scalars().all()
                return [self._to_definition(record) for record in records]
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"Cannot list agents: {e}") from e

    def names(self) -> List[str]:
        """Get the names of all stored definitions"""
        return [definition.name for definition in self.list()]

    def delete(self, name: str) -> bool:
        """Delete a definition; returns False when it did not exist"""
        from app.db.models import AgentRecord

        self.ensure_schema()
        try:
            with self._session_factory() as session:
                record = session.execute(
                    select(AgentRecord).where(AgentRecord.name == name)
                ).scalar_one_or_none()
                if record is None:
                    return False
                session.delete(record)
                session.commit()
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"Cannot delete agent {name}: {e}") from e

        logger.info(f"🗑️ Deleted {name} from registry")
        return True

    def get_statistics(self) -> Dict:
        """Get registry statistics"""
        definitions = self.list()
        return {
            "total_agents": len(definitions),
            "frontend_agents": len([d for d in definitions if d.execution_target == "frontend"]),
            "backend_agents": len([d for d in definitions if d.execution_target == "backend"]),
            "database_agents": len([d for d in definitions if d.requires_database]),
            "agents": [d.name for d in definitions],
        }

    @staticmethod
    def _to_definition(record) -> AgentDefinition:
        return AgentDefinition(
            id=record.id,
            name=record.name,
            description=record.description,
            parameters=record.parameters or {},
            dependencies=record.dependencies or [],
            execution_target=record.execution_target or "frontend",
            requires_database=bool(record.requires_database),
            database_type=record.database_type,
            bootstrap_source=record.bootstrap,
            code=record.code,
            version=record.version or "v1",
            config=record.config or {},
            secrets=record.secrets or {},
            metadata=record.orchestrator_metadata or {},
            memory=record.memory,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )
