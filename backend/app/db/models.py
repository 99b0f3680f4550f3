"""ORM models for the agent registry and the built-in memory agent."""
import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Index, Integer, JSON, String, Text

from app.db.database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class AgentRecord(Base):
    """Registry row: one stored agent definition, keyed by name."""

    __tablename__ = "agents"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(255), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    parameters = Column(JSON, nullable=False, default=dict)
    dependencies = Column(JSON, nullable=False, default=list)
    execution_target = Column(String(16), nullable=False, default="frontend")
    requires_database = Column(Boolean, nullable=False, default=False)
    database_type = Column(String(16), nullable=True)
    bootstrap = Column(Text, nullable=True)
    code = Column(Text, nullable=True)
    version = Column(String(32), nullable=False, default="v1")
    config = Column(JSON, nullable=False, default=dict)
    secrets = Column(JSON, nullable=False, default=dict)
    orchestrator_metadata = Column(JSON, nullable=False, default=dict)
    memory = Column(JSON, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_agents_name", "name"),
        Index("idx_agents_execution_target", "execution_target"),
        Index("idx_agents_requires_database", "requires_database"),
        Index("idx_agents_created_at", "created_at"),
    )


class MemoryRecord(Base):
    """A stored user memory (UserMemoryAgent)."""

    __tablename__ = "memories"

    id = Column(Integer, primary_key=True, autoincrement=True)
    source_text = Column(Text, nullable=False)
    primary_intent = Column(String(64), nullable=True)
    suggested_response = Column(Text, nullable=True)
    entities = Column(JSON, nullable=False, default=list)
    category = Column(String(64), nullable=True)
    memory_metadata = Column("metadata", JSON, nullable=False, default=dict)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_memories_created_at", "created_at"),
        Index("idx_memories_primary_intent", "primary_intent"),
    )
