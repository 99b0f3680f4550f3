"""UserMemoryAgent - stores and retrieves user memories

Uses the SQLAlchemy session factory provided as the ``database``
capability and the ``memories`` table.

Actions:
    memory-store, store_intent_classification, store_context
    memory-retrieve, memory-search, query_memories
    memory-list, list_memories
    memory-update, memory-delete
"""

import logging
import re

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError

from app.db.models import MemoryRecord

logger = logging.getLogger("agents.UserMemoryAgent")

_WORD = re.compile(r"[\w']+")
_STOPWORDS = {"a", "an", "the", "is", "are", "was", "what", "when", "where", "who", "my", "i", "me", "did", "do", "to", "of", "about"}


def _memory_to_dict(record):
    return {
        "id": record.id,
        "source_text": record.source_text,
        "primary_intent": record.primary_intent,
        "suggested_response": record.suggested_response,
        "entities": record.entities or [],
        "category": record.category,
        "metadata": record.memory_metadata or {},
        "created_at": record.created_at.isoformat() if record.created_at else None,
    }


def _keywords(query):
    return [w for w in _WORD.findall((query or "").lower()) if w not in _STOPWORDS]


class UserMemoryAgent:
    name = "UserMemoryAgent"
    description = "Stores and retrieves user memories"

    def __init__(self):
        self.session_factory = None

    async def bootstrap(self, config, context):
        self.session_factory = context.get("database")
        if self.session_factory is None:
            raise RuntimeError("UserMemoryAgent requires the database capability")
        MemoryRecord.__table__.create(bind=self.session_factory.kw["bind"], checkfirst=True)
        logger.info("💾 UserMemoryAgent ready")
        return {"success": True}

    async def execute(self, params, context):
        action = params.get("action")
        handlers = {
            "memory-store": self.store,
            "store_intent_classification": self.store_classification,
            "store_context": self.store_context,
            "memory-retrieve": self.retrieve,
            "memory-search": self.search,
            "query_memories": self.search,
            "memory-list": self.list_memories,
            "list_memories": self.list_memories,
            "memory-update": self.update,
            "memory-delete": self.delete,
        }
        handler = handlers.get(action)
        if handler is None:
            return {"success": False, "error": f"Unknown action: {action}"}
        try:
            return handler(params)
        except SQLAlchemyError as e:
            logger.error(f"❌ Memory operation {action} failed: {e}")
            return {"success": False, "error": str(e)}

    # ---------- writes ----------

    def _insert(self, source_text, primary_intent=None, suggested_response=None, entities=None, category=None, metadata=None):
        if not source_text:
            return {"success": False, "error": "sourceText is required"}
        with self.session_factory() as session:
            record = MemoryRecord(
                source_text=source_text,
                primary_intent=primary_intent,
                suggested_response=suggested_response,
                entities=entities if isinstance(entities, list) else [],
                category=category,
                memory_metadata=metadata or {},
            )
            session.add(record)
            session.commit()
            session.refresh(record)
            memory = _memory_to_dict(record)
        logger.info(f"✅ Stored memory {memory['id']}")
        return {"success": True, "memory": memory}

    def store(self, params):
        return self._insert(
            params.get("sourceText"),
            primary_intent=params.get("primaryIntent", "memory_store"),
            suggested_response=params.get("suggestedResponse"),
            entities=params.get("entities"),
            category=params.get("category"),
            metadata=params.get("metadata"),
        )

    def store_classification(self, params):
        data = params.get("data") or {}
        return self._insert(
            data.get("sourceText"),
            primary_intent=data.get("primaryIntent", "memory_store"),
            suggested_response=data.get("suggestedResponse"),
            entities=data.get("entities"),
            category="memory",
            metadata={"timestamp": data.get("timestamp"), "intents": data.get("intents", [])},
        )

    def store_context(self, params):
        data = params.get("data") or {}
        return self._insert(
            data.get("sourceText"),
            primary_intent=data.get("intent") or data.get("primaryIntent"),
            suggested_response=data.get("suggestedResponse"),
            entities=data.get("entities"),
            category="context",
            metadata={"timestamp": data.get("timestamp")},
        )

    def update(self, params):
        memory_id = params.get("memoryId")
        data = params.get("data") or {}
        memory_id = memory_id or data.get("memoryId")
        if memory_id is None:
            return {"success": False, "error": "memoryId is required"}
        with self.session_factory() as session:
            record = session.get(MemoryRecord, int(memory_id))
            if record is None:
                return {"success": False, "error": f"Memory {memory_id} not found"}
            if data.get("sourceText"):
                record.source_text = data["sourceText"]
            if "suggestedResponse" in data:
                record.suggested_response = data["suggestedResponse"]
            if isinstance(data.get("entities"), list):
                record.entities = data["entities"]
            session.commit()
            session.refresh(record)
            return {"success": True, "memory": _memory_to_dict(record)}

    def delete(self, params):
        memory_id = params.get("memoryId")
        if memory_id is None:
            return {"success": False, "error": "memoryId is required"}
        with self.session_factory() as session:
            record = session.get(MemoryRecord, int(memory_id))
            if record is None:
                return {"success": False, "error": f"Memory {memory_id} not found"}
            session.delete(record)
            session.commit()
        logger.info(f"🗑️ Deleted memory {memory_id}")
        return {"success": True, "deleted": int(memory_id)}

    # ---------- reads ----------

    def list_memories(self, params):
        limit = int(params.get("limit") or 20)
        offset = int(params.get("offset") or 0)
        with self.session_factory() as session:
            records = session.execute(
                select(MemoryRecord)
                .order_by(MemoryRecord.created_at.desc(), MemoryRecord.id.desc())
                .limit(limit)
                .offset(offset)
            ).scalars().all()
            results = [_memory_to_dict(r) for r in records]
        return {"success": True, "results": results, "count": len(results)}

    def search(self, params):
        query = params.get("query") or params.get("searchQuery")
        limit = int(params.get("limit") or 10)
        words = _keywords(query)
        if not words:
            return self.list_memories({"limit": limit})

        with self.session_factory() as session:
            records = session.execute(
                select(MemoryRecord).where(
                    or_(*[MemoryRecord.source_text.ilike(f"%{word}%") for word in words])
                )
            ).scalars().all()
            scored = []
            for record in records:
                text = record.source_text.lower()
                score = sum(1 for word in words if word in text) / len(words)
                scored.append((score, record.id, _memory_to_dict(record)))

        scored.sort(key=lambda item: (item[0], item[1]), reverse=True)
        results = []
        for score, _, memory in scored[:limit]:
            memory["similarity"] = round(score, 3)
            results.append(memory)
        return {"success": True, "results": results, "count": len(results), "query": query}

    def retrieve(self, params):
        query = params.get("searchQuery") or params.get("query")
        if query:
            return self.search({"query": query, "limit": params.get("limit")})
        return self.list_memories(params)


AGENT_FORMAT = UserMemoryAgent()
