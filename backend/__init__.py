"""Agent Orchestrator - Backend Package

This package contains:
- app: FastAPI application, settings, database and built-in agents
- core: Agent registry, loader, workflow engine and intent routing
- cli: Command line interface
"""

__version__ = "1.0.0"
