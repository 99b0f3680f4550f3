"""Application configuration."""
import os
from pydantic_settings import BaseSettings
from typing import List, Optional

# Project data directory (sqlite database lives here by default)
DATA_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.dirname(os.path.dirname(__file__)))), "data")

# Built-in, file-backed agents shipped with the application
DEFAULT_AGENTS_DIR = os.path.join(os.path.dirname(os.path.dirname(__file__)), "agents")


class Settings(BaseSettings):
    """Application settings."""

    # =========================
    # Agent Registry
    # =========================

    # SQLAlchemy URL of the agent registry store
    database_url: str = f"sqlite:///{os.path.join(DATA_DIR, 'agents.db')}"

    # Directory searched for legacy file-backed agents (<name>.py)
    agents_dir: str = DEFAULT_AGENTS_DIR

    # Agents loaded eagerly during initialize()
    preload_agents: List[str] = ["UserMemoryAgent"]

    # Register the built-in agent set on initialize()
    register_default_agents: bool = True

    # =========================
    # Sandbox / Execution
    # =========================

    # Modules stored agent code may import in addition to its declared dependencies
    sandbox_allowed_imports: List[str] = [
        "asyncio", "json", "re", "math", "datetime", "time", "random",
        "logging", "typing", "dataclasses", "collections", "functools",
        "itertools", "uuid", "string",
    ]

    # Per-step execution timeout in seconds (0 disables)
    step_timeout_seconds: float = 120.0

    # Upper bound on step executions per workflow (guards jump loops)
    workflow_max_executions: int = 100

    # Paused workflows kept for resume; the oldest is dropped beyond this
    workflow_max_paused: int = 100

    @property
    def step_timeout(self) -> Optional[float]:
        """Step timeout, or None when disabled."""
        return self.step_timeout_seconds if self.step_timeout_seconds > 0 else None

    # =========================
    # Local LLM (offline fallback)
    # =========================
    local_llm_endpoint: str = "http://localhost:11434"
    local_llm_model: str = "phi4-mini:latest"
    local_llm_timeout: float = 30.0

    # =========================
    # API Configuration
    # =========================
    api_host: str = "127.0.0.1"
    api_port: int = 8000

    # CORS
    cors_origins: str = "http://localhost:3000,http://localhost:5173"

    # Logging
    log_level: str = "INFO"

    @property
    def cors_origins_list(self) -> List[str]:
        """Convert comma-separated CORS origins to list."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
