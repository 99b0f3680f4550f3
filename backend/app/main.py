"""FastAPI application for the agent orchestrator."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.models import HealthResponse
from app.api.routes import router
from app.core.config import settings
from core.orchestrator import get_orchestrator

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize the orchestrator on startup and shut it down on exit."""
    orchestrator = get_orchestrator()
    logger.info("🚀 Starting Agent Orchestrator API...")
    await orchestrator.initialize()
    yield
    await orchestrator.shutdown()
    logger.info("👋 Agent Orchestrator API stopped")


def create_app() -> FastAPI:
    application = FastAPI(
        title="Agent Orchestrator API",
        description="Registry-backed agent loading, workflows and intent routing",
        version="1.0.0",
        lifespan=lifespan,
    )
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    application.include_router(router, prefix="/api")

    @application.get("/health", response_model=HealthResponse)
    async def health():
        orchestrator = get_orchestrator()
        if not orchestrator.initialized:
            return HealthResponse(status="starting", initialized=False, registered_agents=0, loaded_agents=0)
        return HealthResponse(
            status="ok",
            initialized=True,
            registered_agents=len(orchestrator.registered_agents()),
            loaded_agents=len(orchestrator.loaded_agents()),
        )

    return application


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host=settings.api_host, port=settings.api_port)
