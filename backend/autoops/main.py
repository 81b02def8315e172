from contextlib import asynccontextmanager
from fastapi import FastAPI
from autoops.api.routes import router
from autoops.core.cors import setup_cors
from autoops.core.config import settings
from autoops.core.logging import setup_logging, get_logger

# Setup logging first
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown."""
    # Startup
    logger.info("Starting AutoOps API...")
    if not settings.has_llm_key:
        logger.warning("No LLM API key configured - analysis requests will fail")
    if not settings.has_search_key:
        logger.info("No search API key configured - enrichment disabled")

    yield

    # Shutdown
    logger.info("Shutting down AutoOps API...")


# Create FastAPI app
app = FastAPI(
    title="AutoOps API",
    description="AI-assisted incident analysis with deterministic scoring",
    version="1.0.0",
    lifespan=lifespan
)

# Setup CORS
setup_cors(app)

# Include API routes
app.include_router(router)


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "name": "AutoOps API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/api/health"
    }
