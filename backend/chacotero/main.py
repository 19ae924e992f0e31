"""
Chacotero Calls - Main Application Entry Point
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from chacotero import __version__
from chacotero.settings import get_settings
from chacotero.routes import calls

# Get settings
settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler"""
    # Startup
    logger.info(f"Starting {settings.app_name} in {settings.app_env} mode")

    from chacotero.services.llm_service import get_llm_service
    llm = get_llm_service()
    if not llm.is_available():
        logger.warning("Chat model not configured - call separation disabled")
    app.state.llm = llm

    # Initialize Pinecone service
    from chacotero.services.pinecone_service import get_pinecone_service
    try:
        pinecone = get_pinecone_service()
        if pinecone.initialized:
            logger.info("Pinecone service initialized")
        else:
            logger.warning("Pinecone service not initialized - check API key")
        app.state.pinecone = pinecone
    except Exception as e:
        logger.error(f"Failed to initialize Pinecone: {e}")

    settings.calls_path.mkdir(parents=True, exist_ok=True)
    logger.info(f"Call records stored in {settings.calls_path}")

    yield

    # Shutdown
    logger.info("Shutting down application")


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Radio call separation and similarity deduplication",
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(calls.router, prefix="/api/calls", tags=["Calls"])


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "app": settings.app_name,
        "environment": settings.app_env,
        "version": __version__
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "chacotero.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug
    )
