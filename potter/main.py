"""Potter Token Factory API - Main Application"""
import structlog
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from potter.config import get_settings
from potter.api.deps import reset_factory_service
from potter.api.v1.router import api_router
from potter.services.solana_client import close_solana_client, get_solana_client

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.dev.ConsoleRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    logger.info(
        "Starting Potter API",
        version=settings.app_version,
        cluster=settings.solana_cluster,
        program_id=settings.factory_program_id,
    )

    await get_solana_client()

    yield

    reset_factory_service()
    await close_solana_client()
    logger.info("Potter API shutdown complete")


def create_app() -> FastAPI:
    """Create FastAPI application"""
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="API for the Potter token factory program",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(api_router, prefix=settings.api_prefix)

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "version": settings.app_version,
            "cluster": settings.solana_cluster,
        }

    @app.get("/slot")
    async def get_current_slot():
        """Get the current Solana slot number"""
        try:
            solana_client = await get_solana_client()
            slot = await solana_client.get_slot()
            return {
                "slot": slot,
                "cluster": settings.solana_cluster,
            }
        except Exception as e:
            logger.error("Failed to get current slot", error=str(e))
            return {
                "slot": None,
                "cluster": settings.solana_cluster,
                "error": str(e),
            }

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "potter.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
    )
