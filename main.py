"""
Marketplace Sales Reconciliation — Main Application

FastAPI application entry point.
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging
import structlog
from datetime import datetime

from config import (
    get_settings,
    create_supabase_client,
    close_supabase_client,
    check_connection,
)
from routes import imports_router, kpi_router, diagnostics_router

settings = get_settings()

logging.basicConfig(format="%(message)s", level=settings.log_level)

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer() if settings.is_production
            else structlog.dev.ConsoleRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup: Create the database client and check the connection
    Shutdown: Release the client
    """
    # Startup
    logger.info(
        "application_starting",
        environment=settings.environment,
        debug=settings.debug
    )

    app.state.db = create_supabase_client(settings)

    db_status = check_connection(app.state.db)
    if db_status["status"] == "healthy":
        logger.info(
            "database_connected",
            products=db_status["products_count"]
        )
    else:
        logger.error(
            "database_connection_failed",
            error=db_status.get("error")
        )

    yield

    # Shutdown
    logger.info("application_shutting_down")
    close_supabase_client(app.state.db)
    app.state.db = None


# Create FastAPI app
app = FastAPI(
    title="Marketplace Sales Reconciliation",
    description="Marketplace sales ingestion, title matching and KPI channel reconciliation",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)


# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ===================
# ROUTES
# ===================

@app.get("/health")
async def health_check(request: Request):
    """
    Health check endpoint.

    Returns:
        Basic health status and database connection state
    """
    client = getattr(request.app.state, "db", None)
    if client is None:
        db_status = {"status": "unhealthy", "error": "Database client not initialized"}
    else:
        db_status = check_connection(client)

    return {
        "status": "healthy" if db_status["status"] == "healthy" else "degraded",
        "timestamp": datetime.utcnow().isoformat(),
        "environment": settings.environment,
        "database": db_status
    }


@app.get("/")
async def root():
    """
    Root endpoint.

    Returns:
        API information and available endpoints
    """
    return {
        "name": "Marketplace Sales Reconciliation API",
        "version": "0.1.0",
        "docs": "/docs" if settings.debug else "Disabled in production",
        "health": "/health",
        "endpoints": {
            "imports": "/api/imports",
            "kpi": "/api/kpi",
            "diagnostics": "/api/diagnostics"
        }
    }


# ===================
# ERROR HANDLERS
# ===================

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Global exception handler.

    Catches unhandled exceptions and returns standard error format.
    """
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        error_type=type(exc).__name__
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
                "details": str(exc) if settings.debug else None,
                "timestamp": datetime.utcnow().isoformat()
            }
        }
    )


# ===================
# INCLUDE ROUTERS
# ===================

app.include_router(imports_router, prefix="/api/imports", tags=["Imports"])
app.include_router(kpi_router, prefix="/api/kpi", tags=["KPI"])
app.include_router(diagnostics_router, prefix="/api/diagnostics", tags=["Diagnostics"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug
    )
