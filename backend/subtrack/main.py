"""
FastAPI application entry point.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from subtrack.api.router import api_router
from subtrack.config import settings
from subtrack.database import create_tables
from subtrack.exceptions import EngineError

# Configure logging
logging.basicConfig(
    level=settings.log_level.upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    create_tables()
    yield


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version="1.0.0",
    description="Recurring charge detection and due-date tracking",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(EngineError)
async def engine_error_handler(request: Request, exc: EngineError):
    """Map engine errors to HTTP responses carrying the user and operation."""
    if exc.status_code >= 500:
        logger.error(f"{exc.operation} failed for user {exc.user_id}: {exc.message}")
    else:
        logger.info(f"{exc.operation} rejected for user {exc.user_id}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Include API router
app.include_router(api_router, prefix="/api/v1")


@app.get("/")
def read_root():
    """Root endpoint."""
    return {
        "name": settings.app_name,
        "version": "1.0.0",
        "status": "running"
    }


@app.get("/api/v1/health")
def health_check():
    """Health check endpoint."""
    return {
        "status": "ok",
        "app_name": settings.app_name
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("subtrack.main:app", host=settings.api_host, port=settings.api_port)
