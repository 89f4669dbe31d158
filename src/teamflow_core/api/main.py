"""Teamflow Core FastAPI application."""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from teamflow_core import __version__
from teamflow_core.config import get_settings

from .routers import admin, permissions, tree, workspaces

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=settings.log_level.upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("teamflow-core")

logger.info("Starting Teamflow Core API")

# Create FastAPI app
app = FastAPI(
    title="Teamflow Core API",
    description="Workspace roles, permissions and organizational hierarchy",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include all routers with /api/v1 prefix
app.include_router(workspaces.router, prefix="/api/v1/workspaces")
app.include_router(admin.router, prefix="/api/v1/admin")
app.include_router(permissions.router, prefix="/api/v1/permissions")
app.include_router(tree.router, prefix="/api/v1/tree")


@app.get("/")
def root():
    """Root endpoint with server info."""
    return {
        "name": "Teamflow Core API",
        "version": __version__,
        "docs": "/docs",
    }


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}
