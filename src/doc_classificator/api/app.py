"""
FastAPI application for the document classification service.

Each app owns one ClassificationSession (app.state.session): documents,
results and the audit log live there for the lifetime of the process.
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..config import settings
from ..logging_config import setup_logging
from ..session import ClassificationSession, create_session
from ..version import API_VERSION
from .middleware import setup_error_handling_middleware, setup_logging_middleware
from .routes import documents, health, reports, review, version

# Setup logging on module import
setup_logging()
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Builds the default session from settings unless one was injected.
    """
    if getattr(app.state, "session", None) is None:
        app.state.session = create_session()

    session = app.state.session
    logger.info(
        "api_starting",
        version=API_VERSION,
        log_level=settings.log_level,
        taxonomy_version=session.taxonomy.version,
        template=session.orchestrator.template,
    )
    yield
    logger.info("api_shutting_down", documents=len(session.store.documents()))


def create_app(session: Optional[ClassificationSession] = None) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        session: Session to serve (default: built from settings at startup)

    Returns:
        Configured FastAPI app instance
    """
    app = FastAPI(
        title="Document Sensitivity Classifier",
        description="LLM document classification with cross-verification, human review and audit trail",
        version=API_VERSION,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )
    app.state.session = session

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Last added runs outermost: request ids are bound before errors are handled
    setup_error_handling_middleware(app)
    setup_logging_middleware(app)

    app.include_router(health.router, tags=["Health"])
    app.include_router(version.router, prefix="/api/v1", tags=["Version"])
    app.include_router(documents.router)
    app.include_router(review.router)
    app.include_router(reports.router)

    return app


app = create_app()


def main() -> None:
    """
    Entry point for running the API server directly.

    For development use. In production, use uvicorn directly.
    """
    import uvicorn

    uvicorn.run(
        "doc_classificator.api.app:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
