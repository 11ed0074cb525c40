"""FastAPI application with lifespan, error mapping, and health endpoint."""

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from decision_hub.auth import verify_scheduler
from decision_hub.config import get_settings
from decision_hub.db.engine import close_db, get_session, init_db
from decision_hub.decisions.commit import backfill_embeddings
from decision_hub.decisions.router import router as decisions_router
from decision_hub.errors import DecisionHubError
from decision_hub.logging_config import configure_logging
from decision_hub.models.decisions import EmbeddingBackfillResult
from decision_hub.patterns.router import router as patterns_router
from decision_hub.rag.router import router as rag_router
from decision_hub.review.router import router as review_router
from decision_hub.slack.router import router as slack_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: configure logging, load config, open the database."""
    settings = get_settings()
    configure_logging(settings.log_level)
    app.state.settings = settings
    await init_db()
    yield
    await close_db()


app = FastAPI(
    title="Decision Hub",
    lifespan=lifespan,
)
app.include_router(slack_router)
app.include_router(review_router)
app.include_router(rag_router)
app.include_router(patterns_router)
app.include_router(decisions_router)


@app.exception_handler(DecisionHubError)
async def decision_hub_error_handler(request: Request, exc: DecisionHubError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("Request failed", extra={"path": request.url.path, "error": exc.message})
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.error_type, "message": exc.message},
    )


@app.get("/health")
async def health():
    """Health check endpoint for Cloud Run and local development."""
    return {
        "status": "ok",
        "service": "decision-hub",
        "version": "0.1.0",
    }


@app.post("/jobs/embeddings-backfill", response_model=EmbeddingBackfillResult)
async def embeddings_backfill_endpoint(
    _: None = Depends(verify_scheduler),
    session: AsyncSession = Depends(get_session),
) -> EmbeddingBackfillResult:
    """Fill in embeddings for decisions stored without one."""
    return await backfill_embeddings(session)
