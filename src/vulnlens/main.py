"""FastAPI application with lifespan startup."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

# Phase 1: Singleton logging. MUST run before any vulnlens imports
# (they transitively import litellm which reads LITELLM_LOG at import time)
from vulnlens.logging_config import setup_logging

setup_logging()

import logging  # noqa: E402

from fastapi import FastAPI  # noqa: E402
from fastapi.middleware.cors import CORSMiddleware  # noqa: E402

from vulnlens import __version__  # noqa: E402
from vulnlens.analysis.orchestrator import BatchOrchestrator  # noqa: E402
from vulnlens.api.app_state import AppState  # noqa: E402
from vulnlens.api.routes import (  # noqa: E402
    analysis,
    credentials,
    health,
    repository,
)
from vulnlens.config import Settings  # noqa: E402
from vulnlens.credentials import CredentialStore  # noqa: E402
from vulnlens.ingestion.github import GitHubFetcher  # noqa: E402
from vulnlens.logger import RunLogger  # noqa: E402
from vulnlens.logging_config import (  # noqa: E402
    apply_log_level,
    cleanup_third_party_handlers,
)

# Phase 2: Now that all imports (including litellm) are done,
# clear litellm's duplicate handlers.
cleanup_third_party_handlers()

_logger = logging.getLogger(__name__)


def build_app_state(settings: Settings) -> AppState:
    """Wire the orchestrator, fetcher and credential store."""
    run_logger = RunLogger(
        log_dir=settings.log_dir, level=settings.log_level
    )
    return AppState(
        settings=settings,
        orchestrator=BatchOrchestrator.from_settings(
            settings, run_logger=run_logger
        ),
        fetcher=GitHubFetcher.from_settings(settings),
        credentials=CredentialStore(settings.credentials_path),
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = _settings
    apply_log_level(settings.log_level)
    app.state.settings = settings
    app.state.typed = build_app_state(settings)
    _logger.info(
        "event=server_started model=%s batch_size=%d",
        settings.litellm_model,
        settings.batch_size,
    )

    yield

    # Don't leave a run streaming into a closed loop
    app.state.typed.orchestrator.cancel("shutdown")


app = FastAPI(
    title="vulnlens",
    description="Streaming LLM security review for source code",
    version=__version__,
    openapi_url="/api/openapi.json",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    lifespan=lifespan,
)

_settings = Settings()
_cors_origins = [
    o.strip()
    for o in _settings.cors_origins.split(",")
    if o.strip()
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=[
        "Content-Type",
        "Cache-Control",
        "X-LLM-API-Key",
        "X-GitHub-Token",
    ],
    allow_credentials=False,
)

app.include_router(health.router)
app.include_router(analysis.router)
app.include_router(repository.router)
app.include_router(credentials.router)
