"""Repository fetch endpoint."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Header

from vulnlens.api.app_state import AppState
from vulnlens.api.dependencies import get_app_state
from vulnlens.api.schemas import APIResponse, RepositoryFetchRequest
from vulnlens.credentials import GITHUB_TOKEN, resolve_credential
from vulnlens.ingestion.github import RepositoryFetchError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/repository", tags=["repository"])


@router.post("/fetch")
async def fetch_repository(
    body: RepositoryFetchRequest,
    app_state: AppState = Depends(get_app_state),
    x_github_token: str | None = Header(default=None),
) -> APIResponse:
    """Download the supported source files of a GitHub repository."""
    token = x_github_token or resolve_credential(
        app_state.credentials,
        GITHUB_TOKEN,
        app_state.settings.github_token,
    )
    try:
        fetched = await app_state.fetcher.fetch(body.url, token)
    except RepositoryFetchError as exc:
        logger.info(
            "event=repository_fetch_failed kind=%s error=%s",
            type(exc).__name__,
            exc,
        )
        return APIResponse(
            success=False,
            error=str(exc),
            metadata={"kind": type(exc).__name__},
        )
    return APIResponse(
        success=True,
        data=fetched.model_dump(mode="json", by_alias=True),
    )
