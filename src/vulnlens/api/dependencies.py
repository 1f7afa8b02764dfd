"""FastAPI dependency injection for shared services."""

from __future__ import annotations

from fastapi import Request

from vulnlens.analysis.orchestrator import BatchOrchestrator
from vulnlens.api.app_state import AppState
from vulnlens.credentials import CredentialStore
from vulnlens.ingestion.github import GitHubFetcher


def get_app_state(request: Request) -> AppState:
    """Get the typed AppState from app.state."""
    return request.app.state.typed  # type: ignore[no-any-return]


def get_orchestrator(request: Request) -> BatchOrchestrator:
    return get_app_state(request).orchestrator


def get_fetcher(request: Request) -> GitHubFetcher:
    return get_app_state(request).fetcher


def get_credentials(request: Request) -> CredentialStore:
    return get_app_state(request).credentials
