"""Typed application state — replaces untyped getattr() access."""

from __future__ import annotations

from dataclasses import dataclass

from vulnlens.analysis.orchestrator import BatchOrchestrator
from vulnlens.config import Settings
from vulnlens.credentials import CredentialStore
from vulnlens.ingestion.github import GitHubFetcher


@dataclass
class AppState:
    """Typed container for app.state attributes.

    One orchestrator per process: the server backs a single local
    user, so the at-most-one-active-run rule applies server-wide.
    """

    settings: Settings
    orchestrator: BatchOrchestrator
    fetcher: GitHubFetcher
    credentials: CredentialStore
