"""Request/response schemas for the HTTP API."""

from typing import Any

from pydantic import BaseModel, Field

from vulnlens.constants import ExplanationLevel
from vulnlens.streaming.events import CodeFile


class APIResponse(BaseModel):
    """Standard response envelope for all API endpoints."""

    success: bool
    data: Any | None = None
    error: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class AnalyzeRequest(BaseModel):
    """Request body for POST /api/analyze."""

    files: list[CodeFile] = Field(default_factory=lambda: list[CodeFile]())
    explanation_level: ExplanationLevel = ExplanationLevel.BEGINNER


class RepositoryFetchRequest(BaseModel):
    """Request body for POST /api/repository/fetch."""

    url: str = Field(min_length=1, max_length=2000)


class CredentialsUpdate(BaseModel):
    """Request body for PUT /api/credentials. Omitted keys are untouched."""

    llm_api_key: str | None = Field(default=None, min_length=1)
    github_token: str | None = Field(default=None, min_length=1)
