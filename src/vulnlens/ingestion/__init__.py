"""Code ingestion — local files and GitHub repositories."""

from vulnlens.ingestion.github import (
    FetchedRepository,
    GitHubFetcher,
    InvalidRepositoryUrl,
    NoSupportedFiles,
    RateLimitExceeded,
    RepositoryFetchError,
    RepositoryNotFound,
    RepositoryRef,
    parse_github_url,
)
from vulnlens.ingestion.local_files import load_code_files

__all__ = [
    "FetchedRepository",
    "GitHubFetcher",
    "InvalidRepositoryUrl",
    "NoSupportedFiles",
    "RateLimitExceeded",
    "RepositoryFetchError",
    "RepositoryNotFound",
    "RepositoryRef",
    "load_code_files",
    "parse_github_url",
]
