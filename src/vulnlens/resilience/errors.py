"""Error classification for transport failures.

Analyzer and fetcher failures end a run; classifying them lets the
run log say which side failed and lets callers show a message that
points at the likely fix (bad key vs. quota vs. provider outage).
Nothing here retries.
"""

from __future__ import annotations

import asyncio
from enum import Enum


class ErrorClass(Enum):
    RATE_LIMIT = "rate_limit"  # 429, quota exhausted
    AUTH = "auth"  # 401, 403, invalid key
    SERVER = "server"  # 500, 502, 503, 504
    TIMEOUT = "timeout"  # deadline exceeded
    NETWORK = "network"  # connection refused/reset
    CLIENT = "client"  # other 4xx
    UNKNOWN = "unknown"


_USER_MESSAGES: dict[ErrorClass, str] = {
    ErrorClass.RATE_LIMIT: "The analysis provider rate limit was reached.",
    ErrorClass.AUTH: "The API key was rejected by the analysis provider.",
    ErrorClass.SERVER: "The analysis provider is unavailable.",
    ErrorClass.TIMEOUT: "The analysis request timed out.",
    ErrorClass.NETWORK: "Could not reach the analysis provider.",
    ErrorClass.CLIENT: "The analysis request was rejected.",
    ErrorClass.UNKNOWN: "Analysis failed.",
}


def classify_error(error: BaseException) -> ErrorClass:
    """Classify a transport error.

    Checks structured attributes first (status_code), falls back
    to string matching for untyped exceptions.
    """
    known = getattr(error, "error_class", None)
    if isinstance(known, ErrorClass):
        return known

    status_code = getattr(error, "status_code", None)
    if isinstance(status_code, int):
        if status_code == 429:
            return ErrorClass.RATE_LIMIT
        if status_code in (401, 403):
            return ErrorClass.AUTH
        if 400 <= status_code < 500:
            return ErrorClass.CLIENT
        if 500 <= status_code < 600:
            return ErrorClass.SERVER

    if isinstance(error, (TimeoutError, asyncio.TimeoutError)):
        return ErrorClass.TIMEOUT

    msg = str(error).lower()

    if "timeout" in msg or "timed out" in msg:
        return ErrorClass.TIMEOUT
    if "429" in msg or "rate limit" in msg or "quota" in msg:
        return ErrorClass.RATE_LIMIT
    if "api key" in msg or "api_key" in msg or "401" in msg:
        return ErrorClass.AUTH
    if any(code in msg for code in ("500", "502", "503", "504")):
        return ErrorClass.SERVER
    if "econnrefused" in msg or "connection" in msg:
        return ErrorClass.NETWORK

    return ErrorClass.UNKNOWN


def user_message(error: BaseException) -> str:
    """Short, user-facing description of a transport failure."""
    return _USER_MESSAGES[classify_error(error)]
