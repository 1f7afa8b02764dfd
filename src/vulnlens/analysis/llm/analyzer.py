"""Streaming analyzer adapter — the seam to the LLM provider."""

from __future__ import annotations

import logging
from collections.abc import Callable, Coroutine, Sequence
from typing import TYPE_CHECKING, Any, Protocol, TypeAlias

import litellm

from vulnlens.analysis.cancellation import CancellationToken
from vulnlens.constants import LLM_MAX_OUTPUT_TOKENS, ExplanationLevel
from vulnlens.prompts import SECURITY_REVIEW_PROMPT, build_user_prompt
from vulnlens.resilience.errors import ErrorClass, classify_error
from vulnlens.streaming.events import CodeFile

logger = logging.getLogger(__name__)

# litellm stubs have partially unknown types; typed alias
if TYPE_CHECKING:
    _acompletion: Callable[..., Coroutine[Any, Any, Any]]
else:
    _acompletion = litellm.acompletion

ChunkCallback: TypeAlias = Callable[[str], None]


class AnalyzerError(Exception):
    """Transport failure while streaming from the analysis provider."""

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.error_class: ErrorClass = (
            classify_error(cause) if cause is not None else ErrorClass.UNKNOWN
        )
        self.status_code: int | None = getattr(cause, "status_code", None)


class Analyzer(Protocol):
    """Anything that can stream analysis text for a batch of files.

    Implementations call *on_chunk* zero or more times with text
    fragments in arrival order, return when the stream ends, and raise
    on transport failure. They should stop reading once *cancel* fires.
    """

    async def analyze(
        self,
        credential: str,
        files: Sequence[CodeFile],
        explanation_level: ExplanationLevel,
        on_chunk: ChunkCallback,
        cancel: CancellationToken,
    ) -> None: ...


def _delta_text(chunk: Any) -> str:
    """Pull the text delta out of a streamed completion chunk."""
    choices = getattr(chunk, "choices", None) or []
    if not choices:
        return ""
    delta = getattr(choices[0], "delta", None)
    return str(getattr(delta, "content", None) or "")


async def _close_stream(stream: Any) -> None:
    """Release the provider connection if the stream can be closed."""
    aclose = getattr(stream, "aclose", None)
    if aclose is None:
        return
    try:
        await aclose()
    except Exception as exc:
        logger.debug("event=analyzer_stream_close_failed error=%s", exc)


class LiteLLMAnalyzer:
    """Streams a security review through ``litellm.acompletion``."""

    def __init__(self, model: str, timeout: int = 120) -> None:
        self.model = model
        self.timeout = timeout

    def _messages(
        self,
        files: Sequence[CodeFile],
        explanation_level: ExplanationLevel,
    ) -> list[dict[str, str]]:
        return [
            {"role": "system", "content": SECURITY_REVIEW_PROMPT},
            {
                "role": "user",
                "content": build_user_prompt(files, explanation_level),
            },
        ]

    async def analyze(
        self,
        credential: str,
        files: Sequence[CodeFile],
        explanation_level: ExplanationLevel,
        on_chunk: ChunkCallback,
        cancel: CancellationToken,
    ) -> None:
        chunks = 0
        stream: Any = None
        try:
            stream = await _acompletion(
                model=self.model,
                messages=self._messages(files, explanation_level),
                api_key=credential,
                timeout=self.timeout,
                max_tokens=LLM_MAX_OUTPUT_TOKENS,
                stream=True,
            )
            async for chunk in stream:
                if cancel.cancelled:
                    logger.info(
                        "event=analyzer_stream_abandoned model=%s chunks=%d",
                        self.model,
                        chunks,
                    )
                    return
                text = _delta_text(chunk)
                if text:
                    chunks += 1
                    on_chunk(text)
        except Exception as exc:
            logger.warning(
                "event=analyzer_failed model=%s error_class=%s",
                self.model,
                classify_error(exc).value,
            )
            raise AnalyzerError(str(exc), cause=exc) from exc
        finally:
            await _close_stream(stream)

        logger.debug(
            "event=analyzer_stream_done model=%s files=%d chunks=%d",
            self.model,
            len(files),
            chunks,
        )
