"""Batch orchestration — drives one analysis run over a file set.

Files are split into fixed-size batches that run strictly one after
another. Each batch streams through the analyzer, a fresh tokenizer
and the event classifier into the run's aggregation state. At most
one run is active: starting another cancels the current one first.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import TypeAlias

from vulnlens.analysis.cancellation import CancellationToken
from vulnlens.analysis.llm.analyzer import Analyzer, LiteLLMAnalyzer
from vulnlens.analysis.state import (
    CANCELLED_REASON,
    RunState,
    apply_event,
    begin_batch,
    end_batch,
    finish,
    initial_state,
)
from vulnlens.analysis.submission import (
    SubmissionError,
    SubmissionReport,
    validate_submission,
)
from vulnlens.config import Settings
from vulnlens.constants import (
    DEFAULT_BATCH_SIZE,
    ERROR_TRUNCATION_CHARS,
    MAX_UPLOAD_BYTES,
    ExplanationLevel,
    RunOutcome,
)
from vulnlens.logger import RunLogger
from vulnlens.resilience.errors import (
    ErrorClass,
    classify_error,
    user_message,
)
from vulnlens.streaming.events import CodeFile, classify_event
from vulnlens.streaming.tokenizer import StreamTokenizer

logger = logging.getLogger(__name__)

SnapshotListener: TypeAlias = Callable[[RunState], None]

CANCELLED_MESSAGE = "Analysis cancelled"


@dataclass(frozen=True)
class RunResult:
    """Terminal status of a run plus the state it ended with.

    ``state`` keeps whatever was aggregated before a cancellation or
    failure; nothing is rolled back.
    """

    outcome: RunOutcome
    state: RunState
    message: str = ""
    error: str | None = None
    error_class: ErrorClass | None = None
    report: SubmissionReport | None = None


@dataclass
class _Run:
    token: CancellationToken
    state: RunState
    done: bool = False


class BatchOrchestrator:
    """Runs analyses batch by batch and publishes state snapshots."""

    def __init__(
        self,
        analyzer: Analyzer,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        quote_aware: bool = True,
        max_file_bytes: int = MAX_UPLOAD_BYTES,
        run_logger: RunLogger | None = None,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self._analyzer = analyzer
        self._batch_size = batch_size
        self._quote_aware = quote_aware
        self._max_file_bytes = max_file_bytes
        self._run_logger = run_logger
        self._run: _Run | None = None
        self._listeners: list[SnapshotListener] = []

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        analyzer: Analyzer | None = None,
        run_logger: RunLogger | None = None,
    ) -> BatchOrchestrator:
        """Build an orchestrator wired to the configured LLM model."""
        return cls(
            analyzer
            or LiteLLMAnalyzer(
                settings.litellm_model,
                timeout=settings.llm_timeout_seconds,
            ),
            batch_size=settings.batch_size,
            quote_aware=settings.tokenizer_quote_aware,
            max_file_bytes=settings.max_upload_bytes,
            run_logger=run_logger,
        )

    # -- Observation --

    @property
    def state(self) -> RunState:
        """Latest snapshot of the current (or last) run."""
        if self._run is None:
            return RunState()
        return self._run.state

    @property
    def is_running(self) -> bool:
        return self._run is not None and not self._run.done

    @property
    def batch_size(self) -> int:
        return self._batch_size

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Register *listener* for snapshots; returns an unsubscribe."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            with contextlib.suppress(ValueError):
                self._listeners.remove(listener)

        return _unsubscribe

    def _update(self, run: _Run, state: RunState) -> None:
        run.state = state
        # Superseded runs keep their own state but stop publishing
        if run is not self._run:
            return
        for listener in list(self._listeners):
            listener(state)

    # -- Control --

    def cancel(self, reason: str = "user") -> bool:
        """Cancel the active run. Returns False if nothing was running."""
        if self._run is None or self._run.done:
            return False
        logger.info(
            "event=run_cancel_requested run_id=%s reason=%s",
            self._run.state.run_id,
            reason,
        )
        self._run.token.cancel(reason)
        return True

    def reset(self) -> None:
        """Cancel any active run and clear the published state."""
        self.cancel("reset")
        self._run = None
        empty = RunState()
        for listener in list(self._listeners):
            listener(empty)

    # -- Execution --

    async def run(
        self,
        files: Sequence[CodeFile],
        credential: str | None,
        explanation_level: ExplanationLevel = ExplanationLevel.BEGINNER,
        *,
        run_id: str | None = None,
    ) -> RunResult:
        """Analyze *files* and return the run's terminal status.

        Rejected submissions return an empty state before anything
        changes, and do not disturb a run that is already in flight.
        """
        try:
            report = validate_submission(
                files, credential, max_file_bytes=self._max_file_bytes
            )
        except SubmissionError as exc:
            logger.info("event=run_rejected reason=%s", exc)
            return RunResult(
                outcome=RunOutcome.REJECTED,
                state=RunState(),
                message=str(exc),
                error=str(exc),
            )
        for skipped in report.unsupported:
            logger.info(
                "event=file_skipped file=%s extension=%s",
                skipped.name,
                skipped.extension or "none",
            )

        self.cancel("superseded")
        run_files = report.supported
        run = _Run(
            token=CancellationToken(),
            state=initial_state(
                run_files, self._batch_size, run_id=run_id
            ),
        )
        self._run = run
        self._update(run, run.state)
        run_id = run.state.run_id
        total_batches = run.state.stats.total_batches
        t0 = time.monotonic()

        logger.info(
            "event=run_started run_id=%s files=%d batches=%d level=%s",
            run_id,
            len(run_files),
            total_batches,
            explanation_level,
        )
        if self._run_logger:
            self._run_logger.log_run_start(
                run_id, len(run_files), total_batches, explanation_level
            )

        outcome = RunOutcome.COMPLETED
        error: Exception | None = None
        try:
            for index in range(total_batches):
                if run.token.cancelled:
                    break
                start = index * self._batch_size
                await self._run_batch(
                    run,
                    index + 1,
                    run_files[start : start + self._batch_size],
                    report.credential,
                    explanation_level,
                )
        except Exception as exc:
            error = exc
            outcome = RunOutcome.FAILED
            logger.exception(
                "event=run_failed run_id=%s batch=%d",
                run_id,
                run.state.stats.current_batch,
            )
            if self._run_logger:
                self._run_logger.log_error(run_id, "analyzer", str(exc))
        finally:
            run.done = True

        if outcome is RunOutcome.COMPLETED and run.token.cancelled:
            outcome = RunOutcome.CANCELLED

        self._update(run, finish(run.state))
        duration_ms = (time.monotonic() - t0) * 1000
        stats = run.state.stats
        logger.info(
            "event=run_finished run_id=%s outcome=%s vulnerabilities=%d"
            " files_scanned=%d duration_ms=%.0f",
            run_id,
            outcome,
            stats.vulnerabilities_found,
            stats.files_scanned,
            duration_ms,
        )
        if self._run_logger:
            self._run_logger.log_run_end(
                run_id,
                outcome,
                stats.vulnerabilities_found,
                stats.files_scanned,
                duration_ms,
            )

        if error is not None:
            return RunResult(
                outcome=outcome,
                state=run.state,
                message=user_message(error),
                error=str(error)[:ERROR_TRUNCATION_CHARS],
                error_class=classify_error(error),
                report=report,
            )
        if outcome is RunOutcome.CANCELLED:
            return RunResult(
                outcome=outcome,
                state=run.state,
                message=CANCELLED_MESSAGE,
                report=report,
            )
        return RunResult(
            outcome=outcome,
            state=run.state,
            message=_completion_message(run.state, len(run_files)),
            report=report,
        )

    async def _run_batch(
        self,
        run: _Run,
        batch_number: int,
        files: Sequence[CodeFile],
        credential: str,
        explanation_level: ExplanationLevel,
    ) -> None:
        """Stream one batch through tokenizer, classifier and state."""
        self._update(run, begin_batch(run.state, batch_number, files))
        tokenizer = StreamTokenizer(quote_aware=self._quote_aware)
        found_before = run.state.stats.vulnerabilities_found
        t0 = time.monotonic()

        def on_chunk(text: str) -> None:
            if run.token.cancelled:
                return
            state = run.state
            for obj in tokenizer.feed(text):
                event = classify_event(obj)
                if event is not None:
                    state = apply_event(state, event)
            if state is not run.state:
                self._update(run, state)

        logger.debug(
            "event=batch_started run_id=%s batch=%d files=%d",
            run.state.run_id,
            batch_number,
            len(files),
        )
        await _race_cancellation(
            self._analyzer.analyze(
                credential, files, explanation_level, on_chunk, run.token
            ),
            run.token,
        )
        if tokenizer.buffer.strip():
            logger.debug(
                "event=batch_trailing_text batch=%d chars=%d",
                batch_number,
                len(tokenizer.buffer),
            )
        if run.token.cancelled:
            self._update(
                run, end_batch(run.state, files, reason=CANCELLED_REASON)
            )
            return

        self._update(run, end_batch(run.state, files))
        duration_ms = (time.monotonic() - t0) * 1000
        found = run.state.stats.vulnerabilities_found - found_before
        logger.info(
            "event=batch_done run_id=%s batch=%d/%d findings=%d"
            " duration_ms=%.0f",
            run.state.run_id,
            batch_number,
            run.state.stats.total_batches,
            found,
            duration_ms,
        )
        if self._run_logger:
            self._run_logger.log_batch(
                run.state.run_id,
                batch_number,
                [f.name for f in files],
                duration_ms,
                found,
            )


async def _race_cancellation(
    call: Awaitable[None], token: CancellationToken
) -> None:
    """Await *call*, abandoning it as soon as *token* is cancelled.

    Errors from the call propagate unless the token fired first.
    """
    task = asyncio.ensure_future(call)
    waiter = asyncio.ensure_future(token.wait())
    try:
        await asyncio.wait(
            {task, waiter}, return_when=asyncio.FIRST_COMPLETED
        )
    except asyncio.CancelledError:
        task.cancel()
        token.cancel("task cancelled")
        raise
    finally:
        waiter.cancel()

    if not task.done():
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        return
    if token.cancelled:
        # Retrieve the result so a late failure is not reported twice
        if not task.cancelled() and task.exception() is not None:
            logger.debug(
                "event=analyzer_error_after_cancel error=%s",
                task.exception(),
            )
        return
    task.result()


def _completion_message(state: RunState, file_count: int) -> str:
    found = state.stats.vulnerabilities_found
    if found == 0:
        return "No critical vulnerabilities detected"
    return f"Found {found} security issues across {file_count} files"
