"""Analysis endpoints — SSE snapshot stream, cancel, current state."""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from collections.abc import AsyncIterator

from fastapi import APIRouter, Depends, Header
from sse_starlette.sse import EventSourceResponse

from vulnlens.analysis.orchestrator import BatchOrchestrator, RunResult
from vulnlens.analysis.state import RunState
from vulnlens.api.app_state import AppState
from vulnlens.api.dependencies import get_app_state, get_orchestrator
from vulnlens.api.schemas import AnalyzeRequest, APIResponse
from vulnlens.constants import SSE_POLL_TIMEOUT, RunOutcome, SSEEvent
from vulnlens.credentials import LLM_API_KEY, resolve_credential

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/analyze", tags=["analysis"])

_TERMINAL_EVENTS: dict[RunOutcome, SSEEvent] = {
    RunOutcome.COMPLETED: SSEEvent.COMPLETE,
    RunOutcome.CANCELLED: SSEEvent.CANCELLED,
    RunOutcome.FAILED: SSEEvent.ERROR,
    RunOutcome.REJECTED: SSEEvent.REJECTED,
}


def snapshot_payload(state: RunState) -> str:
    return json.dumps(state.model_dump(mode="json", by_alias=True))


def terminal_event(result: RunResult) -> dict[str, str]:
    """SSE dict for a run's terminal status."""
    payload: dict[str, object] = {
        "outcome": result.outcome,
        "message": result.message,
        "error": result.error,
        "state": result.state.model_dump(mode="json", by_alias=True),
    }
    if result.error_class is not None:
        payload["errorClass"] = result.error_class.value
    if result.report is not None:
        payload["skippedFiles"] = [
            s.name for s in result.report.unsupported
        ]
    return {
        "event": _TERMINAL_EVENTS[result.outcome],
        "data": json.dumps(payload),
    }


@router.post("")
async def analyze(
    body: AnalyzeRequest,
    app_state: AppState = Depends(get_app_state),
    x_llm_api_key: str | None = Header(default=None),
) -> EventSourceResponse:
    """Start a run and stream its snapshots as Server-Sent Events."""
    credential = x_llm_api_key or resolve_credential(
        app_state.credentials,
        LLM_API_KEY,
        app_state.settings.llm_api_key,
    )
    return EventSourceResponse(
        _analysis_event_stream(app_state.orchestrator, body, credential),
        sep="\n",
    )


async def _analysis_event_stream(
    orchestrator: BatchOrchestrator,
    body: AnalyzeRequest,
    credential: str | None,
) -> AsyncIterator[dict[str, str]]:
    """Yield a snapshot per state change, then one terminal event.

    Snapshots from other runs (a superseded run, or the one that
    supersedes this one) are filtered out by run id. If the client
    goes away mid-run, the run is cancelled.
    """
    run_id = uuid.uuid4().hex[:12]
    queue: asyncio.Queue[RunState] = asyncio.Queue()

    def on_snapshot(state: RunState) -> None:
        if state.run_id == run_id:
            queue.put_nowait(state)

    unsubscribe = orchestrator.subscribe(on_snapshot)
    task = asyncio.create_task(
        orchestrator.run(
            body.files,
            credential,
            body.explanation_level,
            run_id=run_id,
        )
    )
    try:
        while not task.done() or not queue.empty():
            try:
                state = await asyncio.wait_for(
                    queue.get(), timeout=SSE_POLL_TIMEOUT
                )
            except TimeoutError:
                continue
            yield {
                "event": SSEEvent.SNAPSHOT,
                "data": snapshot_payload(state),
            }

        try:
            result = await task
        except Exception:
            logger.exception("event=analysis_stream_failed run_id=%s", run_id)
            yield {
                "event": SSEEvent.ERROR,
                "data": json.dumps(
                    {
                        "outcome": RunOutcome.FAILED,
                        "error": "Analysis failed."
                        " Check server logs for details.",
                    }
                ),
            }
            return
        yield terminal_event(result)
    finally:
        unsubscribe()
        if not task.done():
            logger.info("event=client_disconnected run_id=%s", run_id)
            if orchestrator.state.run_id == run_id:
                orchestrator.cancel("client disconnected")
            else:
                task.cancel()


@router.post("/cancel")
async def cancel_analysis(
    orchestrator: BatchOrchestrator = Depends(get_orchestrator),
) -> APIResponse:
    """Cancel the active run, if any."""
    cancelled = orchestrator.cancel("user")
    return APIResponse(success=True, data={"cancelled": cancelled})


@router.get("/state")
async def analysis_state(
    orchestrator: BatchOrchestrator = Depends(get_orchestrator),
) -> APIResponse:
    """Latest snapshot — lets a reconnecting client catch up."""
    return APIResponse(
        success=True,
        data=orchestrator.state.model_dump(mode="json", by_alias=True),
        metadata={"running": orchestrator.is_running},
    )
