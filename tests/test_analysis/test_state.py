"""Tests for run-state transitions."""

from __future__ import annotations

import json

import pytest

from tests.conftest import (
    complete_json,
    file_complete_json,
    make_files,
    vuln_json,
)
from vulnlens.analysis.state import (
    CANCELLED_REASON,
    NO_COMPLETION_REASON,
    RunState,
    apply_event,
    begin_batch,
    count_batches,
    end_batch,
    finish,
    initial_state,
    max_severity,
)
from vulnlens.constants import FileStatus, Severity
from vulnlens.streaming.events import classify_event


def _event(text: str):  # noqa: ANN202
    event = classify_event(json.loads(text))
    assert event is not None
    return event


def _statuses(state: RunState) -> dict[str, FileStatus]:
    return {fp.name: fp.status for fp in state.file_progress}


class TestInitialState:
    def test_totals_fixed_from_submission(self) -> None:
        state = initial_state(make_files(23), 10, run_id="r1", now=5.0)
        assert state.run_id == "r1"
        assert state.stats.total_files == 23
        assert state.stats.total_batches == 3
        assert state.stats.current_batch == 0
        assert state.started_at == 5.0
        assert state.overall_risk is None
        assert set(_statuses(state).values()) == {FileStatus.QUEUED}

    def test_generates_run_id(self) -> None:
        a = initial_state(make_files(1), 10)
        b = initial_state(make_files(1), 10)
        assert a.run_id and b.run_id
        assert a.run_id != b.run_id

    @pytest.mark.parametrize(
        ("files", "size", "batches"),
        [(0, 10, 0), (1, 10, 1), (10, 10, 1), (11, 10, 2), (23, 10, 3)],
    )
    def test_count_batches(self, files: int, size: int, batches: int) -> None:
        assert count_batches(files, size) == batches


class TestMaxSeverity:
    def test_none_handling(self) -> None:
        assert max_severity(None, None) is None
        assert max_severity(None, Severity.LOW) is Severity.LOW
        assert max_severity(Severity.HIGH, None) is Severity.HIGH

    def test_ordering(self) -> None:
        assert max_severity(Severity.MEDIUM, Severity.CRITICAL) is (
            Severity.CRITICAL
        )
        assert max_severity(Severity.CRITICAL, Severity.LOW) is (
            Severity.CRITICAL
        )


class TestVulnerabilityIngestion:
    def test_appends_finding_with_id(self) -> None:
        state = initial_state(make_files(1), 10)
        state = apply_event(
            state, _event(vuln_json("f00.py", 3, "critical")), now=1.5
        )
        assert len(state.findings) == 1
        finding = state.findings[0]
        assert finding.id == "vuln-0-1500"
        assert finding.line == 3
        assert state.stats.vulnerabilities_found == 1
        assert state.stats.severity_breakdown.critical == 1

    def test_ids_unique_and_ordered_with_equal_timestamps(self) -> None:
        state = initial_state(make_files(1), 10)
        for _ in range(5):
            state = apply_event(
                state, _event(vuln_json("f00.py")), now=2.0
            )
        ids = [f.id for f in state.findings]
        assert len(set(ids)) == 5
        seqs = [int(i.split("-")[1]) for i in ids]
        assert seqs == sorted(seqs)

    def test_breakdown_sums_to_found(self) -> None:
        state = initial_state(make_files(1), 10)
        for sev in ("low", "high", "high", "critical", "medium"):
            state = apply_event(
                state, _event(vuln_json("f00.py", severity=sev))
            )
        breakdown = state.stats.severity_breakdown
        assert breakdown.total == state.stats.vulnerabilities_found == 5
        assert breakdown.high == 2

    def test_finding_does_not_move_overall_risk(self) -> None:
        state = initial_state(make_files(1), 10)
        state = apply_event(
            state, _event(vuln_json("f00.py", severity="critical"))
        )
        assert state.overall_risk is None

    def test_previous_snapshot_untouched(self) -> None:
        before = initial_state(make_files(1), 10)
        after = apply_event(before, _event(vuln_json("f00.py")))
        assert before.findings == ()
        assert before.stats.vulnerabilities_found == 0
        assert after is not before


class TestFileComplete:
    def test_counts_files_and_lines(self) -> None:
        state = initial_state(make_files(2), 10)
        state = begin_batch(state, 1, make_files(2))
        state = apply_event(state, _event(file_complete_json("f00.py", 40)))
        assert state.stats.files_scanned == 1
        assert state.stats.lines_scanned == 40
        progress = state.file_progress[0]
        assert progress.status is FileStatus.COMPLETED
        assert progress.lines_scanned == 40

    def test_files_scanned_capped_at_total(self) -> None:
        state = initial_state(make_files(2), 10)
        for _ in range(5):
            state = apply_event(
                state, _event(file_complete_json("f00.py", 1))
            )
        assert state.stats.files_scanned == 2
        assert state.stats.lines_scanned == 5

    def test_unknown_file_still_counts(self) -> None:
        state = initial_state(make_files(1), 10)
        state = apply_event(
            state, _event(file_complete_json("ghost.py", 7))
        )
        assert state.stats.files_scanned == 1
        assert _statuses(state) == {"f00.py": FileStatus.QUEUED}


class TestCompleteEvent:
    def test_overall_risk_is_a_watermark(self) -> None:
        state = initial_state(make_files(1), 10)
        seen: list[Severity | None] = []
        for risk in ("medium", "critical", "low", "high", None):
            state = apply_event(state, _event(complete_json(risk)))
            seen.append(state.overall_risk)
        assert seen == [
            Severity.MEDIUM,
            Severity.CRITICAL,
            Severity.CRITICAL,
            Severity.CRITICAL,
            Severity.CRITICAL,
        ]

    def test_null_top_risky_files_still_raises_watermark(self) -> None:
        state = initial_state(make_files(1), 10)
        event = classify_event(
            {
                "type": "complete",
                "summary": {
                    "overallRiskLevel": "high",
                    "topRiskyFiles": None,
                },
            }
        )
        assert event is not None
        state = apply_event(state, event)
        assert state.overall_risk is Severity.HIGH

    def test_unchanged_risk_returns_same_state(self) -> None:
        state = apply_event(
            initial_state(make_files(1), 10), _event(complete_json("high"))
        )
        assert apply_event(state, _event(complete_json("low"))) is state

    def test_complete_does_not_touch_counters(self) -> None:
        state = initial_state(make_files(1), 10)
        state = apply_event(state, _event(complete_json("high")))
        assert state.stats.files_scanned == 0
        assert state.stats.vulnerabilities_found == 0


class TestBatchBoundaries:
    def test_begin_marks_batch_analyzing(self) -> None:
        files = make_files(3)
        state = begin_batch(initial_state(files, 2), 1, files[:2])
        assert state.stats.current_batch == 1
        assert _statuses(state) == {
            "f00.py": FileStatus.ANALYZING,
            "f01.py": FileStatus.ANALYZING,
            "f02.py": FileStatus.QUEUED,
        }

    def test_end_skips_unreported_files(self) -> None:
        files = make_files(2)
        state = begin_batch(initial_state(files, 10), 1, files)
        state = apply_event(state, _event(file_complete_json("f00.py")))
        state = end_batch(state, files)
        assert _statuses(state) == {
            "f00.py": FileStatus.COMPLETED,
            "f01.py": FileStatus.SKIPPED,
        }
        assert state.file_progress[1].skipped_reason == NO_COMPLETION_REASON

    def test_end_with_cancel_reason(self) -> None:
        files = make_files(2)
        state = begin_batch(initial_state(files, 10), 1, files)
        state = end_batch(state, files, reason=CANCELLED_REASON)
        assert {fp.skipped_reason for fp in state.file_progress} == {
            CANCELLED_REASON
        }

    def test_finish_stamps_time(self) -> None:
        state = finish(initial_state(make_files(1), 10), now=9.0)
        assert state.finished_at == 9.0


class TestSerialization:
    def test_snapshot_dumps_camel_case(self) -> None:
        state = initial_state(make_files(1), 10, run_id="r1")
        state = apply_event(state, _event(vuln_json("f00.py")), now=1.0)
        data = state.model_dump(mode="json", by_alias=True)
        assert data["runId"] == "r1"
        assert data["stats"]["vulnerabilitiesFound"] == 1
        assert data["stats"]["severityBreakdown"]["high"] == 1
        assert data["findings"][0]["exploitLikelihood"] == "high"
        assert data["fileProgress"][0]["status"] == "queued"
