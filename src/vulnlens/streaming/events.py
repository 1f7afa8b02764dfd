"""Pydantic models for the streamed analysis events.

The analyzer emits camelCase JSON; models accept the wire names and
expose snake_case attributes. ``classify_event`` is the only entry
point the pipeline uses: it never raises for bad input.
"""

from __future__ import annotations

import logging
from typing import Annotated, Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    model_validator,
)
from pydantic.alias_generators import to_camel

from vulnlens.constants import (
    ConfidenceLevel,
    ExploitLikelihood,
    Severity,
)

logger = logging.getLogger(__name__)


class WireModel(BaseModel):
    """Base for models that round-trip the camelCase wire format."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )


def _drop_nulls(data: Any) -> Any:
    """Remove null-valued keys so field defaults apply."""
    if isinstance(data, dict):
        return {k: v for k, v in data.items() if v is not None}
    return data


class CodeFile(WireModel):
    """A submitted source file. Immutable once submitted."""

    name: str = Field(min_length=1)
    content: str


class SeverityBreakdown(WireModel):
    low: int = 0
    medium: int = 0
    high: int = 0
    critical: int = 0

    @model_validator(mode="before")
    @classmethod
    def _null_counts_to_zero(cls, data: Any) -> Any:
        return _drop_nulls(data)

    def bump(self, severity: Severity) -> SeverityBreakdown:
        """Return a copy with the *severity* counter incremented."""
        key = str(severity)
        return self.model_copy(update={key: getattr(self, key) + 1})

    @property
    def total(self) -> int:
        return self.low + self.medium + self.high + self.critical


class VulnerabilityEvent(WireModel):
    """A single finding reported by the analyzer."""

    type: Literal["vulnerability"] = "vulnerability"
    file: str
    function: str | None = None
    line: int = Field(ge=1)
    severity: Severity
    exploit_likelihood: ExploitLikelihood
    title: str
    description: str
    beginner_explanation: str
    expert_explanation: str
    code_snippet: str
    secure_refactoring: str
    cwe_reference: str | None = None
    owasp_category: str | None = None
    confidence_level: ConfidenceLevel | None = None
    context_lines: str | None = None
    risk_score_explanation: str | None = None


class Finding(VulnerabilityEvent):
    """A vulnerability after ingestion, carrying its run-scoped id."""

    id: str


class FileCompleteEvent(WireModel):
    type: Literal["fileComplete"] = "fileComplete"
    file: str
    lines_scanned: int = Field(ge=0)


class AnalysisSummary(WireModel):
    """The analyzer's self-reported batch summary (informational)."""

    total_files: int = 0
    total_vulnerabilities: int = 0
    severity_breakdown: SeverityBreakdown | None = None
    overall_risk_level: Severity | None = None
    top_risky_files: list[str] = Field(default_factory=lambda: list[str]())
    message: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _nulls_to_defaults(cls, data: Any) -> Any:
        return _drop_nulls(data)


class CompleteEvent(WireModel):
    type: Literal["complete"] = "complete"
    summary: AnalysisSummary


AnalysisEvent = Annotated[
    VulnerabilityEvent | FileCompleteEvent | CompleteEvent,
    Field(discriminator="type"),
]

_EVENT_ADAPTER: TypeAdapter[
    VulnerabilityEvent | FileCompleteEvent | CompleteEvent
] = TypeAdapter(AnalysisEvent)


def classify_event(
    obj: dict[str, Any],
) -> VulnerabilityEvent | FileCompleteEvent | CompleteEvent | None:
    """Validate a raw object against the tagged event union.

    Returns None for unknown ``type`` values and for objects failing
    the required-field checks; the analyzer is probabilistic and a
    malformed line must not end the run.
    """
    try:
        return _EVENT_ADAPTER.validate_python(obj)
    except ValidationError as exc:
        logger.debug(
            "event=event_dropped type=%s errors=%d",
            obj.get("type"),
            exc.error_count(),
        )
        return None
