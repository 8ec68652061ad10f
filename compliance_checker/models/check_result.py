"""
Data models for check runs and their results.

This module defines the verdict produced for a single checklist item,
the persisted result row, and the run that groups results together.
"""

from enum import Enum
from typing import List, Optional, Tuple, Dict, Any
from datetime import datetime

from pydantic import BaseModel, Field


class CheckStatus(str, Enum):
    """Verdict for a single checklist item."""

    PASS = "PASS"
    FAIL = "FAIL"
    UNKNOWN = "UNKNOWN"


class RunStatus(str, Enum):
    """Lifecycle status of a check run."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (RunStatus.COMPLETED, RunStatus.FAILED)


class Evidence(BaseModel):
    """A quotation from the document supporting a verdict."""

    page: int = Field(1, ge=1, description="1-based page the quote was taken from")
    quote: str = Field(..., max_length=300, description="Quoted document text")


class CheckVerdict(BaseModel):
    """Validated outcome of evaluating one criterion."""

    status: CheckStatus = Field(..., description="PASS, FAIL or UNKNOWN")
    reasoning: str = Field(..., description="Short explanation of the verdict")
    evidence: List[Evidence] = Field(default_factory=list, description="Grounded quotes, at most three")
    confidence: float = Field(0.0, ge=0.0, le=1.0, description="Confidence in the verdict")

    @classmethod
    def unknown(cls, reasoning: str) -> "CheckVerdict":
        """Build an UNKNOWN verdict without evidence or confidence."""
        return cls(status=CheckStatus.UNKNOWN, reasoning=reasoning, evidence=[], confidence=0.0)


class CheckResult(BaseModel):
    """Persisted result of one checklist item within one check run."""

    check_run_id: str = Field(..., description="Owning check run")
    checklist_item_id: str = Field(..., description="Evaluated checklist item")
    status: CheckStatus = Field(..., description="Verdict status")
    reasoning: str = Field("", description="Verdict reasoning")
    evidence: List[Evidence] = Field(default_factory=list, description="Grounded evidence")
    confidence: float = Field(0.0, ge=0.0, le=1.0, description="Verdict confidence")
    processing_time_ms: int = Field(0, ge=0, description="Time spent on the item in milliseconds")
    updated_at: datetime = Field(default_factory=datetime.now, description="Last write time")

    @property
    def key(self) -> Tuple[str, str]:
        return (self.check_run_id, self.checklist_item_id)

    @classmethod
    def from_verdict(cls, run_id: str, item_id: str, verdict: CheckVerdict,
                     processing_time_ms: int = 0) -> "CheckResult":
        return cls(
            check_run_id=run_id,
            checklist_item_id=item_id,
            status=verdict.status,
            reasoning=verdict.reasoning,
            evidence=list(verdict.evidence),
            confidence=verdict.confidence,
            processing_time_ms=processing_time_ms,
        )


class CheckRun(BaseModel):
    """One execution of a checklist sheet against one document."""

    id: str = Field(..., description="Unique identifier for the run")
    document_id: str = Field(..., description="Checked document")
    sheet_name: str = Field(..., description="Checklist sheet being applied")
    status: RunStatus = Field(RunStatus.PENDING, description="Lifecycle status")
    progress: int = Field(0, ge=0, le=100, description="Percentage of items processed")
    total_items: int = Field(0, ge=0, description="Number of items active at run start")
    error: Optional[str] = Field(None, description="Run-level error message")

    created_at: datetime = Field(default_factory=datetime.now, description="When the run was created")
    started_at: Optional[datetime] = Field(None, description="When processing started")
    completed_at: Optional[datetime] = Field(None, description="When the run completed")


class JobProgress(BaseModel):
    """Progress snapshot of a check run."""

    status: RunStatus
    progress: int = 0
    total_items: int = 0
    completed_items: int = 0
    error: Optional[str] = None


class ChecklistSummary(BaseModel):
    """Aggregated statistics over the results of a check run."""

    total: int = Field(0, description="Number of results")
    passed: int = Field(0, description="Number of PASS results")
    failed: int = Field(0, description="Number of FAIL results")
    unknown: int = Field(0, description="Number of UNKNOWN results")
    average_confidence: float = Field(0.0, description="Mean confidence over all results")

    @property
    def pass_rate(self) -> float:
        """Share of decided results that passed."""
        decided = self.passed + self.failed
        return self.passed / decided if decided else 0.0

    @classmethod
    def from_results(cls, results: List[CheckResult]) -> "ChecklistSummary":
        counts = {status: 0 for status in CheckStatus}
        for result in results:
            counts[result.status] += 1

        average = sum(r.confidence for r in results) / len(results) if results else 0.0

        return cls(
            total=len(results),
            passed=counts[CheckStatus.PASS],
            failed=counts[CheckStatus.FAIL],
            unknown=counts[CheckStatus.UNKNOWN],
            average_confidence=average,
        )

    def get_summary_statistics(self) -> Dict[str, Any]:
        data = self.model_dump()
        data["pass_rate"] = self.pass_rate
        return data


class CheckRunReport(BaseModel):
    """Final state of a check run together with its results."""

    run: CheckRun = Field(..., description="The check run")
    results: List[CheckResult] = Field(default_factory=list, description="Results in checklist order")
    summary: ChecklistSummary = Field(default_factory=ChecklistSummary, description="Aggregated statistics")
