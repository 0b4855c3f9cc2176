"""Summaries returned by scheduled batch passes."""

from typing import Any, Dict, List

from pydantic import BaseModel, Field


class ItemFailure(BaseModel):
    """A single cart or customer that failed inside a batch."""

    item_id: str
    kind: str
    message: str


class JobSummary(BaseModel):
    """Structured result of one pass; jobs return this instead of raising."""

    job: str
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    failures: List[ItemFailure] = Field(default_factory=list)
    details: Dict[str, Any] = Field(default_factory=dict)

    def record_success(self) -> None:
        self.processed += 1
        self.succeeded += 1

    def record_failure(self, item_id: str, kind: str, message: str) -> None:
        self.processed += 1
        self.failed += 1
        self.failures.append(ItemFailure(item_id=item_id, kind=kind, message=message))
