"""
Task data model
Lifecycle: DISCOVERED -> VALUATING -> SUBMITTING -> COMPLETED, or FAILED
"""

import math
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .exceptions import InvalidTransitionError


class TaskLifecycle(str, Enum):
    DISCOVERED = "discovered"
    VALUATING = "valuating"
    SUBMITTING = "submitting"
    COMPLETED = "completed"
    FAILED = "failed"  # Terminal for this tick only


VALID_TRANSITIONS = {
    TaskLifecycle.DISCOVERED: {TaskLifecycle.VALUATING, TaskLifecycle.FAILED},
    TaskLifecycle.VALUATING: {TaskLifecycle.SUBMITTING, TaskLifecycle.FAILED},
    TaskLifecycle.SUBMITTING: {TaskLifecycle.COMPLETED, TaskLifecycle.FAILED},
    TaskLifecycle.COMPLETED: set(),
    TaskLifecycle.FAILED: set(),
}


class ValuationResult(BaseModel):
    """Score + evidence returned by the valuation pipeline"""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    score: int = Field(ge=0, le=100)
    evidence_uri: str = Field(alias="evidenceUri", min_length=1)
    display_name: str = Field(default="", alias="displayName")

    @field_validator("score", mode="before")
    @classmethod
    def _coerce_score(cls, value):
        # Pipelines report floats ("87.5") as often as ints; the contract takes uint256
        if isinstance(value, bool):
            raise ValueError("score must be numeric")
        if isinstance(value, str):
            value = float(value.strip())
        if isinstance(value, float):
            if value != value:
                raise ValueError("score is NaN")
            if not math.isfinite(value):
                raise ValueError("score must be finite")
            return int(round(value))
        return value


class Task(BaseModel):
    """
    One NewTaskCreated event, decoded and validated.

    Created per log and dropped after its outcome is recorded; only
    task_index survives in the deduplicator.
    """

    model_config = ConfigDict(validate_assignment=True)

    task_index: int = Field(ge=0)
    subject_reference: str = Field(min_length=1)
    creation_block: int = Field(ge=0)

    # Log position, used for ordering within a chunk
    block_number: int = Field(ge=0)
    log_index: int = Field(default=0, ge=0)
    transaction_hash: str = ""

    lifecycle_state: TaskLifecycle = TaskLifecycle.DISCOVERED
    valuation_result: Optional[ValuationResult] = None
    response_tx_handle: Optional[str] = None

    @property
    def token_id(self) -> int:
        return int(self.subject_reference)

    def advance(self, new_state: TaskLifecycle) -> "Task":
        if new_state not in VALID_TRANSITIONS[self.lifecycle_state]:
            raise InvalidTransitionError(
                f"Task #{self.task_index}: {self.lifecycle_state.value} -> {new_state.value} is not allowed"
            )
        self.lifecycle_state = new_state
        return self

    def fail(self) -> "Task":
        if self.lifecycle_state not in (TaskLifecycle.COMPLETED, TaskLifecycle.FAILED):
            self.lifecycle_state = TaskLifecycle.FAILED
        return self


class TickStatus(str, Enum):
    SUCCESS = "success"
    IDLE = "idle"  # No new blocks
    CHAIN_ACCESS_ERROR = "chain_access_error"
    ERROR = "error"


@dataclass
class TickOutcome:
    """Structured result of one poll tick"""
    status: TickStatus
    watermark_before: Optional[int]
    watermark_after: Optional[int]
    head: Optional[int] = None
    from_block: Optional[int] = None
    to_block: Optional[int] = None
    chunks: int = 0
    tasks_seen: int = 0
    tasks_completed: int = 0
    tasks_failed: int = 0
    tasks_skipped: int = 0
    error: Optional[str] = None

    @property
    def advanced(self) -> bool:
        if self.watermark_before is None or self.watermark_after is None:
            return False
        return self.watermark_after > self.watermark_before

    def to_dict(self) -> Dict:
        data = asdict(self)
        data['status'] = self.status.value
        return data

    def summary(self) -> str:
        if self.status == TickStatus.IDLE:
            return f"no new blocks (head {self.head}, watermark {self.watermark_before})"
        if self.status != TickStatus.SUCCESS:
            return f"{self.status.value}: {self.error} (watermark stays {self.watermark_after})"
        return (
            f"blocks {self.from_block}-{self.to_block} in {self.chunks} chunk(s): "
            f"{self.tasks_completed} completed, {self.tasks_failed} failed, "
            f"{self.tasks_skipped} skipped"
        )
