from datetime import datetime
from typing import Any, Literal, Optional
from pydantic import BaseModel, Field

JobStatus = Literal[
    "running",
    "paused",
    "completed",
    "error",
]

ItemStatus = Literal[
    "pending",
    "success",
    "no_result",
    "error",
]


class JobItem(BaseModel):
    key: str
    label: str = ""
    item_status: ItemStatus = "pending"
    result: Optional[dict[str, Any]] = None
    registered: bool = False
    error_message: Optional[str] = None

    @property
    def is_pending(self) -> bool:
        return self.item_status == "pending"


class Job(BaseModel):
    id: str
    status: JobStatus = "running"
    total_items: int = Field(ge=0)
    processed_items: int = Field(default=0, ge=0)
    started_at: datetime
    last_updated_at: datetime
    estimated_seconds_remaining: float = 0.0
    items: list[JobItem] = Field(default_factory=list)
    failure_reason: Optional[str] = None

    def pending_indexes(self) -> list[int]:
        return [i for i, item in enumerate(self.items) if item.is_pending]

    def next_pending(self) -> Optional[int]:
        return next((i for i, item in enumerate(self.items) if item.is_pending), None)

    def touch(self, now: datetime) -> None:
        # Clock skew must never move last_updated_at behind started_at
        self.last_updated_at = max(now, self.started_at)

    def refresh_estimate(self, seconds_per_item: float) -> None:
        remaining = max(self.total_items - self.processed_items, 0)
        self.estimated_seconds_remaining = remaining * seconds_per_item
