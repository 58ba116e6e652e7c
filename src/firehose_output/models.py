from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LogEvent(BaseModel):
    """Single structured log event destined for Firehose."""

    model_config = ConfigDict(frozen=True)

    message: str
    timestamp: datetime = Field(default_factory=_utcnow)
    host: str | None = None
    fields: dict[str, Any] = Field(default_factory=dict)

    def get(self, name: str) -> Any:
        if name == "message":
            return self.message
        if name == "host":
            return self.host
        if name in ("@timestamp", "timestamp"):
            return format_timestamp(self.timestamp)
        return self.fields.get(name)


def format_timestamp(value: datetime) -> str:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


class SubmissionFailure(BaseModel):
    """Outcome of a rejected PutRecord/PutRecordBatch call."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["fatal", "recoverable"]
    error_code: str | None = None
    error_message: str | None = None

    @property
    def is_fatal(self) -> bool:
        return self.kind == "fatal"


class DispatchReport(BaseModel):
    submitted_records: int = 0
    submitted_batches: int = 0
    dropped_oversized: int = 0
    dropped_failed: int = 0

    def __add__(self, other: DispatchReport) -> DispatchReport:
        return DispatchReport(
            submitted_records=self.submitted_records + other.submitted_records,
            submitted_batches=self.submitted_batches + other.submitted_batches,
            dropped_oversized=self.dropped_oversized + other.dropped_oversized,
            dropped_failed=self.dropped_failed + other.dropped_failed,
        )
