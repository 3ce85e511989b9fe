"""Pydantic request model and in-memory state models for scrape sessions."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ScrapeRequest(BaseModel):
    """Body of ``POST /scrape``."""

    model_config = ConfigDict(populate_by_name=True)

    url: str = Field(..., min_length=1)
    timeout: int | None = Field(default=None, gt=0)  # total budget, ms
    requests_per_second: int | None = Field(
        default=None, ge=1, le=10, alias="requestsPerSecond"
    )


class SessionOutcome(str, Enum):
    """Terminal states of a scrape session."""

    SUCCESS = "success"
    TIMED_OUT = "timed_out"
    ATTEMPTS_EXHAUSTED = "attempts_exhausted"
    POOL_EXHAUSTED = "pool_exhausted"


@dataclass
class ScrapeSession:
    """Per-request retry state. Owned by one request, never persisted."""

    url: str
    timeout_ms: int
    requests_per_second: int
    started_at: float = field(default_factory=time.monotonic)
    attempts: int = 0
    skips: int = 0
    consecutive_skips: int = 0
    last_error: str | None = None

    @property
    def deadline(self) -> float:
        return self.started_at + self.timeout_ms / 1000.0

    def remaining(self) -> float:
        return self.deadline - time.monotonic()

    def elapsed_ms(self) -> float:
        return (time.monotonic() - self.started_at) * 1000


@dataclass
class ScrapeResult:
    """What a session returns: either HTML + headers or an error message."""

    success: bool
    outcome: SessionOutcome
    html: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    error: str | None = None
    attempts: int = 0
    elapsed_ms: float = 0.0
