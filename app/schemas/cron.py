"""Cron endpoint response schemas."""

from pydantic import BaseModel, ConfigDict


class PoolRef(BaseModel):
    day: int
    period: int


class PoolTypeOutcome(BaseModel):
    model_config = ConfigDict(extra="allow")

    success: bool
    outcome: str
    message: str | None = None
    transaction_hash: str | None = None


class CronResponse(BaseModel):
    success: bool
    pool: PoolRef
    alarm: PoolTypeOutcome | None = None
    focus: PoolTypeOutcome | None = None
    processed_at: str
