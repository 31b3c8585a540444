"""Common/shared schemas."""

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    detail: str
    type: str | None = None


class HealthResponse(BaseModel):
    status: str
