"""Record and result types shared by the store and the HTTP layer."""
from datetime import datetime, timezone
from typing import Dict, List

from pydantic import BaseModel, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class VectorRecord(BaseModel):
    """One stored item. ``timestamp`` is assigned by the store on every write."""

    id: str
    vector: List[float]
    text: str = ""
    metadata: Dict[str, str] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utc_now)


class VectorMatch(BaseModel):
    """A ranked query hit; derived from a record, never stored."""

    id: str
    score: float
    text: str
    metadata: Dict[str, str] = Field(default_factory=dict)


class BatchDocument(BaseModel):
    id: str
    text: str
    metadata: Dict[str, str] = Field(default_factory=dict)


class BatchResult(BaseModel):
    successful: int
    failed: int
    errors: List[str] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=utc_now)
