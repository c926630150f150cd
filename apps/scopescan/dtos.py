"""Schemas for the ScopeScan app."""
from typing import List, Literal, Optional

from ninja import Field, Schema

FindingCategory = Literal[
    "damage", "repair", "maintenance", "upgrade", "inspection",
    "painting", "plumbing", "electrical", "structural", "other",
]


class FindingSchema(Schema):
    id: str
    issue: str
    description: Optional[str] = None
    confidence: float = Field(..., ge=0, le=1)
    category: FindingCategory
    photo_ids: List[int] = []
    severity: Optional[str] = None


class DeduplicateIn(Schema):
    findings: List[FindingSchema]


class DeduplicateOut(Schema):
    findings: List[FindingSchema]
    removed: int
