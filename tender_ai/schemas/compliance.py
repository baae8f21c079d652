"""Compliance report schemas.

Field names serialize in camelCase (``coveragePercent``, ``qualityScore``)
when dumped with ``by_alias=True``.
"""

from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ComplianceWarning(_CamelModel):
    """One actionable finding in a compliance report."""

    extracted_item_id: Optional[UUID] = Field(None, description="Item the warning concerns, if any")
    message: str
    severity: str = Field(..., description="critical, major, minor or info")


class ComplianceStats(_CamelModel):
    total_items: int = 0
    questions: int = 0
    conditions: int = 0
    addressed_items: int = 0
    pending_items: int = 0
    draft_groups_total: int = 0
    draft_groups_drafted: int = 0
    feedback_addressed: int = 0
    feedback_total: int = 0


class ComplianceReport(_CamelModel):
    quality_score: int = Field(..., ge=0, le=100)
    coverage_percent: int = Field(..., ge=0, le=100)
    summary: str
    warnings: List[ComplianceWarning] = Field(default_factory=list)
    stats: ComplianceStats
