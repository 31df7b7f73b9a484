"""Schemas for AI app."""
from typing import Dict, Literal, Optional
from uuid import UUID

from ninja import Field, Schema
from pydantic import field_validator


class TipRequest(Schema):
    task_description: str = Field(..., min_length=10, max_length=500)
    priority: Literal['low', 'medium', 'high', 'urgent'] = 'medium'
    category: Optional[Literal['work', 'personal', 'study', 'health', 'finance', 'other']] = None

    @field_validator('task_description', mode='before')
    @classmethod
    def strip_description(cls, value):
        return value.strip() if isinstance(value, str) else value


class TipOut(Schema):
    tip: str
    source: str
    model: Optional[str] = None
    category: Optional[str] = None
    priority: Optional[str] = None
    is_rate_limited: bool = False
    type: Optional[str] = None


class UsageOut(Schema):
    daily_usage: int
    daily_limit: int
    remaining: int


class TipData(Schema):
    tip: TipOut
    usage: UsageOut


class TipResponse(Schema):
    success: bool = True
    data: TipData


class ComprehensiveTips(Schema):
    planning: Optional[TipOut] = None
    time_management: Optional[TipOut] = None
    focus: Optional[TipOut] = None


class ComprehensiveData(Schema):
    tips: ComprehensiveTips
    usage: UsageOut


class ComprehensiveResponse(Schema):
    success: bool = True
    data: ComprehensiveData


class QuotaErrorResponse(Schema):
    success: bool = False
    error: str
    usage: UsageOut


class TaskSummary(Schema):
    id: UUID
    title: str
    priority: str
    category: str


class TaskTipData(Schema):
    tip: TipOut
    task: TaskSummary
    usage: UsageOut


class TaskTipResponse(Schema):
    success: bool = True
    data: TaskTipData


class InsightData(Schema):
    insight: TipOut
    tasks_count: int
    task_breakdown: Optional[Dict[str, int]] = None
    usage: UsageOut


class InsightResponse(Schema):
    success: bool = True
    data: InsightData


class UsageData(Schema):
    usage: UsageOut


class UsageResponse(Schema):
    success: bool = True
    data: UsageData
