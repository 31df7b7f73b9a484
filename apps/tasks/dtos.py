"""Schemas and DTOs for Tasks app."""
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from ninja import Field, Schema
from pydantic import field_validator

from .models import TaskPriority, TaskStatus

MAX_TAG_LENGTH = 30


def _clean_tags(tags: Optional[List[str]]) -> Optional[List[str]]:
    if tags is None:
        return None
    cleaned = []
    for tag in tags:
        tag = tag.strip().lower()
        if not tag:
            continue
        if len(tag) > MAX_TAG_LENGTH:
            raise ValueError(f"Tag cannot exceed {MAX_TAG_LENGTH} characters")
        if tag not in cleaned:
            cleaned.append(tag)
    return cleaned


def _strip(value):
    return value.strip() if isinstance(value, str) else value


class UserSummary(Schema):
    id: UUID
    email: str
    first_name: str
    last_name: str


class AssignmentOut(Schema):
    user: UserSummary
    assigned_by: Optional[UserSummary] = None
    assigned_at: datetime


class CommentOut(Schema):
    id: UUID
    author: UserSummary
    content: str
    created_at: datetime
    updated_at: datetime


class TaskOut(Schema):
    id: UUID
    title: str
    description: str
    status: str
    priority: str
    category: str
    due_date: Optional[datetime] = None
    tags: List[str]
    owner: UserSummary
    assignees: List[AssignmentOut]
    comments: List[CommentOut]
    estimated_hours: Optional[float] = None
    actual_hours: Optional[float] = None
    is_archived: bool
    completed_at: Optional[datetime] = None
    days_until_due: Optional[int] = None
    is_overdue: bool
    completion_percentage: int
    created_at: datetime
    updated_at: datetime

    @staticmethod
    def resolve_assignees(obj):
        return list(obj.assignments.all())

    @staticmethod
    def resolve_comments(obj):
        return list(obj.comments.all())


class TaskIn(Schema):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field('', max_length=2000)
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    category: str = Field('other', min_length=1, max_length=50)
    due_date: Optional[datetime] = None
    tags: List[str] = []
    estimated_hours: Optional[float] = Field(None, ge=0, le=1000)
    actual_hours: Optional[float] = Field(None, ge=0, le=1000)

    @field_validator('title', 'description', 'category', mode='before')
    @classmethod
    def strip_text(cls, value):
        return _strip(value)

    @field_validator('tags')
    @classmethod
    def clean_tags(cls, value):
        return _clean_tags(value)


class TaskUpdate(Schema):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    category: Optional[str] = Field(None, min_length=1, max_length=50)
    due_date: Optional[datetime] = None
    tags: Optional[List[str]] = None
    estimated_hours: Optional[float] = Field(None, ge=0, le=1000)
    actual_hours: Optional[float] = Field(None, ge=0, le=1000)
    is_archived: Optional[bool] = None

    @field_validator('title', 'description', 'category', mode='before')
    @classmethod
    def strip_text(cls, value):
        return _strip(value)

    @field_validator('tags')
    @classmethod
    def clean_tags(cls, value):
        return _clean_tags(value)


class CommentIn(Schema):
    content: str = Field(..., min_length=1, max_length=1000)

    @field_validator('content', mode='before')
    @classmethod
    def strip_content(cls, value):
        return _strip(value)


class AssignIn(Schema):
    user_id: UUID


class PaginationOut(Schema):
    current: int
    pages: int
    total: int


class TaskListOut(Schema):
    success: bool = True
    tasks: List[TaskOut]
    pagination: PaginationOut


class TaskStatsOut(Schema):
    total: int
    pending: int
    in_progress: int
    completed: int
    cancelled: int
    overdue: int


@dataclass(frozen=True)
class TaskPage:
    """One page of a task listing."""
    tasks: list
    current: int
    pages: int
    total: int
