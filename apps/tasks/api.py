"""
Task API endpoints.

Every endpoint requires a bearer token. Mutations push realtime events
to the rooms of the task owner and assignees.
"""
from datetime import date
from typing import Optional
from uuid import UUID
from ninja import Router
from ninja.errors import HttpError
from django.http import HttpRequest

from apps.identity.decorators import has_permission
from apps.identity.permissions import Permissions
from apps.identity.security import require_auth
from apps.realtime.events import TaskEvent, notify_users
from .dtos import (
    AssignIn,
    CommentIn,
    CommentOut,
    TaskIn,
    TaskListOut,
    TaskOut,
    TaskStatsOut,
    TaskUpdate,
)
from . import services

router = Router(tags=["Tasks"])


def _serialize(task) -> dict:
    return TaskOut.from_orm(task).model_dump(mode='json')


def _get_task_or_404(task_id: UUID):
    task = services.get_task(task_id)
    if not task:
        raise HttpError(404, "Task not found")
    return task


@router.get("", response=TaskListOut, auth=None)
def list_tasks(
    request: HttpRequest,
    status: Optional[str] = None,
    priority: Optional[str] = None,
    category: Optional[str] = None,
    search: Optional[str] = None,
    due_date: Optional[date] = None,
    sort_by: str = 'created_at',
    sort_order: str = 'desc',
    page: int = 1,
    limit: int = 10,
):
    """
    List tasks the caller can see.

    - Admins see every non-archived task
    - Everyone else sees tasks they own or are assigned to
    """
    user = require_auth(request)
    result = services.list_tasks(
        user,
        status=status,
        priority=priority,
        category=category,
        search=search,
        due_date=due_date,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit,
    )
    return {
        "success": True,
        "tasks": result.tasks,
        "pagination": {
            "current": result.current,
            "pages": result.pages,
            "total": result.total,
        },
    }


@router.get("/stats", response=TaskStatsOut, auth=None)
def get_task_stats(request: HttpRequest):
    user = require_auth(request)
    return services.task_stats(user)


@router.get("/{task_id}", response=TaskOut, auth=None)
def get_task(request: HttpRequest, task_id: UUID):
    user = require_auth(request)
    task = _get_task_or_404(task_id)
    if not services.has_access(user, task):
        raise HttpError(403, "Access denied to this task")
    return task


@router.post("", response={201: TaskOut}, auth=None)
def create_task(request: HttpRequest, payload: TaskIn):
    user = require_auth(request)
    task = services.create_task(user, payload)
    notify_users([user.id], TaskEvent.CREATED, _serialize(task))
    return 201, task


@router.put("/{task_id}", response=TaskOut, auth=None)
def update_task(request: HttpRequest, task_id: UUID, payload: TaskUpdate):
    user = require_auth(request)
    task = _get_task_or_404(task_id)
    if not services.can_edit(user, task):
        raise HttpError(403, "You do not have permission to edit this task")

    task = services.update_task(task, user, payload.dict(exclude_unset=True))
    notify_users(task.participant_ids(), TaskEvent.UPDATED, _serialize(task))
    return task


@router.delete("/{task_id}", auth=None)
def delete_task(request: HttpRequest, task_id: UUID):
    user = require_auth(request)
    task = _get_task_or_404(task_id)
    if not services.can_delete(user, task):
        raise HttpError(403, "You do not have permission to delete this task")

    recipients = task.participant_ids()
    services.delete_task(task)
    notify_users(recipients, TaskEvent.DELETED, {"task_id": str(task_id)})
    return {"success": True, "message": "Task deleted successfully"}


@router.post("/{task_id}/comments", response={201: CommentOut}, auth=None)
def add_comment(request: HttpRequest, task_id: UUID, payload: CommentIn):
    user = require_auth(request)
    task = _get_task_or_404(task_id)
    if not services.has_access(user, task):
        raise HttpError(403, "Access denied to this task")

    comment = services.add_comment(task, user, payload.content)
    notify_users(
        task.participant_ids(),
        TaskEvent.COMMENT_ADDED,
        {
            "task_id": str(task.id),
            "comment": CommentOut.from_orm(comment).model_dump(mode='json'),
        },
    )
    return 201, comment


@router.post("/{task_id}/assign", response=TaskOut, auth=None)
@has_permission(Permissions.TASKS_ASSIGN)
def assign_user(request: HttpRequest, task_id: UUID, payload: AssignIn):
    """
    Assign a user to the task. Requires TASKS_ASSIGN (admin or manager).
    """
    user = request.user
    task = _get_task_or_404(task_id)
    if not services.can_assign(user, task):
        raise HttpError(403, "You do not have permission to assign users to this task")

    updated = services.assign_user(task, payload.user_id, assigned_by=user)
    if updated is None:
        raise HttpError(404, "User to assign not found")

    notify_users([payload.user_id], TaskEvent.ASSIGNED, _serialize(updated))
    return updated


@router.delete("/{task_id}/assign/{user_id}", response=TaskOut, auth=None)
@has_permission(Permissions.TASKS_ASSIGN)
def unassign_user(request: HttpRequest, task_id: UUID, user_id: UUID):
    task = _get_task_or_404(task_id)
    if not services.can_assign(request.user, task):
        raise HttpError(403, "You do not have permission to assign users to this task")

    recipients = task.participant_ids()
    if not services.unassign_user(task, user_id):
        raise HttpError(404, "User is not assigned to this task")

    task = services.get_task(task_id)
    notify_users(recipients, TaskEvent.UPDATED, _serialize(task))
    return task
