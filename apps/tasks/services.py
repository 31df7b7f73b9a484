"""
Task services.

Access rules:
- view / comment: admin, owner, or assignee
- edit: admin, manager, or owner
- delete: admin or owner
- assign: admin, manager, or owner
"""
import logging
import math
from datetime import date, datetime, time, timedelta
from typing import List, Optional
from uuid import UUID

from django.db.models import Count, Q
from django.utils import timezone

from apps.identity.models import User
from apps.identity.permissions import Permissions, user_has_permission
from .dtos import TaskIn, TaskPage
from .models import FINISHED_STATUSES, Task, TaskAssignment, TaskComment, TaskStatus

logger = logging.getLogger(__name__)

SORT_FIELDS = {
    'created_at': 'created_at',
    'updated_at': 'updated_at',
    'due_date': 'due_date',
    'priority': 'priority_rank',
    'status': 'status',
    'title': 'title',
}
MAX_PAGE_SIZE = 100

# Fields that may be explicitly cleared with null on update
NULLABLE_FIELDS = {'due_date', 'estimated_hours', 'actual_hours'}


# =============================================================================
# Access checks
# =============================================================================

def _is_owner(user: User, task: Task) -> bool:
    return task.owner_id == user.id


def _is_assignee(user: User, task: Task) -> bool:
    return any(a.user_id == user.id for a in task.assignments.all())


def has_access(user: User, task: Task) -> bool:
    return (
        user_has_permission(user, Permissions.TASKS_VIEW_ALL)
        or _is_owner(user, task)
        or _is_assignee(user, task)
    )


def can_edit(user: User, task: Task) -> bool:
    return user_has_permission(user, Permissions.TASKS_EDIT_ANY) or _is_owner(user, task)


def can_delete(user: User, task: Task) -> bool:
    return user_has_permission(user, Permissions.TASKS_DELETE_ANY) or _is_owner(user, task)


def can_assign(user: User, task: Task) -> bool:
    return user_has_permission(user, Permissions.TASKS_ASSIGN) or _is_owner(user, task)


# =============================================================================
# Queries
# =============================================================================

def _with_relations(queryset):
    return queryset.select_related('owner').prefetch_related(
        'assignments__user',
        'assignments__assigned_by',
        'comments__author',
    )


def get_task(task_id: UUID) -> Optional[Task]:
    try:
        return _with_relations(Task.objects.all()).get(id=task_id)
    except Task.DoesNotExist:
        return None


def visible_tasks(user: User):
    view_all = user_has_permission(user, Permissions.TASKS_VIEW_ALL)
    return Task.objects.active().visible_to(user, view_all=view_all)


def _day_bounds(day: date):
    tz = timezone.get_current_timezone()
    start = timezone.make_aware(datetime.combine(day, time.min), tz)
    return start, start + timedelta(days=1)


def list_tasks(
    user: User,
    status: str = None,
    priority: str = None,
    category: str = None,
    search: str = None,
    due_date: date = None,
    sort_by: str = 'created_at',
    sort_order: str = 'desc',
    page: int = 1,
    limit: int = 10,
) -> TaskPage:
    """
    List non-archived tasks visible to ``user`` with filtering, sorting
    and pagination.
    """
    queryset = visible_tasks(user)

    if status:
        queryset = queryset.filter(status=status)
    if priority:
        queryset = queryset.filter(priority=priority)
    if category:
        queryset = queryset.filter(category=category)
    if search:
        queryset = queryset.filter(
            Q(title__icontains=search) |
            Q(description__icontains=search) |
            Q(tags_text__icontains=search.lower())
        )
    if due_date:
        start, end = _day_bounds(due_date)
        queryset = queryset.filter(due_date__gte=start, due_date__lt=end)

    order_field = SORT_FIELDS.get(sort_by, 'created_at')
    if order_field == 'priority_rank':
        queryset = queryset.with_priority_rank()
    prefix = '' if sort_order == 'asc' else '-'

    page = max(page, 1)
    limit = min(max(limit, 1), MAX_PAGE_SIZE)
    total = queryset.count()
    offset = (page - 1) * limit

    tasks = list(
        _with_relations(queryset.order_by(f'{prefix}{order_field}', '-created_at'))[offset:offset + limit]
    )
    return TaskPage(
        tasks=tasks,
        current=page,
        pages=math.ceil(total / limit),
        total=total,
    )


def task_stats(user: User) -> dict:
    finished = Q(status__in=FINISHED_STATUSES)
    return visible_tasks(user).aggregate(
        total=Count('id'),
        pending=Count('id', filter=Q(status=TaskStatus.PENDING)),
        in_progress=Count('id', filter=Q(status=TaskStatus.IN_PROGRESS)),
        completed=Count('id', filter=Q(status=TaskStatus.COMPLETED)),
        cancelled=Count('id', filter=Q(status=TaskStatus.CANCELLED)),
        overdue=Count('id', filter=Q(due_date__lt=timezone.now()) & ~finished),
    )


def tasks_due_today(user: User) -> List[Task]:
    """Unfinished, non-archived tasks the user owns or is assigned to, due today."""
    start, end = _day_bounds(timezone.localdate())
    queryset = (
        Task.objects.active()
        .unfinished()
        .visible_to(user)
        .filter(due_date__gte=start, due_date__lt=end)
        .with_priority_rank()
        .order_by('-priority_rank', 'due_date')
    )
    return list(queryset)


def find_overdue() -> List[Task]:
    return list(Task.objects.overdue().select_related('owner'))


def find_due_soon(days: int = 3) -> List[Task]:
    return list(Task.objects.due_soon(days).select_related('owner'))


# =============================================================================
# Mutations
# =============================================================================

def create_task(user: User, payload: TaskIn) -> Task:
    task = Task.objects.create(
        owner=user,
        created_by=user,
        last_modified_by=user,
        **payload.dict()
    )
    logger.info(f"Task {task.id} created by {user.id}")
    return get_task(task.id)


def update_task(task: Task, user: User, data: dict) -> Task:
    for attr, value in data.items():
        if value is None and attr not in NULLABLE_FIELDS:
            continue
        setattr(task, attr, value)
    task.last_modified_by = user
    task.save()
    return get_task(task.id)


def delete_task(task: Task) -> None:
    task_id = task.id
    task.delete()
    logger.info(f"Task {task_id} deleted")


def add_comment(task: Task, user: User, content: str) -> TaskComment:
    comment = TaskComment.objects.create(task=task, author=user, content=content)
    Task.objects.filter(id=task.id).update(updated_at=timezone.now())
    return comment


def assign_user(task: Task, user_id: UUID, assigned_by: User) -> Optional[Task]:
    """
    Assign ``user_id`` to the task. Assigning twice is a no-op.

    Returns None when the user does not exist or is inactive.
    """
    try:
        assignee = User.objects.get(id=user_id, is_active=True)
    except User.DoesNotExist:
        return None

    _, created = TaskAssignment.objects.get_or_create(
        task=task,
        user=assignee,
        defaults={'assigned_by': assigned_by},
    )
    if created:
        logger.info(f"User {assignee.id} assigned to task {task.id} by {assigned_by.id}")
    return get_task(task.id)


def unassign_user(task: Task, user_id: UUID) -> bool:
    deleted, _ = TaskAssignment.objects.filter(task=task, user_id=user_id).delete()
    return deleted > 0
