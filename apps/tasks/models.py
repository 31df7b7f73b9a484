import math
import uuid
from datetime import timedelta

from django.conf import settings
from django.db import models
from django.db.models import Case, IntegerField, Q, Value, When
from django.utils import timezone


class TaskStatus(models.TextChoices):
    TODO = 'todo', 'To Do'
    PENDING = 'pending', 'Pending'
    IN_PROGRESS = 'in-progress', 'In Progress'
    COMPLETED = 'completed', 'Completed'
    CANCELLED = 'cancelled', 'Cancelled'


class TaskPriority(models.TextChoices):
    LOW = 'low', 'Low'
    MEDIUM = 'medium', 'Medium'
    HIGH = 'high', 'High'
    URGENT = 'urgent', 'Urgent'


FINISHED_STATUSES = [TaskStatus.COMPLETED, TaskStatus.CANCELLED]

PRIORITY_RANK = {
    TaskPriority.LOW: 0,
    TaskPriority.MEDIUM: 1,
    TaskPriority.HIGH: 2,
    TaskPriority.URGENT: 3,
}


class TaskQuerySet(models.QuerySet):
    def active(self):
        return self.filter(is_archived=False)

    def visible_to(self, user, view_all: bool = False):
        """Tasks the user owns or is assigned to (everything when view_all)."""
        if view_all:
            return self
        assigned = TaskAssignment.objects.filter(user=user).values('task_id')
        return self.filter(Q(owner=user) | Q(id__in=assigned))

    def unfinished(self):
        return self.exclude(status__in=FINISHED_STATUSES)

    def overdue(self):
        return self.active().unfinished().filter(due_date__lt=timezone.now())

    def due_soon(self, days: int = 3):
        now = timezone.now()
        return self.active().unfinished().filter(due_date__gte=now, due_date__lte=now + timedelta(days=days))

    def with_priority_rank(self):
        return self.annotate(priority_rank=Case(
            *[When(priority=priority, then=Value(rank)) for priority, rank in PRIORITY_RANK.items()],
            default=Value(0),
            output_field=IntegerField(),
        ))


class Task(models.Model):
    """
    A user-owned unit of work with status, priority, assignees and comments.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    title = models.CharField(max_length=200)
    description = models.TextField(max_length=2000, blank=True)
    status = models.CharField(
        max_length=20,
        choices=TaskStatus.choices,
        default=TaskStatus.TODO
    )
    priority = models.CharField(
        max_length=20,
        choices=TaskPriority.choices,
        default=TaskPriority.MEDIUM
    )
    category = models.CharField(max_length=50, default='other')
    due_date = models.DateTimeField(null=True, blank=True, db_index=True)
    tags = models.JSONField(default=list, blank=True)
    # Lower-cased tags, one per line, for substring search
    tags_text = models.TextField(blank=True, default='', editable=False)

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='owned_tasks',
    )

    estimated_hours = models.FloatField(null=True, blank=True)
    actual_hours = models.FloatField(null=True, blank=True)
    is_archived = models.BooleanField(default=False)
    completed_at = models.DateTimeField(null=True, blank=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True, blank=True,
        related_name='+',
    )
    last_modified_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True, blank=True,
        related_name='+',
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = TaskQuerySet.as_manager()

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['owner', 'status'], name='task_owner_status_idx'),
            models.Index(fields=['priority'], name='task_priority_idx'),
            models.Index(fields=['category'], name='task_category_idx'),
        ]

    def __str__(self):
        return f"{self.title} ({self.status})"

    def save(self, *args, **kwargs):
        self.tags_text = '\n'.join(str(tag).lower() for tag in self.tags or [])
        # completed_at tracks the status: stamped on completion, cleared otherwise
        if self.status == TaskStatus.COMPLETED:
            if self.completed_at is None:
                self.completed_at = timezone.now()
        else:
            self.completed_at = None
        super().save(*args, **kwargs)

    @property
    def days_until_due(self):
        if not self.due_date:
            return None
        seconds = (self.due_date - timezone.now()).total_seconds()
        return math.ceil(seconds / 86400)

    @property
    def is_overdue(self) -> bool:
        if not self.due_date or self.status == TaskStatus.COMPLETED:
            return False
        return timezone.now() > self.due_date

    @property
    def completion_percentage(self) -> int:
        if self.status == TaskStatus.COMPLETED:
            return 100
        if self.status == TaskStatus.IN_PROGRESS:
            return 50
        return 0

    def participant_ids(self) -> list:
        """Owner first, then assignees; used to address realtime rooms."""
        ids = [self.owner_id]
        ids.extend(a.user_id for a in self.assignments.all())
        return list(dict.fromkeys(ids))


class TaskAssignment(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    task = models.ForeignKey(Task, on_delete=models.CASCADE, related_name='assignments')
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='task_assignments',
    )
    assigned_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True, blank=True,
        related_name='+',
    )
    assigned_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['assigned_at']
        unique_together = ['task', 'user']

    def __str__(self):
        return f"{self.user_id} -> {self.task_id}"


class TaskComment(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    task = models.ForeignKey(Task, on_delete=models.CASCADE, related_name='comments')
    author = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='task_comments',
    )
    content = models.TextField(max_length=1000)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['created_at']

    def __str__(self):
        return f"Comment by {self.author_id} on {self.task_id}"
