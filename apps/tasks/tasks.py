from celery import shared_task
import logging

from apps.realtime.events import TaskEvent, notify_users
from .dtos import TaskOut
from .services import find_overdue

logger = logging.getLogger(__name__)


@shared_task
def notify_overdue_tasks():
    """
    Push a taskOverdue event to the owner of every overdue task.

    Scheduled hourly by Celery beat.
    """
    tasks = find_overdue()
    if not tasks:
        logger.info("No overdue tasks found")
        return 0

    for task in tasks:
        notify_users(
            [task.owner_id],
            TaskEvent.OVERDUE,
            {
                "task_id": str(task.id),
                "title": task.title,
                "due_date": task.due_date.isoformat(),
                "priority": task.priority,
            },
        )

    logger.info(f"Sent overdue notifications for {len(tasks)} tasks")
    return len(tasks)
