"""
Server-side push of task events to per-user rooms.

Each connected websocket joins the group ``user_<uuid>``; HTTP handlers
and background jobs call ``notify_users`` to fan an event out to the
rooms of everyone involved in a task.
"""
import logging
from typing import Any, Iterable

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer

logger = logging.getLogger(__name__)


class TaskEvent:
    """Canonical event names pushed to clients."""
    CREATED = "taskCreated"
    UPDATED = "taskUpdated"
    DELETED = "taskDeleted"
    COMMENT_ADDED = "commentAdded"
    ASSIGNED = "taskAssigned"
    OVERDUE = "taskOverdue"


def room_name(user_id) -> str:
    return f"user_{user_id}"


def notify_users(user_ids: Iterable, event: str, data: Any) -> int:
    """
    Send ``event`` with ``data`` to the room of every distinct user id.

    Delivery failures are logged and never propagate to the caller.
    Returns the number of rooms the event was sent to.
    """
    channel_layer = get_channel_layer()
    if channel_layer is None:
        logger.warning(f"No channel layer configured; dropping {event}")
        return 0

    sent = 0
    for user_id in dict.fromkeys(str(uid) for uid in user_ids if uid):
        try:
            async_to_sync(channel_layer.group_send)(
                room_name(user_id),
                {"type": "task.event", "event": event, "data": data},
            )
            sent += 1
        except Exception as e:
            logger.error(f"Failed to push {event} to user {user_id}: {e}")
    return sent
