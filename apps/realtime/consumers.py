"""Websocket consumer delivering task events to a signed-in user."""
import logging
from urllib.parse import parse_qs

from asgiref.sync import async_to_sync
from channels.generic.websocket import JsonWebsocketConsumer

from apps.identity.jwt_auth import get_user_id_from_token
from apps.identity.security import get_user_for_token
from .events import room_name

logger = logging.getLogger(__name__)

# Close code sent when the handshake carries no usable token
UNAUTHORIZED_CLOSE_CODE = 4401


class TaskEventConsumer(JsonWebsocketConsumer):
    """
    Connect with ``/ws/tasks/?token=<jwt>``.

    The socket joins the caller's room and relays every ``task.event``
    message as ``{"event": ..., "data": ...}``.
    """
    group_name = None

    def connect(self):
        query = parse_qs(self.scope.get('query_string', b'').decode())
        token = (query.get('token') or [None])[0]

        # Reject undecodable tokens before touching the database
        if not token or not get_user_id_from_token(token):
            self.close(code=UNAUTHORIZED_CLOSE_CODE)
            return

        user = get_user_for_token(token)
        if user is None:
            self.close(code=UNAUTHORIZED_CLOSE_CODE)
            return

        self.user = user
        self.group_name = room_name(user.id)
        async_to_sync(self.channel_layer.group_add)(self.group_name, self.channel_name)
        self.accept()
        logger.info(f"User connected: {user.id}")

    def disconnect(self, code):
        if self.group_name:
            async_to_sync(self.channel_layer.group_discard)(self.group_name, self.channel_name)
            logger.info(f"User disconnected: {self.user.id}")

    def receive_json(self, content, **kwargs):
        # Clients only listen; pings get a pong so they can detect dead sockets
        if content.get('type') == 'ping':
            self.send_json({'event': 'pong', 'data': None})

    def task_event(self, event):
        self.send_json({'event': event['event'], 'data': event['data']})
