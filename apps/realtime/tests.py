from asgiref.sync import sync_to_async
from channels.layers import get_channel_layer
from channels.routing import URLRouter
from channels.testing import WebsocketCommunicator
from django.test import SimpleTestCase, TransactionTestCase

from apps.identity.jwt_auth import create_access_token
from apps.identity.models import User
from .consumers import UNAUTHORIZED_CLOSE_CODE
from .events import TaskEvent, notify_users, room_name
from .routing import websocket_urlpatterns

application = URLRouter(websocket_urlpatterns)


class NotifyUsersTest(SimpleTestCase):
    async def test_event_reaches_each_room_once(self):
        layer = get_channel_layer()
        channel = await layer.new_channel()
        await layer.group_add(room_name('abc'), channel)

        sent = await sync_to_async(notify_users)(
            ['abc', 'abc', 'def', None], TaskEvent.CREATED, {"id": "1"}
        )

        self.assertEqual(sent, 2)
        message = await layer.receive(channel)
        self.assertEqual(message, {"type": "task.event", "event": "taskCreated", "data": {"id": "1"}})


class ConsumerAuthTest(SimpleTestCase):
    async def test_missing_token_is_rejected(self):
        communicator = WebsocketCommunicator(application, "/ws/tasks/")
        connected, code = await communicator.connect()
        self.assertFalse(connected)
        self.assertEqual(code, UNAUTHORIZED_CLOSE_CODE)

    async def test_invalid_token_is_rejected(self):
        communicator = WebsocketCommunicator(application, "/ws/tasks/?token=garbage")
        connected, code = await communicator.connect()
        self.assertFalse(connected)
        self.assertEqual(code, UNAUTHORIZED_CLOSE_CODE)


class ConsumerDeliveryTest(TransactionTestCase):
    async def test_connected_user_receives_room_events(self):
        user = await sync_to_async(User.objects.create_user)(email="ws@example.com", password="pw")
        token = create_access_token(user.id)

        communicator = WebsocketCommunicator(application, f"/ws/tasks/?token={token}")
        connected, _ = await communicator.connect()
        self.assertTrue(connected)

        await sync_to_async(notify_users)([user.id], TaskEvent.ASSIGNED, {"task_id": "t1"})
        self.assertEqual(
            await communicator.receive_json_from(),
            {"event": "taskAssigned", "data": {"task_id": "t1"}},
        )

        await communicator.send_json_to({"type": "ping"})
        self.assertEqual(await communicator.receive_json_from(), {"event": "pong", "data": None})

        await communicator.disconnect()
