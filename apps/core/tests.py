from unittest.mock import patch

from django.core.cache import cache
from django.test import TestCase, Client, RequestFactory, override_settings

from apps.identity.jwt_auth import create_access_token
from apps.identity.models import User
from .throttling import ApiRateThrottle, throttle_message


class HealthTest(TestCase):
    def test_health(self):
        response = Client().get('/health')
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body['status'], 'OK')
        self.assertIn('timestamp', body)
        self.assertGreaterEqual(body['uptime'], 0)

    def test_api_index(self):
        body = Client().get('/api').json()
        self.assertEqual(body['message'], 'Task Manager API')
        self.assertEqual(body['endpoints']['tasks'], '/api/tasks')


class ErrorHandlerTest(TestCase):
    def setUp(self):
        user = User.objects.create_user(email="err@example.com", password="pw")
        self.headers = {'HTTP_AUTHORIZATION': f'Bearer {create_access_token(user.id)}'}

    @patch('apps.tasks.api.services.task_stats', side_effect=RuntimeError("database on fire"))
    def test_unexpected_error_is_hidden(self, _):
        with self.assertLogs('apps.core.errors', level='ERROR'):
            response = Client().get('/api/tasks/stats', **self.headers)
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json(), {"success": False, "error": "Internal server error"})

    def test_malformed_path_parameter_is_a_validation_error(self):
        response = Client().get('/api/tasks/not-a-uuid', **self.headers)
        self.assertEqual(response.status_code, 400)
        body = response.json()
        self.assertEqual(body['error'], 'Validation failed')
        self.assertEqual(body['details'][0]['field'], 'task_id')


class ThrottleTest(TestCase):
    def setUp(self):
        cache.clear()
        user = User.objects.create_user(email="busy@example.com", password="pw")
        self.headers = {'HTTP_AUTHORIZATION': f'Bearer {create_access_token(user.id)}'}

    def test_eleventh_ai_request_is_throttled(self):
        client = Client()
        for _ in range(10):
            self.assertEqual(client.get('/api/ai/usage', **self.headers).status_code, 200)

        response = client.get('/api/ai/usage', **self.headers)
        self.assertEqual(response.status_code, 429)
        self.assertEqual(
            response.json(),
            {"success": False, "error": "Too many AI requests, please try again later."},
        )

        # Other routes keep their own, larger budget
        self.assertEqual(client.get('/api/tasks/stats', **self.headers).status_code, 200)

    def test_ai_limit_is_per_client_address(self):
        client = Client()
        for _ in range(10):
            client.get('/api/ai/usage', **self.headers)

        response = client.get('/api/ai/usage', REMOTE_ADDR='10.0.0.2', **self.headers)
        self.assertEqual(response.status_code, 200)

    @override_settings(API_RATE_LIMIT='2/15m')
    def test_api_throttle_uses_configured_rate(self):
        throttle = ApiRateThrottle()
        request = RequestFactory().get('/api/tasks')

        self.assertTrue(throttle.allow_request(request))
        self.assertTrue(throttle.allow_request(request))
        self.assertFalse(throttle.allow_request(request))

    def test_throttle_messages(self):
        factory = RequestFactory()
        self.assertEqual(
            throttle_message(factory.get('/api/quotes/random')),
            "Too many requests from this IP, please try again later.",
        )
        self.assertEqual(
            throttle_message(factory.post('/api/ai/tip')),
            "Too many AI requests, please try again later.",
        )
