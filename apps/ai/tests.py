import json
from datetime import datetime, time
from unittest.mock import MagicMock, patch

import openai
from django.core.cache import cache
from django.test import TestCase, Client, override_settings
from django.utils import timezone

from apps.identity.jwt_auth import create_access_token
from apps.identity.models import User
from apps.tasks.models import Task
from .services import FALLBACK_TIPS, QuotaExceeded, TipService


def completion(text):
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = text
    return response


NO_KEYS = dict(OPENROUTER_API_KEY='', TOGETHER_API_KEY='', AI_DAILY_LIMIT=50)
BOTH_KEYS = dict(OPENROUTER_API_KEY='or-key', TOGETHER_API_KEY='tg-key', AI_DAILY_LIMIT=50)


class TipServiceTest(TestCase):
    def setUp(self):
        cache.clear()
        self.service = TipService()
        self.user_id = 'user-1'

    @override_settings(**NO_KEYS)
    @patch('apps.ai.services.OpenAI')
    def test_unconfigured_providers_fall_back_to_static_tip(self, client_cls):
        tip = self.service.generate_tip("Prepare the quarterly report", self.user_id, 'high', 'work')

        client_cls.assert_not_called()
        self.assertEqual(tip.source, "Fallback Tips")
        self.assertEqual(tip.tip, FALLBACK_TIPS['work']['high'])
        self.assertEqual(self.service.usage(self.user_id).daily_usage, 1)

    @override_settings(OPENROUTER_API_KEY='your-openrouter-api-key', TOGETHER_API_KEY='your-together-api-key')
    @patch('apps.ai.services.OpenAI')
    def test_placeholder_keys_count_as_unconfigured(self, client_cls):
        tip = self.service.generate_tip("Clean the garage this weekend", self.user_id, 'low', 'hobby')
        client_cls.assert_not_called()
        self.assertEqual(tip.tip, FALLBACK_TIPS['default']['low'])

    @override_settings(**BOTH_KEYS)
    @patch('apps.ai.services.OpenAI')
    def test_openrouter_answers_first(self, client_cls):
        client_cls.return_value.chat.completions.create.return_value = completion("  Timebox it.  ")

        tip = self.service.generate_tip("Prepare the quarterly report", self.user_id)

        self.assertEqual(tip.tip, "Timebox it.")
        self.assertEqual(tip.source, "OpenRouter AI")
        self.assertEqual(tip.model, "WizardLM-2")
        self.assertEqual(client_cls.call_args.kwargs['base_url'], "https://openrouter.ai/api/v1")
        kwargs = client_cls.return_value.chat.completions.create.call_args.kwargs
        self.assertEqual(kwargs['model'], "microsoft/wizardlm-2-8x22b")
        self.assertEqual(kwargs['max_tokens'], 200)
        self.assertEqual(kwargs['temperature'], 0.7)
        self.assertEqual(kwargs['messages'][0]['role'], 'system')

    @override_settings(**BOTH_KEYS)
    @patch('apps.ai.services.OpenAI')
    def test_together_used_when_openrouter_fails(self, client_cls):
        client_cls.return_value.chat.completions.create.side_effect = [
            openai.OpenAIError("provider down"),
            completion("Start with the hardest part."),
        ]

        tip = self.service.generate_tip("Prepare the quarterly report", self.user_id)

        self.assertEqual(tip.source, "Together AI")
        self.assertEqual(tip.model, "Llama-2-7B")
        self.assertEqual(client_cls.call_args.kwargs['base_url'], "https://api.together.xyz/v1")

    @override_settings(**BOTH_KEYS)
    @patch('apps.ai.services.OpenAI')
    def test_both_providers_failing_gives_fallback(self, client_cls):
        client_cls.return_value.chat.completions.create.side_effect = openai.OpenAIError("down")
        tip = self.service.generate_tip("Revise chapter four notes", self.user_id, 'urgent', 'study')
        self.assertEqual(tip.tip, FALLBACK_TIPS['study']['urgent'])

    @override_settings(**BOTH_KEYS)
    @patch('apps.ai.services.OpenAI')
    def test_cache_hit_is_free(self, client_cls):
        create = client_cls.return_value.chat.completions.create
        create.return_value = completion("Timebox it.")

        first = self.service.generate_tip("Prepare the quarterly report!", self.user_id)
        second = self.service.generate_tip("prepare the QUARTERLY report", self.user_id)

        self.assertEqual(first, second)
        self.assertEqual(create.call_count, 1)
        self.assertEqual(self.service.usage(self.user_id).daily_usage, 1)

        # Different priority is a different cache entry
        self.service.generate_tip("Prepare the quarterly report", self.user_id, priority='high')
        self.assertEqual(create.call_count, 2)

    @override_settings(OPENROUTER_API_KEY='', TOGETHER_API_KEY='', AI_DAILY_LIMIT=1)
    def test_daily_limit(self):
        self.service.generate_tip("Prepare the quarterly report", self.user_id)
        tip = self.service.generate_tip("Write the release announcement", self.user_id)

        self.assertTrue(tip.is_rate_limited)
        self.assertEqual(tip.source, "Rate Limited")
        usage = self.service.usage(self.user_id)
        self.assertEqual((usage.daily_usage, usage.daily_limit, usage.remaining), (1, 1, 0))

        # Other users keep their own counter
        self.assertTrue(self.service.check_rate_limit('user-2'))

    @override_settings(OPENROUTER_API_KEY='', TOGETHER_API_KEY='', AI_DAILY_LIMIT=4)
    def test_comprehensive_needs_three_requests(self):
        tips = self.service.comprehensive_tips("Prepare the quarterly report", self.user_id)
        self.assertEqual(set(tips), {'planning', 'time_management', 'focus'})
        self.assertEqual(self.service.usage(self.user_id).remaining, 1)

        with self.assertRaises(QuotaExceeded) as ctx:
            self.service.comprehensive_tips("Another long description", self.user_id)
        self.assertEqual(ctx.exception.usage.remaining, 1)

    @override_settings(**NO_KEYS)
    def test_unexpected_error_returns_fallback(self):
        with patch.object(self.service, 'check_rate_limit', side_effect=RuntimeError("boom")):
            tip = self.service.generate_tip("Prepare the quarterly report", self.user_id, 'medium', 'personal')
        self.assertEqual(tip.tip, FALLBACK_TIPS['personal']['medium'])


@override_settings(**NO_KEYS)
class AIAPITest(TestCase):
    def setUp(self):
        cache.clear()
        self.client = Client()
        self.user = User.objects.create_user(email="ai@example.com", password="pw")
        self.other = User.objects.create_user(email="other@example.com", password="pw")
        self.headers = {'HTTP_AUTHORIZATION': f'Bearer {create_access_token(self.user.id)}'}

    def post(self, path, payload=None):
        return self.client.post(
            path, data=json.dumps(payload or {}), content_type='application/json', **self.headers
        )

    def test_requires_token(self):
        response = self.client.post(
            '/api/ai/tip', data=json.dumps({'task_description': 'Prepare the quarterly report'}),
            content_type='application/json',
        )
        self.assertEqual(response.status_code, 401)
        self.assertEqual(self.client.get('/api/ai/usage').status_code, 401)

    def test_tip_validation(self):
        response = self.post('/api/ai/tip', {'task_description': '   short   '})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['details'][0]['field'], 'task_description')

        response = self.post('/api/ai/tip', {
            'task_description': 'Prepare the quarterly report', 'category': 'cooking',
        })
        self.assertEqual(response.status_code, 400)

    def test_tip(self):
        response = self.post('/api/ai/tip', {
            'task_description': 'Prepare the quarterly report', 'priority': 'high', 'category': 'work',
        })
        self.assertEqual(response.status_code, 200)
        data = response.json()['data']
        self.assertEqual(data['tip']['tip'], FALLBACK_TIPS['work']['high'])
        self.assertFalse(data['tip']['is_rate_limited'])
        self.assertEqual(data['usage'], {'daily_usage': 1, 'daily_limit': 50, 'remaining': 49})

    def test_comprehensive(self):
        response = self.post('/api/ai/tip/comprehensive', {'task_description': 'Prepare the quarterly report'})
        self.assertEqual(response.status_code, 200)
        data = response.json()['data']
        self.assertEqual(set(data['tips']), {'planning', 'time_management', 'focus'})
        self.assertEqual(data['usage']['daily_usage'], 3)

    @override_settings(AI_DAILY_LIMIT=2)
    def test_comprehensive_without_quota(self):
        response = self.post('/api/ai/tip/comprehensive', {'task_description': 'Prepare the quarterly report'})
        self.assertEqual(response.status_code, 429)
        body = response.json()
        self.assertFalse(body['success'])
        self.assertEqual(body['error'], "Insufficient AI quota for comprehensive tips")
        self.assertEqual(body['usage']['remaining'], 2)

    def test_task_tip(self):
        task = Task.objects.create(
            title="Write thesis", description="Chapter two", owner=self.user, priority='urgent', category='study'
        )
        response = self.post(f'/api/ai/tasks/{task.id}/tip')
        self.assertEqual(response.status_code, 200)
        data = response.json()['data']
        self.assertEqual(data['task'], {
            'id': str(task.id), 'title': 'Write thesis', 'priority': 'urgent', 'category': 'study',
        })
        self.assertEqual(data['tip']['tip'], FALLBACK_TIPS['study']['urgent'])

    def test_task_tip_access(self):
        task = Task.objects.create(title="Private", owner=self.other)
        self.assertEqual(self.post(f'/api/ai/tasks/{task.id}/tip').status_code, 403)
        self.assertEqual(
            self.post('/api/ai/tasks/00000000-0000-0000-0000-000000000000/tip').status_code, 404
        )

    def test_daily_insights_without_tasks(self):
        response = self.client.get('/api/ai/insights/daily', **self.headers)
        self.assertEqual(response.status_code, 200)
        data = response.json()['data']
        self.assertEqual(data['tasks_count'], 0)
        self.assertEqual(data['insight']['type'], 'no-urgent-tasks')
        self.assertEqual(data['usage']['daily_usage'], 0)

    def test_daily_insights_with_tasks(self):
        noon = timezone.make_aware(datetime.combine(timezone.localdate(), time(12, 0)))
        Task.objects.create(title="Report", owner=self.user, priority='urgent', due_date=noon)
        Task.objects.create(title="Email", owner=self.user, priority='low', due_date=noon)
        Task.objects.create(title="Done", owner=self.user, status='completed', due_date=noon)

        data = self.client.get('/api/ai/insights/daily', **self.headers).json()['data']
        self.assertEqual(data['tasks_count'], 2)
        self.assertEqual(data['task_breakdown'], {'urgent': 1, 'high': 0, 'medium': 0, 'low': 1})
        self.assertEqual(data['insight']['tip'], FALLBACK_TIPS['default']['high'])
        self.assertEqual(data['usage']['daily_usage'], 1)

    def test_usage(self):
        response = self.client.get('/api/ai/usage', **self.headers)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['data']['usage'], {'daily_usage': 0, 'daily_limit': 50, 'remaining': 50})
