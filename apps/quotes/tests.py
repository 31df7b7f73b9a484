from unittest.mock import MagicMock, patch

import requests
from django.core.cache import cache
from django.test import TestCase, Client

from .services import FALLBACK_QUOTES, QuoteService


def fake_response(payload):
    response = MagicMock()
    response.json.return_value = payload
    response.raise_for_status.return_value = None
    return response


QUOTABLE_QUOTE = {
    "content": "Well done is better than well said, every single time.",
    "author": "Benjamin Franklin",
    "tags": ["wisdom"],
}
ZEN_QUOTE = [{"q": "It always seems impossible until it is done.", "a": "Nelson Mandela"}]


def route(quotable=True, zen=True, category=True):
    """Build a requests.get side effect answering per provider."""
    def get(url, params=None, timeout=None):
        if url.endswith('/random') and 'quotable' in url:
            if quotable:
                return fake_response(QUOTABLE_QUOTE)
        elif 'zenquotes' in url:
            if zen:
                return fake_response(ZEN_QUOTE)
        elif url.endswith('/quotes'):
            if category:
                return fake_response({"results": [QUOTABLE_QUOTE, QUOTABLE_QUOTE]})
        raise requests.ConnectionError("unreachable")
    return get


class QuoteServiceTest(TestCase):
    def setUp(self):
        cache.clear()
        self.service = QuoteService()

    @patch('apps.quotes.services.requests.get')
    def test_motivational_prefers_quotable(self, get):
        get.side_effect = route()
        quote = self.service.motivational()
        self.assertEqual(quote.source, "Quotable.io")
        self.assertEqual(quote.author, "Benjamin Franklin")
        self.assertEqual(quote.tags, ["wisdom"])

    @patch('apps.quotes.services.requests.get')
    def test_motivational_falls_back_to_zen_then_static(self, get):
        get.side_effect = route(quotable=False)
        self.assertEqual(self.service.motivational().source, "ZenQuotes.io")

        get.side_effect = route(quotable=False, zen=False)
        quote = self.service.motivational()
        self.assertEqual(quote.source, "Fallback")
        self.assertIn(quote, FALLBACK_QUOTES)

    @patch('apps.quotes.services.requests.get')
    def test_malformed_payload_is_ignored(self, get):
        get.return_value = fake_response({"statusCode": 500})
        self.assertIsNone(self.service.random_from_zen())

    @patch('apps.quotes.services.requests.get')
    def test_daily_is_cached_per_day(self, get):
        get.side_effect = route()
        first = self.service.daily()
        second = self.service.daily()
        self.assertEqual(first, second)
        self.assertEqual(get.call_count, 1)

    @patch('apps.quotes.services.requests.get')
    def test_daily_failure_is_not_cached(self, get):
        get.side_effect = route(quotable=False, zen=False)
        self.assertEqual(self.service.daily().source, "Fallback")

        get.side_effect = route()
        self.assertEqual(self.service.daily().source, "Quotable.io")

    @patch('apps.quotes.services.requests.get')
    def test_by_category_is_cached(self, get):
        get.side_effect = route()
        self.assertEqual(len(self.service.by_category('wisdom')), 2)
        self.service.by_category('wisdom')
        self.assertEqual(get.call_count, 1)
        self.assertEqual(get.call_args.kwargs['params']['tags'], 'wisdom')

    @patch('apps.quotes.services.requests.get')
    def test_by_category_failure_returns_empty(self, get):
        get.side_effect = route(category=False)
        self.assertEqual(self.service.by_category('wisdom'), [])

    @patch('apps.quotes.services.requests.get')
    def test_by_category_ignores_unexpected_payload(self, get):
        get.return_value = fake_response([QUOTABLE_QUOTE])
        self.assertEqual(self.service.by_category('wisdom'), [])

        # Nothing was cached, so a healthy answer is picked up next time
        get.return_value = fake_response({"results": [QUOTABLE_QUOTE]})
        self.assertEqual(len(self.service.by_category('wisdom')), 1)


class QuoteAPITest(TestCase):
    def setUp(self):
        cache.clear()
        self.client = Client()

    @patch('apps.quotes.services.requests.get')
    def test_random_quote_is_public(self, get):
        get.side_effect = route()
        response = self.client.get('/api/quotes/random')
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertTrue(body['success'])
        quote = body['data']['quote']
        self.assertEqual(set(quote), {'text', 'author', 'source', 'tags'})
        self.assertEqual(quote['source'], "Quotable.io")

    @patch('apps.quotes.services.requests.get')
    def test_daily_quote_answers_when_apis_are_down(self, get):
        get.side_effect = route(quotable=False, zen=False)
        response = self.client.get('/api/quotes/daily')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['data']['quote']['source'], "Fallback")

    @patch('apps.quotes.services.requests.get')
    def test_category(self, get):
        get.side_effect = route()
        response = self.client.get('/api/quotes/category/success')
        self.assertEqual(response.status_code, 200)
        data = response.json()['data']
        self.assertEqual(data['category'], 'success')
        self.assertEqual(data['count'], 2)

    def test_invalid_category(self):
        response = self.client.get('/api/quotes/category/cooking')
        self.assertEqual(response.status_code, 400)
        body = response.json()
        self.assertFalse(body['success'])
        self.assertIn('productivity', body['allowed_categories'])

    @patch('apps.quotes.services.requests.get')
    def test_category_unavailable(self, get):
        get.side_effect = route(category=False)
        response = self.client.get('/api/quotes/category/work')
        self.assertEqual(response.status_code, 503)
        self.assertEqual(response.json()['error'], "Quote service temporarily unavailable")

    @patch('apps.quotes.services.requests.get')
    def test_multiple_is_capped(self, get):
        get.side_effect = route()
        data = self.client.get('/api/quotes/multiple', {'count': 25}).json()['data']
        self.assertEqual(data['requested'], 10)
        self.assertEqual(data['count'], 10)

        data = self.client.get('/api/quotes/multiple').json()['data']
        self.assertEqual(data['requested'], 5)
