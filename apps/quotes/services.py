"""
Quote service.

Fetches quotes from ZenQuotes.io and Quotable.io. Results are cached in
the Django cache; when both APIs are unreachable a static list keeps the
endpoints answering.
"""
import logging
import random
from dataclasses import dataclass, field
from typing import List, Optional

import requests
from django.conf import settings
from django.core.cache import cache
from django.utils import timezone

logger = logging.getLogger(__name__)

ZENQUOTES_URL = "https://zenquotes.io/api"
QUOTABLE_URL = "https://api.quotable.io"

CATEGORY_CACHE_SECONDS = 30 * 60
DAILY_CACHE_SECONDS = 24 * 60 * 60

ALLOWED_CATEGORIES = [
    'motivational', 'inspirational', 'success', 'wisdom',
    'leadership', 'perseverance', 'work', 'productivity',
]


@dataclass(frozen=True)
class Quote:
    text: str
    author: str
    source: str
    tags: List[str] = field(default_factory=list)


FALLBACK_QUOTES = [
    Quote("The way to get started is to quit talking and begin doing.", "Walt Disney", "Fallback"),
    Quote("Don't be afraid to give up the good to go for the great.", "John D. Rockefeller", "Fallback"),
    Quote("Innovation distinguishes between a leader and a follower.", "Steve Jobs", "Fallback"),
    Quote("The future belongs to those who believe in the beauty of their dreams.", "Eleanor Roosevelt", "Fallback"),
    Quote(
        "Success is not final, failure is not fatal: it is the courage to continue that counts.",
        "Winston Churchill",
        "Fallback",
    ),
]


class QuoteService:
    """Client for the public quote APIs with caching and static fallback."""

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout or getattr(settings, 'QUOTE_REQUEST_TIMEOUT', 5)

    def _get(self, url: str, params: Optional[dict] = None):
        response = requests.get(url, params=params, timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    def random_from_zen(self) -> Optional[Quote]:
        try:
            data = self._get(f"{ZENQUOTES_URL}/random")
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"ZenQuotes API error: {e}")
            return None

        if not isinstance(data, list) or not data or not data[0].get('q'):
            return None
        return Quote(text=data[0]['q'], author=data[0].get('a', 'Unknown'), source="ZenQuotes.io")

    def random_from_quotable(self) -> Optional[Quote]:
        try:
            data = self._get(f"{QUOTABLE_URL}/random", params={
                'minLength': 50,
                'maxLength': 200,
                'tags': 'motivational|inspirational|success|wisdom',
            })
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"Quotable API error: {e}")
            return None

        if not isinstance(data, dict) or not data.get('content'):
            return None
        return Quote(
            text=data['content'],
            author=data.get('author', 'Unknown'),
            source="Quotable.io",
            tags=data.get('tags', []),
        )

    def by_category(self, category: str = 'motivational') -> List[Quote]:
        """Up to ten quotes tagged ``category``, cached for 30 minutes."""
        cache_key = f"quotes:category:{category}"
        cached = cache.get(cache_key)
        if cached is not None:
            return cached

        try:
            data = self._get(f"{QUOTABLE_URL}/quotes", params={
                'tags': category,
                'limit': 10,
                'minLength': 30,
                'maxLength': 300,
            })
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"Quotable category API error: {e}")
            return []

        if not isinstance(data, dict) or not isinstance(data.get('results'), list):
            logger.warning("Quotable category API returned an unexpected payload")
            return []

        quotes = [
            Quote(
                text=item['content'],
                author=item.get('author', 'Unknown'),
                source="Quotable.io",
                tags=item.get('tags', []),
            )
            for item in data['results']
            if isinstance(item, dict) and item.get('content')
        ]
        cache.set(cache_key, quotes, CATEGORY_CACHE_SECONDS)
        return quotes

    def daily(self) -> Quote:
        """
        One quote per calendar day.

        Tries Quotable, then ZenQuotes. A day with no API answer is not
        cached and gets a static quote instead.
        """
        cache_key = f"quotes:daily:{timezone.localdate().isoformat()}"
        cached = cache.get(cache_key)
        if cached is not None:
            return cached

        quote = self.random_from_quotable() or self.random_from_zen()
        if quote is None:
            return random.choice(FALLBACK_QUOTES)

        cache.set(cache_key, quote, DAILY_CACHE_SECONDS)
        return quote

    def motivational(self) -> Quote:
        return (
            self.random_from_quotable()
            or self.random_from_zen()
            or random.choice(FALLBACK_QUOTES)
        )


quote_service = QuoteService()
