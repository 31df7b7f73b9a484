"""
Per-client request throttles.

Both limits key on the client address, like the anonymous throttle, but
apply to every request since endpoints authenticate inside the view.
"""
from django.conf import settings
from django.http import HttpRequest
from ninja.throttling import SimpleRateThrottle

API_THROTTLE_MESSAGE = "Too many requests from this IP, please try again later."
AI_THROTTLE_MESSAGE = "Too many AI requests, please try again later."


class ClientRateThrottle(SimpleRateThrottle):
    def get_cache_key(self, request: HttpRequest) -> str:
        return self.cache_format % {
            'scope': self.scope,
            'ident': self.get_ident(request),
        }


class ApiRateThrottle(ClientRateThrottle):
    scope = 'api'

    def __init__(self):
        super().__init__(rate=settings.API_RATE_LIMIT)


class AIRateThrottle(ClientRateThrottle):
    scope = 'ai'

    def __init__(self):
        super().__init__(rate=settings.AI_RATE_LIMIT)


def throttle_message(request: HttpRequest) -> str:
    """Message for a throttled request; AI routes carry their own."""
    if request.path.startswith('/api/ai/'):
        return AI_THROTTLE_MESSAGE
    return API_THROTTLE_MESSAGE
