"""Health and index endpoints served outside the Ninja API."""
import time

from django.http import HttpRequest, JsonResponse
from django.utils import timezone

_STARTED_AT = time.monotonic()


def health(request: HttpRequest) -> JsonResponse:
    return JsonResponse({
        'status': 'OK',
        'timestamp': timezone.now().isoformat(),
        'uptime': round(time.monotonic() - _STARTED_AT, 3),
    })


def api_index(request: HttpRequest) -> JsonResponse:
    return JsonResponse({
        'message': 'Task Manager API',
        'version': '1.0.0',
        'endpoints': {
            'auth': '/api/auth',
            'tasks': '/api/tasks',
            'quotes': '/api/quotes',
            'ai': '/api/ai',
            'health': '/health',
            'realtime': '/ws/tasks/',
        },
    })
