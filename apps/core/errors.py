"""
Uniform JSON error bodies for the Ninja API.

Every failure leaves the API as ``{"success": false, "error": ...}``:
- request validation  -> 400, with per-field ``details``
- throttled request   -> 429
- HttpError           -> its own status
- anything else       -> 500, logged with traceback
"""
import logging

from django.http import HttpRequest
from ninja import NinjaAPI
from ninja.errors import HttpError, Throttled, ValidationError

from .throttling import throttle_message

logger = logging.getLogger(__name__)


def _format_validation_errors(errors) -> list:
    details = []
    for error in errors:
        loc = [str(part) for part in error.get('loc', ()) if part not in ('body', 'payload', 'query', 'path')]
        details.append({
            'field': '.'.join(loc),
            'message': error.get('msg', 'Invalid value'),
        })
    return details


def register_exception_handlers(api: NinjaAPI) -> None:
    """Attach the project-wide exception handlers to ``api``."""

    @api.exception_handler(ValidationError)
    def validation_error(request: HttpRequest, exc: ValidationError):
        return api.create_response(
            request,
            {
                'success': False,
                'error': 'Validation failed',
                'details': _format_validation_errors(exc.errors),
            },
            status=400,
        )

    @api.exception_handler(Throttled)
    def throttled(request: HttpRequest, exc: Throttled):
        return api.create_response(
            request,
            {'success': False, 'error': throttle_message(request)},
            status=429,
        )

    @api.exception_handler(HttpError)
    def http_error(request: HttpRequest, exc: HttpError):
        return api.create_response(
            request,
            {'success': False, 'error': str(exc)},
            status=exc.status_code,
        )

    @api.exception_handler(Exception)
    def unexpected_error(request: HttpRequest, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.path}: {exc}")
        return api.create_response(
            request,
            {'success': False, 'error': 'Internal server error'},
            status=500,
        )
