"""
Request authentication helpers.

Endpoints declare ``auth=None`` and call ``require_auth`` themselves,
so that every 401 carries a specific reason.
"""
from typing import Optional

from django.http import HttpRequest
from ninja.errors import HttpError

from .jwt_auth import get_bearer_token, get_user_id_from_token
from .models import User
from .permissions import user_has_permission


def get_user_for_token(token: Optional[str]) -> Optional[User]:
    """Resolve a raw JWT to an active user, or None."""
    if not token:
        return None
    user_id = get_user_id_from_token(token)
    if not user_id:
        return None
    try:
        return User.objects.get(id=user_id, is_active=True)
    except User.DoesNotExist:
        return None


def get_current_user(request: HttpRequest) -> Optional[User]:
    """
    Extract and validate user from the bearer token header.

    Returns User object if valid token, None otherwise.
    """
    token = get_bearer_token(request.headers.get('Authorization'))
    return get_user_for_token(token)


def require_auth(request: HttpRequest) -> User:
    """
    Require authentication. Raises 401 if not authenticated.
    """
    token = get_bearer_token(request.headers.get('Authorization'))
    if not token:
        raise HttpError(401, "Access denied. No token provided.")

    user_id = get_user_id_from_token(token)
    if not user_id:
        raise HttpError(401, "Access denied. Invalid token.")

    try:
        user = User.objects.get(id=user_id)
    except User.DoesNotExist:
        user = None
    if user is None or not user.is_active:
        raise HttpError(401, "Access denied. User not found or inactive.")

    request.user = user
    return user


def require_permission(request: HttpRequest, permission: str) -> User:
    """Authenticate the request and check a single permission (403 if missing)."""
    user = require_auth(request)
    if not user_has_permission(user, permission):
        raise HttpError(403, "Access denied. Insufficient permissions.")
    return user
