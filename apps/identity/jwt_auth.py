"""
Bearer token helpers.

Tokens are HS256 JWTs carrying the user id in ``sub``. The same tokens
authenticate REST calls (``Authorization`` header) and websocket
connections (``?token=`` query parameter).
"""
import jwt
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID
from django.conf import settings

JWT_ALGORITHM = 'HS256'
TOKEN_TYPE = 'access'


def create_access_token(user_id: UUID) -> str:
    """Sign a token for ``user_id`` valid for JWT_EXPIRE_DAYS."""
    issued_at = datetime.now(timezone.utc)
    payload = {
        'sub': str(user_id),
        'iat': issued_at,
        'exp': issued_at + timedelta(days=settings.JWT_EXPIRE_DAYS),
        'type': TOKEN_TYPE,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_token(token: str) -> Optional[dict]:
    """Verified payload, or None for a bad signature, malformed or expired token."""
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except jwt.InvalidTokenError:
        return None


def get_user_id_from_token(token: str) -> Optional[UUID]:
    payload = decode_token(token)
    if not payload or payload.get('type') != TOKEN_TYPE:
        return None
    try:
        return UUID(str(payload.get('sub', '')))
    except ValueError:
        return None


def get_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Return the token part of an ``Authorization: Bearer <token>`` header."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(' ')
    token = token.strip()
    if scheme.lower() != 'bearer' or not token:
        return None
    return token
