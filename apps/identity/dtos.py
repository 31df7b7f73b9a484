"""Schemas for Identity app."""
import re
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.validators import validate_email
from ninja import Field, Schema
from pydantic import field_validator

from .models import UserRole
from .permissions import get_user_permissions


def _clean_email(value: str) -> str:
    value = (value or '').strip().lower()
    try:
        validate_email(value)
    except DjangoValidationError:
        raise ValueError("Please provide a valid email")
    return value


def _check_password_strength(value: str) -> str:
    if not re.search(r'[A-Za-z]', value) or not re.search(r'\d', value):
        raise ValueError("Password must contain at least one letter and one number")
    return value


def _strip(value):
    return value.strip() if isinstance(value, str) else value


class UserOut(Schema):
    id: UUID
    email: str
    first_name: str
    last_name: str
    role: str
    bio: str
    avatar: str
    is_active: bool
    date_joined: datetime
    last_login: Optional[datetime] = None
    permissions: List[str]

    @staticmethod
    def resolve_permissions(obj) -> List[str]:
        return get_user_permissions(obj)


class RegisterIn(Schema):
    email: str
    password: str = Field(..., min_length=6, max_length=128)
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)

    @field_validator('first_name', 'last_name', mode='before')
    @classmethod
    def strip_names(cls, value):
        return _strip(value)

    @field_validator('email')
    @classmethod
    def check_email(cls, value: str) -> str:
        return _clean_email(value)

    @field_validator('password')
    @classmethod
    def check_password(cls, value: str) -> str:
        return _check_password_strength(value)


class LoginIn(Schema):
    email: str
    password: str = Field(..., min_length=1)

    @field_validator('email')
    @classmethod
    def check_email(cls, value: str) -> str:
        return _clean_email(value)


class AuthResponse(Schema):
    success: bool
    message: Optional[str] = None
    token: Optional[str] = None
    user: Optional[UserOut] = None


class MessageResponse(Schema):
    success: bool
    message: str


class ProfileUpdate(Schema):
    first_name: Optional[str] = Field(None, min_length=1, max_length=50)
    last_name: Optional[str] = Field(None, min_length=1, max_length=50)
    bio: Optional[str] = Field(None, max_length=500)
    avatar: Optional[str] = Field(None, max_length=200)

    @field_validator('first_name', 'last_name', 'bio', 'avatar', mode='before')
    @classmethod
    def strip_fields(cls, value):
        return _strip(value)


class PasswordChangeIn(Schema):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6, max_length=128)

    @field_validator('new_password')
    @classmethod
    def check_password(cls, value: str) -> str:
        return _check_password_strength(value)


class RoleUpdateIn(Schema):
    role: UserRole
