"""
Identity API endpoints with JWT authentication.

Provides registration, login, profile management and admin user
management. Tokens are returned in the response body and sent back by
clients as ``Authorization: Bearer <token>``.
"""
from typing import List, Optional
from uuid import UUID
from ninja import Router
from django.http import HttpRequest
from ninja.errors import HttpError

from .dtos import (
    AuthResponse,
    LoginIn,
    MessageResponse,
    PasswordChangeIn,
    ProfileUpdate,
    RegisterIn,
    RoleUpdateIn,
    UserOut,
)
from .decorators import has_permission
from .jwt_auth import create_access_token
from .permissions import Permissions
from .security import require_auth
from . import services

router = Router(tags=["Auth"])


# =============================================================================
# Auth Endpoints
# =============================================================================

@router.post("/register", response={201: AuthResponse}, auth=None)
def register(request: HttpRequest, payload: RegisterIn):
    """
    Create a regular user account and return an access token.
    """
    if services.email_taken(payload.email):
        raise HttpError(400, "User already exists with this email")

    user = services.register_user(payload)
    return 201, {
        "success": True,
        "message": "User registered successfully",
        "token": create_access_token(user.id),
        "user": user,
    }


@router.post("/login", response=AuthResponse, auth=None)
def login(request: HttpRequest, payload: LoginIn):
    """
    Authenticate with email and password and return an access token.
    """
    user = services.authenticate_user(request, payload.email, payload.password)
    if user is None:
        raise HttpError(401, "Invalid credentials")

    return {
        "success": True,
        "message": "Login successful",
        "token": create_access_token(user.id),
        "user": user,
    }


@router.post("/logout", response=MessageResponse, auth=None)
def logout(request: HttpRequest):
    """
    Tokens are stateless; the client discards its copy.
    """
    require_auth(request)
    return MessageResponse(success=True, message="Logged out successfully")


# =============================================================================
# Profile Endpoints
# =============================================================================

@router.get("/profile", response=UserOut, auth=None)
def get_profile(request: HttpRequest):
    return require_auth(request)


@router.put("/profile", response=UserOut, auth=None)
def update_profile(request: HttpRequest, payload: ProfileUpdate):
    user = require_auth(request)
    return services.update_profile(user, payload.dict(exclude_unset=True))


@router.put("/change-password", response=MessageResponse, auth=None)
def change_password(request: HttpRequest, payload: PasswordChangeIn):
    user = require_auth(request)
    if not services.change_password(user, payload.current_password, payload.new_password):
        raise HttpError(400, "Current password is incorrect")
    return MessageResponse(success=True, message="Password changed successfully")


# =============================================================================
# User Management Endpoints (admin)
# =============================================================================

@router.get("/users", response=List[UserOut], auth=None)
@has_permission(Permissions.IDENTITY_MANAGE_USERS)
def list_users(request: HttpRequest, role: Optional[str] = None, search: Optional[str] = None):
    """
    List all users, optionally filtered by role or a name/email search.
    """
    return services.list_users(role=role, search=search)


@router.put("/users/{user_id}/role", response=UserOut, auth=None)
@has_permission(Permissions.IDENTITY_MANAGE_USERS)
def update_user_role(request: HttpRequest, user_id: UUID, payload: RoleUpdateIn):
    if user_id == request.user.id:
        raise HttpError(400, "You cannot change your own role")

    user = services.set_user_role(user_id, payload.role)
    if not user:
        raise HttpError(404, "User not found")
    return user


@router.put("/users/{user_id}/deactivate", response=MessageResponse, auth=None)
@has_permission(Permissions.IDENTITY_MANAGE_USERS)
def deactivate_user(request: HttpRequest, user_id: UUID):
    """
    Soft delete a user account.
    """
    if user_id == request.user.id:
        raise HttpError(400, "You cannot deactivate your own account")

    if not services.deactivate_user(user_id):
        raise HttpError(404, "User not found")
    return MessageResponse(success=True, message="User deactivated successfully")
