"""Services for Identity app."""
import logging
from typing import List, Optional
from uuid import UUID

from django.contrib.auth import authenticate, user_logged_in
from django.db.models import Q

from .models import User, UserRole
from .dtos import RegisterIn

logger = logging.getLogger(__name__)


def get_user(user_id: UUID) -> Optional[User]:
    try:
        return User.objects.get(id=user_id)
    except User.DoesNotExist:
        return None


def email_taken(email: str) -> bool:
    return User.objects.filter(email__iexact=email).exists()


def register_user(payload: RegisterIn) -> User:
    """Create a regular user account. Callers check ``email_taken`` first."""
    user = User.objects.create_user(
        email=payload.email,
        password=payload.password,
        first_name=payload.first_name,
        last_name=payload.last_name,
        role=UserRole.USER,
        is_active=True,
    )
    logger.info(f"Registered user {user.id}")
    return user


def authenticate_user(request, email: str, password: str) -> Optional[User]:
    """
    Check credentials and record the login.

    Returns None for unknown emails, wrong passwords and inactive accounts.
    """
    user = authenticate(request, username=email, password=password)
    if user is None:
        return None
    # Updates last_login through Django's own receiver.
    user_logged_in.send(sender=user.__class__, request=request, user=user)
    return user


def update_profile(user: User, data: dict) -> User:
    for key, value in data.items():
        if value is not None:
            setattr(user, key, value)
    user.save()
    return user


def change_password(user: User, current_password: str, new_password: str) -> bool:
    if not user.check_password(current_password):
        return False
    user.set_password(new_password)
    user.save(update_fields=['password'])
    logger.info(f"Password changed for user {user.id}")
    return True


def list_users(role: Optional[str] = None, search: Optional[str] = None) -> List[User]:
    queryset = User.objects.all()
    if role:
        queryset = queryset.filter(role=role)
    if search:
        queryset = queryset.filter(
            Q(email__icontains=search) |
            Q(first_name__icontains=search) |
            Q(last_name__icontains=search)
        )
    return list(queryset)


def set_user_role(user_id: UUID, role: str) -> Optional[User]:
    user = get_user(user_id)
    if user is None:
        return None
    user.role = role
    user.save(update_fields=['role'])
    logger.info(f"User {user_id} role set to {role}")
    return user


def deactivate_user(user_id: UUID) -> bool:
    user = get_user(user_id)
    if user is None:
        return False
    user.is_active = False  # Soft delete: disables login and token use
    user.save(update_fields=['is_active'])
    logger.info(f"User {user_id} deactivated")
    return True
