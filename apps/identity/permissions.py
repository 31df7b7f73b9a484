from typing import List, Dict
from .models import UserRole, User

# Define all available permissions here for reference
class Permissions:
    # Tasks
    TASKS_VIEW_ALL = "tasks.view_all"
    TASKS_EDIT_ANY = "tasks.edit_any"
    TASKS_DELETE_ANY = "tasks.delete_any"
    TASKS_ASSIGN = "tasks.assign"

    # Identity
    IDENTITY_MANAGE_USERS = "identity.manage_users"


# Static Role -> Permission Mapping
ROLE_PERMISSIONS: Dict[str, List[str]] = {
    UserRole.ADMIN: [
        Permissions.TASKS_VIEW_ALL,
        Permissions.TASKS_EDIT_ANY,
        Permissions.TASKS_DELETE_ANY,
        Permissions.TASKS_ASSIGN,
        Permissions.IDENTITY_MANAGE_USERS,
    ],
    UserRole.MANAGER: [
        # Can edit and assign anyone's tasks, but not see or delete them all
        Permissions.TASKS_EDIT_ANY,
        Permissions.TASKS_ASSIGN,
    ],
    UserRole.USER: [],
}


def get_user_permissions(user: User) -> List[str]:
    """
    Returns a list of permission strings for the given user based on their role.
    """
    if not user or not user.is_active:
        return []

    return list(ROLE_PERMISSIONS.get(user.role, []))


def user_has_permission(user: User, permission: str) -> bool:
    return permission in get_user_permissions(user)
