from functools import wraps
from typing import Callable
from django.http import HttpRequest
from .security import require_permission

def has_permission(required_perm: str):
    """
    Decorator to enforce a specific permission on a Django Ninja endpoint.

    The authenticated user is available as ``request.user`` inside the view.

    Usage:
        @router.get("/some-path", auth=None)
        @has_permission(Permissions.SOME_PERM)
        def my_view(request):
            ...
    """
    def decorator(view_func: Callable):
        @wraps(view_func)
        def wrapper(request: HttpRequest, *args, **kwargs):
            require_permission(request, required_perm)
            return view_func(request, *args, **kwargs)
        return wrapper
    return decorator
