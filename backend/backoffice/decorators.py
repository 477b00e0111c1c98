# Overview: Request and permission decorators for API routes.

from functools import wraps
from flask import request, g, current_app

from .permissions import role_has_permission
from .responses import error_response
from .services.catalog_service import get_active_user


USER_HEADER = "X-User-Id"


def _is_authenticated() -> bool:
    return hasattr(g, "current_user")


def require_auth(f):
    """
    Require an authenticated caller.

    Authentication happens upstream; the gateway forwards the caller's id in
    the X-User-Id header. Sets g.current_user to the User row.

    Returns 401 if:
    - No X-User-Id header, or it is not an integer
    - User not found, soft-deleted or deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw_user_id = request.headers.get(USER_HEADER, "").strip()
        if not raw_user_id.isdigit():
            return error_response("Authentication required", 401, code="unauthenticated")

        user = get_active_user(int(raw_user_id))
        if user is None:
            return error_response("Invalid or inactive user", 401, code="unauthenticated")

        g.current_user = user
        return f(*args, **kwargs)

    return decorated_function


def require_permission(permission_code: str):
    """Require the caller's role to grant `permission_code`. Use below @require_auth."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            # Ensure @require_auth was called first
            if not _is_authenticated():
                return error_response("Authentication required", 401, code="unauthenticated")

            user = g.current_user
            if not role_has_permission(user.role, permission_code):
                current_app.logger.warning(
                    "Permission denied user=%s role=%s permission=%s path=%s",
                    user.id,
                    user.role,
                    permission_code,
                    request.path,
                )
                return error_response(
                    f"Permission denied: requires {permission_code}", 403, code="forbidden"
                )

            return f(*args, **kwargs)

        return decorated_function
    return decorator
