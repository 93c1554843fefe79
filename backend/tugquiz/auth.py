from functools import wraps

from flask_login import current_user

from tugquiz.errors import AuthorizationError


def roles_required(*roles):
    """Reject the request unless the logged-in user has one of ``roles``.

    Stack it under ``@login_required`` so anonymous users get a 401 first.
    """
    def decorator(view):
        @wraps(view)
        def wrapped(*args, **kwargs):
            if getattr(current_user, 'role', None) not in roles:
                raise AuthorizationError(
                    f"Requires role: {', '.join(roles)}",
                    reason='NotATeacher' if 'teacher' in roles else 'NotAuthorized',
                )
            return view(*args, **kwargs)
        return wrapped
    return decorator
