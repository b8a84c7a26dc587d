from functools import wraps

from flask_login import current_user

from rentwise.errors import ForbiddenError, UnauthorizedError


def role_required(*roles):
    """Restrict a view to signed-in users holding one of ``roles``; the role comes from the database."""

    def wrapper(func):
        @wraps(func)
        def inner(*args, **kwargs):
            if not current_user.is_authenticated:
                raise UnauthorizedError("Authentication required.")
            if current_user.role not in roles:
                raise ForbiddenError(f"This action requires the {' or '.join(sorted(roles))} role.")
            return func(*args, **kwargs)

        return inner

    return wrapper
