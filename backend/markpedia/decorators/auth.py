from functools import wraps
from flask import abort
from flask_jwt_extended import verify_jwt_in_request
from markpedia.services.policy import has_role


def require_roles(*roles: str):
    """Verify the bearer token and, when roles are given, that its role claim is one of them."""
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            verify_jwt_in_request()
            if roles and not has_role(*roles):
                abort(403, description='Missing role')
            return fn(*args, **kwargs)
        return wrapper
    return outer
