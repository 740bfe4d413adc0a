from functools import wraps
from typing import Optional

from flask import g, request

from dropiq.auth.tokens import verify_token
from dropiq.db.session import get_session
from dropiq.errors import Forbidden, Unauthorized
from dropiq.models import User

AUTH_COOKIE = "auth-token"


def _bearer_token() -> Optional[str]:
    header = request.headers.get("Authorization", "")
    if header.startswith("Bearer "):
        return header[len("Bearer "):].strip() or None
    return request.cookies.get(AUTH_COOKIE)


def load_user_from_token(token: str) -> User:
    payload = verify_token(token)
    session = get_session()
    try:
        user = session.get(User, payload.get("userId"))
    finally:
        session.close()
    if user is None:
        raise Unauthorized("User not found")
    return user


def _authenticate():
    token = _bearer_token()
    if not token:
        raise Unauthorized("Authentication required")
    g.current_user = load_user_from_token(token)


def require_auth(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        _authenticate()
        return view(*args, **kwargs)

    return wrapper


def optional_auth(view):
    """Populate g.current_user when a valid token is sent; never rejects."""

    @wraps(view)
    def wrapper(*args, **kwargs):
        g.current_user = None
        token = _bearer_token()
        if token:
            try:
                g.current_user = load_user_from_token(token)
            except Unauthorized:
                g.current_user = None
        return view(*args, **kwargs)

    return wrapper


def require_role(*roles):
    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            _authenticate()
            if g.current_user.role not in roles:
                raise Forbidden("Insufficient permissions")
            return view(*args, **kwargs)

        return wrapper

    return decorator
