import logging
from datetime import timedelta
from typing import Any, Dict, Optional

import jwt
from flask import current_app

from dropiq.errors import Unauthorized
from dropiq.models.base import utcnow

logger = logging.getLogger(__name__)

ACCESS_TOKEN = "access"
TWO_FACTOR_PENDING = "2fa_pending"


def sign_token(payload: Dict[str, Any], token_type: str = ACCESS_TOKEN, expires_in: Optional[timedelta] = None) -> str:
    """Generate a JWT for an authenticated (or half-authenticated) user."""
    config = current_app.config
    if expires_in is None:
        if token_type == TWO_FACTOR_PENDING:
            expires_in = timedelta(minutes=config["TWO_FACTOR_TOKEN_MINUTES"])
        else:
            expires_in = timedelta(days=config["JWT_EXPIRES_DAYS"])
    now = utcnow()
    claims = dict(payload)
    claims.update(
        {
            "type": token_type,
            "iat": now,
            "exp": now + expires_in,
            "iss": config["JWT_ISSUER"],
            "aud": config["JWT_AUDIENCE"],
        }
    )
    return jwt.encode(claims, config["JWT_SECRET"], algorithm="HS256")


def verify_token(token: str, expected_type: str = ACCESS_TOKEN) -> Dict[str, Any]:
    """Decode a JWT, raising Unauthorized when it is invalid, expired or of the wrong type."""
    config = current_app.config
    try:
        payload = jwt.decode(
            token,
            config["JWT_SECRET"],
            algorithms=["HS256"],
            issuer=config["JWT_ISSUER"],
            audience=config["JWT_AUDIENCE"],
        )
    except jwt.ExpiredSignatureError:
        raise Unauthorized("Token has expired")
    except jwt.InvalidTokenError as exc:
        logger.debug("Rejected token: %s", exc)
        raise Unauthorized("Invalid token")
    if payload.get("type") != expected_type:
        raise Unauthorized("Invalid token")
    return payload
