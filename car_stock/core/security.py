"""
Bearer token handling.

Tokens are issued by the dealership's identity service; this backend only
needs to verify them and read the subject claim. ``create_access_token`` is
kept for operational tooling and the test suite.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import ExpiredSignatureError, JWTError, jwt

from car_stock.core.config import get_settings
from car_stock.core.logging import get_logger

logger = get_logger(__name__)

ACCESS_TOKEN_EXPIRE_MINUTES = 60


class TokenError(Exception):
    """Raised when a bearer token cannot be decoded or is not acceptable."""

    def __init__(self, message: str, code: str, **context):
        super().__init__(message)
        self.code = code
        self.context = context


def create_access_token(
    data: Dict[str, Any],
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create a signed access token.

    Args:
        data: Claims to encode, must include ``sub``
        expires_delta: Optional custom lifetime

    Returns:
        Encoded JWT string
    """
    settings = get_settings()
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))

    to_encode = data.copy()
    to_encode.update({"exp": expire, "iat": now, "type": "access"})

    token = jwt.encode(to_encode, settings.secret_key, algorithm=settings.jwt_algorithm)
    logger.debug("Access token created", subject=data.get("sub"))
    return token


def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Decode and validate an access token.

    Raises:
        TokenError: If token is empty, expired, malformed or not an access token
    """
    if not token:
        raise TokenError("Token cannot be empty", code="EMPTY_TOKEN")

    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except ExpiredSignatureError as e:
        logger.warning("Token has expired")
        raise TokenError("Token has expired", code="TOKEN_EXPIRED") from e
    except JWTError as e:
        logger.warning("Invalid token", error=str(e), error_type=type(e).__name__)
        raise TokenError("Invalid token", code="TOKEN_INVALID") from e

    if payload.get("type", "access") != "access":
        raise TokenError(
            "Token is not an access token",
            code="TOKEN_WRONG_TYPE",
            token_type=payload.get("type"),
        )

    if not payload.get("sub"):
        raise TokenError("Token missing subject", code="TOKEN_NO_SUBJECT")

    return payload
