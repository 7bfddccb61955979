"""
Bearer token handling.

Access tokens are HS256 JWTs issued by the auth service with the user's
UUID in the ``sub`` claim. This module only verifies them; issuing is
exposed for tooling and tests.
"""

import logging
from datetime import datetime, timedelta, timezone
from uuid import UUID

import jwt
from jwt import ExpiredSignatureError, InvalidTokenError

from ...core.videos.ports import AuthError

logger = logging.getLogger(__name__)

DEFAULT_ISSUER = "tubely-access"


def make_jwt(
    user_id: UUID,
    secret: str,
    expires_in: timedelta = timedelta(hours=1),
    issuer: str = DEFAULT_ISSUER,
    algorithm: str = "HS256",
) -> str:
    now = datetime.now(tz=timezone.utc)
    return jwt.encode(
        {
            "iss": issuer,
            "iat": now,
            "exp": now + expires_in,
            "sub": str(user_id),
        },
        key=secret,
        algorithm=algorithm,
    )


def validate_jwt(
    token: str,
    secret: str,
    issuer: str = DEFAULT_ISSUER,
    algorithm: str = "HS256",
) -> UUID:
    """Verify signature, expiry and issuer; return the subject as a UUID."""
    if not secret:
        raise AuthError("JWT secret is not configured")

    try:
        claims = jwt.decode(
            token,
            key=secret,
            algorithms=[algorithm],
            issuer=issuer,
            options={"require": ["exp", "sub", "iss"]},
        )
    except ExpiredSignatureError as e:
        raise AuthError("Token has expired") from e
    except InvalidTokenError as e:
        logger.warning("Rejected bearer token", extra={"error": str(e)})
        raise AuthError(f"Invalid token: {e}") from e

    try:
        return UUID(claims["sub"])
    except (TypeError, ValueError) as e:
        raise AuthError("Token subject is not a user ID") from e


class JWTAuthenticator:
    """
    Callable that turns a raw bearer token into a user ID.

    This is the authenticate capability the upload pipelines consume.
    """

    def __init__(self, secret: str, issuer: str = DEFAULT_ISSUER, algorithm: str = "HS256"):
        self._secret = secret
        self._issuer = issuer
        self._algorithm = algorithm

    def __call__(self, token: str) -> UUID:
        return validate_jwt(token, self._secret, issuer=self._issuer, algorithm=self._algorithm)
