"""
Signed, time-bound identity tokens.

Tokens are HS256 JWTs carrying two claims: ``user_id`` (unsigned integer) and
``exp`` (expiry as a unix timestamp). Verification is stateless: nothing is
stored server side, so an issued token stays valid until it expires.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import jwt

logger = logging.getLogger(__name__)

TOKEN_LIFETIME = timedelta(hours=24)
ALGORITHM = "HS256"

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TokenError(Exception):
    """Base class for token verification failures."""


class TokenSignatureError(TokenError):
    """The token signature does not match the signing secret."""


class TokenExpiredError(TokenError):
    """The token expiry has passed."""


class MalformedTokenError(TokenError):
    """The token cannot be parsed or carries an unusable payload."""


# PUBLIC_INTERFACE
@dataclass(frozen=True)
class Claim:
    """Verified token payload."""

    user_id: int
    expires_at: datetime


def _is_user_id(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


# PUBLIC_INTERFACE
class TokenService:
    """
    Issue and verify identity tokens with a single symmetric secret.

    Args:
        secret: HMAC signing key. There is no rotation: changing it invalidates
            every outstanding token.
        clock: returns the current aware datetime; injectable for tests.
    """

    def __init__(self, secret: str, clock: Optional[Clock] = None) -> None:
        if not secret:
            raise ValueError("secret must be a non-empty string")
        self._secret = secret
        self._clock: Clock = clock or utc_now

    def issue_token(self, user_id: int) -> str:
        """Return a signed token for `user_id` expiring 24 hours from now."""
        if not _is_user_id(user_id):
            raise ValueError("user_id must be a non-negative integer")
        expires_at = self._clock() + TOKEN_LIFETIME
        payload = {"user_id": user_id, "exp": int(expires_at.timestamp())}
        return jwt.encode(payload, self._secret, algorithm=ALGORITHM)

    def verify_token(self, token: str) -> Claim:
        """
        Check signature and expiry and return the embedded claim.

        Raises:
            TokenSignatureError: signature does not match.
            TokenExpiredError: expiry is not in the future.
            MalformedTokenError: token or payload cannot be interpreted.
        """
        try:
            # Expiry is checked below against the injected clock.
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[ALGORITHM],
                options={"verify_exp": False, "require": ["exp", "user_id"]},
            )
        except jwt.InvalidSignatureError as exc:
            raise TokenSignatureError("token signature is invalid") from exc
        except jwt.InvalidTokenError as exc:
            raise MalformedTokenError(f"token is malformed: {exc}") from exc

        exp = payload["exp"]
        if not isinstance(exp, (int, float)) or isinstance(exp, bool):
            raise MalformedTokenError("token expiry is not a timestamp")
        user_id = payload["user_id"]
        if not _is_user_id(user_id):
            raise MalformedTokenError("token user_id is not a non-negative integer")

        try:
            expires_at = datetime.fromtimestamp(exp, tz=timezone.utc)
        except (OverflowError, OSError, ValueError) as exc:
            raise MalformedTokenError("token expiry is out of range") from exc
        if self._clock() >= expires_at:
            raise TokenExpiredError("token has expired")
        return Claim(user_id=user_id, expires_at=expires_at)
