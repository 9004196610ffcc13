from __future__ import annotations

import logging
from typing import Optional

from fastapi import Header, Request

from .errors import UnauthorizedError
from .tokens import TokenError, TokenService

logger = logging.getLogger(__name__)

_BEARER_PREFIX = "bearer "


def _extract_token(authorization: Optional[str]) -> Optional[str]:
    if authorization is None:
        return None
    value = authorization.strip()
    # Clients send the raw token; a "Bearer " scheme is tolerated.
    if value.lower().startswith(_BEARER_PREFIX):
        value = value[len(_BEARER_PREFIX):].strip()
    return value or None


# PUBLIC_INTERFACE
def get_token_service(request: Request) -> TokenService:
    """Return the TokenService the application was built with."""
    return request.app.state.token_service


# PUBLIC_INTERFACE
def require_token(
    request: Request,
    authorization: Optional[str] = Header(default=None, description="Token returned by POST /login"),
) -> int:
    """
    Reject the request unless it carries a valid, unexpired token.

    On success the verified user id is stored on `request.state.user_id` and
    returned. Attach to a router with `dependencies=[Depends(require_token)]`;
    router dependencies resolve before the handler and its body are touched.

    Raises:
        UnauthorizedError: the Authorization header is missing or the token
            fails verification.
    """
    token = _extract_token(authorization)
    if token is None:
        logger.warning("Rejected %s %s: missing token", request.method, request.url.path)
        raise UnauthorizedError("Authorization header is missing")

    try:
        claim = get_token_service(request).verify_token(token)
    except TokenError as exc:
        logger.warning("Rejected %s %s: %s", request.method, request.url.path, exc)
        raise UnauthorizedError(str(exc)) from exc

    request.state.user_id = claim.user_id
    return claim.user_id
