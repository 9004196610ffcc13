from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query

from ..auth import get_token_service
from ..errors import InternalError
from ..schemas import ErrorOut, TokenOut
from ..tokens import TokenService

logger = logging.getLogger(__name__)

MAX_USER_ID = 2**64 - 1

router = APIRouter(tags=["auth"])


# PUBLIC_INTERFACE
@router.post(
    "/login",
    response_model=TokenOut,
    summary="Login",
    description="Issue a signed token for `userid`, valid for 24 hours. No password is checked.",
    responses={
        200: {"description": "Token issued"},
        400: {"model": ErrorOut, "description": "userid is not an unsigned integer"},
        500: {"model": ErrorOut, "description": "Token generation failed"},
    },
)
def login(
    userid: int = Query(..., ge=0, le=MAX_USER_ID, description="Unsigned integer user id"),
    tokens: TokenService = Depends(get_token_service),
) -> TokenOut:
    """
    Issue a token for the given user id.
    """
    try:
        token = tokens.issue_token(userid)
    except Exception as exc:
        logger.exception("Token generation failed for user %s", userid)
        raise InternalError("Failed to generate token") from exc
    logger.info("Issued token for user %s", userid)
    return TokenOut(token=token)
