"""Identity provider callbacks."""

import hmac

from fastapi import APIRouter, Header, Request, status
from fastapi.responses import JSONResponse

from platform_access.errors import ErrorBody, ErrorCode, SignInBlockedError, unauthorized
from platform_access.logger import get_logger
from platform_access.signin.decision import GENERIC_FAILURE_MESSAGE
from platform_access.signin.gate import SignInEvent

logger = get_logger(__name__)

router = APIRouter()


def _blocked_response(message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_403_FORBIDDEN,
        content=ErrorBody(detail=message, code=ErrorCode.SIGN_IN_BLOCKED.value).to_dict(),
    )


@router.post("/pre-authentication")
async def pre_authentication(
    event: SignInEvent,
    request: Request,
    x_hook_secret: str | None = Header(default=None),
):
    """Allow or block a sign-in attempt before the identity provider authenticates it."""
    expected = request.app.state.settings.hook_shared_secret
    if not expected:
        logger.error("signin_hook_secret_not_configured")
        return _blocked_response(GENERIC_FAILURE_MESSAGE)

    if not x_hook_secret or not hmac.compare_digest(x_hook_secret, expected):
        logger.warning("signin_hook_unauthorized")
        raise unauthorized("Invalid hook credentials")

    try:
        allowed = await request.app.state.signin_gate.evaluate(event)
    except SignInBlockedError as exc:
        return _blocked_response(exc.message)
    return allowed.model_dump(by_alias=True)
