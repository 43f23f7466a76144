import hmac
import logging
from typing import Annotated

from fastapi import Depends, Header

from app.config import settings
from app.errors import UnauthorizedError
from app.services.pi_gateway import PiGatewayClient
from app.services.refunds import PollPolicy

logger = logging.getLogger(__name__)


def require_admin(
    x_admin_token: Annotated[str | None, Header(alias="x-admin-token")] = None,
) -> str:
    expected = settings.ADMIN_TOKEN
    if not x_admin_token or not hmac.compare_digest(x_admin_token.encode("utf-8"), expected.encode("utf-8")):
        logger.warning("Rejected admin request with %s token", "missing" if not x_admin_token else "invalid")
        raise UnauthorizedError("Unauthorized")
    return x_admin_token


def get_gateway() -> PiGatewayClient:
    return PiGatewayClient.from_settings()


def get_poll_policy() -> PollPolicy:
    return PollPolicy.from_settings()


AdminToken = Annotated[str, Depends(require_admin)]
Gateway = Annotated[PiGatewayClient, Depends(get_gateway)]
RefundPollPolicy = Annotated[PollPolicy, Depends(get_poll_policy)]
