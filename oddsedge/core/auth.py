"""
Shared-secret authentication for the collection trigger.

The scheduler platform calls the trigger with ``Authorization: Bearer <CRON_SECRET>``;
manual invocations may pass ``?secret=<CRON_SECRET>`` instead.
"""
import hmac
from typing import Optional

from fastapi import HTTPException, Query, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from starlette.requests import Request

from oddsedge.core.config import settings
from oddsedge.core.logging import get_logger

logger = get_logger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def verify_cron_secret(provided: Optional[str], expected: str) -> bool:
    """
    Constant-time comparison of a provided secret against the configured one.

    An unset expected secret never authorizes anything.
    """
    if not expected or not provided:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


def require_cron_secret(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
    secret: Optional[str] = Query(default=None, include_in_schema=False),
) -> str:
    """
    FastAPI dependency guarding trigger endpoints.

    Raises:
        HTTPException: 401 when no valid secret was supplied
    """
    provided = credentials.credentials if credentials else secret

    if not verify_cron_secret(provided, settings.CRON_SECRET):
        client = request.client.host if request.client else "unknown"
        logger.warning(f"Rejected unauthorized trigger call from {client}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )

    return "cron"
