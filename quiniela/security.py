"""Security: rate limiting, caller identity, and the admin check."""

import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request, Security
from fastapi.security import APIKeyHeader
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from quiniela.config import get_settings
from quiniela.database import get_async_session
from quiniela.models import UserRole

logger = logging.getLogger(__name__)
settings = get_settings()

ADMIN_ROLE = "admin"
SERVICE_PRINCIPAL = "service"


def get_rate_limit_key(request: Request) -> str:
    """Rate limit bucket: service key callers share one bucket, others go by IP."""
    api_key = request.headers.get(settings.API_KEY_HEADER)
    if settings.API_KEY and api_key == settings.API_KEY:
        return f"authenticated:{api_key[:8]}"
    return get_remote_address(request)


# Rate limiter keyed by client IP (or service key)
limiter = Limiter(key_func=get_rate_limit_key)

# Service key for automation (cron, ops scripts)
api_key_header = APIKeyHeader(name=settings.API_KEY_HEADER, auto_error=False)
# Authenticated user id forwarded by the auth gateway
user_id_header = APIKeyHeader(name=settings.USER_ID_HEADER, auto_error=False)


async def get_current_user_id(
    user_id: Optional[str] = Security(user_id_header),
) -> str:
    """Return the authenticated caller's user id, 401 when absent."""
    if not user_id or not user_id.strip():
        raise HTTPException(
            status_code=401,
            detail=f"Missing user identity. Provide it via {settings.USER_ID_HEADER} header.",
        )
    return user_id.strip()


async def is_admin(session: AsyncSession, user_id: str) -> bool:
    result = await session.execute(
        select(UserRole.id).where(UserRole.user_id == user_id, UserRole.role == ADMIN_ROLE)
    )
    return result.first() is not None


async def require_admin(
    api_key: Optional[str] = Security(api_key_header),
    user_id: Optional[str] = Security(user_id_header),
    session: AsyncSession = Depends(get_async_session),
) -> str:
    """
    Admin gate for mutating endpoints.

    Accepts either the configured service API key or a user id holding the
    admin role. Returns the acting principal. Raises 401 when no identity
    is presented and 403 when the identity is not an admin; nothing has been
    done by the time either is raised.
    """
    if api_key:
        if settings.API_KEY and api_key == settings.API_KEY:
            return SERVICE_PRINCIPAL
        logger.warning("Invalid API key attempt on admin endpoint")
        raise HTTPException(status_code=403, detail="Invalid API key")

    if not user_id or not user_id.strip():
        raise HTTPException(
            status_code=401,
            detail="Missing credentials. Provide an admin user id or API key.",
        )

    user_id = user_id.strip()
    if not await is_admin(session, user_id):
        logger.warning(f"Non-admin user {user_id} attempted an admin operation")
        raise HTTPException(status_code=403, detail="Admin role required")

    return user_id
