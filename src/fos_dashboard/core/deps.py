"""FastAPI dependencies for database access and cron authentication."""

import secrets
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from fos_dashboard.core.config import settings
from fos_dashboard.core.database import get_db

# auto_error disabled so an unset cron secret leaves the endpoint open
cron_bearer = HTTPBearer(auto_error=False)

DbSession = Annotated[AsyncSession, Depends(get_db)]


async def verify_cron_secret(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(cron_bearer)],
) -> None:
    """Require the configured cron secret as a bearer token, when one is set."""
    if not settings.cron_secret:
        return

    if credentials is None or not secrets.compare_digest(
        credentials.credentials, settings.cron_secret
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )


CronAuthorized = Annotated[None, Depends(verify_cron_secret)]
