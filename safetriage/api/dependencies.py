"""FastAPI dependencies for services and maintenance authentication."""

import secrets
from typing import Optional
from fastapi import Header, HTTPException, status
from safetriage.config.settings import settings
from safetriage.services.intake_service import IntakeService, get_intake_service
from safetriage.services.session_lifecycle import SessionLifecycleManager
from safetriage.services.session_store import get_session_store
import logging

logger = logging.getLogger(__name__)


def get_intake() -> IntakeService:
    return get_intake_service()


def get_lifecycle_manager() -> SessionLifecycleManager:
    return SessionLifecycleManager(get_session_store())


async def verify_cron_secret(authorization: Optional[str] = Header(default=None)):
    """Require ``Authorization: Bearer <CRON_SECRET>`` when a secret is set.

    Raises:
        HTTP 401 - if a secret is configured and the header does not match
    """
    expected = settings.cron_secret
    if not expected:
        return

    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not secrets.compare_digest(token, expected):
        logger.warning("Rejected maintenance request with invalid cron secret")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
