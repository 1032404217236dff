"""
Security utilities for API authentication.

Backup endpoints are protected by the X-Admin-Key header, compared against
the configured ADMIN_API_KEY.
"""
from __future__ import annotations

import logging
import secrets

from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import APIKeyHeader

from api.settings import Settings, get_settings

logger = logging.getLogger(__name__)

admin_key_header = APIKeyHeader(name="X-Admin-Key", auto_error=False)


async def verify_admin_key(
    request: Request,
    admin_key: str = Security(admin_key_header),
    settings: Settings = Depends(get_settings),
) -> str:
    """
    Verify the admin API key.

    Args:
        request: The FastAPI request object
        admin_key: The admin API key from the request header
        settings: Application settings

    Returns:
        The validated admin API key

    Raises:
        HTTPException: 503 when no key is configured, 401 when the header is
            missing, 403 when it does not match.
    """
    configured_admin_key = settings.ADMIN_API_KEY

    if not configured_admin_key:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Admin API key not configured. Please set ADMIN_API_KEY.",
        )

    if not admin_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing API key. This endpoint requires 'X-Admin-Key' header.",
        )

    # Constant-time comparison
    if not secrets.compare_digest(str(admin_key), str(configured_admin_key)):
        client = request.client.host if request.client else "unknown"
        logger.warning("Rejected invalid admin key from %s for %s", client, request.url.path)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid admin API key. The provided 'X-Admin-Key' does not match the configured ADMIN_API_KEY.",
        )

    return admin_key
