"""Shared-secret checks for internal and admin-backend endpoints."""

import hmac

from fastapi import Header, HTTPException

from coachflow.core.config import settings


def verify_secret(provided: str | None, expected: str | None) -> bool:
    """Constant-time comparison; empty or missing values never match."""
    if not provided or not expected:
        return False
    return hmac.compare_digest(provided.encode(), expected.encode())


def verify_internal_secret(x_internal_secret: str = Header(...)) -> None:
    """
    Verify the X-Internal-Secret header.

    Raises:
        HTTPException 501: INTERNAL_SECRET is not configured
        HTTPException 403: header does not match
    """
    expected = settings.INTERNAL_SECRET
    if not expected:
        raise HTTPException(status_code=501, detail="INTERNAL_SECRET not configured")
    if not verify_secret(x_internal_secret, expected):
        raise HTTPException(status_code=403, detail="Invalid internal secret")
