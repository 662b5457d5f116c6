"""
API dependencies (auth, shared DI).

Clerk-based auth:
- Reads X-User-Id header sent from the Next.js frontend (the Clerk user id)
- Validates the shared API token for security
"""

from typing import Optional

from fastapi import Header, HTTPException, status

from threadcraft.core.config import settings


def get_current_user_id(
    authorization: Optional[str] = Header(default=None, alias="Authorization"),
    x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
) -> str:
    """
    Clerk auth bridge.

    - Validates the API token from the Authorization header
    - Returns the Clerk user id from the X-User-Id header
    """
    api_token = settings.API_TOKEN

    if not api_token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Auth not configured",
        )

    if not authorization or authorization.strip() != f"Bearer {api_token}":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization token",
        )

    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-User-Id header required",
        )

    return x_user_id.strip()
