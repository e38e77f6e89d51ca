"""Admin checks for the dialogue inspection endpoints.

Pausing, resuming and streaming the trace of somebody else's dialogue are
admin operations.  The shared ``ADMIN_API_KEY`` arrives as a bearer token on
HTTP requests and as ``?token=`` on the trace WebSocket.  With no key
configured, only a DEBUG deployment lets these requests through.
"""

from __future__ import annotations

import logging
import secrets
from typing import Optional

from fastapi import Depends, HTTPException, Query, WebSocket, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from appointment_dm.config import settings

log = logging.getLogger("appointment_dm.auth")

_bearer_scheme = HTTPBearer(auto_error=False)


def _check_admin(token: Optional[str]) -> Optional[int]:
    """None when ``token`` grants admin access, else the HTTP status to refuse with."""
    key = settings.admin_api_key
    if not key:
        return None if settings.debug else status.HTTP_403_FORBIDDEN
    if token is None or not secrets.compare_digest(token.encode(), key.encode()):
        log.warning("Admin request refused: missing or wrong token")
        return status.HTTP_401_UNAUTHORIZED
    return None


async def require_admin_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
) -> None:
    """Dependency for the pause/resume routes."""
    refused = _check_admin(credentials.credentials if credentials else None)
    if refused == status.HTTP_403_FORBIDDEN:
        raise HTTPException(
            status_code=refused,
            detail="Admin API key not configured. Set ADMIN_API_KEY in .env.",
        )
    if refused is not None:
        raise HTTPException(
            status_code=refused,
            detail="Invalid or missing admin token.",
            headers={"WWW-Authenticate": "Bearer"},
        )


# WebSocket close codes mirroring the HTTP refusals
_WS_CLOSE = {
    status.HTTP_403_FORBIDDEN: (4003, "Admin API key not configured"),
    status.HTTP_401_UNAUTHORIZED: (4001, "Unauthorized"),
}


async def require_admin_ws(websocket: WebSocket, token: str = Query(default="")) -> bool:
    """True when the trace stream may open; otherwise closes the socket."""
    refused = _check_admin(token)
    if refused is None:
        return True
    code, reason = _WS_CLOSE[refused]
    await websocket.close(code=code, reason=reason)
    return False
