"""Request guards for the IVR webhooks and the admin surface.

Webhooks carry an X-Twilio-Signature header (verify_twilio_signature).
The operator API and the dashboard stream share one key, ADMIN_API_KEY,
sent as a bearer token or, for the WebSocket, as ?token=. A wrong key is
401. No key at all is 403 unless DEBUG is on, in which case
the operator surface is open.

Twilio signatures are checked only when TWILIO_AUTH_TOKEN is set and
TWILIO_VALIDATE_SIGNATURE is on.
"""

from __future__ import annotations

import logging

from fastapi import Depends, HTTPException, Query, Request, WebSocket, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from twilio.request_validator import RequestValidator

from labourline.config import settings

log = logging.getLogger("labourline.auth")

_bearer_scheme = HTTPBearer(auto_error=False)


def public_url(request: Request) -> str:
    """The URL Twilio signed: our public base URL plus path and query."""
    url = settings.webhook_base_url.rstrip("/") + request.url.path
    if request.url.query:
        url += "?" + request.url.query
    return url


async def verify_twilio_signature(request: Request) -> None:
    """FastAPI dependency: reject webhooks that Twilio didn't sign."""
    token = settings.twilio_auth_token
    if not token or not settings.twilio_validate_signature:
        return

    signature = request.headers.get("X-Twilio-Signature", "")
    form = await request.form()
    params = {k: v for k, v in form.items() if isinstance(v, str)}
    if not RequestValidator(token).validate(public_url(request), params, signature):
        log.warning("Rejected unsigned webhook to %s", request.url.path)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid Twilio signature.",
        )


def _admin_rejection(presented: str | None) -> int | None:
    """HTTP status that refuses ``presented`` as the operator key, or None to allow.

    With no key configured the dashboard is open only in DEBUG.
    """
    expected = settings.admin_api_key
    if not expected:
        return None if settings.debug else status.HTTP_403_FORBIDDEN
    if presented != expected:
        return status.HTTP_401_UNAUTHORIZED
    return None


async def require_admin_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
) -> None:
    """Guard for /api/* endpoints: ``Authorization: Bearer <ADMIN_API_KEY>``."""
    refused = _admin_rejection(credentials.credentials if credentials else None)
    if refused == status.HTTP_403_FORBIDDEN:
        raise HTTPException(
            status_code=refused,
            detail="Admin API disabled: ADMIN_API_KEY is not set.",
        )
    if refused is not None:
        log.warning("Rejected admin request with bad or missing bearer token")
        raise HTTPException(
            status_code=refused,
            detail="Invalid or missing admin token.",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def require_admin_ws(
    websocket: WebSocket,
    token: str = Query(default=""),
) -> None:
    """Guard for the dashboard stream. Browsers can't set headers, so ?token= carries the key."""
    refused = _admin_rejection(token)
    if refused is None:
        return
    close_code = 4003 if refused == status.HTTP_403_FORBIDDEN else 4001
    await websocket.close(code=close_code, reason="Dashboard access denied")
    raise HTTPException(status_code=refused)
