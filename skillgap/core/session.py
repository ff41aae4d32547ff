"""
Anonymous session identity.

There are no accounts: a random token in the gap_session cookie identifies the
submitter. The middleware issues one when the request has none (or a
malformed one) and exposes it as request.state.session_id, which both the
route handlers and the slowapi key function read.
"""
import re
import secrets
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from skillgap.core.config import settings

_SESSION_ID_RE = re.compile(r"^[A-Za-z0-9_-]{16,64}$")


def new_session_id() -> str:
    return secrets.token_urlsafe(32)


def is_valid_session_id(value: Optional[str]) -> bool:
    return bool(value) and _SESSION_ID_RE.match(value) is not None


class AnonymousSessionMiddleware(BaseHTTPMiddleware):
    """Attach the session token to request.state, issuing the cookie if needed."""

    async def dispatch(self, request: Request, call_next):
        session_id = request.cookies.get(settings.session_cookie_name)
        issued = False
        if not is_valid_session_id(session_id):
            session_id = new_session_id()
            issued = True

        request.state.session_id = session_id
        response = await call_next(request)

        if issued:
            response.set_cookie(
                key=settings.session_cookie_name,
                value=session_id,
                max_age=settings.session_cookie_max_age_seconds,
                httponly=True,
                samesite="lax",
                secure=settings.environment == "production",
                path="/",
            )
        return response
