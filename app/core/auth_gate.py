"""
Request-level auth gate for the console pages.

decide_gate() is a pure function of (path, token): it never touches the
database and keeps no state between requests. auth_gate_middleware() turns
its decision into a redirect or passes the request through.

Rules:
- login page with a valid token -> redirect to the role's home
- admin area without a valid token -> redirect to login
- coordinator area without a valid token -> redirect to login; admins are
  sent to the admin home, other roles to login
- anything else passes through unchanged

An invalid token (expired, malformed, wrong signature) is treated exactly
like a missing one.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum

from fastapi import Request, Response
from fastapi.responses import RedirectResponse

from app.config import settings
from app.core.logging import get_logger
from app.core.security import SessionClaims, verify_session_token
from app.models.user import ADMIN_ROLES, UserRole

logger = get_logger(__name__)


class GateAction(str, Enum):
    ALLOW = "allow"
    REDIRECT_LOGIN = "redirect_login"
    REDIRECT_HOME = "redirect_home"


@dataclass(frozen=True)
class GateDecision:
    action: GateAction
    location: str | None = None

    @property
    def is_redirect(self) -> bool:
        return self.action != GateAction.ALLOW


ALLOW = GateDecision(GateAction.ALLOW)


def _under(path: str, prefix: str) -> bool:
    return path == prefix or path.startswith(prefix.rstrip("/") + "/")


def home_for(role: UserRole) -> str:
    """Landing page for a signed-in role."""
    if role == UserRole.COORDINATOR:
        return settings.COORDINATOR_HOME_PATH
    return settings.ADMIN_HOME_PATH


def _to_login() -> GateDecision:
    return GateDecision(GateAction.REDIRECT_LOGIN, settings.LOGIN_PATH)


def decide_gate(path: str, token: str | None) -> GateDecision:
    """
    Decide what to do with a request for path carrying an optional session token.
    """
    if path == settings.LOGIN_PATH:
        claims = verify_session_token(token)
        if claims is None:
            return ALLOW
        return GateDecision(GateAction.REDIRECT_HOME, home_for(claims.role))

    if _under(path, settings.ADMIN_PATH_PREFIX):
        if verify_session_token(token) is None:
            return _to_login()
        return ALLOW

    if _under(path, settings.COORDINATOR_PATH_PREFIX):
        claims: SessionClaims | None = verify_session_token(token)
        if claims is None:
            return _to_login()
        if claims.role == UserRole.COORDINATOR:
            return ALLOW
        if claims.role in ADMIN_ROLES:
            return GateDecision(GateAction.REDIRECT_HOME, settings.ADMIN_HOME_PATH)
        return _to_login()

    return ALLOW


async def auth_gate_middleware(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    """HTTP middleware applying decide_gate() to every request."""
    token = request.cookies.get(settings.AUTH_COOKIE_NAME)
    decision = decide_gate(request.url.path, token)

    if decision.is_redirect and decision.location is not None:
        logger.info(
            "auth_gate_redirect",
            path=request.url.path,
            action=decision.action.value,
            location=decision.location,
        )
        return RedirectResponse(url=decision.location)

    return await call_next(request)
