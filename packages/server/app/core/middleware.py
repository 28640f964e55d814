"""
Request middleware: app-wide read-only enforcement for demo accounts.

Routes guarded by ``require_permission`` or ``require_authenticated`` make
their own decision (permission first, then the demo check, honouring
``mutating=False``). The middleware covers every other mutating route.
"""

from __future__ import annotations

from typing import Any, Optional, Sequence

import structlog
from fastapi.dependencies.models import Dependant
from fastapi.routing import APIRoute
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import Match
from starlette.types import ASGIApp

from app.core.auth import SAFE_METHODS, extract_bearer
from app.core.config import get_settings
from app.core.errors import AccessError, DemoBlocked
from app.core.tokens import verify

log = structlog.get_logger()

# Session endpoints demo accounts still need (switching organization, etc.)
DEFAULT_EXEMPT_PREFIXES = ("/api/v1/auth/",)


def _declares_access(dependant: Dependant) -> bool:
    for dependency in dependant.dependencies:
        if hasattr(dependency.call, "required_permissions"):
            return True
        if _declares_access(dependency):
            return True
    return False


def route_decides_access(app: Any, scope: dict) -> bool:
    """True when the route serving ``scope`` carries an access dependency."""
    for route in getattr(app, "routes", ()):
        match, _ = route.matches(scope)
        if match == Match.FULL:
            return isinstance(route, APIRoute) and _declares_access(route.dependant)
    return False


class DemoReadOnlyMiddleware(BaseHTTPMiddleware):
    """
    Reject mutating requests made with a demo token on unguarded routes.

    Skipped for:
    - Safe HTTP methods (GET, HEAD, OPTIONS)
    - Exempt path prefixes (session endpoints)
    - Routes declaring ``require_permission`` / ``require_authenticated``
    - Requests without a verifiable bearer token (route dependencies answer
      those with the precise 401)
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        secret: Optional[str] = None,
        algorithms: Optional[Sequence[str]] = None,
        exempt_prefixes: Sequence[str] = DEFAULT_EXEMPT_PREFIXES,
    ):
        super().__init__(app)
        settings = get_settings()
        self.secret = secret or settings.secret_key
        self.algorithms = list(algorithms or [settings.jwt_algorithm])
        self.exempt_prefixes = tuple(exempt_prefixes)

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.method in SAFE_METHODS:
            return await call_next(request)

        if request.url.path.startswith(self.exempt_prefixes):
            return await call_next(request)

        token = extract_bearer(request.headers.get("Authorization"))
        if not token:
            return await call_next(request)

        if route_decides_access(request.scope.get("app"), request.scope):
            return await call_next(request)

        try:
            auth = verify(token, self.secret, algorithms=self.algorithms)
        except AccessError:
            return await call_next(request)

        if auth.is_demo:
            log.info(
                "access.demo_blocked",
                user_id=str(auth.user_id),
                organization_id=auth.organization_id,
                method=request.method,
                path=request.url.path,
            )
            return DemoBlocked().to_response()

        return await call_next(request)
