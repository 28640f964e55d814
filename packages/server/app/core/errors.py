"""
Access error taxonomy.

Every failure the access core can produce is an ``AccessError`` subclass with a
stable ``code`` (the ``error`` field of the response body) and an HTTP status.
Errors are raised where they are detected and rendered once, by the app-level
exception handler registered in ``app.main``.
"""

from __future__ import annotations

from typing import Optional, Sequence

from starlette.responses import JSONResponse

from wampums_shared.schemas.common import ErrorBody


class AccessError(Exception):
    code = "access_error"
    status_code = 403
    default_message = "Access denied"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def body(self) -> ErrorBody:
        return ErrorBody(error=self.code, message=self.message)

    def headers(self) -> dict[str, str] | None:
        return None

    def to_response(self) -> JSONResponse:
        return JSONResponse(
            status_code=self.status_code,
            content=self.body().model_dump(by_alias=True, exclude_none=True),
            headers=self.headers(),
        )


# ---------------------------------------------------------------------------
# 401: the client must (re-)authenticate
# ---------------------------------------------------------------------------

class AuthenticationError(AccessError):
    status_code = 401

    def headers(self) -> dict[str, str] | None:
        return {"WWW-Authenticate": "Bearer"}


class AuthMissing(AuthenticationError):
    code = "auth_missing"
    default_message = "Authentication required"


class AuthExpired(AuthenticationError):
    code = "auth_expired"
    default_message = "Token has expired"


class AuthInvalidSignature(AuthenticationError):
    code = "auth_invalid_signature"
    default_message = "Token signature is invalid"


class AuthMalformed(AuthenticationError):
    code = "auth_malformed"
    default_message = "Token is malformed"


class InvalidCredentials(AuthenticationError):
    code = "invalid_credentials"
    default_message = "Invalid email or password"


# ---------------------------------------------------------------------------
# 403: valid identity, operation not allowed
# ---------------------------------------------------------------------------

class PermissionDenied(AccessError):
    code = "permission_denied"

    def __init__(self, missing: Sequence[str]):
        self.missing = list(missing)
        super().__init__(f"Missing permission: {self.missing[0]}")

    @property
    def required_permission(self) -> str:
        return self.missing[0]

    def body(self) -> ErrorBody:
        return ErrorBody(
            error=self.code,
            message=self.message,
            required_permission=self.required_permission,
            missing_permissions=self.missing,
        )


class DemoBlocked(AccessError):
    code = "demo_blocked"
    default_message = (
        "This feature is not available in demo mode. Demo accounts have read-only access."
    )

    def body(self) -> ErrorBody:
        return ErrorBody(error=self.code, message=self.message, is_demo=True)


class CrossTenantAttempt(AccessError):
    code = "cross_tenant_attempt"
    default_message = "Cross-tenant access attempt"


class AccountNotVerified(AccessError):
    code = "account_not_verified"
    default_message = "Account has not been verified"


# ---------------------------------------------------------------------------
# Issuance and infrastructure
# ---------------------------------------------------------------------------

class OrganizationRequired(AccessError):
    code = "organization_required"
    status_code = 400
    default_message = "Organization must be specified for users with several memberships"


class MembershipNotFound(AccessError):
    code = "membership_not_found"
    status_code = 404
    default_message = "No membership found for this organization"


class RateLimited(AccessError):
    code = "rate_limited"
    status_code = 429
    default_message = "Too many attempts, try again later"


class ServiceUnavailable(AccessError):
    """Infrastructure failure. Never reported as a denial."""

    code = "service_unavailable"
    status_code = 503
    default_message = "Authorization backend unavailable, retry later"


class RoleNotFound(AccessError):
    code = "role_not_found"
    status_code = 404
    default_message = "Role not found"
