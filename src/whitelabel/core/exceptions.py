"""Custom exceptions for the Whitelabel API and realtime gateway.

Each exception maps to a specific HTTP status code and error code.
Global exception handlers in api/main.py convert these to ErrorResponse.
Handshake errors are reported to realtime clients through the ``auth_error`` event.
"""


class WhitelabelError(Exception):
    """Base exception for all Whitelabel errors."""

    status_code: int = 500
    code: str = "internal_error"
    message: str = "An unexpected error occurred."

    def __init__(self, message: str | None = None, detail: dict[str, object] | None = None):
        self.message = message or self.__class__.message
        self.detail = detail
        super().__init__(self.message)


class UnauthorisedError(WhitelabelError):
    status_code = 401
    code = "unauthorised"
    message = "Authentication required."


# ---------------------------------------------------------------------------
# Realtime handshake failures. All are terminal for the connection.
# ---------------------------------------------------------------------------


class HandshakeError(UnauthorisedError):
    """Base for the four handshake rejection kinds."""

    code = "handshake_failed"
    message = "Connection handshake failed."


class MissingCredentialError(HandshakeError):
    code = "missing_credential"
    message = "No authentication token provided."


class InvalidCredentialError(HandshakeError):
    code = "invalid_credential"
    message = "Invalid or expired token."


class TenantNotFoundError(HandshakeError):
    code = "tenant_not_found"
    message = "Tenant not found for domain."


class TenantMismatchError(HandshakeError):
    status_code = 403
    code = "tenant_mismatch"
    message = "User does not belong to this tenant."
