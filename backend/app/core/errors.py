"""API error classes.

HTTP status codes and machine-readable error codes for every failure the
API can surface.
"""


class APIError(Exception):
    """Base class for API errors.

    All API errors have a code, message, and HTTP status.
    Subclasses set default status_code.

    Attributes:
        code: Machine-readable error code (e.g., "NOT_FOUND").
        message: Human-readable error message.
        status_code: HTTP status code to return.
        details: Optional list of additional error details.
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: list[dict] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(message)


class ValidationError(APIError):
    """Field validation failed (400)."""

    def __init__(
        self,
        message: str,
        details: list[dict] | None = None,
    ) -> None:
        super().__init__(
            code="VALIDATION_ERROR",
            message=message,
            status_code=400,
            details=details,
        )


class UnauthorizedError(APIError):
    """Authentication required (401)."""

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(
            code="UNAUTHORIZED",
            message=message,
            status_code=401,
        )


class ForbiddenError(APIError):
    """Not allowed to access resource (403).

    Use when auth is valid but user lacks permission.
    """

    def __init__(self, message: str = "Access denied") -> None:
        super().__init__(
            code="FORBIDDEN",
            message=message,
            status_code=403,
        )


class AdminRequiredError(ForbiddenError):
    """Admin access required (403).

    Raised by the require_admin dependency when the profile lacks the admin flag.
    """

    def __init__(self) -> None:
        APIError.__init__(
            self,
            code="ADMIN_REQUIRED",
            message="Admin access required",
            status_code=403,
        )


class NotFoundError(APIError):
    """Resource not found (404)."""

    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        if resource_id:
            message = f"{resource} with id '{resource_id}' not found"
        else:
            message = f"{resource} not found"
        super().__init__(
            code="NOT_FOUND",
            message=message,
            status_code=404,
        )


class ConflictError(APIError):
    """Duplicate or conflicting resource (409).

    Accepts custom code for specific conflict types.
    """

    def __init__(
        self,
        code: str,
        message: str,
        details: list[dict] | None = None,
    ) -> None:
        super().__init__(
            code=code,
            message=message,
            status_code=409,
            details=details,
        )


class InsufficientCreditsError(APIError):
    """No credits left for an operation that needs the premium provider (402).

    This is the "upgrade required" response. It is only raised when the
    free provider cannot serve the request (e.g. vision-only operations).

    Args:
        balance: Current credit balance.
        operation: Operation kind the user attempted.
    """

    def __init__(self, balance: int, operation: str) -> None:
        super().__init__(
            code="INSUFFICIENT_CREDITS",
            message=(
                f"You have {balance} credits left. "
                "Purchase credits or upgrade your plan to continue."
            ),
            status_code=402,
            details=[{"credit_balance": balance, "operation": operation}],
        )


class CreditsUnavailableError(APIError):
    """Credit ledger storage failed (503).

    Distinct from InsufficientCreditsError: the user may simply retry.
    """

    def __init__(self) -> None:
        super().__init__(
            code="CREDITS_UNAVAILABLE",
            message="Credits are temporarily unavailable. Please try again.",
            status_code=503,
        )


class UnknownOperationError(APIError):
    """Operation kind not present in the credit cost table (500).

    A programming error at the call site. Raised before any storage call so
    an unknown operation can never be billed at a default cost of zero.

    Args:
        operation: The rejected operation value.
    """

    def __init__(self, operation: object) -> None:
        super().__init__(
            code="UNKNOWN_OPERATION",
            message=f"Unknown AI operation '{operation}'",
            status_code=500,
        )


class ProviderUnavailableError(APIError):
    """No AI provider could serve the request (503)."""

    def __init__(self, message: str = "AI provider is temporarily unavailable") -> None:
        super().__init__(
            code="AI_PROVIDER_UNAVAILABLE",
            message=message,
            status_code=503,
        )

