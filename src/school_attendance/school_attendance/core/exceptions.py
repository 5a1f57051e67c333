class DomainError(Exception):
    """Base exception for business rule violations.

    ``code`` is stable per subclass so delivery layers can tell
    "not found", "already recorded" and "not authorized" apart.
    """

    code = "domain_error"


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""

    code = "invalid"


class AuthorizationError(DomainError):
    """Raised when a user lacks the relationship required for an action."""

    code = "forbidden"


class NotFoundError(DomainError):
    """Raised when a referenced student/class/user/record/request does not exist."""

    code = "not_found"


class ConflictError(DomainError):
    """Raised on a uniqueness violation or an invalid state transition."""

    code = "conflict"
