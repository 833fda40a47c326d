"""Exceptions raised by the selection engine and session manager.

The hierarchy lets callers tell apart the cases a user can act on:
- NotFound: the session or word does not exist for this user
- InsufficientContent: the user has no eligible words for a new session
- StoreUnavailable: the word store or cache backend failed; retry later
- InvalidRequest: malformed selection or update arguments
"""


class LexisError(Exception):
    """Base exception for all Lexis errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional error context.
    """

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        """Return string representation with details if available."""
        if self.details:
            return f"{self.message} - Details: {self.details}"
        return self.message


class NotFound(LexisError):
    """A session or word reference doesn't exist or belongs to another user."""


class InsufficientContent(LexisError):
    """Selection produced no usable words for a new session."""


class StoreUnavailable(LexisError):
    """The word store or cache backend failed or timed out.

    Attributes:
        original_error: The underlying exception, if any.
    """

    retryable = True

    def __init__(
        self,
        message: str,
        original_error: Exception | None = None,
        details: dict | None = None,
    ):
        self.original_error = original_error
        super().__init__(message, details)

    def __str__(self) -> str:
        base = super().__str__()
        if self.original_error:
            return f"{base}: {self.original_error}"
        return base


class InvalidRequest(LexisError, ValueError):
    """Malformed selection request, filter or update."""
