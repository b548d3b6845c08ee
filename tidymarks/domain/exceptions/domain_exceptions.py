"""Domain-specific exceptions.

Only configuration errors and cancellation are meant to reach the top of an
analysis or execution run; everything else is caught at the smallest unit of
work (one batch, one item, one probe), logged, and skipped.
"""


class DomainException(Exception):
    """Base exception for all domain errors."""

    def __init__(self, message: str, details: dict | None = None) -> None:
        """Initialize domain exception.

        Args:
            message: Human-readable error message.
            details: Optional dictionary with additional error context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(DomainException):
    """Raised when the feature is disabled or credentials are missing."""

    pass


class ClassificationError(DomainException):
    """Raised when the remote classifier fails (network, auth, malformed reply)."""

    def __init__(self, message: str, kind: str = "network", details: dict | None = None) -> None:
        super().__init__(message, details)
        self.kind = kind


class StoreOperationError(DomainException):
    """Raised when a single bookmark store call fails."""

    def __init__(
        self,
        message: str,
        *,
        operation: str,
        bookmark_id: str | None = None,
        details: dict | None = None,
    ) -> None:
        super().__init__(message, details)
        self.operation = operation
        self.bookmark_id = bookmark_id


class OperationCancelledError(DomainException):
    """Raised when the user stops a run; a neutral outcome, not a failure."""

    pass


class ExternalConcurrentChangeError(DomainException):
    """Raised when an entry was moved by someone else while it was being classified."""

    def __init__(
        self,
        bookmark_id: str,
        *,
        expected_parent_id: str | None,
        actual_parent_id: str | None,
    ) -> None:
        super().__init__(
            f"Bookmark {bookmark_id} was moved externally during classification",
            {
                "bookmark_id": bookmark_id,
                "expected_parent_id": expected_parent_id,
                "actual_parent_id": actual_parent_id,
            },
        )
        self.bookmark_id = bookmark_id
        self.expected_parent_id = expected_parent_id
        self.actual_parent_id = actual_parent_id
