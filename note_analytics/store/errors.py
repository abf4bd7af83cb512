"""Domain exceptions for the analytics store.

Infrastructure errors (database issues) are separated from domain errors
(identity and business rule violations).
"""


class StateStoreError(Exception):
    """Base exception for all analytics store errors."""


class ConnectionError(StateStoreError):  # noqa: A001
    """Raised when the database connection is not established."""

    def __init__(self, message: str = "Database not connected") -> None:
        """Initialize the connection error.

        Args:
            message: Human-readable error message.
        """
        super().__init__(message)


class IdentityConflictError(StateStoreError):
    """Raised when identity resolution is ambiguous or inconsistent.

    Two distinct upstream identities must never collapse into one stored
    article, so this is a hard error rather than a merge.
    """

    def __init__(self, message: str, candidates: list[int] | None = None) -> None:
        """Initialize the conflict error.

        Args:
            message: Human-readable error message.
            candidates: Internal ids involved in the conflict.
        """
        self.candidates = candidates or []
        super().__init__(message)


class AmbiguousTitleError(StateStoreError):
    """Raised when a keyless import row's title matches several articles.

    The row cannot be attributed, so it is reported and the rest of the
    import continues.
    """

    def __init__(self, title: str, candidates: list[int]) -> None:
        """Initialize the error.

        Args:
            title: The title that matched more than one article.
            candidates: Internal ids of the matching articles.
        """
        self.title = title
        self.candidates = candidates
        super().__init__(f"Title {title!r} matches {len(candidates)} articles")


class RunNotFoundError(StateStoreError):
    """Raised when a requested operation run record is not found."""

    def __init__(self, run_id: str) -> None:
        """Initialize the error with the missing run ID.

        Args:
            run_id: The run ID that was not found.
        """
        self.run_id = run_id
        super().__init__(f"Run not found: {run_id}")


class MigrationError(StateStoreError):
    """Raised when a schema migration fails."""

    def __init__(self, version: int, message: str) -> None:
        """Initialize the migration error.

        Args:
            version: The migration version that failed.
            message: Human-readable error message.
        """
        self.version = version
        super().__init__(f"Migration {version} failed: {message}")
