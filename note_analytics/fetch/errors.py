"""Errors raised by the fetch layer."""


class FetchFailedError(Exception):
    """Raised when any page of a paginated fetch fails.

    The whole fetch is aborted; records accumulated from earlier pages are
    discarded, so callers never see a partial snapshot.
    """

    def __init__(self, page: int, status: int, message: str | None = None) -> None:
        """Initialize the error.

        Args:
            page: Page number that failed (1-based).
            status: Upstream HTTP status, or 0 for transport failures.
            message: Optional detail.
        """
        self.page = page
        self.status = status
        self.detail = message
        text = f"Fetch failed on page {page} (status {status})"
        if message:
            text = f"{text}: {message}"
        super().__init__(text)

    def to_dict(self) -> dict[str, str | int | None]:
        """Convert error to dictionary for logging/serialization."""
        return {"page": self.page, "status": self.status, "detail": self.detail}
