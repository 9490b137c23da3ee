from __future__ import annotations


class CompletionServiceError(RuntimeError):
    """Raised when the completion service cannot produce text."""

    def __init__(self, message: str, *, upstream_status: int | None = None):
        super().__init__(message)
        self.upstream_status = upstream_status

    @property
    def rate_limited(self) -> bool:
        return self.upstream_status == 429
