"""Error taxonomy shared by repositories, pipelines and store adapters."""


class BlastError(Exception):
    """Base class for all application errors."""

    pass


class AuthenticationRequired(BlastError):
    """Raised when a mutating call has no signed-in user."""

    pass


class InvalidReference(BlastError):
    """Raised for a malformed URL or storage path."""

    pass


class NotFound(BlastError):
    """Raised when a referenced document or blob does not exist."""

    pass


class TransientIO(BlastError):
    """Raised when a single store or network call fails."""

    pass


class PermanentIO(BlastError):
    """Raised when a bounded retry budget is exhausted."""

    def __init__(self, message: str, attempts: int) -> None:
        super().__init__(message)
        self.attempts = attempts


class InvalidTransition(BlastError):
    """Raised when a change status transition is not allowed."""

    pass


class ConcurrencyConflict(BlastError):
    """Raised when a write's expected document version no longer matches."""

    def __init__(self, message: str, expected: int | None = None, actual: int | None = None) -> None:
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class NotAuthorized(BlastError):
    """Raised when the signed-in user may not review a change."""

    pass
