class RateLimited(Exception):
    """Operation was rate limited by the server. Includes suggested wait time in milliseconds."""

    def __init__(self, retry_after_ms: int, message: str = "Rate limited") -> None:
        super().__init__(message)
        self.retry_after_ms = retry_after_ms


class TemporaryFailure(Exception):
    """Transient server or network failure. Retrying may succeed."""


class PermanentFailure(Exception):
    """Non-retriable failure due to invalid input or authorization issues."""


class NotFound(Exception):
    """Requested resource was not found."""


class ActionFailure(Exception):
    """A user-initiated playlist action could not be completed."""


class ResolutionFailure(ActionFailure):
    """The full track membership of a playlist could not be fetched."""


class SyncFailure(ActionFailure):
    """The remote resynchronization of an external playlist failed."""


class ExportFailure(ActionFailure):
    """The playlist track list could not be exported."""
