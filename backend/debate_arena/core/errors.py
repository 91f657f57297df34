"""Error taxonomy shared by the debate services and the HTTP layer.

Every error a transition can raise is a ``DebateError``; the API maps the
``status_code`` and ``retryable`` attributes straight onto the response.
Judge failures sit outside this hierarchy: the scoring
adapter recovers from them and they never reach a caller.
"""

from fastapi import status


class DebateError(Exception):
    status_code: int = status.HTTP_400_BAD_REQUEST
    retryable: bool = False

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class InvalidIntent(DebateError):
    """Malformed input: empty or over-length text, missing statement, bad limits."""

    status_code = status.HTTP_400_BAD_REQUEST


class PreconditionFailed(DebateError):
    """The intent does not apply to the debate's current state."""

    status_code = status.HTTP_409_CONFLICT


class PermissionDenied(DebateError):
    status_code = status.HTTP_403_FORBIDDEN


class DebateNotFound(DebateError):
    status_code = status.HTTP_404_NOT_FOUND


class JoinRequestNotFound(DebateError):
    status_code = status.HTTP_404_NOT_FOUND


class ConcurrencyConflict(DebateError):
    """The debate changed between read and commit. Re-read and decide again."""

    status_code = status.HTTP_409_CONFLICT
    retryable = True


class StoreUnavailable(DebateError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    retryable = True


class JudgeError(Exception):
    """The external judge failed: network, timeout, quota or a malformed reply."""
