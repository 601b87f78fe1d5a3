"""Error types raised by the synchronisation layer.

Every failure leaving a collection client, view or service is one of these.
``to_dict`` renders the envelope a UI turns into a transient notice.
"""

from __future__ import annotations


class CircleSyncError(Exception):
    """Base class carrying a human-readable ``message``."""

    code = "ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": {"code": self.code, "message": self.message}}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(message={self.message!r})"


class ValidationError(CircleSyncError):
    """Rejected input; raised before any remote call is made."""

    code = "VALIDATION"

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field

    def to_dict(self) -> dict:
        payload = super().to_dict()
        if self.field is not None:
            payload["error"]["field"] = self.field
        return payload


class AuthError(CircleSyncError):
    """No authenticated identity, or the identity lacks the required role."""

    code = "AUTH"


class RemoteErrorKind:
    NETWORK = "network"
    DENIED = "denied"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"


class RemoteError(CircleSyncError):
    """A remote store operation failed. No retry is attempted."""

    code = "REMOTE"

    def __init__(
        self,
        kind: str,
        message: str,
        status: int | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.status = status

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["error"]["kind"] = self.kind
        return payload

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(kind={self.kind!r}, "
            f"status={self.status}, message={self.message!r})"
        )


class PartialWriteError(RemoteError):
    """A multi-step write sequence stopped after some steps were applied.

    ``completed_steps`` lists the steps that reached the store, in order;
    ``failed_step`` names the one that raised.  Nothing is rolled back.
    """

    code = "PARTIAL_WRITE"

    def __init__(
        self,
        cause: RemoteError,
        completed_steps: list[str],
        failed_step: str,
    ) -> None:
        super().__init__(
            cause.kind,
            f"{failed_step} failed after {', '.join(completed_steps)}: "
            f"{cause.message}",
            status=cause.status,
        )
        self.cause = cause
        self.completed_steps = list(completed_steps)
        self.failed_step = failed_step

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["error"]["completed_steps"] = self.completed_steps
        payload["error"]["failed_step"] = self.failed_step
        return payload


class DispatchError(CircleSyncError):
    """A notification could not be delivered. Logged, never surfaced."""

    code = "DISPATCH"
