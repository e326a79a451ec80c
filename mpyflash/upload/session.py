"""Per-upload session state and cooperative abort."""

import threading
from dataclasses import dataclass, field

from mpyflash.errors import UploadError


class AbortToken:
    """Thread-safe abort flag.

    Setting the token never interrupts a running tool; the orchestrator
    checks it before starting each new step.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def abort(self) -> None:
        self._event.set()

    @property
    def aborted(self) -> bool:
        return self._event.is_set()


@dataclass
class UploadSession:
    """State for a single upload invocation.

    Attributes:
        token: Abort token shared with whoever may cancel the upload.
        last_error: Error that terminated the session, if any.
    """

    token: AbortToken = field(default_factory=AbortToken)
    last_error: UploadError | None = None

    def abort(self) -> None:
        """Request the session to stop at the next poll point."""
        self.token.abort()

    @property
    def aborted(self) -> bool:
        return self.token.aborted


__all__ = ["AbortToken", "UploadSession"]
