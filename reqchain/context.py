# context.py

import time
from typing import Optional

from reqchain.errors import DeadlineExceeded, ReqChainError, RunCancelled


class RunContext:
    """
    Shared cancel/deadline signal for a single run.

    Checks are cooperative: executors call done() between units of work and the
    transport bounds each call by remaining(). Nothing is interrupted forcibly.
    """

    def __init__(self, timeout: Optional[float] = None):
        self.deadline: Optional[float] = time.monotonic() + timeout if timeout is not None else None
        self._cancelled = False

    @classmethod
    def background(cls) -> 'RunContext':
        """A context that is never done unless cancelled."""
        return cls()

    def cancel(self):
        self._cancelled = True

    def done(self) -> bool:
        if self._cancelled:
            return True
        return self.deadline is not None and time.monotonic() >= self.deadline

    def error(self) -> Optional[ReqChainError]:
        """Returns the reason the context is done, or None while it is live."""
        if self._cancelled:
            return RunCancelled("run cancelled")
        if self.deadline is not None and time.monotonic() >= self.deadline:
            return DeadlineExceeded("run deadline exceeded")
        return None

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline (never negative), or None without a deadline."""
        if self.deadline is None:
            return None
        return max(self.deadline - time.monotonic(), 0.0)

    def raise_if_done(self):
        err = self.error()
        if err is not None:
            raise err
