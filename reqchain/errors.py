# errors.py
"""
Exception taxonomy for reqchain.

Every error raised by the engine derives from ReqChainError. Wrapping is done
with ``raise NewError(...) from cause`` so the original failure stays reachable
through ``__cause__``; use caused_by() to test for a class anywhere in that chain.
"""

from typing import Optional, Type


class ReqChainError(Exception):
    """Base class for all reqchain errors."""


# --- Configuration / structure ---
class ConfigInvalid(ReqChainError):
    """The run configuration failed validation."""


class UnknownDependency(ReqChainError):
    """A request depends on a name that does not exist."""


class CyclicDependency(ReqChainError):
    """The depends_on chain of a request loops back on itself."""


# --- Request building / transport ---
class RequestCreation(ReqChainError):
    """The request factory could not build a request."""


class RequestExecution(ReqChainError):
    """The HTTP client failed to execute a request."""


class InvalidMethod(ReqChainError):
    pass


class InvalidHeader(ReqChainError):
    pass


class InvalidBody(ReqChainError):
    pass


class InvalidURL(ReqChainError):
    pass


# --- Response handling / extraction ---
class NilResponse(ReqChainError):
    """No response (or no response body) was available for extraction."""


class ResponseTooLarge(ReqChainError):
    """The response body exceeds the maximum readable size."""


class ReadResponseBody(ReqChainError):
    """Reading the response body failed."""


class PathNotFound(ReqChainError):
    """An extraction path does not exist in the response body."""


class EmptyVariableName(ReqChainError):
    """A variable was stored with an empty name."""


class VariableExtraction(ReqChainError):
    """
    Extracting variables from an executed request failed.
    The request itself was sent, so the response status and the (unsuccessful,
    variable-free) ExecutionResult are kept for reporting.
    """

    def __init__(self, message: str, status_code: int = 0, result=None):
        super().__init__(message)
        self.status_code = status_code
        self.result = result


class RequestFailed(ReqChainError):
    """A named request failed inside a chain or batch run."""

    def __init__(self, request_name: str, message: str):
        super().__init__(f"request '{request_name}' failed: {message}")
        self.request_name = request_name


# --- Run context ---
class RunCancelled(ReqChainError):
    """The run context was cancelled."""


class DeadlineExceeded(ReqChainError):
    """The run context deadline passed."""


def caused_by(exc: Optional[BaseException], cls: Type[BaseException]) -> bool:
    """Returns True if exc, or any exception in its __cause__/__context__ chain, is an instance of cls."""
    seen = set()
    while exc is not None and id(exc) not in seen:
        if isinstance(exc, cls):
            return True
        seen.add(id(exc))
        exc = exc.__cause__ or exc.__context__
    return False
