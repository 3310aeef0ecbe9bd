"""
Error taxonomy for generative model invocations.

Failures are either transient (the remote service is overloaded and the call
may be retried) or fatal (everything else, propagated untouched).
"""

from typing import Any

OVERLOAD_STATUS: int = 503
OVERLOAD_MARKERS: tuple[str, ...] = ("503", "overloaded", "service unavailable")


class InvocationError(Exception):
    """Base class for errors raised by the resilient invoker"""


class EmptyOutputError(InvocationError):
    """The model answered but produced no usable output"""


class CandidatesExhaustedError(InvocationError):
    """Every candidate model stayed overloaded for all of its attempts"""

    def __init__(self, message: str, last_error: BaseException | None = None, attempts: int = 0) -> None:
        super().__init__(message)
        self.last_error: BaseException | None = last_error
        self.attempts: int = attempts


class InvocationCancelledError(InvocationError):
    """The caller signalled cancellation while the invocation was suspended"""


def _as_status(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    # ollama uses -1 for "no status"
    if isinstance(value, int) and 100 <= value <= 599:
        return value
    return None


def structured_status(error: BaseException) -> int | None:
    """Return an HTTP-style status code carried by the error, if any.

    Looks at `status_code`, `status` and `code` on the error itself and then on
    an attached `response` object (openai, httpx and ollama errors all expose
    one of these).
    """
    for source in (error, getattr(error, "response", None)):
        if source is None:
            continue
        for attr in ("status_code", "status", "code"):
            status: int | None = _as_status(getattr(source, attr, None))
            if status is not None:
                return status
    return None


def is_transient_error(error: BaseException) -> bool:
    """True iff the error signals service overload and the call may be retried.

    A valid HTTP status on the error decides on its own: only 503 is transient,
    so a 529 or a 500 is fatal even when its message says "overloaded". The
    message markers are consulted only for errors without such a status.
    """
    if isinstance(error, InvocationError):
        return False

    status: int | None = structured_status(error)
    if status is not None:
        return status == OVERLOAD_STATUS

    message: str = str(error).lower()
    return any(marker in message for marker in OVERLOAD_MARKERS)
