"""Exception hierarchy for wizlan."""

from __future__ import annotations


class WizError(Exception):
    """Base class for every error raised by wizlan."""


class TransportError(WizError):
    """A unicast or broadcast exchange failed."""


class RequestTimeoutError(TransportError, TimeoutError):
    """No matching reply arrived before the deadline.

    Attributes:
        address: Target address of the request
        timeout: Timeout that elapsed, in seconds
    """

    def __init__(self, address: str, timeout: float) -> None:
        self.address = address
        self.timeout = timeout
        super().__init__(f"No reply from {address} within {timeout:.3f}s")


class RequestCancelledError(TransportError):
    """The caller fired the cancellation signal. Never retried."""

    def __init__(self, address: str | None = None) -> None:
        self.address = address
        target = f" to {address}" if address else ""
        super().__init__(f"Request{target} cancelled")


class TransportClosedError(TransportError):
    """The transport was shut down before or during the operation."""

    def __init__(self) -> None:
        super().__init__("UDP transport has been shut down")


class EmptyReplyError(TransportError):
    """The device answered with an empty payload."""

    def __init__(self, address: str) -> None:
        self.address = address
        super().__init__(f"Empty reply from {address}")


class RetriesExhaustedError(TransportError):
    """Every attempt failed with a transient error.

    Attributes:
        attempts: Number of attempts made
        last_error: Transient error raised by the final attempt
    """

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Command failed after {attempts} attempts: {last_error}")


class MalformedReplyError(WizError, ValueError):
    """Payload is not a command envelope.

    The receive loop absorbs this error: non-protocol traffic on the shared
    port is logged and dropped, and the enclosing timeout applies.
    """


class MissingAddressError(WizError, ValueError):
    """Target address was not provided."""

    def __init__(self, what: str = "target address") -> None:
        super().__init__(f"Device {what} is not set")


class DeviceReplyError(WizError):
    """The device answered with an ``error`` member instead of a result."""

    def __init__(self, method: str, code: int | None, message: str) -> None:
        self.method = method
        self.code = code
        self.message = message
        super().__init__(f"{method} failed with code {code}: {message}")
