"""
Application-level exceptions.

Domain errors raised by the ledger client, fetcher and batch worker, plus
ErrorDescriptor, the serializable form attached to failed per-wallet results.
Request and configuration errors surface to the caller before any fetch
begins; per-address failures are converted into descriptors and never abort
sibling work.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


class EagleEyeError(Exception):
    """Base class for all pipeline errors. `code` is stable for API responses."""

    code = "EAGLE_EYE_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidAddress(EagleEyeError, ValueError):
    """Address is not 0x followed by exactly 64 hex characters. Never reaches the network."""

    code = "INVALID_ADDRESS"

    def __init__(self, address: str, reason: str | None = None) -> None:
        self.address = address
        detail = reason or "must be 0x followed by exactly 64 hexadecimal characters"
        super().__init__(f"Invalid address {address!r}: {detail}")


class InvalidRequest(EagleEyeError, ValueError):
    """Missing or empty address list, or malformed request parameters."""

    code = "INVALID_REQUEST"


class InvalidConfiguration(EagleEyeError, ValueError):
    """Client or batch configuration cannot be used (bad URL, negative TTL, ...)."""

    code = "INVALID_CONFIGURATION"


class RemoteUnavailable(EagleEyeError):
    """Network error, timeout or 5xx response after all retries were exhausted."""

    code = "REMOTE_UNAVAILABLE"

    def __init__(self, message: str, last_error: BaseException | None = None, attempts: int = 0) -> None:
        super().__init__(message)
        self.last_error = last_error
        self.attempts = attempts


class RemoteRejected(EagleEyeError):
    """Remote API refused the request (4xx other than 429, or an unreadable body)."""

    code = "REMOTE_REJECTED"

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class PartialBatchFailure(EagleEyeError):
    """
    Some addresses in a batch failed while others succeeded.

    Not raised by the batch worker; attached to the batch result as a
    descriptor so callers can tell a partial run from a clean one.
    """

    code = "PARTIAL_BATCH_FAILURE"

    def __init__(self, failed: int, total: int) -> None:
        super().__init__(f"{failed} of {total} address analyses failed")
        self.failed = failed
        self.total = total


@dataclass(frozen=True)
class ErrorDescriptor:
    """Serializable error attached to a failed WalletAnalysisResult or batch result."""

    kind: str
    message: str

    @classmethod
    def from_exception(cls, exc: BaseException) -> "ErrorDescriptor":
        if isinstance(exc, EagleEyeError):
            return cls(kind=type(exc).__name__, message=exc.message)
        return cls(kind=type(exc).__name__, message=str(exc) or type(exc).__name__)

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "message": self.message}
