"""
Exceptions for the delegate relayer.
"""
import re
from enum import Enum
from typing import Any


class SubmissionErrorKind(str, Enum):
    """
    Closed set of outcomes a failed submission can be classified into.

    Only the first two are recoverable (by retrying with the next nonce).
    """
    NONCE_EXPIRED = "NONCE_EXPIRED"
    REPLACEMENT_UNDERPRICED = "REPLACEMENT_UNDERPRICED"
    INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"
    OTHER = "OTHER"


class RelayerError(Exception):
    """Base exception for delegate relayer errors."""
    pass


class ConfigError(RelayerError, ValueError):
    """Raised when the relayer configuration is invalid."""
    pass


class SubmissionError(RelayerError):
    """Raised by a chain gateway when submitting a contract call fails."""

    def __init__(self, message: str, kind: SubmissionErrorKind = SubmissionErrorKind.OTHER):
        self.kind = SubmissionErrorKind(kind)
        super().__init__(message)

    @property
    def is_nonce_conflict(self) -> bool:
        return self.kind in (
            SubmissionErrorKind.NONCE_EXPIRED,
            SubmissionErrorKind.REPLACEMENT_UNDERPRICED,
        )


class NonceRetryExhaustedError(SubmissionError):
    """Raised when every allowed publish attempt hit a nonce conflict."""

    def __init__(self, attempts: int, last_nonce: int):
        self.attempts = attempts
        self.last_nonce = last_nonce
        super().__init__(
            f"Gave up after {attempts} nonce conflicts (last nonce tried: {last_nonce})",
            SubmissionErrorKind.OTHER
        )


class ChainError(RelayerError):
    """Raised when reading chain state fails."""
    pass


class StoreError(RelayerError):
    """Base exception for request store errors."""
    pass


class RequestNotFoundError(StoreError):
    """Raised when a request id is not present in the store."""
    pass


class DuplicateRequestError(StoreError):
    """Raised when creating a request whose id already exists."""
    pass


class InvalidTransitionError(StoreError):
    """Raised when a status change is not allowed from the current status."""
    pass


class PassInProgressError(RelayerError):
    """Raised when another reconciliation pass holds the pass lock."""
    pass


# Node error messages, as reported by geth/erigon/anvil style JSON-RPC servers
_NONCE_EXPIRED_PATTERNS = (
    re.compile(r"nonce (is )?too low", re.IGNORECASE),
    re.compile(r"nonce has already been used", re.IGNORECASE),
)
_UNDERPRICED_PATTERNS = (
    re.compile(r"replacement transaction underpriced", re.IGNORECASE),
    re.compile(r"transaction gas price.*too low", re.IGNORECASE),
)
_INSUFFICIENT_FUNDS_PATTERNS = (
    re.compile(r"insufficient funds", re.IGNORECASE),
    re.compile(r"base fee exceeds gas limit", re.IGNORECASE),
)


def _error_message(exc: BaseException) -> str:
    """
    Extract the node's error message from an exception.

    web3 raises ValueError (or Web3RPCError) whose first argument is the
    JSON-RPC error object; fall back to the string form otherwise.
    """
    rpc_response: Any = getattr(exc, "rpc_response", None)
    if isinstance(rpc_response, dict) and isinstance(rpc_response.get("error"), dict):
        message = rpc_response["error"].get("message")
        if message:
            return str(message)

    if exc.args and isinstance(exc.args[0], dict):
        message = exc.args[0].get("message")
        if message:
            return str(message)

    return str(exc)


def classify_submission_error(exc: BaseException) -> SubmissionErrorKind:
    """
    Map a raw submission failure to a SubmissionErrorKind.

    Args:
        exc: Exception raised while building, signing or sending a transaction

    Returns:
        The matching kind, OTHER when the message is not recognised
    """
    if isinstance(exc, SubmissionError):
        return exc.kind

    message = _error_message(exc)
    if any(p.search(message) for p in _NONCE_EXPIRED_PATTERNS):
        return SubmissionErrorKind.NONCE_EXPIRED
    if any(p.search(message) for p in _UNDERPRICED_PATTERNS):
        return SubmissionErrorKind.REPLACEMENT_UNDERPRICED
    if any(p.search(message) for p in _INSUFFICIENT_FUNDS_PATTERNS):
        return SubmissionErrorKind.INSUFFICIENT_FUNDS
    return SubmissionErrorKind.OTHER


def to_submission_error(exc: BaseException) -> SubmissionError:
    """Wrap any exception into a classified SubmissionError."""
    if isinstance(exc, SubmissionError):
        return exc
    return SubmissionError(_error_message(exc), classify_submission_error(exc))
