"""
Delegate relayer - publishes pre-authorized contract calls from one relayer
wallet, keeping its nonce sequence consistent with the chain.
"""
from .version import __version__
from .config import RelayerConfig
from .exceptions import (
    RelayerError, ConfigError, SubmissionError, SubmissionErrorKind,
    NonceRetryExhaustedError, ChainError, StoreError, RequestNotFoundError,
    DuplicateRequestError, InvalidTransitionError, PassInProgressError,
    classify_submission_error,
)
from .models import (
    RequestStatus, DelegateContext, DelegateRequest, ChainReceipt,
    PublishResult, PassReport,
)
from .chain import ChainGateway, Web3ChainGateway
from .store import RequestStore, JsonRequestStore, MemoryRequestStore
from .nonce import NonceTracker
from .publisher import Publisher
from .reconciler import Reconciler, INSUFFICIENT_FUNDS_REASON

__all__ = [
    "__version__",
    "RelayerConfig",
    "RelayerError",
    "ConfigError",
    "SubmissionError",
    "SubmissionErrorKind",
    "NonceRetryExhaustedError",
    "ChainError",
    "StoreError",
    "RequestNotFoundError",
    "DuplicateRequestError",
    "InvalidTransitionError",
    "PassInProgressError",
    "classify_submission_error",
    "RequestStatus",
    "DelegateContext",
    "DelegateRequest",
    "ChainReceipt",
    "PublishResult",
    "PassReport",
    "ChainGateway",
    "Web3ChainGateway",
    "RequestStore",
    "JsonRequestStore",
    "MemoryRequestStore",
    "NonceTracker",
    "Publisher",
    "Reconciler",
    "INSUFFICIENT_FUNDS_REASON",
]
