"""
Pytest fixtures for the delegate relayer tests.
"""
import pytest
from typing import Dict, Any, Optional, List, Set

from delegate_relayer._rate_limited_log import reset_rate_limited_log
from delegate_relayer.chain.base import ChainGateway
from delegate_relayer.config import RelayerConfig
from delegate_relayer.exceptions import SubmissionError, SubmissionErrorKind
from delegate_relayer.models import ChainReceipt, DelegateContext, RequestStatus
from delegate_relayer.store.memory_store import MemoryRequestStore

# Constants for testing
RELAYER_ADDRESS = "0x2c7536E3605D9C16a7a3D7b1898e529396a65c23"
SIGNER_ADDRESS = "0x1234567890123456789012345678901234567890"
TEST_CONTRACT = "0x5FbDB2315678afecb367f032d93F642f64180aa3"
TEST_PRIV_KEY = "0x0123456789abcdef0123456789abcdef0123456789abcdef0123456789abcdef"


class FakeChain(ChainGateway):
    """
    Chain gateway double that models the relayer wallet's nonce space.

    Submitting with a nonce that is already used raises NONCE_EXPIRED, and
    calls to functions listed in ``failing_functions`` raise the given error.
    """

    def __init__(self, pending_nonce: int = 0):
        self.pending_nonce = pending_nonce
        self.used_nonces: Set[int] = set()
        self.receipts: Dict[str, Optional[ChainReceipt]] = {}
        self.transactions: Dict[str, Dict[str, Any]] = {}
        self.failing_functions: Dict[str, SubmissionError] = {}
        self.submissions: List[Dict[str, Any]] = []
        self.pending_nonce_calls = 0

    @property
    def address(self) -> str:
        return RELAYER_ADDRESS

    def get_pending_nonce(self, address: str) -> int:
        self.pending_nonce_calls += 1
        return self.pending_nonce

    def get_receipt(self, transaction_hash: str) -> Optional[ChainReceipt]:
        return self.receipts.get(transaction_hash)

    def get_transaction(self, transaction_hash: str) -> Dict[str, Any]:
        return self.transactions[transaction_hash]

    def submit(self, contract_address, function_name, arguments, nonce) -> str:
        self.submissions.append({
            "contract_address": contract_address,
            "function_name": function_name,
            "arguments": arguments,
            "nonce": nonce,
        })
        if function_name in self.failing_functions:
            raise self.failing_functions[function_name]
        if nonce in self.used_nonces:
            raise SubmissionError("nonce too low", SubmissionErrorKind.NONCE_EXPIRED)
        self.used_nonces.add(nonce)
        return "0x" + format(nonce, "064x")


def make_receipt(transaction_hash: str, confirmations: int, block_number: int = 100) -> ChainReceipt:
    """Build a realistic receipt for a transaction"""
    return ChainReceipt(
        transactionHash=transaction_hash,
        blockNumber=block_number,
        blockHash="0x" + "ab" * 32,
        status=1,
        gasUsed=85000,
        cumulativeGasUsed=210000,
        effectiveGasPrice=1000000000,
        **{"from": RELAYER_ADDRESS, "to": TEST_CONTRACT},
        logs=[],
        confirmations=confirmations,
    )


@pytest.fixture(autouse=True)
def _reset_rate_limited_log():
    """Every test starts with no suppressed log messages"""
    reset_rate_limited_log()
    yield
    reset_rate_limited_log()


@pytest.fixture
def config():
    """Config with the confirmation threshold used in the scenarios"""
    return RelayerConfig(required_confirmations=3, max_publish_attempts=8)


@pytest.fixture
def store():
    return MemoryRequestStore()


@pytest.fixture
def chain():
    return FakeChain(pending_nonce=10)


@pytest.fixture
def receipt_factory():
    return make_receipt


@pytest.fixture
def context_factory():
    def _make(function_name: str = "transfer", args: Optional[List[Any]] = None, expires_at: Optional[int] = None):
        return DelegateContext(
            contractAddress=TEST_CONTRACT,
            functionName=function_name,
            functionArgs=args if args is not None else [SIGNER_ADDRESS, 1000],
            expiresAt=expires_at,
        )
    return _make


@pytest.fixture
def add_request(store, context_factory):
    """
    Insert a request and move it straight to the given state.

    Returns the stored request.
    """
    def _add(
        request_id: str,
        status: RequestStatus = RequestStatus.CONFIRMED,
        nonce: Optional[int] = None,
        transaction_hash: Optional[str] = None,
        function_name: str = "transfer"
    ):
        store.create(request_id, SIGNER_ADDRESS, context_factory(function_name))
        fields: Dict[str, Any] = {"status": status}
        if nonce is not None:
            fields["nonce"] = nonce
        if transaction_hash is not None:
            fields["transaction_hash"] = transaction_hash
        if status == RequestStatus.NEW and len(fields) == 1:
            return store.find_one(request_id)
        return store.update_status(request_id, fields)
    return _add
