"""
Data models for the delegate relayer.
"""
from dataclasses import dataclass
from datetime import datetime
from enum import IntEnum
from typing import Dict, Any, Optional, List

from pydantic import BaseModel, Field


class RequestStatus(IntEnum):
    """Lifecycle of a delegated transaction request (persisted as integers)"""
    NEW = 0  # requested, waiting for external confirmation
    CONFIRMED = 1  # ready to be published by the next pass
    MINING = 2  # submitted, waiting for enough confirmations
    MINED = 3  # mined, successfully or with a reverted status
    FAILED = 4  # could not be published

    @property
    def is_terminal(self) -> bool:
        return self in (RequestStatus.MINED, RequestStatus.FAILED)


BACKLOG_STATUSES = (RequestStatus.CONFIRMED, RequestStatus.MINING, RequestStatus.MINED)


class DelegateContext(BaseModel):
    """The contract call a request asks the relayer to make"""
    contract_address: str = Field(..., alias="contractAddress")
    function_name: str = Field(..., alias="functionName")
    function_args: List[Any] = Field(default_factory=list, alias="functionArgs")
    expires_at: Optional[int] = Field(None, alias="expiresAt")

    class Config:
        populate_by_name = True


class DelegateRequest(BaseModel):
    """A persisted delegated transaction request"""
    id: str
    seq: int = 0
    status: RequestStatus = RequestStatus.NEW
    signer: str
    context: DelegateContext
    fee: Optional[Any] = None
    signature_options: Optional[Dict[str, Any]] = Field(None, alias="signatureOptions")
    nonce: Optional[int] = None
    transaction_hash: Optional[str] = Field(None, alias="transactionHash")
    tx_receipt: Optional[Dict[str, Any]] = Field(None, alias="txReceipt")
    reason: Optional[str] = None
    created_at: datetime = Field(..., alias="createdAt")
    expires_at: datetime = Field(..., alias="expiresAt")

    class Config:
        populate_by_name = True

    def to_document(self) -> Dict[str, Any]:
        """Serialize to the JSON document shape used by stores"""
        return self.model_dump(mode="json", by_alias=True)


class ChainReceipt(BaseModel):
    """Transaction receipt from the blockchain, with plain numeric fields"""
    transaction_hash: str = Field(..., alias="transactionHash")
    block_number: int = Field(..., alias="blockNumber")
    block_hash: str = Field(..., alias="blockHash")
    status: int
    gas_used: int = Field(..., alias="gasUsed")
    cumulative_gas_used: int = Field(0, alias="cumulativeGasUsed")
    effective_gas_price: Optional[int] = Field(None, alias="effectiveGasPrice")
    from_address: Optional[str] = Field(None, alias="from")
    to_address: Optional[str] = Field(None, alias="to")
    contract_address: Optional[str] = Field(None, alias="contractAddress")
    logs: List[Dict[str, Any]] = Field(default_factory=list)
    confirmations: int = 0

    class Config:
        populate_by_name = True

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class PublishResult(BaseModel):
    """Outcome of a successful publish: the hash and the nonce that was accepted"""
    transaction_hash: str = Field(..., alias="transactionHash")
    nonce: int

    class Config:
        populate_by_name = True


@dataclass
class PassReport:
    """
    Summary of one reconciliation pass.

    Attributes:
        starting_nonce: Cursor value the pass started from
        next_nonce: Cursor value after the last request was processed
        processed: Number of backlog entries examined
        published: Requests moved from confirmed to mining
        mined: Requests moved from mining to mined
        failed: Requests moved from confirmed to failed
        skipped: Entries with a status the pass does not handle
    """
    starting_nonce: int
    next_nonce: int = 0
    processed: int = 0
    published: int = 0
    mined: int = 0
    failed: int = 0
    skipped: int = 0
