"""
Chain access interface used by the reconciler.

This module defines what the relayer needs from a blockchain node: reads of
the relayer wallet's nonce, receipts and transactions, and a way to submit
contract calls signed by the relayer wallet.
"""
from abc import ABC, abstractmethod
from typing import Dict, Any, Optional, List

from ..models import ChainReceipt


class ChainGateway(ABC):
    """
    Abstract base class for chain gateways.

    Read methods raise on failure and the error aborts the pass. ``submit``
    must raise SubmissionError (never anything else) so callers can branch on
    its kind.
    """

    @property
    @abstractmethod
    def address(self) -> str:
        """Address of the relayer wallet"""
        pass

    @abstractmethod
    def get_pending_nonce(self, address: str) -> int:
        """
        Get the transaction count of an address, including pending transactions.

        Args:
            address: Account address

        Returns:
            Next nonce the node would accept from this address
        """
        pass

    @abstractmethod
    def get_receipt(self, transaction_hash: str) -> Optional[ChainReceipt]:
        """
        Get the receipt of a transaction with its confirmation count.

        Returns:
            ChainReceipt, or None if the transaction is not mined yet
        """
        pass

    @abstractmethod
    def get_transaction(self, transaction_hash: str) -> Dict[str, Any]:
        """
        Get a transaction by hash.

        Returns:
            Transaction fields, always including "nonce"
        """
        pass

    @abstractmethod
    def submit(
        self,
        contract_address: str,
        function_name: str,
        arguments: List[Any],
        nonce: int
    ) -> str:
        """
        Sign and broadcast a contract call from the relayer wallet.

        Args:
            contract_address: Target contract
            function_name: Contract function to call
            arguments: Positional arguments for the function
            nonce: Nonce to use for the transaction

        Returns:
            Transaction hash as a 0x-prefixed hex string

        Raises:
            SubmissionError: With kind NONCE_EXPIRED, REPLACEMENT_UNDERPRICED,
                INSUFFICIENT_FUNDS or OTHER
        """
        pass
