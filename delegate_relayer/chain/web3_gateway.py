"""
Web3-backed chain gateway for the relayer wallet.
"""
import logging
from collections.abc import Mapping
from typing import Dict, Any, Optional, List

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry
from web3 import Web3
from web3.exceptions import TransactionNotFound
from eth_account import Account
from eth_account.signers.local import LocalAccount

from .base import ChainGateway
from ..config import RelayerConfig
from ..exceptions import ChainError, ConfigError, to_submission_error
from ..models import ChainReceipt

logger = logging.getLogger(__name__)


def _to_plain(value: Any) -> Any:
    """
    Convert web3 return values to JSON-friendly Python values.

    HexBytes become 0x-prefixed strings, AttributeDicts become dicts.
    """
    if isinstance(value, (bytes, bytearray)):
        return Web3.to_hex(bytes(value))
    if isinstance(value, Mapping):
        return {key: _to_plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_plain(item) for item in value]
    return value


class Web3ChainGateway(ChainGateway):
    """
    Chain gateway that talks JSON-RPC through web3 and signs locally.

    The relayer wallet's private key never leaves the process: transactions
    are built with the contract ABI, signed with eth_account and sent raw.
    """

    def __init__(
        self,
        rpc_url: str,
        private_key: str,
        contract_abi: List[Dict[str, Any]],
        timeout: int = 30,
        retry_count: int = 3,
        w3: Optional[Web3] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the gateway

        Args:
            rpc_url: Ethereum RPC endpoint URL
            private_key: Relayer wallet private key
            contract_abi: ABI of the contracts requests call into
            timeout: Timeout for RPC requests in seconds
            retry_count: Number of retries for failed RPC HTTP requests
            w3: Pre-built Web3 instance (skips provider setup)
            logger: Optional logger instance
        """
        if not private_key:
            raise ConfigError("A relayer private key is required")

        self.rpc_url = rpc_url
        self.contract_abi = contract_abi
        self.logger = logger or logging.getLogger(__name__)
        self.account: LocalAccount = Account.from_key(private_key)

        if w3 is None:
            # Setup HTTP session with retries
            session = requests.Session()
            retries = Retry(
                total=retry_count,
                backoff_factor=0.5,
                status_forcelist=[500, 502, 503, 504],
                allowed_methods=["POST"],
                raise_on_status=False,
                connect=retry_count,
                read=retry_count,
            )
            session.mount("http://", HTTPAdapter(max_retries=retries))
            session.mount("https://", HTTPAdapter(max_retries=retries))
            w3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": timeout}, session=session))
        self.w3 = w3

    @classmethod
    def from_config(cls, config: RelayerConfig, **kwargs) -> "Web3ChainGateway":
        """Create a gateway from relayer configuration"""
        if not config.private_key:
            raise ConfigError("private_key must be configured to run the relayer")
        return cls(
            rpc_url=config.rpc_url,
            private_key=config.private_key,
            contract_abi=config.load_contract_abi(),
            timeout=config.rpc_timeout,
            retry_count=config.rpc_retry_count,
            **kwargs
        )

    @property
    def address(self) -> str:
        return self.account.address

    def get_pending_nonce(self, address: str) -> int:
        try:
            return int(self.w3.eth.get_transaction_count(address, "pending"))
        except Exception as e:
            raise ChainError(f"Failed to get transaction count for {address}: {e}") from e

    def get_receipt(self, transaction_hash: str) -> Optional[ChainReceipt]:
        try:
            receipt = self.w3.eth.get_transaction_receipt(transaction_hash)
        except TransactionNotFound:
            return None
        except Exception as e:
            raise ChainError(f"Failed to get receipt for {transaction_hash}: {e}") from e

        if receipt is None:
            return None

        try:
            latest_block = int(self.w3.eth.block_number)
        except Exception as e:
            raise ChainError(f"Failed to get latest block number: {e}") from e

        receipt_dict = _to_plain(receipt)
        receipt_dict["confirmations"] = max(0, latest_block - int(receipt_dict["blockNumber"]) + 1)
        return ChainReceipt.model_validate(receipt_dict)

    def get_transaction(self, transaction_hash: str) -> Dict[str, Any]:
        try:
            transaction = self.w3.eth.get_transaction(transaction_hash)
        except Exception as e:
            raise ChainError(f"Failed to get transaction {transaction_hash}: {e}") from e

        transaction_dict = _to_plain(transaction)
        transaction_dict["nonce"] = int(transaction_dict["nonce"])
        return transaction_dict

    def submit(
        self,
        contract_address: str,
        function_name: str,
        arguments: List[Any],
        nonce: int
    ) -> str:
        try:
            contract = self.w3.eth.contract(
                address=Web3.to_checksum_address(contract_address),
                abi=self.contract_abi
            )
            tx = contract.functions[function_name](*arguments).build_transaction({
                'from': self.account.address,
                'nonce': nonce,
            })
            signed_tx = self.account.sign_transaction(tx)
            tx_hash = self.w3.eth.send_raw_transaction(signed_tx.raw_transaction)
        except Exception as e:
            error = to_submission_error(e)
            self.logger.warning(
                f"Submission of {function_name} to {contract_address} with nonce {nonce} "
                f"failed ({error.kind.value}): {error}"
            )
            raise error from e

        tx_hash_hex = Web3.to_hex(tx_hash)
        self.logger.info(f"Transaction sent: {tx_hash_hex} (nonce={nonce})")
        return tx_hash_hex
