"""
Starting nonce resolution for reconciliation passes.
"""
import logging
from typing import Optional

from .chain.base import ChainGateway
from .models import DelegateRequest


class NonceTracker:
    """Determines the nonce a pass starts handing out from"""

    def __init__(
        self,
        chain: ChainGateway,
        address: Optional[str] = None,
        logger: Optional[logging.Logger] = None
    ):
        self.chain = chain
        self.address = address or chain.address
        self.logger = logger or logging.getLogger(__name__)

    def resolve_starting_nonce(self, last_mined_request: Optional[DelegateRequest]) -> int:
        """
        Resolve the first nonce a pass should use.

        With nothing mined yet the chain's pending transaction count is the
        only source of truth; after that the last mined request's nonce is.

        Args:
            last_mined_request: Most recent MINED request, or None

        Returns:
            Starting nonce for the pass
        """
        if last_mined_request is None or last_mined_request.nonce is None:
            nonce = self.chain.get_pending_nonce(self.address)
            self.logger.info(f"No mined requests; starting from chain nonce {nonce} for {self.address}")
            return nonce

        nonce = last_mined_request.nonce + 1
        self.logger.debug(f"Resuming after mined request {last_mined_request.id} at nonce {nonce}")
        return nonce
