"""
Publishing of confirmed requests with nonce-conflict retry.
"""
import logging
from typing import Optional

from .chain.base import ChainGateway
from .exceptions import SubmissionError, NonceRetryExhaustedError
from .models import DelegateRequest, PublishResult


class Publisher:
    """
    Submits a request's contract call from the relayer wallet.

    When the node reports the candidate nonce as used (or the replacement as
    underpriced) the next nonce is tried straight away, up to
    ``max_attempts`` submissions in total.
    """

    def __init__(
        self,
        chain: ChainGateway,
        max_attempts: int = 32,
        logger: Optional[logging.Logger] = None
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.chain = chain
        self.max_attempts = max_attempts
        self.logger = logger or logging.getLogger(__name__)

    def publish(self, request: DelegateRequest, candidate_nonce: int) -> PublishResult:
        """
        Publish a request starting at candidate_nonce.

        Args:
            request: Confirmed request to publish
            candidate_nonce: First nonce to try

        Returns:
            The transaction hash and the nonce that was accepted, which may
            be higher than candidate_nonce

        Raises:
            SubmissionError: For any failure other than a nonce conflict
            NonceRetryExhaustedError: If every attempt hit a nonce conflict
        """
        context = request.context
        nonce = candidate_nonce

        for attempt in range(1, self.max_attempts + 1):
            self.logger.debug(f"Publish attempt {attempt} for request {request.id} with nonce {nonce}")
            try:
                transaction_hash = self.chain.submit(
                    context.contract_address,
                    context.function_name,
                    list(context.function_args),
                    nonce
                )
            except SubmissionError as e:
                if not e.is_nonce_conflict:
                    raise
                self.logger.info(
                    f"Nonce {nonce} rejected for request {request.id} ({e.kind.value}); trying {nonce + 1}"
                )
                nonce += 1
                continue

            return PublishResult(transaction_hash=transaction_hash, nonce=nonce)

        raise NonceRetryExhaustedError(self.max_attempts, nonce - 1)
