"""
Reconciliation of persisted requests with chain state.

One pass walks the backlog in natural order with a running nonce cursor:

    [mined ] -> [mined ] -> [mining] -> [mining] -> [confirmed] -> [confirmed]
    [nonce 3]   [nonce 4]   [nonce 5]   [nonce 6]   [nonce ?  ]    [nonce ?  ]

Mined entries move the cursor past their nonce, mining entries are checked
for enough confirmations, and confirmed entries are published with the
cursor. A pass must never run concurrently with another pass.
"""
import logging
from typing import Optional

from ._rate_limited_log import rate_limited_log
from .chain.base import ChainGateway
from .config import RelayerConfig
from .exceptions import SubmissionError, SubmissionErrorKind
from .models import DelegateRequest, RequestStatus, PassReport, BACKLOG_STATUSES
from .nonce import NonceTracker
from .publisher import Publisher
from .store.base import RequestStore

INSUFFICIENT_FUNDS_REASON = "Delegate account has no Ether on its balance"
PUBLISH_ERROR_PREFIX = "Transaction error when publishing: "


def failure_reason(error: SubmissionError) -> str:
    """Human-readable reason recorded on a request that failed to publish"""
    if error.kind == SubmissionErrorKind.INSUFFICIENT_FUNDS:
        return INSUFFICIENT_FUNDS_REASON
    return PUBLISH_ERROR_PREFIX + str(error)


class Reconciler:
    """
    Drives confirmed and mining requests to their final status.

    Store and chain read errors are not caught: they abort the pass, and the
    next pass recomputes everything from persisted state.
    """

    def __init__(
        self,
        store: RequestStore,
        chain: ChainGateway,
        config: Optional[RelayerConfig] = None,
        publisher: Optional[Publisher] = None,
        nonce_tracker: Optional[NonceTracker] = None,
        logger: Optional[logging.Logger] = None
    ):
        self.store = store
        self.chain = chain
        self.config = config or RelayerConfig()
        self.logger = logger or logging.getLogger(__name__)
        self.publisher = publisher or Publisher(
            chain, max_attempts=self.config.max_publish_attempts, logger=self.logger
        )
        self.nonce_tracker = nonce_tracker or NonceTracker(chain, logger=self.logger)

    def run_reconciliation_pass(self) -> PassReport:
        """
        Run one reconciliation pass over the backlog.

        Returns:
            PassReport describing what the pass did
        """
        self.logger.info(f"Sync and publish start; relayer={self.nonce_tracker.address}")

        last_mined = self.store.find_mined()
        cursor = self.nonce_tracker.resolve_starting_nonce(last_mined)
        report = PassReport(starting_nonce=cursor, next_nonce=cursor)

        backlog = self.store.find_backlog(
            last_mined.seq if last_mined is not None else None,
            BACKLOG_STATUSES
        )
        self.logger.info(f"Next nonce is {cursor}; {len(backlog)} requests to reconcile")

        for request in backlog:
            report.processed += 1
            cursor = self._process(request, cursor, report)
            report.next_nonce = cursor

        self.logger.info(
            f"Pass done: published={report.published} mined={report.mined} "
            f"failed={report.failed} skipped={report.skipped} next_nonce={report.next_nonce}"
        )
        return report

    def _process(self, request: DelegateRequest, cursor: int, report: PassReport) -> int:
        """Handle one backlog entry and return the updated cursor"""
        self.logger.debug(f"Processing request {request.id} status {request.status.name}")

        if request.status == RequestStatus.MINED:
            # Mined by a concurrent process since the pass started
            if request.nonce is None:
                return cursor + 1
            return request.nonce + 1

        if request.status == RequestStatus.MINING:
            return self._check_mining(request, cursor, report)

        if request.status == RequestStatus.CONFIRMED:
            return self._publish(request, cursor, report)

        rate_limited_log(
            f"Unknown request status {request.status!r} for request {request.id}; skipped",
            level="warning",
            logger_instance=self.logger
        )
        report.skipped += 1
        return cursor

    def _check_mining(self, request: DelegateRequest, cursor: int, report: PassReport) -> int:
        if request.transaction_hash is None:
            rate_limited_log(
                f"Request {request.id} is mining without a transaction hash; skipped",
                level="warning",
                logger_instance=self.logger
            )
            report.skipped += 1
            return cursor + 1

        receipt = self.chain.get_receipt(request.transaction_hash)

        if receipt is None:
            # Not mined yet: wait, the nonce is still taken
            self.logger.debug(f"No receipt yet for request {request.id} ({request.transaction_hash})")
            return cursor + 1

        if receipt.confirmations < self.config.required_confirmations:
            self.logger.debug(
                f"Request {request.id} has {receipt.confirmations}/"
                f"{self.config.required_confirmations} confirmations"
            )
            base = request.nonce if request.nonce is not None else cursor
            return base + 1

        nonce = self.chain.get_transaction(request.transaction_hash)["nonce"]
        self.store.update_status(request.id, {
            "status": RequestStatus.MINED,
            "tx_receipt": receipt.to_document(),
            "nonce": nonce,
        })
        report.mined += 1
        self.logger.info(f"Request {request.id} mined in block {receipt.block_number} (nonce={nonce})")
        return nonce + 1

    def _publish(self, request: DelegateRequest, cursor: int, report: PassReport) -> int:
        try:
            result = self.publisher.publish(request, cursor)
        except SubmissionError as e:
            reason = failure_reason(e)
            self.store.update_status(request.id, {
                "status": RequestStatus.FAILED,
                "reason": reason,
            })
            report.failed += 1
            self.logger.error(f"Request {request.id} failed to publish: {reason}")
            return cursor

        self.store.update_status(request.id, {
            "status": RequestStatus.MINING,
            "transaction_hash": result.transaction_hash,
            "nonce": result.nonce,
        })
        report.published += 1
        self.logger.info(f"TX hash={result.transaction_hash}, nonce={result.nonce} for request {request.id}")
        return result.nonce + 1
