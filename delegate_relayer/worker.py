"""
Scheduling of reconciliation passes.

Passes are serialized with an exclusive file lock so that two worker
processes pointed at the same store never hand out the same nonce.
"""
import time
import logging
from pathlib import Path
from typing import Optional, Callable

import portalocker

from .chain.web3_gateway import Web3ChainGateway
from .config import RelayerConfig
from .exceptions import PassInProgressError, RelayerError
from .models import PassReport
from .reconciler import Reconciler
from .store.json_store import JsonRequestStore

logger = logging.getLogger(__name__)


class PassLock:
    """Inter-process lock guarding a single reconciliation pass"""

    def __init__(self, path: str, timeout: float = 0):
        """
        Initialize the lock.

        Args:
            path: Lock file path (created if missing)
            timeout: Seconds to wait for the lock; 0 fails immediately
        """
        self.path = Path(path)
        self.timeout = timeout
        self._lock: Optional[portalocker.Lock] = None

    def __enter__(self) -> "PassLock":
        self.path.parent.mkdir(parents=True, exist_ok=True)
        lock = portalocker.Lock(
            str(self.path),
            timeout=self.timeout,
            fail_when_locked=self.timeout == 0
        )
        try:
            lock.acquire()
        except portalocker.LockException as e:
            raise PassInProgressError(f"Another reconciliation pass holds {self.path}") from e
        self._lock = lock
        return self

    def __exit__(self, exc_type, exc, tb):
        if self._lock is not None:
            self._lock.release()
            self._lock = None


def run_exclusive_pass(reconciler: Reconciler, lock: PassLock) -> PassReport:
    """
    Run one pass while holding the pass lock.

    Raises:
        PassInProgressError: If another pass is running
    """
    with lock:
        return reconciler.run_reconciliation_pass()


def run_forever(
    reconciler: Reconciler,
    lock: PassLock,
    interval: float,
    max_passes: Optional[int] = None,
    sleep: Callable[[float], None] = time.sleep
) -> int:
    """
    Run passes every ``interval`` seconds.

    A pass that finds the lock taken is skipped. A pass aborted by a store
    or chain error is logged and retried on the next tick, which is safe
    because every pass starts from persisted state.

    Args:
        reconciler: Reconciler to drive
        lock: Pass lock shared with any other worker
        interval: Seconds between passes
        max_passes: Stop after this many ticks (None runs until interrupted)
        sleep: Sleep function

    Returns:
        Number of ticks executed
    """
    ticks = 0
    while max_passes is None or ticks < max_passes:
        ticks += 1
        try:
            run_exclusive_pass(reconciler, lock)
        except PassInProgressError as e:
            logger.warning(f"Skipping pass: {e}")
        except RelayerError as e:
            logger.error(f"Reconciliation pass aborted: {e}")

        if max_passes is None or ticks < max_passes:
            sleep(interval)
    return ticks


def build_reconciler(config: RelayerConfig, logger: Optional[logging.Logger] = None) -> Reconciler:
    """Wire the JSON store, web3 gateway and reconciler from configuration"""
    store = JsonRequestStore(
        str(config.resolved_store_path),
        default_expires_at_seconds=config.default_expires_at_seconds
    )
    chain = Web3ChainGateway.from_config(config, logger=logger)
    return Reconciler(store, chain, config=config, logger=logger)
