"""
In-process request store.

Useful for tests and for embedding the relayer in a process that owns
persistence itself. Nothing survives a restart.
"""
import logging
import threading
from typing import Dict, Any, Optional, List, Iterable

from .base import RequestStore, apply_update
from ..exceptions import DuplicateRequestError, RequestNotFoundError
from ..models import DelegateRequest, DelegateContext, RequestStatus

logger = logging.getLogger(__name__)


class MemoryRequestStore(RequestStore):
    """Thread-safe request store kept in a list in insertion order"""

    def __init__(self, default_expires_at_seconds: int = 86400):
        super().__init__(default_expires_at_seconds)
        self._requests: List[DelegateRequest] = []
        self._index: Dict[str, int] = {}
        self._seq = 0
        self._lock = threading.RLock()

    def create(
        self,
        request_id: str,
        signer: str,
        context: DelegateContext,
        fee: Optional[Any] = None,
        signature_options: Optional[Dict[str, Any]] = None
    ) -> DelegateRequest:
        with self._lock:
            if request_id in self._index:
                raise DuplicateRequestError(f"Request {request_id} already exists")
            self._seq += 1
            request = self._new_request(request_id, self._seq, signer, context, fee, signature_options)
            self._index[request_id] = len(self._requests)
            self._requests.append(request)
            logger.debug(f"Created request {request_id} (seq={self._seq})")
            return request.model_copy(deep=True)

    def find_one(self, request_id: str) -> Optional[DelegateRequest]:
        with self._lock:
            position = self._index.get(request_id)
            if position is None:
                return None
            return self._requests[position].model_copy(deep=True)

    def find_mined(self) -> Optional[DelegateRequest]:
        with self._lock:
            for request in reversed(self._requests):
                if request.status == RequestStatus.MINED:
                    return request.model_copy(deep=True)
            return None

    def find_backlog(
        self,
        after_seq: Optional[int],
        statuses: Iterable[RequestStatus]
    ) -> List[DelegateRequest]:
        wanted = set(statuses)
        with self._lock:
            return [
                r.model_copy(deep=True) for r in self._requests
                if r.status in wanted and (after_seq is None or r.seq > after_seq)
            ]

    def update_status(self, request_id: str, fields: Dict[str, Any]) -> DelegateRequest:
        with self._lock:
            position = self._index.get(request_id)
            if position is None:
                raise RequestNotFoundError(f"Request {request_id} not found")
            updated = apply_update(self._requests[position], fields)
            self._requests[position] = updated
            return updated.model_copy(deep=True)

    def count(self, statuses: Optional[Iterable[RequestStatus]] = None) -> int:
        with self._lock:
            if statuses is None:
                return len(self._requests)
            wanted = set(statuses)
            return sum(1 for r in self._requests if r.status in wanted)
