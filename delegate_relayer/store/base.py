"""
Storage interface for delegated transaction requests.

Stores preserve insertion order (the request's ``seq``), which is the order
the reconciler processes requests in and therefore the order nonces are
handed out in.
"""
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Dict, Any, Optional, List, Iterable

from ..exceptions import InvalidTransitionError
from ..models import DelegateRequest, DelegateContext, RequestStatus


UPDATABLE_FIELDS = frozenset({"status", "nonce", "transaction_hash", "tx_receipt", "reason"})


class RequestStore(ABC):
    """
    Abstract base class for request stores.

    Every method is a single atomic operation; implementations must never
    expose a document with only part of an update applied.
    """

    def __init__(self, default_expires_at_seconds: int = 86400):
        self.default_expires_at_seconds = default_expires_at_seconds

    @abstractmethod
    def create(
        self,
        request_id: str,
        signer: str,
        context: DelegateContext,
        fee: Optional[Any] = None,
        signature_options: Optional[Dict[str, Any]] = None
    ) -> DelegateRequest:
        """
        Insert a new request with status NEW at the end of the queue.

        Raises:
            DuplicateRequestError: If a request with this id already exists
        """
        pass

    @abstractmethod
    def find_one(self, request_id: str) -> Optional[DelegateRequest]:
        """Return the request with the given id, or None"""
        pass

    @abstractmethod
    def find_mined(self) -> Optional[DelegateRequest]:
        """Return the most recent (by natural order) MINED request, or None"""
        pass

    @abstractmethod
    def find_backlog(
        self,
        after_seq: Optional[int],
        statuses: Iterable[RequestStatus]
    ) -> List[DelegateRequest]:
        """
        Return requests with one of the given statuses in natural order.

        Args:
            after_seq: Only return requests inserted after this sequence number
            statuses: Statuses to include
        """
        pass

    @abstractmethod
    def update_status(self, request_id: str, fields: Dict[str, Any]) -> DelegateRequest:
        """
        Atomically set a subset of status, nonce, transaction_hash,
        tx_receipt and reason on one request.

        Returns:
            The updated request

        Raises:
            ValueError: If fields contains anything else
            RequestNotFoundError: If the id is unknown
            InvalidTransitionError: If the request is terminal and the status would change
        """
        pass

    @abstractmethod
    def count(self, statuses: Optional[Iterable[RequestStatus]] = None) -> int:
        """Count requests, optionally restricted to some statuses"""
        pass

    def confirm(self, request_id: str) -> DelegateRequest:
        """
        Mark a NEW request as CONFIRMED so the next pass publishes it.

        Raises:
            InvalidTransitionError: If the request is not NEW
        """
        request = self.find_one(request_id)
        if request is not None and request.status != RequestStatus.NEW:
            raise InvalidTransitionError(
                f"Request {request_id} cannot be confirmed from status {request.status.name}"
            )
        return self.update_status(request_id, {"status": RequestStatus.CONFIRMED})

    def _new_request(
        self,
        request_id: str,
        seq: int,
        signer: str,
        context: DelegateContext,
        fee: Optional[Any],
        signature_options: Optional[Dict[str, Any]]
    ) -> DelegateRequest:
        now = datetime.now(timezone.utc)
        if context.expires_at is not None:
            expires_at = datetime.fromtimestamp(context.expires_at, tz=timezone.utc)
        else:
            expires_at = now + timedelta(seconds=self.default_expires_at_seconds)

        return DelegateRequest(
            id=request_id,
            seq=seq,
            status=RequestStatus.NEW,
            signer=signer,
            context=context,
            fee=fee,
            signature_options=signature_options,
            created_at=now,
            expires_at=expires_at,
        )


def apply_update(request: DelegateRequest, fields: Dict[str, Any]) -> DelegateRequest:
    """
    Return a copy of request with fields applied, enforcing update rules.

    Raises:
        ValueError: If fields names anything outside UPDATABLE_FIELDS
        InvalidTransitionError: If a terminal request would change status
    """
    unknown = set(fields) - UPDATABLE_FIELDS
    if unknown:
        raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")

    if "status" in fields:
        new_status = RequestStatus(fields["status"])
        if request.status.is_terminal and new_status != request.status:
            raise InvalidTransitionError(
                f"Request {request.id} is {request.status.name} and cannot become {new_status.name}"
            )

    data = request.model_dump()
    data.update(fields)
    return DelegateRequest.model_validate(data)
