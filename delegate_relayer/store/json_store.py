"""
File-backed request store.
"""
import os
import json
import stat
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Any, Optional, List, Iterable, Iterator

import portalocker
from pydantic import ValidationError

from .base import RequestStore, apply_update
from ..exceptions import DuplicateRequestError, RequestNotFoundError, StoreError
from ..models import DelegateRequest, DelegateContext, RequestStatus

logger = logging.getLogger(__name__)


def _empty_store() -> Dict[str, Any]:
    return {"seq": 0, "requests": []}


class JsonRequestStore(RequestStore):
    """
    Thread-safe and process-safe request store backed by one JSON file.

    Requests are kept in a list in insertion order. Every operation holds
    the file lock for its whole read-modify-write, so each update is
    atomic with respect to other processes using the same file.
    """

    def __init__(
        self,
        store_path: str,
        default_expires_at_seconds: int = 86400,
        lock_timeout: float = 10
    ):
        """
        Initialize the store.

        Args:
            store_path: Path of the JSON file (created if missing)
            default_expires_at_seconds: Expiry window for requests without one
            lock_timeout: Seconds to wait for the file lock
        """
        super().__init__(default_expires_at_seconds)
        self.store_path = Path(os.path.expanduser(str(store_path)))
        self.lock_timeout = lock_timeout
        self._ensure_file()

    def _ensure_file(self):
        """Ensure the store directory and file exist with owner-only permissions"""
        directory = self.store_path.parent
        try:
            if not directory.exists():
                directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreError(f"Cannot create request store directory {directory}: {e}") from e

        with self._file_lock():
            if not self.store_path.exists():
                self._write(_empty_store())

    def _get_lock_path(self) -> str:
        return str(self.store_path) + '.lock'

    @contextmanager
    def _file_lock(self) -> Iterator[None]:
        lock = portalocker.Lock(self._get_lock_path(), timeout=self.lock_timeout)
        try:
            lock.acquire()
        except (portalocker.LockException, OSError) as e:
            raise StoreError(f"Cannot lock request store {self.store_path}: {e}") from e
        try:
            yield
        finally:
            lock.release()

    def _read(self) -> Dict[str, Any]:
        try:
            with open(self.store_path, 'r') as f:
                data = json.load(f)
        except FileNotFoundError:
            return _empty_store()
        except json.JSONDecodeError as e:
            raise StoreError(f"Request store {self.store_path} is corrupted: {e}") from e
        except OSError as e:
            raise StoreError(f"Cannot read request store {self.store_path}: {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get("requests"), list):
            raise StoreError(f"Request store {self.store_path} has an unexpected layout")
        return data

    def _write(self, data: Dict[str, Any]):
        # Write a sibling file and rename it into place
        tmp_path = self.store_path.with_name(self.store_path.name + ".tmp")
        try:
            with open(tmp_path, 'w') as f:
                json.dump(data, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            if os.name == 'posix':
                os.chmod(tmp_path, stat.S_IRUSR | stat.S_IWUSR)  # 0600
            os.replace(tmp_path, self.store_path)
        except OSError as e:
            raise StoreError(f"Cannot write request store {self.store_path}: {e}") from e

    def _load(self, doc: Dict[str, Any]) -> DelegateRequest:
        try:
            return DelegateRequest.model_validate(doc)
        except ValidationError as e:
            raise StoreError(f"Invalid request document in {self.store_path}: {e}") from e

    @contextmanager
    def _locked(self) -> Iterator[Dict[str, Any]]:
        """Hold the file lock and yield the store contents"""
        with self._file_lock():
            yield self._read()

    def _requests(self) -> List[DelegateRequest]:
        with self._locked() as data:
            return [self._load(doc) for doc in data["requests"]]

    def create(
        self,
        request_id: str,
        signer: str,
        context: DelegateContext,
        fee: Optional[Any] = None,
        signature_options: Optional[Dict[str, Any]] = None
    ) -> DelegateRequest:
        with self._locked() as data:
            if any(doc.get("id") == request_id for doc in data["requests"]):
                raise DuplicateRequestError(f"Request {request_id} already exists")

            seq = int(data.get("seq", 0)) + 1
            request = self._new_request(request_id, seq, signer, context, fee, signature_options)
            data["seq"] = seq
            data["requests"].append(request.to_document())
            self._write(data)

        logger.debug(f"Created request {request_id} (seq={seq})")
        return request

    def find_one(self, request_id: str) -> Optional[DelegateRequest]:
        for request in self._requests():
            if request.id == request_id:
                return request
        return None

    def find_mined(self) -> Optional[DelegateRequest]:
        for request in reversed(self._requests()):
            if request.status == RequestStatus.MINED:
                return request
        return None

    def find_backlog(
        self,
        after_seq: Optional[int],
        statuses: Iterable[RequestStatus]
    ) -> List[DelegateRequest]:
        wanted = set(statuses)
        return [
            r for r in self._requests()
            if r.status in wanted and (after_seq is None or r.seq > after_seq)
        ]

    def update_status(self, request_id: str, fields: Dict[str, Any]) -> DelegateRequest:
        with self._locked() as data:
            for position, doc in enumerate(data["requests"]):
                if doc.get("id") == request_id:
                    break
            else:
                raise RequestNotFoundError(f"Request {request_id} not found")

            updated = apply_update(self._load(doc), fields)
            data["requests"][position] = updated.to_document()
            self._write(data)

        return updated

    def count(self, statuses: Optional[Iterable[RequestStatus]] = None) -> int:
        requests = self._requests()
        if statuses is None:
            return len(requests)
        wanted = set(statuses)
        return sum(1 for r in requests if r.status in wanted)
