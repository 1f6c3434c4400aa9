"""
Tests for the request stores.

Both implementations must behave identically, so most tests run against each.
"""
import json
import os
import pytest
from datetime import timedelta

import portalocker

from delegate_relayer.exceptions import (
    DuplicateRequestError, InvalidTransitionError, RequestNotFoundError, StoreError
)
from delegate_relayer.models import RequestStatus, BACKLOG_STATUSES
from delegate_relayer.store import JsonRequestStore, MemoryRequestStore

SIGNER = "0x1234567890123456789012345678901234567890"


@pytest.fixture(params=["memory", "json"])
def any_store(request, tmp_path):
    if request.param == "memory":
        return MemoryRequestStore(default_expires_at_seconds=3600)
    return JsonRequestStore(str(tmp_path / "relayer" / "requests.json"), default_expires_at_seconds=3600)


class TestCreate:

    def test_create_defaults(self, any_store, context_factory):
        request = any_store.create("r1", SIGNER, context_factory(), fee={"amount": "1"})

        assert request.status == RequestStatus.NEW
        assert request.seq == 1
        assert request.fee == {"amount": "1"}
        assert request.nonce is None
        assert request.expires_at - request.created_at == timedelta(seconds=3600)

    def test_create_uses_context_expiry(self, any_store, context_factory):
        request = any_store.create("r1", SIGNER, context_factory(expires_at=2000000000))

        assert request.expires_at.timestamp() == 2000000000
        assert request.expires_at.tzinfo is not None

    def test_seq_follows_insertion_order(self, any_store, context_factory):
        for request_id in ("b", "a", "c"):
            any_store.create(request_id, SIGNER, context_factory())

        assert [any_store.find_one(r).seq for r in ("b", "a", "c")] == [1, 2, 3]

    def test_duplicate_id(self, any_store, context_factory):
        any_store.create("r1", SIGNER, context_factory())

        with pytest.raises(DuplicateRequestError):
            any_store.create("r1", SIGNER, context_factory())


class TestQueries:

    def test_find_one_missing(self, any_store):
        assert any_store.find_one("nope") is None

    def test_find_mined_returns_latest(self, any_store, context_factory):
        for request_id, nonce in (("m1", 1), ("m2", 2), ("x", None)):
            any_store.create(request_id, SIGNER, context_factory())
            if nonce is not None:
                any_store.update_status(request_id, {"status": RequestStatus.MINED, "nonce": nonce})

        assert any_store.find_mined().id == "m2"

    def test_find_mined_none(self, any_store, context_factory):
        any_store.create("r1", SIGNER, context_factory())

        assert any_store.find_mined() is None

    def test_find_backlog_filters_and_orders(self, any_store, context_factory):
        statuses = [
            RequestStatus.MINED, RequestStatus.NEW, RequestStatus.MINING,
            RequestStatus.FAILED, RequestStatus.CONFIRMED, RequestStatus.MINED,
        ]
        for index, status in enumerate(statuses):
            any_store.create(f"r{index}", SIGNER, context_factory())
            if status != RequestStatus.NEW:
                any_store.update_status(f"r{index}", {"status": status})

        everything = any_store.find_backlog(None, BACKLOG_STATUSES)
        after_first = any_store.find_backlog(1, BACKLOG_STATUSES)

        assert [r.id for r in everything] == ["r0", "r2", "r4", "r5"]
        assert [r.id for r in after_first] == ["r2", "r4", "r5"]

    def test_count(self, any_store, context_factory):
        for request_id in ("a", "b", "c"):
            any_store.create(request_id, SIGNER, context_factory())
        any_store.confirm("b")

        assert any_store.count() == 3
        assert any_store.count([RequestStatus.NEW]) == 2
        assert any_store.count([RequestStatus.CONFIRMED, RequestStatus.MINING]) == 1


class TestUpdates:

    def test_update_sets_fields(self, any_store, context_factory):
        any_store.create("r1", SIGNER, context_factory())

        updated = any_store.update_status("r1", {
            "status": RequestStatus.MINING,
            "transaction_hash": "0xabc",
            "nonce": 0,
        })

        assert updated.status == RequestStatus.MINING
        assert updated.transaction_hash == "0xabc"
        assert updated.nonce == 0
        assert any_store.find_one("r1") == updated

    def test_update_rejects_other_fields(self, any_store, context_factory):
        any_store.create("r1", SIGNER, context_factory())

        with pytest.raises(ValueError, match="signer"):
            any_store.update_status("r1", {"signer": "0xevil"})

    def test_update_unknown_id(self, any_store):
        with pytest.raises(RequestNotFoundError):
            any_store.update_status("nope", {"status": RequestStatus.FAILED})

    @pytest.mark.parametrize("terminal", [RequestStatus.MINED, RequestStatus.FAILED])
    def test_terminal_status_is_final(self, any_store, context_factory, terminal):
        any_store.create("r1", SIGNER, context_factory())
        any_store.update_status("r1", {"status": terminal})

        with pytest.raises(InvalidTransitionError):
            any_store.update_status("r1", {"status": RequestStatus.MINING})

        assert any_store.find_one("r1").status == terminal

    def test_confirm(self, any_store, context_factory):
        any_store.create("r1", SIGNER, context_factory())

        assert any_store.confirm("r1").status == RequestStatus.CONFIRMED
        with pytest.raises(InvalidTransitionError):
            any_store.confirm("r1")

    def test_confirm_unknown(self, any_store):
        with pytest.raises(RequestNotFoundError):
            any_store.confirm("nope")

    def test_returned_requests_are_copies(self, any_store, context_factory):
        request = any_store.create("r1", SIGNER, context_factory())
        request.nonce = 99

        assert any_store.find_one("r1").nonce is None


class TestJsonStoreFile:

    def test_document_layout(self, tmp_path, context_factory):
        path = tmp_path / "requests.json"
        store = JsonRequestStore(str(path))
        store.create("r1", SIGNER, context_factory())
        store.update_status("r1", {"status": RequestStatus.MINED, "tx_receipt": {"gasUsed": 21000}})

        with open(path) as f:
            data = json.load(f)

        assert data["seq"] == 1
        doc = data["requests"][0]
        assert doc["id"] == "r1"
        assert doc["status"] == 3
        assert doc["txReceipt"] == {"gasUsed": 21000}
        assert doc["context"]["functionName"] == "transfer"

    def test_persists_across_instances(self, tmp_path, context_factory):
        path = str(tmp_path / "requests.json")
        JsonRequestStore(path).create("r1", SIGNER, context_factory())

        reopened = JsonRequestStore(path)
        reopened.create("r2", SIGNER, context_factory())

        assert [r.seq for r in reopened.find_backlog(None, [RequestStatus.NEW])] == [1, 2]

    @pytest.mark.skipif(os.name != "posix", reason="POSIX permissions only")
    def test_file_permissions(self, tmp_path):
        path = tmp_path / "requests.json"
        JsonRequestStore(str(path))

        assert (os.stat(path).st_mode & 0o777) == 0o600

    def test_corrupted_file(self, tmp_path):
        path = tmp_path / "requests.json"
        path.write_text("{not json")

        with pytest.raises(StoreError, match="corrupted"):
            JsonRequestStore(str(path)).count()

    def test_unexpected_layout(self, tmp_path):
        path = tmp_path / "requests.json"
        path.write_text(json.dumps([1, 2, 3]))

        with pytest.raises(StoreError, match="layout"):
            JsonRequestStore(str(path)).find_mined()

    def test_invalid_document(self, tmp_path):
        path = tmp_path / "requests.json"
        path.write_text(json.dumps({"seq": 1, "requests": [{"id": "r1", "status": "bogus"}]}))
        store = JsonRequestStore(str(path))

        with pytest.raises(StoreError, match="Invalid request document"):
            store.find_one("r1")
        with pytest.raises(StoreError, match="Invalid request document"):
            store.update_status("r1", {"reason": "x"})

    def test_held_file_lock(self, tmp_path, context_factory):
        path = tmp_path / "requests.json"
        store = JsonRequestStore(str(path), lock_timeout=0.2)

        with portalocker.Lock(str(path) + ".lock", timeout=0):
            with pytest.raises(StoreError, match="Cannot lock"):
                store.create("r1", SIGNER, context_factory())

        assert store.count() == 0

    def test_write_failure(self, tmp_path, context_factory, monkeypatch):
        store = JsonRequestStore(str(tmp_path / "requests.json"))

        def _fail(*args, **kwargs):
            raise PermissionError("read-only filesystem")

        monkeypatch.setattr("delegate_relayer.store.json_store.os.replace", _fail)

        with pytest.raises(StoreError, match="read-only filesystem"):
            store.create("r1", SIGNER, context_factory())
