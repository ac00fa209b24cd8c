from unittest.mock import MagicMock

import pytest
from google.api_core import exceptions as gcp_exceptions

from unitsync.core.errors import StoreWriteError
from unitsync.repo import firestore_store
from unitsync.repo.document_store import FieldUpdate
from unitsync.repo.firestore_store import FirestoreDocumentStore


def _snap(doc_id, data, exists=True):
    s = MagicMock()
    s.id = doc_id
    s.exists = exists
    s.to_dict.return_value = dict(data) if data is not None else None
    return s


@pytest.fixture
def client(monkeypatch):
    # run the transactional body directly against the mocked transaction
    monkeypatch.setattr(firestore_store.firestore, "transactional", lambda fn: fn)
    c = MagicMock()
    c.collection.return_value.document.side_effect = lambda doc_id: MagicMock(name=doc_id)
    return c


def test_list_all_and_get_by_id(client):
    client.collection.return_value.stream.return_value = [
        _snap("A", {"unitType": "battalion", "battalionId": "A"}),
        _snap("B", {"unitType": "company", "parentId": "A"}),
    ]
    client.collection.return_value.document.side_effect = None
    client.collection.return_value.document.return_value.get.return_value = _snap("B", {"unitType": "company"})
    store = FirestoreDocumentStore(client=client)

    docs = store.list_all("units")
    assert [d["id"] for d in docs] == ["A", "B"]
    assert docs[1]["parentId"] == "A"
    client.collection.assert_called_with("units")
    assert store.get_by_id("units", "B") == {"unitType": "company", "id": "B"}

    client.collection.return_value.document.return_value.get.return_value = _snap("Z", None, exists=False)
    assert store.get_by_id("units", "Z") is None


def test_commit_batch_updates_inside_transaction(client):
    client.get_all.return_value = [_snap("B", {"unitType": "company", "battalionId": None})]
    transaction = client.transaction.return_value
    store = FirestoreDocumentStore(client=client)

    written = store.commit_batch("units", [FieldUpdate("B", {"battalionId": "A"}, {"battalionId": None})], 500)

    assert written == 1
    transaction.update.assert_called_once()
    fields = transaction.update.call_args[0][1]
    assert fields["battalionId"] == "A"
    assert fields["updatedAt"] is firestore_store.firestore.SERVER_TIMESTAMP


def test_commit_batch_precondition_failures(client):
    transaction = client.transaction.return_value
    store = FirestoreDocumentStore(client=client)
    update = [FieldUpdate("B", {"battalionId": "A"}, {"battalionId": None})]

    client.get_all.return_value = [_snap("B", {"battalionId": "X"})]
    with pytest.raises(StoreWriteError):
        store.commit_batch("units", update, 500)

    client.get_all.return_value = [_snap("B", None, exists=False)]
    with pytest.raises(StoreWriteError):
        store.commit_batch("units", update, 500)

    transaction.update.assert_not_called()


def test_commit_batch_wraps_api_errors(client):
    client.get_all.side_effect = gcp_exceptions.ServiceUnavailable("firestore down")
    store = FirestoreDocumentStore(client=client)
    with pytest.raises(StoreWriteError):
        store.commit_batch("units", [FieldUpdate("B", {"battalionId": "A"})], 500)


def test_commit_batch_empty_is_noop(client):
    store = FirestoreDocumentStore(client=client)
    assert store.commit_batch("units", [], 500) == 0
    client.transaction.assert_not_called()
