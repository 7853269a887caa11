"""Tests for the Firestore backend against a fake async client."""

import asyncio
from types import SimpleNamespace

import pytest
import pytest_asyncio
from google.api_core.exceptions import AlreadyExists, FailedPrecondition

from chatly.core.exceptions import InvalidInput, NotFound, StoreError
from chatly.models import (
    Conversation,
    KnowledgeEntry,
    KnowledgeEntryType,
    MessageSender,
    MessageStatus,
    SortOrder,
)
from chatly.storage.firestore import FirestoreStorage


class FakeDocument:
    def __init__(self, db: "FakeFirestore", store: dict, doc_id: str) -> None:
        self._db = db
        self._store = store
        self.id = doc_id

    def _version(self) -> int:
        return self._db.versions.get((id(self._store), self.id), 0)

    def _bump(self) -> None:
        self._db.versions[(id(self._store), self.id)] = self._version() + 1

    async def get(self):
        data = self._store.get(self.id)
        snapshot = SimpleNamespace(
            exists=data is not None,
            to_dict=lambda data=dict(data or {}): dict(data),
            update_time=self._version(),
        )
        if self._db.latency:
            await asyncio.sleep(0)
        return snapshot

    async def create(self, data: dict) -> None:
        if self.id in self._store:
            raise AlreadyExists(f"{self.id} already exists")
        self._store[self.id] = dict(data)
        self._bump()

    async def set(self, data: dict) -> None:
        self._store[self.id] = dict(data)
        self._bump()

    async def update(self, data: dict, option=None) -> None:
        if option is not None and option.last_update_time != self._version():
            raise FailedPrecondition(f"{self.id} changed since it was read")
        self._store[self.id].update(data)
        self._bump()

    async def delete(self) -> None:
        self._store.pop(self.id, None)


class FakeQuery:
    def __init__(self, store: dict, filters=None, order=None, limit=None) -> None:
        self._store = store
        self._filters = filters or []
        self._order = order
        self._limit = limit

    def where(self, field, op, value):
        return FakeQuery(self._store, self._filters + [(field, value)], self._order, self._limit)

    def order_by(self, field, direction="ASCENDING"):
        return FakeQuery(self._store, self._filters, (field, direction), self._limit)

    def limit(self, n):
        return FakeQuery(self._store, self._filters, self._order, n)

    async def get(self):
        rows = [d for d in self._store.values() if all(d.get(f) == v for f, v in self._filters)]
        if self._order:
            field, direction = self._order
            rows.sort(key=lambda d: d[field], reverse=direction == "DESCENDING")
        if self._limit is not None:
            rows = rows[: self._limit]
        return [SimpleNamespace(to_dict=lambda d=d: dict(d)) for d in rows]


class FakeCollection(FakeQuery):
    def __init__(self, db: "FakeFirestore", store: dict) -> None:
        super().__init__(store)
        self._db = db

    def document(self, doc_id: str) -> FakeDocument:
        return FakeDocument(self._db, self._store, doc_id)


class FakeFirestore:
    """Dict-backed stand-in for ``firestore.AsyncClient``.

    Documents carry a version that plays the role of ``update_time``; with
    ``latency`` set, every read yields to the loop before returning.
    """

    def __init__(self, latency: bool = False) -> None:
        self.collections: dict[str, dict] = {}
        self.versions: dict[tuple[int, str], int] = {}
        self.latency = latency

    def collection(self, name: str) -> FakeCollection:
        return FakeCollection(self, self.collections.setdefault(name, {}))

    def write_option(self, last_update_time=None):
        return SimpleNamespace(last_update_time=last_update_time)


class BrokenFirestore:
    def collection(self, name: str):
        raise RuntimeError("deadline exceeded")


@pytest.fixture
def firestore_storage():
    return FirestoreStorage(client=FakeFirestore())


@pytest.mark.asyncio
async def test_conversation_round_trip_is_tenant_scoped(firestore_storage):
    await firestore_storage.save_conversation(Conversation(id="conv-1", tenant_id="tenant-a"))

    assert (await firestore_storage.get_conversation("tenant-a", "conv-1")).id == "conv-1"
    assert await firestore_storage.get_conversation("tenant-b", "conv-1") is None
    with pytest.raises(NotFound):
        await firestore_storage.append_message("tenant-b", "conv-1", MessageSender.VISITOR, "hi")


@pytest.mark.asyncio
async def test_messages_in_both_orders(firestore_storage):
    await firestore_storage.save_conversation(Conversation(id="conv-1", tenant_id="tenant-a"))
    for i in range(3):
        await firestore_storage.append_message("tenant-a", "conv-1", MessageSender.VISITOR, f"m{i}")

    asc = await firestore_storage.list_messages("tenant-a", "conv-1")
    desc = await firestore_storage.list_messages("tenant-a", "conv-1", limit=2, order=SortOrder.DESC)

    assert [m.created_at for m in asc] == sorted(m.created_at for m in asc)
    assert len(desc) == 2
    assert desc[0].created_at >= desc[1].created_at


@pytest.mark.asyncio
async def test_knowledge_cannot_be_overwritten_across_tenants(firestore_storage):
    await firestore_storage.save_knowledge_entry(
        KnowledgeEntry(id="kb-1", tenant_id="tenant-a", type=KnowledgeEntryType.TEXT, content="Fact")
    )

    with pytest.raises(NotFound):
        await firestore_storage.save_knowledge_entry(
            KnowledgeEntry(id="kb-1", tenant_id="tenant-b", type=KnowledgeEntryType.TEXT, content="X")
        )
    assert await firestore_storage.delete_knowledge_entry("tenant-b", "kb-1") is False
    assert [e.id for e in await firestore_storage.list_knowledge_entries("tenant-a")] == ["kb-1"]


@pytest.mark.asyncio
async def test_touch_updates_stored_timestamp(firestore_storage):
    conv = await firestore_storage.save_conversation(Conversation(id="conv-1", tenant_id="tenant-a"))
    before = conv.updated_at

    touched = await firestore_storage.touch_conversation("tenant-a", "conv-1")
    reloaded = await firestore_storage.get_conversation("tenant-a", "conv-1")

    assert touched.updated_at > before
    assert reloaded.updated_at == touched.updated_at


@pytest.mark.asyncio
async def test_backend_errors_become_store_errors():
    storage = FirestoreStorage(client=BrokenFirestore())

    with pytest.raises(StoreError) as exc_info:
        await storage.get_conversation("tenant-a", "conv-1")

    assert exc_info.value.details["operation"] == "get_conversation"
    assert await storage.health_check() is False


@pytest.mark.asyncio
async def test_conversation_cannot_be_taken_over_by_another_tenant(firestore_storage):
    await firestore_storage.save_conversation(Conversation(id="conv-1", tenant_id="tenant-a"))

    with pytest.raises(NotFound):
        await firestore_storage.save_conversation(Conversation(id="conv-1", tenant_id="tenant-b"))

    assert await firestore_storage.get_conversation("tenant-a", "conv-1") is not None
    assert await firestore_storage.get_conversation("tenant-b", "conv-1") is None


@pytest.mark.asyncio
async def test_owner_can_resave_conversation(firestore_storage):
    conv = await firestore_storage.save_conversation(
        Conversation(id="conv-1", tenant_id="tenant-a", visitor_id="v1")
    )
    conv.visitor_id = "v2"
    await firestore_storage.save_conversation(conv)

    assert (await firestore_storage.get_conversation("tenant-a", "conv-1")).visitor_id == "v2"


class TestMessageStatus:
    """Status changes on the Firestore backend."""

    @pytest_asyncio.fixture
    async def message(self, firestore_storage):
        await firestore_storage.save_conversation(Conversation(id="conv-1", tenant_id="tenant-a"))
        return await firestore_storage.append_message("tenant-a", "conv-1", MessageSender.VISITOR, "hi")

    @pytest.mark.asyncio
    async def test_moves_forward_and_persists(self, firestore_storage, message):
        updated = await firestore_storage.update_message_status("tenant-a", message.id, MessageStatus.DELIVERED)

        assert updated.status == MessageStatus.DELIVERED
        assert (await firestore_storage.get_message("tenant-a", message.id)).status == MessageStatus.DELIVERED

    @pytest.mark.asyncio
    async def test_same_status_is_a_no_op(self, firestore_storage, message):
        updated = await firestore_storage.update_message_status("tenant-a", message.id, MessageStatus.SENT)
        assert updated.status == MessageStatus.SENT

    @pytest.mark.asyncio
    async def test_regression_is_rejected(self, firestore_storage, message):
        await firestore_storage.update_message_status("tenant-a", message.id, MessageStatus.SEEN)

        with pytest.raises(InvalidInput):
            await firestore_storage.update_message_status("tenant-a", message.id, MessageStatus.DELIVERED)
        assert (await firestore_storage.get_message("tenant-a", message.id)).status == MessageStatus.SEEN

    @pytest.mark.asyncio
    async def test_other_tenant_gets_not_found(self, firestore_storage, message):
        with pytest.raises(NotFound):
            await firestore_storage.update_message_status("tenant-b", message.id, MessageStatus.SEEN)
        assert (await firestore_storage.get_message("tenant-a", message.id)).status == MessageStatus.SENT


@pytest.mark.asyncio
async def test_concurrent_status_updates_never_move_backwards():
    storage = FirestoreStorage(client=FakeFirestore(latency=True))
    await storage.save_conversation(Conversation(id="conv-1", tenant_id="tenant-a"))
    message = await storage.append_message("tenant-a", "conv-1", MessageSender.VISITOR, "hi")

    results = await asyncio.gather(
        storage.update_message_status("tenant-a", message.id, MessageStatus.SEEN),
        storage.update_message_status("tenant-a", message.id, MessageStatus.DELIVERED),
        return_exceptions=True,
    )

    assert not any(isinstance(r, StoreError) for r in results)
    assert (await storage.get_message("tenant-a", message.id)).status == MessageStatus.SEEN
