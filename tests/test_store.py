"""Tests for knowledge store adapters."""

import uuid

import chromadb
import pytest

from nursebot.store import (
    ChromaKnowledgeStore,
    InMemoryKnowledgeStore,
    StorageError,
    create_knowledge_store,
)


class TestInMemoryKnowledgeStore:
    """Tests for the dict-backed store."""

    @pytest.mark.asyncio
    async def test_get_put(self):
        store = InMemoryKnowledgeStore()
        assert await store.get("knowledge:icu-a") is None

        await store.put("knowledge:icu-a", "{}")
        assert await store.get("knowledge:icu-a") == "{}"

        await store.put("knowledge:icu-a", "[]")
        assert await store.get("knowledge:icu-a") == "[]"

    @pytest.mark.asyncio
    async def test_list_is_prefix_filtered_and_sorted(self):
        store = InMemoryKnowledgeStore({
            "knowledge:or-b": "1",
            "keyword-index": "{}",
            "knowledge:icu-a": "2",
            "dialog:u1": "3",
        })
        assert await store.list("knowledge:") == ["knowledge:icu-a", "knowledge:or-b"]
        assert len(await store.list()) == 4

    @pytest.mark.asyncio
    async def test_delete_absent_key(self):
        store = InMemoryKnowledgeStore({"a": "1"})
        await store.delete("a")
        await store.delete("a")
        assert await store.get("a") is None


class TestChromaKnowledgeStore:
    """Tests for the ChromaDB-backed store."""

    @pytest.fixture
    def store(self):
        return ChromaKnowledgeStore(
            collection_name=f"test_{uuid.uuid4().hex}",
            client=chromadb.EphemeralClient(),
        )

    @pytest.mark.asyncio
    async def test_round_trip(self, store):
        assert await store.get("knowledge:icu-a") is None

        await store.put("knowledge:icu-a", '{"id": "icu-a"}')
        await store.put("knowledge:icu-a", '{"id": "icu-a", "v": 2}')
        assert await store.get("knowledge:icu-a") == '{"id": "icu-a", "v": 2}'

    @pytest.mark.asyncio
    async def test_list_and_delete(self, store):
        await store.put("knowledge:or-b", "1")
        await store.put("knowledge:icu-a", "2")
        await store.put("keyword-index", "{}")

        assert await store.list("knowledge:") == ["knowledge:icu-a", "knowledge:or-b"]

        await store.delete("knowledge:icu-a")
        assert await store.list("knowledge:") == ["knowledge:or-b"]

    @pytest.mark.asyncio
    async def test_list_fetches_ids_only(self, store):
        await store.put("knowledge:icu-a", "large record body")
        await store.put("dialog:u1", "conversation history")

        collection = store.collection
        calls = []

        class RecordingCollection:
            def get(self, **kwargs):
                calls.append(kwargs)
                return collection.get(**kwargs)

        store.collection = RecordingCollection()

        assert await store.list("knowledge:") == ["knowledge:icu-a"]
        assert calls == [{"include": []}]

    def test_unavailable_backend_raises_storage_error(self):
        class UnavailableClient:
            def get_or_create_collection(self, **kwargs):
                raise ConnectionError("refused")

        with pytest.raises(StorageError):
            ChromaKnowledgeStore(collection_name="unused", client=UnavailableClient())


class TestCreateKnowledgeStore:
    def test_memory_backend(self, test_settings):
        assert isinstance(create_knowledge_store(test_settings), InMemoryKnowledgeStore)
