"""
Knowledge store adapters for the Nursing Knowledge Chatbot

This module provides the durable key-value namespace the chatbot reads from:
- An abstract async get/put/list/delete contract
- An in-memory implementation for tests and local development
- A ChromaDB-backed implementation that uses a persistent collection as a
  key-value namespace
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

import chromadb
from chromadb.config import Settings as ChromaSettings
from nursebot.config import Settings, settings

# Configure logging
logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when the backing store is unavailable or a call fails."""

    def __init__(self, message: str, key: Optional[str] = None):
        super().__init__(message)
        self.key = key


class KnowledgeStore(ABC):
    """Async key-value namespace holding raw string values."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Return the raw value stored under ``key`` or None when absent."""

    @abstractmethod
    async def put(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""

    @abstractmethod
    async def list(self, prefix: str = "") -> List[str]:
        """Return all keys starting with ``prefix`` in lexical order."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove ``key``; deleting an absent key is not an error."""


class InMemoryKnowledgeStore(KnowledgeStore):
    """Process-local store backed by a dict."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def put(self, key: str, value: str) -> None:
        self._data[key] = value

    async def list(self, prefix: str = "") -> List[str]:
        return sorted(key for key in self._data if key.startswith(prefix))

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)


class ChromaKnowledgeStore(KnowledgeStore):
    """ChromaDB collection used as a key-value namespace.

    Each key is a record id and the raw value is the record's document text.
    Records carry a one-dimensional placeholder embedding so the collection
    never calls an embedding function. The chromadb client is synchronous, so
    every call runs in a worker thread.
    """

    def __init__(
        self,
        persist_directory: Optional[str] = None,
        collection_name: Optional[str] = None,
        client=None,
    ):
        """
        Initialize ChromaDB store with configuration.

        Args:
            persist_directory: Directory for the persistent client
            collection_name: Collection holding the key-value records
            client: Pre-built chromadb client, mainly for tests
        """
        self.persist_directory = persist_directory or settings.chroma_persist_directory
        self.collection_name = collection_name or settings.chroma_collection_name
        self.client = client
        self.collection = None
        self._initialize_client()

    def _initialize_client(self) -> None:
        """Initialize ChromaDB client and collection."""
        try:
            if self.client is None:
                self.client = chromadb.PersistentClient(
                    path=self.persist_directory,
                    settings=ChromaSettings(anonymized_telemetry=False),
                )

            self.collection = self.client.get_or_create_collection(
                name=self.collection_name,
                metadata={"description": "Nursing knowledge key-value records"},
                embedding_function=None,
            )
            logger.info(f"ChromaDB store initialized with collection: {self.collection_name}")

        except Exception as e:
            logger.error(f"Failed to initialize ChromaDB store: {e}")
            raise StorageError(f"ChromaDB unavailable: {e}") from e

    def _get(self, key: str) -> Optional[str]:
        result = self.collection.get(ids=[key], include=["documents"])
        documents = result.get("documents") or []
        return documents[0] if documents else None

    def _put(self, key: str, value: str) -> None:
        self.collection.upsert(ids=[key], documents=[value], embeddings=[[0.0]])

    def _list(self, prefix: str) -> List[str]:
        result = self.collection.get(include=[])
        return sorted(key for key in result.get("ids", []) if key.startswith(prefix))

    def _delete(self, key: str) -> None:
        self.collection.delete(ids=[key])

    async def get(self, key: str) -> Optional[str]:
        try:
            return await asyncio.to_thread(self._get, key)
        except Exception as e:
            raise StorageError(f"Failed to read {key}: {e}", key=key) from e

    async def put(self, key: str, value: str) -> None:
        try:
            await asyncio.to_thread(self._put, key, value)
        except Exception as e:
            raise StorageError(f"Failed to write {key}: {e}", key=key) from e

    async def list(self, prefix: str = "") -> List[str]:
        try:
            return await asyncio.to_thread(self._list, prefix)
        except Exception as e:
            raise StorageError(f"Failed to list keys with prefix {prefix!r}: {e}") from e

    async def delete(self, key: str) -> None:
        try:
            await asyncio.to_thread(self._delete, key)
        except Exception as e:
            raise StorageError(f"Failed to delete {key}: {e}", key=key) from e


def create_knowledge_store(config: Optional[Settings] = None) -> KnowledgeStore:
    """
    Build the knowledge store selected by configuration.

    Args:
        config: Settings to use, defaults to the global settings

    Returns:
        KnowledgeStore: Configured store instance
    """
    config = config or settings

    if config.knowledge_backend == "chroma":
        return ChromaKnowledgeStore(
            persist_directory=config.chroma_persist_directory,
            collection_name=config.chroma_collection_name,
        )

    logger.info("Using in-memory knowledge store")
    return InMemoryKnowledgeStore()
