"""
Conversation memory management for the Nursing Knowledge Chatbot

This module handles:
- Per-user rolling conversation history with a fixed length bound
- Pluggable session backends (process-local or key-value store)
- Per-user serialization of history updates
- Session statistics for monitoring
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple, Union

from nursebot.config import Settings, settings
from nursebot.models import (
    ConversationContext,
    ConversationEntry,
    MediaKind,
    MessageRole,
    SessionStats,
)
from nursebot.store import KnowledgeStore

# Configure logging
logger = logging.getLogger(__name__)


class SessionBackend(ABC):
    """Storage for per-user conversation contexts."""

    @abstractmethod
    async def load(self, user_id: str) -> Optional[ConversationContext]:
        """Return the stored context for ``user_id`` or None."""

    @abstractmethod
    async def save(self, user_id: str, context: ConversationContext) -> None:
        """Persist ``context`` for ``user_id``."""

    @abstractmethod
    async def delete(self, user_id: str) -> bool:
        """Remove the context for ``user_id``; return whether one existed."""

    @abstractmethod
    async def user_ids(self) -> List[str]:
        """Return every user id with a stored context."""


class InMemorySessionBackend(SessionBackend):
    """Process-local session contexts; lost on restart."""

    def __init__(self):
        self._contexts: Dict[str, ConversationContext] = {}

    async def load(self, user_id: str) -> Optional[ConversationContext]:
        context = self._contexts.get(user_id)
        return context.model_copy(deep=True) if context is not None else None

    async def save(self, user_id: str, context: ConversationContext) -> None:
        self._contexts[user_id] = context.model_copy(deep=True)

    async def delete(self, user_id: str) -> bool:
        return self._contexts.pop(user_id, None) is not None

    async def user_ids(self) -> List[str]:
        return list(self._contexts)


class KeyValueSessionBackend(SessionBackend):
    """Session contexts serialized as JSON under ``dialog:<user_id>`` keys."""

    def __init__(self, store: KnowledgeStore, key_prefix: str = "dialog:"):
        self.store = store
        self.key_prefix = key_prefix

    def _key(self, user_id: str) -> str:
        return f"{self.key_prefix}{user_id}"

    async def load(self, user_id: str) -> Optional[ConversationContext]:
        raw = await self.store.get(self._key(user_id))
        if raw is None:
            return None
        return ConversationContext.model_validate_json(raw)

    async def save(self, user_id: str, context: ConversationContext) -> None:
        await self.store.put(self._key(user_id), context.model_dump_json())

    async def delete(self, user_id: str) -> bool:
        key = self._key(user_id)
        existed = await self.store.get(key) is not None
        await self.store.delete(key)
        return existed

    async def user_ids(self) -> List[str]:
        keys = await self.store.list(self.key_prefix)
        return [key[len(self.key_prefix):] for key in keys]


class SessionStore:
    """Bounded per-user conversation history.

    Each user id owns an independent context. Updates for the same user run
    under that user's lock so entries keep their dispatch order and the
    history never exceeds ``max_history``.
    """

    def __init__(self, backend: Optional[SessionBackend] = None, max_history: Optional[int] = None):
        """
        Initialize the session store.

        Args:
            backend: Where contexts live, defaults to process memory
            max_history: History bound, defaults to the configured value
        """
        self.backend = backend or InMemorySessionBackend()
        self.max_history = max_history if max_history is not None else settings.max_conversation_history
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

        logger.info(f"Session store initialized with {type(self.backend).__name__}")

    @asynccontextmanager
    async def _user_lock(self, user_id: str) -> AsyncIterator[None]:
        """Hold the user's lock; the lock is dropped once no task holds or awaits it."""
        lock = self._locks.get(user_id)
        if lock is None:
            lock = self._locks[user_id] = asyncio.Lock()
        self._lock_users[user_id] = self._lock_users.get(user_id, 0) + 1

        try:
            async with lock:
                yield
        finally:
            self._lock_users[user_id] -= 1
            if not self._lock_users[user_id]:
                del self._lock_users[user_id]
                del self._locks[user_id]

    async def _append(self, user_id: str, role: MessageRole, content: str) -> ConversationEntry:
        async with self._user_lock(user_id):
            context = await self.backend.load(user_id)
            if context is None:
                context = ConversationContext()
                logger.info(f"Created new conversation context for user {user_id}")

            entry = ConversationEntry(role=role, content=content)
            context.history.append(entry)
            if len(context.history) > self.max_history:
                del context.history[: len(context.history) - self.max_history]
            context.last_interaction = entry.timestamp

            await self.backend.save(user_id, context)

        logger.debug(f"Recorded {role.value} message for user {user_id}")
        return entry

    async def append_user_message(self, user_id: str, content: str) -> ConversationEntry:
        """Record a text message sent by the user."""
        return await self._append(user_id, MessageRole.USER, content)

    async def append_user_media(
        self, user_id: str, kind: Union[MediaKind, str], media_id: str
    ) -> ConversationEntry:
        """Record an image or video sent by the user as a placeholder entry."""
        kind = MediaKind(kind)
        return await self._append(user_id, MessageRole.USER, f"[{kind.value}: {media_id}]")

    async def append_bot_message(self, user_id: str, content: Any) -> ConversationEntry:
        """
        Record a bot reply.

        Args:
            user_id: User the reply was sent to
            content: Reply text, or rendered message objects which are stored
                as JSON
        """
        if not isinstance(content, str):
            content = json.dumps(_jsonable(content), ensure_ascii=False)
        return await self._append(user_id, MessageRole.BOT, content)

    async def get_history(self, user_id: str) -> Tuple[ConversationEntry, ...]:
        """Return a read-only snapshot of the user's history, oldest first."""
        async with self._user_lock(user_id):
            context = await self.backend.load(user_id)
        return tuple(context.history) if context is not None else ()

    async def get_last_interaction(self, user_id: str) -> Optional[datetime]:
        context = await self.backend.load(user_id)
        return context.last_interaction if context is not None else None

    async def clear(self, user_id: str) -> bool:
        """
        Drop all conversation state for a user.

        Returns:
            bool: True if a context existed
        """
        async with self._user_lock(user_id):
            existed = await self.backend.delete(user_id)

        logger.debug(f"Cleared conversation context for user {user_id}")
        return existed

    async def stats(self) -> List[SessionStats]:
        """Get memory statistics for every stored conversation."""
        stats = []
        for user_id in await self.backend.user_ids():
            context = await self.backend.load(user_id)
            if context is None:
                continue
            stats.append(
                SessionStats(
                    user_id=user_id,
                    total_messages=len(context.history),
                    last_interaction=context.last_interaction,
                )
            )
        return stats

    async def active_session_count(self) -> int:
        return len(await self.backend.user_ids())


def _jsonable(content: Any) -> Any:
    if isinstance(content, (list, tuple)):
        return [_jsonable(item) for item in content]
    if hasattr(content, "model_dump"):
        return content.model_dump(mode="json", by_alias=True, exclude_none=True)
    return content


def create_session_store(
    config: Optional[Settings] = None, store: Optional[KnowledgeStore] = None
) -> SessionStore:
    """
    Build the session store selected by configuration.

    Args:
        config: Settings to use, defaults to the global settings
        store: Key-value store for the "store" session backend

    Returns:
        SessionStore: Configured session store
    """
    config = config or settings

    if config.session_backend == "store" and store is not None:
        backend: SessionBackend = KeyValueSessionBackend(store)
    else:
        backend = InMemorySessionBackend()

    return SessionStore(backend=backend, max_history=config.max_conversation_history)
