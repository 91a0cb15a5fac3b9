"""
Knowledge repository for the Nursing Knowledge Chatbot

This module handles:
- Loading knowledge documents by id from the knowledge store
- Enumerating stored document ids and department listings
- Full-text search over the knowledge base
- Knowledge base diagnostics

Every public operation is fail-soft: storage failures and malformed records
are logged and surface as None or an empty result.
"""

import asyncio
import logging
import re
from typing import List, Optional

from pydantic import ValidationError

from nursebot.config import Settings, settings
from nursebot.keyword_index import KeywordIndex
from nursebot.models import DepartmentEntry, KnowledgeDocument, Lookup, SystemCheck
from nursebot.store import KnowledgeStore

# Configure logging
logger = logging.getLogger(__name__)

UNTITLED = "Untitled entry"
NO_DESCRIPTION = "No description"
DESCRIPTION_LIMIT = 50

_TITLE_PATTERN = re.compile(r"^#\s+(.+)$", re.MULTILINE)


def extract_title(text: str) -> str:
    """Return the first '# ' heading of a knowledge text."""
    match = _TITLE_PATTERN.search(text)
    return match.group(1).strip() if match else UNTITLED


def extract_description(text: str) -> str:
    """Return the first non-heading paragraph, truncated for listings."""
    description = ""
    for paragraph in text.split("\n\n"):
        if not paragraph.startswith("#") and paragraph.strip():
            description = paragraph.strip()
            break

    if len(description) > DESCRIPTION_LIMIT:
        description = description[:DESCRIPTION_LIMIT] + "..."

    return description or NO_DESCRIPTION


def to_entry(document: KnowledgeDocument) -> DepartmentEntry:
    return DepartmentEntry(
        id=document.id,
        title=extract_title(document.text),
        short_description=extract_description(document.text),
    )


class KnowledgeRepository:
    """Read access to knowledge documents held in a knowledge store."""

    def __init__(self, store: Optional[KnowledgeStore], config: Optional[Settings] = None):
        """
        Initialize the repository.

        Args:
            store: Backing knowledge store, None when storage is not configured
            config: Settings to use, defaults to the global settings
        """
        self.store = store
        self.settings = config or settings
        self.key_prefix = self.settings.knowledge_key_prefix

    def document_key(self, document_id: str) -> str:
        return f"{self.key_prefix}{document_id}"

    async def fetch(self, document_id: str) -> Lookup:
        """
        Load a document, reporting why a lookup failed.

        Returns:
            Lookup: OK with the document, MISS when absent, STORAGE_ERROR when
            the store failed or the stored payload is malformed
        """
        if self.store is None:
            logger.error("Knowledge store is not configured")
            return Lookup.error("knowledge store not configured")

        try:
            raw = await self.store.get(self.document_key(document_id))
        except Exception as e:
            logger.error(f"Failed to load knowledge document {document_id}: {e}")
            return Lookup.error(str(e))

        if raw is None:
            logger.debug(f"Knowledge document not found: {document_id}")
            return Lookup.miss()

        try:
            return Lookup.ok(KnowledgeDocument.model_validate_json(raw))
        except ValidationError as e:
            logger.error(f"Malformed knowledge document {document_id}: {e}")
            return Lookup.error(f"malformed record: {document_id}")

    async def get_by_id(self, document_id: str) -> Optional[KnowledgeDocument]:
        """Return the document with ``document_id`` or None."""
        lookup = await self.fetch(document_id)
        return lookup.unwrap_or_none()

    async def list_ids(self) -> List[str]:
        """Return all stored document ids, or an empty list if the store fails."""
        if self.store is None:
            logger.error("Knowledge store is not configured")
            return []

        try:
            keys = await self.store.list(self.key_prefix)
        except Exception as e:
            logger.error(f"Failed to list knowledge document ids: {e}")
            return []

        return [key[len(self.key_prefix):] for key in keys]

    async def list_department_entries(self, department: str) -> List[DepartmentEntry]:
        """
        List every document whose id starts with ``<department>-``.

        Documents are fetched concurrently; any that cannot be loaded are
        left out of the listing.

        Args:
            department: Department code, matched case-insensitively

        Returns:
            List of listing entries, possibly empty
        """
        code = department.strip().lower()
        prefix = f"{code}-"

        try:
            department_ids = [doc_id for doc_id in await self.list_ids() if doc_id.startswith(prefix)]
            if not department_ids:
                return []

            documents = await asyncio.gather(*(self.get_by_id(doc_id) for doc_id in department_ids))
            entries = [to_entry(document) for document in documents if document is not None]

            logger.debug(f"Found {len(entries)} entries for department {code}")
            return entries

        except Exception as e:
            logger.error(f"Failed to list entries for department {code}: {e}")
            return []

    async def search(self, query: Optional[str]) -> List[DepartmentEntry]:
        """
        Search titles, bodies and keywords for ``query``.

        Args:
            query: Search text, matched case-insensitively

        Returns:
            Listing entries of matching documents
        """
        if not query or not query.strip():
            return []

        lowered = query.lower()
        matching: List[DepartmentEntry] = []

        try:
            for document_id in await self.list_ids():
                document = await self.get_by_id(document_id)
                if document is None:
                    continue

                entry = to_entry(document)
                if (
                    lowered in entry.title.lower()
                    or lowered in document.text.lower()
                    or any(lowered in keyword.lower() for keyword in document.keywords)
                ):
                    matching.append(entry)

            return matching

        except Exception as e:
            logger.error(f"Knowledge search failed for {query!r}: {e}")
            return []

    async def load_keyword_index(self) -> Lookup:
        """Load and parse the stored keyword index."""
        if self.store is None:
            logger.error("Knowledge store is not configured")
            return Lookup.error("knowledge store not configured")

        try:
            raw = await self.store.get(self.settings.keyword_index_key)
        except Exception as e:
            logger.error(f"Failed to load keyword index: {e}")
            return Lookup.error(str(e))

        if raw is None:
            logger.debug("Keyword index not found")
            return Lookup.miss()

        try:
            return Lookup.ok(KeywordIndex.from_json(raw, match_policy=self.settings.keyword_match_policy))
        except ValueError as e:
            logger.error(f"Malformed keyword index: {e}")
            return Lookup.error(f"malformed keyword index: {e}")

    async def system_status(self) -> SystemCheck:
        """
        Collect a diagnostic snapshot of the knowledge base.

        Returns:
            SystemCheck: Store and index state with per-department counts
        """
        status = SystemCheck(
            environment=self.settings.environment,
            store_configured=self.store is not None,
        )
        if self.store is None:
            status.status = "degraded"
            return status

        index_lookup = await self.load_keyword_index()
        if index_lookup.is_ok:
            status.keyword_index_exists = True
            status.index_contents = index_lookup.value.sample(10)
        else:
            status.status = "degraded"

        status.knowledge_entries_count = len(await self.list_ids())

        for department in self.settings.departments:
            entries = await self.list_department_entries(department)
            status.department_entries[department] = len(entries)

        return status
