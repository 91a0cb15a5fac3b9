"""
Retrieval engine for the Nursing Knowledge Chatbot

This module decides what a user message refers to:
- A department listing when the message is exactly a department keyword
- A single knowledge document when a document keyword appears in the message
- A miss otherwise, which callers answer with a generic reply

Retrieval is best-effort and never raises; storage outages degrade to a miss.
"""

import logging
from typing import Optional

from nursebot.config import Settings, settings
from nursebot.models import (
    DepartmentListing,
    DepartmentRef,
    KeywordSearchResponse,
    LookupStatus,
    RetrievalResult,
)
from nursebot.knowledge import KnowledgeRepository

# Configure logging
logger = logging.getLogger(__name__)


class RetrievalEngine:
    """Keyword-indexed lookup over the nursing knowledge base."""

    def __init__(self, repository: KnowledgeRepository, config: Optional[Settings] = None):
        self.repository = repository
        self.settings = config or settings

    async def get_response(self, query: str) -> Optional[RetrievalResult]:
        """
        Resolve a user message to knowledge base content.

        Args:
            query: Raw user text

        Returns:
            The matched document, a department listing (possibly with no
            entries), or None on a miss or storage failure
        """
        logger.debug(f"Looking up knowledge for query: {query!r}")

        try:
            index_lookup = await self.repository.load_keyword_index()
            if not index_lookup.is_ok:
                logger.debug(f"Keyword index unavailable ({index_lookup.status.value})")
                return None

            target = index_lookup.value.resolve(query)
            if target is None:
                logger.debug("No keyword matched the query")
                return None

            if isinstance(target, DepartmentRef):
                department = target.department_code
                entries = await self.repository.list_department_entries(department)
                logger.debug(f"Department query for {department}: {len(entries)} entries")
                return DepartmentListing(department=department, entries=entries)

            document_lookup = await self.repository.fetch(target.document_id)
            if document_lookup.is_ok:
                logger.debug(f"Matched knowledge document {target.document_id}")
                return document_lookup.value

            if document_lookup.status == LookupStatus.STORAGE_ERROR:
                logger.error(
                    f"Keyword resolved to {target.document_id} but it could not be loaded: "
                    f"{document_lookup.detail}"
                )
            else:
                logger.debug(f"Keyword resolved to missing document {target.document_id}")
            return None

        except Exception as e:
            logger.error(f"Failed to retrieve knowledge response: {e}")
            return None

    async def search_keywords(self, query: str) -> Optional[KeywordSearchResponse]:
        """
        Diagnostic bidirectional keyword search.

        Returns:
            Matching keywords, or None when the keyword index is unavailable
        """
        index_lookup = await self.repository.load_keyword_index()
        if not index_lookup.is_ok:
            return None
        return index_lookup.value.search(query)
