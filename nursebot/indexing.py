"""
Knowledge ingestion pipeline for the Nursing Knowledge Chatbot

This module handles:
- Loading knowledge records from JSON files
- Building the keyword index (department markers plus document keywords)
- Writing document records and the keyword index to the knowledge store
"""

import json
import logging
import time
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from pydantic import ValidationError

from nursebot.config import Settings, settings
from nursebot.keyword_index import DEPARTMENT_MARKER
from nursebot.models import IndexingResponse, KnowledgeDocument
from nursebot.store import KnowledgeStore

# Configure logging
logger = logging.getLogger(__name__)


def build_keyword_index(
    documents: Iterable[KnowledgeDocument], departments: Iterable[str]
) -> Dict[str, str]:
    """
    Build the keyword -> target mapping written to the store.

    Department markers are added first. Document keywords that collide with a
    department code (case-insensitively) are skipped so department lookups keep
    priority; a later document reusing a keyword replaces the earlier target.

    Args:
        documents: Knowledge records to index
        departments: Department codes

    Returns:
        Ordered keyword index mapping
    """
    keyword_index: Dict[str, str] = {}
    department_codes = set()

    for code in departments:
        code = code.strip().lower()
        department_codes.add(code)
        keyword_index[code] = f"{DEPARTMENT_MARKER}{code}"

    for document in documents:
        for keyword in document.keywords:
            if keyword.lower() in department_codes:
                logger.warning(
                    f"Keyword {keyword!r} of {document.id} collides with a department code, keeping the department"
                )
                continue

            previous = keyword_index.get(keyword)
            if previous is not None and previous != document.id:
                logger.warning(f"Keyword {keyword!r} moved from {previous} to {document.id}")
            keyword_index[keyword] = document.id

    return keyword_index


def load_documents(path: str, departments: Optional[Iterable[str]] = None) -> List[KnowledgeDocument]:
    """
    Load knowledge records from a JSON file or a directory of JSON files.

    A file may hold a single record object or a list of records. Records that
    fail validation are logged and skipped. A record filed under a department
    folder whose id lacks that department's prefix is loaded with a warning,
    since it will not appear in the department listing.

    Args:
        path: File or directory path
        departments: Department codes, defaults to the configured list

    Returns:
        Parsed knowledge documents
    """
    department_codes = {
        code.strip().lower()
        for code in (departments if departments is not None else settings.departments)
    }

    source = Path(path)
    if source.is_dir():
        files = sorted(source.rglob("*.json"))
    elif source.exists():
        files = [source]
    else:
        logger.warning(f"Knowledge source does not exist: {path}")
        return []

    documents: List[KnowledgeDocument] = []
    for file_path in files:
        try:
            with open(file_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to read {file_path}: {e}")
            continue

        folder = file_path.parent.name.lower()
        records = data if isinstance(data, list) else [data]
        for idx, record in enumerate(records):
            try:
                document = KnowledgeDocument.model_validate(record)
            except ValidationError as e:
                logger.error(f"Skipping invalid record {idx} in {file_path}: {e}")
                continue

            if folder in department_codes and not document.id.startswith(f"{folder}-"):
                logger.warning(
                    f"Record {document.id} in {file_path} does not start with '{folder}-' "
                    f"and will be missing from the {folder} listing"
                )
            documents.append(document)

    logger.info(f"Loaded {len(documents)} knowledge documents from {path}")
    return documents


class KnowledgeIndexer:
    """Writes knowledge records and the keyword index to a knowledge store."""

    def __init__(self, store: KnowledgeStore, config: Optional[Settings] = None):
        self.store = store
        self.settings = config or settings

    async def index_documents(
        self,
        documents: List[KnowledgeDocument],
        departments: Optional[List[str]] = None,
    ) -> IndexingResponse:
        """
        Store every document and rebuild the keyword index.

        Args:
            documents: Knowledge records to write
            departments: Department codes, defaults to the configured list

        Returns:
            IndexingResponse: Results of the indexing operation
        """
        start_time = time.time()
        departments = departments if departments is not None else self.settings.departments
        errors: List[str] = []
        indexed: List[KnowledgeDocument] = []

        for document in documents:
            key = f"{self.settings.knowledge_key_prefix}{document.id}"
            try:
                await self.store.put(key, json.dumps(document.to_wire(), ensure_ascii=False))
                indexed.append(document)
                logger.info(f"Stored knowledge document {document.id}")
            except Exception as e:
                error_msg = f"Failed to store {document.id}: {e}"
                logger.error(error_msg)
                errors.append(error_msg)

        keyword_index = build_keyword_index(indexed, departments)
        try:
            await self.store.put(
                self.settings.keyword_index_key,
                json.dumps(keyword_index, ensure_ascii=False),
            )
            logger.info(f"Keyword index written with {len(keyword_index)} entries")
        except Exception as e:
            error_msg = f"Failed to store keyword index: {e}"
            logger.error(error_msg)
            errors.append(error_msg)

        processing_time = int((time.time() - start_time) * 1000)

        return IndexingResponse(
            success=not errors,
            total_documents=len(indexed),
            total_keywords=len(keyword_index),
            processing_time_ms=processing_time,
            errors=errors,
            indexed_ids=[document.id for document in indexed],
        )

    async def index_path(self, path: str) -> IndexingResponse:
        """Load records from ``path`` and index them."""
        documents = load_documents(path, self.settings.departments)
        if not documents:
            return IndexingResponse(
                success=False,
                total_documents=0,
                total_keywords=0,
                processing_time_ms=0,
                errors=[f"No knowledge documents found in {path}"],
            )
        return await self.index_documents(documents)
