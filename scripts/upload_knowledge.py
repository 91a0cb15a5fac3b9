"""
Knowledge upload script for the Nursing Knowledge Chatbot

This script handles:
- Loading knowledge records from JSON files
- Writing each record to the configured knowledge store
- Rebuilding the keyword index, including department markers
- Reporting department keyword coverage after upload
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parent.parent))

from nursebot.config import settings, validate_configuration
from nursebot.indexing import KnowledgeIndexer, load_documents
from nursebot.store import create_knowledge_store

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def upload(source: str) -> bool:
    """
    Upload every knowledge record found at ``source``.

    Args:
        source: JSON file or directory of JSON files

    Returns:
        bool: True if every record and the keyword index were written
    """
    documents = load_documents(source)
    if not documents:
        logger.warning(f"No knowledge records found in {source}. Add records before uploading.")
        return False

    store = create_knowledge_store(settings)
    indexer = KnowledgeIndexer(store, settings)
    result = await indexer.index_documents(documents)

    logger.info(
        f"Uploaded {result.total_documents} documents and {result.total_keywords} keywords "
        f"in {result.processing_time_ms}ms"
    )
    for error in result.errors:
        logger.error(error)

    raw_index = await store.get(settings.keyword_index_key)
    keyword_index = json.loads(raw_index) if raw_index else {}
    for code in settings.departments:
        marker = keyword_index.get(code)
        if marker == f"Department:{code}":
            logger.info(f"Department keyword OK: {code} -> {marker}")
        else:
            logger.warning(f"Department keyword missing: {code} -> {marker or 'not set'}")

    return result.success


def main():
    """Main function to run the knowledge upload."""
    parser = argparse.ArgumentParser(description="Upload nursing knowledge records")
    parser.add_argument(
        "source",
        nargs="?",
        default="./data/knowledge",
        help="JSON file or directory of JSON knowledge records",
    )
    args = parser.parse_args()

    if not validate_configuration():
        sys.exit(1)

    if settings.knowledge_backend == "memory":
        logger.warning("KNOWLEDGE_BACKEND is 'memory'; uploaded records will not outlive this script")

    logger.info(f"Starting knowledge upload from {args.source}...")
    success = asyncio.run(upload(args.source))
    logger.info("Knowledge upload completed!" if success else "Knowledge upload finished with errors")
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
