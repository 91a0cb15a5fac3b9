"""Tests for knowledge ingestion."""

import json
import logging

import pytest

from conftest import FailingStore, SCENARIO_DOCUMENTS
from nursebot.indexing import KnowledgeIndexer, build_keyword_index, load_documents
from nursebot.knowledge import KnowledgeRepository
from nursebot.models import DepartmentListing, KnowledgeDocument
from nursebot.retrieval import RetrievalEngine
from nursebot.store import InMemoryKnowledgeStore


def documents():
    return [KnowledgeDocument.model_validate(record) for record in SCENARIO_DOCUMENTS]


class TestBuildKeywordIndex:
    """Tests for keyword index construction."""

    def test_departments_first(self):
        index = build_keyword_index(documents(), ["icu", "er"])

        assert list(index)[:2] == ["icu", "er"]
        assert index["icu"] == "Department:icu"
        assert index["CVVH"] == "icu-cvvh-setup"
        assert index["triage"] == "er-triage"

    def test_department_codes_normalized(self):
        index = build_keyword_index([], [" ICU "])
        assert index == {"icu": "Department:icu"}

    def test_colliding_keyword_skipped(self):
        document = KnowledgeDocument(id="icu-overview", keywords=["ICU", "overview"], text="# ICU")
        index = build_keyword_index([document], ["icu"])

        assert index["icu"] == "Department:icu"
        assert "ICU" not in index
        assert index["overview"] == "icu-overview"

    def test_later_document_takes_keyword(self):
        first = KnowledgeDocument(id="icu-a", keywords=["alarm"], text="# A")
        second = KnowledgeDocument(id="nurse-b", keywords=["alarm"], text="# B")
        assert build_keyword_index([first, second], [])["alarm"] == "nurse-b"


class TestLoadDocuments:
    """Tests for reading records from disk."""

    def test_directory_of_files(self, tmp_path):
        (tmp_path / "icu.json").write_text(json.dumps(SCENARIO_DOCUMENTS[:2]), encoding="utf-8")
        nested = tmp_path / "er"
        nested.mkdir()
        (nested / "triage.json").write_text(json.dumps(SCENARIO_DOCUMENTS[2]), encoding="utf-8")

        loaded = load_documents(str(tmp_path))
        assert sorted(document.id for document in loaded) == [
            "er-triage",
            "icu-cvvh-setup",
            "icu-vent-weaning",
        ]

    def test_invalid_records_skipped(self, tmp_path):
        path = tmp_path / "records.json"
        path.write_text(json.dumps([{"id": "icu-no-text"}, SCENARIO_DOCUMENTS[0]]), encoding="utf-8")

        loaded = load_documents(str(path))
        assert [document.id for document in loaded] == ["icu-cvvh-setup"]

    def test_unreadable_file_skipped(self, tmp_path):
        (tmp_path / "broken.json").write_text("{oops", encoding="utf-8")
        assert load_documents(str(tmp_path)) == []

    def test_misfiled_record_warns(self, tmp_path, caplog):
        folder = tmp_path / "icu"
        folder.mkdir()
        (folder / "triage.json").write_text(json.dumps(SCENARIO_DOCUMENTS[2]), encoding="utf-8")
        (folder / "cvvh.json").write_text(json.dumps(SCENARIO_DOCUMENTS[0]), encoding="utf-8")

        with caplog.at_level(logging.WARNING, logger="nursebot.indexing"):
            loaded = load_documents(str(tmp_path), ["icu", "er"])

        assert sorted(document.id for document in loaded) == ["er-triage", "icu-cvvh-setup"]
        warnings = [record.getMessage() for record in caplog.records if record.levelno == logging.WARNING]
        assert len(warnings) == 1
        assert "er-triage" in warnings[0]

    def test_non_department_folder_does_not_warn(self, tmp_path, caplog):
        folder = tmp_path / "drafts"
        folder.mkdir()
        (folder / "triage.json").write_text(json.dumps(SCENARIO_DOCUMENTS[2]), encoding="utf-8")

        with caplog.at_level(logging.WARNING, logger="nursebot.indexing"):
            load_documents(str(tmp_path), ["icu", "er"])

        assert not [record for record in caplog.records if record.levelno == logging.WARNING]

    def test_missing_path(self, tmp_path):
        assert load_documents(str(tmp_path / "missing")) == []


class TestKnowledgeIndexer:
    """Tests for writing records and the index to a store."""

    @pytest.mark.asyncio
    async def test_index_documents(self, test_settings):
        store = InMemoryKnowledgeStore()
        result = await KnowledgeIndexer(store, test_settings).index_documents(documents())

        assert result.success is True
        assert result.total_documents == 3
        assert result.indexed_ids == ["icu-cvvh-setup", "icu-vent-weaning", "er-triage"]
        assert await store.list("knowledge:") == [
            "knowledge:er-triage",
            "knowledge:icu-cvvh-setup",
            "knowledge:icu-vent-weaning",
        ]

        stored = json.loads(await store.get("knowledge:icu-cvvh-setup"))
        assert stored["videoUrl"] == "https://www.youtube.com/watch?v=CXmG1o3RjQk"
        assert "imageUrl" not in stored

        keyword_index = json.loads(await store.get("keyword-index"))
        assert result.total_keywords == len(keyword_index)
        for code in test_settings.departments:
            assert keyword_index[code] == f"Department:{code}"

    @pytest.mark.asyncio
    async def test_indexed_store_is_retrievable(self, test_settings):
        store = InMemoryKnowledgeStore()
        await KnowledgeIndexer(store, test_settings).index_documents(documents())
        engine = RetrievalEngine(KnowledgeRepository(store, test_settings), test_settings)

        document = await engine.get_response("cvvh priming")
        assert document.id == "icu-cvvh-setup"

        listing = await engine.get_response("OPD")
        assert isinstance(listing, DepartmentListing)
        assert listing.entries == []

    @pytest.mark.asyncio
    async def test_failing_store_reports_errors(self, test_settings):
        result = await KnowledgeIndexer(FailingStore(), test_settings).index_documents(documents())

        assert result.success is False
        assert result.total_documents == 0
        assert len(result.errors) == 4

    @pytest.mark.asyncio
    async def test_index_path_without_documents(self, tmp_path, test_settings):
        result = await KnowledgeIndexer(InMemoryKnowledgeStore(), test_settings).index_path(str(tmp_path))
        assert result.success is False
        assert result.errors
