"""Tests for the knowledge repository."""

import json

import pytest

from conftest import CVVH_TEXT, FailingStore, seed_data
from nursebot.knowledge import (
    DESCRIPTION_LIMIT,
    NO_DESCRIPTION,
    UNTITLED,
    KnowledgeRepository,
    extract_description,
    extract_title,
)
from nursebot.models import LookupStatus
from nursebot.store import InMemoryKnowledgeStore


class TestTitleAndDescription:
    """Tests for listing entry derivation."""

    def test_title_from_first_heading(self):
        assert extract_title(CVVH_TEXT) == "CVVH Manual Setup Guide"

    def test_subheadings_are_not_titles(self):
        assert extract_title("#### Step 1\n\n# Real Title") == "Real Title"

    def test_missing_title(self):
        assert extract_title("plain text only") == UNTITLED

    def test_description_is_first_body_paragraph(self):
        assert extract_description("# Title\n\nShort body.\n\nSecond.") == "Short body."

    def test_long_description_truncated(self):
        description = extract_description(CVVH_TEXT)
        assert len(description) == DESCRIPTION_LIMIT + 3
        assert description.endswith("...")
        assert description.startswith("Step-by-step instructions")

    def test_missing_description(self):
        assert extract_description("# Title only") == NO_DESCRIPTION


class TestFetch:
    """Tests for single-document lookups."""

    @pytest.mark.asyncio
    async def test_get_by_id(self, repository):
        document = await repository.get_by_id("icu-cvvh-setup")
        assert document is not None
        assert document.keywords == ["CVVH", "hemofiltration"]
        assert document.video_url == "https://www.youtube.com/watch?v=CXmG1o3RjQk"

    @pytest.mark.asyncio
    async def test_get_by_id_is_repeatable(self, repository):
        first = await repository.get_by_id("er-triage")
        second = await repository.get_by_id("er-triage")
        assert first == second

    @pytest.mark.asyncio
    async def test_missing_document(self, repository):
        lookup = await repository.fetch("icu-unknown")
        assert lookup.status == LookupStatus.MISS
        assert await repository.get_by_id("icu-unknown") is None

    @pytest.mark.asyncio
    async def test_malformed_record_is_a_storage_error(self, test_settings):
        store = InMemoryKnowledgeStore({"knowledge:icu-broken": "{not json"})
        repository = KnowledgeRepository(store, test_settings)

        lookup = await repository.fetch("icu-broken")
        assert lookup.status == LookupStatus.STORAGE_ERROR
        assert await repository.get_by_id("icu-broken") is None

    @pytest.mark.asyncio
    async def test_failing_store(self, test_settings):
        repository = KnowledgeRepository(FailingStore(), test_settings)
        lookup = await repository.fetch("icu-cvvh-setup")
        assert lookup.status == LookupStatus.STORAGE_ERROR

    @pytest.mark.asyncio
    async def test_unconfigured_store(self, test_settings):
        repository = KnowledgeRepository(None, test_settings)
        assert await repository.get_by_id("icu-cvvh-setup") is None
        assert await repository.list_ids() == []


class TestDepartmentEntries:
    """Tests for department listings."""

    @pytest.mark.asyncio
    async def test_list_ids(self, repository):
        assert await repository.list_ids() == ["er-triage", "icu-cvvh-setup", "icu-vent-weaning"]

    @pytest.mark.asyncio
    async def test_icu_entries(self, repository):
        entries = await repository.list_department_entries("icu")
        assert [entry.id for entry in entries] == ["icu-cvvh-setup", "icu-vent-weaning"]
        assert entries[0].title == "CVVH Manual Setup Guide"
        assert entries[1].title == "Ventilator Weaning"

    @pytest.mark.asyncio
    async def test_department_code_is_case_insensitive(self, repository):
        entries = await repository.list_department_entries("ER")
        assert [entry.id for entry in entries] == ["er-triage"]

    @pytest.mark.asyncio
    async def test_empty_department(self, repository):
        assert await repository.list_department_entries("ward") == []

    @pytest.mark.asyncio
    async def test_prefix_requires_separator(self, test_settings):
        documents = [
            {"id": "or-checklist", "keywords": [], "text": "# OR Checklist\n\nBody."},
            {"id": "orientation", "keywords": [], "text": "# Orientation\n\nBody."},
        ]
        repository = KnowledgeRepository(InMemoryKnowledgeStore(seed_data(documents=documents)), test_settings)

        entries = await repository.list_department_entries("or")
        assert [entry.id for entry in entries] == ["or-checklist"]

    @pytest.mark.asyncio
    async def test_unloadable_entries_are_skipped(self, test_settings):
        data = seed_data()
        data["knowledge:icu-broken"] = json.dumps({"id": "icu-broken"})
        repository = KnowledgeRepository(InMemoryKnowledgeStore(data), test_settings)

        entries = await repository.list_department_entries("icu")
        assert [entry.id for entry in entries] == ["icu-cvvh-setup", "icu-vent-weaning"]

    @pytest.mark.asyncio
    async def test_failing_store_lists_nothing(self, test_settings):
        repository = KnowledgeRepository(FailingStore(), test_settings)
        assert await repository.list_department_entries("icu") == []


class TestSearch:
    """Tests for full-text document search."""

    @pytest.mark.asyncio
    async def test_search_by_body_text(self, repository):
        results = await repository.search("mechanical ventilation")
        assert [entry.id for entry in results] == ["icu-vent-weaning"]

    @pytest.mark.asyncio
    async def test_search_by_keyword(self, repository):
        results = await repository.search("HEMOFILTRATION")
        assert [entry.id for entry in results] == ["icu-cvvh-setup"]

    @pytest.mark.asyncio
    async def test_blank_search(self, repository):
        assert await repository.search("  ") == []


class TestSystemStatus:
    """Tests for the diagnostic snapshot."""

    @pytest.mark.asyncio
    async def test_healthy_snapshot(self, repository):
        status = await repository.system_status()

        assert status.status == "healthy"
        assert status.store_configured is True
        assert status.keyword_index_exists is True
        assert status.knowledge_entries_count == 3
        assert status.department_entries["icu"] == 2
        assert status.department_entries["er"] == 1
        assert status.department_entries["ward"] == 0
        assert status.index_contents["cvvh"] == "icu-cvvh-setup"

    @pytest.mark.asyncio
    async def test_missing_index_is_degraded(self, test_settings):
        data = seed_data()
        del data["keyword-index"]
        repository = KnowledgeRepository(InMemoryKnowledgeStore(data), test_settings)

        status = await repository.system_status()
        assert status.status == "degraded"
        assert status.keyword_index_exists is False
        assert status.knowledge_entries_count == 3

    @pytest.mark.asyncio
    async def test_no_store(self, test_settings):
        status = await KnowledgeRepository(None, test_settings).system_status()
        assert status.status == "degraded"
        assert status.store_configured is False
