"""Tests for stix_extractor.document_service module.

Uses real filesystem storage under tmp_path and scripted provider clients:
- Upload validation and storage layout
- Extraction persisting the bundle and updating the record
- Job status tracking and the one-extraction-per-document guard
- Loading and merging stored bundles
"""

import json
from unittest.mock import MagicMock

import pytest

from stix_extractor.core.errors import (
    DocumentNotFoundError,
    DocumentValidationError,
    ExtractionInProgressError,
)
from stix_extractor.core.job_status import JobStatus
from stix_extractor.core.storage import JsonRecordStore, LocalObjectStorage, StorageError
from stix_extractor.document_service import DocumentExtractionService
from stix_extractor.orchestrator import FallbackOrchestrator
from stix_extractor.pydantic_models import STIXBundle

REPORT_TEXT = b"Wizard Spider operates TrickBot against hospitals."


@pytest.fixture
def service(tmp_path, primary_provider, secondary_provider):
    return DocumentExtractionService(
        storage=LocalObjectStorage(tmp_path / "blobs"),
        records=JsonRecordStore(tmp_path / "records"),
        orchestrator=FallbackOrchestrator(providers=[primary_provider, secondary_provider]),
    )


@pytest.fixture
def uploaded(service):
    return service.upload_document(REPORT_TEXT, "wizard-spider.report.txt", "text/plain", "analyst1")


# =============================================================================
# Upload tests
# =============================================================================


class TestUpload:
    """Tests for upload_document()."""

    def test_record_saved(self, service, uploaded):
        assert service.records.get(uploaded.id) == uploaded
        assert uploaded.user_id == "analyst1"
        assert uploaded.file_size == len(REPORT_TEXT)
        assert uploaded.stix_bundle_url is None

    def test_original_and_text_stored(self, service, uploaded):
        assert service.storage.get(uploaded.original_url) == REPORT_TEXT
        assert service.storage.get(uploaded.text_url) == REPORT_TEXT

    def test_storage_layout(self, service, uploaded):
        root = service.storage.root
        assert (root / "documents" / "analyst1" / "wizard-spider.report.txt").is_file()
        assert (root / "documents" / "analyst1" / "text" / "wizard-spider.txt").is_file()

    def test_directory_components_stripped(self, service):
        record = service.upload_document(REPORT_TEXT, "../../etc/report.txt", "text/plain", "analyst1")
        assert record.file_name == "report.txt"

    def test_empty_file_rejected(self, service):
        with pytest.raises(DocumentValidationError, match="No file provided"):
            service.upload_document(b"", "a.txt", "text/plain", "analyst1")

    def test_oversized_file_rejected(self, service):
        with pytest.raises(DocumentValidationError, match="5MB"):
            service.upload_document(b"x" * (5 * 1024 * 1024 + 1), "a.txt", "text/plain", "analyst1")

    def test_disallowed_type_rejected(self, service):
        with pytest.raises(DocumentValidationError, match="File type not supported"):
            service.upload_document(b"\x89PNG", "a.png", "image/png", "analyst1")

    def test_unparseable_pdf_stores_placeholder_text(self, service):
        record = service.upload_document(b"not really a pdf", "broken.pdf", "application/pdf", "analyst1")
        assert service.storage.get(record.text_url) == b"Unable to parse PDF content"


# =============================================================================
# Extraction tests
# =============================================================================


class TestExtractDocument:
    """Tests for extract_document()."""

    @pytest.mark.asyncio
    async def test_bundle_stored_and_record_updated(self, service, uploaded, fake_providers, sample_objects):
        fake_providers({"primary": json.dumps(sample_objects)})

        bundle = await service.extract_document(uploaded.id)

        record = service.records.get(uploaded.id)
        assert record.stix_bundle_url is not None
        assert record.stix_bundle_url.endswith(f"documents/analyst1/stix/{uploaded.id}.json")

        stored = json.loads(service.storage.get(record.stix_bundle_url))
        assert stored["id"] == bundle.id
        assert stored["objects"] == sample_objects

    @pytest.mark.asyncio
    async def test_stored_bundle_is_indented(self, service, uploaded, fake_providers, sample_objects):
        fake_providers({"primary": json.dumps(sample_objects)})

        await service.extract_document(uploaded.id)

        record = service.records.get(uploaded.id)
        raw = service.storage.get(record.stix_bundle_url).decode("utf-8")
        assert raw.startswith('{\n  "type": "bundle"')

    @pytest.mark.asyncio
    async def test_job_completed(self, service, uploaded, fake_providers, sample_objects):
        fake_providers({"primary": json.dumps(sample_objects)})

        await service.extract_document(uploaded.id)

        state = service.job_status(uploaded.id)
        assert state.status == JobStatus.COMPLETED
        assert state.object_count == 3
        assert state.message == "Extracted 3 objects"

    @pytest.mark.asyncio
    async def test_all_providers_failing_stores_empty_bundle(self, service, uploaded, fake_providers):
        fake_providers({})

        bundle = await service.extract_document(uploaded.id)

        assert bundle.objects == []
        assert service.load_bundle(uploaded.id).objects == []
        assert service.job_status(uploaded.id).status == JobStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_reextraction_overwrites_bundle(self, service, uploaded, fake_providers, sample_objects):
        fake_providers({"primary": json.dumps(sample_objects)})
        await service.extract_document(uploaded.id)
        first_url = service.records.get(uploaded.id).stix_bundle_url

        fake_providers({"primary": json.dumps(sample_objects[:1])})
        await service.extract_document(uploaded.id)

        record = service.records.get(uploaded.id)
        assert record.stix_bundle_url == first_url
        assert len(service.load_bundle(uploaded.id).objects) == 1

    @pytest.mark.asyncio
    async def test_concurrent_extraction_rejected(self, service, uploaded, fake_providers):
        calls = fake_providers({"primary": "[]"})
        service.jobs.start(uploaded.id)

        with pytest.raises(ExtractionInProgressError):
            await service.extract_document(uploaded.id)
        assert calls == []

    @pytest.mark.asyncio
    async def test_storage_failure_marks_job_failed(self, service, uploaded, fake_providers, sample_objects):
        fake_providers({"primary": json.dumps(sample_objects)})
        service.storage.put = MagicMock(side_effect=StorageError("disk full"))

        with pytest.raises(StorageError):
            await service.extract_document(uploaded.id)

        state = service.job_status(uploaded.id)
        assert state.status == JobStatus.FAILED
        assert "disk full" in state.error
        assert service.records.get(uploaded.id).stix_bundle_url is None

    @pytest.mark.asyncio
    async def test_injected_orchestrator_used(self, tmp_path):
        tool = {"type": "tool", "id": "tool--7b4a1f6e-5c4d-4b7a-9a54-0a0f3a9a5d21", "name": "Cobalt Strike"}

        class CannedOrchestrator:
            def __init__(self):
                self.calls = []

            async def extract_bundle(self, text, label=None, on_progress=None):
                self.calls.append((text, label))
                on_progress("canned", "Returning canned bundle")
                return STIXBundle(objects=[tool])

        orchestrator = CannedOrchestrator()
        service = DocumentExtractionService(
            storage=LocalObjectStorage(tmp_path / "blobs"),
            records=JsonRecordStore(tmp_path / "records"),
            orchestrator=orchestrator,
        )
        record = service.upload_document(REPORT_TEXT, "canned.txt", "text/plain", "analyst1")

        bundle = await service.extract_document(record.id)

        assert bundle.objects == [tool]
        assert service.load_bundle(record.id).objects == [tool]
        assert orchestrator.calls == [(REPORT_TEXT.decode("utf-8"), "canned.txt")]
        state = service.job_status(record.id)
        assert state.stage == "canned"
        assert state.object_count == 1

    @pytest.mark.asyncio
    async def test_unknown_document(self, service):
        with pytest.raises(DocumentNotFoundError):
            await service.extract_document("0123456789abcdef")


# =============================================================================
# Load and merge tests
# =============================================================================


class TestLoadAndMerge:
    """Tests for load_bundle() and merge_documents()."""

    def test_load_before_extraction(self, service, uploaded):
        with pytest.raises(DocumentNotFoundError):
            service.load_bundle(uploaded.id)

    @pytest.mark.asyncio
    async def test_merge_first_document_wins(self, service, fake_providers, sample_objects):
        first = service.upload_document(b"report one", "one.txt", "text/plain", "analyst1")
        second = service.upload_document(b"report two", "two.txt", "text/plain", "analyst1")

        renamed = dict(sample_objects[0], name="Renamed Actor")
        extra = {
            "type": "indicator",
            "id": "indicator--0f3b6c1e-9e34-4f7c-b1a1-8b44dbdc4d5a",
            "name": "TrickBot C2",
            "pattern": "[ipv4-addr:value = '198.51.100.7']",
        }

        fake_providers({"primary": json.dumps(sample_objects)})
        await service.extract_document(first.id)
        fake_providers({"primary": json.dumps([renamed, extra])})
        await service.extract_document(second.id)

        merged = service.merge_documents([first.id, second.id])

        assert [obj["id"] for obj in merged.objects] == [
            *(obj["id"] for obj in sample_objects),
            extra["id"],
        ]
        assert merged.objects[0]["name"] == "Wizard Spider"
