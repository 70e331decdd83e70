"""Document service: upload, extract, store and merge STIX bundles.

Request-layer glue around the extraction core. Uploads are validated and
stored with their extracted text; extraction results are stored as bundles
and linked from the document record. One extraction per document at a time.

Storage layout (see StorageConfig):
    documents/<user_id>/<file_name>               original upload
    documents/<user_id>/text/<stem>.txt           extracted text
    documents/<user_id>/stix/<document_id>.json   latest bundle (overwritten)
"""

import json
import logging
import uuid
from pathlib import PurePath
from typing import Iterable

from stix_extractor.core.config import DocumentConfig, StorageConfig
from stix_extractor.core.errors import DocumentNotFoundError, DocumentValidationError
from stix_extractor.core.job_status import JobState, JobStatusStore
from stix_extractor.core.merger import merge_bundles
from stix_extractor.core.normalizer import normalize_bundle
from stix_extractor.core.storage import (
    JsonRecordStore,
    LocalObjectStorage,
    ObjectStorage,
    RecordStore,
)
from stix_extractor.core.text_extraction import DocumentTextExtractor, TextExtractor
from stix_extractor.orchestrator import FallbackOrchestrator
from stix_extractor.pydantic_models.documents import DocumentRecord
from stix_extractor.pydantic_models.stix import STIXBundle

logger = logging.getLogger(__name__)


class DocumentExtractionService:
    """Coordinates storage, text extraction and the fallback orchestrator."""

    def __init__(
        self,
        storage: ObjectStorage | None = None,
        records: RecordStore | None = None,
        text_extractor: TextExtractor | None = None,
        orchestrator: FallbackOrchestrator | None = None,
        jobs: JobStatusStore | None = None,
    ):
        self.storage = storage or LocalObjectStorage()
        self.records = records or JsonRecordStore()
        self.text_extractor = text_extractor or DocumentTextExtractor()
        self.orchestrator = orchestrator or FallbackOrchestrator()
        self.jobs = jobs or JobStatusStore()

    def upload_document(self, content: bytes, file_name: str, file_type: str, user_id: str) -> DocumentRecord:
        """Validate and store an upload, then store its extracted text.

        Raises:
            DocumentValidationError: File is empty, too large or of a
                disallowed type.
        """
        if not content:
            raise DocumentValidationError("No file provided")
        if len(content) > DocumentConfig.MAX_FILE_SIZE:
            raise DocumentValidationError(
                f"File size exceeds the {DocumentConfig.MAX_FILE_SIZE // (1024 * 1024)}MB limit"
            )
        if file_type not in DocumentConfig.ALLOWED_FILE_TYPES:
            raise DocumentValidationError(
                "File type not supported. Please upload PDF, DOCX, DOC, TXT, or JSON files."
            )

        safe_name = PurePath(file_name).name or "document"
        original_url = self.storage.put(
            StorageConfig.ORIGINAL_KEY.format(user_id=user_id, file_name=safe_name),
            content,
            file_type,
        )

        text = self.text_extractor.extract_text(content, file_type)
        stem = safe_name.split(".")[0] or "document"
        text_url = self.storage.put(
            StorageConfig.TEXT_KEY.format(user_id=user_id, stem=stem),
            text,
            "text/plain",
        )

        record = DocumentRecord(
            id=uuid.uuid4().hex,
            user_id=user_id,
            file_name=safe_name,
            file_type=file_type,
            file_size=len(content),
            original_url=original_url,
            text_url=text_url,
        )
        self.records.save(record)
        logger.info(f"Uploaded {safe_name} ({len(content)} bytes) as document {record.id}")
        return record

    async def extract_document(self, document_id: str) -> STIXBundle:
        """Run STIX extraction for a stored document and persist the bundle.

        Re-extraction overwrites the previous bundle at the same key.

        Raises:
            DocumentNotFoundError: Unknown document, or it has no stored text.
            ExtractionInProgressError: An extraction of this document is
                already running.
        """
        record = self.records.get(document_id)
        if not record.text_url:
            raise DocumentNotFoundError(f"Document {document_id} has no extracted text")

        self.jobs.start(document_id)
        try:
            text = self.storage.get(record.text_url).decode("utf-8", errors="replace")

            bundle = await self.orchestrator.extract_bundle(
                text,
                record.file_name,
                on_progress=lambda stage, message: self.jobs.update(document_id, stage, message),
            )

            bundle_url = self.storage.put(
                StorageConfig.STIX_KEY.format(user_id=record.user_id, document_id=document_id),
                bundle.to_json(),
                "application/json",
            )
            self.records.update(document_id, stix_bundle_url=bundle_url)
        except Exception as e:
            self.jobs.fail(document_id, f"{type(e).__name__}: {e}")
            raise

        self.jobs.complete(document_id, len(bundle.objects))
        logger.info(f"Stored {len(bundle.objects)} STIX objects for document {document_id}")
        return bundle

    def load_bundle(self, document_id: str) -> STIXBundle:
        """Read a document's stored bundle back.

        Raises:
            DocumentNotFoundError: Unknown document, or not extracted yet.
        """
        record = self.records.get(document_id)
        if not record.stix_bundle_url:
            raise DocumentNotFoundError(f"Document {document_id} has no STIX bundle yet")

        raw = self.storage.get(record.stix_bundle_url).decode("utf-8")
        return normalize_bundle(json.loads(raw))

    def merge_documents(self, document_ids: Iterable[str]) -> STIXBundle:
        """Merge the stored bundles of several documents, first listed wins."""
        return merge_bundles(self.load_bundle(document_id) for document_id in document_ids)

    def job_status(self, document_id: str) -> JobState | None:
        return self.jobs.get(document_id)
