"""Object and record storage for uploaded documents and their bundles.

Two small stores back the document service:

- ``LocalObjectStorage``: put/get of blobs under hierarchical keys
  (``documents/<user>/...``), addressed afterwards by a ``file://`` URL.
  Writes overwrite, so re-extracting a document replaces its bundle.
- ``JsonRecordStore``: one JSON file per DocumentRecord.

Both are plain filesystem implementations of the ObjectStorage and
RecordStore protocols; a hosted blob store or a database can stand in for
either without touching the service.
"""

import logging
from pathlib import Path
from typing import Any, Protocol
from urllib.parse import unquote, urlparse

from stix_extractor.core.config import StorageConfig
from stix_extractor.core.errors import DocumentNotFoundError, StixExtractorError
from stix_extractor.pydantic_models.documents import DocumentRecord

logger = logging.getLogger(__name__)


class StorageError(StixExtractorError):
    """A blob or record could not be read or written."""


class ObjectStorage(Protocol):
    def put(self, key: str, content: bytes | str, content_type: str) -> str: ...

    def get(self, url: str) -> bytes: ...


class RecordStore(Protocol):
    def get(self, document_id: str) -> DocumentRecord: ...

    def save(self, record: DocumentRecord) -> DocumentRecord: ...

    def update(self, document_id: str, **fields: Any) -> DocumentRecord: ...


class LocalObjectStorage:
    """Filesystem blob store rooted at StorageConfig.STORAGE_ROOT."""

    def __init__(self, root: str | Path | None = None):
        self.root = Path(root or StorageConfig.STORAGE_ROOT).resolve()

    def _path_for(self, key: str) -> Path:
        path = (self.root / key.lstrip("/")).resolve()
        if self.root not in path.parents:
            raise StorageError(f"Key escapes storage root: {key}")
        return path

    def put(self, key: str, content: bytes | str, content_type: str) -> str:
        """Store content under key, overwriting any previous blob.

        Returns:
            The ``file://`` URL of the stored blob.
        """
        path = self._path_for(key)
        data = content.encode("utf-8") if isinstance(content, str) else content
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as e:
            raise StorageError(f"Failed to write {key}: {e}") from e

        logger.debug(f"Stored {len(data)} bytes ({content_type}) at {key}")
        return path.as_uri()

    def get(self, url: str) -> bytes:
        """Read a blob back by the URL put() returned."""
        parsed = urlparse(url)
        if parsed.scheme != "file":
            raise StorageError(f"Unsupported storage URL: {url}")

        path = Path(unquote(parsed.path))
        if self.root not in path.resolve().parents:
            raise StorageError(f"URL outside storage root: {url}")
        try:
            return path.read_bytes()
        except OSError as e:
            raise StorageError(f"Failed to read {url}: {e}") from e


class JsonRecordStore:
    """Document records as ``<records_root>/<document_id>.json``."""

    def __init__(self, root: str | Path | None = None):
        self.root = Path(root or StorageConfig.RECORDS_ROOT)

    def _path_for(self, document_id: str) -> Path:
        if not document_id or "/" in document_id or "\\" in document_id or document_id.startswith("."):
            raise DocumentNotFoundError(f"Invalid document id: {document_id!r}")
        return self.root / f"{document_id}.json"

    def get(self, document_id: str) -> DocumentRecord:
        path = self._path_for(document_id)
        if not path.is_file():
            raise DocumentNotFoundError(f"Document not found: {document_id}")
        return DocumentRecord.model_validate_json(path.read_text(encoding="utf-8"))

    def save(self, record: DocumentRecord) -> DocumentRecord:
        path = self._path_for(record.id)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(record.model_dump_json(indent=2), encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Failed to save record {record.id}: {e}") from e
        return record

    def update(self, document_id: str, **fields: Any) -> DocumentRecord:
        """Apply field updates to an existing record and persist it."""
        record = self.get(document_id)
        updated = record.model_copy(update=fields)
        return self.save(updated)
