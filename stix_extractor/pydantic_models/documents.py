"""Pydantic models for stored document records."""

from datetime import datetime, timezone

from pydantic import BaseModel, Field


class DocumentRecord(BaseModel):
    """Metadata for one uploaded document.

    ``stix_bundle_url`` stays None until the first successful extraction and
    is overwritten on re-extraction.
    """

    id: str = Field(description="Document identifier")
    user_id: str = Field(description="Owner of the document")
    file_name: str
    file_type: str = Field(description="Declared MIME type, e.g. 'application/pdf'")
    file_size: int = 0
    original_url: str | None = None
    text_url: str | None = Field(default=None, description="URL of the extracted plain text")
    stix_bundle_url: str | None = Field(default=None, description="URL of the latest STIX bundle")
    uploaded_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
