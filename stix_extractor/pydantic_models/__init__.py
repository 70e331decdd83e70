"""Pydantic models for the extraction pipeline.

Modules:
- stix: STIXObject and STIXBundle (open field maps around a type discriminator)
- documents: DocumentRecord metadata for uploaded documents
"""

from stix_extractor.pydantic_models.stix import (
    STIXObject,
    STIXBundle,
    new_bundle_id,
    new_object_id,
    replace_non_finite,
)
from stix_extractor.pydantic_models.documents import DocumentRecord

__all__ = [
    "STIXObject",
    "STIXBundle",
    "new_bundle_id",
    "new_object_id",
    "replace_non_finite",
    "DocumentRecord",
]
