"""Pydantic models for STIX objects and bundles.

The STIX ``type`` vocabulary is open: the LLM may emit any type, including
ones no fixed list knows about. So a STIXObject is a discriminator plus an
open map of fields, and known-field checks (relationship refs, names) are
advisory warnings rather than a schema gate.

Bundles carry their objects as plain JSON dicts. Untrusted fields survive a
round-trip untouched; ``STIXBundle.stix_objects()`` gives typed views when
code wants attribute access.
"""

import json
import math
import uuid
from collections import Counter
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from stix_extractor.core.config import StorageConfig


def new_bundle_id() -> str:
    """Generate a fresh bundle identifier."""
    return f"bundle--{uuid.uuid4()}"


def new_object_id(object_type: str) -> str:
    """Generate a fresh object identifier for the given STIX type."""
    return f"{object_type}--{uuid.uuid4()}"


def replace_non_finite(value: Any) -> Any:
    """Return a copy of a JSON value with NaN and infinities replaced by None.

    Python's json module reads and writes them, but they are not JSON and
    other parsers reject a document containing them.
    """
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, dict):
        return {key: replace_non_finite(item) for key, item in value.items()}
    if isinstance(value, list):
        return [replace_non_finite(item) for item in value]
    return value


class STIXObject(BaseModel):
    """A typed threat-intelligence entity or relationship record.

    Only ``type`` is required. Every other field the LLM produced is kept as
    an extra field, e.g. ``name``, ``description``, ``relationship_type``.
    """

    model_config = ConfigDict(extra="allow")

    type: str
    id: str | None = None

    @property
    def id_prefix(self) -> str | None:
        """The part of the id before ``--``, or None if the id has no separator."""
        if not self.id or "--" not in self.id:
            return None
        return self.id.split("--", 1)[0]

    @property
    def is_relationship(self) -> bool:
        return self.type == "relationship"

    def get_field(self, name: str, default: Any = None) -> Any:
        """Read an extra field by name."""
        return (self.model_extra or {}).get(name, default)

    def validation_warnings(self) -> list[str]:
        """Return soft problems with this object. Never raises.

        Checks:
        - id prefix matches type
        - relationships carry relationship_type, source_ref, target_ref
        - domain objects carry a name
        """
        warnings = []
        prefix = self.id_prefix
        if prefix is not None and prefix != self.type:
            warnings.append(f"id prefix '{prefix}' does not match type '{self.type}'")

        if self.is_relationship:
            for ref_field in ("relationship_type", "source_ref", "target_ref"):
                value = self.get_field(ref_field)
                if not isinstance(value, str) or not value:
                    warnings.append(f"relationship missing {ref_field}")
        elif self.type not in ("bundle", "marking-definition") and not self.get_field("name"):
            warnings.append(f"{self.type} has no name")

        return warnings


class STIXBundle(BaseModel):
    """A STIX envelope wrapping an ordered list of objects.

    ``objects`` may be empty: that is the valid terminal state for "no
    entities found" as well as "extraction failed".
    """

    model_config = ConfigDict(extra="allow")

    type: Literal["bundle"] = "bundle"
    id: str = Field(default_factory=new_bundle_id)
    objects: list[dict[str, Any]] = Field(default_factory=list)

    @classmethod
    def empty(cls) -> "STIXBundle":
        """A fresh bundle with no objects."""
        return cls()

    @property
    def is_empty(self) -> bool:
        return not self.objects

    def stix_objects(self) -> list[STIXObject]:
        """Typed views of the objects that carry a string ``type``."""
        return [
            STIXObject.model_validate(obj)
            for obj in self.objects
            if isinstance(obj.get("type"), str)
        ]

    def type_counts(self) -> dict[str, int]:
        """Count objects by ``type``, in first-seen order."""
        counts = Counter(str(obj.get("type", "unknown")) for obj in self.objects)
        return dict(counts)

    def filter_by_type(self, *types: str) -> "STIXBundle":
        """Return a new bundle (same id) holding only objects of the given types."""
        wanted = set(types)
        return STIXBundle(
            id=self.id,
            objects=[obj for obj in self.objects if obj.get("type") in wanted],
        )

    def get(self, object_id: str) -> dict[str, Any] | None:
        """Find an object by id."""
        for obj in self.objects:
            if obj.get("id") == object_id:
                return obj
        return None

    def to_json(self) -> str:
        """Serialize as strict JSON with the persisted indentation."""
        return json.dumps(
            replace_non_finite(self.model_dump()),
            indent=StorageConfig.BUNDLE_INDENT,
            ensure_ascii=False,
            allow_nan=False,
        )
