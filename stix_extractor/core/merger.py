"""Bundle merger: union several extraction results into one bundle.

First-seen wins. Bundles are walked in input order and the first object with
a given id is kept; later objects with the same id are discarded. Callers put
primary-provider or earlier extractions first so they take precedence over
fallback or later ones, which keeps merged output reproducible.
"""

import copy
import logging
from typing import Any, Iterable

from stix_extractor.pydantic_models.stix import STIXBundle

logger = logging.getLogger(__name__)


def _objects_of(bundle: STIXBundle | dict[str, Any] | None) -> list[Any]:
    if bundle is None:
        return []
    if isinstance(bundle, STIXBundle):
        return bundle.objects
    if isinstance(bundle, dict) and isinstance(bundle.get("objects"), list):
        return bundle["objects"]
    return []


def merge_bundles(bundles: Iterable[STIXBundle | dict[str, Any] | None]) -> STIXBundle:
    """Merge bundles, deduplicating objects by id (first occurrence wins).

    Args:
        bundles: Source bundles in precedence order. STIXBundle instances,
            plain bundle dicts (e.g. loaded from storage) and None entries
            are accepted. Sources are never modified.

    Returns:
        A new bundle with a fresh id. Objects without an id are skipped.
    """
    unique: dict[str, dict[str, Any]] = {}
    source_count = 0
    duplicates = 0

    for bundle in bundles:
        source_count += 1
        for obj in _objects_of(bundle):
            if not isinstance(obj, dict) or not obj.get("id"):
                continue
            object_id = str(obj["id"])
            if object_id in unique:
                duplicates += 1
                continue
            unique[object_id] = copy.deepcopy(obj)

    merged = STIXBundle(objects=list(unique.values()))
    logger.info(
        f"Merged {source_count} STIX bundles into one with {len(merged.objects)} "
        f"unique objects ({duplicates} duplicates dropped)"
    )
    return merged
