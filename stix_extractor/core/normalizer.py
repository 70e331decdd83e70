"""Bundle normalizer: turn whatever the recovery parser produced into a bundle.

Accepted shapes, in priority order:

1. A bundle object (``type == "bundle"`` and a list of ``objects``). Used as
   the base; gets a fresh id if its own is missing or not a bundle id.
2. A bare list of entity objects. Wrapped in a new bundle.
3. Anything else (scalars, other objects, recovery failure). An empty bundle.

Then every object without a well-formed id gets a fresh ``<type>--<uuid4>``.
Only ``id`` is touched, and well-formed ids are left alone, so normalizing a
normalized bundle changes nothing. NaN and infinities (which the JSON
parser lets through) become null.

The input is never mutated and this module never raises.
"""

import copy
import logging
from typing import Any

from stix_extractor.core.config import RecoveryConfig
from stix_extractor.pydantic_models.stix import (
    STIXBundle,
    new_bundle_id,
    new_object_id,
    replace_non_finite,
)

logger = logging.getLogger(__name__)

_BUNDLE_TAGS = ("bundle", "bundle-back")


def has_well_formed_id(obj: dict[str, Any]) -> bool:
    """True if ``obj["id"]`` looks like ``<type>--<token>`` with a long enough token.

    The prefix is not required to equal the object's ``type``: LLM output is
    untrusted, and a stable id with the wrong prefix is still more useful to
    relationships referencing it than a regenerated one.
    """
    object_id = obj.get("id")
    if not isinstance(object_id, str) or "--" not in object_id:
        return False
    prefix, token = object_id.split("--", 1)
    token = token.split("--", 1)[0]
    return bool(prefix) and len(token) > RecoveryConfig.MIN_ID_TOKEN_LENGTH


def _object_type(obj: dict[str, Any]) -> str:
    object_type = obj.get("type")
    if isinstance(object_type, str) and object_type.strip():
        return object_type.strip()
    return RecoveryConfig.UNKNOWN_TYPE_PREFIX


def assign_ids(objects: list[Any]) -> list[dict[str, Any]]:
    """Give every object a well-formed, bundle-unique id.

    Entries that are not objects are dropped. An exact repeat of an earlier
    object is dropped too; a different object reusing an earlier id gets a
    fresh one, since ids must be unique within a bundle.

    Args:
        objects: Candidate STIX objects (already copied by the caller).

    Returns:
        The dict entries, in order, with ``id`` fixed where needed.
    """
    normalized = []
    seen: dict[str, dict[str, Any]] = {}
    reassigned = 0
    for obj in objects:
        if not isinstance(obj, dict):
            logger.debug(f"Dropping non-object entry: {type(obj).__name__}")
            continue

        if has_well_formed_id(obj) and obj["id"] in seen:
            if seen[obj["id"]] == obj:
                logger.debug(f"Dropping repeated object {obj['id']}")
                continue
            obj["id"] = new_object_id(_object_type(obj))
            reassigned += 1
        elif not has_well_formed_id(obj):
            obj["id"] = new_object_id(_object_type(obj))
            reassigned += 1
        elif obj["id"].split("--", 1)[0] != obj.get("type"):
            logger.debug(f"Id prefix does not match type: {obj['id']} ({obj.get('type')})")

        seen[obj["id"]] = obj
        normalized.append(obj)

    if reassigned:
        logger.debug(f"Assigned fresh ids to {reassigned} of {len(normalized)} objects")
    return normalized


def _bundle_id(candidate: Any) -> str:
    if isinstance(candidate, str) and candidate.startswith("bundle--") and len(candidate) > len("bundle--"):
        return candidate
    return new_bundle_id()


def describe_shape(data: Any) -> str:
    """Short description of a recovered value, for logs and error records."""
    if data is None:
        return "nothing"
    if isinstance(data, dict):
        if data.get("type") in _BUNDLE_TAGS:
            return "bundle"
        return f"object(type={data.get('type')!r})"
    if isinstance(data, list):
        return f"array[{len(data)}]"
    return type(data).__name__


def is_bundle_shaped(data: Any) -> bool:
    """True for a dict tagged as a bundle with a list of objects.

    "bundle-back" is a mistyped tag one upstream code path wrote; it is read
    as a bundle and written back as "bundle".
    """
    return (
        isinstance(data, dict)
        and data.get("type") in _BUNDLE_TAGS
        and isinstance(data.get("objects"), list)
    )


def normalize_bundle(data: Any) -> STIXBundle:
    """Build a well-formed STIXBundle from recovered data. Never raises.

    Args:
        data: Output of recover_json() (``RecoveryResult.data``), a stored
            bundle dict, an existing STIXBundle, or anything else.

    Returns:
        A new STIXBundle. Unknown shapes give an empty bundle.
    """
    if isinstance(data, STIXBundle):
        data = data.model_dump()

    data = replace_non_finite(copy.deepcopy(data))

    if is_bundle_shaped(data):
        extras = {
            key: value for key, value in data.items()
            if key not in ("type", "id", "objects")
        }
        bundle_id = _bundle_id(data.get("id"))
        objects = data["objects"]
    elif isinstance(data, list):
        extras = {}
        bundle_id = new_bundle_id()
        objects = data
    else:
        if data is not None:
            logger.warning(f"Unexpected response shape, using empty bundle: {describe_shape(data)}")
        return STIXBundle.empty()

    return STIXBundle(id=bundle_id, objects=assign_ids(objects), **extras)
