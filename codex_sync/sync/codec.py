"""Single typed boundary between raw stored values and replica models.

Stored ``links``/``categories`` are JSON strings. Everything read from a
backend goes through ``decode_replica`` exactly once; a malformed payload is
treated as an absent replica and replaced with defaults.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from codex_sync.domain.models.replica import LinkRecord, Replica, SyncMetadata
from codex_sync.sync.constants import KEY_CATEGORIES, KEY_LINKS
from codex_sync.sync.merge import normalize_replica

logger = logging.getLogger(__name__)


class ReplicaDecodeError(ValueError):
    """Raised when a stored replica cannot be turned into a ``Replica``."""


def dumps_compact(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def _load_json_list(raw: Any, key: str) -> list[Any] | None:
    if raw is None or raw == "":
        return None
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ReplicaDecodeError(f"{key} is not valid JSON: {exc.msg}") from exc
    if not isinstance(raw, list):
        raise ReplicaDecodeError(f"{key} must decode to an array, got {type(raw).__name__}")
    return raw


def decode_replica(raw: Mapping[str, Any]) -> Replica:
    """Build a ``Replica`` from raw stored values.

    Missing keys fall back to defaults (no links, ``["Default"]``). The result
    is normalized: one entry per URL, one ``Default`` category.

    Raises:
        ReplicaDecodeError: If a present value is not valid JSON, not an
            array, or holds elements of the wrong shape.
    """
    links_raw = _load_json_list(raw.get(KEY_LINKS), KEY_LINKS)
    categories_raw = _load_json_list(raw.get(KEY_CATEGORIES), KEY_CATEGORIES)

    links: list[LinkRecord] = []
    for index, item in enumerate(links_raw or []):
        if not isinstance(item, dict):
            raise ReplicaDecodeError(f"link at index {index} is not an object")
        try:
            links.append(LinkRecord.model_validate(item))
        except PydanticValidationError as exc:
            raise ReplicaDecodeError(f"link at index {index} has a wrong shape") from exc

    if categories_raw is None:
        return normalize_replica(Replica(links=links))
    for index, name in enumerate(categories_raw):
        if not isinstance(name, str):
            raise ReplicaDecodeError(f"category at index {index} is not a string")
    return normalize_replica(Replica(links=links, categories=list(categories_raw)))


def decode_or_default(
    raw: Mapping[str, Any],
    *,
    area: str,
    correlation_id: str | None = None,
) -> Replica:
    try:
        return decode_replica(raw)
    except ReplicaDecodeError as exc:
        logger.warning(
            "replica_payload_malformed",
            extra={"area": area, "error": str(exc), "correlation_id": correlation_id},
        )
        return Replica()


def encode_replica(replica: Replica) -> dict[str, str]:
    """Serialize a replica into the stored ``{"links": str, "categories": str}`` shape."""
    return {
        KEY_LINKS: dumps_compact([link.to_storage() for link in replica.links]),
        KEY_CATEGORIES: dumps_compact(list(replica.categories)),
    }


def decode_metadata(raw: Any) -> SyncMetadata:
    """Parse a stored ``syncMetadata`` value; anything unusable means "never stamped"."""
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError:
            return SyncMetadata()
    if not isinstance(raw, dict):
        return SyncMetadata()
    try:
        return SyncMetadata.model_validate(raw)
    except PydanticValidationError:
        logger.warning("sync_metadata_malformed", extra={"value": repr(raw)})
        return SyncMetadata()
