"""Structural validation of a resolved sync payload before it is committed.

The payload is what will be written to storage: ``links`` and
``categories`` as JSON strings. Validation never raises; the caller decides
what a failed result means.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any

from pydantic import AnyUrl, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

logger = logging.getLogger(__name__)

MAX_CATEGORY_LENGTH = 50

_PAYLOAD_KEYS = frozenset({"links", "categories"})
_URL_ADAPTER: TypeAdapter[AnyUrl] = TypeAdapter(AnyUrl)


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    errors: list[str] = field(default_factory=list)


def is_absolute_url(value: str) -> bool:
    """Return True when ``value`` parses as an absolute URL (scheme required)."""
    try:
        _URL_ADAPTER.validate_python(value)
    except PydanticValidationError:
        return False
    return True


class PayloadValidator:
    """Validates ``{"links": str, "categories": str}`` payloads."""

    def validate(self, payload: Any) -> ValidationResult:
        if not isinstance(payload, dict):
            return ValidationResult(valid=False, errors=["Data must be an object"])

        errors: list[str] = []
        if payload.get("links") is not None:
            errors.extend(self._validate_links(payload["links"]))
        if payload.get("categories") is not None:
            errors.extend(self._validate_categories(payload["categories"]))

        unexpected = sorted(set(payload) - _PAYLOAD_KEYS)
        if unexpected:
            logger.warning("sync_payload_unexpected_keys", extra={"keys": unexpected})

        return ValidationResult(valid=not errors, errors=errors)

    def _validate_links(self, raw: Any) -> list[str]:
        if not isinstance(raw, str):
            return [f"Links must be a JSON string, got {type(raw).__name__}"]
        try:
            links = json.loads(raw)
        except json.JSONDecodeError as exc:
            return [f"Links must be valid JSON: {exc.msg}"]
        if not isinstance(links, list):
            return ["Links must be a valid JSON array"]

        errors: list[str] = []
        for index, link in enumerate(links):
            if not isinstance(link, dict):
                errors.append(f"Link at index {index} must be an object")
                continue
            if not _non_empty_string(link.get("name")):
                errors.append(f"Link at index {index} must have a valid name string")
            url = link.get("url")
            if not _non_empty_string(url):
                errors.append(f"Link at index {index} must have a valid URL string")
            elif not is_absolute_url(url):
                errors.append(f"Link at index {index} has an invalid URL format: {url}")
            if not _non_empty_string(link.get("category")):
                errors.append(f"Link at index {index} must have a valid category string")
        return errors

    def _validate_categories(self, raw: Any) -> list[str]:
        if not isinstance(raw, str):
            return [f"Categories must be a JSON string, got {type(raw).__name__}"]
        try:
            categories = json.loads(raw)
        except json.JSONDecodeError as exc:
            return [f"Categories must be valid JSON: {exc.msg}"]
        if not isinstance(categories, list):
            return ["Categories must be a valid JSON array"]

        errors: list[str] = []
        for index, category in enumerate(categories):
            if not isinstance(category, str):
                errors.append(f"Category at index {index} must be a string")
            elif not category:
                errors.append(f"Category at index {index} cannot be empty")
            elif len(category) > MAX_CATEGORY_LENGTH:
                errors.append(
                    f"Category at index {index} exceeds maximum length of "
                    f"{MAX_CATEGORY_LENGTH} characters"
                )
        return errors


def _non_empty_string(value: Any) -> bool:
    return isinstance(value, str) and bool(value)
