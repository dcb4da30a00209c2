"""
Payload Codec - JSON wire format for resources and questions

Resource payload:
    {"uuid": "...", "created_at": "2024-01-01T00:00:00+00:00",
     "service": "...", "entity": "...", "source": "website", "path": "..."}

Question payload:
    {"uuid": "...", "role_description": "...", "content": "..."}

`source` accepts the kind value ("website") or its enum name
("SOURCE_WEBSITE"). Wire ids are decoded but consumers replace them.
"""

import json
from datetime import datetime, timezone
from typing import Any, Dict

from greyseal.errors import DecodeError
from greyseal.models import Question, Resource, SourceKind, utcnow


def _load_object(payload: bytes) -> Dict[str, Any]:
    try:
        data = json.loads(payload)
    except (ValueError, TypeError) as e:
        raise DecodeError(f"Payload is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise DecodeError(f"Payload must be a JSON object, got {type(data).__name__}")
    return data


def _optional_str(data: Dict[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise DecodeError(f"Field '{key}' must be a string")
    return value


def parse_timestamp(value: Any) -> datetime:
    """
    Parse an RFC 3339 timestamp into an aware datetime

    Accepts a trailing 'Z' (which fromisoformat only understands from
    Python 3.11). Timestamps without an offset are taken as UTC.
    """
    raw = str(value).strip()
    if raw[-1:] in ("Z", "z"):
        raw = raw[:-1] + "+00:00"
    parsed = datetime.fromisoformat(raw)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def encode_resource(resource: Resource) -> bytes:
    return json.dumps({
        "uuid": resource.id,
        "created_at": resource.created_at.isoformat(),
        "service": resource.service,
        "entity": resource.entity,
        "source": resource.source_kind.value,
        "path": resource.locator,
    }).encode("utf-8")


def decode_resource(payload: bytes) -> Resource:
    """
    Decode a resource payload

    Raises:
        DecodeError: Invalid JSON, missing source or unknown source kind
    """
    data = _load_object(payload)
    if "source" not in data:
        raise DecodeError("Resource payload is missing required field 'source'")
    try:
        kind = SourceKind.parse(data["source"])
    except ValueError as e:
        raise DecodeError(str(e)) from e

    created_at = utcnow()
    if data.get("created_at"):
        try:
            created_at = parse_timestamp(data["created_at"])
        except ValueError as e:
            raise DecodeError(f"Invalid created_at: {data['created_at']!r}") from e

    path = data.get("path")
    if path is not None and not isinstance(path, str):
        raise DecodeError("Field 'path' must be a string")

    return Resource(
        id=_optional_str(data, "uuid"),
        created_at=created_at,
        service=_optional_str(data, "service"),
        entity=_optional_str(data, "entity"),
        source_kind=kind,
        locator=path or None,
    )


def encode_question(question: Question) -> bytes:
    return json.dumps({
        "uuid": question.id,
        "role_description": question.role_description,
        "content": question.content,
    }).encode("utf-8")


def decode_question(payload: bytes) -> Question:
    """
    Decode a question payload

    Raises:
        DecodeError: Invalid JSON or missing/empty content
    """
    data = _load_object(payload)
    content = _optional_str(data, "content")
    if not content.strip():
        raise DecodeError("Question payload is missing required field 'content'")
    return Question(
        id=_optional_str(data, "uuid"),
        content=content,
        role_description=_optional_str(data, "role_description"),
    )
