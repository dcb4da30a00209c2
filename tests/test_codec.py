"""
Tests for the JSON payload codec.
"""

import json
from datetime import datetime, timezone

import pytest

from greyseal.errors import DecodeError
from greyseal.messaging.codec import decode_question, decode_resource, encode_question, encode_resource
from greyseal.models import Question, Resource, SourceKind


class TestResourceCodec:
    """Resource payloads"""

    def test_encode_decode(self):
        resource = Resource(
            id="r1", service="wiki", entity="page", source_kind=SourceKind.WEBSITE, locator="https://example.com"
        )

        decoded = decode_resource(encode_resource(resource))

        assert decoded.id == "r1"
        assert decoded.source_kind == SourceKind.WEBSITE
        assert decoded.locator == "https://example.com"
        assert decoded.created_at == resource.created_at

    @pytest.mark.parametrize("source,kind", [
        ("website", SourceKind.WEBSITE),
        ("SOURCE_PDF", SourceKind.PDF),
        ("File", SourceKind.FILE),
        ("SOURCE_UNSPECIFIED", SourceKind.UNSPECIFIED),
    ])
    def test_source_spellings(self, source, kind):
        assert decode_resource(json.dumps({"source": source}).encode()).source_kind == kind

    def test_optional_fields_default(self):
        resource = decode_resource(b'{"source": "website", "path": "example.com"}')

        assert resource.id == ""
        assert resource.service == ""
        assert resource.locator == "example.com"

    @pytest.mark.parametrize("stamp", [
        "2024-01-01T00:00:00Z",
        "2024-01-01T00:00:00z",
        "2024-01-01T00:00:00+00:00",
        "2024-01-01T02:00:00+02:00",
        "2024-01-01T00:00:00",
    ])
    def test_created_at_formats(self, stamp):
        payload = json.dumps({"source": "website", "created_at": stamp}).encode()

        created_at = decode_resource(payload).created_at

        assert created_at == datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert created_at.utcoffset() is not None

    def test_zulu_with_fraction(self):
        created_at = decode_resource(b'{"source": "pdf", "created_at": "2024-01-01T00:00:00.250Z"}').created_at

        assert created_at == datetime(2024, 1, 1, 0, 0, 0, 250000, tzinfo=timezone.utc)

    @pytest.mark.parametrize("payload", [
        b"not json",
        b"",
        b"[1, 2, 3]",
        b'"just a string"',
        b'{"path": "example.com"}',
        b'{"source": "ftp"}',
        b'{"source": "website", "created_at": "yesterday"}',
        b'{"source": "website", "path": 42}',
        b'{"source": "website", "service": ["x"]}',
    ])
    def test_malformed_payloads(self, payload):
        with pytest.raises(DecodeError):
            decode_resource(payload)


class TestQuestionCodec:
    """Question payloads"""

    def test_encode_decode(self):
        question = Question(id="q1", content="What color is the sky?", role_description="a pilot")

        assert decode_question(encode_question(question)) == question

    def test_role_is_optional(self):
        assert decode_question(b'{"content": "Why?"}').role_description == ""

    @pytest.mark.parametrize("payload", [
        b"{oops",
        b"null",
        b'{"role_description": "a pilot"}',
        b'{"content": "   "}',
        b'{"content": 7}',
    ])
    def test_malformed_payloads(self, payload):
        with pytest.raises(DecodeError):
            decode_question(payload)
