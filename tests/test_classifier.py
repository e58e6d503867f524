"""Tests for response classification and decoding."""

from __future__ import annotations

import httpx
import pytest

from restforge.classifier import Verdict, classify, decode, decode_response, detect_format
from restforge.exceptions import DecodeError, UnsupportedFormatError
from restforge.models import Blob, BuilderConfig, ResponseFormat


def _config(**overrides) -> BuilderConfig:
    return BuilderConfig(base_url="https://api.example.com", **overrides)


def _response(status: int, content: bytes = b"", content_type: str = "") -> httpx.Response:
    headers = {"content-type": content_type} if content_type else {}
    return httpx.Response(status, content=content, headers=headers)


# ------------------------------------------------------------------ #
# Classification
# ------------------------------------------------------------------ #


class TestClassify:
    @pytest.mark.parametrize(
        "status,verdict",
        [
            (200, Verdict.SUCCESS),
            (204, Verdict.SUCCESS),
            (401, Verdict.AUTH_REQUIRED),
            (400, Verdict.TERMINAL),
            (500, Verdict.RETRYABLE),
            (503, Verdict.RETRYABLE),
            (404, Verdict.UNCLASSIFIED),
            (302, Verdict.UNCLASSIFIED),
        ],
    )
    def test_default_predicates(self, status: int, verdict: Verdict) -> None:
        assert classify(_response(status), _config()) is verdict

    def test_auth_checked_before_success(self) -> None:
        """A 200 whose body signals an expired token is routed to auth refresh."""
        def expired(status, response=None, context=None):
            return response is not None and b"expired" in response.content

        config = _config(auth_check_status=expired)
        assert classify(_response(200, b'{"err":"expired"}'), config) is Verdict.AUTH_REQUIRED
        assert classify(_response(200, b'{"ok":1}'), config) is Verdict.SUCCESS

    def test_auth_predicate_receives_context(self) -> None:
        seen = []

        def check(status, response=None, context=None):
            seen.append(context)
            return False

        classify(_response(200), _config(auth_check_status=check), context="ctx")
        assert seen == ["ctx"]

    def test_custom_terminal_predicate(self) -> None:
        config = _config(terminal_status=lambda s: 400 <= s < 500)
        assert classify(_response(404), config) is Verdict.TERMINAL

    def test_custom_validate_predicate(self) -> None:
        config = _config(validate_status=lambda s: s < 400)
        assert classify(_response(302), config) is Verdict.SUCCESS


# ------------------------------------------------------------------ #
# Decoding
# ------------------------------------------------------------------ #


class TestDetectFormat:
    @pytest.mark.parametrize(
        "content_type,expected",
        [
            ("application/json; charset=utf-8", ResponseFormat.JSON),
            ("text/plain", ResponseFormat.TEXT),
            ("text/html; charset=utf-8", ResponseFormat.TEXT),
            ("application/octet-stream", ResponseFormat.BUFFER),
            ("image/png", ResponseFormat.BLOB),
            ("application/pdf", ResponseFormat.BLOB),
            ("application/x-unknown", None),
            ("", None),
        ],
    )
    def test_sniffing(self, content_type: str, expected) -> None:
        assert detect_format(content_type) == expected


class TestDecode:
    def test_json(self) -> None:
        assert decode(_response(200, b'{"id":42}'), "json") == {"id": 42}

    def test_empty_json_body_is_none(self) -> None:
        assert decode(_response(204), ResponseFormat.JSON) is None

    def test_malformed_json_raises(self) -> None:
        with pytest.raises(DecodeError, match="Malformed JSON"):
            decode(_response(200, b"<html>"), "json")

    def test_text(self) -> None:
        assert decode(_response(200, b"hello", "text/plain; charset=utf-8"), "text") == "hello"

    def test_buffer(self) -> None:
        assert decode(_response(200, b"\x00\xff"), "buffer") == b"\x00\xff"

    def test_blob_keeps_content_type(self) -> None:
        blob = decode(_response(200, b"PNG", "image/png"), "blob")
        assert blob == Blob(content=b"PNG", content_type="image/png")
        assert blob.size == 3

    def test_unknown_format(self) -> None:
        with pytest.raises(UnsupportedFormatError):
            decode(_response(200, b"x"), "xml")


class TestDecodeResponse:
    def test_override_wins(self) -> None:
        response = _response(200, b'{"a":1}', "application/json")
        assert decode_response(response, override="text") == '{"a":1}'

    def test_sniffed_before_default(self) -> None:
        response = _response(200, b"plain", "text/plain")
        assert decode_response(response, default="json") == "plain"

    def test_default_when_unrecognised(self) -> None:
        response = _response(200, b'{"a":1}', "application/x-custom")
        assert decode_response(response, default=ResponseFormat.JSON) == {"a": 1}
