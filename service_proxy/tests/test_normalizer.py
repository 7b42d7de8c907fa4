"""
Unit tests for JSON normalization.
"""

import pytest

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_proxy.app.domain.normalizer import normalize
from shared.errors import NormalizeError


class TestNormalize:
    """Test cases for normalize."""

    def test_minifies_object(self):
        assert normalize(b'{"a": 1,   "b":2}') == b'{"a":1,"b":2}'

    def test_sorts_keys(self):
        assert normalize(b'{\n  "b": [1, 2],\n  "a": {"d": null, "c": true}\n}') == b'{"a":{"c":true,"d":null},"b":[1,2]}'

    def test_nested_arrays_minified(self):
        assert normalize(b'{"items": [ 1 , 2 ]}') == b'{"items":[1,2]}'

    @pytest.mark.parametrize("body", [b" [ 1 , 2 ] ", b"42", b'"text"', b"null", b"true"])
    def test_non_object_documents_rejected(self, body):
        with pytest.raises(NormalizeError) as exc_info:
            normalize(body)
        assert "not an object" in exc_info.value.details["error"]

    def test_keeps_unicode_unescaped(self):
        assert normalize('{"name": "café"}'.encode("utf-8")) == '{"name":"café"}'.encode("utf-8")

    @pytest.mark.parametrize(
        "body",
        [
            b'{"a": 1,   "b":2}',
            b'{"z": 1, "y": [3, 2, 1], "n": 1.5e10}',
            b'{"nested": {"deep": {"k": "v"}}}',
        ],
    )
    def test_idempotent(self, body):
        once = normalize(body)
        assert normalize(once) == once

    @pytest.mark.parametrize(
        "body",
        [
            b"hello",
            b"",
            b'{"a": 1',
            b"\xff\xfe",
            b'{"k": "\\ud800"}',
        ],
    )
    def test_malformed_body_raises(self, body):
        with pytest.raises(NormalizeError) as exc_info:
            normalize(body)
        assert exc_info.value.code == "NORMALIZE_ERROR"
