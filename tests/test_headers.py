"""
Tests for the header block codec
"""
import pytest

from natswire.engine.headers import HEADER_VERSION, decode_headers, encode_headers
from natswire.exceptions import MalformedPayload


class TestDecode:
    def test_entries(self):
        fields = decode_headers(b"NATS/1.0\r\nFoo: Bar\r\nBaz: 1\r\n\r\n")

        assert fields["version"] == HEADER_VERSION
        assert fields["status"] is None
        assert fields["description"] is None
        assert fields["entries"] == {"Foo": ["Bar"], "Baz": ["1"]}

    def test_value_whitespace_is_trimmed(self):
        fields = decode_headers(b"NATS/1.0\r\nFOO:BAR\r\nX:   spaced out  \r\n\r\n")
        assert fields["entries"] == {"FOO": ["BAR"], "X": ["spaced out"]}

    def test_value_may_contain_colon(self):
        fields = decode_headers(b"NATS/1.0\r\nUrl: nats://localhost:4222\r\n\r\n")
        assert fields["entries"]["Url"] == ["nats://localhost:4222"]

    def test_repeated_names_keep_order(self):
        fields = decode_headers(b"NATS/1.0\r\nA: 1\r\nB: 2\r\nA: 3\r\n\r\n")
        assert fields["entries"] == {"A": ["1", "3"], "B": ["2"]}
        assert list(fields["entries"]) == ["A", "B"]

    def test_status_and_description(self):
        fields = decode_headers(b"NATS/1.0 503 No Responders\r\n\r\n")
        assert fields["status"] == "503"
        assert fields["description"] == "No Responders"
        assert fields["entries"] == {}

    def test_status_only(self):
        fields = decode_headers(b"NATS/1.0 404\r\n\r\n")
        assert fields["status"] == "404"
        assert fields["description"] is None

    def test_missing_terminator(self):
        with pytest.raises(MalformedPayload):
            decode_headers(b"NATS/1.0\r\nFoo: Bar\r\n")

    def test_missing_version(self):
        with pytest.raises(MalformedPayload):
            decode_headers(b"Foo: Bar\r\n\r\n")

    def test_line_without_colon(self):
        with pytest.raises(MalformedPayload):
            decode_headers(b"NATS/1.0\r\nnot a header\r\n\r\n")

    def test_empty_name(self):
        with pytest.raises(MalformedPayload):
            decode_headers(b"NATS/1.0\r\n: value\r\n\r\n")

    def test_invalid_utf8(self):
        with pytest.raises(MalformedPayload):
            decode_headers(b"NATS/1.0\r\nA: \xff\r\n\r\n")


def test_encode():
    data = encode_headers(HEADER_VERSION, None, None, [("A", ["1", "2"])])
    assert data == b"NATS/1.0\r\nA: 1\r\nA: 2\r\n\r\n"


def test_encode_status_line():
    data = encode_headers(HEADER_VERSION, "408", "Request Timeout", ())
    assert data == b"NATS/1.0 408 Request Timeout\r\n\r\n"


def test_encoded_block_decodes():
    data = encode_headers(HEADER_VERSION, "100", "Idle Heartbeat", [("Nats-Last-Consumer", ["12"])])
    assert decode_headers(data) == {
        "version": HEADER_VERSION,
        "status": "100",
        "description": "Idle Heartbeat",
        "entries": {"Nats-Last-Consumer": ["12"]},
    }
