"""
Tests for the natswire command line tool
"""
import io
import json
import logging
from logging.handlers import RotatingFileHandler

import pytest
import structlog

from natswire.cli import decode, encode, main
from natswire.engine.protocol_formatter import format_message
from natswire.models import Pub, Sub


@pytest.fixture
def restore_logging():
    """Drop the handlers main() installs so later tests don't write to closed streams"""
    yield
    root = logging.getLogger()
    for handler in list(root.handlers):
        if type(handler) in (logging.StreamHandler, RotatingFileHandler):
            handler.close()
            root.removeHandler(handler)
    structlog.reset_defaults()


CAPTURE = (
    b"INFO {\"server_id\":\"a\",\"version\":\"2.10.0\",\"go\":\"go1.21\",\"host\":\"h\",\"port\":4222}\r\n"
    b"SUB FOO 1\r\n"
    b"PUB FOO 5\r\nhello\r\n"
    b"PING\r\n"
)


class TestDecode:
    def test_writes_json_lines(self):
        out = io.StringIO()
        assert decode(io.BytesIO(CAPTURE), out) == 0

        lines = [json.loads(line) for line in out.getvalue().splitlines()]
        assert [line["op"] for line in lines] == ["INFO", "SUB", "PUB", "PING"]
        assert lines[2]["payload"] == "aGVsbG8="
        assert lines[2]["reply_to"] is None
        assert "server_name" not in lines[0]["info"]

    def test_invalid_frame(self):
        out = io.StringIO()
        assert decode(io.BytesIO(b"PING\r\nBOGUS\r\n"), out) == 1
        assert json.loads(out.getvalue())["op"] == "PING"

    def test_incomplete_trailing_frame(self):
        assert decode(io.BytesIO(b"PUB FOO 5\r\nhel"), io.StringIO()) == 1

    def test_lenient(self):
        out = io.StringIO()
        assert decode(io.BytesIO(b"PING now\r\n"), out, strict=False) == 0
        assert decode(io.BytesIO(b"PING now\r\n"), io.StringIO(), strict=True) == 1


class TestEncode:
    def test_writes_wire_bytes(self):
        source = io.BytesIO(
            b'{"op": "SUB", "subject": "FOO", "subscription_id": "1"}\n'
            b"\n"
            b'{"op": "PUB", "subject": "FOO", "payload": "aGVsbG8="}\n'
        )
        out = io.BytesIO()

        assert encode(source, out) == 0
        assert out.getvalue() == b"SUB FOO 1\r\nPUB FOO 5\r\nhello\r\n"

    def test_invalid_message(self):
        source = io.BytesIO(b'{"op": "PUB"}\n')
        assert encode(source, io.BytesIO()) == 1

    def test_decoded_output_encodes_to_same_bytes(self):
        original = format_message(Sub(subject="A", subscription_id="2")) + format_message(
            Pub(subject="A", reply_to="B", payload=b"\x00\x01")
        )
        decoded = io.StringIO()
        decode(io.BytesIO(original), decoded)

        encoded = io.BytesIO()
        encode(io.BytesIO(decoded.getvalue().encode("utf-8")), encoded)
        assert encoded.getvalue() == original


def test_main_decode_file(tmp_path, capsys, restore_logging):
    capture = tmp_path / "capture.bin"
    capture.write_bytes(CAPTURE)

    exit_code = main(["--log-dir", str(tmp_path / "logs"), "decode", str(capture)])

    assert exit_code == 0
    out = capsys.readouterr().out
    assert len(out.splitlines()) == 4
    assert (tmp_path / "logs" / "natswire-cli.log").exists()


def test_main_encode_file(tmp_path, capsysbinary, restore_logging):
    messages = tmp_path / "messages.jsonl"
    messages.write_text('{"op": "PING"}\n{"op": "-ERR", "message": "Stale Connection"}\n')

    exit_code = main(["--log-dir", str(tmp_path / "logs"), "encode", str(messages)])

    assert exit_code == 0
    assert capsysbinary.readouterr().out == b"PING\r\n-ERR 'Stale Connection'\r\n"


def test_main_rejects_unknown_log_level(tmp_path):
    with pytest.raises(SystemExit) as exc_info:
        main(["--log-level", "CHATTY", "--log-dir", str(tmp_path), "decode"])
    assert exc_info.value.code == 2
