"""
Tests for StreamParser: frames split across arbitrary chunks
"""
import pytest

from natswire.config import Settings
from natswire.engine.protocol_parser import ProtocolParser
from natswire.engine.stream import StreamParser
from natswire.exceptions import ControlLineTooLong, UnknownOperation
from natswire.models import HMsg, Msg, Ok, Ping, Pong, Pub, Sub


SESSION = (
    b"PUB FOO 11\r\nHello NATS!\r\n"
    b"SUB FOO group.test 99\r\n"
    b"HMSG FOO.BAR 9 22 33\r\nNATS/1.0\r\nFOO: BAR\r\n\r\nHello World\r\n"
    b"PING\r\n"
    b"MSG FOO 1 INBOX.2 0\r\n\r\n"
    b"+OK\r\n"
)


def _expected():
    return [Pub, Sub, HMsg, Ping, Msg, Ok]


def test_single_chunk():
    stream = StreamParser()
    messages = stream.feed(SESSION)

    assert [type(m) for m in messages] == _expected()
    assert stream.pending == 0


def test_byte_at_a_time():
    """Every split point of the session yields the same frames"""
    stream = StreamParser()
    messages = []
    for i in range(len(SESSION)):
        messages.extend(stream.feed(SESSION[i:i + 1]))

    assert [type(m) for m in messages] == _expected()
    assert messages[0].payload == b"Hello NATS!"
    assert messages[2].headers.get("FOO") == "BAR"
    assert stream.pending == 0


@pytest.mark.parametrize("split", [3, 12, 20, 25, 40, 80])
def test_two_chunks(split):
    stream = StreamParser()
    messages = stream.feed(SESSION[:split]) + stream.feed(SESSION[split:])
    assert [type(m) for m in messages] == _expected()


def test_partial_payload_is_buffered():
    stream = StreamParser()

    assert stream.feed(b"PUB FOO 11\r\nHello") == []
    assert stream.pending == len(b"PUB FOO 11\r\nHello")

    messages = stream.feed(b" NATS!\r\nPING\r\n")
    assert messages == [Pub(subject="FOO", payload=b"Hello NATS!"), Ping()]


def test_partial_control_line_is_buffered():
    stream = StreamParser()
    assert stream.feed(b"PO") == []
    assert stream.feed(b"NG\r\n") == [Pong()]


def test_payload_containing_line_breaks():
    stream = StreamParser()
    assert stream.feed(b"PUB FOO 6\r\nab\r\n") == []
    assert stream.feed(b"cd\r\n") == [Pub(subject="FOO", payload=b"ab\r\ncd")]


def test_text_input():
    assert StreamParser().feed("PING\r\n") == [Ping()]


def test_invalid_line_is_dropped():
    stream = StreamParser()

    with pytest.raises(UnknownOperation):
        stream.feed(b"ZZZZ foo\r\nPING\r\n")

    assert stream.feed(b"") == [Ping()]


def test_frames_before_invalid_line_are_returned():
    stream = StreamParser()

    assert stream.feed(b"PING\r\nZZZZ\r\nPONG\r\n") == [Ping()]
    with pytest.raises(UnknownOperation):
        stream.feed(b"")
    assert stream.feed(b"") == [Pong()]


def test_unterminated_line_over_limit():
    stream = StreamParser(ProtocolParser(Settings(max_control_line=8)))

    with pytest.raises(ControlLineTooLong):
        stream.feed(b"SUB some.long.subject")
    assert stream.pending == 0


def test_reset():
    stream = StreamParser()
    stream.feed(b"PUB FOO 11\r\nHel")

    stream.reset()
    assert stream.pending == 0
    assert stream.feed(b"PING\r\n") == [Ping()]


def test_many_frames_in_one_chunk():
    stream = StreamParser()
    messages = stream.feed(b"PING\r\n" * 5000 + b"PUB FOO 3\r\nab")

    assert len(messages) == 5000
    assert stream.pending == len(b"PUB FOO 3\r\nab")
    assert stream.feed(b"c\r\n") == [Pub(subject="FOO", payload=b"abc")]


def test_long_partial_line_after_frames():
    stream = StreamParser(ProtocolParser(Settings(max_control_line=8)))

    assert stream.feed(b"PING\r\nSUB some.long.subject") == [Ping()]
    with pytest.raises(ControlLineTooLong):
        stream.feed(b"")
    assert stream.pending == 0
