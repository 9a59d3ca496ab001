"""
natswire - codec for the NATS client/server wire protocol

Converts between protocol frames on the wire and immutable message
models, in both directions:

    >>> from natswire import Pub, parse, format
    >>> format(Pub(subject="workdispatch", reply_to="INBOX.42", payload=b"Hello World"))
    b'PUB workdispatch INBOX.42 11\\r\\nHello World\\r\\n'
    >>> parse(b"PUB FOO 11\\r\\nHello NATS!\\r\\n").payload_size
    11

No I/O is performed here; reading and writing sockets is left to the
caller. StreamParser helps split a byte stream into frames.
"""
from natswire.engine.protocol_formatter import format_message
from natswire.engine.protocol_parser import ProtocolParser, parse, parse_frame
from natswire.engine.stream import StreamParser
from natswire.exceptions import (
    ControlLineTooLong,
    InvalidEncoding,
    InvalidFieldValue,
    InvalidPayloadSize,
    MalformedFieldCount,
    MalformedPayload,
    NatsWireError,
    ParseError,
    PayloadLengthMismatch,
    ProtocolError,
    SerializationError,
    TruncatedPayload,
    UnexpectedTrailingData,
    UnknownOperation,
)
from natswire.models import (
    Connect,
    ConnectOptions,
    Err,
    Headers,
    HMsg,
    HPub,
    Info,
    Message,
    Msg,
    Ok,
    Ping,
    Pong,
    Pub,
    ServerInfo,
    Sub,
    Unsub,
    message_adapter,
)

__version__ = "0.1.0"

format = format_message
