"""
Protocol Parser - bytes to structured messages

Parses a single NATS protocol frame (a control line plus, for payload
operations, the declared payload block) into a Message model.

The parser never logs and holds no state between calls beyond its
configuration, so one instance can be shared freely across threads.
"""
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple, Type, Union

from pydantic import BaseModel, ValidationError

from natswire.config import Settings, settings as default_settings
from natswire.engine.headers import decode_headers
from natswire.engine.protocol_utils import (
    CONNECT_OP,
    CRLF,
    ERR_OP,
    HMSG_OP,
    HPUB_OP,
    INFO_OP,
    MSG_OP,
    OK_OP,
    PING_OP,
    PONG_OP,
    PUB_OP,
    SUB_OP,
    UNSUB_OP,
    parse_count,
    parse_size,
    split_keyword,
    split_tokens,
    unpack_args,
)
from natswire.exceptions import (
    ControlLineTooLong,
    InvalidEncoding,
    InvalidFieldValue,
    InvalidPayloadSize,
    MalformedFieldCount,
    MalformedPayload,
    PayloadLengthMismatch,
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
)

RawInput = Union[bytes, bytearray, memoryview, str]


@dataclass
class _Frame:
    """Control line of the frame being parsed, plus where its body starts."""

    data: bytes
    line: str
    keyword: str
    args: list
    body_start: int
    terminated: bool
    complete: bool


class ProtocolParser:
    """
    Parse NATS protocol frames into Message models.

    Supports:
    - Case-insensitive keywords, spaces or tabs between fields
    - Control lines with or without their CRLF terminator
    - Payload framing by declared byte count (PUB, MSG, HPUB, HMSG)
    - Header blocks split from the body at the declared header size
    - Configurable strictness for trailing tokens and trailing bytes
    """

    def __init__(self, settings: Optional[Settings] = None, strict: Optional[bool] = None):
        """
        Initialize parser.

        Args:
            settings: Limits and defaults (module settings when omitted)
            strict: Overrides settings.strict when given
        """
        self.settings = settings or default_settings
        self.strict = self.settings.strict if strict is None else strict

        self._handlers: Dict[str, Callable[[_Frame], Tuple[Message, int]]] = {
            PUB_OP: self._parse_pub,
            HPUB_OP: self._parse_hpub,
            SUB_OP: self._parse_sub,
            UNSUB_OP: self._parse_unsub,
            MSG_OP: self._parse_msg,
            HMSG_OP: self._parse_hmsg,
            INFO_OP: self._parse_info,
            CONNECT_OP: self._parse_connect,
            PING_OP: self._parse_ping,
            PONG_OP: self._parse_pong,
            OK_OP: self._parse_ok,
            ERR_OP: self._parse_err,
        }

    def parse(self, data: RawInput, complete: bool = False) -> Message:
        """
        Parse exactly one frame.

        Args:
            data: Control line (terminator optional) followed, for payload
                operations, by the payload block and its CRLF
            complete: Caller asserts no more bytes will follow, so a short
                payload is a length mismatch rather than a truncation

        Returns:
            The parsed message

        Raises:
            TruncatedPayload: The payload is incomplete; retry with more bytes
            ParseError: Any other subclass means the input is invalid
        """
        data = _as_bytes(data)
        message, consumed = self.parse_frame(data, complete=complete)

        if consumed < len(data) and self.strict:
            raise UnexpectedTrailingData(
                f"{len(data) - consumed} bytes after {message.op} frame",
                {"op": message.op, "consumed": consumed, "length": len(data)},
            )
        return message

    def parse_frame(
        self, data: RawInput, complete: bool = False, offset: int = 0
    ) -> Tuple[Message, int]:
        """
        Parse the frame that starts at `offset` in `data`.

        Args:
            data: Input buffer, possibly holding several frames
            complete: See parse()
            offset: Start of the frame; lets a caller walk a buffer
                without slicing it

        Returns:
            Tuple of (message, bytes consumed from `offset`). Bytes past
            the frame are left for the caller.
        """
        data = _as_bytes(data)

        line_end = data.find(b"\n", offset)
        if line_end == -1:
            raw_line = data[offset:]
            body_start = len(data)
            terminated = False
        else:
            raw_line = data[offset:line_end]
            body_start = line_end + 1
            terminated = True

        if raw_line.endswith(b"\r"):
            raw_line = raw_line[:-1]

        limit = self.settings.max_control_line
        if len(raw_line) > limit:
            raise ControlLineTooLong(
                f"control line too long: {len(raw_line)} > {limit}",
                {"length": len(raw_line), "limit": limit},
            )

        try:
            line = raw_line.decode("utf-8")
        except UnicodeDecodeError as e:
            raise InvalidEncoding(f"invalid control line encoding: {e}") from e

        tokens = split_tokens(line)
        if not tokens:
            raise MalformedFieldCount("empty control line")

        keyword = tokens[0].upper()
        handler = self._handlers.get(keyword)
        if handler is None:
            raise UnknownOperation(f"unknown operation: {tokens[0]!r}", {"op": tokens[0]})

        frame = _Frame(
            data=data,
            line=line,
            keyword=keyword,
            args=tokens[1:],
            body_start=body_start,
            terminated=terminated,
            complete=complete,
        )
        message, end = handler(frame)
        return message, end - offset

    # Payload operations

    def _parse_pub(self, frame: _Frame) -> Tuple[Message, int]:
        fields = unpack_args(
            frame.keyword, frame.args, ("subject", "reply_to", "payload_size"), optional="reply_to"
        )
        size = parse_size(fields["payload_size"], "payload_size", self.settings.max_payload)
        payload, consumed = self._read_payload(frame, size)

        message = _build(
            Pub,
            subject=fields["subject"],
            reply_to=fields["reply_to"],
            payload=payload,
        )
        return message, consumed

    def _parse_hpub(self, frame: _Frame) -> Tuple[Message, int]:
        fields = unpack_args(
            frame.keyword,
            frame.args,
            ("subject", "reply_to", "header_size", "total_size"),
            optional="reply_to",
        )
        headers, payload, consumed = self._read_headers_and_payload(frame, fields)

        message = _build(
            HPub,
            subject=fields["subject"],
            reply_to=fields["reply_to"],
            headers=headers,
            payload=payload,
        )
        return message, consumed

    def _parse_msg(self, frame: _Frame) -> Tuple[Message, int]:
        fields = unpack_args(
            frame.keyword,
            frame.args,
            ("subject", "subscription_id", "reply_to", "payload_size"),
            optional="reply_to",
        )
        size = parse_size(fields["payload_size"], "payload_size", self.settings.max_payload)
        payload, consumed = self._read_payload(frame, size)

        message = _build(
            Msg,
            subject=fields["subject"],
            subscription_id=fields["subscription_id"],
            reply_to=fields["reply_to"],
            payload=payload,
        )
        return message, consumed

    def _parse_hmsg(self, frame: _Frame) -> Tuple[Message, int]:
        fields = unpack_args(
            frame.keyword,
            frame.args,
            ("subject", "subscription_id", "reply_to", "header_size", "total_size"),
            optional="reply_to",
        )
        headers, payload, consumed = self._read_headers_and_payload(frame, fields)

        message = _build(
            HMsg,
            subject=fields["subject"],
            subscription_id=fields["subscription_id"],
            reply_to=fields["reply_to"],
            headers=headers,
            payload=payload,
        )
        return message, consumed

    # Control-line-only operations

    def _parse_sub(self, frame: _Frame) -> Tuple[Message, int]:
        fields = unpack_args(
            frame.keyword,
            frame.args,
            ("subject", "queue_group", "subscription_id"),
            optional="queue_group",
        )
        message = _build(
            Sub,
            subject=fields["subject"],
            queue_group=fields["queue_group"],
            subscription_id=fields["subscription_id"],
        )
        return message, frame.body_start

    def _parse_unsub(self, frame: _Frame) -> Tuple[Message, int]:
        fields = unpack_args(
            frame.keyword,
            frame.args,
            ("subscription_id", "max_messages"),
            optional="max_messages",
        )
        max_messages = fields["max_messages"]
        message = _build(
            Unsub,
            subscription_id=fields["subscription_id"],
            max_messages=None if max_messages is None else parse_count(max_messages, "max_messages"),
        )
        return message, frame.body_start

    def _parse_info(self, frame: _Frame) -> Tuple[Message, int]:
        info = self._read_document(frame, ServerInfo)
        return Info(info=info), frame.body_start

    def _parse_connect(self, frame: _Frame) -> Tuple[Message, int]:
        options = self._read_document(frame, ConnectOptions)
        return Connect(options=options), frame.body_start

    def _parse_ping(self, frame: _Frame) -> Tuple[Message, int]:
        self._check_no_arguments(frame)
        return Ping(), frame.body_start

    def _parse_pong(self, frame: _Frame) -> Tuple[Message, int]:
        self._check_no_arguments(frame)
        return Pong(), frame.body_start

    def _parse_ok(self, frame: _Frame) -> Tuple[Message, int]:
        self._check_no_arguments(frame)
        return Ok(), frame.body_start

    def _parse_err(self, frame: _Frame) -> Tuple[Message, int]:
        _, text = split_keyword(frame.line)
        text = text.rstrip(" \t")

        # Servers quote the text: -ERR 'Unknown Protocol Operation'
        if len(text) >= 2 and text.startswith("'") and text.endswith("'"):
            text = text[1:-1]

        return _build(Err, message=text), frame.body_start

    # Helpers

    def _check_no_arguments(self, frame: _Frame) -> None:
        if frame.args and self.strict:
            raise UnexpectedTrailingData(
                f"{frame.keyword} takes no arguments, got {len(frame.args)}",
                {"op": frame.keyword, "arguments": frame.args},
            )

    def _read_document(self, frame: _Frame, model: Type[BaseModel]) -> BaseModel:
        _, document = split_keyword(frame.line)
        document = document.strip(" \t")
        if not document:
            raise MalformedFieldCount(
                f"{frame.keyword} requires a JSON document",
                {"op": frame.keyword},
            )

        try:
            return model.model_validate_json(document)
        except ValidationError as e:
            raise MalformedPayload(
                f"invalid {frame.keyword} document: {e}",
                {"op": frame.keyword, "errors": e.errors(include_url=False)},
            ) from e

    def _read_payload(self, frame: _Frame, size: int) -> Tuple[bytes, int]:
        """
        Read `size` payload bytes plus CRLF after the control line.

        Returns:
            Tuple of (payload, position just past the frame)
        """
        data = frame.data
        start = frame.body_start
        end = start + size
        available = len(data) - start if frame.terminated else 0

        if not frame.terminated or len(data) < end + len(CRLF):
            details = {"op": frame.keyword, "declared": size, "available": available}
            if frame.complete:
                raise PayloadLengthMismatch(
                    f"{frame.keyword} declares {size} payload bytes, {available} supplied",
                    details,
                )
            raise TruncatedPayload(
                f"{frame.keyword} payload incomplete: {available} of {size + len(CRLF)} bytes",
                details,
            )

        if data[end:end + len(CRLF)] != CRLF:
            raise PayloadLengthMismatch(
                f"{frame.keyword} payload is not terminated at declared length {size}",
                {"op": frame.keyword, "declared": size},
            )

        return data[start:end], end + len(CRLF)

    def _read_headers_and_payload(
        self, frame: _Frame, fields: Dict[str, Optional[str]]
    ) -> Tuple[Headers, bytes, int]:
        header_size = parse_size(fields["header_size"], "header_size", self.settings.max_header_size)
        total_size = parse_size(fields["total_size"], "total_size", self.settings.max_payload)
        if header_size > total_size:
            raise InvalidPayloadSize(
                f"header size {header_size} larger than total size {total_size}",
                {"header_size": header_size, "total_size": total_size},
            )

        block, consumed = self._read_payload(frame, total_size)

        try:
            headers = Headers(**decode_headers(block[:header_size]))
        except ValidationError as e:
            raise MalformedPayload(f"invalid header block: {e}") from e

        return headers, block[header_size:], consumed


def _build(model: Type[BaseModel], **fields) -> Message:
    try:
        return model(**fields)
    except ValidationError as e:
        raise InvalidFieldValue(
            f"invalid {model.__name__} field: {e}",
            {"errors": e.errors(include_url=False)},
        ) from e


def _as_bytes(data: RawInput) -> bytes:
    if isinstance(data, bytes):
        return data
    if isinstance(data, str):
        return data.encode("utf-8")
    return bytes(data)


def parse(data: RawInput, strict: Optional[bool] = None, complete: bool = False) -> Message:
    """Parse one frame with the default settings. See ProtocolParser.parse."""
    return ProtocolParser(strict=strict).parse(data, complete=complete)


def parse_frame(
    data: RawInput, strict: Optional[bool] = None, complete: bool = False, offset: int = 0
) -> Tuple[Message, int]:
    """Parse the frame at `offset` in `data`. See ProtocolParser.parse_frame."""
    return ProtocolParser(strict=strict).parse_frame(data, complete=complete, offset=offset)
