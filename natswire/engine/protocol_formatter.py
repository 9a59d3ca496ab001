"""
Protocol Formatter - structured messages to bytes

Serializes Message models into the exact bytes written to the wire.
Size fields are always computed from the bytes being written, never
taken from the model, so the header and payload cannot disagree.
"""
from typing import Callable, Dict, Optional

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
    SPACE,
    SUB_OP,
    UNSUB_OP,
)
from natswire.exceptions import SerializationError
from natswire.models import (
    MESSAGE_TYPES,
    Connect,
    Err,
    HMsg,
    HPub,
    Info,
    Message,
    Msg,
    Pub,
    Sub,
    Unsub,
)


def _control_line(*fields: Optional[str]) -> bytes:
    """Join present fields with single spaces and terminate with CRLF."""
    return SPACE.join(field for field in fields if field is not None).encode("utf-8") + CRLF


def _format_pub(message: Pub) -> bytes:
    payload = message.payload
    return _control_line(PUB_OP, message.subject, message.reply_to, str(len(payload))) + payload + CRLF


def _format_hpub(message: HPub) -> bytes:
    header = message.headers.encode()
    payload = message.payload
    line = _control_line(
        HPUB_OP,
        message.subject,
        message.reply_to,
        str(len(header)),
        str(len(header) + len(payload)),
    )
    return line + header + payload + CRLF


def _format_sub(message: Sub) -> bytes:
    return _control_line(SUB_OP, message.subject, message.queue_group, message.subscription_id)


def _format_unsub(message: Unsub) -> bytes:
    max_messages = None if message.max_messages is None else str(message.max_messages)
    return _control_line(UNSUB_OP, message.subscription_id, max_messages)


def _format_msg(message: Msg) -> bytes:
    payload = message.payload
    line = _control_line(
        MSG_OP,
        message.subject,
        message.subscription_id,
        message.reply_to,
        str(len(payload)),
    )
    return line + payload + CRLF


def _format_hmsg(message: HMsg) -> bytes:
    header = message.headers.encode()
    payload = message.payload
    line = _control_line(
        HMSG_OP,
        message.subject,
        message.subscription_id,
        message.reply_to,
        str(len(header)),
        str(len(header) + len(payload)),
    )
    return line + header + payload + CRLF


def _format_info(message: Info) -> bytes:
    return _control_line(INFO_OP, message.info.model_dump_json(by_alias=True, exclude_unset=True))


def _format_connect(message: Connect) -> bytes:
    return _control_line(CONNECT_OP, message.options.model_dump_json(by_alias=True, exclude_unset=True))


def _format_ping(message: Message) -> bytes:
    return _control_line(PING_OP)


def _format_pong(message: Message) -> bytes:
    return _control_line(PONG_OP)


def _format_ok(message: Message) -> bytes:
    return _control_line(OK_OP)


def _format_err(message: Err) -> bytes:
    return _control_line(ERR_OP, f"'{message.message}'")


_FORMATTERS: Dict[str, Callable[..., bytes]] = {
    PUB_OP: _format_pub,
    HPUB_OP: _format_hpub,
    SUB_OP: _format_sub,
    UNSUB_OP: _format_unsub,
    MSG_OP: _format_msg,
    HMSG_OP: _format_hmsg,
    INFO_OP: _format_info,
    CONNECT_OP: _format_connect,
    PING_OP: _format_ping,
    PONG_OP: _format_pong,
    OK_OP: _format_ok,
    ERR_OP: _format_err,
}


def format_message(message: Message) -> bytes:
    """
    Serialize a message to wire bytes.

    Args:
        message: Any Message model

    Returns:
        Control line, plus payload block for PUB/HPUB/MSG/HMSG

    Raises:
        SerializationError: If `message` is not a protocol message model,
            or a document field holds text that cannot be encoded
    """
    if not isinstance(message, MESSAGE_TYPES):
        raise SerializationError(
            f"cannot format {type(message).__name__}: not a protocol message",
            {"type": type(message).__name__},
        )
    try:
        return _FORMATTERS[message.op](message)
    except ValueError as e:
        # Unencodable text in a free-form document field (e.g. a lone surrogate)
        raise SerializationError(
            f"cannot format {message.op}: {e}",
            {"op": message.op},
        ) from e
