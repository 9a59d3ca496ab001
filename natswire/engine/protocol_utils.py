"""
Protocol Line Utilities

Shared helpers for splitting control lines into tokens and turning
tokens into typed fields. Used by the parser; the formatter only needs
the wire constants.
"""
import re
from typing import Dict, List, Optional, Sequence, Tuple

from natswire.exceptions import InvalidFieldValue, InvalidPayloadSize, MalformedFieldCount

CRLF = b"\r\n"
SPACE = " "

# Canonical keywords, in the casing they are written on the wire
PUB_OP = "PUB"
HPUB_OP = "HPUB"
SUB_OP = "SUB"
UNSUB_OP = "UNSUB"
MSG_OP = "MSG"
HMSG_OP = "HMSG"
INFO_OP = "INFO"
CONNECT_OP = "CONNECT"
PING_OP = "PING"
PONG_OP = "PONG"
OK_OP = "+OK"
ERR_OP = "-ERR"

OPERATIONS = (
    PUB_OP, HPUB_OP, SUB_OP, UNSUB_OP, MSG_OP, HMSG_OP,
    INFO_OP, CONNECT_OP, PING_OP, PONG_OP, OK_OP, ERR_OP,
)

_SEPARATOR_RE = re.compile(r"[ \t]+")


def split_tokens(line: str) -> List[str]:
    """Split a control line on runs of spaces and tabs."""
    line = line.strip(" \t")
    if not line:
        return []
    return _SEPARATOR_RE.split(line)


def split_keyword(line: str) -> Tuple[str, str]:
    """
    Split a control line into its keyword and the untouched remainder.

    Used for operations whose argument is free text (INFO/CONNECT JSON,
    -ERR message) and must not be tokenized further.
    """
    line = line.lstrip(" \t")
    match = _SEPARATOR_RE.search(line)
    if match is None:
        return line, ""
    return line[:match.start()], line[match.end():]


def unpack_args(
    op: str,
    args: Sequence[str],
    names: Sequence[str],
    optional: str,
) -> Dict[str, Optional[str]]:
    """
    Map positional arguments to field names, with one optional field.

    The optional field is present only when every name has a token;
    with exactly one token fewer it is absent and the remaining names
    take the tokens in order. Any other count is rejected.

    Example:
        unpack_args("PUB", ["FOO", "11"], ("subject", "reply_to", "payload_size"), "reply_to")
        -> {"subject": "FOO", "reply_to": None, "payload_size": "11"}

    Raises:
        MalformedFieldCount: If the token count fits neither form
    """
    if len(args) == len(names):
        return dict(zip(names, args))

    if len(args) == len(names) - 1:
        present = [name for name in names if name != optional]
        values: Dict[str, Optional[str]] = dict(zip(present, args))
        return {name: values.get(name) for name in names}

    raise MalformedFieldCount(
        f"{op} expects {len(names) - 1} or {len(names)} arguments, got {len(args)}",
        {"op": op, "arguments": list(args)},
    )


def _is_decimal(value: str) -> bool:
    return value.isascii() and value.isdigit()


def parse_size(value: str, field: str, limit: Optional[int] = None) -> int:
    """
    Parse a byte-count field.

    Only plain ASCII digits are accepted; signs, underscores and
    surrounding whitespace that int() would tolerate are rejected.

    Raises:
        InvalidPayloadSize: If the value is not a non-negative integer or
            exceeds `limit`
    """
    if not _is_decimal(value):
        raise InvalidPayloadSize(f"invalid {field}: {value!r}", {"field": field, "value": value})

    size = int(value)
    if limit is not None and size > limit:
        raise InvalidPayloadSize(
            f"{field} {size} exceeds maximum {limit}",
            {"field": field, "value": size, "limit": limit},
        )
    return size


def parse_count(value: str, field: str) -> int:
    """
    Parse a non-negative integer that is not a byte count (max_messages).

    Raises:
        InvalidFieldValue: If the value is not a non-negative integer
    """
    if not _is_decimal(value):
        raise InvalidFieldValue(f"invalid {field}: {value!r}", {"field": field, "value": value})
    return int(value)
