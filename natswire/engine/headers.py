"""
Header block codec for HPUB / HMSG

    NATS/1.0[ <status>[ <description>]]\r\n
    Name: value\r\n
    ...
    \r\n
"""
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from natswire.exceptions import MalformedPayload

HEADER_VERSION = "NATS/1.0"

_CRLF = "\r\n"
_BLOCK_END = b"\r\n\r\n"


def encode_headers(
    version: str,
    status: Optional[str],
    description: Optional[str],
    entries: Iterable[Tuple[str, Sequence[str]]],
) -> bytes:
    """Serialize header fields into a complete header block."""
    status_line = version
    if status is not None:
        status_line += " " + status
        if description is not None:
            status_line += " " + description

    lines = [status_line]
    for name, values in entries:
        for value in values:
            lines.append(f"{name}: {value}")

    return (_CRLF.join(lines) + _CRLF + _CRLF).encode("utf-8")


def decode_headers(data: bytes) -> Dict[str, Any]:
    """
    Split a raw header block into its fields.

    Args:
        data: Header bytes exactly as declared by the header size field

    Returns:
        Dict with version, status, description and entries, suitable as
        keyword arguments for the Headers model

    Raises:
        MalformedPayload: If the block is not a NATS header block
    """
    if not data.endswith(_BLOCK_END):
        raise MalformedPayload(
            "header block must end with an empty line",
            {"header_size": len(data)},
        )

    try:
        text = data[:-len(_BLOCK_END)].decode("utf-8")
    except UnicodeDecodeError as e:
        raise MalformedPayload(f"invalid header encoding: {e}") from e

    lines = text.split(_CRLF)

    # Status line: NATS/1.0, NATS/1.0 503 or NATS/1.0 503 No Responders
    status_parts = lines[0].split(" ", 2)
    version = status_parts[0]
    if not version.startswith("NATS/"):
        raise MalformedPayload(
            "header block is missing the NATS version",
            {"status_line": lines[0]},
        )

    status = status_parts[1] if len(status_parts) > 1 and status_parts[1] else None
    description = status_parts[2] if len(status_parts) > 2 and status is not None else None

    entries: Dict[str, List[str]] = {}
    for line in lines[1:]:
        if not line:
            continue

        if ":" not in line:
            raise MalformedPayload(f"invalid header line (missing ':'): {line!r}")

        name, value = line.split(":", 1)
        name = name.strip()
        if not name:
            raise MalformedPayload(f"invalid header line (empty name): {line!r}")

        entries.setdefault(name, []).append(value.strip(" \t"))

    return {
        "version": version,
        "status": status,
        "description": description,
        "entries": entries,
    }
