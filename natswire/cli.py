"""
natswire command line tool

    natswire decode capture.bin      wire bytes -> JSON lines
    natswire encode messages.jsonl   JSON lines -> wire bytes

Reads stdin when no file is given. Payload bytes are base64 in JSON.
"""
import argparse
import json
import sys
from pathlib import Path
from typing import BinaryIO, List, Optional

import structlog
from pydantic import ValidationError

from natswire.config import settings
from natswire.engine.protocol_formatter import format_message
from natswire.engine.protocol_parser import ProtocolParser
from natswire.engine.stream import StreamParser
from natswire.exceptions import ConfigurationError, ParseError
from natswire.logging import setup_logging
from natswire.models import Message, message_adapter

logger = structlog.get_logger()


def _to_json(message: Message) -> str:
    # Unset fields stay out (as on the wire); the op tag is always written
    document = message.model_dump(mode="json", by_alias=True, exclude_unset=True)
    return json.dumps({"op": message.op, **document})


def _open_input(path: Optional[str]) -> BinaryIO:
    if path is None or path == "-":
        return sys.stdin.buffer
    return open(path, "rb")


def decode(source: BinaryIO, out, strict: bool = True) -> int:
    """Decode every frame in `source`, writing one JSON document per line."""
    stream = StreamParser(ProtocolParser(strict=strict))
    count = 0

    while True:
        chunk = source.read(64 * 1024)
        try:
            messages = stream.feed(chunk)
        except ParseError as e:
            logger.error("decode_failed", error=e.message, error_type=type(e).__name__, decoded=count)
            return 1

        for message in messages:
            out.write(_to_json(message) + "\n")
            count += 1

        # At EOF keep draining until the buffer stops producing frames
        if not chunk and not messages:
            break

    if stream.pending:
        logger.error("decode_incomplete_frame", pending=stream.pending, decoded=count)
        return 1

    logger.info("decode_complete", messages=count)
    return 0


def encode(source: BinaryIO, out: BinaryIO) -> int:
    """Encode JSON lines from `source` into wire bytes on `out`."""
    count = 0

    for line_number, line in enumerate(source, start=1):
        if not line.strip():
            continue
        try:
            message = message_adapter.validate_json(line)
        except ValidationError as e:
            logger.error("encode_invalid_message", line=line_number, errors=e.error_count())
            return 1

        out.write(format_message(message))
        count += 1

    out.flush()
    logger.info("encode_complete", messages=count)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point"""
    parser = argparse.ArgumentParser(prog="natswire", description="NATS wire protocol codec")
    parser.add_argument(
        "--log-level",
        default=settings.log_level,
        help="Logging level (DEBUG, INFO, WARNING, ...)",
    )
    parser.add_argument(
        "--log-dir",
        type=Path,
        default=settings.log_dir,
        help="Directory for the rotating log file",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    decode_parser = subparsers.add_parser("decode", help="Decode wire bytes into JSON lines")
    decode_parser.add_argument("file", nargs="?", help="Capture file (default: stdin)")
    decode_parser.add_argument(
        "--lenient",
        action="store_true",
        help="Ignore extra tokens after PING/PONG/+OK",
    )

    encode_parser = subparsers.add_parser("encode", help="Encode JSON lines into wire bytes")
    encode_parser.add_argument("file", nargs="?", help="JSON lines file (default: stdin)")

    args = parser.parse_args(argv)

    try:
        setup_logging("natswire-cli", level=args.log_level, log_dir=args.log_dir)
    except ConfigurationError as e:
        parser.error(e.message)

    source = _open_input(args.file)
    try:
        if args.command == "decode":
            return decode(source, sys.stdout, strict=not args.lenient)
        return encode(source, sys.stdout.buffer)
    finally:
        if source is not sys.stdin.buffer:
            source.close()


if __name__ == "__main__":
    sys.exit(main())
