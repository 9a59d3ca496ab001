"""
Stream Parser - frames from an arbitrary byte stream

Transports hand over bytes in whatever chunks the socket produced. The
StreamParser buffers them and returns every complete frame, keeping a
partial control line or payload until the rest arrives.
"""
from typing import List, Optional

import structlog

from natswire.engine.protocol_parser import ProtocolParser, RawInput
from natswire.exceptions import ControlLineTooLong, ParseError, TruncatedPayload
from natswire.models import Message

logger = structlog.get_logger()


class StreamParser:
    """
    Incremental splitter on top of ProtocolParser.

    One instance per connection; not thread-safe.

    Example:
        stream = StreamParser()
        stream.feed(b"PUB FOO 11\\r\\nHello")   # -> []
        stream.feed(b" NATS!\\r\\nPING\\r\\n")  # -> [Pub(...), Ping()]
    """

    def __init__(self, parser: Optional[ProtocolParser] = None):
        self.parser = parser or ProtocolParser()
        self._buffer = bytearray()

    @property
    def pending(self) -> int:
        """Number of buffered bytes not yet returned as a message."""
        return len(self._buffer)

    def reset(self) -> None:
        """Discard buffered bytes (e.g. after a reconnect)."""
        if self._buffer:
            logger.debug("stream_buffer_discarded", pending=len(self._buffer))
        self._buffer.clear()

    def feed(self, data: RawInput) -> List[Message]:
        """
        Append bytes and return every frame that is now complete.

        Raises:
            ParseError: The next control line is invalid. Frames before
                it are returned first and the error is raised by the
                following call. The bad line is dropped from the buffer,
                so feeding b"" afterwards continues with the next frame.
        """
        if isinstance(data, str):
            data = data.encode("utf-8")
        self._buffer.extend(data)

        # One snapshot per call; frames are parsed by offset and the
        # buffer is trimmed once at the end
        view = bytes(self._buffer)
        position = 0
        messages: List[Message] = []
        try:
            while position < len(view):
                line_end = view.find(b"\n", position)
                if line_end == -1:
                    if messages:
                        # Checked again on the next feed
                        break
                    self._check_partial_line(len(view) - position)
                    break

                try:
                    message, consumed = self.parser.parse_frame(view, offset=position)
                except TruncatedPayload as e:
                    logger.debug("stream_awaiting_payload", pending=len(view) - position, **e.details)
                    break
                except ParseError as e:
                    if messages:
                        # Hand back what was decoded; the bad line raises on the next feed
                        break
                    position = line_end + 1
                    logger.warning(
                        "stream_frame_rejected",
                        error=e.message,
                        error_type=type(e).__name__,
                        dropped=position,
                    )
                    raise

                position += consumed
                messages.append(message)
        finally:
            del self._buffer[:position]

        if messages:
            logger.debug("stream_frames_decoded", count=len(messages), pending=len(self._buffer))
        return messages

    def _check_partial_line(self, length: int) -> None:
        limit = self.parser.settings.max_control_line
        if length > limit:
            self._buffer.clear()
            raise ControlLineTooLong(
                f"control line too long: {length} > {limit}",
                {"length": length, "limit": limit},
            )
