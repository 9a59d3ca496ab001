"""
Exception Hierarchy for the NATS wire codec

All codec errors inherit from NatsWireError so callers can catch every
codec failure with a single except clause. Parse failures additionally
say whether they are recoverable: a TruncatedPayload only means the
caller has not supplied enough bytes yet.
"""
from typing import Optional


class NatsWireError(Exception):
    """
    Base exception for all codec errors.

    Carries a human readable message plus a details dict with the
    offending operation, field or sizes where known.
    """
    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(NatsWireError):
    """Invalid settings (e.g. a non-positive size limit)."""
    pass


# Protocol Errors

class ProtocolError(NatsWireError):
    """
    Protocol-related errors during parsing or formatting.

    Base class for all wire handling errors.
    """
    pass


class ParseError(ProtocolError):
    """
    Input is not a valid protocol message.

    Subclasses identify the failing step. `recoverable` is True only
    when retrying with more input can succeed.
    """
    recoverable = False


class UnknownOperation(ParseError):
    """First token is not a protocol keyword."""
    pass


class MalformedFieldCount(ParseError):
    """Wrong number of tokens for the operation."""
    pass


class InvalidPayloadSize(ParseError):
    """Size field is not a non-negative integer, or exceeds a limit."""
    pass


class InvalidFieldValue(ParseError):
    """A numeric field other than a size could not be parsed."""
    pass


class MalformedPayload(ParseError):
    """Embedded JSON document or header block is invalid."""
    pass


class TruncatedPayload(ParseError):
    """
    Fewer bytes available than the header declares.

    Not a rejection: buffer more input and parse again.
    """
    recoverable = True


class UnexpectedTrailingData(ParseError):
    """Extra tokens after a keyword-only operation, or bytes after a frame."""
    pass


class PayloadLengthMismatch(ParseError):
    """Declared payload length disagrees with the bytes actually supplied."""
    pass


class ControlLineTooLong(ParseError):
    """Header line exceeds the configured maximum."""
    pass


class InvalidEncoding(ParseError):
    """Header line is not valid UTF-8."""
    pass


class SerializationError(ProtocolError):
    """Object handed to the formatter is not a known message shape."""
    pass
