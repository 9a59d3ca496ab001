"""
Message model for the NATS wire protocol

Every protocol operation is a frozen pydantic model tagged by a literal
`op` field, and `Message` is the discriminated union of all of them.
Length fields (payload_size, header_size, total_size) are computed from
the bytes the model actually holds, so a value can never disagree with
its own payload.
"""
from typing import Annotated, Any, ClassVar, Dict, List, Literal, Optional, Tuple, Union

from pydantic import (
    AfterValidator,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    NonNegativeInt,
    TypeAdapter,
    computed_field,
    field_validator,
    model_validator,
)

from natswire.engine.headers import HEADER_VERSION, encode_headers

_SEPARATORS = frozenset(" \t")
_LINE_BREAKS = frozenset("\r\n")


def _check_encodable(value: str) -> str:
    try:
        value.encode("utf-8")
    except UnicodeEncodeError as e:
        raise ValueError(f"text is not encodable as UTF-8: {e.reason}") from e
    return value


def _check_token(value: str) -> str:
    if not value:
        raise ValueError("token must not be empty")
    if any(ch in _SEPARATORS or ch in _LINE_BREAKS for ch in value):
        raise ValueError(f"token {value!r} contains whitespace")
    return _check_encodable(value)


def _check_line(value: str) -> str:
    if any(ch in _LINE_BREAKS for ch in value):
        raise ValueError("text must not contain CR or LF")
    return _check_encodable(value)


def _number_to_str(value: Any) -> Any:
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


# Whitespace-free field (subject, reply_to, queue_group)
Token = Annotated[str, AfterValidator(_check_token)]

# Subscription ids are opaque tokens; integers are accepted for convenience
SubscriptionId = Annotated[str, BeforeValidator(_number_to_str), AfterValidator(_check_token)]

LineText = Annotated[str, AfterValidator(_check_line)]


class WireModel(BaseModel):
    """
    Base for every protocol message.

    Computed size fields may be passed to the constructor (they show up
    in model_dump output); a value that disagrees with the actual bytes
    is rejected.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        ser_json_bytes="base64",
        val_json_bytes="base64",
    )

    declared_sizes: ClassVar[Tuple[str, ...]] = ()

    @model_validator(mode="wrap")
    @classmethod
    def _check_declared_sizes(cls, data: Any, handler):
        declared = {}
        if isinstance(data, dict) and cls.declared_sizes:
            data = dict(data)
            for name in cls.declared_sizes:
                if name in data:
                    declared[name] = data.pop(name)

        instance = handler(data)

        for name, value in declared.items():
            if value is None:
                continue
            actual = getattr(instance, name)
            try:
                matches = int(value) == actual
            except (TypeError, ValueError):
                matches = False
            if not matches:
                raise ValueError(f"{name}={value!r} does not match actual size {actual}")
        return instance


# Header entries: (name, values) pairs in first-seen order
HeaderEntries = Tuple[Tuple[str, Tuple[str, ...]], ...]


class Headers(BaseModel):
    """
    Header block carried by HPUB and HMSG.

    `entries` holds (name, values) pairs in first-seen order, one pair
    per name. Input may be a mapping or a sequence of pairs; a plain
    string value is accepted as a single value, and repeated names in a
    pair sequence are merged into the first occurrence.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    version: Token = HEADER_VERSION
    status: Optional[Token] = None
    description: Optional[LineText] = None
    entries: HeaderEntries = ()

    @field_validator("version")
    @classmethod
    def _nats_version(cls, value: str) -> str:
        if not value.startswith("NATS/"):
            raise ValueError(f"header version {value!r} must start with 'NATS/'")
        return value

    @field_validator("entries", mode="before")
    @classmethod
    def _group_entries(cls, value: Any) -> Any:
        if isinstance(value, dict):
            pairs = list(value.items())
        elif isinstance(value, (list, tuple)):
            pairs = list(value)
        else:
            return value

        grouped: Dict[str, List[str]] = {}
        for pair in pairs:
            if not isinstance(pair, (list, tuple)) or len(pair) != 2:
                raise ValueError(f"header entry {pair!r} is not a (name, values) pair")
            name, items = pair
            if isinstance(items, str):
                items = [items]
            if not isinstance(name, str) or not isinstance(items, (list, tuple)):
                raise ValueError(f"header entry {pair!r} is not a (name, values) pair")
            grouped.setdefault(name, []).extend(items)
        return tuple((name, tuple(items)) for name, items in grouped.items())

    @field_validator("entries")
    @classmethod
    def _valid_entries(cls, value: HeaderEntries) -> HeaderEntries:
        for name, items in value:
            if not name or ":" in name or any(ch.isspace() for ch in name):
                raise ValueError(f"invalid header name {name!r}")
            _check_encodable(name)
            if not items:
                raise ValueError(f"header {name!r} has no values")
            for item in items:
                _check_line(item)
                # Values are trimmed on the wire
                if item != item.strip(" \t"):
                    raise ValueError(f"header {name!r} value {item!r} has surrounding whitespace")
        return value

    @model_validator(mode="after")
    def _description_needs_status(self) -> "Headers":
        if self.description is not None and self.status is None:
            raise ValueError("a status description requires a status code")
        return self

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Return the first value for `name`, or `default`."""
        values = self.get_all(name)
        if not values:
            return default
        return values[0]

    def get_all(self, name: str) -> Tuple[str, ...]:
        """Return every value for `name` (empty when absent)."""
        for entry_name, values in self.entries:
            if entry_name == name:
                return values
        return ()

    def to_dict(self) -> Dict[str, List[str]]:
        """Entries as a plain (mutable) dict of lists."""
        return {name: list(values) for name, values in self.entries}

    def encode(self) -> bytes:
        """Wire form of the block, including its blank terminator line."""
        return encode_headers(self.version, self.status, self.description, self.entries)


class ServerInfo(BaseModel):
    """INFO document sent by the server. Unknown keys are preserved."""

    model_config = ConfigDict(frozen=True, extra="allow")

    server_id: str
    server_name: Optional[str] = None
    version: str
    go: str
    host: str
    port: int
    proto: Optional[int] = None
    headers: Optional[bool] = None
    auth_required: bool = False
    tls_required: bool = False
    tls_verify: Optional[bool] = None
    tls_available: Optional[bool] = None
    max_payload: int = 0
    client_id: Optional[int] = None
    client_ip: Optional[str] = None
    ip: Optional[str] = None
    nonce: Optional[str] = None
    cluster: Optional[str] = None
    domain: Optional[str] = None
    jetstream: Optional[bool] = None
    ldm: Optional[bool] = None
    git_commit: Optional[str] = None
    connect_urls: Optional[Tuple[str, ...]] = None
    ws_connect_urls: Optional[Tuple[str, ...]] = None


class ConnectOptions(BaseModel):
    """CONNECT document sent by the client. Unknown keys are preserved."""

    model_config = ConfigDict(frozen=True, extra="allow", populate_by_name=True)

    verbose: bool = False
    pedantic: bool = False
    tls_required: bool = False
    auth_token: Optional[str] = None
    user: Optional[str] = None
    pass_: Optional[str] = Field(default=None, alias="pass")
    lang: str
    name: Optional[str] = None
    version: str
    protocol: Optional[int] = None
    echo: Optional[bool] = None
    sig: Optional[str] = None
    jwt: Optional[str] = None
    nkey: Optional[str] = None
    headers: Optional[bool] = None
    no_responders: Optional[bool] = None


class Pub(WireModel):
    """PUB <subject> [reply-to] <#bytes>"""

    op: Literal["PUB"] = "PUB"
    subject: Token
    reply_to: Optional[Token] = None
    payload: bytes = b""

    declared_sizes: ClassVar[Tuple[str, ...]] = ("payload_size",)

    @computed_field
    @property
    def payload_size(self) -> int:
        return len(self.payload)


class HPub(WireModel):
    """HPUB <subject> [reply-to] <#header bytes> <#total bytes>"""

    op: Literal["HPUB"] = "HPUB"
    subject: Token
    reply_to: Optional[Token] = None
    headers: Headers = Field(default_factory=Headers)
    payload: bytes = b""

    declared_sizes: ClassVar[Tuple[str, ...]] = ("payload_size", "header_size", "total_size")

    @computed_field
    @property
    def payload_size(self) -> int:
        return len(self.payload)

    @computed_field
    @property
    def header_size(self) -> int:
        return len(self.headers.encode())

    @computed_field
    @property
    def total_size(self) -> int:
        return self.header_size + len(self.payload)


class Sub(WireModel):
    """SUB <subject> [queue group] <sid>"""

    op: Literal["SUB"] = "SUB"
    subject: Token
    queue_group: Optional[Token] = None
    subscription_id: SubscriptionId


class Unsub(WireModel):
    """UNSUB <sid> [max_msgs]"""

    op: Literal["UNSUB"] = "UNSUB"
    subscription_id: SubscriptionId
    max_messages: Optional[NonNegativeInt] = None


class Msg(WireModel):
    """MSG <subject> <sid> [reply-to] <#bytes>"""

    op: Literal["MSG"] = "MSG"
    subject: Token
    subscription_id: SubscriptionId
    reply_to: Optional[Token] = None
    payload: bytes = b""

    declared_sizes: ClassVar[Tuple[str, ...]] = ("payload_size",)

    @computed_field
    @property
    def payload_size(self) -> int:
        return len(self.payload)


class HMsg(WireModel):
    """HMSG <subject> <sid> [reply-to] <#header bytes> <#total bytes>"""

    op: Literal["HMSG"] = "HMSG"
    subject: Token
    subscription_id: SubscriptionId
    reply_to: Optional[Token] = None
    headers: Headers = Field(default_factory=Headers)
    payload: bytes = b""

    declared_sizes: ClassVar[Tuple[str, ...]] = ("payload_size", "header_size", "total_size")

    @computed_field
    @property
    def payload_size(self) -> int:
        return len(self.payload)

    @computed_field
    @property
    def header_size(self) -> int:
        return len(self.headers.encode())

    @computed_field
    @property
    def total_size(self) -> int:
        return self.header_size + len(self.payload)


class Info(WireModel):
    """INFO {json}"""

    op: Literal["INFO"] = "INFO"
    info: ServerInfo


class Connect(WireModel):
    """CONNECT {json}"""

    op: Literal["CONNECT"] = "CONNECT"
    options: ConnectOptions


class Ping(WireModel):
    op: Literal["PING"] = "PING"


class Pong(WireModel):
    op: Literal["PONG"] = "PONG"


class Ok(WireModel):
    op: Literal["+OK"] = "+OK"


class Err(WireModel):
    """-ERR '<error message>'"""

    op: Literal["-ERR"] = "-ERR"
    message: LineText = ""


MESSAGE_TYPES = (Pub, HPub, Sub, Unsub, Msg, HMsg, Info, Connect, Ping, Pong, Ok, Err)

Message = Annotated[
    Union[Pub, HPub, Sub, Unsub, Msg, HMsg, Info, Connect, Ping, Pong, Ok, Err],
    Field(discriminator="op"),
]

# Validates plain dicts / JSON documents into the matching message shape
message_adapter: TypeAdapter = TypeAdapter(Message)
