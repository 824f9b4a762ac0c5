"""Action codec: typed action payloads to and from canonical bytes.

Payload layout (version 1)::

    u8       version
    uleb128  kind discriminant
    ...      fields in declaration order

Payloads may be read back from ledger state written by another client
version, so the discriminants and field order of registered kinds never
change; new fields require a new kind.
"""

from __future__ import annotations

import logging
from enum import IntEnum
from typing import TYPE_CHECKING, Any, Sequence, Tuple

from .bcs import BcsReader, BcsWriter, normalize_type_tag
from .errors import CodecError, MalformedPayload, ValidationError

if TYPE_CHECKING:  # pragma: no cover
    from .actions import Action
    from .catalog import ActionCatalog

logger = logging.getLogger(__name__)

CODEC_VERSION = 1
SUPPORTED_VERSIONS = frozenset({1})


class FieldCodec:
    """Encode and decode a single field value."""

    name = "field"

    def write(self, writer: BcsWriter, value: Any) -> None:
        raise NotImplementedError

    def read(self, reader: BcsReader) -> Any:
        raise NotImplementedError

    def from_jsonable(self, value: Any) -> Any:
        return value


class _U8(FieldCodec):
    name = "u8"

    def write(self, writer: BcsWriter, value: Any) -> None:
        writer.u8(int(value))

    def read(self, reader: BcsReader) -> int:
        return reader.u8()


class _U64(FieldCodec):
    name = "u64"

    def write(self, writer: BcsWriter, value: Any) -> None:
        writer.u64(value)

    def read(self, reader: BcsReader) -> int:
        return reader.u64()


class _Bool(FieldCodec):
    name = "bool"

    def write(self, writer: BcsWriter, value: Any) -> None:
        writer.boolean(bool(value))

    def read(self, reader: BcsReader) -> bool:
        return reader.boolean()


class _String(FieldCodec):
    name = "string"

    def write(self, writer: BcsWriter, value: Any) -> None:
        writer.string(value)

    def read(self, reader: BcsReader) -> str:
        return reader.string()


class _Bytes(FieldCodec):
    name = "bytes"

    def from_jsonable(self, value: Any) -> bytes:
        if isinstance(value, str):
            try:
                return bytes.fromhex(value[2:] if value.startswith("0x") else value)
            except ValueError as exc:
                raise ValidationError(f"invalid hex bytes: {value}") from exc
        return bytes(value)

    def write(self, writer: BcsWriter, value: Any) -> None:
        writer.bytes_(bytes(value))

    def read(self, reader: BcsReader) -> bytes:
        return reader.bytes_()


class _Address(FieldCodec):
    name = "address"

    def write(self, writer: BcsWriter, value: Any) -> None:
        writer.address(value)

    def read(self, reader: BcsReader) -> str:
        return reader.address()


class _TypeTag(FieldCodec):
    """Move type tags travel as their normalized string form."""

    name = "type_tag"

    def write(self, writer: BcsWriter, value: Any) -> None:
        writer.string(normalize_type_tag(value))

    def read(self, reader: BcsReader) -> str:
        raw = reader.string()
        try:
            return normalize_type_tag(raw)
        except ValidationError as exc:
            raise MalformedPayload(f"invalid type tag in payload: {raw}") from exc


U8 = _U8()
U64 = _U64()
BOOL = _Bool()
STRING = _String()
BYTES = _Bytes()
ADDRESS = _Address()
TYPE_TAG = _TypeTag()


class Vec(FieldCodec):
    def __init__(self, inner: FieldCodec) -> None:
        self.inner = inner
        self.name = f"vector<{inner.name}>"

    def write(self, writer: BcsWriter, value: Any) -> None:
        writer.sequence(list(value), self.inner.write)

    def read(self, reader: BcsReader) -> tuple:
        return tuple(reader.sequence(self.inner.read))

    def from_jsonable(self, value: Any) -> tuple:
        return tuple(self.inner.from_jsonable(item) for item in value)


class Opt(FieldCodec):
    def __init__(self, inner: FieldCodec) -> None:
        self.inner = inner
        self.name = f"option<{inner.name}>"

    def write(self, writer: BcsWriter, value: Any) -> None:
        if value is None:
            writer.u8(0)
        else:
            writer.u8(1)
            self.inner.write(writer, value)

    def read(self, reader: BcsReader) -> Any:
        tag = reader.u8()
        if tag == 0:
            return None
        if tag != 1:
            raise MalformedPayload(f"invalid option tag {tag}")
        return self.inner.read(reader)

    def from_jsonable(self, value: Any) -> Any:
        return None if value is None else self.inner.from_jsonable(value)


class Enum(FieldCodec):
    """A u8-backed :class:`IntEnum`."""

    def __init__(self, enum_cls: type[IntEnum]) -> None:
        self.enum_cls = enum_cls
        self.name = enum_cls.__name__

    def write(self, writer: BcsWriter, value: Any) -> None:
        writer.u8(int(self.enum_cls(value)))

    def read(self, reader: BcsReader) -> IntEnum:
        raw = reader.u8()
        try:
            return self.enum_cls(raw)
        except ValueError as exc:
            raise MalformedPayload(f"invalid {self.name} value {raw}") from exc

    def from_jsonable(self, value: Any) -> IntEnum:
        try:
            if isinstance(value, str) and not value.isdigit():
                return self.enum_cls[value.upper().replace("-", "_")]
            return self.enum_cls(int(value))
        except (KeyError, ValueError) as exc:
            raise ValidationError(f"invalid {self.name} value {value!r}") from exc


class Record(FieldCodec):
    """A dataclass encoded as its fields in declaration order."""

    def __init__(self, cls: type, fields: Sequence[Tuple[str, FieldCodec]]) -> None:
        self.cls = cls
        self.fields = tuple(fields)
        self.name = cls.__name__

    def write(self, writer: BcsWriter, value: Any) -> None:
        for field_name, codec in self.fields:
            codec.write(writer, getattr(value, field_name))

    def read(self, reader: BcsReader) -> Any:
        values = {field_name: codec.read(reader) for field_name, codec in self.fields}
        try:
            return self.cls(**values)
        except ValidationError as exc:
            raise MalformedPayload(f"decoded {self.name} is invalid: {exc}") from exc

    def from_jsonable(self, value: Any) -> Any:
        if not isinstance(value, dict):
            raise ValidationError(f"{self.name} must be an object, got {value!r}")
        return build_record(self.cls, self.fields, value)


# Action payloads --------------------------------------------------------


def _resolve_catalog(catalog: "ActionCatalog | None") -> "ActionCatalog":
    if catalog is not None:
        return catalog
    from .catalog import default_catalog

    return default_catalog()


def encode_fields(action: "Action", discriminant: int) -> bytes:
    """Serialize ``action`` with an explicit discriminant (used by the catalog)."""

    writer = BcsWriter()
    writer.u8(CODEC_VERSION)
    writer.uleb128(discriminant)
    for field_name, codec in type(action).FIELDS:
        try:
            codec.write(writer, getattr(action, field_name))
        except (ValidationError, TypeError, ValueError, AttributeError) as exc:
            raise CodecError(
                f"cannot encode {action.kind}.{field_name} as {codec.name}: {exc}"
            ) from exc
    return writer.getvalue()


def decode_fields(action_cls: type, discriminant: int, data: bytes) -> "Action":
    """Parse ``data`` as ``action_cls``; the header must carry ``discriminant``.

    The decoded action must pass its own structural checks, so a payload
    whose paired vectors disagree in length is rejected rather than truncated.
    """

    reader = BcsReader(data)
    _read_header(reader, expected=discriminant)
    values = {field_name: codec.read(reader) for field_name, codec in action_cls.FIELDS}
    reader.finish()
    try:
        action = action_cls(**values)
        action.validate()
    except (ValidationError, TypeError, ValueError) as exc:
        raise MalformedPayload(f"decoded {action_cls.kind} payload is invalid: {exc}") from exc
    return action


def _read_header(reader: BcsReader, expected: int | None = None) -> int:
    version = reader.u8()
    if version not in SUPPORTED_VERSIONS:
        raise MalformedPayload(f"unsupported codec version {version}")
    discriminant = reader.uleb128()
    if expected is not None and discriminant != expected:
        raise MalformedPayload(
            f"payload discriminant {discriminant} does not match expected {expected}"
        )
    return discriminant


def encode_action(action: "Action", catalog: "ActionCatalog | None" = None) -> bytes:
    """Encode ``action`` using the codec registered for its kind."""

    spec = _resolve_catalog(catalog).lookup(action.kind)
    data = spec.encode(action)
    logger.debug("Encoded %s action into %d bytes", action.kind, len(data))
    return data


def decode_action(kind: str, data: bytes, catalog: "ActionCatalog | None" = None) -> "Action":
    """Decode ``data`` as an action of ``kind``."""

    spec = _resolve_catalog(catalog).lookup(kind)
    return spec.decode(data)


def peek_kind(data: bytes, catalog: "ActionCatalog | None" = None) -> str:
    """Return the kind named by the payload header without decoding the fields."""

    reader = BcsReader(data)
    discriminant = _read_header(reader)
    return _resolve_catalog(catalog).kind_for_discriminant(discriminant)


def decode_any(data: bytes, catalog: "ActionCatalog | None" = None) -> "Action":
    """Decode a payload whose kind is only known from its header."""

    resolved = _resolve_catalog(catalog)
    return decode_action(peek_kind(data, resolved), data, resolved)


def build_record(cls: type, fields: Sequence[Tuple[str, FieldCodec]], data: dict) -> Any:
    """Instantiate ``cls`` from a JSON mapping shaped like its field schema."""

    known = {field_name for field_name, _ in fields}
    unknown = set(data) - known - {"kind"}
    if unknown:
        raise ValidationError(f"unknown {cls.__name__} fields: {', '.join(sorted(unknown))}")
    values = {
        field_name: codec.from_jsonable(data[field_name])
        for field_name, codec in fields
        if field_name in data
    }
    try:
        return cls(**values)
    except TypeError as exc:
        raise ValidationError(f"cannot build {cls.__name__}: {exc}") from exc
