"""Canonical little-endian binary primitives shared by the codec and resolver.

The layout follows the ledger's canonical serialization: fixed width
little-endian integers, one byte booleans, ULEB128 length prefixes for
strings, byte vectors and sequences, and 32 byte raw addresses.
"""

from __future__ import annotations

from typing import Callable, List, Sequence, TypeVar

from .errors import MalformedPayload, ValidationError

T = TypeVar("T")

ADDRESS_LENGTH = 32
U64_MAX = 2**64 - 1


def normalize_address(value: str) -> str:
    """Return ``value`` as a lowercase, zero padded ``0x`` address."""

    if not isinstance(value, str):
        raise ValidationError(f"address must be a string, got {type(value).__name__}")
    raw = value.strip().lower()
    if raw.startswith("0x"):
        raw = raw[2:]
    if not raw or len(raw) > ADDRESS_LENGTH * 2:
        raise ValidationError(f"invalid address: {value}")
    try:
        int(raw, 16)
    except ValueError as exc:
        raise ValidationError(f"invalid address: {value}") from exc
    return "0x" + raw.rjust(ADDRESS_LENGTH * 2, "0")


def _split_type_params(params: str) -> List[str]:
    parts: List[str] = []
    depth = 0
    current = ""
    for char in params:
        if char == "<":
            depth += 1
        elif char == ">":
            depth -= 1
        if char == "," and depth == 0:
            parts.append(current)
            current = ""
            continue
        current += char
    if current.strip():
        parts.append(current)
    return parts


def normalize_type_tag(tag: str) -> str:
    """Normalize the address components of a Move type tag.

    ``0x2::coin::Coin<0x2::sui::SUI>`` and its fully padded form compare equal
    once normalized. Primitive tags (``u64``, ``bool``) pass through.
    """

    if not isinstance(tag, str) or not tag.strip():
        raise ValidationError("type tag must be a non-empty string")
    tag = tag.strip()
    head, sep, rest = tag.partition("<")
    if sep:
        if not rest.endswith(">"):
            raise ValidationError(f"unbalanced type tag: {tag}")
        params = ", ".join(normalize_type_tag(p) for p in _split_type_params(rest[:-1]))
    pieces = head.split("::")
    if len(pieces) == 3:
        address, module, name = (piece.strip() for piece in pieces)
        if not module or not name:
            raise ValidationError(f"invalid type tag: {tag}")
        head = f"{normalize_address(address)}::{module}::{name}"
    elif len(pieces) != 1:
        raise ValidationError(f"invalid type tag: {tag}")
    if head == "vector" and not sep:
        raise ValidationError(f"vector type tag needs a parameter: {tag}")
    return f"{head}<{params}>" if sep else head


def type_params(tag: str) -> List[str]:
    """Return the top-level generic parameters of a type tag."""

    _, sep, rest = tag.partition("<")
    if not sep:
        return []
    return [p.strip() for p in _split_type_params(rest[:-1])]


def base_type(tag: str) -> str:
    """Return ``tag`` without generic parameters."""

    return tag.partition("<")[0].strip()


class BcsWriter:
    """Accumulate canonical bytes."""

    def __init__(self) -> None:
        self._buf = bytearray()

    def u8(self, value: int) -> "BcsWriter":
        if not 0 <= value <= 0xFF:
            raise ValidationError(f"u8 out of range: {value}")
        self._buf.append(value)
        return self

    def u64(self, value: int) -> "BcsWriter":
        if not isinstance(value, int) or isinstance(value, bool) or not 0 <= value <= U64_MAX:
            raise ValidationError(f"u64 out of range: {value!r}")
        self._buf += value.to_bytes(8, "little")
        return self

    def boolean(self, value: bool) -> "BcsWriter":
        self._buf.append(1 if value else 0)
        return self

    def uleb128(self, value: int) -> "BcsWriter":
        if value < 0:
            raise ValidationError(f"length cannot be negative: {value}")
        while True:
            byte = value & 0x7F
            value >>= 7
            if value:
                self._buf.append(byte | 0x80)
            else:
                self._buf.append(byte)
                return self

    def raw(self, data: bytes) -> "BcsWriter":
        self._buf += data
        return self

    def bytes_(self, data: bytes) -> "BcsWriter":
        self.uleb128(len(data))
        self._buf += data
        return self

    def string(self, value: str) -> "BcsWriter":
        return self.bytes_(value.encode("utf-8"))

    def address(self, value: str) -> "BcsWriter":
        self._buf += bytes.fromhex(normalize_address(value)[2:])
        return self

    def sequence(self, items: Sequence[T], write_item: Callable[["BcsWriter", T], object]) -> "BcsWriter":
        self.uleb128(len(items))
        for item in items:
            write_item(self, item)
        return self

    def getvalue(self) -> bytes:
        return bytes(self._buf)


class BcsReader:
    """Consume canonical bytes, raising :class:`MalformedPayload` on mismatch."""

    def __init__(self, data: bytes) -> None:
        self._data = bytes(data)
        self._pos = 0

    @property
    def remaining(self) -> int:
        return len(self._data) - self._pos

    def _take(self, size: int) -> bytes:
        if size < 0 or self._pos + size > len(self._data):
            raise MalformedPayload(
                f"payload truncated: needed {size} bytes at offset {self._pos}, "
                f"only {self.remaining} left"
            )
        chunk = self._data[self._pos : self._pos + size]
        self._pos += size
        return chunk

    def u8(self) -> int:
        return self._take(1)[0]

    def u64(self) -> int:
        return int.from_bytes(self._take(8), "little")

    def boolean(self) -> bool:
        value = self.u8()
        if value not in (0, 1):
            raise MalformedPayload(f"invalid bool byte {value} at offset {self._pos - 1}")
        return value == 1

    def uleb128(self) -> int:
        result = 0
        shift = 0
        while True:
            byte = self.u8()
            result |= (byte & 0x7F) << shift
            if not byte & 0x80:
                if byte == 0 and shift:
                    raise MalformedPayload("non-canonical uleb128 encoding")
                return result
            shift += 7
            if shift > 63:
                raise MalformedPayload("uleb128 length overflows u64")

    def bytes_(self) -> bytes:
        return self._take(self.uleb128())

    def string(self) -> str:
        raw = self.bytes_()
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedPayload(f"invalid UTF-8 string: {exc}") from exc

    def address(self) -> str:
        return "0x" + self._take(ADDRESS_LENGTH).hex()

    def sequence(self, read_item: Callable[["BcsReader"], T]) -> List[T]:
        count = self.uleb128()
        if count > self.remaining:
            # Every element takes at least one byte.
            raise MalformedPayload(f"sequence length {count} exceeds remaining payload")
        return [read_item(self) for _ in range(count)]

    def finish(self) -> None:
        if self.remaining:
            raise MalformedPayload(f"{self.remaining} trailing bytes after payload")
