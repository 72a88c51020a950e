"""
Raydium CLMM wire codec

Accounts, instruction payloads and events share one layout: an 8-byte Anchor
discriminator followed by packed little-endian fields (Borsh). Record types
are frozen dataclasses whose fields carry their wire type in metadata:

    @DECODE_TABLE.register("account")
    @dataclass(frozen=True)
    class AmmConfig:
        bump: int = wire(U8)
        ...

Registering a record adds one entry to the discriminator-keyed table; no
existing decode path changes.
"""

import dataclasses
import logging
import struct
from typing import Any, Dict, List, Optional, Tuple, Type, TypeVar

from solders.pubkey import Pubkey

from .constants import anchor_discriminator
from ..errors import DecodeError, TruncatedDataError, UnknownDiscriminatorError


logger = logging.getLogger(__name__)

DISCRIMINATOR_SIZE = 8

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Field types
# ---------------------------------------------------------------------------

class _Reader:
    """Cursor over a byte buffer that reports truncation against a record name"""

    def __init__(self, data: bytes, record: str, offset: int = 0):
        self.data = data
        self.record = record
        self.offset = offset

    def take(self, size: int) -> bytes:
        end = self.offset + size
        if end > len(self.data):
            raise TruncatedDataError.short(self.record, end, len(self.data))
        chunk = self.data[self.offset:end]
        self.offset = end
        return chunk


class FieldType:
    """Wire type of one field; size is None for variable-length types"""

    size: Optional[int] = None

    def pack(self, value: Any, out: bytearray) -> None:
        raise NotImplementedError

    def unpack(self, reader: _Reader) -> Any:
        raise NotImplementedError


class _Struct(FieldType):
    def __init__(self, fmt: str, name: str):
        self._struct = struct.Struct("<" + fmt)
        self.size = self._struct.size
        self.name = name

    def pack(self, value, out):
        try:
            out += self._struct.pack(value)
        except struct.error as e:
            raise DecodeError.invalid(f"Cannot encode {value!r} as {self.name}: {e}")

    def unpack(self, reader):
        return self._struct.unpack(reader.take(self.size))[0]

    def __repr__(self):
        return self.name


class _Int128(FieldType):
    size = 16

    def __init__(self, signed: bool):
        self.signed = signed

    def pack(self, value, out):
        try:
            out += int(value).to_bytes(16, "little", signed=self.signed)
        except OverflowError as e:
            raise DecodeError.invalid(f"Cannot encode {value!r} as 128-bit integer: {e}")

    def unpack(self, reader):
        return int.from_bytes(reader.take(16), "little", signed=self.signed)

    def __repr__(self):
        return "i128" if self.signed else "u128"


class _Pubkey(FieldType):
    size = 32

    def pack(self, value, out):
        out += bytes(value)

    def unpack(self, reader):
        return Pubkey.from_bytes(reader.take(32))

    def __repr__(self):
        return "pubkey"


class Bytes(FieldType):
    """Fixed-size raw bytes (padding or opaque blobs)"""

    def __init__(self, size: int):
        self.size = size

    def pack(self, value, out):
        value = bytes(value)
        if len(value) != self.size:
            raise DecodeError.invalid(f"Expected {self.size} bytes, got {len(value)}")
        out += value

    def unpack(self, reader):
        return reader.take(self.size)

    def __repr__(self):
        return f"bytes[{self.size}]"


class Array(FieldType):
    """Fixed-length array, decoded as a tuple"""

    def __init__(self, inner: FieldType, length: int):
        self.inner = inner
        self.length = length
        self.size = None if inner.size is None else inner.size * length

    def pack(self, value, out):
        if len(value) != self.length:
            raise DecodeError.invalid(f"Expected {self.length} elements of {self.inner!r}, got {len(value)}")
        for item in value:
            self.inner.pack(item, out)

    def unpack(self, reader):
        return tuple(self.inner.unpack(reader) for _ in range(self.length))

    def __repr__(self):
        return f"[{self.inner!r}; {self.length}]"


class Vec(FieldType):
    """Borsh vector: u32 length prefix, decoded as a tuple"""

    def __init__(self, inner: FieldType):
        self.inner = inner

    def pack(self, value, out):
        out += struct.pack("<I", len(value))
        for item in value:
            self.inner.pack(item, out)

    def unpack(self, reader):
        (length,) = struct.unpack("<I", reader.take(4))
        return tuple(self.inner.unpack(reader) for _ in range(length))


class Option(FieldType):
    """Borsh option: one tag byte then the value when present"""

    def __init__(self, inner: FieldType):
        self.inner = inner

    def pack(self, value, out):
        if value is None:
            out.append(0)
        else:
            out.append(1)
            self.inner.pack(value, out)

    def unpack(self, reader):
        tag = reader.take(1)[0]
        if tag == 0:
            return None
        if tag != 1:
            raise DecodeError.invalid(f"{reader.record}: invalid option tag {tag}", reader.record)
        return self.inner.unpack(reader)


class COption(FieldType):
    """SPL Token option: u32 tag then the value, zero-filled when absent (fixed size)"""

    def __init__(self, inner: FieldType):
        self.inner = inner
        self.size = 4 + inner.size

    def pack(self, value, out):
        if value is None:
            out += bytes(self.size)
        else:
            out += struct.pack("<I", 1)
            self.inner.pack(value, out)

    def unpack(self, reader):
        (tag,) = struct.unpack("<I", reader.take(4))
        if tag == 0:
            reader.take(self.inner.size)
            return None
        if tag != 1:
            raise DecodeError.invalid(f"{reader.record}: invalid option tag {tag}", reader.record)
        return self.inner.unpack(reader)

    def __repr__(self):
        return f"COption<{self.inner!r}>"


class Nested(FieldType):
    """An embedded record (no discriminator)"""

    def __init__(self, record_type: type):
        self.record_type = record_type
        self.size = body_size(record_type)

    def pack(self, value, out):
        _pack_fields(value, out)

    def unpack(self, reader):
        return _unpack_fields(self.record_type, reader)

    def __repr__(self):
        return self.record_type.__name__


U8 = _Struct("B", "u8")
U16 = _Struct("H", "u16")
U32 = _Struct("I", "u32")
U64 = _Struct("Q", "u64")
I32 = _Struct("i", "i32")
I64 = _Struct("q", "i64")
BOOL = _Struct("?", "bool")
U128 = _Int128(signed=False)
I128 = _Int128(signed=True)
PUBKEY = _Pubkey()


def wire(field_type: FieldType, **kwargs):
    """Declare a dataclass field together with its wire type"""
    return dataclasses.field(metadata={"wire": field_type}, **kwargs)


# ---------------------------------------------------------------------------
# Record packing
# ---------------------------------------------------------------------------

def _wire_fields(record_type: type) -> List[Tuple[str, FieldType]]:
    cached = record_type.__dict__.get("_wire_fields")
    if cached is None:
        cached = [(f.name, f.metadata["wire"]) for f in dataclasses.fields(record_type) if "wire" in f.metadata]
        setattr(record_type, "_wire_fields", cached)
    return cached


def body_size(record_type: type) -> Optional[int]:
    """Fixed byte size of a record after the discriminator, or None if variable"""
    total = 0
    for _, field_type in _wire_fields(record_type):
        if field_type.size is None:
            return None
        total += field_type.size
    return total


def _pack_fields(record: Any, out: bytearray) -> None:
    for name, field_type in _wire_fields(type(record)):
        field_type.pack(getattr(record, name), out)


def _unpack_fields(record_type: Type[T], reader: _Reader) -> T:
    values = {name: field_type.unpack(reader) for name, field_type in _wire_fields(record_type)}
    return record_type(**values)


# ---------------------------------------------------------------------------
# Decode table
# ---------------------------------------------------------------------------

@dataclasses.dataclass(frozen=True)
class TableEntry:
    kind: str
    name: str
    record_type: type
    discriminator: bytes


class DecodeTable:
    """
    Discriminator-keyed registry of account, instruction and event records.

    Anchor hashes each kind under its own namespace, so one table holds all
    three without collisions.
    """

    NAMESPACES = {"account": "account", "instruction": "global", "event": "event"}

    def __init__(self):
        self._by_discriminator: Dict[bytes, TableEntry] = {}
        self._by_type: Dict[type, TableEntry] = {}

    def register(self, kind: str, name: Optional[str] = None):
        """
        Class decorator adding a record type to the table.

        Args:
            kind: "account", "instruction" or "event"
            name: Anchor name (defaults to the class name; instructions use snake_case)
        """
        if kind not in self.NAMESPACES:
            raise ValueError(f"Unknown record kind: {kind}")

        def decorator(record_type: type) -> type:
            anchor_name = name or record_type.__name__
            discriminator = anchor_discriminator(self.NAMESPACES[kind], anchor_name)
            existing = self._by_discriminator.get(discriminator)
            if existing is not None and existing.record_type is not record_type:
                raise ValueError(
                    f"Discriminator {discriminator.hex()} already registered for {existing.name}"
                )
            entry = TableEntry(kind, anchor_name, record_type, discriminator)
            self._by_discriminator[discriminator] = entry
            self._by_type[record_type] = entry
            record_type.DISCRIMINATOR = discriminator
            return record_type

        return decorator

    def entry_for(self, record_type: type) -> TableEntry:
        try:
            return self._by_type[record_type]
        except KeyError:
            raise ValueError(f"{record_type.__name__} is not a registered record type")

    def lookup(self, discriminator: bytes, kind: Optional[str] = None) -> TableEntry:
        """
        Raises:
            UnknownDiscriminatorError: If nothing (of the given kind) is registered for the tag
        """
        entry = self._by_discriminator.get(bytes(discriminator))
        if entry is None or (kind is not None and entry.kind != kind):
            raise UnknownDiscriminatorError.unknown(kind or "record", bytes(discriminator))
        return entry

    def entries(self, kind: Optional[str] = None) -> List[TableEntry]:
        return [e for e in self._by_discriminator.values() if kind is None or e.kind == kind]

    def __contains__(self, record_type: type) -> bool:
        return record_type in self._by_type

    def __len__(self) -> int:
        return len(self._by_discriminator)


DECODE_TABLE = DecodeTable()


def encode(record: Any) -> bytes:
    """Discriminator followed by the packed fields"""
    entry = DECODE_TABLE.entry_for(type(record))
    out = bytearray(entry.discriminator)
    _pack_fields(record, out)
    return bytes(out)


def decode(record_type: Type[T], raw: bytes) -> T:
    """
    Decode raw bytes as the given record type.

    Trailing bytes past the fixed layout are ignored.

    Raises:
        TruncatedDataError: If raw is shorter than the record layout
        UnknownDiscriminatorError: If the tag is not record_type's discriminator
    """
    entry = DECODE_TABLE.entry_for(record_type)
    raw = bytes(raw)
    if len(raw) < DISCRIMINATOR_SIZE:
        raise TruncatedDataError.short(entry.name, DISCRIMINATOR_SIZE, len(raw))

    tag = raw[:DISCRIMINATOR_SIZE]
    if tag != entry.discriminator:
        raise UnknownDiscriminatorError.mismatch(entry.name, entry.discriminator, tag)

    size = body_size(record_type)
    if size is not None and len(raw) < DISCRIMINATOR_SIZE + size:
        raise TruncatedDataError.short(entry.name, DISCRIMINATOR_SIZE + size, len(raw))

    return _unpack_fields(record_type, _Reader(raw, entry.name, DISCRIMINATOR_SIZE))


def decode_any(raw: bytes, kind: Optional[str] = None) -> Any:
    """
    Decode by discriminator alone.

    Raises:
        UnknownDiscriminatorError: If no record (of the given kind) matches the tag
        TruncatedDataError: If raw is shorter than the matched layout
    """
    raw = bytes(raw)
    if len(raw) < DISCRIMINATOR_SIZE:
        raise TruncatedDataError.short(kind or "record", DISCRIMINATOR_SIZE, len(raw))
    entry = DECODE_TABLE.lookup(raw[:DISCRIMINATOR_SIZE], kind)
    logger.debug(f"Decoding {len(raw)} bytes as {entry.kind} {entry.name}")
    return decode(entry.record_type, raw)


def encode_layout(record: Any) -> bytes:
    """Packed fields of a record that has no discriminator (SPL Token layouts)"""
    out = bytearray()
    _pack_fields(record, out)
    return bytes(out)


def decode_layout(record_type: Type[T], raw: bytes) -> T:
    """
    Decode a discriminator-less fixed layout. Trailing bytes (Token-2022
    extensions) are ignored.

    Raises:
        TruncatedDataError: If raw is shorter than the layout
    """
    raw = bytes(raw)
    size = body_size(record_type)
    if size is not None and len(raw) < size:
        raise TruncatedDataError.short(record_type.__name__, size, len(raw))
    return _unpack_fields(record_type, _Reader(raw, record_type.__name__))


def account_size(record_type: type) -> int:
    """Total on-chain size of a fixed-layout account, discriminator included"""
    size = body_size(record_type)
    if size is None:
        raise ValueError(f"{record_type.__name__} has a variable-length layout")
    return DISCRIMINATOR_SIZE + size


def to_dict(record: Any) -> Dict[str, Any]:
    """
    Plain JSON-friendly view of a record (pubkeys as base58, bytes as hex)
    """
    def convert(value):
        if isinstance(value, Pubkey):
            return str(value)
        if isinstance(value, bytes):
            return value.hex()
        if isinstance(value, (tuple, list)):
            return [convert(v) for v in value]
        if dataclasses.is_dataclass(value):
            return to_dict(value)
        return value

    return {f.name: convert(getattr(record, f.name)) for f in dataclasses.fields(record)}
