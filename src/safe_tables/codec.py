"""Binary encoding of a whole database, with a SHA-256 integrity trailer.

File layout (all integers little-endian):

    magic "SAFN" | uint16 version | uint16 flags
    database name                              uint32 length + UTF-8
    uint32 table count
      table name                               uint32 length + UTF-8
      uint32 column count
        column name, kind tag(s), uint8 nullable
      uint64 row count
        per column: kind tag(s) + payload      (tag 0x00 = null)
    32-byte SHA-256 of every byte above

Every value carries its own kind tag so decoding never needs look-ahead.
Fixed-width kinds are written with their struct format; strings, blobs and
arrays are uint32 length-prefixed.
"""

from __future__ import annotations

import hashlib
import io
import struct
from dataclasses import dataclass, field
from typing import Any, BinaryIO, Iterable

from safe_tables.errors import CorruptFileError, SafeTablesError, SchemaViolationError
from safe_tables.row import Row
from safe_tables.schema import Column, Schema
from safe_tables.table import Table
from safe_tables.types import (
    ARRAY_TAG,
    TYPEDEFS_BY_TAG,
    ArrayTypeDef,
    Kind,
    TypeDef,
    Value,
)

MAGIC = b"SAFN"
VERSION = 1
HEADER = struct.Struct("<4sHH")
DIGEST_SIZE = hashlib.sha256().digest_size
NULL_TAG = 0x00

# Largest valid Unicode code point
_MAX_CODE_POINT = 0x10FFFF


def digest(payload: bytes) -> bytes:
    """Return the integrity digest of a payload."""
    return hashlib.sha256(payload).digest()


class Encoder:
    """Writes primitives and values to a binary stream."""

    def __init__(self, stream: BinaryIO | None = None) -> None:
        self.stream = stream if stream is not None else io.BytesIO()

    def write_u8(self, value: int) -> None:
        self.stream.write(struct.pack("<B", value))

    def write_u16(self, value: int) -> None:
        self.stream.write(struct.pack("<H", value))

    def write_u32(self, value: int) -> None:
        self.stream.write(struct.pack("<I", value))

    def write_u64(self, value: int) -> None:
        self.stream.write(struct.pack("<Q", value))

    def write_bytes(self, data: bytes) -> None:
        """Write a uint32 length prefix followed by the raw bytes."""
        self.write_u32(len(data))
        self.stream.write(data)

    def write_str(self, text: str) -> None:
        self.write_bytes(text.encode("utf-8", "surrogatepass"))

    def write_kind(self, kind: Kind) -> None:
        """Write the tag byte(s) naming a kind."""
        if isinstance(kind, ArrayTypeDef):
            self.write_u8(ARRAY_TAG)
            self.write_u8(kind.element.tag)
        else:
            self.write_u8(kind.tag)

    def write_scalar(self, kind: TypeDef, data: Any) -> None:
        """Write the payload of a scalar value (no tag)."""
        if kind is TypeDef.CHAR:
            self.write_u32(ord(data))
        elif kind is TypeDef.STRING:
            self.write_str(data)
        elif kind is TypeDef.BYTES:
            self.write_bytes(data)
        else:
            self.stream.write(struct.pack(kind.struct_format, data))  # type: ignore[arg-type]

    def write_value(self, value: Value | None) -> None:
        """Write a tagged value; None is written as the null tag."""
        if value is None:
            self.write_u8(NULL_TAG)
            return
        self.write_kind(value.kind)
        if isinstance(value.kind, ArrayTypeDef):
            self.write_u32(len(value.data))
            for item in value.data:
                self.write_scalar(value.kind.element, item)
        else:
            self.write_scalar(value.kind, value.data)

    def write_schema(self, schema: Schema) -> None:
        self.write_u32(len(schema))
        for column in schema.columns:
            self.write_str(column.name)
            self.write_kind(column.type_def)
            self.write_u8(1 if column.nullable else 0)

    def write_table(self, table: Table) -> None:
        """Write a table's name, schema, then its rows in order."""
        self.write_str(table.name)
        self.write_schema(table.schema)
        rows = table.snapshot()
        self.write_u64(len(rows))
        for row in rows:
            for value in row:
                self.write_value(value)

    def getvalue(self) -> bytes:
        return self.stream.getvalue()  # type: ignore[attr-defined]


def encode_payload(name: str, tables: Iterable[Table]) -> bytes:
    """Encode a database's name and tables, without the trailer."""
    tables = list(tables)
    encoder = Encoder()
    encoder.stream.write(HEADER.pack(MAGIC, VERSION, 0))
    encoder.write_str(name)
    encoder.write_u32(len(tables))
    for table in tables:
        encoder.write_table(table)
    return encoder.getvalue()


def encode(name: str, tables: Iterable[Table]) -> bytes:
    """Encode a database and append its integrity trailer."""
    payload = encode_payload(name, tables)
    return payload + digest(payload)


class Decoder:
    """Reads primitives and values from a bounded byte buffer."""

    def __init__(self, data: bytes, start: int = 0, end: int | None = None) -> None:
        self._data = memoryview(data)
        self.offset = start
        self.end = len(data) if end is None else end

    @property
    def remaining(self) -> int:
        return self.end - self.offset

    def _take(self, size: int) -> memoryview:
        if size > self.remaining:
            raise CorruptFileError(
                f"Unexpected end of data: need {size} bytes, {self.remaining} remain", self.offset
            )
        chunk = self._data[self.offset : self.offset + size]
        self.offset += size
        return chunk

    def _unpack(self, fmt: str) -> Any:
        return struct.unpack(fmt, self._take(struct.calcsize(fmt)))[0]

    def read_u8(self) -> int:
        return self._unpack("<B")

    def read_u16(self) -> int:
        return self._unpack("<H")

    def read_u32(self) -> int:
        return self._unpack("<I")

    def read_u64(self) -> int:
        return self._unpack("<Q")

    def read_bytes(self) -> bytes:
        """Read a uint32 length prefix and that many raw bytes."""
        start = self.offset
        length = self.read_u32()
        if length > self.remaining:
            raise CorruptFileError(
                f"Length prefix {length} exceeds the {self.remaining} remaining bytes", start
            )
        return bytes(self._take(length))

    def read_str(self) -> str:
        start = self.offset
        raw = self.read_bytes()
        try:
            return raw.decode("utf-8", "surrogatepass")
        except UnicodeDecodeError as e:
            raise CorruptFileError(f"Invalid UTF-8 string: {e.reason}", start) from None

    def read_count(self, min_item_size: int, what: str) -> int:
        """Read a uint32 count and check the items could fit in what remains."""
        start = self.offset
        count = self.read_u32()
        if count * min_item_size > self.remaining:
            raise CorruptFileError(f"{what} count {count} exceeds the remaining data", start)
        return count

    def _scalar_kind(self, tag: int, start: int) -> TypeDef:
        kind = TYPEDEFS_BY_TAG.get(tag)
        if kind is None:
            raise CorruptFileError(f"Unknown type tag 0x{tag:02x}", start)
        return kind

    def read_kind_after_tag(self, tag: int, start: int) -> Kind:
        if tag == ARRAY_TAG:
            element_start = self.offset
            return ArrayTypeDef(self._scalar_kind(self.read_u8(), element_start))
        return self._scalar_kind(tag, start)

    def read_kind(self) -> Kind:
        start = self.offset
        return self.read_kind_after_tag(self.read_u8(), start)

    def read_scalar(self, kind: TypeDef) -> Any:
        """Read the payload of a scalar value."""
        start = self.offset
        if kind is TypeDef.BOOL:
            raw = self.read_u8()
            if raw > 1:
                raise CorruptFileError(f"Invalid bool byte 0x{raw:02x}", start)
            return raw == 1
        if kind is TypeDef.CHAR:
            code_point = self.read_u32()
            if code_point > _MAX_CODE_POINT:
                raise CorruptFileError(f"Invalid code point 0x{code_point:x}", start)
            return chr(code_point)
        if kind is TypeDef.STRING:
            return self.read_str()
        if kind is TypeDef.BYTES:
            return self.read_bytes()
        return self._unpack(kind.struct_format)  # type: ignore[arg-type]

    def read_value(self) -> Value | None:
        """Read a tagged value; the null tag yields None."""
        start = self.offset
        tag = self.read_u8()
        if tag == NULL_TAG:
            return None
        kind = self.read_kind_after_tag(tag, start)
        if isinstance(kind, ArrayTypeDef):
            count = self.read_count(1, "Array element")
            data: Any = [self.read_scalar(kind.element) for _ in range(count)]
        else:
            data = self.read_scalar(kind)
        return Value(kind, data)

    def read_schema(self) -> Schema:
        start = self.offset
        count = self.read_count(6, "Column")
        columns = []
        for _ in range(count):
            column_start = self.offset
            name = self.read_str()
            kind = self.read_kind()
            nullable = self.read_u8()
            if nullable > 1:
                raise CorruptFileError(f"Invalid nullable flag 0x{nullable:02x}", self.offset - 1)
            try:
                columns.append(Column(name, kind, nullable=bool(nullable)))
            except ValueError as e:
                raise CorruptFileError(f"Invalid column: {e}", column_start) from None
        try:
            return Schema(columns)
        except SafeTablesError as e:
            raise CorruptFileError(f"Invalid schema: {e}", start) from None

    def read_table(self) -> Table:
        """Read a table: name, schema, then rows validated against the schema."""
        start = self.offset
        name = self.read_str()
        if not name:
            raise CorruptFileError("Empty table name", start)
        schema = self.read_schema()
        table = Table(name, schema)

        rows_start = self.offset
        row_count = self.read_u64()
        # Every value is at least one tag byte
        if row_count * len(schema) > self.remaining:
            raise CorruptFileError(f"Row count {row_count} exceeds the remaining data", rows_start)
        for _ in range(row_count):
            row = Row([self.read_value() for _ in range(len(schema))])
            try:
                table.insert_row(row)
            except SchemaViolationError as e:
                raise SchemaViolationError(
                    f"Decoded row {table.count} violates its schema: {e}", table=name
                ) from None
        return table


@dataclass
class DecodedDatabase:
    """Everything read back from an encoded database."""

    name: str
    tables: list[Table] = field(default_factory=list)
    payload_digest: bytes = b""
    trailer_digest: bytes = b""

    @property
    def intact(self) -> bool:
        """Whether the payload digest matches the stored trailer."""
        return self.payload_digest == self.trailer_digest


def split_trailer(data: bytes) -> tuple[bytes, bytes]:
    """Split encoded bytes into (payload, trailer digest)."""
    if len(data) < HEADER.size + DIGEST_SIZE:
        raise CorruptFileError(
            f"Data is {len(data)} bytes, shorter than header and checksum ({HEADER.size + DIGEST_SIZE})"
        )
    return data[:-DIGEST_SIZE], data[-DIGEST_SIZE:]


def check_header(data: bytes) -> None:
    """Validate magic, version and the reserved flags."""
    magic, version, flags = HEADER.unpack_from(data, 0)
    if magic != MAGIC:
        raise CorruptFileError(f"Bad magic bytes {bytes(magic)!r}", 0)
    if version != VERSION:
        raise CorruptFileError(f"Unsupported format version {version}", 4)
    if flags != 0:
        raise CorruptFileError(f"Unsupported header flags 0x{flags:04x}", 6)


def decode(data: bytes) -> DecodedDatabase:
    """Decode a database from bytes produced by encode().

    The checksum is computed and returned, not enforced; callers decide what
    a mismatch means.

    Raises:
        CorruptFileError: If the bytes are not a well-formed database.
        SchemaViolationError: If a decoded row does not match its table's schema.
    """
    payload, trailer = split_trailer(data)
    check_header(payload)

    decoder = Decoder(payload, start=HEADER.size)
    name = decoder.read_str()
    table_count = decoder.read_count(1, "Table")
    tables: list[Table] = []
    seen: set[str] = set()
    for _ in range(table_count):
        start = decoder.offset
        table = decoder.read_table()
        if table.name in seen:
            raise CorruptFileError(f"Duplicate table '{table.name}'", start)
        seen.add(table.name)
        tables.append(table)

    if decoder.remaining:
        raise CorruptFileError(f"{decoder.remaining} trailing bytes after last table", decoder.offset)

    return DecodedDatabase(
        name=name,
        tables=tables,
        payload_digest=digest(payload),
        trailer_digest=bytes(trailer),
    )


def verify(data: bytes) -> bool:
    """Check encoded bytes against their trailer without decoding the body."""
    try:
        payload, trailer = split_trailer(data)
    except CorruptFileError:
        return False
    return digest(payload) == trailer
