"""Type definitions and tagged values for the safe_tables library."""

from __future__ import annotations

import math
import struct
from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

from safe_tables.errors import TypeMismatchError, ValueRangeError


class TypeDef(Enum):
    """Scalar kinds a column can hold."""

    BOOL = "bool"
    INT8 = "int8"
    INT16 = "int16"
    INT32 = "int32"
    INT64 = "int64"
    UINT8 = "uint8"
    UINT16 = "uint16"
    UINT32 = "uint32"
    UINT64 = "uint64"
    FLOAT32 = "float32"
    FLOAT64 = "float64"
    CHAR = "char"
    STRING = "string"
    BYTES = "bytes"

    @property
    def type_name(self) -> str:
        return self.value

    @property
    def tag(self) -> int:
        """Return the one-byte wire tag for this kind."""
        return _TAGS[self]

    @property
    def struct_format(self) -> str | None:
        """Return the struct format for fixed-width kinds, None for length-prefixed ones."""
        return _STRUCT_FORMATS.get(self)

    @property
    def size_bytes(self) -> int | None:
        """Return the payload size in bytes, or None for variable-length kinds."""
        fmt = self.struct_format
        if fmt is None:
            return None
        return struct.calcsize(fmt)

    @property
    def is_integer(self) -> bool:
        return self in INTEGER_RANGES

    @property
    def is_float(self) -> bool:
        return self in (TypeDef.FLOAT32, TypeDef.FLOAT64)

    @property
    def is_numeric(self) -> bool:
        return self.is_integer or self.is_float

    @property
    def is_text(self) -> bool:
        return self in (TypeDef.STRING, TypeDef.CHAR)

    @property
    def is_array(self) -> bool:
        return False


_TAGS: dict[TypeDef, int] = {
    TypeDef.BOOL: 0x01,
    TypeDef.INT8: 0x02,
    TypeDef.INT16: 0x03,
    TypeDef.INT32: 0x04,
    TypeDef.INT64: 0x05,
    TypeDef.UINT8: 0x06,
    TypeDef.UINT16: 0x07,
    TypeDef.UINT32: 0x08,
    TypeDef.UINT64: 0x09,
    TypeDef.FLOAT32: 0x0A,
    TypeDef.FLOAT64: 0x0B,
    TypeDef.CHAR: 0x0C,
    TypeDef.STRING: 0x0D,
    TypeDef.BYTES: 0x0E,
}

# Reverse lookup used by the decoder
TYPEDEFS_BY_TAG: dict[int, TypeDef] = {tag: td for td, tag in _TAGS.items()}

# Tag byte that introduces an array kind; the element tag follows it
ARRAY_TAG = 0x10

_STRUCT_FORMATS: dict[TypeDef, str] = {
    TypeDef.BOOL: "<?",
    TypeDef.INT8: "<b",
    TypeDef.INT16: "<h",
    TypeDef.INT32: "<i",
    TypeDef.INT64: "<q",
    TypeDef.UINT8: "<B",
    TypeDef.UINT16: "<H",
    TypeDef.UINT32: "<I",
    TypeDef.UINT64: "<Q",
    TypeDef.FLOAT32: "<f",
    TypeDef.FLOAT64: "<d",
    TypeDef.CHAR: "<I",  # Unicode code point
}

INTEGER_RANGES: dict[TypeDef, tuple[int, int]] = {
    TypeDef.INT8: (-(1 << 7), (1 << 7) - 1),
    TypeDef.INT16: (-(1 << 15), (1 << 15) - 1),
    TypeDef.INT32: (-(1 << 31), (1 << 31) - 1),
    TypeDef.INT64: (-(1 << 63), (1 << 63) - 1),
    TypeDef.UINT8: (0, (1 << 8) - 1),
    TypeDef.UINT16: (0, (1 << 16) - 1),
    TypeDef.UINT32: (0, (1 << 32) - 1),
    TypeDef.UINT64: (0, (1 << 64) - 1),
}

# Mapping from type name strings to TypeDef values
TYPE_NAMES: dict[str, TypeDef] = {td.value: td for td in TypeDef}


@dataclass(frozen=True)
class ArrayTypeDef:
    """A homogeneous list of one scalar kind (e.g. string[])."""

    element: TypeDef

    def __post_init__(self) -> None:
        if not isinstance(self.element, TypeDef):
            raise TypeError(f"Array element must be a scalar TypeDef, got {self.element!r}")

    @property
    def type_name(self) -> str:
        return f"{self.element.value}[]"

    @property
    def tag(self) -> int:
        return ARRAY_TAG

    @property
    def is_integer(self) -> bool:
        return False

    @property
    def is_float(self) -> bool:
        return False

    @property
    def is_numeric(self) -> bool:
        return False

    @property
    def is_text(self) -> bool:
        return False

    @property
    def is_array(self) -> bool:
        return True

    def __str__(self) -> str:
        return self.type_name


Kind = Union[TypeDef, ArrayTypeDef]


def array_of(element: TypeDef) -> ArrayTypeDef:
    """Return the array kind holding elements of the given scalar kind."""
    return ArrayTypeDef(element)


def parse_type_name(name: str) -> Kind:
    """Resolve a type name such as 'int64' or 'string[]' to its kind."""
    if name.endswith("[]"):
        return ArrayTypeDef(parse_type_name(name[:-2]))  # type: ignore[arg-type]
    try:
        return TYPE_NAMES[name]
    except KeyError:
        raise KeyError(f"Unknown type '{name}'") from None


def _round_float32(value: float) -> float:
    try:
        return struct.unpack("<f", struct.pack("<f", value))[0]
    except OverflowError:
        raise ValueRangeError(f"{value!r} is out of range for float32") from None


def _check_scalar(kind: TypeDef, data: Any) -> Any:
    """Validate a native value for a scalar kind and return its canonical form."""
    if kind is TypeDef.BOOL:
        if not isinstance(data, bool):
            raise TypeMismatchError(kind, type(data))
        return data

    if kind.is_integer:
        if isinstance(data, bool) or not isinstance(data, int):
            raise TypeMismatchError(kind, type(data))
        low, high = INTEGER_RANGES[kind]
        if data < low or data > high:
            raise ValueRangeError(f"{data} is out of range for {kind.value} [{low}, {high}]")
        return data

    if kind.is_float:
        if isinstance(data, bool) or not isinstance(data, float):
            raise TypeMismatchError(kind, type(data))
        if kind is TypeDef.FLOAT32 and math.isfinite(data):
            return _round_float32(data)
        return data

    if kind is TypeDef.CHAR:
        if not isinstance(data, str):
            raise TypeMismatchError(kind, type(data))
        if len(data) != 1:
            raise ValueRangeError(f"char must be a single character, got {data!r}")
        return data

    if kind is TypeDef.STRING:
        if not isinstance(data, str):
            raise TypeMismatchError(kind, type(data))
        return data

    if kind is TypeDef.BYTES:
        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise TypeMismatchError(kind, type(data))
        return bytes(data)

    raise TypeError(f"Unhandled kind: {kind!r}")


def check_native(kind: Kind, data: Any) -> Any:
    """Validate that a native Python value fits a kind.

    Returns the canonical stored form: bytes for blobs, float32-rounded floats,
    tuples for arrays.

    Raises:
        TypeMismatchError: The Python type does not belong to the kind.
        ValueRangeError: The value does not fit (integer width, char length, ...).
    """
    if isinstance(kind, ArrayTypeDef):
        if not isinstance(data, (list, tuple)):
            raise TypeMismatchError(kind, type(data))
        return tuple(_check_scalar(kind.element, item) for item in data)
    return _check_scalar(kind, data)


def infer_kind(native: Any) -> Kind:
    """Infer the kind a native Python value is tagged with by default."""
    if isinstance(native, bool):
        return TypeDef.BOOL
    if isinstance(native, int):
        return TypeDef.INT64
    if isinstance(native, float):
        return TypeDef.FLOAT64
    if isinstance(native, str):
        return TypeDef.STRING
    if isinstance(native, (bytes, bytearray, memoryview)):
        return TypeDef.BYTES
    if isinstance(native, (list, tuple)):
        if not native:
            raise TypeMismatchError("a non-empty list (cannot infer element kind)", "empty list")
        element = infer_kind(native[0])
        if isinstance(element, ArrayTypeDef):
            raise TypeMismatchError("a list of scalars", "nested list")
        return ArrayTypeDef(element)
    raise TypeMismatchError("a supported scalar", type(native))


# Python types accepted by typed extraction, and the kinds each one matches
_PYTHON_TYPE_MATCHERS: dict[type, Any] = {
    bool: lambda k: k is TypeDef.BOOL,
    int: lambda k: k.is_integer,
    float: lambda k: k.is_float,
    str: lambda k: k.is_text,
    bytes: lambda k: k is TypeDef.BYTES,
    list: lambda k: k.is_array,
}


def kind_matches(kind: Kind, requested: Any) -> bool:
    """Return whether a value of `kind` may be extracted as `requested`.

    `requested` is either a kind (exact match) or one of the Python types
    bool, int, float, str, bytes, list.
    """
    if isinstance(requested, (TypeDef, ArrayTypeDef)):
        return kind == requested
    matcher = _PYTHON_TYPE_MATCHERS.get(requested)
    if matcher is None:
        raise TypeMismatchError("a kind or one of bool, int, float, str, bytes, list", requested)
    return matcher(kind)


def require_kind(kind: Kind, requested: Any, column: str | None = None) -> None:
    """Raise TypeMismatchError unless `kind` can be extracted as `requested`."""
    if not kind_matches(kind, requested):
        raise TypeMismatchError(requested, kind, column=column)


@dataclass(frozen=True, eq=False)
class Value:
    """A native value tagged with its kind.

    The payload is validated against the kind on construction; a Value can
    never hold data its kind does not describe.
    """

    kind: Kind
    data: Any

    def __post_init__(self) -> None:
        if not isinstance(self.kind, (TypeDef, ArrayTypeDef)):
            raise TypeError(f"Value kind must be a TypeDef or ArrayTypeDef, got {self.kind!r}")
        object.__setattr__(self, "data", check_native(self.kind, self.data))

    @classmethod
    def of(cls, native: Any) -> Value:
        """Tag a native value with its default kind (int -> int64, float -> float64, ...)."""
        if isinstance(native, Value):
            return native
        return cls(infer_kind(native), native)

    @classmethod
    def boolean(cls, data: bool) -> Value:
        return cls(TypeDef.BOOL, data)

    @classmethod
    def int8(cls, data: int) -> Value:
        return cls(TypeDef.INT8, data)

    @classmethod
    def int16(cls, data: int) -> Value:
        return cls(TypeDef.INT16, data)

    @classmethod
    def int32(cls, data: int) -> Value:
        return cls(TypeDef.INT32, data)

    @classmethod
    def int64(cls, data: int) -> Value:
        return cls(TypeDef.INT64, data)

    @classmethod
    def uint8(cls, data: int) -> Value:
        return cls(TypeDef.UINT8, data)

    @classmethod
    def uint16(cls, data: int) -> Value:
        return cls(TypeDef.UINT16, data)

    @classmethod
    def uint32(cls, data: int) -> Value:
        return cls(TypeDef.UINT32, data)

    @classmethod
    def uint64(cls, data: int) -> Value:
        return cls(TypeDef.UINT64, data)

    @classmethod
    def float32(cls, data: float) -> Value:
        return cls(TypeDef.FLOAT32, data)

    @classmethod
    def float64(cls, data: float) -> Value:
        return cls(TypeDef.FLOAT64, data)

    @classmethod
    def char(cls, data: str) -> Value:
        return cls(TypeDef.CHAR, data)

    @classmethod
    def string(cls, data: str) -> Value:
        return cls(TypeDef.STRING, data)

    @classmethod
    def blob(cls, data: bytes) -> Value:
        return cls(TypeDef.BYTES, data)

    @classmethod
    def array(cls, element: TypeDef, items: list[Any]) -> Value:
        return cls(ArrayTypeDef(element), items)

    def get(self, requested: Any) -> Any:
        """Return the payload if this value's kind matches `requested`.

        Raises:
            TypeMismatchError: If the kinds differ.
        """
        require_kind(self.kind, requested)
        if isinstance(self.kind, ArrayTypeDef):
            return list(self.data)
        return self.data

    def _identity(self) -> Any:
        """Return the payload in the form equality and hashing compare.

        Floats compare by their packed bytes, so NaN equals itself and
        0.0 differs from -0.0, matching what a save and read reproduce.
        """
        kind = self.kind.element if isinstance(self.kind, ArrayTypeDef) else self.kind
        if not kind.is_float:
            return self.data
        fmt = kind.struct_format
        if isinstance(self.kind, ArrayTypeDef):
            return tuple(struct.pack(fmt, item) for item in self.data)  # type: ignore[arg-type]
        return struct.pack(fmt, self.data)  # type: ignore[arg-type]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Value):
            return NotImplemented
        return self.kind == other.kind and self._identity() == other._identity()

    def __hash__(self) -> int:
        return hash((self.kind, self._identity()))

    def _check_comparable(self, other: Any) -> Value:
        if not isinstance(other, Value):
            return NotImplemented
        if other.kind != self.kind:
            raise TypeMismatchError(self.kind, other.kind)
        return other

    def __lt__(self, other: Any) -> bool:
        other = self._check_comparable(other)
        if other is NotImplemented:
            return NotImplemented
        return self.data < other.data

    def __le__(self, other: Any) -> bool:
        other = self._check_comparable(other)
        if other is NotImplemented:
            return NotImplemented
        return self.data <= other.data

    def __gt__(self, other: Any) -> bool:
        other = self._check_comparable(other)
        if other is NotImplemented:
            return NotImplemented
        return self.data > other.data

    def __ge__(self, other: Any) -> bool:
        other = self._check_comparable(other)
        if other is NotImplemented:
            return NotImplemented
        return self.data >= other.data

    def __repr__(self) -> str:
        return f"Value({self.kind.type_name}, {self.data!r})"

    def __str__(self) -> str:
        return format_native(self.data)


def format_native(data: Any) -> str:
    """Format a stored payload for display."""
    if data is None:
        return "null"
    if isinstance(data, bool):
        return "true" if data else "false"
    if isinstance(data, str):
        return data
    if isinstance(data, bytes):
        return "0x" + data.hex()
    if isinstance(data, (list, tuple)):
        return "[" + ", ".join(format_native(item) for item in data) + "]"
    return str(data)
