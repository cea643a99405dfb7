"""Type definitions for reflected structure layouts."""

import ctypes
from dataclasses import dataclass, field
from enum import StrEnum
from math import prod

from dataclasses_json import DataClassJsonMixin, config

# Largest number of fields a plain structure may declare
MAX_FIELDS = 12

STRUCT_ELEMENT = "struct"


class LayoutError(TypeError):
    """Raised when a type is not a supported plain structure."""


class Byte(ctypes.c_ubyte):
    """Opaque byte, reflected and transferred as raw data rather than a number."""


class ScalarKind(StrEnum):
    """Scalar element kinds a field can hold."""

    CHAR = "char"
    SIGNED_CHAR = "signed char"
    UNSIGNED_CHAR = "unsigned char"
    SHORT = "short"
    UNSIGNED_SHORT = "unsigned short"
    INT = "int"
    UNSIGNED = "unsigned"
    LONG = "long"
    UNSIGNED_LONG = "unsigned long"
    LONG_LONG = "long long"
    UNSIGNED_LONG_LONG = "unsigned long long"
    FLOAT = "float"
    DOUBLE = "double"
    LONG_DOUBLE = "long double"
    WCHAR = "wchar"
    BYTE = "byte"
    BOOL = "bool"
    FLOAT_COMPLEX = "float complex"
    DOUBLE_COMPLEX = "double complex"
    LONG_DOUBLE_COMPLEX = "long double complex"

    @property
    def is_complex(self) -> bool:
        return self in COMPLEX_KINDS


COMPLEX_KINDS = frozenset(
    [ScalarKind.FLOAT_COMPLEX, ScalarKind.DOUBLE_COMPLEX, ScalarKind.LONG_DOUBLE_COMPLEX]
)

# ctypes simple type codes (the `_type_` attribute)
TYPE_CODES: dict[str, ScalarKind] = {
    "c": ScalarKind.CHAR,
    "b": ScalarKind.SIGNED_CHAR,
    "B": ScalarKind.UNSIGNED_CHAR,
    "h": ScalarKind.SHORT,
    "H": ScalarKind.UNSIGNED_SHORT,
    "i": ScalarKind.INT,
    "I": ScalarKind.UNSIGNED,
    "l": ScalarKind.LONG,
    "L": ScalarKind.UNSIGNED_LONG,
    "q": ScalarKind.LONG_LONG,
    "Q": ScalarKind.UNSIGNED_LONG_LONG,
    "f": ScalarKind.FLOAT,
    "d": ScalarKind.DOUBLE,
    "g": ScalarKind.LONG_DOUBLE,
    "u": ScalarKind.WCHAR,
    "?": ScalarKind.BOOL,
    "F": ScalarKind.FLOAT_COMPLEX,
    "D": ScalarKind.DOUBLE_COMPLEX,
    "G": ScalarKind.LONG_DOUBLE_COMPLEX,
}


def scalar_kind(t: type) -> ScalarKind | None:
    """Return the scalar kind of a ctypes simple type, or None if it has none."""
    if not isinstance(t, type) or not issubclass(t, ctypes._SimpleCData):
        return None
    if issubclass(t, Byte):
        return ScalarKind.BYTE
    return TYPE_CODES.get(t._type_)


class ShapeKind(StrEnum):
    """Tag of a field shape, selected by array rank."""

    SCALAR = "scalar"
    ARRAY = "array"
    MATRIX = "matrix"
    TENSOR = "tensor"


@dataclass(frozen=True)
class FieldShape(DataClassJsonMixin):
    """Element kind and array extents of a field.

    element_kind is a ScalarKind value, or "struct" for nested structures.
    extents lists array bounds outermost first and is empty for scalars.
    """

    element_kind: str
    rank: int
    extents: tuple[int, ...]
    element_type: type = field(compare=False, metadata=config(exclude=lambda _: True))

    @property
    def kind(self) -> ShapeKind:
        if self.rank == 0:
            return ShapeKind.SCALAR
        if self.rank == 1:
            return ShapeKind.ARRAY
        if self.rank == 2:
            return ShapeKind.MATRIX
        return ShapeKind.TENSOR

    @property
    def length(self) -> int:
        """Total number of elements (1 for scalars)."""
        return prod(self.extents)

    @property
    def is_struct(self) -> bool:
        return self.element_kind == STRUCT_ELEMENT

    def describe(self) -> str:
        name = self.element_type.__name__ if self.is_struct else self.element_kind
        return name + "".join(f"[{n}]" for n in self.extents)


@dataclass(frozen=True)
class FieldDescriptor(DataClassJsonMixin):
    """Position and shape of one field inside a structure."""

    index: int
    name: str
    shape: FieldShape
    offset: int
    size: int

    @property
    def end(self) -> int:
        return self.offset + self.size


@dataclass(frozen=True)
class Padding(DataClassJsonMixin):
    """Unused bytes inserted by the compiler's alignment rules."""

    offset: int
    size: int


@dataclass(frozen=True)
class TypeLayout(DataClassJsonMixin):
    """Complete reflected layout of a plain structure."""

    name: str
    size: int
    alignment: int
    fields: tuple[FieldDescriptor, ...]

    @property
    def num_fields(self) -> int:
        return len(self.fields)

    @property
    def padding(self) -> list[Padding]:
        """Gaps between fields and after the last one."""
        gaps = []
        position = 0
        for f in self.fields:
            if f.offset > position:
                gaps.append(Padding(position, f.offset - position))
            position = max(position, f.end)
        if self.size > position:
            gaps.append(Padding(position, self.size - position))
        return gaps
