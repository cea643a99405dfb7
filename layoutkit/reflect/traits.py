"""Field arity, shape and offset discovery for plain ctypes structures.

A plain structure is a ``ctypes.Structure`` subclass that declares all of its
fields in ``_fields_``, has no custom constructor, no base structure, no bit
fields, no private (underscore) fields and native byte order. Every field is
a ctypes scalar, a fixed array of any rank, another plain structure, or an
array of plain structures.

Everything here is computed at most once per type; results are cached for
the lifetime of the process.
"""

import ctypes
from functools import cache
from typing import TypeVar

from .types import (
    MAX_FIELDS,
    STRUCT_ELEMENT,
    FieldDescriptor,
    FieldShape,
    LayoutError,
    TypeLayout,
    scalar_kind,
)

T = TypeVar("T", bound=type)


def _type_name(t: object) -> str:
    return t.__name__ if isinstance(t, type) else repr(t)


def _unwrap_array(t: type) -> tuple[type, tuple[int, ...]]:
    """Split a (possibly nested) ctypes array type into element type and extents."""
    extents = []
    while isinstance(t, type) and issubclass(t, ctypes.Array):
        extents.append(t._length_)
        t = t._type_
    return t, tuple(extents)


def _check_structure_type(t: object) -> None:
    if not isinstance(t, type) or not issubclass(t, ctypes.Structure):
        raise LayoutError(f"{_type_name(t)} is not a ctypes Structure")
    if hasattr(t, "_swappedbytes_"):
        raise LayoutError(f"{t.__name__} does not use native byte order")
    if "_fields_" not in vars(t):
        raise LayoutError(f"{t.__name__} does not declare _fields_")

    for base in t.__mro__[1:]:
        if base is ctypes.Structure:
            break
        if issubclass(base, ctypes.Structure):
            raise LayoutError(f"{t.__name__} inherits fields from {base.__name__}")
        if "__init__" in vars(base) or "__new__" in vars(base):
            raise LayoutError(f"{t.__name__} has a custom constructor in {base.__name__}")
    if "__init__" in vars(t) or "__new__" in vars(t):
        raise LayoutError(f"{t.__name__} has a custom constructor")


@cache
def _aggregate_fields(t: type) -> tuple[tuple[str, type], ...]:
    _check_structure_type(t)

    declared = tuple(t._fields_)
    if len(declared) > MAX_FIELDS:
        raise LayoutError(
            f"{t.__name__} has {len(declared)} fields, at most {MAX_FIELDS} are supported"
        )

    fields = []
    for entry in declared:
        if len(entry) != 2:
            raise LayoutError(f"{t.__name__}.{entry[0]} is a bit field")
        name, ftype = entry
        if name.startswith("_"):
            raise LayoutError(f"{t.__name__}.{name} is a private field")
        try:
            shape_of(ftype)
        except LayoutError as e:
            raise LayoutError(f"{t.__name__}.{name}: {e}") from e
        fields.append((name, ftype))
    return tuple(fields)


def check_aggregate(t: type) -> None:
    """Raise LayoutError unless t is a supported plain structure."""
    _aggregate_fields(t)


def aggregate(t: T) -> T:
    """Class decorator validating a plain structure when it is defined.

    Example:
        @aggregate
        class Point(ctypes.Structure):
            _fields_ = [("x", ctypes.c_int), ("y", ctypes.c_int)]
    """
    layout_of(t)
    return t


def num_fields(t: type) -> int:
    """Number of fields of a plain structure."""
    return len(_aggregate_fields(t))


def _field_at(t: type, index: int) -> tuple[str, type]:
    fields = _aggregate_fields(t)
    if not 0 <= index < len(fields):
        raise IndexError(f"{t.__name__} has no field {index}, it has {len(fields)}")
    return fields[index]


def field_name(t: type, index: int) -> str:
    return _field_at(t, index)[0]


def field_type(t: type, index: int) -> type:
    """Declared ctypes type of a field (array types included)."""
    return _field_at(t, index)[1]


@cache
def shape_of(t: type) -> FieldShape:
    """Shape of a value of ctypes type t."""
    element, extents = _unwrap_array(t)
    if any(n <= 0 for n in extents):
        raise LayoutError(f"{_type_name(t)} has an empty array extent")

    kind = scalar_kind(element)
    if kind is not None:
        element_kind = kind.value
    elif isinstance(element, type) and issubclass(element, ctypes.Structure):
        check_aggregate(element)
        element_kind = STRUCT_ELEMENT
    else:
        raise LayoutError(f"unsupported field type {_type_name(element)}")

    return FieldShape(
        element_kind=element_kind,
        rank=len(extents),
        extents=extents,
        element_type=element,
    )


def field_shape(t: type, index: int) -> FieldShape:
    return shape_of(field_type(t, index))


def field_offset(t: type, index: int) -> int:
    """Byte offset of a field as laid out in memory, padding included."""
    name, _ = _field_at(t, index)
    return getattr(t, name).offset


def field_size(t: type, index: int) -> int:
    return ctypes.sizeof(field_type(t, index))


@cache
def layout_of(t: type) -> TypeLayout:
    """Reflect the complete layout of a plain structure."""
    fields = tuple(
        FieldDescriptor(
            index=i,
            name=field_name(t, i),
            shape=field_shape(t, i),
            offset=field_offset(t, i),
            size=field_size(t, i),
        )
        for i in range(num_fields(t))
    )

    size = ctypes.sizeof(t)
    position = 0
    for f in fields:
        if f.offset < position:
            raise LayoutError(f"{t.__name__}.{f.name} overlaps the previous field")
        position = f.end
    if position > size:
        raise LayoutError(f"{t.__name__} fields extend past its size of {size} bytes")

    return TypeLayout(
        name=t.__name__,
        size=size,
        alignment=ctypes.alignment(t),
        fields=fields,
    )
