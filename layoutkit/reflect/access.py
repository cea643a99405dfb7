"""Positional field access and full-structure visitation."""

import ctypes
from abc import ABC, abstractmethod
from typing import Any

from .traits import field_name, field_offset, field_type, layout_of
from .types import FieldDescriptor, LayoutError


def get(instance: ctypes.Structure, index: int) -> Any:
    """Return a live ctypes view of field `index`.

    The view shares memory with the instance: writing ``view.value`` for
    scalars, or writing elements of arrays and members of nested structures,
    changes the instance itself.
    """
    t = type(instance)
    return field_type(t, index).from_buffer(instance, field_offset(t, index))


def _coerce(t: type, value: Any) -> Any:
    if isinstance(value, t):
        return value
    if issubclass(t, ctypes.Array):
        return t(*(_coerce(t._type_, v) for v in value))
    return value


def set_field(instance: ctypes.Structure, index: int, value: Any) -> None:
    """Assign a Python value (nested sequences for arrays) to field `index`."""
    t = type(instance)
    setattr(instance, field_name(t, index), _coerce(field_type(t, index), value))


def value_of(view: Any) -> Any:
    """Convert a field view to plain Python values.

    Scalars become their ``.value``, arrays become (nested) lists and
    structures are returned unchanged.
    """
    if isinstance(view, ctypes.Array):
        return [value_of(v) for v in view]
    if isinstance(view, ctypes._SimpleCData):
        return view.value
    return view


class FieldVisitor(ABC):
    """Receives each field of a structure, one operation per field shape.

    Every operation gets the live view of the field (see get()) and its
    descriptor, so visitors may modify fields in place.
    """

    @abstractmethod
    def scalar(self, view: Any, field: FieldDescriptor) -> None: ...

    @abstractmethod
    def array(self, view: ctypes.Array, field: FieldDescriptor) -> None: ...

    @abstractmethod
    def matrix(self, view: ctypes.Array, field: FieldDescriptor) -> None: ...

    def tensor(self, view: ctypes.Array, field: FieldDescriptor) -> None:
        raise LayoutError(
            f"{type(self).__name__} cannot visit rank {field.shape.rank} field {field.name}"
        )


def visit(instance: ctypes.Structure, visitor: FieldVisitor) -> None:
    """Call the visitor once for every field, in declaration order."""
    for f in layout_of(type(instance)).fields:
        operation = getattr(visitor, f.shape.kind.value)
        operation(get(instance, f.index), f)
