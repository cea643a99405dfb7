"""Layout definition parser using Lark.

Builds plain ctypes structures from declarations such as::

    # a point with a label
    struct Point {
        xy: double[2]
        label: char[8]
    }
"""

import ctypes
import logging
import os
from dataclasses import dataclass
from typing import Any

from lark import Lark
from lark.visitors import Transformer

from .traits import check_aggregate
from .types import Byte, LayoutError

logger = logging.getLogger(__name__)

_g_parser: Lark | None = None


class ValidationError(RuntimeError):
    """Raised when a layout definition is invalid."""


SCALAR_TYPES: dict[str, type] = {
    "char": ctypes.c_char,
    "schar": ctypes.c_byte,
    "uchar": ctypes.c_ubyte,
    "short": ctypes.c_short,
    "ushort": ctypes.c_ushort,
    "int": ctypes.c_int,
    "uint": ctypes.c_uint,
    "long": ctypes.c_long,
    "ulong": ctypes.c_ulong,
    "longlong": ctypes.c_longlong,
    "ulonglong": ctypes.c_ulonglong,
    "int8": ctypes.c_int8,
    "int16": ctypes.c_int16,
    "int32": ctypes.c_int32,
    "int64": ctypes.c_int64,
    "uint8": ctypes.c_uint8,
    "uint16": ctypes.c_uint16,
    "uint32": ctypes.c_uint32,
    "uint64": ctypes.c_uint64,
    "float": ctypes.c_float,
    "double": ctypes.c_double,
    "longdouble": ctypes.c_longdouble,
    "float32": ctypes.c_float,
    "float64": ctypes.c_double,
    "wchar": ctypes.c_wchar,
    "byte": Byte,
    "bool": ctypes.c_bool,
}

# Complex scalars exist only on interpreters built with C complex support
for _name, _attr in (
    ("floatcomplex", "c_float_complex"),
    ("doublecomplex", "c_double_complex"),
    ("longdoublecomplex", "c_longdouble_complex"),
):
    if hasattr(ctypes, _attr):
        SCALAR_TYPES[_name] = getattr(ctypes, _attr)


@dataclass
class _Member:
    name: str
    type_name: str
    extents: list[int]


@dataclass
class _Struct:
    name: str
    members: list[_Member]


class TreeTransformer(Transformer):
    """Transform parse tree into structure declarations."""

    def extent(self, args: list[Any]) -> int:
        return int(args[0])

    def member(self, args: list[Any]) -> _Member:
        return _Member(name=str(args[0]), type_name=str(args[1]), extents=list(args[2:]))

    def struct(self, args: list[Any]) -> _Struct:
        return _Struct(name=str(args[0]), members=list(args[1:]))

    def start(self, args: list[Any]) -> list[_Struct]:
        return list(args)


def _resolve_type(member: _Member, built: dict[str, type]) -> type:
    t = SCALAR_TYPES.get(member.type_name) or built.get(member.type_name)
    if t is None:
        raise ValidationError(f"{member.name} has unknown type {member.type_name}")

    for n in reversed(member.extents):
        if n <= 0:
            raise ValidationError(f"{member.name} has an array extent of {n}")
        t = t * n
    return t


def build(decls: list[_Struct]) -> dict[str, type[ctypes.Structure]]:
    """Create a ctypes structure for every declaration, in order."""
    built: dict[str, type[ctypes.Structure]] = {}

    for decl in decls:
        if decl.name in SCALAR_TYPES:
            raise ValidationError(f"{decl.name} is a scalar type name")
        if decl.name in built:
            raise ValidationError(f"{decl.name} is declared more than once")

        names = [m.name for m in decl.members]
        duplicates = {n for n in names if names.count(n) > 1}
        if duplicates:
            raise ValidationError(f"{decl.name} repeats member {', '.join(sorted(duplicates))}")

        fields = [(m.name, _resolve_type(m, built)) for m in decl.members]
        struct = type(decl.name, (ctypes.Structure,), {"_fields_": fields, "__module__": __name__})
        try:
            check_aggregate(struct)
        except LayoutError as e:
            raise ValidationError(str(e)) from e

        logger.debug("built %s with %d fields, %d bytes", decl.name, len(fields), ctypes.sizeof(struct))
        built[decl.name] = struct

    return built


def parse(text: str) -> dict[str, type[ctypes.Structure]]:
    """Parse a layout definition into ctypes structures keyed by name."""
    global _g_parser

    if not _g_parser:
        with open(f"{os.path.dirname(__file__)}/layoutdef.lark", encoding="utf-8") as f:
            grammar = f.read()
        _g_parser = Lark(grammar, parser="lalr")

    tree = _g_parser.parse(text)
    decls = TreeTransformer().transform(tree)
    return build(decls)
