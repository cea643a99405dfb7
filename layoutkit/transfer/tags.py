"""Predefined wire types and the scalar kinds they transfer.

Tag values are the attribute names of the matching predefined datatypes in
``mpi4py.MPI``.
"""

from enum import StrEnum

from ..reflect.types import ScalarKind


class PrimitiveTypeTag(StrEnum):
    """Leaf wire types for indivisible scalars. There is no boolean tag."""

    CHAR = "CHAR"
    SIGNED_CHAR = "SIGNED_CHAR"
    UNSIGNED_CHAR = "UNSIGNED_CHAR"
    SHORT = "SHORT"
    UNSIGNED_SHORT = "UNSIGNED_SHORT"
    INT = "INT"
    UNSIGNED = "UNSIGNED"
    LONG = "LONG"
    UNSIGNED_LONG = "UNSIGNED_LONG"
    LONG_LONG = "LONG_LONG"
    UNSIGNED_LONG_LONG = "UNSIGNED_LONG_LONG"
    FLOAT = "FLOAT"
    DOUBLE = "DOUBLE"
    LONG_DOUBLE = "LONG_DOUBLE"
    WCHAR = "WCHAR"
    BYTE = "BYTE"


class PairTag(StrEnum):
    """Predefined value/index pairs and complex numbers."""

    FLOAT_INT = "FLOAT_INT"
    DOUBLE_INT = "DOUBLE_INT"
    LONG_DOUBLE_INT = "LONG_DOUBLE_INT"
    LONG_INT = "LONG_INT"
    SHORT_INT = "SHORT_INT"
    TWOINT = "TWOINT"
    C_FLOAT_COMPLEX = "C_FLOAT_COMPLEX"
    C_DOUBLE_COMPLEX = "C_DOUBLE_COMPLEX"
    C_LONG_DOUBLE_COMPLEX = "C_LONG_DOUBLE_COMPLEX"


LeafTag = PrimitiveTypeTag | PairTag

PRIMITIVE_TAGS: dict[ScalarKind, PrimitiveTypeTag] = {
    ScalarKind.CHAR: PrimitiveTypeTag.CHAR,
    ScalarKind.SIGNED_CHAR: PrimitiveTypeTag.SIGNED_CHAR,
    ScalarKind.UNSIGNED_CHAR: PrimitiveTypeTag.UNSIGNED_CHAR,
    ScalarKind.SHORT: PrimitiveTypeTag.SHORT,
    ScalarKind.UNSIGNED_SHORT: PrimitiveTypeTag.UNSIGNED_SHORT,
    ScalarKind.INT: PrimitiveTypeTag.INT,
    ScalarKind.UNSIGNED: PrimitiveTypeTag.UNSIGNED,
    ScalarKind.LONG: PrimitiveTypeTag.LONG,
    ScalarKind.UNSIGNED_LONG: PrimitiveTypeTag.UNSIGNED_LONG,
    ScalarKind.LONG_LONG: PrimitiveTypeTag.LONG_LONG,
    ScalarKind.UNSIGNED_LONG_LONG: PrimitiveTypeTag.UNSIGNED_LONG_LONG,
    ScalarKind.FLOAT: PrimitiveTypeTag.FLOAT,
    ScalarKind.DOUBLE: PrimitiveTypeTag.DOUBLE,
    ScalarKind.LONG_DOUBLE: PrimitiveTypeTag.LONG_DOUBLE,
    ScalarKind.WCHAR: PrimitiveTypeTag.WCHAR,
    ScalarKind.BYTE: PrimitiveTypeTag.BYTE,
}

COMPLEX_TAGS: dict[ScalarKind, PairTag] = {
    ScalarKind.FLOAT_COMPLEX: PairTag.C_FLOAT_COMPLEX,
    ScalarKind.DOUBLE_COMPLEX: PairTag.C_DOUBLE_COMPLEX,
    ScalarKind.LONG_DOUBLE_COMPLEX: PairTag.C_LONG_DOUBLE_COMPLEX,
}

# Checked in order against two-field structures of scalars
PAIR_TABLE: tuple[tuple[tuple[ScalarKind, ScalarKind], PairTag], ...] = (
    ((ScalarKind.FLOAT, ScalarKind.INT), PairTag.FLOAT_INT),
    ((ScalarKind.DOUBLE, ScalarKind.INT), PairTag.DOUBLE_INT),
    ((ScalarKind.LONG_DOUBLE, ScalarKind.INT), PairTag.LONG_DOUBLE_INT),
    ((ScalarKind.LONG, ScalarKind.INT), PairTag.LONG_INT),
    ((ScalarKind.SHORT, ScalarKind.INT), PairTag.SHORT_INT),
    ((ScalarKind.INT, ScalarKind.INT), PairTag.TWOINT),
    ((ScalarKind.FLOAT, ScalarKind.FLOAT), PairTag.C_FLOAT_COMPLEX),
    ((ScalarKind.DOUBLE, ScalarKind.DOUBLE), PairTag.C_DOUBLE_COMPLEX),
    ((ScalarKind.LONG_DOUBLE, ScalarKind.LONG_DOUBLE), PairTag.C_LONG_DOUBLE_COMPLEX),
)

# Scalar members of each pair tag, used by transports to lay pairs out
PAIR_MEMBERS: dict[PairTag, tuple[ScalarKind, ScalarKind]] = {tag: kinds for kinds, tag in PAIR_TABLE}


def pair_tag(first: ScalarKind, second: ScalarKind) -> PairTag | None:
    """Return the predefined tag for a pair of scalar kinds, if there is one."""
    for kinds, tag in PAIR_TABLE:
        if kinds == (first, second):
            return tag
    return None
