"""In-process loopback transport.

Datatypes are flattened into typemaps of (offset, size, tag) leaf blocks and
follow MPI's lower bound and extent rules, without the alignment padding
some MPI implementations add to struct extents. Data is moved by gathering
the leaf blocks of a value into bytes and scattering them into another
value, so padding bytes are never transferred.
"""

import ctypes
from collections.abc import Sequence
from typing import Any

from .tags import PAIR_MEMBERS, PRIMITIVE_TAGS, LeafTag, PairTag, PrimitiveTypeTag
from .transport import FieldTriple, TransportError

LEAF_CTYPES: dict[PrimitiveTypeTag, type] = {
    PrimitiveTypeTag.CHAR: ctypes.c_char,
    PrimitiveTypeTag.SIGNED_CHAR: ctypes.c_byte,
    PrimitiveTypeTag.UNSIGNED_CHAR: ctypes.c_ubyte,
    PrimitiveTypeTag.SHORT: ctypes.c_short,
    PrimitiveTypeTag.UNSIGNED_SHORT: ctypes.c_ushort,
    PrimitiveTypeTag.INT: ctypes.c_int,
    PrimitiveTypeTag.UNSIGNED: ctypes.c_uint,
    PrimitiveTypeTag.LONG: ctypes.c_long,
    PrimitiveTypeTag.UNSIGNED_LONG: ctypes.c_ulong,
    PrimitiveTypeTag.LONG_LONG: ctypes.c_longlong,
    PrimitiveTypeTag.UNSIGNED_LONG_LONG: ctypes.c_ulonglong,
    PrimitiveTypeTag.FLOAT: ctypes.c_float,
    PrimitiveTypeTag.DOUBLE: ctypes.c_double,
    PrimitiveTypeTag.LONG_DOUBLE: ctypes.c_longdouble,
    PrimitiveTypeTag.WCHAR: ctypes.c_wchar,
    PrimitiveTypeTag.BYTE: ctypes.c_ubyte,
}

Block = tuple[int, int, PrimitiveTypeTag]


class LocalDatatype:
    """Datatype handle of the loopback transport."""

    def __init__(
        self,
        blocks: tuple[Block, ...],
        lb: int,
        extent: int,
        *,
        name: str = "composite",
        committed: bool = False,
    ) -> None:
        self.blocks = blocks
        self.lb = lb
        self.extent = extent
        self.name = name
        self.committed = committed

    @property
    def size(self) -> int:
        """Bytes of data transferred per value."""
        return sum(size for _, size, _ in self.blocks)

    @property
    def span(self) -> int:
        """End of the last data byte relative to the value's address."""
        return max(offset + size for offset, size, _ in self.blocks)

    def __repr__(self) -> str:
        state = "committed" if self.committed else "uncommitted"
        return f"<LocalDatatype {self.name} lb={self.lb} extent={self.extent} {state}>"


def _leaf_datatype(tag: PrimitiveTypeTag) -> LocalDatatype:
    size = ctypes.sizeof(LEAF_CTYPES[tag])
    return LocalDatatype(((0, size, tag),), 0, size, name=tag.value, committed=True)


def _pair_datatype(tag: PairTag) -> LocalDatatype:
    first, second = (PRIMITIVE_TAGS[kind] for kind in PAIR_MEMBERS[tag])
    pair = type(
        tag.value,
        (ctypes.Structure,),
        {"_fields_": [("first", LEAF_CTYPES[first]), ("second", LEAF_CTYPES[second])]},
    )
    blocks = (
        (pair.first.offset, pair.first.size, first),
        (pair.second.offset, pair.second.size, second),
    )
    return LocalDatatype(blocks, 0, ctypes.sizeof(pair), name=tag.value, committed=True)


class LocalTransport:
    """Transport that moves values between ctypes objects in one process."""

    def __init__(self) -> None:
        self._predefined: dict[LeafTag, LocalDatatype] = {}
        for tag in PrimitiveTypeTag:
            self._predefined[tag] = _leaf_datatype(tag)
        for pair in PairTag:
            self._predefined[pair] = _pair_datatype(pair)

    def leaf_tag(self, tag: LeafTag) -> LocalDatatype:
        return self._predefined[tag]

    def create_composite(self, triples: Sequence[FieldTriple]) -> LocalDatatype:
        if not triples:
            raise TransportError("a composite datatype needs at least one block")

        blocks: list[Block] = []
        lower: list[int] = []
        upper: list[int] = []
        for count, displacement, element in triples:
            if not isinstance(element, LocalDatatype):
                raise TransportError(f"{element!r} is not a datatype of this transport")
            if count <= 0:
                raise TransportError(f"block count must be positive, got {count}")

            for k in range(count):
                base = displacement + k * element.extent
                blocks.extend((base + offset, size, tag) for offset, size, tag in element.blocks)
            lower.append(displacement + element.lb)
            upper.append(displacement + element.lb + count * element.extent)

        lb = min(lower)
        return LocalDatatype(tuple(blocks), lb, max(upper) - lb)

    def get_extent(self, handle: LocalDatatype) -> tuple[int, int]:
        return handle.lb, handle.extent

    def resize(self, handle: LocalDatatype, lb: int, extent: int) -> LocalDatatype:
        if extent <= 0:
            raise TransportError(f"extent must be positive, got {extent}")
        return LocalDatatype(handle.blocks, lb, extent, name=handle.name)

    def commit(self, handle: LocalDatatype) -> LocalDatatype:
        handle.committed = True
        return handle

    def _check(self, obj: Any, handle: LocalDatatype, count: int) -> int:
        if not isinstance(handle, LocalDatatype) or not handle.committed:
            raise TransportError(f"{handle!r} is not a committed datatype")
        if count < 1:
            raise TransportError(f"count must be positive, got {count}")
        needed = (count - 1) * handle.extent + handle.span
        if ctypes.sizeof(obj) < needed:
            raise TransportError(f"buffer of {ctypes.sizeof(obj)} bytes is smaller than {needed}")
        return ctypes.addressof(obj)

    def pack(self, obj: Any, handle: LocalDatatype, count: int = 1) -> bytes:
        """Gather `count` values described by handle from a ctypes object."""
        base = self._check(obj, handle, count)
        out = bytearray()
        for i in range(count):
            start = base + i * handle.extent
            for offset, size, _ in handle.blocks:
                out += ctypes.string_at(start + offset, size)
        return bytes(out)

    def unpack(self, data: bytes, obj: Any, handle: LocalDatatype, count: int = 1) -> None:
        """Scatter bytes produced by pack() into a ctypes object."""
        base = self._check(obj, handle, count)
        if len(data) != count * handle.size:
            raise TransportError(f"expected {count * handle.size} bytes, got {len(data)}")

        position = 0
        for i in range(count):
            start = base + i * handle.extent
            for offset, size, _ in handle.blocks:
                ctypes.memmove(start + offset, data[position : position + size], size)
                position += size

    def transfer(self, source: Any, destination: Any, handle: LocalDatatype, count: int = 1) -> None:
        """Copy `count` values from source to destination through the wire form."""
        self.unpack(self.pack(source, handle, count), destination, handle, count)
