"""Synthesis of transport datatypes from reflected structure layouts.

A datatype mirrors the in-memory layout of a ctypes type, padding included,
so that values and arrays of values can be moved with a single transfer.

Scalars and well-known scalar pairs map to predefined transport types.
Arrays and structures are assembled from (count, displacement, element)
blocks, resized so their extent equals ``sizeof(T)`` and committed. Each
assembled datatype is built at most once per registry and then shared.
"""

import ctypes
import logging
import threading
import weakref
from functools import cache
from typing import Any, TypeVar

from ..reflect.traits import layout_of, shape_of
from ..reflect.types import LayoutError, ScalarKind, scalar_kind
from .tags import COMPLEX_TAGS, PRIMITIVE_TAGS, LeafTag, pair_tag
from .transport import FieldTriple, Transport

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=type)

_MISSING: Any = object()


class DatatypeError(LayoutError):
    """Raised when a type reflects correctly but cannot be transferred."""


def _leaf(kind: ScalarKind) -> LeafTag:
    if kind.is_complex:
        return COMPLEX_TAGS[kind]
    if kind not in PRIMITIVE_TAGS:
        raise DatatypeError(f"{kind} values cannot be transferred")
    return PRIMITIVE_TAGS[kind]


@cache
def check_transferable(t: type) -> None:
    """Raise if t, or anything nested in it, has no transport datatype.

    Runs before any transport call, so unsupported types never leave a
    partially built datatype behind.
    """
    if isinstance(t, type) and issubclass(t, ctypes.Structure):
        layout = layout_of(t)
        if not layout.fields:
            raise DatatypeError(f"{t.__name__} has no fields")
        shapes = [(f"{t.__name__}.{f.name}", f.shape) for f in layout.fields]
    else:
        shapes = [(getattr(t, "__name__", repr(t)), shape_of(t))]

    for where, shape in shapes:
        if shape.is_struct:
            check_transferable(shape.element_type)
            continue
        try:
            _leaf(ScalarKind(shape.element_kind))
        except DatatypeError as e:
            raise DatatypeError(f"{where}: {e}") from e


def transferable(t: T) -> T:
    """Class decorator rejecting structures that cannot be transferred when defined."""
    check_transferable(t)
    return t


def _pair(t: type) -> LeafTag | None:
    if getattr(t, "_pack_", 0):
        return None
    fields = layout_of(t).fields
    if len(fields) != 2 or any(f.shape.rank or f.shape.is_struct for f in fields):
        return None
    return pair_tag(*(ScalarKind(f.shape.element_kind) for f in fields))


class DatatypeRegistry:
    """Builds, commits and caches transport datatypes per ctypes type.

    The first request for a type assembles and commits its datatype while
    holding a lock dedicated to that type; concurrent first requests wait
    for it and receive the same handle. Later requests read the cache
    without locking.
    """

    def __init__(self, transport: Transport) -> None:
        self.transport = transport
        self._cache: dict[type, Any] = {}
        self._locks: dict[type, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def __contains__(self, t: type) -> bool:
        return t in self._cache

    def __len__(self) -> int:
        return len(self._cache)

    def datatype(self, t: type) -> Any:
        """Return the committed transport datatype for ctypes type t."""
        handle = self._cache.get(t, _MISSING)
        if handle is not _MISSING:
            return handle

        check_transferable(t)

        predefined = self._predefined(t)
        if predefined is not None:
            return self.transport.leaf_tag(predefined)

        with self._lock_for(t):
            handle = self._cache.get(t, _MISSING)
            if handle is _MISSING:
                handle = self._build(t)
                self._cache[t] = handle
        return handle

    def _lock_for(self, t: type) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(t, threading.Lock())

    def _predefined(self, t: type) -> LeafTag | None:
        kind = scalar_kind(t)
        if kind is not None:
            return _leaf(kind)
        if issubclass(t, ctypes.Structure):
            return _pair(t)
        return None

    def _triples(self, t: type) -> list[FieldTriple]:
        if issubclass(t, ctypes.Array):
            shape = shape_of(t)
            return [FieldTriple(shape.length, 0, self.datatype(shape.element_type))]

        return [
            FieldTriple(f.shape.length, f.offset, self.datatype(f.shape.element_type))
            for f in layout_of(t).fields
        ]

    def _build(self, t: type) -> Any:
        size = ctypes.sizeof(t)
        triples = self._triples(t)

        handle = self.transport.create_composite(triples)
        lb, extent = self.transport.get_extent(handle)
        if (lb, extent) != (0, size):
            logger.debug(
                "resizing %s datatype from (%d, %d) to (0, %d)", t.__name__, lb, extent, size
            )
            handle = self.transport.resize(handle, 0, size)
        handle = self.transport.commit(handle)

        logger.debug("committed %s datatype: %d blocks, %d bytes", t.__name__, len(triples), size)
        return handle


_registries: "weakref.WeakKeyDictionary[Any, DatatypeRegistry]" = weakref.WeakKeyDictionary()
_registries_guard = threading.Lock()


def registry_for(transport: Transport) -> DatatypeRegistry:
    """Return the process-wide registry of a transport, creating it once.

    The registry reaches its transport through a weak proxy, so dropping the
    last reference to the transport also drops its registry and handles.
    """
    with _registries_guard:
        registry = _registries.get(transport)
        if registry is None:
            registry = _registries[transport] = DatatypeRegistry(weakref.proxy(transport))
        return registry


def datatype(t: type, transport: Transport) -> Any:
    """Return the committed datatype for t from the transport's shared registry."""
    return registry_for(transport).datatype(t)
