"""Tests for transport datatype synthesis."""

import ctypes
import gc
import threading
import time
import types
from collections import Counter
from concurrent.futures import ThreadPoolExecutor

import pytest

import layoutkit.transfer.synthesis as synthesis
from layoutkit.reflect import Byte, LayoutError
from layoutkit.transfer import (
    DatatypeError,
    DatatypeRegistry,
    LocalTransport,
    PairTag,
    PrimitiveTypeTag,
    TransportError,
    check_transferable,
    datatype,
    registry_for,
    transferable,
)
from layoutkit.tests.structs import A, B, C, DoubleComplex, Flagged, FloatInt, Padded, Wrapper


class CountingTransport(LocalTransport):
    """Loopback transport that counts datatype construction calls."""

    def __init__(self, delay: float = 0.0):
        super().__init__()
        self.calls = Counter()
        self.delay = delay
        self._lock = threading.Lock()

    def _count(self, name):
        with self._lock:
            self.calls[name] += 1

    def create_composite(self, triples):
        self._count("create_composite")
        time.sleep(self.delay)
        return super().create_composite(triples)

    def resize(self, handle, lb, extent):
        self._count("resize")
        return super().resize(handle, lb, extent)

    def commit(self, handle):
        self._count("commit")
        return super().commit(handle)


class FailingTransport(LocalTransport):
    def commit(self, handle):
        raise TransportError("out of datatype handles")


def _pair(name, first, second, pack=0):
    attrs = {"_fields_": [("first", first), ("second", second)]}
    if pack:
        attrs.update(_pack_=pack, _layout_="ms")
    return type(name, (ctypes.Structure,), attrs)


def describe_predefined_types():
    def maps_scalars_to_leaf_tags(expect):
        transport = CountingTransport()
        registry = DatatypeRegistry(transport)

        expect(registry.datatype(ctypes.c_int)) == transport.leaf_tag(PrimitiveTypeTag.INT)
        expect(registry.datatype(ctypes.c_double)) == transport.leaf_tag(PrimitiveTypeTag.DOUBLE)
        expect(registry.datatype(ctypes.c_char)) == transport.leaf_tag(PrimitiveTypeTag.CHAR)
        expect(registry.datatype(ctypes.c_wchar)) == transport.leaf_tag(PrimitiveTypeTag.WCHAR)
        expect(registry.datatype(Byte)) == transport.leaf_tag(PrimitiveTypeTag.BYTE)
        expect(transport.calls["create_composite"]) == 0

    def maps_known_pairs_to_pair_tags(expect):
        transport = CountingTransport()
        registry = DatatypeRegistry(transport)

        expect(registry.datatype(FloatInt)) == transport.leaf_tag(PairTag.FLOAT_INT)
        expect(registry.datatype(DoubleComplex)) == transport.leaf_tag(PairTag.C_DOUBLE_COMPLEX)
        pairs = [
            (ctypes.c_double, ctypes.c_int, PairTag.DOUBLE_INT),
            (ctypes.c_longdouble, ctypes.c_int, PairTag.LONG_DOUBLE_INT),
            (ctypes.c_long, ctypes.c_int, PairTag.LONG_INT),
            (ctypes.c_short, ctypes.c_int, PairTag.SHORT_INT),
            (ctypes.c_int, ctypes.c_int, PairTag.TWOINT),
            (ctypes.c_float, ctypes.c_float, PairTag.C_FLOAT_COMPLEX),
            (ctypes.c_longdouble, ctypes.c_longdouble, PairTag.C_LONG_DOUBLE_COMPLEX),
        ]
        for first, second, tag in pairs:
            expect(registry.datatype(_pair("Pair", first, second))) == transport.leaf_tag(tag)
        expect(transport.calls["create_composite"]) == 0
        expect(len(registry)) == 0

    def assembles_unknown_pairs(expect):
        transport = CountingTransport()
        registry = DatatypeRegistry(transport)

        int_char = registry.datatype(B)
        int_float = registry.datatype(_pair("IntFloat", ctypes.c_int, ctypes.c_float))

        expect(transport.calls["commit"]) == 2
        expect(int_char.committed) == True
        expect(transport.get_extent(int_char)) == (0, 8)
        expect(transport.get_extent(int_float)) == (0, 8)

    def assembles_packed_pairs(expect):
        transport = CountingTransport()
        handle = DatatypeRegistry(transport).datatype(
            _pair("PackedDoubleInt", ctypes.c_double, ctypes.c_int, pack=1)
        )
        expect(transport.get_extent(handle)) == (0, 12)
        expect(handle.blocks[1][0]) == 8

    def assembles_pairs_of_arrays(expect):
        transport = CountingTransport()
        handle = DatatypeRegistry(transport).datatype(
            _pair("ArrayPair", ctypes.c_float * 2, ctypes.c_int)
        )
        expect(len(handle.blocks)) == 3

    @pytest.mark.skipif(not hasattr(ctypes, "c_double_complex"), reason="no ctypes complex types")
    def maps_complex_scalars(expect):
        transport = CountingTransport()
        registry = DatatypeRegistry(transport)
        expect(registry.datatype(ctypes.c_double_complex)) == transport.leaf_tag(
            PairTag.C_DOUBLE_COMPLEX
        )
        expect(registry.datatype(ctypes.c_float_complex)) == transport.leaf_tag(
            PairTag.C_FLOAT_COMPLEX
        )


def describe_composite_types():
    def mirrors_reference_layout(expect):
        transport = CountingTransport()
        handle = DatatypeRegistry(transport).datatype(A)

        expect(handle.committed) == True
        expect(transport.get_extent(handle)) == (0, 80)
        expect(handle.size) == 63
        expect([offset for offset, _, _ in handle.blocks[:12]]) == [
            0,
            4,
            8,
            16,
            24,
            28,
            32,
            36,
            40,
            44,
            48,
            52,
        ]
        expect(handle.blocks[3][2]) == PrimitiveTypeTag.DOUBLE
        expect(handle.blocks[-1]) == (72, 4, PrimitiveTypeTag.FLOAT)

    def corrects_trailing_padding(expect):
        transport = CountingTransport()
        handle = DatatypeRegistry(transport).datatype(Padded)

        expect(transport.calls["resize"]) == 1
        expect(transport.get_extent(handle)) == (0, ctypes.sizeof(Padded))
        expect(transport.get_extent(handle)) == (0, 24)

    def skips_resize_when_extent_matches(expect):
        transport = CountingTransport()
        handle = DatatypeRegistry(transport).datatype(C)

        expect(transport.calls["resize"]) == 0
        expect(transport.get_extent(handle)) == (0, 4)

    def builds_arrays_as_single_blocks(expect):
        transport = CountingTransport()
        registry = DatatypeRegistry(transport)

        ints = registry.datatype(ctypes.c_int * 3)
        matrix = registry.datatype((ctypes.c_float * 3) * 2)
        records = registry.datatype(B * 2)

        expect(transport.get_extent(ints)) == (0, 12)
        expect(len(ints.blocks)) == 3
        expect(transport.get_extent(matrix)) == (0, 24)
        expect(len(matrix.blocks)) == 6
        expect(transport.get_extent(records)) == (0, 16)
        expect([offset for offset, _, _ in records.blocks]) == [0, 4, 8, 12]

    def builds_nested_types_once(expect):
        transport = CountingTransport()
        registry = DatatypeRegistry(transport)

        registry.datatype(A)
        registry.datatype(B)
        registry.datatype(C)

        expect(transport.calls["commit"]) == 3
        expect(A in registry) == True
        expect(B in registry) == True
        expect(len(registry)) == 3

    def returns_identical_handles(expect):
        registry = DatatypeRegistry(LocalTransport())
        expect(registry.datatype(A) is registry.datatype(A)) == True

    def shares_registry_per_transport(expect):
        transport = LocalTransport()
        expect(registry_for(transport) is registry_for(transport)) == True
        expect(datatype(A, transport) is datatype(A, transport)) == True
        expect(registry_for(transport) is registry_for(LocalTransport())) == False


def describe_registry_lifetime():
    def releases_registry_with_its_transport(expect):
        gc.collect()
        before = len(synthesis._registries)

        transport = LocalTransport()
        handle = registry_for(transport).datatype(A)
        expect(len(synthesis._registries)) == before + 1

        del transport
        gc.collect()
        expect(len(synthesis._registries)) == before
        expect(handle.committed) == True

    def releases_registries_of_temporary_transports(expect):
        gc.collect()
        before = len(synthesis._registries)

        for _ in range(5):
            registry_for(LocalTransport())
        gc.collect()

        expect(len(synthesis._registries)) == before

    def keeps_synthesis_module_importable(expect):
        expect(isinstance(synthesis, types.ModuleType)) == True
        expect(synthesis.datatype is datatype) == True


def describe_rejection():
    def rejects_bool_scalars_and_arrays():
        registry = DatatypeRegistry(LocalTransport())
        for t in (ctypes.c_bool, ctypes.c_bool * 4):
            with pytest.raises(DatatypeError, match="bool"):
                registry.datatype(t)

    def rejects_bool_fields_before_touching_transport(expect):
        transport = CountingTransport()
        registry = DatatypeRegistry(transport)

        with pytest.raises(DatatypeError, match="Flagged.flag"):
            registry.datatype(Flagged)
        with pytest.raises(DatatypeError, match="Flagged.flag"):
            registry.datatype(Wrapper)
        expect(sum(transport.calls.values())) == 0

    def rejects_bool_pairs():
        with pytest.raises(DatatypeError):
            DatatypeRegistry(LocalTransport()).datatype(_pair("BoolInt", ctypes.c_bool, ctypes.c_int))

    def rejects_empty_structures():
        class Nothing(ctypes.Structure):
            _fields_ = []

        with pytest.raises(DatatypeError, match="no fields"):
            check_transferable(Nothing)

    def rejects_non_plain_types():
        registry = DatatypeRegistry(LocalTransport())
        for t in (int, ctypes.c_void_p, ctypes.c_char_p):
            with pytest.raises(LayoutError):
                registry.datatype(t)

    def decorator_rejects_at_definition():
        with pytest.raises(DatatypeError):

            @transferable
            class Switch(ctypes.Structure):
                _fields_ = [("on", ctypes.c_bool), ("level", ctypes.c_int)]

    def decorator_accepts_transferable_types(expect):
        @transferable
        class Sample(ctypes.Structure):
            _fields_ = [("time", ctypes.c_double), ("values", ctypes.c_short * 4)]

        expect(Sample(1.5).time) == 1.5


def describe_transport_failures():
    def propagates_errors_without_caching(expect):
        registry = DatatypeRegistry(FailingTransport())

        with pytest.raises(TransportError, match="out of datatype handles"):
            registry.datatype(C)
        expect(C in registry) == False

        with pytest.raises(TransportError):
            registry.datatype(C)


def describe_concurrency():
    def commits_once_under_concurrent_first_requests(expect):
        transport = CountingTransport(delay=0.01)
        registry = DatatypeRegistry(transport)
        workers = 16
        barrier = threading.Barrier(workers)

        def request(_):
            barrier.wait()
            return registry.datatype(A)

        with ThreadPoolExecutor(max_workers=workers) as pool:
            handles = list(pool.map(request, range(workers)))

        expect(all(h is handles[0] for h in handles)) == True
        expect(handles[0].committed) == True
        expect(transport.calls["create_composite"]) == 3
        expect(transport.calls["commit"]) == 3
