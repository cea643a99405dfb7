"""Tests for the MPI transport, run on a single-rank communicator."""

import ctypes

import pytest

MPI = pytest.importorskip("mpi4py.MPI")

from layoutkit.transfer import DatatypeRegistry, PairTag, PrimitiveTypeTag  # noqa: E402
from layoutkit.transfer.mpi import MPITransport  # noqa: E402
from layoutkit.tests.structs import A, FloatInt, Padded, make_a  # noqa: E402


@pytest.fixture
def transport():
    return MPITransport(MPI.COMM_SELF)


def describe_mpi_transport():
    def defaults_to_world_communicator(expect):
        expect(MPITransport().comm) == MPI.COMM_WORLD

    def maps_tags_to_predefined_datatypes(expect, transport):
        expect(transport.leaf_tag(PrimitiveTypeTag.DOUBLE)) == MPI.DOUBLE
        expect(transport.leaf_tag(PairTag.FLOAT_INT)) == MPI.FLOAT_INT

    def returns_pair_datatypes(expect, transport):
        expect(DatatypeRegistry(transport).datatype(FloatInt)) == MPI.FLOAT_INT

    def matches_structure_extents(expect, transport):
        registry = DatatypeRegistry(transport)

        expect(registry.datatype(A).Get_extent()) == (0, ctypes.sizeof(A))
        expect(registry.datatype(Padded).Get_extent()) == (0, 24)
        expect(registry.datatype(A).Get_size()) == 63

    def broadcasts_structures(expect, transport):
        handle = DatatypeRegistry(transport).datatype(A)
        value = make_a()

        transport.bcast(value, handle, root=0)

        expect(list(value.a0)) == [0, 1, 2]
        expect(value.a3[1].b0) == 2

    def broadcasts_arrays(expect, transport):
        handle = DatatypeRegistry(transport).datatype(A)
        values = (A * 2)(make_a(), make_a())

        transport.bcast(values, handle, root=0, count=2)

        expect(values[1].a5.c0) == 5
