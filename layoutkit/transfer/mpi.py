"""Transport backed by MPI through mpi4py."""

from collections.abc import Sequence
from typing import Any

from mpi4py import MPI

from .tags import LeafTag
from .transport import FieldTriple


class MPITransport:
    """Builds MPI datatypes and broadcasts ctypes values with them.

    Example:
        transport = MPITransport()
        dt = datatype(Particle, transport)
        transport.bcast(particle, dt, root=0)
    """

    def __init__(self, comm: MPI.Comm | None = None) -> None:
        self.comm = comm if comm is not None else MPI.COMM_WORLD

    def leaf_tag(self, tag: LeafTag) -> MPI.Datatype:
        return getattr(MPI, tag.value)

    def create_composite(self, triples: Sequence[FieldTriple]) -> MPI.Datatype:
        return MPI.Datatype.Create_struct(
            [t.count for t in triples],
            [t.displacement for t in triples],
            [t.element for t in triples],
        )

    def get_extent(self, handle: MPI.Datatype) -> tuple[int, int]:
        lb, extent = handle.Get_extent()
        return lb, extent

    def resize(self, handle: MPI.Datatype, lb: int, extent: int) -> MPI.Datatype:
        resized = handle.Create_resized(lb, extent)
        handle.Free()
        return resized

    def commit(self, handle: MPI.Datatype) -> MPI.Datatype:
        return handle.Commit()

    def bcast(self, obj: Any, handle: MPI.Datatype, root: int = 0, count: int = 1) -> None:
        """Broadcast `count` values held in a ctypes object from root to all ranks."""
        self.comm.Bcast([obj, count, handle], root=root)
