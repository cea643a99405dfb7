"""Boundary between descriptor synthesis and the transport that owns datatypes."""

from collections.abc import Sequence
from typing import Any, NamedTuple, Protocol

from .tags import LeafTag


class TransportError(RuntimeError):
    """Raised when a transport cannot build or use a datatype."""


class FieldTriple(NamedTuple):
    """One block of a composite datatype."""

    count: int
    displacement: int
    element: Any  # transport handle of a leaf or a committed composite


class Transport(Protocol):
    """Datatype operations a transport must offer.

    Handles are opaque to callers; only committed handles may be used to
    move data. Failures are raised by the transport and propagate unchanged.
    """

    def leaf_tag(self, tag: LeafTag) -> Any:
        """Return the predefined handle for a leaf or pair tag."""
        ...

    def create_composite(self, triples: Sequence[FieldTriple]) -> Any:
        """Assemble a composite datatype from (count, displacement, element) blocks."""
        ...

    def get_extent(self, handle: Any) -> tuple[int, int]:
        """Return (lower bound, extent) of a datatype."""
        ...

    def resize(self, handle: Any, lb: int, extent: int) -> Any:
        """Return a datatype with the same layout and the given extent."""
        ...

    def commit(self, handle: Any) -> Any:
        """Finalize a datatype so it can be used for transfers."""
        ...
