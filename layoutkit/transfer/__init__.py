"""Transport datatypes synthesized from reflected structure layouts.

The MPI transport lives in ``layoutkit.transfer.mpi`` and needs the ``mpi``
extra (mpi4py).
"""

from .synthesis import DatatypeError as DatatypeError
from .synthesis import DatatypeRegistry as DatatypeRegistry
from .synthesis import check_transferable as check_transferable
from .synthesis import datatype as datatype
from .synthesis import registry_for as registry_for
from .synthesis import transferable as transferable
from .local import LocalDatatype as LocalDatatype
from .local import LocalTransport as LocalTransport
from .tags import *
from .transport import FieldTriple as FieldTriple
from .transport import Transport as Transport
from .transport import TransportError as TransportError
