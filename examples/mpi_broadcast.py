"""Broadcast a structure from rank 0 with a synthesized MPI datatype.

Run with: mpiexec -n 4 python examples/mpi_broadcast.py
"""

import ctypes

from mpi4py import MPI

from layoutkit.transfer import datatype, transferable
from layoutkit.transfer.mpi import MPITransport


@transferable
class Sample(ctypes.Structure):
    _fields_ = [
        ("a0", ctypes.c_double),
        ("a1", ctypes.c_int * 2),
        ("a2", ctypes.c_char),
    ]


def main():
    transport = MPITransport(MPI.COMM_WORLD)
    rank = transport.comm.Get_rank()

    sample = Sample()
    if rank == 0:
        sample = Sample(1.0, (ctypes.c_int * 2)(2, 3), b"A")

    transport.bcast(sample, datatype(Sample, transport), root=0)
    print(f"[{rank}] a0={sample.a0}, a1={list(sample.a1)}, a2={sample.a2.decode()}")


if __name__ == "__main__":
    main()
