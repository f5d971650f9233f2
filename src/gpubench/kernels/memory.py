"""
Memory access pattern kernels and the empty launch-overhead kernel.
"""

import numpy as np
import triton
import triton.language as tl

from ..backends.base import Kernel, LaunchDomain

BLOCK_SIZE = 1024


@triton.jit
def sequential_read_triton_kernel(input_ptr, output_ptr, n_elements, BLOCK_SIZE: tl.constexpr):
    """Thread i copies element i."""
    pid = tl.program_id(axis=0)
    offsets = pid * BLOCK_SIZE + tl.arange(0, BLOCK_SIZE)
    mask = offsets < n_elements

    data = tl.load(input_ptr + offsets, mask=mask)
    tl.store(output_ptr + offsets, data, mask=mask)


@triton.jit
def random_read_triton_kernel(input_ptr, indices_ptr, output_ptr, n_elements, BLOCK_SIZE: tl.constexpr):
    """Thread i gathers element indices[i]."""
    pid = tl.program_id(axis=0)
    offsets = pid * BLOCK_SIZE + tl.arange(0, BLOCK_SIZE)
    mask = offsets < n_elements

    idx = tl.load(indices_ptr + offsets, mask=mask, other=0)
    data = tl.load(input_ptr + idx, mask=mask)
    tl.store(output_ptr + offsets, data, mask=mask)


@triton.jit
def strided_read_triton_kernel(
    input_ptr, output_ptr, n_elements, stride, max_index, BLOCK_SIZE: tl.constexpr
):
    """Thread i reads element (i * stride) % max_index."""
    pid = tl.program_id(axis=0)
    offsets = pid * BLOCK_SIZE + tl.arange(0, BLOCK_SIZE)
    mask = offsets < n_elements

    read_idx = (offsets.to(tl.int64) * stride) % max_index
    data = tl.load(input_ptr + read_idx, mask=mask)
    tl.store(output_ptr + offsets, data, mask=mask)


@triton.jit
def empty_triton_kernel(dummy_ptr):
    """Does nothing; measures launch overhead."""
    pid = tl.program_id(axis=0)  # noqa: F841


def _grid(domain: LaunchDomain):
    return (triton.cdiv(domain.thread_count, BLOCK_SIZE),)


def sequential_read_triton(domain: LaunchDomain, src, dst) -> None:
    sequential_read_triton_kernel[_grid(domain)](src, dst, domain.thread_count, BLOCK_SIZE=BLOCK_SIZE)


def random_read_triton(domain: LaunchDomain, src, indices, dst) -> None:
    random_read_triton_kernel[_grid(domain)](
        src, indices, dst, domain.thread_count, BLOCK_SIZE=BLOCK_SIZE
    )


def strided_read_triton(domain: LaunchDomain, src, dst, stride: int, max_index: int) -> None:
    strided_read_triton_kernel[_grid(domain)](
        src, dst, domain.thread_count, stride, max_index, BLOCK_SIZE=BLOCK_SIZE
    )


def empty_triton(domain: LaunchDomain, dummy) -> None:
    empty_triton_kernel[(max(1, domain.thread_count),)](dummy)


def sequential_read_host(domain: LaunchDomain, src, dst) -> None:
    n = domain.thread_count
    dst[:n] = src[:n]


def random_read_host(domain: LaunchDomain, src, indices, dst) -> None:
    n = domain.thread_count
    np.take(src, indices[:n], out=dst[:n])


def strided_read_host(domain: LaunchDomain, src, dst, stride: int, max_index: int) -> None:
    n = domain.thread_count
    read_idx = (np.arange(n, dtype=np.int64) * stride) % max_index
    np.take(src, read_idx, out=dst[:n])


def empty_host(domain: LaunchDomain, dummy) -> None:
    pass


SEQUENTIAL_READ = Kernel("sequential_read", host=sequential_read_host, device=sequential_read_triton)
RANDOM_READ = Kernel("random_read", host=random_read_host, device=random_read_triton)
STRIDED_READ = Kernel("strided_read", host=strided_read_host, device=strided_read_triton)
EMPTY = Kernel("empty", host=empty_host, device=empty_triton)
