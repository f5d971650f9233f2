"""
Arithmetic throughput and element-wise vector kernels.
"""

import numpy as np
import triton
import triton.language as tl

from ..backends.base import Kernel, LaunchDomain

FMA_OPS_PER_THREAD = 1000
FLOPS_PER_FMA = 2  # 1 mul + 1 add
BLOCK_SIZE = 1024


def fma_chain_ops(thread_count: int) -> float:
    """Operations executed by one FMA-chain launch."""
    return float(thread_count) * FMA_OPS_PER_THREAD * FLOPS_PER_FMA


# =============================================================================
# Dependent FMA chains
# =============================================================================


@triton.jit
def fp32_fma_triton_kernel(output_ptr, n_elements, ITERATIONS: tl.constexpr, BLOCK_SIZE: tl.constexpr):
    """FP32 dependent multiply-add chain per thread."""
    pid = tl.program_id(axis=0)
    offsets = pid * BLOCK_SIZE + tl.arange(0, BLOCK_SIZE)
    mask = offsets < n_elements

    val = offsets.to(tl.float32) * 0.001
    for _ in range(ITERATIONS):
        val = val * 1.0001 + 0.0001

    tl.store(output_ptr + offsets, val, mask=mask)


@triton.jit
def fp64_fma_triton_kernel(output_ptr, n_elements, ITERATIONS: tl.constexpr, BLOCK_SIZE: tl.constexpr):
    """FP64 dependent multiply-add chain per thread."""
    pid = tl.program_id(axis=0)
    offsets = pid * BLOCK_SIZE + tl.arange(0, BLOCK_SIZE)
    mask = offsets < n_elements

    val = offsets.to(tl.float64) * 0.001
    for _ in range(ITERATIONS):
        val = val * 1.0001 + 0.0001

    tl.store(output_ptr + offsets, val, mask=mask)


@triton.jit
def int32_fma_triton_kernel(output_ptr, n_elements, ITERATIONS: tl.constexpr, BLOCK_SIZE: tl.constexpr):
    """Int32 dependent multiply-add chain per thread (wraps on overflow)."""
    pid = tl.program_id(axis=0)
    offsets = pid * BLOCK_SIZE + tl.arange(0, BLOCK_SIZE)
    mask = offsets < n_elements

    val = offsets
    for _ in range(ITERATIONS):
        val = val * 3 + 7

    tl.store(output_ptr + offsets, val, mask=mask)


def _fma_chain_launcher(triton_kernel):
    def launch(domain: LaunchDomain, output, *_scalars) -> None:
        n_elements = domain.thread_count
        grid = (triton.cdiv(n_elements, BLOCK_SIZE),)
        triton_kernel[grid](
            output, n_elements, ITERATIONS=FMA_OPS_PER_THREAD, BLOCK_SIZE=BLOCK_SIZE
        )

    return launch


def _fma_chain_host(dtype, scale, mul, add):
    def run(domain: LaunchDomain, output, *_scalars) -> None:
        n_elements = min(domain.thread_count, output.size)
        val = np.arange(n_elements, dtype=dtype)
        if scale is not None:
            val *= dtype(scale)
        for _ in range(FMA_OPS_PER_THREAD):
            np.multiply(val, mul, out=val)
            np.add(val, add, out=val)
        output[:n_elements] = val

    return run


FP32_FMA = Kernel(
    "fp32_fma",
    host=_fma_chain_host(np.float32, 0.001, np.float32(1.0001), np.float32(0.0001)),
    device=_fma_chain_launcher(fp32_fma_triton_kernel),
)

FP64_FMA = Kernel(
    "fp64_fma",
    host=_fma_chain_host(np.float64, 0.001, 1.0001, 0.0001),
    device=_fma_chain_launcher(fp64_fma_triton_kernel),
)

INT32_FMA = Kernel(
    "int32_fma",
    host=_fma_chain_host(np.int32, None, np.int32(3), np.int32(7)),
    device=_fma_chain_launcher(int32_fma_triton_kernel),
)


# =============================================================================
# Vector operations
# =============================================================================


@triton.jit
def vector_add_triton_kernel(a_ptr, b_ptr, c_ptr, n_elements, BLOCK_SIZE: tl.constexpr):
    """c = a + b."""
    pid = tl.program_id(axis=0)
    offsets = pid * BLOCK_SIZE + tl.arange(0, BLOCK_SIZE)
    mask = offsets < n_elements

    a = tl.load(a_ptr + offsets, mask=mask)
    b = tl.load(b_ptr + offsets, mask=mask)
    tl.store(c_ptr + offsets, a + b, mask=mask)


@triton.jit
def vector_fma_triton_kernel(a_ptr, b_ptr, c_ptr, n_elements, BLOCK_SIZE: tl.constexpr):
    """c = a * b + c, in place."""
    pid = tl.program_id(axis=0)
    offsets = pid * BLOCK_SIZE + tl.arange(0, BLOCK_SIZE)
    mask = offsets < n_elements

    a = tl.load(a_ptr + offsets, mask=mask)
    b = tl.load(b_ptr + offsets, mask=mask)
    c = tl.load(c_ptr + offsets, mask=mask)
    tl.store(c_ptr + offsets, a * b + c, mask=mask)


def _vector_launcher(triton_kernel):
    def launch(domain: LaunchDomain, a, b, c) -> None:
        n_elements = domain.thread_count
        grid = (triton.cdiv(n_elements, BLOCK_SIZE),)
        triton_kernel[grid](a, b, c, n_elements, BLOCK_SIZE=BLOCK_SIZE)

    return launch


def vector_add_host(domain: LaunchDomain, a, b, c) -> None:
    n = domain.thread_count
    np.add(a[:n], b[:n], out=c[:n])


def vector_fma_host(domain: LaunchDomain, a, b, c) -> None:
    n = domain.thread_count
    c[:n] += a[:n] * b[:n]


VECTOR_ADD = Kernel(
    "vector_add",
    host=vector_add_host,
    device=_vector_launcher(vector_add_triton_kernel),
)

VECTOR_FMA = Kernel(
    "vector_fma",
    host=vector_fma_host,
    device=_vector_launcher(vector_fma_triton_kernel),
)
