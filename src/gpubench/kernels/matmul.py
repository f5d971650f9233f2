"""
Naive and shared-memory tiled matrix multiplication kernels.

Matrices are square (n x n), row-major, stored as flat float32 buffers.
"""

import numpy as np
import triton
import triton.language as tl

from ..backends.base import Kernel, LaunchDomain

TILE_SIZE = 16
NAIVE_BLOCK_SIZE = 256


def matmul_flops(n: int) -> float:
    """Count FLOPS for an n x n matmul (one multiply + one add per step)."""
    return 2.0 * n * n * n


def matmul_bytes(n: int) -> int:
    """Working set of A, B and C in bytes."""
    return 3 * n * n * 4


def tiled_launch_domain(n: int) -> LaunchDomain:
    """Group dims (T, T), grid dims ceil(n / T) per axis."""
    groups = triton.cdiv(n, TILE_SIZE)
    return LaunchDomain.grouped((groups, groups), (TILE_SIZE, TILE_SIZE))


# =============================================================================
# Naive: one thread per output element
# =============================================================================


@triton.jit
def naive_matmul_triton_kernel(
    a_ptr,
    b_ptr,
    c_ptr,
    n,
    rows,
    cols,
    BLOCK_SIZE: tl.constexpr,
):
    """Each lane owns one (row, col) output and walks the shared dimension."""
    pid = tl.program_id(axis=0)
    offsets = pid * BLOCK_SIZE + tl.arange(0, BLOCK_SIZE)
    row = offsets // cols
    col = offsets % cols

    # out-of-range lanes load zeros and never store
    mask = (offsets < rows * cols) & (row < n) & (col < n)

    acc = tl.zeros((BLOCK_SIZE,), dtype=tl.float32)
    for k in range(0, n):
        a = tl.load(a_ptr + row * n + k, mask=mask, other=0.0)
        b = tl.load(b_ptr + k * n + col, mask=mask, other=0.0)
        acc += a * b

    tl.store(c_ptr + row * n + col, acc, mask=mask)


def naive_matmul_triton(domain: LaunchDomain, a, b, c, n: int) -> None:
    """Triton launcher for the naive kernel."""
    rows, cols = domain.extent
    grid = (triton.cdiv(rows * cols, NAIVE_BLOCK_SIZE),)
    naive_matmul_triton_kernel[grid](a, b, c, n, rows, cols, BLOCK_SIZE=NAIVE_BLOCK_SIZE)


def naive_matmul_host(domain: LaunchDomain, a, b, c, n: int) -> None:
    """NumPy naive matmul, vectorized across threads, sequential in k."""
    rows, cols = domain.extent
    # threads past the matrix edge return immediately
    rows, cols = min(rows, n), min(cols, n)

    a2 = a[: n * n].reshape(n, n)
    b2 = b[: n * n].reshape(n, n)

    acc = np.zeros((rows, cols), dtype=np.float32)
    for k in range(n):
        acc += np.multiply.outer(a2[:rows, k], b2[k, :cols])

    c[: n * n].reshape(n, n)[:rows, :cols] = acc


# =============================================================================
# Tiled: T x T shared-memory tiles
# =============================================================================


@triton.jit
def tiled_matmul_triton_kernel(
    a_ptr,
    b_ptr,
    c_ptr,
    n,
    TILE: tl.constexpr,
):
    """One program per T x T output tile.

    Triton stages the loaded tiles in shared memory and inserts the
    stage/consume barriers itself. Boundary tiles are zero-padded through
    the load mask so the dot product has no branches.
    """
    pid_row = tl.program_id(axis=0)
    pid_col = tl.program_id(axis=1)

    rows = pid_row * TILE + tl.arange(0, TILE)
    cols = pid_col * TILE + tl.arange(0, TILE)

    acc = tl.zeros((TILE, TILE), dtype=tl.float32)
    for t in range(0, tl.cdiv(n, TILE)):
        ks = t * TILE + tl.arange(0, TILE)

        tile_a = tl.load(
            a_ptr + rows[:, None] * n + ks[None, :],
            mask=(rows[:, None] < n) & (ks[None, :] < n),
            other=0.0,
        )
        tile_b = tl.load(
            b_ptr + ks[:, None] * n + cols[None, :],
            mask=(ks[:, None] < n) & (cols[None, :] < n),
            other=0.0,
        )

        # full fp32 products; tf32 would drift past the verification tolerance
        acc += tl.dot(tile_a, tile_b, input_precision="ieee")

    c_mask = (rows[:, None] < n) & (cols[None, :] < n)
    tl.store(c_ptr + rows[:, None] * n + cols[None, :], acc, mask=c_mask)


def _check_tile_group(domain: LaunchDomain) -> None:
    if domain.group is None or tuple(domain.group) != (TILE_SIZE, TILE_SIZE):
        raise ValueError(
            f"Tiled matmul requires group dims ({TILE_SIZE}, {TILE_SIZE}), got {domain.group}"
        )


def tiled_matmul_triton(domain: LaunchDomain, a, b, c, n: int) -> None:
    """Triton launcher for the tiled kernel."""
    _check_tile_group(domain)
    tiled_matmul_triton_kernel[tuple(domain.grid)](a, b, c, n, TILE=TILE_SIZE)


def tiled_matmul_host(domain: LaunchDomain, a, b, c, n: int) -> None:
    """NumPy tiled matmul, vectorized across thread groups.

    Every group stages a T x T tile of A and of B per step along the
    shared dimension, then accumulates their product.
    """
    _check_tile_group(domain)
    grid_rows, grid_cols = domain.grid
    tile = TILE_SIZE
    num_tiles = triton.cdiv(n, tile)

    a2 = a[: n * n].reshape(n, n)
    b2 = b[: n * n].reshape(n, n)
    row_limit = min(n, grid_rows * tile)
    col_limit = min(n, grid_cols * tile)

    # zero padding replaces per-element bounds checks in the inner loop
    a_pad = np.zeros((grid_rows * tile, num_tiles * tile), dtype=np.float32)
    b_pad = np.zeros((num_tiles * tile, grid_cols * tile), dtype=np.float32)
    a_pad[:row_limit, :n] = a2[:row_limit]
    b_pad[:n, :col_limit] = b2[:, :col_limit]

    acc = np.zeros((grid_rows, grid_cols, tile, tile), dtype=np.float32)
    for t in range(num_tiles):
        ks = slice(t * tile, (t + 1) * tile)

        tile_a = a_pad[:, ks].reshape(grid_rows, tile, tile)
        tile_b = b_pad[ks, :].reshape(tile, grid_cols, tile).transpose(1, 0, 2)
        # barrier: tiles fully staged before any group consumes them

        acc += np.matmul(tile_a[:, None], tile_b[None, :])
        # barrier: consumption done before the next stage overwrites the tiles

    result = acc.transpose(0, 2, 1, 3).reshape(grid_rows * tile, grid_cols * tile)
    c[: n * n].reshape(n, n)[:row_limit, :col_limit] = result[:row_limit, :col_limit]


NAIVE_MATMUL = Kernel(
    "naive_matmul",
    host=naive_matmul_host,
    device=naive_matmul_triton,
)

TILED_MATMUL = Kernel(
    "tiled_matmul",
    host=tiled_matmul_host,
    device=tiled_matmul_triton,
    requires_groups=True,
)
