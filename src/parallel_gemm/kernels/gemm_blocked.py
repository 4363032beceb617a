"""
Blocked, parallel GEMM (C = A @ B).
Features:
- Row-panel partitioning of C, one fork-join task per panel
- Column blocking of C/B and K tiling for cache locality
- Disjoint row slices of C per task: no locks during accumulation
- Numba micro-kernel with nogil=True so panels run on real cores
- Replaceable tile kernel (hook for a future SIMD implementation)

Accumulation order: for a fixed (i, j) every k is added into C[i, j] in
ascending order (tile 0, then tile 1, ...), so repeated runs with the same
configuration are bit-identical.
"""

from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from contextlib import contextmanager
from typing import NamedTuple

import numpy as np
from numba import njit

from parallel_gemm.kernels.config import BlockConfig, resolve_workers
from parallel_gemm.kernels.errors import check_dimensions
from parallel_gemm.kernels.gemm_naive import gemm_naive
from parallel_gemm.kernels.matrix import DTYPE, Matrix

# float32 tolerance for comparing against the naive oracle
GEMM_RTOL = 1e-5
GEMM_ATOL = 1e-6


class Panel(NamedTuple):
    """Half-open row range [start, stop) of C owned by one task."""
    start: int
    stop: int

    @property
    def height(self):
        return self.stop - self.start


def partition_rows(extent, block):
    """
    Split [0, extent) into contiguous, disjoint ranges of at most `block`.

    The last range is clamped to the remainder; nothing is dropped.
    """
    if block <= 0:
        raise ValueError(f"block must be positive, got {block}")
    return [Panel(start, min(start + block, extent)) for start in range(0, extent, block)]


@njit(nogil=True, cache=True)
def tile_multiply_accumulate(A, B, C_panel, row0, col0, col1, k0, k1):
    """
    C_panel[:, col0:col1] += A[row0:row0+h, k0:k1] @ B[k0:k1, col0:col1]

    C_panel is the panel's slice of C, so local row 0 is global row `row0`.
    Loop order i -> k -> j keeps B and C rows streaming through cache.
    """
    for local_i in range(C_panel.shape[0]):
        i = row0 + local_i
        for k in range(k0, k1):
            a_ik = A[i, k]
            for j in range(col0, col1):
                C_panel[local_i, j] += a_ik * B[k, j]


def multiply_panel(A, B, C_panel, row0, tile_k, tile_n, tile_kernel=tile_multiply_accumulate):
    """Accumulate one row panel: column blocks outer, K tiles in increasing order inner."""
    K = A.shape[1]
    N = B.shape[1]
    for j0 in range(0, N, tile_n):
        j1 = min(j0 + tile_n, N)
        for k0 in range(0, K, tile_k):
            k1 = min(k0 + tile_k, K)
            tile_kernel(A, B, C_panel, row0, j0, j1, k0, k1)


@contextmanager
def worker_pool(executor=None, num_workers=None):
    """
    Thread pool scoped to one GEMM call.

    A caller-supplied ThreadPoolExecutor is yielded as-is and left running;
    otherwise a fresh one is created and shut down on exit. Panels write into
    a shared output buffer, so only thread pools are accepted: a process pool
    would write into pickled copies and lose every result.
    """
    if executor is not None:
        _require_thread_pool(executor)
        yield executor
        return
    with ThreadPoolExecutor(max_workers=resolve_workers(num_workers)) as pool:
        yield pool


def _require_thread_pool(executor):
    if not isinstance(executor, ThreadPoolExecutor):
        raise TypeError(
            f"executor must be a concurrent.futures.ThreadPoolExecutor, got {type(executor).__name__}"
        )


def gemm_parallel(a, b, config=None, executor=None, tile_kernel=None):
    """
    Compute C = A @ B with cache blocking and fork-join parallelism over row panels.

    Args:
        a: Matrix of shape (M, K)
        b: Matrix of shape (K, N)
        config: BlockConfig (panel/tile sizes, worker count), default BlockConfig()
        executor: optional ThreadPoolExecutor to run panels on (left running)
        tile_kernel: optional replacement for tile_multiply_accumulate

    Returns:
        New Matrix of shape (M, N)

    Raises:
        DimensionMismatch: if a.cols != b.rows (before anything is allocated)
        TypeError: if executor is not a ThreadPoolExecutor (before dispatch)
        Any exception raised by a panel task; no partial result is returned
    """
    check_dimensions(a, b)
    if executor is not None:
        _require_thread_pool(executor)
    config = config or BlockConfig()
    tile_kernel = tile_kernel or tile_multiply_accumulate

    M, K, N = a.rows, a.cols, b.cols
    A = a.to_numpy()
    B = b.to_numpy()
    C = np.zeros((M, N), dtype=DTYPE)

    # Panels are fixed before dispatch; each task only ever sees its own slice
    panels = partition_rows(M, config.panel_rows)
    tile_k = max(1, min(config.tile_k, K))
    tile_n = max(1, min(config.tile_n, N))

    with worker_pool(executor, config.resolved_workers()) as pool:
        futures = [
            pool.submit(multiply_panel, A, B, C[p.start:p.stop], p.start, tile_k, tile_n, tile_kernel)
            for p in panels
        ]
        done, pending = wait(futures, return_when=FIRST_EXCEPTION)
        if pending:
            # A panel failed: drop queued work, let running panels finish
            for f in pending:
                f.cancel()
            wait(pending)
        for f in futures:
            if f.done() and not f.cancelled() and f.exception() is not None:
                raise f.exception()

    return Matrix.adopt(M, N, C)


def verify_correctness(a, b, c_result, rtol=GEMM_RTOL, atol=GEMM_ATOL):
    """Verify that c_result matches the naive oracle within tolerance."""
    c_ref = gemm_naive(a, b)
    return c_result.shape == c_ref.shape and np.allclose(
        c_result.to_numpy(), c_ref.to_numpy(), rtol=rtol, atol=atol
    )


if __name__ == "__main__":
    M, K, N = 128, 256, 64
    a = Matrix.random(M, K, seed=42)
    b = Matrix.random(K, N, seed=43)

    print("Running blocked parallel GEMM...")
    # Warmup (JIT compilation)
    _ = gemm_parallel(a, b)

    c = gemm_parallel(a, b)

    if verify_correctness(a, b, c):
        print("✓ Correctness check passed!")
    else:
        print("✗ Correctness check failed!")
        diff = np.max(np.abs(c.to_numpy() - gemm_naive(a, b).to_numpy()))
        print(f"Max diff: {diff:.6e}")
