"""
Naive GEMM: the correctness oracle.

Triple nested loop with a float32 accumulator and strictly increasing k.
Compiled with Numba for speed but WITHOUT fastmath, so the compiler may not
reorder the sum: this accumulation order is the reference result.
"""

import numpy as np
from numba import njit

from parallel_gemm.kernels.errors import check_dimensions
from parallel_gemm.kernels.matrix import DTYPE, Matrix


@njit(cache=True)
def naive_kernel(A, B, C):
    """C[i, j] = sum_k A[i, k] * B[k, j], k ascending. C must be pre-allocated."""
    M, K = A.shape
    N = B.shape[1]
    for i in range(M):
        for j in range(N):
            acc = np.float32(0.0)
            for k in range(K):
                acc += A[i, k] * B[k, j]
            C[i, j] = acc
    return C


def gemm_naive(a, b):
    """
    Compute C = A @ B with the reference triple loop.

    Args:
        a: Matrix of shape (M, K)
        b: Matrix of shape (K, N)

    Returns:
        New Matrix of shape (M, N)

    Raises:
        DimensionMismatch: if a.cols != b.rows
    """
    check_dimensions(a, b)
    c = np.zeros((a.rows, b.cols), dtype=DTYPE)
    naive_kernel(a.to_numpy(), b.to_numpy(), c)
    return Matrix.adopt(a.rows, b.cols, c)


if __name__ == "__main__":
    M, K, N = 128, 256, 64
    a = Matrix.random(M, K, seed=42)
    b = Matrix.random(K, N, seed=43)

    print("Running naive GEMM...")
    c = gemm_naive(a, b)

    if np.allclose(c.to_numpy(), a.to_numpy() @ b.to_numpy(), rtol=1e-4):
        print("✓ Correctness check passed!")
    else:
        print("✗ Correctness check failed!")
