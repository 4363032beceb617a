"""
Profiling script for the GEMM kernels.
Uses cProfile to see where time goes in the naive oracle and in the
Python-side dispatch of the blocked parallel kernel.
"""

import cProfile
import pstats

from parallel_gemm.kernels.config import BlockConfig
from parallel_gemm.kernels.gemm_blocked import gemm_parallel
from parallel_gemm.kernels.gemm_naive import gemm_naive
from parallel_gemm.kernels.matrix import Matrix


def _profile(fn, *args, top=10):
    # Compile outside the profiled region
    fn(*args)

    profiler = cProfile.Profile()
    profiler.enable()
    fn(*args)
    profiler.disable()

    stats = pstats.Stats(profiler)
    stats.sort_stats('cumulative')
    print(f"\nTop {top} functions by cumulative time:")
    stats.print_stats(top)
    return stats


def profile_naive(M=64, K=128, N=64):
    """Profile the naive reference GEMM."""
    print("Profiling naive GEMM...")
    a = Matrix.random(M, K, seed=42)
    b = Matrix.random(K, N, seed=43)
    return _profile(gemm_naive, a, b)


def profile_parallel(M=256, K=256, N=256, config=None):
    """Profile the blocked parallel GEMM (small tiles to expose dispatch overhead)."""
    print("\nProfiling blocked parallel GEMM...")
    a = Matrix.random(M, K, seed=42)
    b = Matrix.random(K, N, seed=43)
    config = config or BlockConfig(panel_rows=32, tile_k=32, tile_n=64)
    return _profile(gemm_parallel, a, b, config)


if __name__ == "__main__":
    print("=" * 60)
    print("GEMM Kernel Profiling")
    print("=" * 60)

    profile_naive()
    profile_parallel()

    print("\n" + "=" * 60)
    print("Profiling complete!")
    print("=" * 60)
