"""
Benchmark script for GEMM kernels.
Tests naive, NumPy (BLAS reference) and blocked parallel implementations.
Usage: pgemm-bench [--sizes 256 512] [--workers 4] [--verbose-sweep]
"""

import os
import time
from pathlib import Path

import numpy as np
import pandas as pd

from parallel_gemm.bench import BLAS_THREADS_PINNED
from parallel_gemm.kernels.config import BlockConfig
from parallel_gemm.kernels.gemm_blocked import gemm_parallel
from parallel_gemm.kernels.gemm_naive import gemm_naive
from parallel_gemm.kernels.matrix import Matrix

# Naive is O(MKN) with no blocking: only time it below this many MACs
NAIVE_MAX_PROBLEM = 64 * 1024 * 1024

DEFAULT_CONFIGS = [
    (64, 128, 64),
    (128, 256, 128),
    (256, 512, 256),
    (512, 1024, 512),
    (1024, 1024, 1024),
]


def blas_threads_banner():
    """BLAS thread setting as it actually applies to this process."""
    threads = os.environ.get("OMP_NUM_THREADS", "default")
    if BLAS_THREADS_PINNED:
        return threads
    return f"{threads} (not applied: NumPy was imported before parallel_gemm.bench)"


def _time_kernel(fn, num_warmup, num_runs):
    for _ in range(num_warmup):
        fn()
    times = []
    result = None
    for _ in range(num_runs):
        t_start = time.perf_counter()
        result = fn()
        t_end = time.perf_counter()
        times.append(t_end - t_start)
    return np.array(times), result


def _row(kernel, M, K, N, times, **extra):
    flops = 2 * M * K * N
    median = np.median(times)
    row = {
        'kernel': kernel,
        'M': M, 'K': K, 'N': N,
        'flops': flops,
        'bytes_moved': (M * K + K * N + M * N) * 4,  # float32 = 4 bytes
        'latency_ms': median * 1000,
        'latency_p50_ms': np.percentile(times, 50) * 1000,
        'latency_p95_ms': np.percentile(times, 95) * 1000,
        'latency_p99_ms': np.percentile(times, 99) * 1000,
        'throughput_gflops': (flops / 1e9) / median if median > 0 else float('nan'),
    }
    row.update(extra)
    return row


def _check(name, c, c_ref):
    # BLAS reorders the sum, so this is looser than the naive-vs-parallel tolerance
    if not np.allclose(c, c_ref, rtol=1e-3, atol=1e-3):
        max_diff = np.max(np.abs(c - c_ref)) if c_ref.size else 0.0
        raise AssertionError(f"{name} correctness check failed: max_diff={max_diff:.6e}")


def benchmark_gemm(configs, num_warmup=2, num_runs=10, block_sizes=(32, 64, 128),
                   num_workers=None, verbose_sweep=False):
    """
    Benchmark GEMM kernels.

    Args:
        configs: list of (M, K, N) tuples
        num_warmup: warmup runs per kernel (covers JIT compilation)
        num_runs: timed runs per kernel
        block_sizes: panel heights swept for the parallel kernel
        num_workers: thread pool size for the parallel kernel (None = cpu count)
        verbose_sweep: print the sweep table for every size

    Returns:
        DataFrame with one row per (kernel, shape)
    """
    results = []

    for M, K, N in configs:
        print(f"\nBenchmarking GEMM: M={M}, K={K}, N={N}")
        a = Matrix.random(M, K, seed=42)
        b = Matrix.random(K, N, seed=43)
        A, B = a.to_numpy(), b.to_numpy()

        # BLAS result is the reference for every other kernel here
        C_ref = A @ B

        # 1. Naive
        if M * K * N <= NAIVE_MAX_PROBLEM:
            print("  Testing naive (reference triple loop)...")
            times, c = _time_kernel(lambda: gemm_naive(a, b), 1, max(1, num_runs // 5))
            _check("naive", c.to_numpy(), C_ref)
            results.append(_row('naive', M, K, N, times))
        else:
            print("    Skipping naive (problem too large)")

        # 2. NumPy
        print("  Testing NumPy (BLAS)...")
        times, c = _time_kernel(lambda: A @ B, num_warmup, num_runs)
        results.append(_row('numpy', M, K, N, times))

        # 3. Blocked parallel - sweep panel heights and keep the best
        print("  Testing blocked parallel...")
        base = BlockConfig(num_workers=num_workers)
        sweep_results = {}
        best_time = float('inf')
        best_block = base.panel_rows
        for block in block_sizes:
            config = base.with_overrides(panel_rows=block)
            sweep_times, _ = _time_kernel(lambda: gemm_parallel(a, b, config), num_warmup, num_runs)
            median_time = np.median(sweep_times)
            sweep_results[block] = median_time * 1000
            if median_time < best_time:
                best_time = median_time
                best_block = block

        if verbose_sweep or (M, K, N) == configs[0]:
            print(f"    Panel size sweep (latency ms): {sweep_results}")
        print(f"    Optimal panel rows: {best_block}")

        config = base.with_overrides(panel_rows=best_block)
        times, c = _time_kernel(lambda: gemm_parallel(a, b, config), num_warmup, num_runs)
        _check("parallel", c.to_numpy(), C_ref)
        results.append(_row('parallel', M, K, N, times,
                            panel_rows=best_block,
                            num_workers=config.resolved_workers()))

    return pd.DataFrame(results)


def summarize_speedup(df):
    """Per-shape speedup of the parallel kernel over naive and NumPy."""
    pivot = df.pivot_table(index=['M', 'K', 'N'], columns='kernel', values='latency_ms')
    summary = pd.DataFrame(index=pivot.index)
    if 'naive' in pivot:
        summary['speedup_vs_naive'] = pivot['naive'] / pivot['parallel']
    if 'numpy' in pivot:
        summary['speedup_vs_numpy'] = pivot['numpy'] / pivot['parallel']
    return summary.reset_index()


def main(argv=None):
    import argparse

    parser = argparse.ArgumentParser(description='Benchmark GEMM kernels')
    parser.add_argument('--sizes', type=int, nargs='+',
                        help='Square sizes to benchmark (M=K=N); default is a fixed sweep')
    parser.add_argument('--workers', type=int, default=None,
                        help='Worker threads for the parallel kernel (default: cpu count)')
    parser.add_argument('--runs', type=int, default=10, help='Timed runs per kernel')
    parser.add_argument('--verbose-sweep', action='store_true',
                        help='Print panel size sweep results for all sizes')
    parser.add_argument('--output', type=Path, default=Path('results') / 'gemm_results.csv',
                        help='CSV output path')
    args = parser.parse_args(argv)

    configs = [(n, n, n) for n in args.sizes] if args.sizes else DEFAULT_CONFIGS

    print("=" * 70)
    print("GEMM Benchmark Suite")
    print("=" * 70)
    print(f"  - NumPy BLAS threads: {blas_threads_banner()}")
    print(f"  - Parallel workers: {args.workers or os.cpu_count()}")
    print("=" * 70)

    df = benchmark_gemm(configs, num_runs=args.runs,
                        num_workers=args.workers, verbose_sweep=args.verbose_sweep)

    args.output.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(args.output, index=False)
    print(f"\nResults saved to: {args.output}")

    print("\n" + "=" * 60)
    print("Summary")
    print("=" * 60)
    print(df.to_string(index=False))
    print()
    print(summarize_speedup(df).to_string(index=False))


if __name__ == "__main__":
    main()
