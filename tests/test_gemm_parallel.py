from concurrent.futures import ProcessPoolExecutor, ThreadPoolExecutor

import numpy as np
import pytest

from parallel_gemm import (
    GEMM_ATOL,
    GEMM_RTOL,
    BlockConfig,
    DimensionMismatch,
    Matrix,
    gemm_naive,
    gemm_parallel,
    verify_correctness,
)
from parallel_gemm.kernels.config import resolve_workers
from parallel_gemm.kernels.gemm_blocked import (
    Panel,
    partition_rows,
    tile_multiply_accumulate,
    worker_pool,
)

SHAPES = [
    # Trivial
    (1, 1, 1),
    (2, 3, 2),
    (3, 3, 3),

    # Misaligned vs. the default 64-row panels
    (65, 130, 33),
    (63, 127, 65),
    (64, 64, 64),
    (129, 65, 257),

    # Skinny / fat
    (1, 300, 1),
    (300, 1, 7),
    (5, 7, 300),

    # Odd primes
    (13, 17, 19),
    (101, 103, 107),
]


def assert_matches_naive(c, a, b):
    ref = gemm_naive(a, b)
    assert c.shape == ref.shape
    np.testing.assert_allclose(c.to_numpy(), ref.to_numpy(), rtol=GEMM_RTOL, atol=GEMM_ATOL)


@pytest.mark.parametrize("M,K,N", SHAPES)
def test_matches_naive_default_blocks(M, K, N, random_pair):
    a, b = random_pair(M, K, N)
    c = gemm_parallel(a, b)
    assert c.shape == (M, N)
    assert_matches_naive(c, a, b)


@pytest.mark.parametrize("M,K,N", SHAPES)
def test_matches_naive_small_blocks(M, K, N, random_pair, small_blocks):
    a, b = random_pair(M, K, N)
    assert_matches_naive(gemm_parallel(a, b, small_blocks), a, b)


def test_concrete_2x2():
    a = Matrix.from_rows([[1, 2], [3, 4]])
    b = Matrix.from_rows([[5, 6], [7, 8]])
    assert gemm_parallel(a, b).tolist() == [[19, 22], [43, 50]]
    assert gemm_parallel(a, b, BlockConfig(panel_rows=1, tile_k=1, tile_n=1)).tolist() == [[19, 22], [43, 50]]


def test_seeded_256():
    a = Matrix.random(256, 256, seed=42)
    b = Matrix.random(256, 256, seed=1337)
    c_naive = gemm_naive(a, b)
    c_par = gemm_parallel(a, b)
    assert c_naive.shape == c_par.shape == (256, 256)
    assert c_par.allclose(c_naive, rtol=GEMM_RTOL, atol=GEMM_ATOL)
    assert verify_correctness(a, b, c_par)


def test_dimension_mismatch_fails_before_dispatch():
    calls = []

    def recording_kernel(*args):
        calls.append(args)

    with pytest.raises(DimensionMismatch) as excinfo:
        gemm_parallel(Matrix.zeros(4, 5), Matrix.zeros(6, 4), tile_kernel=recording_kernel)
    assert (excinfo.value.expected, excinfo.value.got) == (5, 6)
    assert calls == []


def test_identity(random_pair, small_blocks):
    a, _ = random_pair(33, 20, 1)
    assert gemm_parallel(a, Matrix.identity(20), small_blocks).allclose(a)
    assert gemm_parallel(Matrix.identity(33), a, small_blocks).allclose(a)


def test_zero(random_pair):
    a, _ = random_pair(70, 40, 1)
    c = gemm_parallel(a, Matrix.zeros(40, 90))
    assert c.shape == (70, 90)
    assert not c.data.any()


@pytest.mark.parametrize("M,K,N", [(0, 5, 3), (3, 0, 4), (3, 5, 0)])
def test_zero_sized_dimensions(M, K, N):
    c = gemm_parallel(Matrix.zeros(M, K), Matrix.zeros(K, N))
    assert c.shape == (M, N)
    assert not c.data.any()


def test_deterministic_across_runs_and_worker_counts(random_pair):
    a, b = random_pair(150, 300, 70)
    config = BlockConfig(panel_rows=16, tile_k=64, tile_n=32)
    first = gemm_parallel(a, b, config)
    assert gemm_parallel(a, b, config) == first
    assert gemm_parallel(a, b, config.with_overrides(num_workers=1)) == first
    assert gemm_parallel(a, b, config.with_overrides(num_workers=7)) == first


def test_does_not_mutate_inputs(random_pair, small_blocks):
    a, b = random_pair(20, 30, 10)
    a_before, b_before = a.data.copy(), b.data.copy()
    gemm_parallel(a, b, small_blocks)
    np.testing.assert_array_equal(a.data, a_before)
    np.testing.assert_array_equal(b.data, b_before)


def test_panel_failure_propagates(random_pair):
    a, b = random_pair(256, 16, 16)

    def exploding_kernel(A, B, C_panel, row0, col0, col1, k0, k1):
        if row0 == 64:
            raise RuntimeError("panel 64 failed")
        tile_multiply_accumulate(A, B, C_panel, row0, col0, col1, k0, k1)

    with pytest.raises(RuntimeError, match="panel 64 failed"):
        gemm_parallel(a, b, BlockConfig(panel_rows=64, num_workers=2), tile_kernel=exploding_kernel)


def test_tile_kernel_is_replaceable(random_pair, small_blocks):
    a, b = random_pair(40, 50, 30)

    def numpy_tile(A, B, C_panel, row0, col0, col1, k0, k1):
        h = C_panel.shape[0]
        C_panel[:, col0:col1] += A[row0:row0 + h, k0:k1] @ B[k0:k1, col0:col1]

    c = gemm_parallel(a, b, small_blocks, tile_kernel=numpy_tile)
    np.testing.assert_allclose(c.to_numpy(), gemm_naive(a, b).to_numpy(), rtol=1e-4)


def test_panels_only_touch_their_rows(random_pair):
    a, b = random_pair(10, 4, 6)
    seen = []

    def spy_kernel(A, B, C_panel, row0, col0, col1, k0, k1):
        seen.append((row0, C_panel.shape[0]))
        tile_multiply_accumulate(A, B, C_panel, row0, col0, col1, k0, k1)

    gemm_parallel(a, b, BlockConfig(panel_rows=4, num_workers=2), tile_kernel=spy_kernel)
    assert sorted(set(seen)) == [(0, 4), (4, 4), (8, 2)]


def test_caller_executor_is_left_running(random_pair):
    a, b = random_pair(30, 20, 10)
    with ThreadPoolExecutor(max_workers=2) as executor:
        c = gemm_parallel(a, b, BlockConfig(panel_rows=8), executor=executor)
        assert executor.submit(lambda: 41 + 1).result() == 42
    assert_matches_naive(c, a, b)


def test_worker_pool_is_released_after_use():
    with worker_pool(num_workers=2) as pool:
        assert pool.submit(lambda: "ok").result() == "ok"
    with pytest.raises(RuntimeError):
        pool.submit(lambda: None)


@pytest.mark.parametrize("extent,block,expected", [
    (130, 64, [Panel(0, 64), Panel(64, 128), Panel(128, 130)]),
    (64, 64, [Panel(0, 64)]),
    (3, 64, [Panel(0, 3)]),
    (0, 64, []),
])
def test_partition_rows(extent, block, expected):
    assert partition_rows(extent, block) == expected


@pytest.mark.parametrize("extent,block", [(1, 1), (65, 64), (1000, 7), (257, 256)])
def test_partition_rows_is_disjoint_and_covering(extent, block):
    panels = partition_rows(extent, block)
    covered = [row for p in panels for row in range(p.start, p.stop)]
    assert covered == list(range(extent))
    assert all(0 < p.height <= block for p in panels)


def test_partition_rows_rejects_bad_block():
    with pytest.raises(ValueError):
        partition_rows(10, 0)


def test_verify_correctness_detects_wrong_result(random_pair):
    a, b = random_pair(8, 8, 8)
    wrong = Matrix.from_numpy(gemm_naive(a, b).to_numpy() + 1.0)
    assert not verify_correctness(a, b, wrong)
    assert not verify_correctness(a, b, Matrix.zeros(8, 7))


def test_process_pool_executor_rejected_before_dispatch(random_pair):
    a, b = random_pair(8, 8, 8)
    calls = []

    def recording_kernel(*args):
        calls.append(args)

    with ProcessPoolExecutor(max_workers=1) as executor:
        with pytest.raises(TypeError, match="ThreadPoolExecutor"):
            gemm_parallel(a, b, BlockConfig(panel_rows=4), executor=executor,
                          tile_kernel=recording_kernel)
    assert calls == []


def test_worker_pool_rejects_non_thread_executor():
    with ProcessPoolExecutor(max_workers=1) as executor:
        with pytest.raises(TypeError):
            with worker_pool(executor):
                pass


def test_worker_pool_default_size_matches_config():
    with worker_pool() as pool:
        assert pool._max_workers == resolve_workers()
    with worker_pool(num_workers=3) as pool:
        assert pool._max_workers == 3
