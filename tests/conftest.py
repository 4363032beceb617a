import pytest

from parallel_gemm import BlockConfig, Matrix


@pytest.fixture
def small_blocks():
    """Deliberately tiny, mutually prime blocks so every clamp path is hit."""
    return BlockConfig(panel_rows=4, tile_k=3, tile_n=5, num_workers=3)


@pytest.fixture
def random_pair():
    def make(M, K, N, seed_a=42, seed_b=1337):
        return Matrix.random(M, K, seed=seed_a), Matrix.random(K, N, seed=seed_b)
    return make
