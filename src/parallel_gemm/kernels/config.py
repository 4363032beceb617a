"""
Tunable block sizes for the blocked parallel GEMM.

Defaults were picked for a typical 32-48 KiB L1 / 1-2 MiB L2 core:
a 64-row panel of A plus a 128 x 256 float32 tile of B fits in L2.
Every field can be overridden from the environment (PGEMM_*), the same
way the benchmarks pin BLAS threads through OMP_NUM_THREADS & co.
"""

import os
from dataclasses import dataclass, replace
from typing import Optional

DEFAULT_PANEL_ROWS = 64
DEFAULT_TILE_K = 128
DEFAULT_TILE_N = 256

ENV_PREFIX = "PGEMM_"


@dataclass(frozen=True)
class BlockConfig:
    """
    Block/tile configuration for gemm_parallel.

    Args:
        panel_rows: rows of C per parallel task
        tile_k: width of a tile along the shared (K) dimension
        tile_n: width of a column block of C/B
        num_workers: thread pool size, None means os.cpu_count()
    """
    panel_rows: int = DEFAULT_PANEL_ROWS
    tile_k: int = DEFAULT_TILE_K
    tile_n: int = DEFAULT_TILE_N
    num_workers: Optional[int] = None

    def __post_init__(self):
        for name in ("panel_rows", "tile_k", "tile_n"):
            _require_positive(name, getattr(self, name))
        if self.num_workers is not None:
            _require_positive("num_workers", self.num_workers)

    @classmethod
    def from_env(cls, environ=None):
        """Build a config from PGEMM_PANEL_ROWS, PGEMM_TILE_K, PGEMM_TILE_N, PGEMM_NUM_WORKERS."""
        environ = os.environ if environ is None else environ
        kwargs = {}
        for name in ("panel_rows", "tile_k", "tile_n", "num_workers"):
            raw = environ.get(ENV_PREFIX + name.upper())
            if raw is None or raw.strip() == "":
                continue
            try:
                kwargs[name] = int(raw)
            except ValueError:
                raise ValueError(f"{ENV_PREFIX}{name.upper()} must be an integer, got {raw!r}") from None
        return cls(**kwargs)

    def with_overrides(self, **kwargs):
        return replace(self, **kwargs)

    def resolved_workers(self):
        return resolve_workers(self.num_workers)


def resolve_workers(num_workers=None):
    """Worker count to use: the explicit value, else the CPU count."""
    return num_workers or os.cpu_count() or 1


def _require_positive(name, value):
    # bool is an int subclass but never a meaningful block size
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValueError(f"{name} must be a positive integer, got {value!r}")
