"""
Cache-blocked, multi-threaded dense GEMM with a naive reference oracle.

The public names are resolved on first access so that importing a
subpackage (e.g. parallel_gemm.bench) does not pull in NumPy before that
subpackage has had a chance to configure the BLAS thread environment.
"""

import importlib

__version__ = "0.1.0"

_EXPORTS = {
    "BlockConfig": "parallel_gemm.kernels.config",
    "DimensionMismatch": "parallel_gemm.kernels.errors",
    "GEMM_ATOL": "parallel_gemm.kernels.gemm_blocked",
    "GEMM_RTOL": "parallel_gemm.kernels.gemm_blocked",
    "Matrix": "parallel_gemm.kernels.matrix",
    "gemm_naive": "parallel_gemm.kernels.gemm_naive",
    "gemm_parallel": "parallel_gemm.kernels.gemm_blocked",
    "verify_correctness": "parallel_gemm.kernels.gemm_blocked",
}

__all__ = sorted(_EXPORTS)


def __getattr__(name):
    module = _EXPORTS.get(name)
    if module is None:
        raise AttributeError(f"module 'parallel_gemm' has no attribute {name!r}")
    value = getattr(importlib.import_module(module), name)
    globals()[name] = value
    return value


def __dir__():
    return sorted(list(globals()) + __all__)
