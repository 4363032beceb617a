"""
Benchmark tooling.

Thread limits are set here, BEFORE anything in this package imports NumPy,
so the BLAS reference runs single-threaded and doesn't fight the GEMM worker
pool for cores. Values already present in the environment are kept.
"""

import os
import sys

BLAS_THREAD_VARS = (
    "OMP_NUM_THREADS",
    "MKL_NUM_THREADS",
    "OPENBLAS_NUM_THREADS",
    "NUMEXPR_NUM_THREADS",
)

# BLAS reads these once, when NumPy is first imported
BLAS_THREADS_PINNED = "numpy" not in sys.modules

for _var in BLAS_THREAD_VARS:
    os.environ.setdefault(_var, "1")
