"""
Errors raised by the GEMM kernels.
"""


class DimensionMismatch(ValueError):
    """Raised when A.cols != B.rows, before any work is done."""

    def __init__(self, expected, got):
        self.expected = expected
        self.got = got
        super().__init__(f"Dimension mismatch: A.cols={expected} != B.rows={got}")


def check_dimensions(a, b):
    """Fail fast on incompatible operands."""
    if a.cols != b.rows:
        raise DimensionMismatch(a.cols, b.rows)
