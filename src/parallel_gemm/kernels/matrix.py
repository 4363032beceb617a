"""
Dense row-major float32 matrix container.

A Matrix owns a flat numpy buffer of exactly rows * cols elements; element
(i, j) lives at flat index i * cols + j. The buffer is marked read-only
once the matrix is built, so GEMM inputs can be shared across worker
threads without copies or locks.
"""

import numpy as np

DTYPE = np.float32


class Matrix:
    """Immutable dense matrix stored row-major in a flat float32 array."""

    __slots__ = ("rows", "cols", "data")

    def __init__(self, rows, cols, data):
        # Always copy: the caller keeps no writable handle on our buffer
        self._init(rows, cols, np.array(data, dtype=DTYPE))

    def _init(self, rows, cols, buffer):
        _check_shape(rows, cols)
        # Freeze before reshaping so no writable view of the buffer remains
        buffer.flags.writeable = False
        buffer = buffer.reshape(-1)
        if buffer.size != rows * cols:
            raise ValueError(
                f"Backing data has {buffer.size} elements, expected rows*cols={rows * cols}"
            )
        self.rows = rows
        self.cols = cols
        self.data = buffer

    @classmethod
    def adopt(cls, rows, cols, buffer):
        """
        Take ownership of a freshly allocated float32 buffer without copying.

        Only for buffers nothing else will write to again (e.g. a finished GEMM
        output); the buffer is frozen in place.
        """
        if buffer.dtype != DTYPE or not buffer.flags.c_contiguous:
            raise ValueError("adopt() needs a C-contiguous float32 buffer")
        matrix = cls.__new__(cls)
        matrix._init(rows, cols, buffer)
        return matrix

    # --- construction ---

    @classmethod
    def zeros(cls, rows, cols):
        _check_shape(rows, cols)
        return cls.adopt(rows, cols, np.zeros(rows * cols, dtype=DTYPE))

    @classmethod
    def filled(cls, rows, cols, value):
        _check_shape(rows, cols)
        return cls.adopt(rows, cols, np.full(rows * cols, value, dtype=DTYPE))

    @classmethod
    def from_flat(cls, rows, cols, data):
        """Build from a flat row-major sequence of length rows * cols (copied)."""
        return cls(rows, cols, data)

    @classmethod
    def from_rows(cls, rows_list):
        """Build from nested sequences, e.g. [[1, 2], [3, 4]]."""
        rows_list = [list(row) for row in rows_list]
        if not rows_list:
            return cls.zeros(0, 0)
        cols = len(rows_list[0])
        if any(len(row) != cols for row in rows_list):
            raise ValueError("Ragged rows: every row must have the same length")
        return cls.from_flat(len(rows_list), cols, [x for row in rows_list for x in row])

    @classmethod
    def identity(cls, n):
        _check_shape(n, n)
        return cls.adopt(n, n, np.eye(n, dtype=DTYPE))

    @classmethod
    def random(cls, rows, cols, seed, bit_generator=np.random.PCG64):
        """
        Deterministic uniform [0, 1) matrix.

        Args:
            rows, cols: shape
            seed: explicit seed, same seed => same data
            bit_generator: numpy BitGenerator class used as the random source

        Returns:
            Matrix of shape (rows, cols)
        """
        _check_shape(rows, cols)
        rng = np.random.Generator(bit_generator(seed))
        return cls.adopt(rows, cols, rng.random(rows * cols, dtype=DTYPE))

    @classmethod
    def from_numpy(cls, array):
        array = np.asarray(array)
        if array.ndim != 2:
            raise ValueError(f"Expected a 2-D array, got shape {array.shape}")
        return cls(array.shape[0], array.shape[1], array)

    # --- access ---

    @property
    def shape(self):
        return (self.rows, self.cols)

    def get(self, r, c):
        if not (0 <= r < self.rows and 0 <= c < self.cols):
            raise IndexError(f"Index ({r}, {c}) out of bounds for shape {self.shape}")
        return float(self.data[r * self.cols + c])

    def __getitem__(self, idx):
        r, c = idx
        return self.get(r, c)

    def to_numpy(self):
        """Read-only 2-D view of the backing buffer (no copy)."""
        return self.data.reshape(self.rows, self.cols)

    def tolist(self):
        return self.to_numpy().tolist()

    def allclose(self, other, rtol=1e-5, atol=1e-6):
        return self.shape == other.shape and np.allclose(
            self.data, other.data, rtol=rtol, atol=atol
        )

    def __eq__(self, other):
        if not isinstance(other, Matrix):
            return NotImplemented
        return self.shape == other.shape and np.array_equal(self.data, other.data)

    __hash__ = None

    def __repr__(self):
        return f"Matrix(rows={self.rows}, cols={self.cols})"


def _check_shape(rows, cols):
    for name, value in (("rows", rows), ("cols", cols)):
        # bool is an int subclass but never a dimension
        if isinstance(value, (bool, np.bool_)) or not isinstance(value, (int, np.integer)) or value < 0:
            raise ValueError(f"{name} must be a non-negative integer, got {value!r}")
