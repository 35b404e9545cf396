"""
3x3 homogeneous coordinate transforms.

A Transform represents a 2-D projective map acting on column vectors
(x, y, 1). Composition follows matrix multiplication, so in `A * B`
the transform B is applied first.
"""

import math

import numpy as np

from .errors import InvalidArgument, SingularMatrixError


class Transform:
    """
    Immutable 3x3 transformation matrix.

    Construct with the class methods (identity, translation, rotation,
    from_matrix); arithmetic returns new instances.
    """

    __slots__ = ('_m',)

    def __init__(self, matrix=None):
        """
        Args:
            matrix: Optional 3x3 array-like; identity when omitted
        """
        if matrix is None:
            m = np.eye(3, dtype=np.float64)
        else:
            m = np.array(matrix, dtype=np.float64)
            if m.shape != (3, 3):
                raise InvalidArgument(f"Transform needs a 3x3 matrix, got {m.shape}")
        m.setflags(write=False)
        self._m = m

    @classmethod
    def identity(cls):
        return cls()

    @classmethod
    def from_matrix(cls, matrix):
        return cls(matrix)

    @classmethod
    def translation(cls, tx, ty):
        return cls([[1.0, 0.0, tx],
                    [0.0, 1.0, ty],
                    [0.0, 0.0, 1.0]])

    @classmethod
    def rotation(cls, degrees):
        """In-plane rotation by `degrees` about the origin."""
        rad = math.pi * degrees / 180.0
        c, s = math.cos(rad), math.sin(rad)
        return cls([[c, -s, 0.0],
                    [s, c, 0.0],
                    [0.0, 0.0, 1.0]])

    @classmethod
    def rotation_x(cls, degrees):
        """3-D rotation about the x axis (camera tilt), acting on (x, y, z)."""
        rad = math.pi * degrees / 180.0
        c, s = math.cos(rad), math.sin(rad)
        return cls([[1.0, 0.0, 0.0],
                    [0.0, c, -s],
                    [0.0, s, c]])

    @property
    def matrix(self):
        """Writable copy of the underlying 3x3 array."""
        return self._m.copy()

    def __getitem__(self, index):
        return self._m[index]

    @property
    def is_affine(self):
        return self._m[2, 0] == 0.0 and self._m[2, 1] == 0.0

    @property
    def translation_part(self):
        return float(self._m[0, 2]), float(self._m[1, 2])

    def __mul__(self, other):
        if isinstance(other, Transform):
            return Transform(self._m @ other._m)

        v = np.asarray(other, dtype=np.float64)
        if v.shape != (3,):
            raise InvalidArgument(f"Can only apply a Transform to a 3-vector, got {v.shape}")
        return self._m @ v

    __matmul__ = __mul__

    def apply(self, x, y):
        """Map the point (x, y), including the homogeneous divide."""
        xh, yh, zh = self._m @ np.array([x, y, 1.0])
        return xh / zh, yh / zh

    def apply_points(self, points):
        """
        Map an (N x 2) array of points, including the homogeneous divide.

        Returns:
            Transformed points (N x 2)
        """
        points = np.asarray(points, dtype=np.float64).reshape(-1, 2)
        points_homogeneous = np.hstack([points, np.ones((len(points), 1))])
        transformed = (self._m @ points_homogeneous.T).T
        return transformed[:, :2] / transformed[:, 2:3]

    def inverse(self):
        """
        Invert with Gauss-Jordan elimination.

        Rows are swapped only when the diagonal pivot is exactly zero,
        so e.g. a 90 degree rotation still inverts.

        Raises:
            SingularMatrixError: if no non-zero pivot exists in a column
        """
        n = 3
        m0 = self._m.copy()
        m1 = np.eye(n)

        # Forward elimination
        for i in range(n):
            if m0[i, i] == 0.0:
                candidates = np.flatnonzero(m0[i + 1:, i]) + i + 1
                if len(candidates) == 0:
                    raise SingularMatrixError(
                        f"Zero pivot in column {i} while inverting\n{self._m}")
                j = candidates[0]
                m0[[i, j]] = m0[[j, i]]
                m1[[i, j]] = m1[[j, i]]
            pivot = m0[i, i]
            m0[i] /= pivot
            m1[i] /= pivot
            m0[i, i] = 1.0

            for k in range(i + 1, n):
                mult = m0[k, i]
                m0[k] -= mult * m0[i]
                m1[k] -= mult * m1[i]

        # Back substitution
        for i in range(n - 1, 0, -1):
            for k in range(i):
                mult = m0[k, i]
                m0[k] -= mult * m0[i]
                m1[k] -= mult * m1[i]

        return Transform(m1)

    def allclose(self, other, atol=1e-9):
        return np.allclose(self._m, other._m, atol=atol)

    def __eq__(self, other):
        if not isinstance(other, Transform):
            return NotImplemented
        return np.array_equal(self._m, other._m)

    def __hash__(self):
        return hash(self._m.tobytes())

    def __repr__(self):
        rows = ', '.join('[' + ', '.join(f'{v:.6g}' for v in row) + ']' for row in self._m)
        return f"Transform([{rows}])"
