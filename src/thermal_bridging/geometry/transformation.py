"""
Affine transformations in homogeneous coordinates.

Host models often store surface vertices in a local (space) frame;
a Transformation moves them into the shared building frame before
they reach the topology kernel.

Usage:
    t = Transformation.translation(Vector3D(10, 0, 0))
    r = Transformation.rotation(Vector3D.zenith(), math.pi / 2)
    (t * r) * Point3D(1, 0, 0)  # Point3D(10, 1, 0)
"""

from __future__ import annotations

import math
from typing import List, Optional, Union

import numpy as np

from .primitives import EPSILON, Point3D, Vector3D


class Transformation:
    """4x4 affine transformation matrix."""

    def __init__(self, matrix: Optional[np.ndarray] = None):
        if matrix is None:
            matrix = np.identity(4)
        matrix = np.asarray(matrix, dtype=float)
        if matrix.shape != (4, 4):
            raise ValueError(f"Expected a 4x4 matrix, got shape {matrix.shape}")
        self.matrix = matrix

    @classmethod
    def identity(cls) -> "Transformation":
        return cls()

    @classmethod
    def translation(cls, translation: Vector3D) -> "Transformation":
        matrix = np.identity(4)
        matrix[0:3, 3] = [translation.x, translation.y, translation.z]
        return cls(matrix)

    @classmethod
    def rotation(cls, axis: Vector3D, radians: float) -> "Transformation":
        """
        Rotation about an axis through the origin (Rodrigues' formula).

        Args:
            axis: Rotation axis (any non-zero length)
            radians: Counter-clockwise angle looking down the axis

        Returns:
            Rotation transformation
        """
        if axis.magnitude < EPSILON:
            raise ValueError("Rotation axis has zero magnitude")
        n = axis.normalize()

        p = n.outer_product(n)
        q = np.array([
            [0.0, -n.z, n.y],
            [n.z, 0.0, -n.x],
            [-n.y, n.x, 0.0],
        ])
        cos = math.cos(radians)
        r = np.identity(3) * cos + (1 - cos) * p + q * math.sin(radians)

        matrix = np.identity(4)
        matrix[0:3, 0:3] = r
        return cls(matrix)

    def inverse(self) -> "Transformation":
        return Transformation(np.linalg.inv(self.matrix))

    def __mul__(self, obj) -> Union[Point3D, Vector3D, List, "Transformation"]:
        if isinstance(obj, Point3D):
            v = self.matrix @ np.array([obj.x, obj.y, obj.z, 1.0])
            return Point3D(float(v[0]), float(v[1]), float(v[2]))
        if isinstance(obj, Vector3D):
            # Directions ignore the translation column
            v = self.matrix @ np.array([obj.x, obj.y, obj.z, 0.0])
            return Vector3D(float(v[0]), float(v[1]), float(v[2]))
        if isinstance(obj, Transformation):
            return Transformation(self.matrix @ obj.matrix)
        if isinstance(obj, (list, tuple)):
            return [self * item for item in obj]
        return NotImplemented

    def __repr__(self) -> str:
        return f"Transformation({self.matrix.tolist()})"
