"""
Geometry primitives for envelope analysis.

Provides immutable value types with the algebra the topology kernel
and the edge classifier rely on:
- Point3D / Vector3D arithmetic (add, subtract, scale)
- Dot and cross products, magnitude, normalization, angle-between
- Plane3D with point-onto-plane projection
- BoundingBox with tolerance-aware containment
- Newell normal and polygon area for vertex loops

Usage:
    from thermal_bridging.geometry import Point3D, Vector3D, Plane3D

    plane = Plane3D(Point3D(0, 0, 0), Vector3D(0, 0, 1))
    plane.project(Point3D(1, 2, 3))  # Point3D(1, 2, 0)
"""

from __future__ import annotations

import math
import sys
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence

import numpy as np

from ..errors import DegenerateNormalError


EPSILON = sys.float_info.epsilon


@dataclass(frozen=True)
class Point3D:
    """A position in 3D space (metres)."""

    x: float
    y: float
    z: float

    def __add__(self, other: "Vector3D") -> "Point3D":
        if not isinstance(other, Vector3D):
            return NotImplemented
        return Point3D(self.x + other.x, self.y + other.y, self.z + other.z)

    def __sub__(self, other):
        if isinstance(other, Point3D):
            return Vector3D(self.x - other.x, self.y - other.y, self.z - other.z)
        if isinstance(other, Vector3D):
            return Point3D(self.x - other.x, self.y - other.y, self.z - other.z)
        return NotImplemented

    def __iter__(self):
        yield self.x
        yield self.y
        yield self.z

    def to_list(self) -> List[float]:
        return [self.x, self.y, self.z]

    def to_array(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z], dtype=float)

    def distance_to(self, other: "Point3D") -> float:
        return (self - other).magnitude

    @classmethod
    def from_sequence(cls, values: Sequence[float]) -> "Point3D":
        if len(values) != 3:
            raise ValueError(f"Expected 3 coordinates, got {len(values)}")
        return cls(float(values[0]), float(values[1]), float(values[2]))


@dataclass(frozen=True)
class Vector3D:
    """A direction and magnitude in 3D space."""

    x: float
    y: float
    z: float

    @classmethod
    def zenith(cls) -> "Vector3D":
        return cls(0.0, 0.0, 1.0)

    @classmethod
    def north(cls) -> "Vector3D":
        return cls(0.0, 1.0, 0.0)

    @classmethod
    def east(cls) -> "Vector3D":
        return cls(1.0, 0.0, 0.0)

    def __add__(self, other: "Vector3D") -> "Vector3D":
        if not isinstance(other, Vector3D):
            return NotImplemented
        return Vector3D(self.x + other.x, self.y + other.y, self.z + other.z)

    def __sub__(self, other: "Vector3D") -> "Vector3D":
        if not isinstance(other, Vector3D):
            return NotImplemented
        return Vector3D(self.x - other.x, self.y - other.y, self.z - other.z)

    def __mul__(self, scalar: float) -> "Vector3D":
        if not isinstance(scalar, (int, float)):
            return NotImplemented
        return Vector3D(self.x * scalar, self.y * scalar, self.z * scalar)

    __rmul__ = __mul__

    def __truediv__(self, scalar: float) -> "Vector3D":
        if not isinstance(scalar, (int, float)):
            return NotImplemented
        return Vector3D(self.x / scalar, self.y / scalar, self.z / scalar)

    def __neg__(self) -> "Vector3D":
        return Vector3D(-self.x, -self.y, -self.z)

    def __iter__(self):
        yield self.x
        yield self.y
        yield self.z

    @property
    def magnitude(self) -> float:
        return math.sqrt(self.x * self.x + self.y * self.y + self.z * self.z)

    def normalize(self) -> "Vector3D":
        """Unit vector in the same direction (zero vector stays zero)."""
        m = self.magnitude
        if m > 0:
            return self / m
        return self

    def dot(self, other: "Vector3D") -> float:
        return self.x * other.x + self.y * other.y + self.z * other.z

    def cross(self, other: "Vector3D") -> "Vector3D":
        return Vector3D(
            self.y * other.z - self.z * other.y,
            self.z * other.x - self.x * other.z,
            self.x * other.y - self.y * other.x,
        )

    def outer_product(self, other: "Vector3D") -> np.ndarray:
        return np.outer(self.to_array(), other.to_array())

    def angle(self, other: "Vector3D") -> Optional[float]:
        """
        Angle between two vectors in radians, in [0, pi].

        Returns None when either vector has zero length.
        """
        prod = self.magnitude * other.magnitude
        if prod <= 0:
            return None
        cos = max(-1.0, min(1.0, self.dot(other) / prod))
        return math.acos(cos)

    def to_list(self) -> List[float]:
        return [self.x, self.y, self.z]

    def to_array(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z], dtype=float)


@dataclass(frozen=True)
class Plane3D:
    """
    Infinite plane defined by a point and a unit normal.

    Coefficients satisfy a*x + b*y + c*z + d = 0.
    """

    point: Point3D
    normal: Vector3D
    a: float = field(init=False)
    b: float = field(init=False)
    c: float = field(init=False)
    d: float = field(init=False)

    def __post_init__(self):
        if self.normal.magnitude <= EPSILON:
            raise DegenerateNormalError(
                f"Plane normal {self.normal.to_list()} has zero magnitude"
            )
        n = self.normal.normalize()
        object.__setattr__(self, "normal", n)
        object.__setattr__(self, "a", n.x)
        object.__setattr__(self, "b", n.y)
        object.__setattr__(self, "c", n.z)
        object.__setattr__(
            self, "d", -(n.x * self.point.x + n.y * self.point.y + n.z * self.point.z)
        )

    @classmethod
    def from_points(cls, p1: Point3D, p2: Point3D, p3: Point3D) -> "Plane3D":
        return cls(p1, (p2 - p1).cross(p3 - p1))

    @classmethod
    def from_point_axes(cls, origin: Point3D, x_axis: Vector3D, y_axis: Vector3D) -> "Plane3D":
        return cls(origin, x_axis.cross(y_axis))

    def distance(self, point: Point3D) -> float:
        """Signed distance from the plane along its normal."""
        return self.a * point.x + self.b * point.y + self.c * point.z + self.d

    def project(self, point: Point3D) -> Point3D:
        """Orthogonal projection of a point onto the plane."""
        return point + self.normal * (-self.distance(point))

    def contains(self, point: Point3D, tol: float) -> bool:
        return abs(self.distance(point)) <= tol


class BoundingBox:
    """Axis-aligned box grown from points, with a containment tolerance."""

    def __init__(self, tol: float = 0.01):
        self.tol = tol
        self.min_x = self.min_y = self.min_z = None
        self.max_x = self.max_y = self.max_z = None

    @property
    def is_empty(self) -> bool:
        return self.min_x is None

    def add_point(self, point: Point3D) -> None:
        if self.is_empty:
            self.min_x = self.max_x = point.x
            self.min_y = self.max_y = point.y
            self.min_z = self.max_z = point.z
            return
        self.min_x = min(self.min_x, point.x)
        self.min_y = min(self.min_y, point.y)
        self.min_z = min(self.min_z, point.z)
        self.max_x = max(self.max_x, point.x)
        self.max_y = max(self.max_y, point.y)
        self.max_z = max(self.max_z, point.z)

    def include(self, point: Point3D) -> bool:
        if self.is_empty:
            return False
        t = self.tol
        return (
            self.min_x - t <= point.x <= self.max_x + t
            and self.min_y - t <= point.y <= self.max_y + t
            and self.min_z - t <= point.z <= self.max_z + t
        )


def newell_normal(points: Sequence[Point3D]) -> Vector3D:
    """
    Unit normal of a vertex loop (right-hand rule, Newell's method).

    Returns a zero vector for degenerate loops.
    """
    nx = ny = nz = 0.0
    n = len(points)
    for i in range(n):
        p = points[i]
        q = points[(i + 1) % n]
        nx += (p.y - q.y) * (p.z + q.z)
        ny += (p.z - q.z) * (p.x + q.x)
        nz += (p.x - q.x) * (p.y + q.y)
    return Vector3D(nx, ny, nz).normalize()


def polygon_area(points: Sequence[Point3D]) -> float:
    """Area of a planar vertex loop (m²)."""
    if len(points) < 3:
        return 0.0
    total = Vector3D(0.0, 0.0, 0.0)
    origin = points[0]
    for i in range(1, len(points) - 1):
        total = total + (points[i] - origin).cross(points[i + 1] - origin)
    return total.magnitude / 2


def to_points(coords: Iterable[Sequence[float]]) -> List[Point3D]:
    """Convert [x, y, z] lists (or Point3D) into Point3D instances."""
    return [c if isinstance(c, Point3D) else Point3D.from_sequence(c) for c in coords]


def planar_coordinates(points: Sequence[Point3D], plane: Plane3D) -> List[tuple]:
    """
    2D (u, v) coordinates of points in a plane's local frame.

    The u axis is the plane normal crossed with whichever world axis is
    least aligned with it.
    """
    n = plane.normal
    seed = Vector3D.zenith() if abs(n.z) < 0.9 else Vector3D.north()
    u = seed.cross(n).normalize()
    v = n.cross(u)
    return [((p - plane.point).dot(u), (p - plane.point).dot(v)) for p in points]
