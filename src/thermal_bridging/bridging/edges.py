"""
Edge records and the angular layout of surfaces around an edge.

Each shared edge of the topology model becomes an EdgeRecord listing
the surfaces (opaque faces, openings, shades) that run along it. For
every linked surface we locate its "polar" vector: the direction, in
the plane orthogonal to the edge, towards the wire vertex farthest from
the edge line. Its angle from a fixed reference (north for vertical
edges, zenith otherwise) orders surfaces around the edge and drives the
concave/convex tests used by the classifier.

Records move through two phases:
- EdgeRecord: geometry and linked surfaces, angles filled in place
- ClassifiedEdge: an EdgeRecord plus its thermal bridge type and loss
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from ..geometry import Plane3D, Point3D, Vector3D
from ..topology import DEFAULT_TOLERANCE, Edge, Wire

ANGLE_TOL = 0.01  # radians, and unit vector dot products
TWO_PI = 2 * math.pi


class LinkKind(str, Enum):
    SURFACE = "surface"
    HOLE = "hole"
    SHADE = "shade"


@dataclass
class LinkedSurface:
    """One surface running along an edge."""

    surface_id: str
    kind: LinkKind
    wire: Wire
    normal: Vector3D  # outward normal of the building surface
    host_id: Optional[str] = None  # parent surface of an opening
    angle: float = 0.0
    polar: Vector3D = field(default_factory=lambda: Vector3D(0.0, 0.0, 0.0))


@dataclass
class EdgeRecord:
    """A shared edge and the surfaces linked to it."""

    edge: Edge
    linked: Dict[str, LinkedSurface] = field(default_factory=dict)
    tol: float = DEFAULT_TOLERANCE  # length tolerance of the model the edge belongs to

    @property
    def id(self) -> int:
        return self.edge.id

    @property
    def length(self) -> float:
        return self.edge.length

    @property
    def origin(self) -> Point3D:
        return self.edge.v0.point

    @property
    def terminal(self) -> Point3D:
        return self.edge.v1.point

    @property
    def vector(self) -> Vector3D:
        return self.terminal - self.origin

    @property
    def is_vertical(self) -> bool:
        v = self.vector
        return abs(v.x) < self.tol and abs(v.y) < self.tol

    @property
    def is_horizontal(self) -> bool:
        return abs(self.vector.z) < self.tol

    def of_kind(self, kind: LinkKind) -> List[LinkedSurface]:
        return [s for s in self.linked.values() if s.kind == kind]


@dataclass
class ClassifiedEdge:
    """An edge with its winning thermal bridge type."""

    record: EdgeRecord
    type: Optional[str] = None
    psi: float = 0.0
    psi_set: Optional[str] = None
    multiplier: int = 1
    candidates: Dict[str, float] = field(default_factory=dict)

    @property
    def length(self) -> float:
        return self.record.length

    @property
    def loss(self) -> float:
        """Edge heat loss (W/K)."""
        return self.psi * self.record.length * self.multiplier


def reference_vector(record: EdgeRecord) -> Vector3D:
    """North for vertical edges, zenith for horizontal ones, else projected zenith."""
    if record.is_vertical:
        return Vector3D.north()
    if record.is_horizontal:
        return Vector3D.zenith()
    plane = Plane3D(record.origin, record.vector)
    return plane.project(record.origin + Vector3D.zenith()) - record.origin


def polar_vector(record: EdgeRecord, wire: Wire) -> Optional[Vector3D]:
    """
    In-plane vector from the edge towards the farthest wire vertex.

    Points are projected on the plane orthogonal to the edge; vertices
    on the edge line itself are ignored. Returns None when every vertex
    is collinear with the edge.
    """
    plane = Plane3D(record.origin, record.vector)
    farthest = None
    farthest_mag = record.tol
    for point in wire.points:
        near_origin = (point - record.origin).magnitude < record.tol
        if near_origin or (point - record.terminal).magnitude < record.tol:
            continue
        v = plane.project(point) - record.origin
        if v.magnitude > farthest_mag:
            farthest, farthest_mag = v, v.magnitude
    return farthest


def polar_angle(record: EdgeRecord, polar: Vector3D, reference: Vector3D) -> float:
    """Angle of a unit polar vector from the reference, in [0, 2pi)."""
    angle = reference.angle(polar) or 0.0
    east = Vector3D.east()
    north = Vector3D.north()

    if record.is_vertical:
        flip = east.dot(polar) < -ANGLE_TOL
    else:
        # Polars with no north component (edges running north-south) fall back to east
        dn = north.dot(polar)
        if abs(dn) < ANGLE_TOL:
            flip = east.dot(polar) < -ANGLE_TOL
        else:
            flip = dn < -ANGLE_TOL
    if flip:
        angle = TWO_PI - angle
    if abs(angle - TWO_PI) < ANGLE_TOL:
        angle = 0.0
    return min(max(angle, 0.0), math.nextafter(TWO_PI, 0.0))


def compute_angles(record: EdgeRecord) -> EdgeRecord:
    """Fill angle/polar for every linked surface and sort them by angle."""
    reference = reference_vector(record)
    for linked in record.linked.values():
        polar = polar_vector(record, linked.wire)
        if polar is None:
            continue
        linked.polar = polar.normalize()
        linked.angle = polar_angle(record, linked.polar, reference)
    record.linked = dict(sorted(record.linked.items(), key=lambda item: item[1].angle))
    return record


def _corner_angle(s1: LinkedSurface, s2: LinkedSurface) -> Optional[float]:
    angle = abs(s2.angle - s1.angle)
    if angle < ANGLE_TOL or abs(TWO_PI - angle) <= ANGLE_TOL:
        return None
    if 3 * math.pi / 4 < angle < 5 * math.pi / 4:
        return None
    return angle


def concave(s1: LinkedSurface, s2: LinkedSurface) -> bool:
    """True if two surfaces meet at an inside corner."""
    if _corner_angle(s1, s2) is None:
        return False
    return s1.normal.dot(s2.polar) > 0 and s1.polar.dot(s2.normal) > 0


def convex(s1: LinkedSurface, s2: LinkedSurface) -> bool:
    """True if two surfaces meet at an outside corner."""
    if _corner_angle(s1, s2) is None:
        return False
    return s1.normal.dot(s2.polar) < 0 and s1.polar.dot(s2.normal) < 0


def variant(s1: LinkedSurface, s2: LinkedSurface) -> str:
    """Type suffix for a surface pair: 'concave', 'convex' or ''."""
    if concave(s1, s2):
        return "concave"
    if convex(s1, s2):
        return "convex"
    return ""
