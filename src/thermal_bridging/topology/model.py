"""
Topology kernel: a tolerance-merged mesh of building surfaces.

Disconnected surface polygons are stitched into a single object graph:

    Vertex <- Edge <- DirectedEdge <- Wire <- Face

Guarantees:
- One Vertex per spatial cluster (points closer than the tolerance merge)
- One Edge per unordered vertex pair, however often it is requested
- One DirectedEdge per ordered vertex pair
- A Vertex landing on an existing Edge splits that Edge, and every
  DirectedEdge and Wire woven from it is updated in place
- Wires are non-empty, sequential, closed and planar; Face holes are
  wound opposite to their outer Wire

Children are held by reference, parents by integer id (the model is
the arena), so the graph carries no reference cycles.

Usage:
    model = TopologyModel(tol=0.01)
    outer = model.wire([Point3D(0, 0, 0), Point3D(4, 0, 0), Point3D(4, 0, 3), Point3D(0, 0, 3)])
    face = model.face(outer, [])
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ..errors import (
    DegenerateNormalError,
    EmptyWireError,
    HoleNotOnPlaneError,
    HoleWindingError,
    NonPlanarWireError,
    NonSequentialWireError,
    OpenWireError,
    TopologyError,
    UnregisteredWireError,
)
from ..geometry.primitives import EPSILON, BoundingBox, Plane3D, Point3D, Vector3D, newell_normal

logger = logging.getLogger(__name__)


DEFAULT_TOLERANCE = 0.01  # m


# =============================================================================
# ENTITIES
# =============================================================================


@dataclass(eq=False)
class Vertex:
    """A canonical point shared by every surface that touches it."""

    id: int
    point: Point3D

    def __repr__(self) -> str:
        return f"Vertex({self.id}, {self.point.to_list()})"


@dataclass(eq=False)
class Edge:
    """Unordered pair of distinct vertices."""

    id: int
    v0: Vertex
    v1: Vertex
    length: float = field(init=False)

    def __post_init__(self):
        self.recalculate()

    def recalculate(self) -> None:
        self.length = (self.v1.point - self.v0.point).magnitude

    @property
    def vector(self) -> Vector3D:
        return self.v1.point - self.v0.point

    def __repr__(self) -> str:
        return f"Edge({self.id}, v{self.v0.id}-v{self.v1.id}, {self.length:.3f}m)"


@dataclass(eq=False)
class DirectedEdge:
    """An Edge traversed in one direction."""

    id: int
    edge: Edge
    inverted: bool = False

    @property
    def origin(self) -> Vertex:
        return self.edge.v1 if self.inverted else self.edge.v0

    @property
    def terminal(self) -> Vertex:
        return self.edge.v0 if self.inverted else self.edge.v1

    @property
    def vector(self) -> Vector3D:
        return self.terminal.point - self.origin.point

    @property
    def length(self) -> float:
        return self.edge.length

    def __repr__(self) -> str:
        return f"DirectedEdge({self.id}, v{self.origin.id}->v{self.terminal.id})"


@dataclass(eq=False)
class Wire:
    """Closed, planar, cyclic sequence of directed edges."""

    id: int
    directed_edges: List[DirectedEdge]
    planar_tol: float = DEFAULT_TOLERANCE
    normal: Vector3D = field(init=False)
    plane: Plane3D = field(init=False)

    def __post_init__(self):
        self.recalculate()

    @property
    def vertices(self) -> List[Vertex]:
        return [de.origin for de in self.directed_edges]

    @property
    def points(self) -> List[Point3D]:
        return [de.origin.point for de in self.directed_edges]

    @property
    def edges(self) -> List[Edge]:
        return [de.edge for de in self.directed_edges]

    def recalculate(self) -> None:
        """Validate the edge cycle and refresh normal and plane."""
        des = self.directed_edges
        if not des:
            raise EmptyWireError(f"Wire {self.id} has no directed edges")

        for current, following in zip(des, des[1:]):
            if current.terminal is not following.origin:
                raise NonSequentialWireError(
                    f"Wire {self.id}: {current} does not lead into {following}"
                )
        if len(des) < 3 or des[-1].terminal is not des[0].origin:
            raise OpenWireError(f"Wire {self.id} is not closed")

        # Axis from the largest edge-pair cross product, sign from Newell
        largest = Vector3D(0.0, 0.0, 0.0)
        first = des[0].vector
        for de in des[1:]:
            cross = first.cross(de.vector)
            if cross.magnitude > largest.magnitude:
                largest = cross
        if largest.magnitude <= EPSILON:
            raise DegenerateNormalError(f"Wire {self.id} has collinear vertices only")
        normal = largest.normalize()
        if normal.dot(newell_normal(self.points)) < 0:
            normal = -normal

        plane = Plane3D(des[0].origin.point, normal)
        for point in self.points:
            if abs(plane.distance(point)) > self.planar_tol:
                raise NonPlanarWireError(
                    f"Wire {self.id}: point {point.to_list()} lies "
                    f"{abs(plane.distance(point)):.4f}m off its plane"
                )

        self.normal = normal
        self.plane = plane

    def index(self, directed_edge: DirectedEdge) -> int:
        for i, de in enumerate(self.directed_edges):
            if de is directed_edge:
                return i
        raise TopologyError(f"{directed_edge} is not part of wire {self.id}")

    def __repr__(self) -> str:
        return f"Wire({self.id}, {len(self.directed_edges)} edges)"


@dataclass(eq=False)
class Face:
    """One outer wire plus zero or more hole wires."""

    id: int
    outer: Wire
    holes: List[Wire] = field(default_factory=list)

    @property
    def wires(self) -> List[Wire]:
        return [self.outer] + list(self.holes)

    @property
    def normal(self) -> Vector3D:
        return self.outer.normal

    def __repr__(self) -> str:
        return f"Face({self.id}, outer={self.outer.id}, holes={[h.id for h in self.holes]})"


# =============================================================================
# MODEL
# =============================================================================


class TopologyModel:
    """
    Arena of topology entities with tolerance-based vertex merging.

    Args:
        tol: Vertex merge radius in metres
        planar_tol: Maximum distance of a wire vertex from its plane
            (defaults to ``tol``, since merged vertices may shift by up to tol)
        winding_tol: Allowed slack on hole.normal . outer.normal == -1
    """

    def __init__(
        self,
        tol: float = DEFAULT_TOLERANCE,
        planar_tol: Optional[float] = None,
        winding_tol: float = 0.01,
    ):
        if tol <= 0:
            raise ValueError(f"Tolerance must be positive, got {tol}")
        self.tol = tol
        self.tol2 = tol * tol
        self.planar_tol = tol if planar_tol is None else planar_tol
        self.winding_tol = winding_tol

        self.vertices: List[Vertex] = []
        self.edges: List[Edge] = []
        self.directed_edges: List[DirectedEdge] = []
        self.wires: List[Wire] = []
        self.faces: List[Face] = []

        # Parent links, keyed by child id
        self._vertex_parents: Dict[int, List[int]] = {}
        self._edge_parents: Dict[int, List[int]] = {}
        self._directed_edge_parents: Dict[int, List[int]] = {}
        self._wire_parents: Dict[int, List[int]] = {}

        # Lookup registries
        self._grid: Dict[Tuple[int, int, int], List[Vertex]] = {}
        self._edge_index: Dict[frozenset, Edge] = {}
        self._directed_edge_index: Dict[Tuple[int, int], DirectedEdge] = {}
        self._wire_index: Dict[Tuple[int, ...], Wire] = {}
        self._face_index: Dict[Tuple[int, Tuple[int, ...]], Face] = {}

    # -------------------------------------------------------------------------
    # Vertices
    # -------------------------------------------------------------------------

    def _cell(self, point: Point3D) -> Tuple[int, int, int]:
        return (
            math.floor(point.x / self.tol),
            math.floor(point.y / self.tol),
            math.floor(point.z / self.tol),
        )

    def find_vertex(self, point: Point3D) -> Optional[Vertex]:
        """Existing vertex within tolerance of a point, if any."""
        cx, cy, cz = self._cell(point)
        best = None
        best_d2 = self.tol2
        for dx in (-1, 0, 1):
            for dy in (-1, 0, 1):
                for dz in (-1, 0, 1):
                    for vertex in self._grid.get((cx + dx, cy + dy, cz + dz), ()):
                        d = vertex.point - point
                        d2 = d.dot(d)
                        if d2 < best_d2:
                            best, best_d2 = vertex, d2
        return best

    def vertex(self, point: Point3D) -> Vertex:
        """
        Canonical vertex for a point.

        A new vertex lying on an existing edge is snapped onto it and the
        edge is split.
        """
        existing = self.find_vertex(point)
        if existing is not None:
            return existing

        host = next((e for e in self.edges if self._on_segment(point, e.v0, e.v1)), None)
        if host is not None:
            point = _project_on_line(point, host.v0.point, host.v1.point)

        vertex = Vertex(len(self.vertices), point)
        self.vertices.append(vertex)
        self._vertex_parents[vertex.id] = []
        self._grid.setdefault(self._cell(point), []).append(vertex)

        for edge in list(self.edges):
            if self._on_segment(vertex.point, edge.v0, edge.v1):
                self._split_edge(edge, vertex)
        return vertex

    def vertices_for(self, points: Iterable[Point3D]) -> List[Vertex]:
        return [self.vertex(p) for p in points]

    def _on_segment(self, point: Point3D, v0: Vertex, v1: Vertex) -> bool:
        """True if a point lies strictly between two vertices, within tolerance."""
        a = v0.point
        b = v1.point
        ab = b - a
        length2 = ab.dot(ab)
        if length2 <= self.tol2:
            return False
        if (point - a).magnitude < self.tol or (point - b).magnitude < self.tol:
            return False
        t = (point - a).dot(ab) / length2
        if t <= 0 or t >= 1:
            return False
        closest = a + ab * t
        return (point - closest).magnitude < self.tol

    # -------------------------------------------------------------------------
    # Edges
    # -------------------------------------------------------------------------

    def find_edge(self, v0: Vertex, v1: Vertex) -> Optional[Edge]:
        return self._edge_index.get(frozenset((v0.id, v1.id)))

    def edge(self, v0: Vertex, v1: Vertex) -> Edge:
        """Canonical edge between two vertices, in either order."""
        if v0 is v1:
            raise TopologyError(f"Cannot build an edge from {v0} to itself")
        existing = self.find_edge(v0, v1)
        if existing is not None:
            return existing
        return self._new_edge(v0, v1)

    def _new_edge(self, v0: Vertex, v1: Vertex) -> Edge:
        edge = Edge(len(self.edges), v0, v1)
        self.edges.append(edge)
        self._edge_parents[edge.id] = []
        self._edge_index[frozenset((v0.id, v1.id))] = edge
        self._vertex_parents[v0.id].append(edge.id)
        self._vertex_parents[v1.id].append(edge.id)
        return edge

    def directed_edge(self, v0: Vertex, v1: Vertex) -> DirectedEdge:
        """Canonical directed edge from v0 to v1."""
        existing = self._directed_edge_index.get((v0.id, v1.id))
        if existing is not None:
            return existing
        edge = self.edge(v0, v1)
        return self._new_directed_edge(edge, inverted=edge.v0 is not v0)

    def _new_directed_edge(self, edge: Edge, inverted: bool) -> DirectedEdge:
        de = DirectedEdge(len(self.directed_edges), edge, inverted)
        self.directed_edges.append(de)
        self._directed_edge_parents[de.id] = []
        self._directed_edge_index[(de.origin.id, de.terminal.id)] = de
        self._edge_parents[edge.id].append(de.id)
        return de

    def _split_edge(self, edge: Edge, vertex: Vertex) -> Edge:
        """
        Split an edge at a vertex lying on it.

        The original edge keeps v0 and now ends at the vertex; a new edge
        runs from the vertex to the old v1. Directed edges and wires using
        the original edge gain the new piece in sequence.
        """
        old_v1 = edge.v1
        old_key = frozenset((edge.v0.id, old_v1.id))
        stale_des = [
            (self.directed_edges[i], (self.directed_edges[i].origin.id, self.directed_edges[i].terminal.id))
            for i in self._edge_parents[edge.id]
        ]
        stale_wires = {
            wid: self._wire_key(self.wires[wid])
            for de, _ in stale_des
            for wid in self._directed_edge_parents[de.id]
        }

        del self._edge_index[old_key]
        edge.v1 = vertex
        edge.recalculate()
        self._edge_index[frozenset((edge.v0.id, vertex.id))] = edge
        self._vertex_parents[old_v1.id].remove(edge.id)
        self._vertex_parents[vertex.id].append(edge.id)

        new_edge = self._new_edge(vertex, old_v1)
        logger.debug("Split %s at %s, new %s", edge, vertex, new_edge)

        for wid, key in stale_wires.items():
            self._wire_index.pop(key, None)

        for de, old_de_key in stale_des:
            self._directed_edge_index.pop(old_de_key, None)
            self._directed_edge_index[(de.origin.id, de.terminal.id)] = de
            if de.inverted:
                # old_v1 -> v0 becomes (old_v1 -> vertex) + (vertex -> v0)
                new_de = self._new_directed_edge(new_edge, inverted=True)
                offset = 0
            else:
                # v0 -> old_v1 becomes (v0 -> vertex) + (vertex -> old_v1)
                new_de = self._new_directed_edge(new_edge, inverted=False)
                offset = 1
            for wid in self._directed_edge_parents[de.id]:
                wire = self.wires[wid]
                wire.directed_edges.insert(wire.index(de) + offset, new_de)
                self._directed_edge_parents[new_de.id].append(wid)

        for wid in stale_wires:
            wire = self.wires[wid]
            wire.recalculate()
            self._wire_index[self._wire_key(wire)] = wire
        return new_edge

    # -------------------------------------------------------------------------
    # Wires and faces
    # -------------------------------------------------------------------------

    @staticmethod
    def _wire_key(wire_or_des) -> Tuple[int, ...]:
        """Rotation-invariant key of a directed edge cycle."""
        des = wire_or_des.directed_edges if isinstance(wire_or_des, Wire) else wire_or_des
        ids = [de.id for de in des]
        if not ids:
            return ()
        start = ids.index(min(ids))
        return tuple(ids[start:] + ids[:start])

    def wire(self, points: Sequence[Point3D]) -> Wire:
        """
        Canonical wire through a closed loop of points.

        Existing vertices lying on a segment of the loop are woven in, so
        the result does not depend on the order surfaces are added.
        """
        if not points:
            raise EmptyWireError("Cannot build a wire from an empty point loop")
        loop = self._dedupe_loop(self.vertices_for(points))
        if len(loop) < 3:
            raise DegenerateNormalError(
                f"Point loop collapses to {len(loop)} distinct vertices"
            )
        loop = self._weave(loop)

        des = [self.directed_edge(a, b) for a, b in zip(loop, loop[1:] + loop[:1])]
        existing = self._wire_index.get(self._wire_key(des))
        if existing is not None:
            return existing

        wire = Wire(len(self.wires), des, planar_tol=self.planar_tol)
        self.wires.append(wire)
        self._wire_parents[wire.id] = []
        self._wire_index[self._wire_key(wire)] = wire
        for de in des:
            if wire.id not in self._directed_edge_parents[de.id]:
                self._directed_edge_parents[de.id].append(wire.id)
        return wire

    @staticmethod
    def _dedupe_loop(vertices: List[Vertex]) -> List[Vertex]:
        loop: List[Vertex] = []
        for v in vertices:
            if not loop or loop[-1] is not v:
                loop.append(v)
        while len(loop) > 1 and loop[0] is loop[-1]:
            loop.pop()
        return loop

    def _weave(self, loop: List[Vertex]) -> List[Vertex]:
        own = {v.id for v in loop}
        woven: List[Vertex] = []
        for a, b in zip(loop, loop[1:] + loop[:1]):
            woven.append(a)
            ab = b.point - a.point
            length2 = ab.dot(ab)
            box = BoundingBox(self.tol)
            box.add_point(a.point)
            box.add_point(b.point)
            between = [
                v for v in self.vertices
                if v.id not in own and box.include(v.point) and self._on_segment(v.point, a, b)
            ]
            between.sort(key=lambda v: (v.point - a.point).dot(ab) / length2)
            woven.extend(between)
        return woven

    def face(self, outer: Wire, holes: Sequence[Wire] = ()) -> Face:
        """
        Canonical face for an outer wire and its holes.

        Raises:
            UnregisteredWireError: A wire does not belong to this model
            HoleWindingError: A hole is not wound opposite to the outer wire
            HoleNotOnPlaneError: A hole vertex lies off the outer plane
        """
        for wire in [outer, *holes]:
            if not self._owns_wire(wire):
                raise UnregisteredWireError(f"{wire} is not registered in this model")

        key = (outer.id, tuple(sorted(h.id for h in holes)))
        existing = self._face_index.get(key)
        if existing is not None:
            return existing

        for hole in holes:
            if hole.normal.dot(outer.normal) > -1 + self.winding_tol:
                raise HoleWindingError(
                    f"{hole} is not wound opposite to {outer}"
                )
            for point in hole.points:
                if abs(outer.plane.distance(point)) > self.planar_tol:
                    raise HoleNotOnPlaneError(
                        f"{hole} point {point.to_list()} lies off the plane of {outer}"
                    )

        face = Face(len(self.faces), outer, list(holes))
        self.faces.append(face)
        self._face_index[key] = face
        for wire in face.wires:
            self._wire_parents[wire.id].append(face.id)
        return face

    def _owns_wire(self, wire: Wire) -> bool:
        return 0 <= wire.id < len(self.wires) and self.wires[wire.id] is wire

    # -------------------------------------------------------------------------
    # Graph queries
    # -------------------------------------------------------------------------

    def parents(self, obj) -> list:
        """Entities one level up the graph (Vertex -> Edges, ..., Wire -> Faces)."""
        if isinstance(obj, Vertex):
            return [self.edges[i] for i in self._vertex_parents[obj.id]]
        if isinstance(obj, Edge):
            return [self.directed_edges[i] for i in self._edge_parents[obj.id]]
        if isinstance(obj, DirectedEdge):
            return [self.wires[i] for i in self._directed_edge_parents[obj.id]]
        if isinstance(obj, Wire):
            return [self.faces[i] for i in self._wire_parents[obj.id]]
        if isinstance(obj, Face):
            return []
        raise TypeError(f"Unsupported topology object {obj!r}")

    def children(self, obj) -> list:
        """Entities one level down the graph."""
        if isinstance(obj, Face):
            return obj.wires
        if isinstance(obj, Wire):
            return list(obj.directed_edges)
        if isinstance(obj, DirectedEdge):
            return [obj.edge]
        if isinstance(obj, Edge):
            return [obj.v0, obj.v1]
        if isinstance(obj, Vertex):
            return []
        raise TypeError(f"Unsupported topology object {obj!r}")

    def edge_uses(self, edge: Edge) -> List[Tuple[Face, Wire, DirectedEdge]]:
        """Every (face, wire, directed edge) that runs along an edge."""
        uses = []
        for de in self.parents(edge):
            for wire in self.parents(de):
                for face in self.parents(wire):
                    uses.append((face, wire, de))
        return uses

    def summary(self) -> Dict[str, int]:
        return {
            "vertices": len(self.vertices),
            "edges": len(self.edges),
            "directed_edges": len(self.directed_edges),
            "wires": len(self.wires),
            "faces": len(self.faces),
        }


def _project_on_line(point: Point3D, a: Point3D, b: Point3D) -> Point3D:
    ab = b - a
    t = (point - a).dot(ab) / ab.dot(ab)
    return a + ab * t
