"""
Thermal bridge classification of shared edges.

Every edge linked to two or more surfaces is tested against an ordered
list of rules, each pairing a deratable surface with another surface on
the same edge:

    grade -> party -> balcony -> parapet/roof -> rimjoist
          -> fenestration (head/sill/jamb, door*, skylight*)
          -> spandrel -> corner -> ceiling

Each matching rule proposes a PSI type (with a concave/convex variant
when the pair forms a corner). The proposal with the highest PSI value
wins; equal values go to the rule listed first. Edges with deratable surfaces
but no proposal become zero-loss "transition" edges.

Usage:
    classifier = EdgeClassifier(psi, "poor (BETBG)", surfaces, deratable_ids)
    classified = classifier.classify(record)
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Mapping, Optional, Set

from ..core.models import Boundary, SubSurface, SubSurfaceType, Surface, SurfaceType
from ..geometry import Vector3D
from .edges import ANGLE_TOL, ClassifiedEdge, EdgeRecord, LinkKind, LinkedSurface, compute_angles, variant
from .psi import PsiLibrary, split_variant

logger = logging.getLogger(__name__)


# Prefix of perimeter types per opening type
OPENING_PREFIX = {
    SubSurfaceType.WINDOW: "",
    SubSurfaceType.GLASS_DOOR: "",
    SubSurfaceType.DOOR: "door",
    SubSurfaceType.SKYLIGHT: "skylight",
}

PERIMETER_TYPES = {
    "fenestration", "head", "sill", "jamb",
    "door", "doorhead", "doorsill", "doorjamb",
    "skylight", "skylighthead", "skylightsill", "skylightjamb",
    "balconysill", "balconydoorsill",
}

# Tie-break order between equal PSI values
PRECEDENCE = (
    "grade", "party", "balcony", "balconydoorsill", "balconysill",
    "parapet", "roof", "rimjoist",
    "doorhead", "doorsill", "doorjamb", "door",
    "skylighthead", "skylightsill", "skylightjamb", "skylight",
    "head", "sill", "jamb", "fenestration",
    "spandrel", "corner", "ceiling", "joint", "transition",
)


def _rank(psi_type: str) -> int:
    return PRECEDENCE.index(split_variant(psi_type)[0])


class EdgeClassifier:
    """
    Assigns PSI types to edge records.

    Args:
        psi: Coefficient library
        psi_set: Name of the active PSI set
        descriptors: Surface, opening and shade descriptors by id
        deratable: Ids of surfaces eligible for derating
        parapet: Tag wall/roof intersections as "parapet" (else "roof")
    """

    def __init__(
        self,
        psi: PsiLibrary,
        psi_set: str,
        descriptors: Mapping[str, object],
        deratable: Iterable[str],
        parapet: bool = True,
    ):
        self.psi = psi
        self.psi_set = psi_set
        self.descriptors = descriptors
        self.deratable: Set[str] = set(deratable)
        self.parapet = parapet

    # -------------------------------------------------------------------------
    # Descriptor helpers
    # -------------------------------------------------------------------------

    def _surface(self, linked: LinkedSurface) -> Optional[Surface]:
        d = self.descriptors.get(linked.surface_id)
        return d if isinstance(d, Surface) else None

    def _is(self, linked: LinkedSurface, surface_type: SurfaceType) -> bool:
        s = self._surface(linked)
        return s is not None and s.type == surface_type

    def _boundary(self, linked: LinkedSurface) -> Optional[Boundary]:
        s = self._surface(linked)
        return s.boundary if s is not None else None

    def _is_exterior(self, linked: LinkedSurface) -> bool:
        return linked.surface_id in self.deratable

    def _is_plenum_floor(self, linked: LinkedSurface) -> bool:
        """
        Conditioned but unoccupied interior floor (e.g. a plenum) lying over
        the conditioned ceiling of an occupied space.
        """
        s = self._surface(linked)
        if s is None or s.type != SurfaceType.FLOOR or linked.surface_id in self.deratable:
            return False
        if s.boundary != Boundary.SURFACE or not s.conditioned or s.occupied:
            return False
        below = self.descriptors.get(s.adjacent) if s.adjacent else None
        return isinstance(below, Surface) and below.conditioned and below.occupied

    # -------------------------------------------------------------------------
    # Classification
    # -------------------------------------------------------------------------

    def classify_all(self, records: Iterable[EdgeRecord]) -> List[ClassifiedEdge]:
        return [self.classify(r) for r in records]

    def classify(self, record: EdgeRecord) -> ClassifiedEdge:
        result = ClassifiedEdge(record=record, psi_set=self.psi_set)
        if len(record.linked) < 2:
            return result

        compute_angles(record)
        targets = [s for s in record.linked.values() if s.surface_id in self.deratable]
        if not targets:
            return result

        holes = record.of_kind(LinkKind.HOLE)
        shades = record.of_kind(LinkKind.SHADE)
        candidates: Dict[str, float] = {}

        # Edges shared by adjacent openings (mullions) are transitions
        if len(holes) < 2:
            for target in targets:
                for other in record.linked.values():
                    if other is not target:
                        self._rules(record, target, other, shades, candidates)
        if not candidates:
            self._propose(candidates, "transition")

        winner = max(candidates, key=lambda t: (candidates[t], -_rank(t)))
        result.type = winner
        result.psi = candidates[winner]
        result.candidates = candidates

        if holes and split_variant(winner)[0] in PERIMETER_TYPES:
            opening = self.descriptors.get(holes[0].surface_id)
            if isinstance(opening, SubSurface):
                result.multiplier = opening.multiplier

        logger.debug(
            "Edge %d: %s (%.3f W/K.m)", record.id, winner, result.psi,
            extra={"edge_id": record.id, "psi_set": self.psi_set},
        )
        return result

    def _propose(self, candidates: Dict[str, float], psi_type: str) -> None:
        if psi_type in candidates:
            return
        value = self.psi.value(self.psi_set, psi_type)
        if value is not None:
            candidates[psi_type] = value

    def _rules(
        self,
        record: EdgeRecord,
        t: LinkedSurface,
        s: LinkedSurface,
        shades: List[LinkedSurface],
        candidates: Dict[str, float],
    ) -> None:
        v = variant(t, s)
        boundary = self._boundary(s)
        opaque = s.kind == LinkKind.SURFACE

        if opaque and boundary in (Boundary.GROUND, Boundary.FOUNDATION):
            self._propose(candidates, "grade" + v)

        if opaque and boundary == Boundary.ADIABATIC:
            self._propose(candidates, "party" + v)

        # Balconies: a floor meeting a shade, or a wall/slab junction carrying one
        if shades and s.kind != LinkKind.HOLE:
            on_floor = self._is(t, SurfaceType.FLOOR) or self._is(s, SurfaceType.FLOOR)
            if on_floor and (s.kind == LinkKind.SHADE or self._is(s, SurfaceType.FLOOR)):
                self._propose(candidates, "balcony" + v)

        if opaque and self._is_exterior(s):
            pair = {self._surface(t).type, self._surface(s).type}
            if SurfaceType.WALL in pair and len(pair) == 2:
                self._propose(candidates, ("parapet" if self.parapet else "roof") + v)

        if (
            not shades
            and self._is(t, SurfaceType.WALL)
            and self._is(s, SurfaceType.FLOOR)
            and boundary == Boundary.SURFACE
        ):
            self._propose(candidates, "rimjoist" + v)

        if s.kind == LinkKind.HOLE:
            self._propose(candidates, self._perimeter_type(record, s, shades) + v)

        if opaque and self._is_exterior(s) and self._is(t, SurfaceType.WALL) and self._is(s, SurfaceType.WALL):
            if self._surface(t).spandrel != self._surface(s).spandrel:
                self._propose(candidates, "spandrel" + v)
            if v:
                self._propose(candidates, "corner" + v)

        if opaque and self._is_plenum_floor(s):
            self._propose(candidates, "ceiling" + self._ceiling_variant(record, t))

    def _ceiling_variant(self, record: EdgeRecord, t: LinkedSurface) -> str:
        # Against another deratable surface on the edge, flat when alone
        others = [
            s for s in record.linked.values() if s is not t and s.surface_id in self.deratable
        ]
        return variant(t, others[0]) if others else ""

    def _perimeter_type(
        self, record: EdgeRecord, hole: LinkedSurface, shades: List[LinkedSurface]
    ) -> str:
        """head, sill or jamb (with door/skylight prefix) of an opening edge."""
        opening = self.descriptors.get(hole.surface_id)
        kind = opening.type if isinstance(opening, SubSurface) else SubSurfaceType.WINDOW
        prefix = OPENING_PREFIX[kind]

        flat = abs(abs(hole.normal.dot(Vector3D.zenith())) - 1) < ANGLE_TOL
        if flat or not record.is_horizontal:
            part = "jamb"
        elif hole.polar.dot(Vector3D.zenith()) < 0:
            part = "head"
        else:
            part = "sill"

        if part == "sill" and shades and prefix != "skylight":
            return "balconydoorsill" if kind == SubSurfaceType.DOOR else "balconysill"
        return prefix + part
