"""
Thermal bridge processing pipeline.

Orchestrates the full run for one building envelope:
1. Resolve options and coefficient sets (fail fast on incomplete sets)
2. Build the topology mesh from surfaces, openings and shades
3. Index every shared edge and the surfaces linked to it
4. Classify edges (PSI type, coefficient, loss)
5. Apportion edge and point losses to deratable surfaces
6. Uprate surface groups towards target U-factors (optional)
7. Derate insulating layers of cloned constructions

Per-object problems are logged and the object skipped; nothing raises
out of ``process`` for bad input data.

Usage:
    from thermal_bridging import process

    result = process(surfaces, shades, ProcessOptions(psi_set="regular (BETBG)"))
    for s in result.surfaces:
        print(s.id, s.heat_loss, s.ratio)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Optional, Sequence, Set

from shapely.geometry import Polygon

from .bridging.classifier import EdgeClassifier
from .bridging.edges import ClassifiedEdge, EdgeRecord, LinkedSurface, LinkKind
from .bridging.psi import KhiLibrary, PsiLibrary, PsiSetError
from .core.config import settings
from .core.log import LogSink
from .core.models import (
    EdgeResult,
    ProcessOptions,
    ProcessResult,
    Shade,
    SubSurface,
    Surface,
    SurfaceResult,
    UprateResult,
)
from .derating.derate import (
    derate_layer,
    derating_ratio,
    insulating_layer,
    rsi,
    set_layer_resistance,
    uprate,
)
from .derating.heatloss import HeatLossLedger, add_point_losses, apportion
from .errors import TopologyError
from .geometry import Plane3D, newell_normal, planar_coordinates, polygon_area
from .topology import TopologyModel

logger = logging.getLogger(__name__)


@dataclass
class RunConfig:
    """Options resolved against global settings."""

    psi_set: str
    khi_set: str
    tolerance: float
    sub_tolerance: float
    parapet: bool

    @classmethod
    def resolve(cls, options: ProcessOptions) -> "RunConfig":
        def pick(value, default):
            return default if value is None else value

        return cls(
            psi_set=pick(options.psi_set, settings.psi_set),
            khi_set=pick(options.khi_set, settings.khi_set),
            tolerance=pick(options.tolerance, settings.tolerance),
            sub_tolerance=pick(options.sub_tolerance, settings.sub_tolerance),
            parapet=pick(options.parapet, settings.parapet),
        )


@dataclass
class Mesh:
    """Topology model plus the mapping back to building surfaces."""

    model: TopologyModel
    faces: Dict[int, str] = field(default_factory=dict)  # face id -> surface id
    surfaces: List[Surface] = field(default_factory=list)  # accepted into the mesh
    openings: Dict[str, List[SubSurface]] = field(default_factory=dict)  # host id -> accepted
    hole_links: List[LinkedSurface] = field(default_factory=list)
    surface_links: List[LinkedSurface] = field(default_factory=list)
    shade_links: List[LinkedSurface] = field(default_factory=list)

    @property
    def links(self) -> List[LinkedSurface]:
        """Every (surface, wire) pairing, openings first."""
        return self.hole_links + self.surface_links + self.shade_links

    def net_area(self, surface: Surface) -> float:
        """Declared net area, else gross area minus the openings kept in the mesh."""
        if surface.net_area is not None:
            return surface.net_area
        openings = self.openings.get(surface.id, [])
        return surface.gross_area - sum(o.gross_area for o in openings)


# =============================================================================
# MESH CONSTRUCTION
# =============================================================================


def _check_openings(surface: Surface, cfg: RunConfig, sink: LogSink) -> List[SubSurface]:
    """Openings of a surface that fit inside it without overlapping each other."""
    if not surface.sub_surfaces:
        return []
    host_points = surface.vertices
    plane = Plane3D(host_points[0], newell_normal(host_points))
    host = Polygon(planar_coordinates(host_points, plane))
    tol = cfg.tolerance

    accepted: List[SubSurface] = []
    shapes: List[Polygon] = []
    for sub in surface.sub_surfaces:
        points = surface.to_building(sub.vertices)
        if polygon_area(points) < tol * tol:
            sink.error(f"Opening '{sub.id}' ({surface.id}) has no area, skipping")
            continue
        if any(abs(plane.distance(p)) > tol for p in points):
            sink.error(f"Opening '{sub.id}' lies off the plane of '{surface.id}', skipping")
            continue
        if newell_normal(points).dot(plane.normal) < 0:
            sink.error(f"Opening '{sub.id}' is wound against its host '{surface.id}', skipping")
            continue
        shape = Polygon(planar_coordinates(points, plane))
        if not shape.is_valid:
            sink.error(f"Opening '{sub.id}' ({surface.id}) is self-intersecting, skipping")
            continue
        if not host.buffer(tol).contains(shape):
            sink.error(f"Opening '{sub.id}' doesn't fit in '{surface.id}', skipping")
            continue
        if any(shape.intersection(other).area > tol * tol for other in shapes):
            sink.error(f"Opening '{sub.id}' overlaps a sibling in '{surface.id}', skipping")
            continue
        gap = host.exterior.distance(shape)
        if tol * tol < gap < cfg.sub_tolerance:
            sink.warn(f"Opening '{sub.id}' sits {gap:.3f}m from the edge of '{surface.id}'")
        accepted.append(sub)
        shapes.append(shape)
    return accepted


def build_mesh(
    surfaces: Sequence[Surface],
    shades: Sequence[Shade],
    cfg: RunConfig,
    sink: LogSink,
) -> Mesh:
    """Stitch every valid surface, opening and shade into one topology model."""
    mesh = Mesh(model=TopologyModel(tol=cfg.tolerance))
    model = mesh.model

    for surface in surfaces:
        points = surface.vertices
        if polygon_area(points) < cfg.tolerance ** 2:
            sink.error(f"Surface '{surface.id}' has no area, skipping")
            continue
        openings = _check_openings(surface, cfg, sink)
        try:
            outer = model.wire(points)
            # Openings share their host's outward winding; holes run the other way
            holes = [model.wire(list(reversed(surface.to_building(s.vertices)))) for s in openings]
            face = model.face(outer, holes)
        except TopologyError as exc:
            sink.error(f"Surface '{surface.id}' is malformed ({exc}), skipping")
            continue
        if face.id in mesh.faces:
            sink.error(f"Surface '{surface.id}' duplicates '{mesh.faces[face.id]}', skipping")
            continue

        mesh.faces[face.id] = surface.id
        mesh.surfaces.append(surface)
        mesh.openings[surface.id] = openings
        mesh.surface_links.append(
            LinkedSurface(surface.id, LinkKind.SURFACE, outer, outer.normal)
        )
        for sub, hole in zip(openings, holes):
            mesh.hole_links.append(
                LinkedSurface(sub.id, LinkKind.HOLE, hole, outer.normal, host_id=surface.id)
            )
            # The host also runs along its rough openings
            mesh.surface_links.append(
                LinkedSurface(surface.id, LinkKind.SURFACE, hole, outer.normal)
            )

    for shade in shades:
        try:
            outer = model.wire(shade.vertices)
            face = model.face(outer, [])
        except TopologyError as exc:
            sink.error(f"Shade '{shade.id}' is malformed ({exc}), skipping")
            continue
        if face.id in mesh.faces:
            sink.error(f"Shade '{shade.id}' duplicates '{mesh.faces[face.id]}', skipping")
            continue
        mesh.faces[face.id] = shade.id
        mesh.shade_links.append(LinkedSurface(shade.id, LinkKind.SHADE, outer, outer.normal))

    logger.info("Mesh: %s", model.summary())
    return mesh


def edge_records(mesh: Mesh) -> List[EdgeRecord]:
    """
    One record per edge shared by two or more surfaces.

    A surface meeting an edge through several of its wires keeps the
    first one listed (outer wire before rough openings).
    """
    records: Dict[int, EdgeRecord] = {}
    for link in mesh.links:
        for edge in link.wire.edges:
            record = records.setdefault(edge.id, EdgeRecord(edge=edge, tol=mesh.model.tol))
            if link.surface_id not in record.linked:
                record.linked[link.surface_id] = replace(link)
    return [records[i] for i in sorted(records) if len(records[i].linked) > 1]


# =============================================================================
# DERATING
# =============================================================================


def deratable_surfaces(surfaces: Iterable[Surface], sink: LogSink) -> Dict[str, int]:
    """Outdoor-facing conditioned surfaces with an identifiable insulating layer."""
    deratable = {}
    for surface in surfaces:
        if not (surface.is_outdoors and surface.conditioned):
            continue
        if surface.construction is None:
            sink.error(f"Surface '{surface.id}' has no construction, skipping derating")
            continue
        index = insulating_layer(surface.construction)
        if index is None:
            sink.error(f"Can't identify insulating layer of '{surface.id}', skipping derating")
            continue
        deratable[surface.id] = index
    return deratable


def _uprate_groups(
    options: ProcessOptions,
    surfaces: Dict[str, Surface],
    deratable: Dict[str, int],
    names: Dict[str, str],
    areas: Dict[str, float],
    ledger: HeatLossLedger,
    sink: LogSink,
) -> List[UprateResult]:
    """Uprate each target group; ``names`` maps surface ids to their original construction."""
    results = []
    for target in options.uprate:
        group = [
            surfaces[sid] for sid in deratable
            if surfaces[sid].type == target.surface_type
            and target.construction in (None, names[sid])
        ]
        result = UprateResult(
            surface_type=target.surface_type,
            construction=target.construction,
            ut=target.ut,
            surfaces=[s.id for s in group],
        )
        results.append(result)
        if not group:
            sink.warn(f"No deratable {target.surface_type.value} surfaces to uprate")
            continue

        result.area = sum(areas[s.id] for s in group)
        result.heat_loss = sum(ledger.total(s.id) for s in group)
        reference = max(group, key=lambda s: areas[s.id])
        layer = reference.construction.layers[deratable[reference.id]]
        try:
            film_r = rsi(reference.construction) - layer.r
            solved = uprate(result.area, target.ut, result.heat_loss, film_r)
        except ValueError as exc:
            sink.error(f"Unable to uprate {target.surface_type.value} surfaces: {exc}")
            continue

        result.uo = solved.uo
        for surface in group:
            achieved = set_layer_resistance(
                surface.construction.layers[deratable[surface.id]], solved.r_layer
            )
            if abs(achieved - solved.r_layer) > 1e-6:
                sink.warn(f"Uprated layer of '{surface.id}' capped at {achieved:.3f} m2.K/W")
    return results


def _derate_surface(
    surface: Surface, index: int, area: float, ledger: HeatLossLedger, sink: LogSink
) -> Optional[SurfaceResult]:
    if area <= 0:
        sink.error(f"Surface '{surface.id}' has no net area, skipping derating")
        return None

    heat_loss = ledger.total(surface.id)
    construction = surface.construction
    layer = construction.layers[index]
    r_before = rsi(construction)
    residual = 0.0
    if heat_loss > 0:
        try:
            outcome = derate_layer(layer, area, heat_loss)
        except ValueError as exc:
            sink.error(f"Unable to derate '{surface.id}': {exc}")
            return None
        residual = outcome.residual
        if residual > 0.01:
            sink.warn(f"Won't assign {residual:.3f} W/K to '{surface.id}': too conductive")
    r_after = rsi(construction)
    ratio = derating_ratio(r_before, r_after)
    logger.debug(
        "Derated %.3f -> %.3f m2.K/W (%.3f W/K over %.2f m2)",
        r_before, r_after, heat_loss, area,
        extra={"surface_id": surface.id},
    )

    surface.heat_loss = heat_loss
    surface.ratio = ratio
    return SurfaceResult(
        id=surface.id,
        net_area=area,
        heat_loss=heat_loss,
        edge_loss=ledger.edge_loss(surface.id),
        point_loss=ledger.point_loss(surface.id),
        residual_loss=residual,
        ratio=ratio,
        r_before=r_before,
        r_after=r_after,
        layer=layer.model_copy(),
    )


def _edge_result(edge: ClassifiedEdge, ledger: HeatLossLedger) -> EdgeResult:
    record = edge.record
    return EdgeResult(
        id=record.id,
        length=record.length,
        v0=record.origin.to_list(),
        v1=record.terminal.to_list(),
        surfaces=list(record.linked),
        type=edge.type,
        psi=edge.psi,
        psi_set=edge.psi_set if edge.type else None,
        loss=edge.loss,
        candidates=edge.candidates,
        shares=ledger.edge_shares(record.id),
    )


# =============================================================================
# ENTRY POINT
# =============================================================================


def _load_libraries(
    options: ProcessOptions,
    cfg: RunConfig,
    psi: Optional[PsiLibrary],
    khi: Optional[KhiLibrary],
) -> tuple:
    psi = PsiLibrary() if psi is None else psi
    khi = KhiLibrary() if khi is None else khi
    for custom in options.psi_sets:
        psi.append(custom.name, custom.values)
    for custom in options.khi_sets:
        khi.append(custom.name, custom.values)
    psi.require_complete(cfg.psi_set)
    if cfg.khi_set not in khi:
        raise PsiSetError(f"Unknown KHI set '{cfg.khi_set}'")
    return psi, khi


def process(
    surfaces: Sequence[Surface],
    shades: Sequence[Shade] = (),
    options: Optional[ProcessOptions] = None,
    psi: Optional[PsiLibrary] = None,
    khi: Optional[KhiLibrary] = None,
    sink: Optional[LogSink] = None,
) -> ProcessResult:
    """
    Identify thermal bridges and derate the envelope.

    Surfaces are mutated: deratable ones receive ``heat_loss`` and
    ``ratio`` and a derated copy of their construction.

    Args:
        surfaces: Opaque surface descriptors (with their openings)
        shades: Shading surface descriptors
        options: Run options (defaults from settings)
        psi: PSI library (built-in sets when omitted)
        khi: KHI library (built-in sets when omitted)
        sink: Log sink to accumulate messages into

    Returns:
        ProcessResult with surface and edge results plus the log
    """
    sink = sink if sink is not None else LogSink()
    options = options or ProcessOptions()
    cfg = RunConfig.resolve(options)

    try:
        psi, khi = _load_libraries(options, cfg, psi, khi)
    except PsiSetError as exc:
        sink.fatal(str(exc))
        return ProcessResult(status=sink.status.tag, log=sink.to_list())

    seen: Set[str] = set()
    unique: List[Surface] = []
    for surface in surfaces:
        ids = [surface.id] + [s.id for s in surface.sub_surfaces]
        clash = next((i for i in ids if i in seen), None)
        if clash is not None:
            sink.error(f"Duplicate id '{clash}', skipping surface '{surface.id}'")
            continue
        seen.update(ids)
        unique.append(surface)
    unique_shades: List[Shade] = []
    for shade in shades:
        if shade.id in seen:
            sink.error(f"Duplicate id '{shade.id}', skipping shade")
            continue
        seen.add(shade.id)
        unique_shades.append(shade)
    shades = unique_shades

    # Build mesh, then classify: every edge must be known first
    mesh = build_mesh(unique, shades, cfg, sink)
    records = edge_records(mesh)

    by_id: Dict[str, object] = {s.id: s for s in mesh.surfaces}
    for host_id, openings in mesh.openings.items():
        by_id.update({o.id: o for o in openings})
    by_id.update({s.id: s for s in shades})

    # Each deratable surface gets its own construction to rewrite
    deratable = deratable_surfaces(mesh.surfaces, sink)
    names: Dict[str, str] = {}
    for sid in deratable:
        surface = by_id[sid]
        names[sid] = surface.construction.name
        surface.construction = surface.construction.model_copy(
            deep=True, update={"name": f"{sid} c tbd"}
        )

    classifier = EdgeClassifier(psi, cfg.psi_set, by_id, deratable, parapet=cfg.parapet)
    classified = classifier.classify_all(records)

    ledger = apportion(classified, set(deratable))
    add_point_losses((by_id[sid] for sid in deratable), khi, cfg.khi_set, sink, ledger)

    areas = {sid: mesh.net_area(by_id[sid]) for sid in deratable}
    uprates = _uprate_groups(options, by_id, deratable, names, areas, ledger, sink)

    results = []
    for sid, index in deratable.items():
        outcome = _derate_surface(by_id[sid], index, areas[sid], ledger, sink)
        if outcome is not None:
            results.append(outcome)

    return ProcessResult(
        surfaces=results,
        edges=[_edge_result(e, ledger) for e in classified],
        uprates=uprates,
        status=sink.status.tag,
        log=sink.to_list(),
    )
