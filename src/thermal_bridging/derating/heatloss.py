"""
Heat loss apportionment.

Each classified edge loses psi x length (x opening multiplier) W/K. That
loss is split evenly between the deratable surfaces linked to the edge.
When an opening's perimeter also touches a neighbouring opaque surface,
the opening's host is left out so the loss lands on the neighbour only.

Point thermal bridges add khi x count per surface.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set

from ..bridging.edges import ClassifiedEdge, LinkKind
from ..bridging.psi import KhiLibrary
from ..core.log import LogSink
from ..core.models import Surface

logger = logging.getLogger(__name__)


@dataclass
class HeatLossLedger:
    """Per-surface heat loss contributions (W/K)."""

    edges: Dict[str, Dict[int, float]] = field(default_factory=lambda: defaultdict(dict))
    points: Dict[str, float] = field(default_factory=lambda: defaultdict(float))

    def edge_loss(self, surface_id: str) -> float:
        return sum(self.edges.get(surface_id, {}).values())

    def point_loss(self, surface_id: str) -> float:
        return self.points.get(surface_id, 0.0)

    def total(self, surface_id: str) -> float:
        return self.edge_loss(surface_id) + self.point_loss(surface_id)

    def edge_shares(self, edge_id: int) -> Dict[str, float]:
        return {sid: losses[edge_id] for sid, losses in self.edges.items() if edge_id in losses}


def recipients(edge: ClassifiedEdge, deratable: Set[str]) -> List[str]:
    """Surfaces that receive a share of an edge's heat loss."""
    linked = edge.record.linked.values()
    targets = [s for s in linked if s.kind == LinkKind.SURFACE and s.surface_id in deratable]
    holes = [s for s in linked if s.kind == LinkKind.HOLE]
    if holes and len(targets) > 1:
        hosts = {h.host_id for h in holes}
        pruned = [s for s in targets if s.surface_id not in hosts]
        if pruned:
            targets = pruned
    return [s.surface_id for s in targets]


def apportion(
    edges: Iterable[ClassifiedEdge],
    deratable: Set[str],
    ledger: Optional[HeatLossLedger] = None,
) -> HeatLossLedger:
    """Split every edge's loss evenly over its recipient surfaces."""
    ledger = ledger or HeatLossLedger()
    for edge in edges:
        if edge.type is None:
            continue
        ids = recipients(edge, deratable)
        if not ids:
            continue
        share = edge.loss / len(ids)
        for sid in ids:
            ledger.edges[sid][edge.record.id] = share
    return ledger


def add_point_losses(
    surfaces: Iterable[Surface],
    khi: KhiLibrary,
    khi_set: str,
    sink: LogSink,
    ledger: HeatLossLedger,
) -> HeatLossLedger:
    """Add khi x count for every point bridge of every surface."""
    for surface in surfaces:
        for bridge in surface.point_bridges:
            value = khi.value(khi_set, bridge.khi)
            if value is None:
                sink.error(f"Unknown KHI '{bridge.khi}' in set '{khi_set}' ({surface.id}), skipping")
                continue
            ledger.points[surface.id] += value * bridge.count
    return ledger

