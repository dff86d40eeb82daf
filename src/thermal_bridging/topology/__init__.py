"""
Topology Module - stitched mesh of envelope surfaces.

Provides the TopologyModel arena (Vertex, Edge, DirectedEdge, Wire, Face)
with tolerance-based vertex merging and automatic edge splitting.
"""

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
from .model import (
    DEFAULT_TOLERANCE,
    DirectedEdge,
    Edge,
    Face,
    TopologyModel,
    Vertex,
    Wire,
)

__all__ = [
    # Model
    'DEFAULT_TOLERANCE',
    'TopologyModel',
    'Vertex',
    'Edge',
    'DirectedEdge',
    'Wire',
    'Face',
    # Errors
    'TopologyError',
    'DegenerateNormalError',
    'EmptyWireError',
    'NonSequentialWireError',
    'OpenWireError',
    'NonPlanarWireError',
    'UnregisteredWireError',
    'HoleWindingError',
    'HoleNotOnPlaneError',
]
