"""
Pytest configuration and fixtures for thermal bridging tests.

Provides reusable test fixtures for:
- Constructions (massless and layered)
- Envelope geometry (a 10m x 10m x 3m box, lone walls, balconies)
- Coefficient libraries and log sinks
"""

import logging

import pytest

from thermal_bridging.bridging import KhiLibrary, PsiLibrary
from thermal_bridging.core import (
    Boundary,
    Construction,
    Layer,
    LayerKind,
    LogSink,
    Shade,
    Surface,
    SurfaceType,
)
from thermal_bridging.topology import TopologyModel


# =============================================================================
# CONSTRUCTION FIXTURES
# =============================================================================

def massless_construction(r: float = 2.0, film: float = 0.0, name: str = "massless") -> Construction:
    """Single massless insulation layer."""
    return Construction(
        name=name,
        layers=[Layer(name="insulation", kind=LayerKind.MASSLESS, resistance=r)],
        film_resistance=film,
    )


@pytest.fixture
def massless() -> Construction:
    """Massless R-2.0 construction without air films."""
    return massless_construction()


@pytest.fixture
def layered() -> Construction:
    """Brick / mineral wool / gypsum wall with air films."""
    return Construction(
        name="brick veneer",
        layers=[
            Layer(name="brick", thickness=0.1, conductivity=0.9),
            Layer(name="mineral wool", thickness=0.1, conductivity=0.04),
            Layer(name="gypsum", thickness=0.0127, conductivity=0.16),
        ],
        film_resistance=0.15,
    )


# =============================================================================
# GEOMETRY FIXTURES
# =============================================================================

# Outward-wound loops of a box spanning x, y in [0, 10] and z in [0, 3]
BOX_WALLS = {
    "south": [[0, 0, 3], [0, 0, 0], [10, 0, 0], [10, 0, 3]],
    "east": [[10, 0, 3], [10, 0, 0], [10, 10, 0], [10, 10, 3]],
    "north": [[10, 10, 3], [10, 10, 0], [0, 10, 0], [0, 10, 3]],
    "west": [[0, 10, 3], [0, 10, 0], [0, 0, 0], [0, 0, 3]],
}
BOX_ROOF = [[0, 0, 3], [10, 0, 3], [10, 10, 3], [0, 10, 3]]
BOX_FLOOR = [[0, 0, 0], [0, 10, 0], [10, 10, 0], [10, 0, 0]]


def wall(surface_id: str, points, construction=None, **kwargs) -> Surface:
    return Surface(
        id=surface_id,
        type=SurfaceType.WALL,
        points=points,
        construction=construction or massless_construction(),
        **kwargs,
    )


@pytest.fixture
def box_surfaces() -> list:
    """Four outdoor walls, an outdoor roof and a slab on grade."""
    surfaces = [wall(name, points) for name, points in BOX_WALLS.items()]
    surfaces.append(Surface(
        id="roof",
        type=SurfaceType.CEILING,
        points=BOX_ROOF,
        construction=massless_construction(4.0),
    ))
    surfaces.append(Surface(
        id="slab",
        type=SurfaceType.FLOOR,
        boundary=Boundary.GROUND,
        points=BOX_FLOOR,
        construction=massless_construction(1.0),
    ))
    return surfaces


@pytest.fixture
def corner_walls() -> list:
    """Two 3m x 3m outdoor walls meeting at a convex vertical corner."""
    return [
        wall("wall S", [[0, 0, 3], [0, 0, 0], [3, 0, 0], [3, 0, 3]]),
        wall("wall E", [[3, 0, 3], [3, 0, 0], [3, 3, 0], [3, 3, 3]]),
    ]


@pytest.fixture
def exposed_floor() -> Surface:
    """5m x 5m floor over outdoor air, facing down."""
    return Surface(
        id="exposed floor",
        type=SurfaceType.FLOOR,
        points=[[0, 0, 3], [0, 5, 3], [5, 5, 3], [5, 0, 3]],
        construction=massless_construction(),
    )


@pytest.fixture
def balcony_slab() -> Shade:
    """2m deep balcony extending the exposed floor southwards."""
    return Shade(id="balcony", points=[[0, -2, 3], [0, 0, 3], [5, 0, 3], [5, -2, 3]])


# =============================================================================
# LIBRARY FIXTURES
# =============================================================================

@pytest.fixture
def psi() -> PsiLibrary:
    """Built-in PSI sets."""
    return PsiLibrary()


@pytest.fixture
def khi() -> KhiLibrary:
    """Built-in KHI sets."""
    return KhiLibrary()


@pytest.fixture
def sink() -> LogSink:
    """Fresh log sink that does not mirror to stdlib logging."""
    return LogSink(mirror=False)


@pytest.fixture
def model() -> TopologyModel:
    """Empty topology model with the default tolerance."""
    return TopologyModel()


@pytest.fixture
def restore_logging():
    """Put root logger handlers back after a test reconfigures logging."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
