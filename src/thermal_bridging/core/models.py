"""
Pydantic models for thermal bridge processing.

Covers both the input schema (surface, opening and shade descriptors
handed over by a host building model) and the output schema (per-surface
heat loss and derating, plus the annotated edge registry).
"""

from __future__ import annotations

from enum import Enum

import numpy as np
from pydantic import BaseModel, Field, field_validator, model_validator

from ..geometry import Point3D, Transformation, polygon_area, to_points


# =============================================================================
# ENUMS
# =============================================================================


class Boundary(str, Enum):
    OUTDOORS = "outdoors"
    GROUND = "ground"
    SURFACE = "surface"  # adjacent to another (interior) surface
    FOUNDATION = "foundation"
    ADIABATIC = "other_side_coefficients"  # party walls


class SurfaceType(str, Enum):
    WALL = "wall"
    CEILING = "ceiling"  # roofs and ceilings
    FLOOR = "floor"


class SubSurfaceType(str, Enum):
    WINDOW = "window"
    DOOR = "door"
    GLASS_DOOR = "glass_door"
    SKYLIGHT = "skylight"


class LayerKind(str, Enum):
    MASSLESS = "massless"  # resistance only
    STANDARD = "standard"  # conductivity + thickness


# =============================================================================
# INPUT SCHEMA
# =============================================================================


def _transformed(transform: list[list[float]] | None, points: list[Point3D]) -> list[Point3D]:
    if transform is None:
        return points
    return Transformation(np.array(transform)) * points


def _check_points(points: list[list[float]]) -> list[list[float]]:
    for point in points:
        if len(point) != 3:
            raise ValueError(f"Expected 3 coordinates per point, got {len(point)}")
    return points


def _check_transform(transform: list[list[float]] | None) -> list[list[float]] | None:
    if transform is not None and (len(transform) != 4 or any(len(row) != 4 for row in transform)):
        raise ValueError("Expected a 4x4 transformation matrix")
    return transform


class Layer(BaseModel):
    """One construction layer."""

    name: str
    kind: LayerKind = LayerKind.STANDARD
    resistance: float | None = Field(default=None, description="m2.K/W (massless)")
    thickness: float | None = Field(default=None, description="m (standard)")
    conductivity: float | None = Field(default=None, description="W/m.K (standard)")

    @model_validator(mode="after")
    def check_parameters(self) -> "Layer":
        if self.kind == LayerKind.MASSLESS:
            if self.resistance is None or self.resistance <= 0:
                raise ValueError(f"Massless layer '{self.name}' needs a positive resistance")
        else:
            if self.thickness is None or self.thickness <= 0:
                raise ValueError(f"Standard layer '{self.name}' needs a positive thickness")
            if self.conductivity is None or self.conductivity <= 0:
                raise ValueError(f"Standard layer '{self.name}' needs a positive conductivity")
        return self

    @property
    def r(self) -> float:
        """Thermal resistance (m2.K/W)."""
        if self.kind == LayerKind.MASSLESS:
            return self.resistance
        return self.thickness / self.conductivity


class Construction(BaseModel):
    """Layered assembly, outside to inside."""

    name: str
    layers: list[Layer] = Field(min_length=1)
    film_resistance: float = Field(default=0.0, ge=0, description="Sum of air film resistances")
    insulating_layer: int | None = Field(
        default=None, description="Index of the insulating layer (detected when omitted)"
    )

    @property
    def rsi(self) -> float:
        """Total assembly resistance including air films (m2.K/W)."""
        return self.film_resistance + sum(layer.r for layer in self.layers)


class SubSurface(BaseModel):
    """Window, door or skylight hosted by an opaque surface."""

    id: str
    type: SubSurfaceType = SubSurfaceType.WINDOW
    points: list[list[float]] = Field(min_length=3)
    multiplier: int = Field(default=1, ge=1)

    @field_validator("points")
    @classmethod
    def check_points(cls, points: list[list[float]]) -> list[list[float]]:
        return _check_points(points)

    @property
    def vertices(self) -> list[Point3D]:
        return to_points(self.points)

    @property
    def gross_area(self) -> float:
        return polygon_area(self.vertices) * self.multiplier


class PointBridge(BaseModel):
    """Discrete point thermal bridges (e.g. columns) on a surface."""

    khi: str = Field(description="KHI name in the active point-conductance set")
    count: int = Field(default=1, ge=1)


class Surface(BaseModel):
    """
    Opaque envelope surface.

    ``heat_loss`` and ``ratio`` are written by the derating engine, and
    ``construction`` is replaced by its derated clone.
    """

    id: str
    type: SurfaceType
    boundary: Boundary = Boundary.OUTDOORS
    points: list[list[float]] = Field(min_length=3)
    construction: Construction | None = None
    net_area: float | None = Field(default=None, description="Gross minus openings (m2)")
    conditioned: bool = True
    occupied: bool = True
    adjacent: str | None = Field(
        default=None, description="Id of the surface on the other side (boundary \"surface\")"
    )
    spandrel: bool = False
    sub_surfaces: list[SubSurface] = Field(default_factory=list)
    point_bridges: list[PointBridge] = Field(default_factory=list)
    transform: list[list[float]] | None = Field(
        default=None, description="4x4 local-to-building matrix (row-major), applied to all points"
    )

    # Derating outputs
    heat_loss: float = 0.0
    ratio: float | None = None

    @field_validator("points")
    @classmethod
    def check_points(cls, points: list[list[float]]) -> list[list[float]]:
        return _check_points(points)

    @field_validator("transform")
    @classmethod
    def check_transform(cls, transform: list[list[float]] | None) -> list[list[float]] | None:
        return _check_transform(transform)

    @property
    def vertices(self) -> list[Point3D]:
        return self.to_building(to_points(self.points))

    def to_building(self, points: list[Point3D]) -> list[Point3D]:
        """Apply the local-to-building transformation, if any."""
        return _transformed(self.transform, points)

    @property
    def gross_area(self) -> float:
        return polygon_area(self.vertices)

    @property
    def is_outdoors(self) -> bool:
        return self.boundary == Boundary.OUTDOORS

    @property
    def is_ground(self) -> bool:
        return self.boundary in (Boundary.GROUND, Boundary.FOUNDATION)


class Shade(BaseModel):
    """Non-deratable shading surface (balcony slab, overhang)."""

    id: str
    points: list[list[float]] = Field(min_length=3)
    transform: list[list[float]] | None = None

    @field_validator("points")
    @classmethod
    def check_points(cls, points: list[list[float]]) -> list[list[float]]:
        return _check_points(points)

    @field_validator("transform")
    @classmethod
    def check_transform(cls, transform: list[list[float]] | None) -> list[list[float]] | None:
        return _check_transform(transform)

    @property
    def vertices(self) -> list[Point3D]:
        return _transformed(self.transform, to_points(self.points))


# =============================================================================
# CONFIGURATION SCHEMA
# =============================================================================


class PsiSetModel(BaseModel):
    """Host-supplied PSI set (type -> W/K per metre)."""

    name: str
    values: dict[str, float]


class KhiSetModel(BaseModel):
    """Host-supplied KHI set (point name -> W/K)."""

    name: str
    values: dict[str, float]


class UprateTarget(BaseModel):
    """Target overall U-factor for a group of deratable surfaces."""

    surface_type: SurfaceType
    ut: float = Field(gt=0, lt=5.678, description="Target U-factor after derating (W/m2.K)")
    construction: str | None = Field(
        default=None, description="Limit to one construction name (default: all)"
    )


class ProcessOptions(BaseModel):
    """Per-run overrides; omitted values fall back to global settings."""

    psi_set: str | None = None
    khi_set: str | None = None
    tolerance: float | None = Field(default=None, gt=0)
    sub_tolerance: float | None = Field(default=None, ge=0)
    parapet: bool | None = None
    psi_sets: list[PsiSetModel] = Field(default_factory=list)
    khi_sets: list[KhiSetModel] = Field(default_factory=list)
    uprate: list[UprateTarget] = Field(default_factory=list)


class BuildingInput(BaseModel):
    """Everything one processing run consumes (the CLI's JSON schema)."""

    surfaces: list[Surface]
    shades: list[Shade] = Field(default_factory=list)
    options: ProcessOptions = Field(default_factory=ProcessOptions)


# =============================================================================
# OUTPUT SCHEMA
# =============================================================================


class EdgeResult(BaseModel):
    """One entry of the annotated edge registry."""

    id: int
    length: float
    v0: list[float]
    v1: list[float]
    surfaces: list[str]
    type: str | None = None
    psi: float = 0.0
    psi_set: str | None = None
    loss: float = 0.0
    candidates: dict[str, float] = Field(default_factory=dict)
    shares: dict[str, float] = Field(
        default_factory=dict, description="Loss apportioned to each deratable surface (W/K)"
    )


class SurfaceResult(BaseModel):
    """Per-surface derating outcome."""

    id: str
    net_area: float
    heat_loss: float = 0.0
    edge_loss: float = 0.0
    point_loss: float = 0.0
    residual_loss: float = 0.0
    ratio: float | None = None
    r_before: float | None = None
    r_after: float | None = None
    layer: Layer | None = None


class UprateResult(BaseModel):
    """Outcome of an uprate group."""

    surface_type: SurfaceType
    construction: str | None
    ut: float
    uo: float | None = None
    area: float = 0.0
    heat_loss: float = 0.0
    surfaces: list[str] = Field(default_factory=list)


class ProcessResult(BaseModel):
    """Returned by ``process``."""

    surfaces: list[SurfaceResult] = Field(default_factory=list)
    edges: list[EdgeResult] = Field(default_factory=list)
    uprates: list[UprateResult] = Field(default_factory=list)
    status: str = "INFO"
    log: list[dict] = Field(default_factory=list)

    def surface(self, surface_id: str) -> SurfaceResult | None:
        return next((s for s in self.surfaces if s.id == surface_id), None)
