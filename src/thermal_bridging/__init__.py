"""
Thermal bridging of building envelopes.

Identifies major thermal bridges (edges shared by envelope surfaces,
opening perimeters, point bridges), assigns their heat loss to the
surfaces they touch and derates the insulating layers accordingly.

Usage:
    from thermal_bridging import Surface, process

    result = process(surfaces)
    print(result.status)
"""

from .bridging import KhiLibrary, PsiLibrary
from .core import (
    Boundary,
    BuildingInput,
    Construction,
    Layer,
    LayerKind,
    LogSink,
    PointBridge,
    ProcessOptions,
    ProcessResult,
    Severity,
    Shade,
    SubSurface,
    SubSurfaceType,
    Surface,
    SurfaceType,
    UprateTarget,
    settings,
)
from .pipeline import process

__version__ = "0.1.0"

__all__ = [
    # Entry point
    'process',
    'settings',
    # Libraries
    'PsiLibrary',
    'KhiLibrary',
    # Models
    'Boundary',
    'BuildingInput',
    'Construction',
    'Layer',
    'LayerKind',
    'PointBridge',
    'ProcessOptions',
    'ProcessResult',
    'Shade',
    'SubSurface',
    'SubSurfaceType',
    'Surface',
    'SurfaceType',
    'UprateTarget',
    # Log
    'LogSink',
    'Severity',
]
