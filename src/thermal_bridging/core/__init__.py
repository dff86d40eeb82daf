"""Core module - settings, data models and the structured log."""

from .config import Settings, settings
from .log import LogEntry, LogSink, Severity
from .models import (
    Boundary,
    BuildingInput,
    Construction,
    EdgeResult,
    KhiSetModel,
    Layer,
    LayerKind,
    PointBridge,
    ProcessOptions,
    ProcessResult,
    PsiSetModel,
    Shade,
    SubSurface,
    SubSurfaceType,
    Surface,
    SurfaceResult,
    SurfaceType,
    UprateResult,
    UprateTarget,
)

__all__ = [
    # Config
    'Settings',
    'settings',
    # Log
    'LogEntry',
    'LogSink',
    'Severity',
    # Enums
    'Boundary',
    'LayerKind',
    'SubSurfaceType',
    'SurfaceType',
    # Input
    'BuildingInput',
    'Construction',
    'Layer',
    'PointBridge',
    'ProcessOptions',
    'Shade',
    'SubSurface',
    'Surface',
    'PsiSetModel',
    'KhiSetModel',
    'UprateTarget',
    # Output
    'EdgeResult',
    'ProcessResult',
    'SurfaceResult',
    'UprateResult',
]
