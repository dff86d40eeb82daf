"""
Geometry Module - 3D value types for envelope surfaces.

Provides:
- Point3D, Vector3D and Plane3D with vector algebra and projection
- BoundingBox for quick proximity checks
- Transformation (translation, axis-angle rotation, composition)
"""

from .primitives import (
    EPSILON,
    BoundingBox,
    Plane3D,
    Point3D,
    Vector3D,
    newell_normal,
    planar_coordinates,
    polygon_area,
    to_points,
)
from .transformation import Transformation

__all__ = [
    'EPSILON',
    'BoundingBox',
    'Plane3D',
    'Point3D',
    'Vector3D',
    'newell_normal',
    'planar_coordinates',
    'polygon_area',
    'to_points',
    'Transformation',
]
