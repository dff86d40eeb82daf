"""
Named failures raised by the geometry and topology kernel.

Each malformed-object condition gets its own exception so callers can
tell a non-planar wire from an open one without parsing messages.
All derive from TopologyError (a ValueError).
"""


class TopologyError(ValueError):
    """Base class for structural geometry/topology failures."""


class DegenerateNormalError(TopologyError):
    """A plane or wire normal has (near) zero magnitude."""


class EmptyWireError(TopologyError):
    """A wire was requested with no directed edges."""


class NonSequentialWireError(TopologyError):
    """A directed edge's terminal is not the next edge's origin."""


class OpenWireError(TopologyError):
    """The last directed edge does not return to the first origin."""


class NonPlanarWireError(TopologyError):
    """A wire vertex lies off the wire's plane."""


class UnregisteredWireError(TopologyError):
    """A face references a wire that does not belong to the model."""


class HoleWindingError(TopologyError):
    """A hole is not wound opposite to its outer wire."""


class HoleNotOnPlaneError(TopologyError):
    """A hole vertex lies off the outer wire's plane."""
