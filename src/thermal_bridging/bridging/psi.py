"""
Thermal bridge coefficient libraries.

- PSI sets: linear transmittance (W/K per metre of edge) by bridge type
- KHI sets: point transmittance (W/K per occurrence) by point name

Built-in sets cover BETBG (Building Envelope Thermal Bridging Guide)
construction qualities, Quebec code levels and ASHRAE 90.1-2022
Appendix A defaults. Hosts may append their own sets.

PSI types come in a base form (e.g. ``corner``) and, except for
``joint`` and ``transition``, concave/convex variants (``cornerconvex``).
A set need not list every variant: missing types inherit through a
fallback chain, e.g. ``doorheadconcave`` -> ``doorhead`` -> ``door``
-> ``fenestration``.

Usage:
    psi = PsiLibrary()
    psi.value("poor (BETBG)", "cornerconvex")   # 0.85 (inherits corner)
    psi.require_complete("poor (BETBG)")
"""

from __future__ import annotations

import logging
import math
from typing import Dict, List, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)


# =============================================================================
# TYPE CATALOGUE
# =============================================================================

BASE_TYPES: Tuple[str, ...] = (
    "rimjoist",
    "parapet",
    "roof",
    "ceiling",
    "fenestration",
    "head",
    "sill",
    "jamb",
    "door",
    "doorhead",
    "doorsill",
    "doorjamb",
    "skylight",
    "skylighthead",
    "skylightsill",
    "skylightjamb",
    "spandrel",
    "corner",
    "balcony",
    "balconysill",
    "balconydoorsill",
    "party",
    "grade",
    "joint",
    "transition",
)

UNVARIED_TYPES = ("joint", "transition")

PSI_TYPES: Tuple[str, ...] = tuple(
    t
    for base in BASE_TYPES
    for t in ((base,) if base in UNVARIED_TYPES else (base, base + "concave", base + "convex"))
)

# Inheritance when a set lacks a base type, most specific first
FALLBACKS: Dict[str, Tuple[str, ...]] = {
    "head": ("fenestration",),
    "sill": ("fenestration",),
    "jamb": ("fenestration",),
    "door": ("fenestration",),
    "doorhead": ("door", "fenestration"),
    "doorsill": ("door", "fenestration"),
    "doorjamb": ("door", "fenestration"),
    "skylight": ("fenestration",),
    "skylighthead": ("skylight", "fenestration"),
    "skylightsill": ("skylight", "fenestration"),
    "skylightjamb": ("skylight", "fenestration"),
    "parapet": ("roof",),
    "roof": ("parapet",),
    "balconysill": ("balcony", "sill", "fenestration"),
    "balconydoorsill": ("balconysill", "balcony", "sill", "fenestration"),
}

# Types a host set may omit; appended as 0 W/K.m
DEFAULTED_TYPES = ("joint", "transition", "ceiling")


def split_variant(psi_type: str) -> Tuple[str, str]:
    """``'cornerconvex'`` -> ``('corner', 'convex')``; base types get ``''``."""
    for suffix in ("concave", "convex"):
        if psi_type.endswith(suffix) and psi_type[: -len(suffix)] in BASE_TYPES:
            return psi_type[: -len(suffix)], suffix
    return psi_type, ""


class PsiSetError(ValueError):
    """Invalid, duplicate or unknown coefficient set."""


class IncompletePsiSetError(PsiSetError):
    """A PSI set lacks types every edge classification may need."""

    def __init__(self, name: str, missing: List[str]):
        super().__init__(f"PSI set '{name}' is incomplete, missing: {', '.join(missing)}")
        self.name = name
        self.missing = missing


# =============================================================================
# BUILT-IN DATA
# =============================================================================

_COLUMNS = (
    "rimjoist", "parapet", "roof", "fenestration", "door", "skylight", "spandrel",
    "corner", "balcony", "balconysill", "balconydoorsill", "party", "grade", "joint",
)

_ROWS = {
    #                                  rimj   parap  roof   fen       door      skyl      spand     corner    balc   bsill  bdsill party     grade     joint
    "poor (BETBG)":                   (1.000, 0.800, 0.800, 0.500,    0.500,    0.500,    0.155,    0.850,    1.000, 1.000, 1.000, 0.850,    0.850,    0.300),
    "regular (BETBG)":                (0.500, 0.450, 0.450, 0.350,    0.350,    0.350,    0.155,    0.450,    0.500, 0.500, 0.500, 0.450,    0.450,    0.200),
    "efficient (BETBG)":              (0.200, 0.200, 0.200, 0.199999, 0.199999, 0.199999, 0.155,    0.200,    0.200, 0.200, 0.200, 0.200,    0.200,    0.100),
    "spandrel (BETBG)":               (0.615, 1.000, 1.000, 0.000,    0.000,    0.350,    0.155,    0.425,    1.110, 1.110, 1.110, 0.990,    0.880,    0.500),
    "spandrel HP (BETBG)":            (0.170, 0.660, 0.660, 0.000,    0.000,    0.350,    0.155,    0.200,    0.400, 0.400, 0.400, 0.500,    0.880,    0.140),
    "code (Quebec)":                  (0.300, 0.325, 0.325, 0.200,    0.200,    0.200,    0.155,    0.300,    0.500, 0.500, 0.500, 0.450,    0.450,    0.200),
    "uncompliant (Quebec)":           (0.850, 0.800, 0.800, 0.500,    0.500,    0.500,    0.155,    0.850,    1.000, 1.000, 1.000, 0.850,    0.850,    0.500),
    "90.1.22|steel.m|default":        (0.307, 0.260, 0.020, 0.194,    0.000,    0.000,    0.000001, 0.000002, 0.307, 0.307, 0.307, 0.000001, 0.000001, 0.376),
    "90.1.22|steel.m|unmitigated":    (0.842, 0.500, 0.650, 0.505,    0.000,    0.000,    0.000001, 0.000002, 0.842, 1.686, 0.842, 0.000001, 0.000001, 0.554),
    "90.1.22|mass.ex|default":        (0.205, 0.217, 0.150, 0.226,    0.000,    0.000,    0.000001, 0.000002, 0.205, 0.307, 0.205, 0.000001, 0.000001, 0.322),
    "90.1.22|mass.ex|unmitigated":    (0.824, 0.412, 0.750, 0.325,    0.000,    0.000,    0.000001, 0.000002, 0.824, 1.686, 0.824, 0.000001, 0.000001, 0.476),
    "90.1.22|mass.in|default":        (0.495, 0.393, 0.150, 0.143,    0.000,    0.000,    0.000,    0.000001, 0.495, 0.307, 0.495, 0.000001, 0.000001, 0.322),
    "90.1.22|mass.in|unmitigated":    (0.824, 0.884, 0.750, 0.543,    0.000,    0.000,    0.000,    0.000001, 0.824, 1.686, 0.824, 0.000001, 0.000001, 0.476),
    "90.1.22|wood.fr|default":        (0.084, 0.056, 0.020, 0.171,    0.000,    0.000,    0.000,    0.000001, 0.084, 0.171001, 0.084, 0.000001, 0.000001, 0.074),
    "90.1.22|wood.fr|unmitigated":    (0.582, 0.056, 0.150, 0.260,    0.000,    0.000,    0.000,    0.000001, 0.582, 0.582, 0.582, 0.000001, 0.000001, 0.322),
    "(non thermal bridging)":         (0.000, 0.000, 0.000, 0.000,    0.000,    0.000,    0.000,    0.000,    0.000, 0.000, 0.000, 0.000,    0.000,    0.000),
}

BUILTIN_PSI_SETS: Dict[str, Dict[str, float]] = {
    name: {**dict(zip(_COLUMNS, row)), "ceiling": 0.0, "transition": 0.0}
    for name, row in _ROWS.items()
}

BUILTIN_KHI_SETS: Dict[str, Dict[str, float]] = {
    "poor (BETBG)": {"point": 0.900},
    "regular (BETBG)": {"point": 0.500},
    "efficient (BETBG)": {"point": 0.150},
    "code (Quebec)": {"point": 0.500},
    "uncompliant (Quebec)": {"point": 1.000},
    "90.1.22|steel.m|default": {"point": 0.480},
    "90.1.22|steel.m|unmitigated": {"point": 0.920},
    "90.1.22|mass.ex|default": {"point": 0.330},
    "90.1.22|mass.ex|unmitigated": {"point": 0.460},
    "90.1.22|mass.in|default": {"point": 0.330},
    "90.1.22|mass.in|unmitigated": {"point": 0.460},
    "90.1.22|wood.fr|default": {"point": 0.040},
    "90.1.22|wood.fr|unmitigated": {"point": 0.330},
    "(non thermal bridging)": {"point": 0.000},
}


def _check_value(set_name: str, key: str, value) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError) as exc:
        raise PsiSetError(f"'{set_name}': {key} value {value!r} is not a number") from exc
    if math.isnan(value) or value < 0:
        raise PsiSetError(f"'{set_name}': {key} value {value} must be >= 0")
    return value


# =============================================================================
# LIBRARIES
# =============================================================================


class PsiLibrary:
    """
    Named PSI sets with type inheritance.

    Args:
        builtins: Load the built-in sets
    """

    def __init__(self, builtins: bool = True):
        self._sets: Dict[str, Dict[str, float]] = {}
        if builtins:
            for name, values in BUILTIN_PSI_SETS.items():
                self.append(name, values)

    @property
    def names(self) -> List[str]:
        return list(self._sets)

    def __contains__(self, name: str) -> bool:
        return name in self._sets

    def get(self, name: str) -> Dict[str, float]:
        if name not in self._sets:
            raise PsiSetError(f"Unknown PSI set '{name}'")
        return dict(self._sets[name])

    def append(self, name: str, values: Mapping[str, float]) -> None:
        """
        Add a PSI set.

        Raises:
            PsiSetError: Duplicate name, unknown type or negative value
        """
        name = str(name).strip()
        if not name:
            raise PsiSetError("PSI set name is empty")
        if name in self._sets:
            raise PsiSetError(f"PSI set '{name}' already exists")

        checked: Dict[str, float] = {}
        for key, value in values.items():
            if key not in PSI_TYPES:
                raise PsiSetError(f"'{name}': unknown PSI type '{key}'")
            checked[key] = _check_value(name, key, value)
        for key in DEFAULTED_TYPES:
            checked.setdefault(key, 0.0)

        self._sets[name] = checked
        logger.debug("Added PSI set '%s' (%d types)", name, len(checked))

    def missing(self, name: str) -> List[str]:
        """Requirements a set fails to meet (empty when complete)."""
        has = self.get(name)
        missing = []
        if not (all(t in has for t in ("head", "sill", "jamb")) or "fenestration" in has):
            missing.append("fenestration (or head+sill+jamb)")
        if not (all(t in has for t in ("cornerconcave", "cornerconvex")) or "corner" in has):
            missing.append("corner (or cornerconcave+cornerconvex)")
        if not (
            "parapet" in has
            or "roof" in has
            or all(t in has for t in ("parapetconcave", "parapetconvex"))
            or all(t in has for t in ("roofconcave", "roofconvex"))
        ):
            missing.append("parapet or roof (or their concave+convex variants)")
        for key in ("party", "grade", "balcony", "rimjoist"):
            if key not in has:
                missing.append(key)
        return missing

    def is_complete(self, name: str) -> bool:
        return not self.missing(name)

    def require_complete(self, name: str) -> None:
        """Raise IncompletePsiSetError unless the set is complete."""
        missing = self.missing(name)
        if missing:
            raise IncompletePsiSetError(name, missing)

    def resolve(self, name: str, psi_type: str) -> Optional[str]:
        """
        Type actually used for a requested type, after inheritance.

        Returns None when nothing in the set applies.
        """
        if psi_type not in PSI_TYPES:
            raise PsiSetError(f"Unknown PSI type '{psi_type}'")
        has = self._sets.get(name)
        if has is None:
            raise PsiSetError(f"Unknown PSI set '{name}'")
        if psi_type in has:
            return psi_type

        base, variant = split_variant(psi_type)
        for candidate in (base,) + FALLBACKS.get(base, ()):
            if variant and candidate + variant in has:
                return candidate + variant
            if candidate in has:
                return candidate
        return None

    def value(self, name: str, psi_type: str) -> Optional[float]:
        """PSI value (W/K.m) of a type, or None if the set cannot supply it."""
        resolved = self.resolve(name, psi_type)
        if resolved is None:
            return None
        return self._sets[name][resolved]


class KhiLibrary:
    """Named KHI (point conductance) sets."""

    def __init__(self, builtins: bool = True):
        self._sets: Dict[str, Dict[str, float]] = {}
        if builtins:
            for name, values in BUILTIN_KHI_SETS.items():
                self.append(name, values)

    @property
    def names(self) -> List[str]:
        return list(self._sets)

    def __contains__(self, name: str) -> bool:
        return name in self._sets

    def get(self, name: str) -> Dict[str, float]:
        if name not in self._sets:
            raise PsiSetError(f"Unknown KHI set '{name}'")
        return dict(self._sets[name])

    def append(self, name: str, values: Mapping[str, float]) -> None:
        name = str(name).strip()
        if not name:
            raise PsiSetError("KHI set name is empty")
        if name in self._sets:
            raise PsiSetError(f"KHI set '{name}' already exists")
        self._sets[name] = {
            str(key): _check_value(name, key, value) for key, value in values.items()
        }

    def value(self, name: str, point: str) -> Optional[float]:
        return self.get(name).get(point)

