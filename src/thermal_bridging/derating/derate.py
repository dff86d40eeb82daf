"""
Derating and uprating of insulating layers.

Derating folds a surface's thermal bridge heat loss (W/K) into its
insulating layer: the layer conductance grows by heat_loss / area.

    U_derated = 1/R + heat_loss/area
    R_derated = 1/U_derated

Uprating is the inverse problem: the layer resistance needed so that,
once derated, the whole assembly still meets a target U-factor (Ut).

Layers are rewritten within physical bounds:
- Massless layers: R >= 0.001 m2.K/W
- Standard layers: thickness >= 0.003 m, conductivity <= 3.0 W/m.K

Whatever part of the heat loss cannot be absorbed by a bounded layer is
returned as a residual (W/K) so callers can report it.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from ..core.models import Construction, Layer, LayerKind

logger = logging.getLogger(__name__)


MIN_RESISTANCE = 0.001  # m2.K/W
MIN_THICKNESS = 0.003  # m
MAX_CONDUCTIVITY = 3.0  # W/m.K
MAX_UT = 5.678  # W/m2.K, i.e. R-1 (imperial)


@dataclass
class DerateResult:
    """Outcome of rewriting one insulating layer."""
    r_before: float
    r_target: float
    r_after: float
    residual: float = 0.0  # W/K that could not be assigned

    @property
    def clamped(self) -> bool:
        return abs(self.r_after - self.r_target) > 1e-9


@dataclass
class UprateSolution:
    """Required insulation for a target U-factor."""
    uo: float  # clear-field assembly U-factor before derating (W/m2.K)
    r_layer: float  # insulating layer resistance (m2.K/W)


def rsi(construction: Construction) -> float:
    """Total assembly resistance, air films included (m2.K/W)."""
    return construction.rsi


def insulating_layer(construction: Construction) -> Optional[int]:
    """
    Index of the insulating layer of a construction.

    A declared index wins when it is valid. Otherwise the layer with the
    highest resistance is picked, skipping layers that are too thin
    (< 3mm), too conductive (> 3 W/m.K) or negligible (R < 0.001).

    Returns:
        Layer index, or None if no layer qualifies
    """
    if construction.insulating_layer is not None:
        if 0 <= construction.insulating_layer < len(construction.layers):
            return construction.insulating_layer
        return None

    best = None
    best_r = 0.0
    for i, layer in enumerate(construction.layers):
        if layer.kind == LayerKind.MASSLESS:
            if layer.resistance < MIN_RESISTANCE:
                continue
        elif layer.thickness < MIN_THICKNESS or layer.conductivity > MAX_CONDUCTIVITY:
            continue
        if layer.r > best_r:
            best, best_r = i, layer.r
    return best


def derate(area: float, existing_r: float, heat_loss: float) -> float:
    """
    Derated resistance of a layer given extra heat loss.

    Args:
        area: Net surface area (m2)
        existing_r: Current layer resistance (m2.K/W)
        heat_loss: Aggregate thermal bridge heat loss (W/K)

    Returns:
        New resistance, unbounded (m2.K/W)
    """
    if area <= 0:
        raise ValueError(f"Area must be positive, got {area}")
    if existing_r <= 0:
        raise ValueError(f"Resistance must be positive, got {existing_r}")
    if heat_loss < 0:
        raise ValueError(f"Heat loss must be >= 0, got {heat_loss}")
    return 1 / (1 / existing_r + heat_loss / area)


def uprate(area: float, target_ut: float, heat_loss: float, film_r: float = 0.0) -> UprateSolution:
    """
    Insulation needed to meet a target U-factor after derating.

    Args:
        area: Net area of the surface group (m2)
        target_ut: Target U-factor including thermal bridging (W/m2.K)
        heat_loss: Aggregate thermal bridge heat loss of the group (W/K)
        film_r: Resistance of the assembly minus its insulating layer,
            air films included (m2.K/W)

    Returns:
        UprateSolution with the required clear-field Uo and layer resistance

    Raises:
        ValueError: If the target cannot be met
    """
    if area <= 0:
        raise ValueError(f"Area must be positive, got {area}")
    if not 0 < target_ut < MAX_UT:
        raise ValueError(f"Target Ut must be in (0, {MAX_UT}), got {target_ut}")
    if heat_loss < 0 or film_r < 0:
        raise ValueError("Heat loss and film resistance must be >= 0")

    r_derated = 1 / target_ut - film_r
    if r_derated <= MIN_RESISTANCE:
        raise ValueError(
            f"Ut {target_ut:.3f} leaves no room for insulation (other layers: {film_r:.3f} m2.K/W)"
        )
    u_layer = 1 / r_derated - heat_loss / area
    if u_layer <= 0:
        raise ValueError(
            f"Ut {target_ut:.3f} unattainable with {heat_loss:.3f} W/K over {area:.1f} m2"
        )
    r_layer = 1 / u_layer
    return UprateSolution(uo=1 / (film_r + r_layer), r_layer=r_layer)


def set_layer_resistance(layer: Layer, r: float) -> float:
    """
    Rewrite a layer to a target resistance within physical bounds.

    Massless layers get the resistance directly. Standard layers keep
    their conductivity and change thickness, unless the layer would get
    thinner than 3mm, in which case conductivity is raised (up to 3.0).

    Returns:
        Achieved resistance (m2.K/W)
    """
    r = max(r, MIN_RESISTANCE)
    if layer.kind == LayerKind.MASSLESS:
        layer.resistance = r
        return r

    k = layer.conductivity
    d = r * k
    if d < MIN_THICKNESS:
        d = MIN_THICKNESS
        k = min(d / r, MAX_CONDUCTIVITY)
    layer.thickness = d
    layer.conductivity = k
    return d / k


def derate_layer(layer: Layer, area: float, heat_loss: float) -> DerateResult:
    """
    Derate a layer in place.

    Args:
        layer: Insulating layer (mutated)
        area: Net surface area (m2)
        heat_loss: Aggregate thermal bridge heat loss (W/K)

    Returns:
        DerateResult, with any heat loss the bounded layer cannot absorb
    """
    r_before = layer.r
    r_target = derate(area, r_before, heat_loss)
    r_after = set_layer_resistance(layer, r_target)
    residual = max(0.0, (1 / r_target - 1 / r_after) * area)
    return DerateResult(r_before=r_before, r_target=r_target, r_after=r_after, residual=residual)


def derating_ratio(r_before: float, r_after: float) -> float:
    """Loss of assembly resistance, in % of the original."""
    if r_before <= 0:
        raise ValueError(f"Resistance must be positive, got {r_before}")
    return (r_before - r_after) / r_before * 100
