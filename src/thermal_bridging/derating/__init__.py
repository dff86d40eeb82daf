"""
Derating Module - heat loss apportionment and insulation derating.
"""

from .derate import (
    MAX_CONDUCTIVITY,
    MIN_RESISTANCE,
    MIN_THICKNESS,
    DerateResult,
    UprateSolution,
    derate,
    derate_layer,
    derating_ratio,
    insulating_layer,
    rsi,
    set_layer_resistance,
    uprate,
)
from .heatloss import HeatLossLedger, add_point_losses, apportion, recipients

__all__ = [
    # Layer solving
    'MAX_CONDUCTIVITY',
    'MIN_RESISTANCE',
    'MIN_THICKNESS',
    'DerateResult',
    'UprateSolution',
    'derate',
    'derate_layer',
    'derating_ratio',
    'insulating_layer',
    'rsi',
    'set_layer_resistance',
    'uprate',
    # Apportionment
    'HeatLossLedger',
    'add_point_losses',
    'apportion',
    'recipients',
]
