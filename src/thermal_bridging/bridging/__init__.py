"""
Bridging Module - thermal bridge coefficients and edge classification.
"""

from .classifier import EdgeClassifier
from .edges import (
    ClassifiedEdge,
    EdgeRecord,
    LinkedSurface,
    LinkKind,
    compute_angles,
    concave,
    convex,
    variant,
)
from .psi import (
    BUILTIN_KHI_SETS,
    BUILTIN_PSI_SETS,
    PSI_TYPES,
    IncompletePsiSetError,
    KhiLibrary,
    PsiLibrary,
    PsiSetError,
)

__all__ = [
    # Coefficients
    'BUILTIN_KHI_SETS',
    'BUILTIN_PSI_SETS',
    'PSI_TYPES',
    'IncompletePsiSetError',
    'KhiLibrary',
    'PsiLibrary',
    'PsiSetError',
    # Edges
    'ClassifiedEdge',
    'EdgeRecord',
    'LinkedSurface',
    'LinkKind',
    'compute_angles',
    'concave',
    'convex',
    'variant',
    'EdgeClassifier',
]
