"""fieldreg Image Module"""

from .discrete_domain import DiscreteImageDomain
from .discrete_image import DiscreteImage, discretize
from .interpolation import (
    Interpolator,
    NearestNeighborInterpolator,
    LinearInterpolator,
    BSplineInterpolator,
)

__all__ = [
    "DiscreteImageDomain",
    "DiscreteImage",
    "discretize",
    "Interpolator",
    "NearestNeighborInterpolator",
    "LinearInterpolator",
    "BSplineInterpolator",
]
