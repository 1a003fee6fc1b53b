"""fieldreg Registration Module"""

from .metrics import (
    ImageMetric,
    MeanPointwiseLossMetric,
    MeanSquaresMetric,
    MeanHuberLossMetric,
    ValueAndDerivative,
)
from .regularizers import Regularizer, L2Regularizer, ZeroRegularizer
from .registration import Registration, RegistrationResult, RegistrationState

__all__ = [
    "ImageMetric",
    "MeanPointwiseLossMetric",
    "MeanSquaresMetric",
    "MeanHuberLossMetric",
    "ValueAndDerivative",
    "Regularizer",
    "L2Regularizer",
    "ZeroRegularizer",
    "Registration",
    "RegistrationResult",
    "RegistrationState",
]
