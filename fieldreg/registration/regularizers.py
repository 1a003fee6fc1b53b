"""
fieldreg Regularizers

Penalties on the parameter vector added to the image metric during
registration.
"""

from abc import ABC, abstractmethod

import torch

from ..utils.device import ArrayLike, as_vector


class Regularizer(ABC):
    @abstractmethod
    def value(self, parameters: ArrayLike) -> float:
        pass

    @abstractmethod
    def derivative(self, parameters: ArrayLike) -> torch.Tensor:
        pass


class L2Regularizer(Regularizer):
    """Squared Euclidean norm of the parameters"""

    def value(self, parameters: ArrayLike) -> float:
        p = as_vector(parameters)
        return float(torch.dot(p, p))

    def derivative(self, parameters: ArrayLike) -> torch.Tensor:
        return 2.0 * as_vector(parameters)


class ZeroRegularizer(Regularizer):
    def value(self, parameters: ArrayLike) -> float:
        return 0.0

    def derivative(self, parameters: ArrayLike) -> torch.Tensor:
        return torch.zeros_like(as_vector(parameters))
