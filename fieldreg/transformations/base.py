"""
fieldreg Transformation Base

Parametric spatial transformations. A TransformationSpace maps a parameter
vector to a Transformation; every Transformation can report its Jacobian
with respect to its parameters and with respect to space.
"""

from abc import ABC, abstractmethod
from typing import Optional

import torch

from ..common.errors import DimensionMismatchError
from ..utils.device import ArrayLike, as_points, as_vector


class Transformation(ABC):
    """
    A point-to-point mapping with fixed parameters

    Attributes:
        dim: Spatial dimension
        parameters: Parameter vector this transformation was built from
    """

    def __init__(self, dim: int, parameters: torch.Tensor):
        self.dim = dim
        self.parameters = parameters

    @property
    def number_of_parameters(self) -> int:
        return self.parameters.shape[0]

    @abstractmethod
    def apply(self, points: torch.Tensor) -> torch.Tensor:
        """Transform a batch of points (N, D)"""

    @abstractmethod
    def _parameter_jacobian(self, points: torch.Tensor) -> torch.Tensor:
        """d T(x) / d p for a batch, shape (N, D, P)"""

    @abstractmethod
    def _spatial_jacobian(self, points: torch.Tensor) -> torch.Tensor:
        """d T(x) / d x for a batch, shape (N, D, D)"""

    def __call__(self, points: ArrayLike) -> torch.Tensor:
        batch, single = as_points(points, self.dim)
        result = self.apply(batch)
        return result[0] if single else result

    def derivative_wrt_parameters(self, points: ArrayLike) -> torch.Tensor:
        """
        Jacobian of the output coordinates w.r.t. the parameters, evaluated at
        the pre-image points `x` (not at T(x)).

        Returns:
            (D, P) for a single point, (N, D, P) for a batch
        """
        batch, single = as_points(points, self.dim)
        result = self._parameter_jacobian(batch)
        return result[0] if single else result

    def jacobian(self, points: ArrayLike) -> torch.Tensor:
        """Spatial Jacobian, (D, D) for a single point, (N, D, D) for a batch"""
        batch, single = as_points(points, self.dim)
        result = self._spatial_jacobian(batch)
        return result[0] if single else result

    def inverse(self) -> Optional["Transformation"]:
        """Inverse transformation, or None if it has no closed form"""
        return None

    def __repr__(self) -> str:
        return f"{type(self).__name__}(parameters={self.parameters.tolist()})"


class TransformationSpace(ABC):
    """
    Family of transformations indexed by a parameter vector

    Attributes:
        dim: Spatial dimension
    """

    def __init__(self, dim: int):
        self.dim = dim

    @property
    @abstractmethod
    def number_of_parameters(self) -> int:
        pass

    @abstractmethod
    def identity_parameters(self) -> torch.Tensor:
        pass

    @abstractmethod
    def _create(self, parameters: torch.Tensor) -> Transformation:
        pass

    def transformation_for_parameters(self, parameters: ArrayLike) -> Transformation:
        """
        Args:
            parameters: Vector of length `number_of_parameters`

        Raises:
            DimensionMismatchError: If the vector has the wrong length
        """
        parameters = as_vector(parameters)
        if parameters.shape[0] != self.number_of_parameters:
            raise DimensionMismatchError(
                f"{type(self).__name__} expects {self.number_of_parameters} parameters, "
                f"got {parameters.shape[0]}"
            )
        return self._create(parameters)

    def __call__(self, parameters: ArrayLike) -> Transformation:
        return self.transformation_for_parameters(parameters)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(dim={self.dim})"
