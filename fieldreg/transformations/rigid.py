"""
fieldreg Rigid Transformations

Translation (D parameters) and 2D rotation about a fixed center (1 parameter).
"""

import math

import torch

from .base import Transformation, TransformationSpace
from ..utils.device import ArrayLike, DTYPE, as_vector


def _identity_batch(n: int, dim: int, device) -> torch.Tensor:
    return torch.eye(dim, dtype=DTYPE, device=device).expand(n, dim, dim).clone()


class TranslationTransform(Transformation):
    """T(x) = x + t"""

    def apply(self, points: torch.Tensor) -> torch.Tensor:
        return points + self.parameters.to(points.device)

    def _parameter_jacobian(self, points: torch.Tensor) -> torch.Tensor:
        return _identity_batch(points.shape[0], self.dim, points.device)

    def _spatial_jacobian(self, points: torch.Tensor) -> torch.Tensor:
        return _identity_batch(points.shape[0], self.dim, points.device)

    def inverse(self) -> "TranslationTransform":
        return TranslationTransform(self.dim, -self.parameters)


class TranslationSpace(TransformationSpace):
    """Translations in `dim` dimensions"""

    @property
    def number_of_parameters(self) -> int:
        return self.dim

    def identity_parameters(self) -> torch.Tensor:
        return torch.zeros(self.dim, dtype=DTYPE)

    def _create(self, parameters: torch.Tensor) -> Transformation:
        return TranslationTransform(self.dim, parameters)


def _rotation_matrix(angle: float) -> torch.Tensor:
    c, s = math.cos(angle), math.sin(angle)
    return torch.tensor([[c, -s], [s, c]], dtype=DTYPE)


class RotationTransform2D(Transformation):
    """T(x) = R(phi) (x - c) + c"""

    def __init__(self, parameters: torch.Tensor, center: torch.Tensor):
        super().__init__(2, parameters)
        self.center = center
        angle = float(parameters[0])
        self.matrix = _rotation_matrix(angle)
        # d R / d phi
        self.matrix_derivative = _rotation_matrix(angle + math.pi / 2)

    def apply(self, points: torch.Tensor) -> torch.Tensor:
        center = self.center.to(points.device)
        return (points - center) @ self.matrix.to(points.device).T + center

    def _parameter_jacobian(self, points: torch.Tensor) -> torch.Tensor:
        centered = points - self.center.to(points.device)
        return (centered @ self.matrix_derivative.to(points.device).T).unsqueeze(-1)

    def _spatial_jacobian(self, points: torch.Tensor) -> torch.Tensor:
        return self.matrix.to(points.device).expand(points.shape[0], 2, 2).clone()

    def inverse(self) -> "RotationTransform2D":
        return RotationTransform2D(-self.parameters, self.center)


class RotationSpace2D(TransformationSpace):
    """Rotations of the plane about `center`, parameterised by the angle in radians"""

    def __init__(self, center: ArrayLike = (0.0, 0.0)):
        super().__init__(2)
        self.center = as_vector(center)

    @property
    def number_of_parameters(self) -> int:
        return 1

    def identity_parameters(self) -> torch.Tensor:
        return torch.zeros(1, dtype=DTYPE)

    def _create(self, parameters: torch.Tensor) -> Transformation:
        return RotationTransform2D(parameters, self.center)
