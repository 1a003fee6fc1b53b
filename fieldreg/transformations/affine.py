"""
fieldreg Affine Transformations

Isotropic scaling (1 parameter) and general affine maps
(D*D matrix entries in row-major order, followed by D translations).
"""

import torch

from .base import Transformation, TransformationSpace
from ..utils.device import DTYPE


class ScalingTransform(Transformation):
    """T(x) = s x"""

    def apply(self, points: torch.Tensor) -> torch.Tensor:
        return points * self.parameters[0]

    def _parameter_jacobian(self, points: torch.Tensor) -> torch.Tensor:
        return points.unsqueeze(-1).clone()

    def _spatial_jacobian(self, points: torch.Tensor) -> torch.Tensor:
        eye = torch.eye(self.dim, dtype=DTYPE, device=points.device) * self.parameters[0]
        return eye.expand(points.shape[0], self.dim, self.dim).clone()

    def inverse(self) -> "ScalingTransform":
        return ScalingTransform(self.dim, 1.0 / self.parameters)


class ScalingSpace(TransformationSpace):
    @property
    def number_of_parameters(self) -> int:
        return 1

    def identity_parameters(self) -> torch.Tensor:
        return torch.ones(1, dtype=DTYPE)

    def _create(self, parameters: torch.Tensor) -> Transformation:
        return ScalingTransform(self.dim, parameters)


class AffineTransform(Transformation):
    """T(x) = A x + t"""

    def __init__(self, dim: int, parameters: torch.Tensor):
        super().__init__(dim, parameters)
        self.matrix = parameters[: dim * dim].reshape(dim, dim)
        self.translation = parameters[dim * dim:]

    def apply(self, points: torch.Tensor) -> torch.Tensor:
        return points @ self.matrix.to(points.device).T + self.translation.to(points.device)

    def _parameter_jacobian(self, points: torch.Tensor) -> torch.Tensor:
        n, dim = points.shape
        jac = torch.zeros(n, dim, dim * dim + dim, dtype=DTYPE, device=points.device)
        for i in range(dim):
            # d T_i / d A_ij = x_j
            jac[:, i, i * dim:(i + 1) * dim] = points
            jac[:, i, dim * dim + i] = 1.0
        return jac

    def _spatial_jacobian(self, points: torch.Tensor) -> torch.Tensor:
        return self.matrix.to(points.device).expand(points.shape[0], self.dim, self.dim).clone()

    def inverse(self) -> "AffineTransform":
        inverse_matrix = torch.linalg.inv(self.matrix)
        inverse_translation = -inverse_matrix @ self.translation
        return AffineTransform(self.dim, torch.cat([inverse_matrix.reshape(-1), inverse_translation]))


class AffineSpace(TransformationSpace):
    @property
    def number_of_parameters(self) -> int:
        return self.dim * self.dim + self.dim

    def identity_parameters(self) -> torch.Tensor:
        return torch.cat([
            torch.eye(self.dim, dtype=DTYPE).reshape(-1),
            torch.zeros(self.dim, dtype=DTYPE),
        ])

    def _create(self, parameters: torch.Tensor) -> Transformation:
        return AffineTransform(self.dim, parameters)
