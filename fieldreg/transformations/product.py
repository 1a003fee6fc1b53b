"""
fieldreg Product Transformation Space

Composition of two spaces: T(x) = outer(inner(x)), parameters
concatenated as [outer, inner].
"""

from typing import Optional

import torch

from .base import Transformation, TransformationSpace
from ..common.errors import DimensionMismatchError


class ProductTransformation(Transformation):
    def __init__(self, outer: Transformation, inner: Transformation):
        super().__init__(outer.dim, torch.cat([outer.parameters, inner.parameters]))
        self.outer = outer
        self.inner = inner

    def apply(self, points: torch.Tensor) -> torch.Tensor:
        return self.outer.apply(self.inner.apply(points))

    def _parameter_jacobian(self, points: torch.Tensor) -> torch.Tensor:
        inner_points = self.inner.apply(points)
        d_outer = self.outer._parameter_jacobian(inner_points)
        # chain rule through the outer transformation
        d_inner = torch.bmm(self.outer._spatial_jacobian(inner_points), self.inner._parameter_jacobian(points))
        return torch.cat([d_outer, d_inner], dim=2)

    def _spatial_jacobian(self, points: torch.Tensor) -> torch.Tensor:
        inner_points = self.inner.apply(points)
        return torch.bmm(self.outer._spatial_jacobian(inner_points), self.inner._spatial_jacobian(points))

    def inverse(self) -> Optional[Transformation]:
        outer_inverse = self.outer.inverse()
        inner_inverse = self.inner.inverse()
        if outer_inverse is None or inner_inverse is None:
            return None
        return ProductTransformation(inner_inverse, outer_inverse)


class ProductTransformationSpace(TransformationSpace):
    def __init__(self, outer: TransformationSpace, inner: TransformationSpace):
        if outer.dim != inner.dim:
            raise DimensionMismatchError(
                f"Cannot combine a {outer.dim}D space with a {inner.dim}D space"
            )
        super().__init__(outer.dim)
        self.outer = outer
        self.inner = inner

    @property
    def number_of_parameters(self) -> int:
        return self.outer.number_of_parameters + self.inner.number_of_parameters

    def identity_parameters(self) -> torch.Tensor:
        return torch.cat([self.outer.identity_parameters(), self.inner.identity_parameters()])

    def _create(self, parameters: torch.Tensor) -> Transformation:
        split = self.outer.number_of_parameters
        return ProductTransformation(
            self.outer.transformation_for_parameters(parameters[:split]),
            self.inner.transformation_for_parameters(parameters[split:]),
        )
