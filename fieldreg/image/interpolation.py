"""
fieldreg Interpolation

Turns a DiscreteImage into a continuous field:
- NearestNeighborInterpolator: piecewise constant, half-cell margin
- LinearInterpolator: multilinear over the 2^D cell corners, with gradient
- BSplineInterpolator: B-spline of degree 1-3 with mirror boundary, with gradient

An interpolated field is defined on the closed bounding box of the grid,
grown by the kernel margin and a round-off tolerance. Points beyond that
raise UndefinedAtError; nothing is clamped or wrapped.
"""

import itertools
from abc import ABC, abstractmethod
from typing import List, Tuple

import numpy as np
import torch
from scipy.ndimage import spline_filter

from .discrete_domain import SITE_TOLERANCE
from .discrete_image import DiscreteImage
from ..common.domain import BoxDomain
from ..common.field import DifferentiableField, Field, FunctionField
from ..utils.device import DTYPE
from ..utils.logging_config import get_logger

logger = get_logger("interpolation")

# extrapolation tolerance past the last grid point, in cells
BOUNDARY_TOLERANCE = 1e-8


class Interpolator(ABC):
    """
    Interpolation kernel

    Attributes:
        margin: Extrapolation allowed past the first/last grid point, in cells
    """

    margin: float = 0.0

    @abstractmethod
    def interpolate(self, image: DiscreteImage) -> Field:
        pass

    def support_domain(self, image: DiscreteImage) -> BoxDomain:
        """Closed box on which the interpolated image is defined"""
        box = image.domain.bounding_box()
        pad = (self.margin + BOUNDARY_TOLERANCE) * image.domain.spacing
        return BoxDomain(box.origin - pad, box.corner + pad)


def _snap(ci: torch.Tensor) -> torch.Tensor:
    """Round continuous indices that sit on a grid site up to round-off"""
    nearest = torch.round(ci)
    return torch.where((ci - nearest).abs() <= SITE_TOLERANCE, nearest, ci)


class NearestNeighborInterpolator(Interpolator):
    margin = 0.5

    def interpolate(self, image: DiscreteImage) -> Field:
        domain = image.domain
        upper = torch.tensor(domain.size, dtype=torch.long) - 1
        strides = domain.strides
        values = image.values

        def nearest(points: torch.Tensor) -> torch.Tensor:
            idx = torch.floor(domain.continuous_index(points) + 0.5).to(torch.long)
            idx = torch.minimum(torch.clamp(idx, min=0), upper.to(idx.device))
            return values.to(points.device)[(idx * strides.to(idx.device)).sum(dim=1)]

        return FunctionField(self.support_domain(image), nearest)

    def __repr__(self) -> str:
        return "NearestNeighborInterpolator()"


class LinearInterpolatedImage(DifferentiableField):
    """
    Multilinear interpolation of a discrete image.

    The weight of each of the 2^D cell corners is the product of the per-axis
    weights (1 - frac) or frac. Grid sites reproduce the discrete values exactly.
    """

    def __init__(self, image: DiscreteImage, domain: BoxDomain):
        super().__init__(domain)
        self.image = image
        self._size = torch.tensor(image.domain.size, dtype=torch.long)
        self._corners = list(itertools.product((0, 1), repeat=image.domain.dim))

    def _cell(self, points: torch.Tensor) -> Tuple[torch.Tensor, torch.Tensor]:
        """Base corner index (N, D) and fractional offset (N, D) of each point's cell"""
        grid = self.image.domain
        ci = _snap(grid.continuous_index(points))
        upper_base = torch.clamp(self._size - 2, min=0).to(points.device)
        base = torch.floor(ci).to(torch.long)
        base = torch.minimum(torch.clamp(base, min=0), upper_base)
        frac = torch.clamp(ci - base.to(DTYPE), 0.0, 1.0)
        # single-sample axes have no second corner
        frac = torch.where((self._size == 1).to(points.device), torch.zeros_like(frac), frac)
        return base, frac

    def _corner_values(self, base: torch.Tensor, offset: Tuple[int, ...]) -> torch.Tensor:
        grid = self.image.domain
        upper = (self._size - 1).to(base.device)
        idx = torch.minimum(base + torch.tensor(offset, dtype=torch.long, device=base.device), upper)
        linear = (idx * grid.strides.to(base.device)).sum(dim=1)
        return self.image.values.to(base.device)[linear]

    def _evaluate(self, points: torch.Tensor) -> torch.Tensor:
        base, frac = self._cell(points)
        result = torch.zeros(points.shape[0], dtype=DTYPE, device=points.device)
        for offset in self._corners:
            weight = torch.ones_like(result)
            for axis, bit in enumerate(offset):
                weight = weight * (frac[:, axis] if bit else 1.0 - frac[:, axis])
            result = result + weight * self._corner_values(base, offset)
        return result

    def _gradient(self, points: torch.Tensor) -> torch.Tensor:
        base, frac = self._cell(points)
        spacing = self.image.domain.spacing.to(points.device)
        dim = points.shape[1]
        gradient = torch.zeros(points.shape[0], dim, dtype=DTYPE, device=points.device)
        for offset in self._corners:
            values = self._corner_values(base, offset)
            for k in range(dim):
                weight = torch.full_like(values, 1.0 if offset[k] else -1.0)
                for axis, bit in enumerate(offset):
                    if axis != k:
                        weight = weight * (frac[:, axis] if bit else 1.0 - frac[:, axis])
                gradient[:, k] = gradient[:, k] + weight * values
        singular = (self._size == 1).to(points.device)
        gradient = torch.where(singular, torch.zeros_like(gradient), gradient)
        return gradient / spacing

    def differentiate(self) -> Field:
        return FunctionField(self.domain, self._gradient, value_shape=(self.dim,))


class LinearInterpolator(Interpolator):
    margin = 0.0

    def interpolate(self, image: DiscreteImage) -> Field:
        return LinearInterpolatedImage(image, self.support_domain(image))

    def __repr__(self) -> str:
        return "LinearInterpolator()"


def _bspline(t: torch.Tensor, degree: int) -> torch.Tensor:
    """Centered B-spline basis of the given degree"""
    a = t.abs()
    if degree == 1:
        return torch.clamp(1.0 - a, min=0.0)
    if degree == 2:
        inner = 0.75 - a ** 2
        outer = 0.5 * (a - 1.5) ** 2
        return torch.where(a < 0.5, inner, torch.where(a < 1.5, outer, torch.zeros_like(a)))
    if degree == 3:
        inner = 2.0 / 3.0 - a ** 2 + 0.5 * a ** 3
        outer = (2.0 - a) ** 3 / 6.0
        return torch.where(a < 1.0, inner, torch.where(a < 2.0, outer, torch.zeros_like(a)))
    raise ValueError(f"Unsupported B-spline degree: {degree}")


def _bspline_derivative(t: torch.Tensor, degree: int) -> torch.Tensor:
    a = t.abs()
    sign = torch.sign(t)
    if degree == 1:
        return torch.where(a < 1.0, -sign, torch.zeros_like(a))
    if degree == 2:
        inner = -2.0 * t
        outer = (a - 1.5) * sign
        return torch.where(a < 0.5, inner, torch.where(a < 1.5, outer, torch.zeros_like(a)))
    if degree == 3:
        inner = -2.0 * t + 1.5 * t * a
        outer = -0.5 * (2.0 - a) ** 2 * sign
        return torch.where(a < 1.0, inner, torch.where(a < 2.0, outer, torch.zeros_like(a)))
    raise ValueError(f"Unsupported B-spline degree: {degree}")


def _mirror(index: torch.Tensor, size: int) -> torch.Tensor:
    """Whole-sample symmetric extension (d c b | a b c d | c b a)"""
    if size == 1:
        return torch.zeros_like(index)
    period = 2 * (size - 1)
    index = torch.remainder(index, period)
    return torch.where(index > size - 1, period - index, index)


class BSplineInterpolatedImage(DifferentiableField):
    """
    B-spline interpolation of a discrete image.

    Coefficients are computed once with scipy's mirror-boundary prefilter,
    so the spline passes through the samples.
    """

    def __init__(self, image: DiscreteImage, domain: BoxDomain, degree: int):
        super().__init__(domain)
        self.image = image
        self.degree = degree

        grid_values = image.values_on_grid().cpu().numpy()
        if degree >= 2:
            coefficients = spline_filter(grid_values, order=degree, mode="mirror")
        else:
            coefficients = np.array(grid_values, copy=True)
        self.coefficients = torch.from_numpy(np.ascontiguousarray(coefficients)).reshape(-1).to(DTYPE)
        self._offsets = list(itertools.product(range(degree + 1), repeat=image.domain.dim))

    def _axis_weights(self, points: torch.Tensor, derivative: bool):
        """Per-axis (indices, weights, weight derivatives), each a list of (N, degree + 1)"""
        grid = self.image.domain
        ci = _snap(grid.continuous_index(points))
        first = torch.floor(ci - (self.degree - 1) / 2.0).to(torch.long)
        steps = torch.arange(self.degree + 1, device=points.device)
        indices: List[torch.Tensor] = []
        weights: List[torch.Tensor] = []
        slopes: List[torch.Tensor] = []
        for axis in range(grid.dim):
            knots = first[:, axis:axis + 1] + steps  # (N, degree + 1)
            t = ci[:, axis:axis + 1] - knots.to(DTYPE)
            indices.append(_mirror(knots, grid.size[axis]))
            weights.append(_bspline(t, self.degree))
            if derivative:
                slopes.append(_bspline_derivative(t, self.degree))
        return indices, weights, slopes

    def _linear(self, indices: List[torch.Tensor], offset: Tuple[int, ...]) -> torch.Tensor:
        strides = self.image.domain.strides
        linear = torch.zeros_like(indices[0][:, 0])
        for axis, k in enumerate(offset):
            linear = linear + indices[axis][:, k] * int(strides[axis])
        return linear

    def _evaluate(self, points: torch.Tensor) -> torch.Tensor:
        indices, weights, _ = self._axis_weights(points, derivative=False)
        coefficients = self.coefficients.to(points.device)
        result = torch.zeros(points.shape[0], dtype=DTYPE, device=points.device)
        for offset in self._offsets:
            weight = torch.ones_like(result)
            for axis, k in enumerate(offset):
                weight = weight * weights[axis][:, k]
            result = result + weight * coefficients[self._linear(indices, offset)]
        return result

    def _gradient(self, points: torch.Tensor) -> torch.Tensor:
        indices, weights, slopes = self._axis_weights(points, derivative=True)
        coefficients = self.coefficients.to(points.device)
        dim = points.shape[1]
        gradient = torch.zeros(points.shape[0], dim, dtype=DTYPE, device=points.device)
        for offset in self._offsets:
            c = coefficients[self._linear(indices, offset)]
            for d in range(dim):
                weight = torch.ones_like(c)
                for axis, k in enumerate(offset):
                    weight = weight * (slopes[axis][:, k] if axis == d else weights[axis][:, k])
                gradient[:, d] = gradient[:, d] + weight * c
        return gradient / self.image.domain.spacing.to(points.device)

    def differentiate(self) -> Field:
        return FunctionField(self.domain, self._gradient, value_shape=(self.dim,))


class BSplineInterpolator(Interpolator):
    """B-spline interpolation of degree 1, 2 or 3"""

    margin = 0.0

    def __init__(self, degree: int = 3):
        if degree not in (1, 2, 3):
            raise ValueError(f"B-spline degree must be 1, 2 or 3, got {degree}")
        self.degree = degree

    def interpolate(self, image: DiscreteImage) -> Field:
        logger.debug(f"Prefiltering {image.domain.size} image for degree {self.degree} B-spline")
        return BSplineInterpolatedImage(image, self.support_domain(image), self.degree)

    def __repr__(self) -> str:
        return f"BSplineInterpolator(degree={self.degree})"
