"""
fieldreg Image Metrics

Image-to-image metrics that apply a loss function to the pointwise
difference between the fixed image and the warped moving image. The
metric value is the Monte Carlo mean of this loss over the sampler's
points; sample points outside the overlap of both images contribute 0
but still count in the denominator.

Per-point evaluation is a data-parallel map over independent chunks of
the sample set, reduced by summation.
"""

from abc import ABC, abstractmethod
from typing import Iterator, NamedTuple, Optional

import torch

from ..common.domain import Domain
from ..common.errors import DimensionMismatchError
from ..common.field import DifferentiableField, Field
from ..numerics.samplers import SampleOnceSampler, Sampler
from ..transformations.base import TransformationSpace
from ..utils.device import ArrayLike, DTYPE
from ..utils.logging_config import get_logger

logger = get_logger("metrics")


class ValueAndDerivative(NamedTuple):
    """Metric value and gradient computed from one sample set"""
    value: float
    derivative: torch.Tensor


class ImageMetric(ABC):
    """
    Objective for an external optimizer

    Attributes:
        fixed_image: Reference field
        moving_image: Differentiable field warped onto the fixed image
        transformation_space: Parametric family of transformations
        sampler: Point set over which the metric is integrated
    """

    def __init__(
        self,
        fixed_image: Field,
        moving_image: DifferentiableField,
        transformation_space: TransformationSpace,
        sampler: Sampler,
    ):
        if not isinstance(moving_image, DifferentiableField):
            raise TypeError(
                f"Moving image must be a DifferentiableField, got {type(moving_image).__name__}; "
                "interpolate it with a linear or B-spline kernel"
            )
        if fixed_image.dim != moving_image.dim or fixed_image.dim != transformation_space.dim:
            raise DimensionMismatchError(
                f"Fixed image ({fixed_image.dim}D), moving image ({moving_image.dim}D) and "
                f"transformation space ({transformation_space.dim}D) must share a dimension"
            )
        self.fixed_image = fixed_image
        self.moving_image = moving_image
        self.transformation_space = transformation_space
        self.sampler = sampler

    @abstractmethod
    def value(self, parameters: ArrayLike) -> float:
        pass

    @abstractmethod
    def derivative(self, parameters: ArrayLike) -> torch.Tensor:
        pass

    def value_and_derivative(self, parameters: ArrayLike) -> ValueAndDerivative:
        return ValueAndDerivative(self.value(parameters), self.derivative(parameters))


class MeanPointwiseLossMetric(ImageMetric):
    """
    Mean of a pointwise loss of the residual fixed - warped.

    Subclasses supply `loss_function` and `loss_function_derivative`,
    both applied elementwise to a tensor of residuals.
    """

    def __init__(
        self,
        fixed_image: Field,
        moving_image: DifferentiableField,
        transformation_space: TransformationSpace,
        sampler: Sampler,
        chunk_size: Optional[int] = None,
    ):
        super().__init__(fixed_image, moving_image, transformation_space, sampler)
        if chunk_size is not None and chunk_size < 1:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self.chunk_size = chunk_size

    @abstractmethod
    def loss_function(self, residual: torch.Tensor) -> torch.Tensor:
        pass

    @abstractmethod
    def loss_function_derivative(self, residual: torch.Tensor) -> torch.Tensor:
        pass

    def value(self, parameters: ArrayLike) -> float:
        return self._compute_value(parameters, self.sampler)

    def derivative(self, parameters: ArrayLike) -> torch.Tensor:
        return self._compute_derivative(parameters, self.sampler)

    def value_and_derivative(self, parameters: ArrayLike) -> ValueAndDerivative:
        # one frozen draw so value and derivative see the same points
        sample_once = SampleOnceSampler(self.sampler)
        value = self._compute_value(parameters, sample_once)
        derivative = self._compute_derivative(parameters, sample_once)
        return ValueAndDerivative(value, derivative)

    def _chunks(self, points: torch.Tensor) -> Iterator[torch.Tensor]:
        if self.chunk_size is None:
            yield points
        else:
            yield from torch.split(points, self.chunk_size)

    def _compute_value(self, parameters: ArrayLike, sampler: Sampler) -> float:
        transform = self.transformation_space.transformation_for_parameters(parameters)

        warped_image = self.moving_image.compose(transform)
        metric_value = (self.fixed_image - warped_image).and_then(self.loss_function)

        # monte carlo mean; undefined points add 0 but stay in the count
        points, _ = sampler.sample()
        total = torch.zeros((), dtype=DTYPE)
        for chunk in self._chunks(points):
            values, _ = metric_value.lift_values(chunk)
            total = total + values.to(DTYPE).sum().cpu()

        n = points.shape[0]
        value = float(total) / n if n else 0.0
        logger.debug(f"value: {value:.6g} over {n} sample points")
        return value

    def _compute_derivative(self, parameters: ArrayLike, sampler: Sampler) -> torch.Tensor:
        transform = self.transformation_space.transformation_for_parameters(parameters)

        moving_image_gradient = self.moving_image.differentiate()
        warped_image = self.moving_image.compose(transform)

        # warped - fixed: sign of the chain rule term
        d_moving_image = (warped_image - self.fixed_image).and_then(self.loss_function_derivative)
        domain = Domain.intersection(self.fixed_image.domain, d_moving_image.domain)

        points, _ = sampler.sample()
        number_of_parameters = self.transformation_space.number_of_parameters
        total = torch.zeros(number_of_parameters, dtype=DTYPE)
        for chunk in self._chunks(points):
            inside = domain.contains(chunk)
            if not bool(inside.any()):
                continue
            x = chunk[inside]
            loss_derivative = d_moving_image._evaluate(x).to(DTYPE)  # (M,)
            image_gradient = moving_image_gradient._evaluate(transform.apply(x)).to(DTYPE)  # (M, D)
            parameter_jacobian = transform.derivative_wrt_parameters(x)  # (M, D, P), at the pre-image
            contributions = torch.einsum(
                "mdp,md->mp", parameter_jacobian, image_gradient * loss_derivative.unsqueeze(-1)
            )
            total = total + contributions.sum(dim=0).cpu()

        n = points.shape[0]
        derivative = total / n if n else total
        logger.debug(f"derivative norm: {float(torch.linalg.norm(derivative)):.6g} over {n} sample points")
        return derivative


class MeanSquaresMetric(MeanPointwiseLossMetric):
    """Mean squared intensity difference"""

    def loss_function(self, residual: torch.Tensor) -> torch.Tensor:
        return residual * residual

    def loss_function_derivative(self, residual: torch.Tensor) -> torch.Tensor:
        return 2.0 * residual


class MeanHuberLossMetric(MeanPointwiseLossMetric):
    """
    Huber loss of the intensity difference: quadratic below `delta`,
    linear above, robust against outlier intensities.
    """

    def __init__(
        self,
        fixed_image: Field,
        moving_image: DifferentiableField,
        transformation_space: TransformationSpace,
        sampler: Sampler,
        delta: float = 1.345,
        chunk_size: Optional[int] = None,
    ):
        super().__init__(fixed_image, moving_image, transformation_space, sampler, chunk_size)
        if delta <= 0:
            raise ValueError(f"Huber delta must be positive, got {delta}")
        self.delta = float(delta)

    def loss_function(self, residual: torch.Tensor) -> torch.Tensor:
        magnitude = residual.abs()
        return torch.where(
            magnitude < self.delta,
            0.5 * residual * residual,
            self.delta * (magnitude - 0.5 * self.delta),
        )

    def loss_function_derivative(self, residual: torch.Tensor) -> torch.Tensor:
        return torch.clamp(residual, -self.delta, self.delta)

