"""
fieldreg Discrete Image

Scalar samples on a regular grid, stored as a flat float64 tensor
ordered by linear index.
"""

from typing import Callable, Union

import numpy as np
import torch

from .discrete_domain import DiscreteImageDomain
from ..common.errors import DimensionMismatchError
from ..common.field import Field
from ..utils.device import ArrayLike, DTYPE, as_tensor
from ..utils.logging_config import get_logger

logger = get_logger("image")


class DiscreteImage:
    """
    Grid-sampled scalar image

    Attributes:
        domain: Grid the samples live on
        values: Tensor (number_of_points,), one value per grid point
    """

    def __init__(self, domain: DiscreteImageDomain, values: ArrayLike):
        values = as_tensor(values).reshape(-1)
        if values.shape[0] != domain.number_of_points:
            raise DimensionMismatchError(
                f"Image has {values.shape[0]} values but domain has {domain.number_of_points} points"
            )
        self.domain = domain
        self.values = values

    @classmethod
    def from_function(
        cls,
        domain: DiscreteImageDomain,
        fn: Callable[[torch.Tensor], torch.Tensor],
    ) -> "DiscreteImage":
        """Sample a vectorised function of world points on the grid"""
        return cls(domain, fn(domain.points()))

    @classmethod
    def from_array(cls, domain: DiscreteImageDomain, array: np.ndarray) -> "DiscreteImage":
        """
        Build from an array laid out as `values_on_grid` returns it,
        i.e. with shape `domain.size[::-1]`.
        """
        array = np.asarray(array, dtype=np.float64)
        if array.shape != tuple(reversed(domain.size)):
            raise DimensionMismatchError(
                f"Array shape {array.shape} does not match grid size {tuple(reversed(domain.size))}"
            )
        return cls(domain, torch.from_numpy(np.ascontiguousarray(array)).reshape(-1))

    def __getitem__(self, index) -> float:
        """Value at a linear index (int) or a grid index (tuple)"""
        if isinstance(index, (tuple, list)):
            index = self.domain.index_to_linear_index(index)
        index = int(index)
        if not 0 <= index < self.domain.number_of_points:
            raise IndexError(f"Linear index {index} out of range [0, {self.domain.number_of_points})")
        return float(self.values[index])

    def __len__(self) -> int:
        return self.values.shape[0]

    def values_on_grid(self) -> torch.Tensor:
        """Values reshaped to `size[::-1]`, so the first axis varies fastest in memory"""
        return self.values.reshape(tuple(reversed(self.domain.size)))

    def map(self, fn: Callable[[torch.Tensor], torch.Tensor]) -> "DiscreteImage":
        return DiscreteImage(self.domain, fn(self.values))

    def interpolate(self, interpolator) -> Field:
        """Continuous field reconstructed from the samples by `interpolator`"""
        return interpolator.interpolate(self)

    def __repr__(self) -> str:
        return f"DiscreteImage(domain={self.domain!r})"


def discretize(
    field: Field,
    domain: DiscreteImageDomain,
    outside_value: Union[float, None] = None,
) -> DiscreteImage:
    """
    Sample a field on a grid

    Args:
        field: Scalar field to sample
        domain: Grid to sample on
        outside_value: Value used where the field is undefined. If None,
            every grid point must be inside the field's domain.

    Raises:
        UndefinedAtError: If outside_value is None and a grid point is outside
    """
    points = domain.points()
    if outside_value is None:
        return DiscreteImage(domain, field(points))
    values, defined = field.lift_values(points)
    values = torch.where(defined, values, torch.full_like(values, float(outside_value), dtype=DTYPE))
    undefined = int((~defined).sum())
    if undefined:
        logger.debug(f"discretize: {undefined} grid point(s) outside field domain set to {outside_value}")
    return DiscreteImage(domain, values)
