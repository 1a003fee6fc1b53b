"""
fieldreg Samplers

A sampler produces a fixed number of (point, weight) pairs used to
approximate an integral over a region, plus the measure of that region.
Stochastic samplers draw a fresh point set on every call to `sample()`;
wrap them in SampleOnceSampler to freeze a single draw.
"""

from abc import ABC, abstractmethod
from typing import Optional, Tuple

import torch

from ..common.domain import BoxDomain
from ..image.discrete_domain import DiscreteImageDomain
from ..utils.device import ArrayLike, DTYPE, as_points
from ..utils.logging_config import get_logger

logger = get_logger("sampler")

Samples = Tuple[torch.Tensor, torch.Tensor]


class Sampler(ABC):
    """
    Attributes:
        number_of_points: Length of every sequence returned by `sample()`
        volume_of_sample_region: Measure used to normalize Monte Carlo estimates
    """

    dim: int

    @property
    @abstractmethod
    def number_of_points(self) -> int:
        pass

    @property
    @abstractmethod
    def volume_of_sample_region(self) -> float:
        pass

    @abstractmethod
    def sample(self) -> Samples:
        """
        Returns:
            (points, weights) with shapes (N, D) and (N,)
        """

    def _uniform_weights(self, n: int) -> torch.Tensor:
        return torch.full((n,), self.volume_of_sample_region / max(n, 1), dtype=DTYPE)


class GridSampler(Sampler):
    """Every point of a grid, deterministic"""

    def __init__(self, domain: DiscreteImageDomain):
        self.domain = domain
        self.dim = domain.dim

    @property
    def number_of_points(self) -> int:
        return self.domain.number_of_points

    @property
    def volume_of_sample_region(self) -> float:
        return self.domain.volume

    def sample(self) -> Samples:
        return self.domain.points(), self._uniform_weights(self.number_of_points)


class UniformSampler(Sampler):
    """Uniform random points inside a box"""

    def __init__(self, box: BoxDomain, number_of_points: int, generator: Optional[torch.Generator] = None):
        if number_of_points < 1:
            raise ValueError(f"number_of_points must be positive, got {number_of_points}")
        self.box = box
        self.dim = box.dim
        self._number_of_points = int(number_of_points)
        self.generator = generator

    @property
    def number_of_points(self) -> int:
        return self._number_of_points

    @property
    def volume_of_sample_region(self) -> float:
        return self.box.volume

    def sample(self) -> Samples:
        unit = torch.rand(self._number_of_points, self.dim, dtype=DTYPE, generator=self.generator)
        points = self.box.origin + unit * self.box.extent
        return points, self._uniform_weights(self._number_of_points)


class RandomGridSampler(Sampler):
    """Random grid points, drawn with replacement"""

    def __init__(
        self,
        domain: DiscreteImageDomain,
        number_of_points: int,
        generator: Optional[torch.Generator] = None,
    ):
        if number_of_points < 1:
            raise ValueError(f"number_of_points must be positive, got {number_of_points}")
        self.domain = domain
        self.dim = domain.dim
        self._number_of_points = int(number_of_points)
        self.generator = generator

    @property
    def number_of_points(self) -> int:
        return self._number_of_points

    @property
    def volume_of_sample_region(self) -> float:
        return self.domain.volume

    def sample(self) -> Samples:
        linear = torch.randint(
            self.domain.number_of_points, (self._number_of_points,), generator=self.generator
        )
        indices = self.domain.linear_index_to_index(linear)
        points = self.domain.origin + indices.to(DTYPE) * self.domain.spacing
        return points, self._uniform_weights(self._number_of_points)


class FixedPointsSampler(Sampler):
    """An explicit point set"""

    def __init__(self, points: ArrayLike, volume: float):
        points = torch.as_tensor(points, dtype=DTYPE)
        if points.dim() == 1:
            # a flat sequence is a set of 1D points
            points = points.unsqueeze(-1)
        self.points, _ = as_points(points, points.shape[-1])
        self.dim = self.points.shape[1]
        self.volume = float(volume)

    @property
    def number_of_points(self) -> int:
        return self.points.shape[0]

    @property
    def volume_of_sample_region(self) -> float:
        return self.volume

    def sample(self) -> Samples:
        return self.points, self._uniform_weights(self.number_of_points)


class SampleOnceSampler(Sampler):
    """
    Freezes a single draw of another sampler.

    The draw happens at construction, so every later `sample()` call,
    including concurrent ones, returns the identical sequence.
    """

    def __init__(self, sampler: Sampler):
        self.sampler = sampler
        self.dim = sampler.dim
        self._samples = sampler.sample()
        logger.debug(f"Froze {self._samples[0].shape[0]} points from {type(sampler).__name__}")

    @property
    def number_of_points(self) -> int:
        return self.sampler.number_of_points

    @property
    def volume_of_sample_region(self) -> float:
        return self.sampler.volume_of_sample_region

    def sample(self) -> Samples:
        return self._samples
