"""
fieldreg Discrete Image Domain

Regular axis-aligned grid of points. Grid indices map to a linear index
with the first axis varying fastest:

    linear = i0 + i1 * s0 + i2 * s0 * s1 + ...
"""

from typing import Sequence, Tuple, Union

import torch

from ..common.domain import BoxDomain, Domain
from ..common.errors import DimensionMismatchError
from ..utils.device import ArrayLike, DTYPE, as_points, as_vector
from ..utils.logging_config import get_logger

logger = get_logger("image")

# grid-site tolerance, in units of the spacing
SITE_TOLERANCE = 1e-8


class DiscreteImageDomain(Domain):
    """
    Regular grid domain

    Attributes:
        origin: World coordinate of index (0, ..., 0)
        spacing: Distance between neighbouring grid points per axis
        size: Number of grid points per axis
    """

    def __init__(self, origin: ArrayLike, spacing: ArrayLike, size: Sequence[int]):
        origin = as_vector(origin)
        spacing = as_vector(spacing)
        size = tuple(int(s) for s in size)
        if not (origin.shape[0] == spacing.shape[0] == len(size)):
            raise DimensionMismatchError(
                f"origin ({origin.shape[0]}), spacing ({spacing.shape[0]}) and size ({len(size)}) "
                f"must have the same dimension"
            )
        if any(s < 1 for s in size):
            raise ValueError(f"Grid size must be positive along every axis, got {size}")
        if bool((spacing <= 0).any()):
            raise ValueError(f"Grid spacing must be positive, got {spacing.tolist()}")
        super().__init__(len(size))

        self.origin = origin
        self.spacing = spacing
        self.size = size

        strides = [1]
        for s in size[:-1]:
            strides.append(strides[-1] * s)
        self.strides = torch.tensor(strides, dtype=torch.long)
        self._size_tensor = torch.tensor(size, dtype=torch.long)

    @classmethod
    def from_bounding_box(cls, box: BoxDomain, size: Sequence[int]) -> "DiscreteImageDomain":
        """Grid whose first and last points lie on the faces of `box`"""
        size = tuple(int(s) for s in size)
        if len(size) != box.dim:
            raise DimensionMismatchError(f"Size {size} does not match {box.dim}D box")
        steps = torch.tensor([max(s - 1, 1) for s in size], dtype=DTYPE)
        spacing = box.extent / steps
        spacing = torch.where(spacing > 0, spacing, torch.ones_like(spacing))
        logger.debug(f"Grid {size} over {box!r}: spacing {spacing.tolist()}")
        return cls(box.origin, spacing, size)

    @property
    def number_of_points(self) -> int:
        return int(torch.prod(self._size_tensor))

    @property
    def volume(self) -> float:
        """Measure covered by the grid cells"""
        return float(torch.prod(self.spacing)) * self.number_of_points

    def index_to_linear_index(self, index) -> Union[int, torch.Tensor]:
        """
        Args:
            index: A single grid index (D,) or a batch (N, D)

        Returns:
            int for a single index, LongTensor (N,) for a batch

        Raises:
            IndexError: If any index lies outside the grid
        """
        idx = torch.as_tensor(index, dtype=torch.long)
        if idx.dim() == 0:
            idx = idx.reshape(1)
        single = idx.dim() == 1
        if single:
            idx = idx.unsqueeze(0)
        if idx.dim() != 2 or idx.shape[1] != self.dim:
            raise DimensionMismatchError(f"Expected {self.dim}D grid index, got shape {tuple(idx.shape)}")
        if bool(((idx < 0) | (idx >= self._size_tensor)).any()):
            raise IndexError(f"Grid index out of range for size {self.size}")
        linear = (idx * self.strides).sum(dim=1)
        return int(linear[0]) if single else linear

    def linear_index_to_index(self, linear_index) -> Union[Tuple[int, ...], torch.Tensor]:
        """
        Inverse of `index_to_linear_index`

        Returns:
            tuple of ints for a single linear index, LongTensor (N, D) for a batch
        """
        linear = torch.as_tensor(linear_index, dtype=torch.long)
        single = linear.dim() == 0
        if single:
            linear = linear.unsqueeze(0)
        if bool(((linear < 0) | (linear >= self.number_of_points)).any()):
            raise IndexError(f"Linear index out of range [0, {self.number_of_points})")
        idx = (linear.unsqueeze(1) // self.strides) % self._size_tensor
        return tuple(int(i) for i in idx[0]) if single else idx

    def point(self, index) -> torch.Tensor:
        """World coordinate of a single grid index"""
        idx = torch.as_tensor(index, dtype=DTYPE)
        return self.origin + idx * self.spacing

    def point_at(self, linear_index: int) -> torch.Tensor:
        return self.point(self.linear_index_to_index(linear_index))

    def points(self) -> torch.Tensor:
        """All grid points (N, D), ordered by linear index"""
        indices = self.linear_index_to_index(torch.arange(self.number_of_points))
        return self.origin + indices.to(DTYPE) * self.spacing

    def continuous_index(self, points: torch.Tensor) -> torch.Tensor:
        """Fractional grid index of a batch of world points"""
        return (points - self.origin.to(points.device)) / self.spacing.to(points.device)

    def bounding_box(self) -> BoxDomain:
        corner = self.origin + (self._size_tensor.to(DTYPE) - 1) * self.spacing
        return BoxDomain(self.origin, corner)

    def contains(self, points: torch.Tensor) -> torch.Tensor:
        ci = self.continuous_index(points)
        nearest = torch.round(ci)
        on_site = (ci - nearest).abs() <= SITE_TOLERANCE
        in_range = (nearest >= 0) & (nearest <= (self._size_tensor.to(DTYPE) - 1))
        return (on_site & in_range).all(dim=1)

    def find_closest_index(self, points: ArrayLike) -> torch.Tensor:
        """Grid index (N, D) of the grid point nearest to each point, clamped to the grid"""
        batch, single = as_points(points, self.dim)
        nearest = torch.floor(self.continuous_index(batch) + 0.5).to(torch.long)
        upper = self._size_tensor - 1
        nearest = torch.minimum(torch.clamp(nearest, min=0), upper)
        return nearest[0] if single else nearest

    def __repr__(self) -> str:
        return (
            f"DiscreteImageDomain(origin={self.origin.tolist()}, "
            f"spacing={self.spacing.tolist()}, size={self.size})"
        )
