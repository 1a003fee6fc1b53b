"""
fieldreg Domains

A domain is a predicate over points. Domains are immutable and can be
shared between fields.

All `contains` implementations work on batches of points (N, D) and
return a boolean tensor (N,). `is_defined_at` is the user-facing entry
point and also accepts single points.
"""

from abc import ABC, abstractmethod
from typing import Callable, Union

import torch

from .errors import DimensionMismatchError
from ..utils.device import ArrayLike, as_points, as_vector


class Domain(ABC):
    """Abstract spatial domain of dimension `dim`"""

    def __init__(self, dim: int):
        self._dim = int(dim)

    @property
    def dim(self) -> int:
        return self._dim

    @abstractmethod
    def contains(self, points: torch.Tensor) -> torch.Tensor:
        """
        Batch membership test.

        Args:
            points: Tensor (N, D)

        Returns:
            Boolean tensor (N,)
        """

    def is_defined_at(self, points: ArrayLike) -> Union[bool, torch.Tensor]:
        """
        Membership test for a single point or a batch of points

        Returns:
            bool for a single point, boolean tensor (N,) for a batch
        """
        batch, single = as_points(points, self.dim)
        mask = self.contains(batch)
        return bool(mask[0]) if single else mask

    @staticmethod
    def intersection(first: "Domain", second: "Domain") -> "Domain":
        """Domain defined where both `first` and `second` are defined"""
        if first.dim != second.dim:
            raise DimensionMismatchError(
                f"Cannot intersect domains of dimension {first.dim} and {second.dim}"
            )
        if isinstance(first, RealSpace):
            return second
        if isinstance(second, RealSpace):
            return first
        return IntersectionDomain(first, second)


class RealSpace(Domain):
    """The whole of R^dim"""

    def contains(self, points: torch.Tensor) -> torch.Tensor:
        return torch.ones(points.shape[0], dtype=torch.bool, device=points.device)

    def __repr__(self) -> str:
        return f"RealSpace(dim={self.dim})"


class BoxDomain(Domain):
    """
    Closed axis-aligned box [origin, corner].

    Both bounds are inclusive, so a point exactly on a face is inside.
    """

    def __init__(self, origin: ArrayLike, corner: ArrayLike):
        origin = as_vector(origin)
        corner = as_vector(corner)
        if origin.shape != corner.shape:
            raise DimensionMismatchError(
                f"Box origin {tuple(origin.tolist())} and corner {tuple(corner.tolist())} differ in dimension"
            )
        if bool((corner < origin).any()):
            raise ValueError(f"Box corner {corner.tolist()} lies below origin {origin.tolist()}")
        super().__init__(origin.shape[0])
        self.origin = origin
        self.corner = corner

    @property
    def extent(self) -> torch.Tensor:
        return self.corner - self.origin

    @property
    def volume(self) -> float:
        return float(torch.prod(self.extent))

    def contains(self, points: torch.Tensor) -> torch.Tensor:
        origin = self.origin.to(points.device)
        corner = self.corner.to(points.device)
        return ((points >= origin) & (points <= corner)).all(dim=1)

    def __repr__(self) -> str:
        return f"BoxDomain(origin={self.origin.tolist()}, corner={self.corner.tolist()})"


class ImplicitDomain(Domain):
    """Domain given by an arbitrary vectorised predicate"""

    def __init__(self, dim: int, predicate: Callable[[torch.Tensor], torch.Tensor]):
        super().__init__(dim)
        self.predicate = predicate

    def contains(self, points: torch.Tensor) -> torch.Tensor:
        return torch.as_tensor(self.predicate(points), dtype=torch.bool, device=points.device)


class IntersectionDomain(Domain):
    """Logical AND of two domains"""

    def __init__(self, first: Domain, second: Domain):
        super().__init__(first.dim)
        self.first = first
        self.second = second

    def contains(self, points: torch.Tensor) -> torch.Tensor:
        return self.first.contains(points) & self.second.contains(points)

    def __repr__(self) -> str:
        return f"IntersectionDomain({self.first!r}, {self.second!r})"


class ComposedDomain(Domain):
    """
    Pull-back of a domain through a transformation.

    Contains `x` iff `domain` contains `transform(x)`.
    """

    def __init__(self, domain: Domain, transform):
        super().__init__(domain.dim)
        self.domain = domain
        self.transform = transform

    def contains(self, points: torch.Tensor) -> torch.Tensor:
        return self.domain.contains(self.transform.apply(points))
