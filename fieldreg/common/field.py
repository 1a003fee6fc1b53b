"""
fieldreg Fields

Continuous fields over a domain, and the combinators used to build
registration objectives from them:
- pointwise arithmetic (sum, difference, product) on intersected domains
- value mapping (`and_then`)
- composition with a spatial transformation (`compose`)

Every field evaluates batches of points (N, D). Scalar fields return (N,),
vector fields return (N, K). `_evaluate` assumes all points are inside the
domain; `__call__` checks membership and raises `UndefinedAtError`.
"""

from abc import ABC, abstractmethod
from typing import Callable, Tuple

import torch

from .domain import ComposedDomain, Domain, RealSpace
from .errors import DimensionMismatchError, UndefinedAtError
from ..utils.device import ArrayLike, DTYPE, as_points


def _broadcast(lhs: torch.Tensor, rhs: torch.Tensor) -> Tuple[torch.Tensor, torch.Tensor]:
    """Align a scalar-field batch (N,) with a vector-field batch (N, K)"""
    if lhs.dim() < rhs.dim():
        lhs = lhs.unsqueeze(-1)
    elif rhs.dim() < lhs.dim():
        rhs = rhs.unsqueeze(-1)
    return lhs, rhs


def _combined_shape(first: Tuple[int, ...], second: Tuple[int, ...]) -> Tuple[int, ...]:
    return first if len(first) >= len(second) else second


class Field(ABC):
    """
    A function from the points of `domain` to values.

    Attributes:
        domain: Where the field can be evaluated
        value_shape: Shape of a single value, () for scalar fields
    """

    value_shape: Tuple[int, ...] = ()

    def __init__(self, domain: Domain):
        self.domain = domain

    @property
    def dim(self) -> int:
        return self.domain.dim

    @abstractmethod
    def _evaluate(self, points: torch.Tensor) -> torch.Tensor:
        """Evaluate at a batch of points, all known to be inside the domain"""

    def is_defined_at(self, points: ArrayLike):
        return self.domain.is_defined_at(points)

    def __call__(self, points: ArrayLike) -> torch.Tensor:
        batch, single = as_points(points, self.dim)
        mask = self.domain.contains(batch)
        if not bool(mask.all()):
            outside = batch[~mask]
            raise UndefinedAtError(
                f"{type(self).__name__} is not defined at {outside.shape[0]} point(s), "
                f"first: {outside[0].tolist()}",
                points=outside,
            )
        values = self._evaluate(batch)
        return values[0] if single else values

    def lift_values(self, points: ArrayLike) -> Tuple[torch.Tensor, torch.Tensor]:
        """
        Option-like evaluation.

        Returns:
            (values, defined) where values are zero wherever `defined` is False
        """
        batch, _ = as_points(points, self.dim)
        mask = self.domain.contains(batch)
        values = torch.zeros((batch.shape[0],) + tuple(self.value_shape), dtype=DTYPE, device=batch.device)
        if bool(mask.any()):
            values[mask] = self._evaluate(batch[mask]).to(DTYPE)
        return values, mask

    def and_then(self, fn: Callable[[torch.Tensor], torch.Tensor]) -> "MappedField":
        """Apply `fn` to the values of this field"""
        return MappedField(self, fn)

    def compose(self, transform) -> "Field":
        """
        Field defined at `x` iff this field is defined at `transform(x)`,
        with value `self(transform(x))`.
        """
        if transform.dim != self.dim:
            raise DimensionMismatchError(
                f"Cannot compose a {self.dim}D field with a {transform.dim}D transformation"
            )
        return ComposedField(self, transform)

    def _coerce(self, other) -> "Field":
        if isinstance(other, Field):
            if other.dim != self.dim:
                raise DimensionMismatchError(
                    f"Cannot combine fields of dimension {self.dim} and {other.dim}"
                )
            return other
        if isinstance(other, (int, float)):
            return ConstantField(self.dim, float(other))
        return NotImplemented

    def __add__(self, other):
        other = self._coerce(other)
        if other is NotImplemented:
            return other
        if isinstance(self, DifferentiableField) and isinstance(other, DifferentiableField):
            return DifferentiableSumField(self, other)
        return SumField(self, other)

    def __radd__(self, other):
        return self.__add__(other)

    def __sub__(self, other):
        other = self._coerce(other)
        if other is NotImplemented:
            return other
        if isinstance(self, DifferentiableField) and isinstance(other, DifferentiableField):
            return DifferentiableDifferenceField(self, other)
        return DifferenceField(self, other)

    def __rsub__(self, other):
        other = self._coerce(other)
        if other is NotImplemented:
            return other
        return other.__sub__(self)

    def __mul__(self, other):
        other = self._coerce(other)
        if other is NotImplemented:
            return other
        if isinstance(self, DifferentiableField) and isinstance(other, DifferentiableField):
            return DifferentiableProductField(self, other)
        return ProductField(self, other)

    def __rmul__(self, other):
        return self.__mul__(other)

    def __neg__(self):
        return self * -1.0


class DifferentiableField(Field):
    """A field that also knows its spatial gradient"""

    @abstractmethod
    def differentiate(self) -> Field:
        """Gradient field with values (N, D), defined where this field is"""

    def compose(self, transform) -> Field:
        if transform.dim != self.dim:
            raise DimensionMismatchError(
                f"Cannot compose a {self.dim}D field with a {transform.dim}D transformation"
            )
        return DifferentiableComposedField(self, transform)


class FunctionField(Field):
    """Field backed by a vectorised function of a batch of points"""

    def __init__(
        self,
        domain: Domain,
        fn: Callable[[torch.Tensor], torch.Tensor],
        value_shape: Tuple[int, ...] = (),
    ):
        super().__init__(domain)
        self.fn = fn
        self.value_shape = tuple(value_shape)

    def _evaluate(self, points: torch.Tensor) -> torch.Tensor:
        return torch.as_tensor(self.fn(points), dtype=DTYPE, device=points.device)


class DifferentiableFunctionField(DifferentiableField):
    """Scalar field with an analytic gradient"""

    def __init__(
        self,
        domain: Domain,
        fn: Callable[[torch.Tensor], torch.Tensor],
        gradient_fn: Callable[[torch.Tensor], torch.Tensor],
    ):
        super().__init__(domain)
        self.fn = fn
        self.gradient_fn = gradient_fn

    def _evaluate(self, points: torch.Tensor) -> torch.Tensor:
        return torch.as_tensor(self.fn(points), dtype=DTYPE, device=points.device)

    def differentiate(self) -> Field:
        return FunctionField(self.domain, self.gradient_fn, value_shape=(self.dim,))


class ConstantField(DifferentiableField):
    """Constant scalar over the whole space"""

    def __init__(self, dim: int, value: float):
        super().__init__(RealSpace(dim))
        self.value = float(value)

    def _evaluate(self, points: torch.Tensor) -> torch.Tensor:
        return torch.full((points.shape[0],), self.value, dtype=DTYPE, device=points.device)

    def differentiate(self) -> Field:
        return FunctionField(
            self.domain,
            lambda points: torch.zeros_like(points, dtype=DTYPE),
            value_shape=(self.dim,),
        )


class BinaryField(Field):
    """Pointwise combination of two fields on the intersection of their domains"""

    def __init__(self, lhs: Field, rhs: Field):
        super().__init__(Domain.intersection(lhs.domain, rhs.domain))
        self.lhs = lhs
        self.rhs = rhs
        self.value_shape = _combined_shape(tuple(lhs.value_shape), tuple(rhs.value_shape))

    @staticmethod
    @abstractmethod
    def _op(lhs: torch.Tensor, rhs: torch.Tensor) -> torch.Tensor:
        pass

    def _evaluate(self, points: torch.Tensor) -> torch.Tensor:
        lhs, rhs = _broadcast(self.lhs._evaluate(points), self.rhs._evaluate(points))
        return self._op(lhs, rhs)


class SumField(BinaryField):
    @staticmethod
    def _op(lhs, rhs):
        return lhs + rhs


class DifferenceField(BinaryField):
    @staticmethod
    def _op(lhs, rhs):
        return lhs - rhs


class ProductField(BinaryField):
    @staticmethod
    def _op(lhs, rhs):
        return lhs * rhs


class DifferentiableSumField(SumField, DifferentiableField):
    def differentiate(self) -> Field:
        return self.lhs.differentiate() + self.rhs.differentiate()


class DifferentiableDifferenceField(DifferenceField, DifferentiableField):
    def differentiate(self) -> Field:
        return self.lhs.differentiate() - self.rhs.differentiate()


class DifferentiableProductField(ProductField, DifferentiableField):
    def differentiate(self) -> Field:
        # product rule
        return self.lhs * self.rhs.differentiate() + self.rhs * self.lhs.differentiate()


class MappedField(Field):
    """Values of `field` passed through a vectorised function"""

    def __init__(self, field: Field, fn: Callable[[torch.Tensor], torch.Tensor]):
        super().__init__(field.domain)
        self.field = field
        self.fn = fn
        self.value_shape = tuple(field.value_shape)

    def _evaluate(self, points: torch.Tensor) -> torch.Tensor:
        return self.fn(self.field._evaluate(points))


class ComposedField(Field):
    """`field` evaluated at `transform(x)`"""

    def __init__(self, field: Field, transform):
        super().__init__(ComposedDomain(field.domain, transform))
        self.field = field
        self.transform = transform
        self.value_shape = tuple(field.value_shape)

    def _evaluate(self, points: torch.Tensor) -> torch.Tensor:
        return self.field._evaluate(self.transform.apply(points))


class DifferentiableComposedField(ComposedField, DifferentiableField):
    """
    Composition of a differentiable field with a transformation.

    The spatial gradient follows the chain rule: J_T(x)^T . grad f(T(x)).
    """

    def differentiate(self) -> Field:
        field_gradient = self.field.differentiate()
        transform = self.transform

        def gradient(points: torch.Tensor) -> torch.Tensor:
            jacobian = transform.jacobian(points)  # (N, D, D)
            outer = field_gradient._evaluate(transform.apply(points))  # (N, D)
            return torch.einsum("nij,ni->nj", jacobian, outer)

        return FunctionField(self.domain, gradient, value_shape=(self.dim,))
