"""fieldreg Common Module: domains, fields and errors"""

from .errors import FieldregError, UndefinedAtError, DimensionMismatchError
from .domain import Domain, RealSpace, BoxDomain, ImplicitDomain, IntersectionDomain
from .field import (
    Field,
    DifferentiableField,
    FunctionField,
    DifferentiableFunctionField,
    ConstantField,
)

__all__ = [
    "FieldregError",
    "UndefinedAtError",
    "DimensionMismatchError",
    "Domain",
    "RealSpace",
    "BoxDomain",
    "ImplicitDomain",
    "IntersectionDomain",
    "Field",
    "DifferentiableField",
    "FunctionField",
    "DifferentiableFunctionField",
    "ConstantField",
]
