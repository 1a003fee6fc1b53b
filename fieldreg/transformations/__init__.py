"""fieldreg Transformations Module"""

from .base import Transformation, TransformationSpace
from .rigid import TranslationTransform, TranslationSpace, RotationTransform2D, RotationSpace2D
from .affine import ScalingTransform, ScalingSpace, AffineTransform, AffineSpace
from .product import ProductTransformation, ProductTransformationSpace

__all__ = [
    "Transformation",
    "TransformationSpace",
    "TranslationTransform",
    "TranslationSpace",
    "RotationTransform2D",
    "RotationSpace2D",
    "ScalingTransform",
    "ScalingSpace",
    "AffineTransform",
    "AffineSpace",
    "ProductTransformation",
    "ProductTransformationSpace",
]
