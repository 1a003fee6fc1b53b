"""
fieldreg Errors

Exception types raised by fields, images and transformations.
Both conditions signal caller misuse and are never recovered internally.
"""

from typing import Optional


class FieldregError(Exception):
    """Base class for all fieldreg errors"""


class UndefinedAtError(FieldregError, ValueError):
    """
    A field was evaluated at a point outside its domain.

    Attributes:
        points: The offending points (N, D) if known
    """

    def __init__(self, message: str, points: Optional[object] = None):
        super().__init__(message)
        self.points = points


class DimensionMismatchError(FieldregError, ValueError):
    """Vector or point dimensionality does not match what the receiver expects"""
