"""fieldreg Numerics Module: samplers for Monte Carlo integration"""

from .samplers import (
    Sampler,
    GridSampler,
    UniformSampler,
    RandomGridSampler,
    FixedPointsSampler,
    SampleOnceSampler,
)

__all__ = [
    "Sampler",
    "GridSampler",
    "UniformSampler",
    "RandomGridSampler",
    "FixedPointsSampler",
    "SampleOnceSampler",
]
