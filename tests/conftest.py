"""Shared fixtures for fieldreg tests."""

import pytest
import torch

from fieldreg.common import BoxDomain, DifferentiableFunctionField
from fieldreg.image import DiscreteImage, DiscreteImageDomain


@pytest.fixture
def generator():
    """Seeded random source so stochastic tests are reproducible."""
    return torch.Generator().manual_seed(1234)


@pytest.fixture
def sine_image_1d():
    """sin(x) on the closed interval [-4, 6] with its analytic gradient."""
    return DifferentiableFunctionField(
        BoxDomain([-4.0], [6.0]),
        lambda p: torch.sin(p[:, 0]),
        lambda p: torch.cos(p),
    )


@pytest.fixture
def gaussian_image_2d():
    """Anisotropic gaussian bump on [-5, 5]^2 with its analytic gradient."""

    def value(p):
        return torch.exp(-(p[:, 0] ** 2 + 2.0 * p[:, 1] ** 2))

    def gradient(p):
        v = value(p)
        return torch.stack([-2.0 * p[:, 0] * v, -4.0 * p[:, 1] * v], dim=1)

    return DifferentiableFunctionField(BoxDomain([-5.0, -5.0], [5.0, 5.0]), value, gradient)


@pytest.fixture
def ramp_image_2d():
    """Discrete image of f(x, y) = 2x + 3y on a 6 x 5 grid."""
    domain = DiscreteImageDomain([0.0, 0.0], [0.5, 1.0], [6, 5])
    return DiscreteImage.from_function(domain, lambda p: 2.0 * p[:, 0] + 3.0 * p[:, 1])
