"""Tests for point samplers."""

import pytest
import torch

from fieldreg.common import BoxDomain
from fieldreg.image import DiscreteImageDomain
from fieldreg.numerics import (
    FixedPointsSampler,
    GridSampler,
    RandomGridSampler,
    SampleOnceSampler,
    UniformSampler,
)


@pytest.fixture
def grid():
    return DiscreteImageDomain([0.0, 0.0], [0.5, 0.25], [5, 9])


def test_grid_sampler_returns_every_point(grid):
    sampler = GridSampler(grid)
    points, weights = sampler.sample()
    assert sampler.number_of_points == 45
    assert torch.equal(points, grid.points())
    assert sampler.volume_of_sample_region == pytest.approx(0.5 * 0.25 * 45)
    assert torch.allclose(weights.sum(), torch.tensor(sampler.volume_of_sample_region, dtype=torch.float64))


def test_uniform_sampler_stays_in_box(generator):
    box = BoxDomain([-1.0, 2.0, 0.0], [1.0, 3.0, 0.5])
    sampler = UniformSampler(box, 500, generator)
    points, weights = sampler.sample()
    assert points.shape == (500, 3)
    assert weights.shape == (500,)
    assert bool(box.contains(points).all())
    assert sampler.volume_of_sample_region == pytest.approx(1.0)


def test_uniform_sampler_draws_fresh_points(generator):
    sampler = UniformSampler(BoxDomain([0.0], [1.0]), 10, generator)
    first, _ = sampler.sample()
    second, _ = sampler.sample()
    assert not torch.equal(first, second)


def test_uniform_sampler_is_reproducible():
    box = BoxDomain([0.0, 0.0], [1.0, 1.0])
    first, _ = UniformSampler(box, 20, torch.Generator().manual_seed(7)).sample()
    second, _ = UniformSampler(box, 20, torch.Generator().manual_seed(7)).sample()
    assert torch.equal(first, second)


def test_random_grid_sampler_hits_grid_points(grid, generator):
    sampler = RandomGridSampler(grid, 100, generator)
    points, _ = sampler.sample()
    assert points.shape == (100, 2)
    assert bool(grid.contains(points).all())


def test_fixed_points_sampler():
    sampler = FixedPointsSampler([0.1, 0.3, 0.7], volume=1.0)
    points, weights = sampler.sample()
    assert points.shape == (3, 1)
    assert sampler.dim == 1
    assert torch.allclose(weights, torch.full((3,), 1.0 / 3.0, dtype=torch.float64))


def test_sample_once_freezes_draw(generator):
    sampler = SampleOnceSampler(UniformSampler(BoxDomain([0.0, 0.0], [1.0, 1.0]), 25, generator))
    first, _ = sampler.sample()
    second, _ = sampler.sample()
    assert first is second
    assert sampler.number_of_points == 25
    assert sampler.volume_of_sample_region == pytest.approx(1.0)


def test_invalid_number_of_points():
    with pytest.raises(ValueError):
        UniformSampler(BoxDomain([0.0], [1.0]), 0)
