"""Tests for configuration loading and the component builders."""

import logging

import pytest
import torch

from fieldreg.common import BoxDomain, DifferentiableFunctionField
from fieldreg.config import (
    FieldregConfig,
    build_interpolator,
    build_metric,
    build_proposal,
    build_registration,
    build_sampler,
    configure_runtime,
    default_config,
    load_config,
    make_generator,
)
from fieldreg.image import (
    BSplineInterpolator,
    DiscreteImage,
    DiscreteImageDomain,
    LinearInterpolator,
    NearestNeighborInterpolator,
)
from fieldreg.numerics import GridSampler, RandomGridSampler, UniformSampler
from fieldreg.registration import MeanHuberLossMetric, MeanSquaresMetric
from fieldreg.sampling import GaussianRandomWalkProposal
from fieldreg.transformations import TranslationSpace
from fieldreg.utils import Timer, get_logger, setup_logging


@pytest.fixture
def grid():
    return DiscreteImageDomain([0.0], [0.1], [11])


@pytest.fixture
def image():
    return DifferentiableFunctionField(BoxDomain([0.0], [1.0]), lambda p: p[:, 0], lambda p: torch.ones_like(p))


class TestLoading:
    def test_defaults(self):
        config = default_config()
        assert isinstance(config, FieldregConfig)
        assert config.runtime.seed == 42
        assert config.interpolation.kernel == "linear"
        assert config.sampler.kind == "uniform"
        assert config.sampler.number_of_points == 1000
        assert config.metric.chunk_size is None
        assert config.metric.huber_delta == pytest.approx(1.345)
        assert config.optimizer.convergence.patience == 20
        assert config.optimizer.convergence.min_delta == pytest.approx(1e-8)

    def test_overrides_are_deep_merged(self):
        config = load_config(overrides={"sampler": {"kind": "grid"}, "optimizer": {"convergence": {"patience": 3}}})
        assert config.sampler.kind == "grid"
        assert config.sampler.number_of_points == 1000
        assert config.optimizer.convergence.patience == 3
        assert config.optimizer.convergence.min_delta == pytest.approx(1e-8)

    def test_user_file(self, tmp_path):
        path = tmp_path / "user.yaml"
        path.write_text("interpolation:\n  kernel: bspline\n  bspline_degree: 2\nproposal:\n  stddev: 0.5\n")
        config = load_config(path)
        assert config.interpolation.kernel == "bspline"
        assert config.interpolation.bspline_degree == 2
        assert config.proposal.stddev == 0.5
        assert config.proposal.tag == "random-walk"

    def test_overrides_win_over_user_file(self, tmp_path):
        path = tmp_path / "user.yaml"
        path.write_text("sampler:\n  number_of_points: 50\n")
        config = load_config(path, overrides={"sampler": {"number_of_points": 7}})
        assert config.sampler.number_of_points == 7

    def test_missing_file_falls_back_to_defaults(self, tmp_path):
        config = load_config(tmp_path / "missing.yaml")
        assert config.sampler.kind == "uniform"

    def test_unknown_keys_are_ignored(self):
        config = load_config(overrides={"sampler": {"kind": "grid", "shuffle": True}})
        assert config.sampler.kind == "grid"
        assert not hasattr(config.sampler, "shuffle")

    @pytest.mark.parametrize(
        "overrides",
        [
            {"runtime": {"log_level": "VERBOSE"}},
            {"interpolation": {"kernel": "cubic"}},
            {"interpolation": {"bspline_degree": 5}},
            {"sampler": {"kind": "sobol"}},
            {"sampler": {"number_of_points": 0}},
            {"metric": {"loss": "mutual_information"}},
            {"metric": {"chunk_size": 0}},
            {"optimizer": {"name": "lbfgs"}},
            {"proposal": {"stddev": 0.0}},
        ],
    )
    def test_invalid_values(self, overrides):
        with pytest.raises(ValueError):
            load_config(overrides=overrides)


class TestBuilders:
    @pytest.mark.parametrize(
        "kernel, expected",
        [("nearest", NearestNeighborInterpolator), ("linear", LinearInterpolator), ("bspline", BSplineInterpolator)],
    )
    def test_interpolator(self, kernel, expected):
        interpolator = build_interpolator(load_config(overrides={"interpolation": {"kernel": kernel}}))
        assert isinstance(interpolator, expected)

    def test_bspline_degree(self):
        config = load_config(overrides={"interpolation": {"kernel": "bspline", "bspline_degree": 2}})
        assert build_interpolator(config).degree == 2

    @pytest.mark.parametrize(
        "kind, expected", [("grid", GridSampler), ("uniform", UniformSampler), ("random_grid", RandomGridSampler)]
    )
    def test_sampler(self, kind, expected, grid):
        config = load_config(overrides={"sampler": {"kind": kind, "number_of_points": 25}})
        sampler = build_sampler(config, grid, make_generator(config))
        assert isinstance(sampler, expected)
        points, _ = sampler.sample()
        assert points.shape == ((11, 1) if kind == "grid" else (25, 1))

    def test_metric(self, image, grid):
        config = load_config(overrides={"metric": {"loss": "huber", "huber_delta": 0.5, "chunk_size": 4}})
        metric = build_metric(config, image, image, TranslationSpace(1), GridSampler(grid))
        assert isinstance(metric, MeanHuberLossMetric)
        assert metric.delta == 0.5
        assert metric.chunk_size == 4

        squares = build_metric(default_config(), image, image, TranslationSpace(1), GridSampler(grid))
        assert isinstance(squares, MeanSquaresMetric)

    def test_nearest_kernel_cannot_drive_a_metric(self, image, grid):
        config = load_config(overrides={"interpolation": {"kernel": "nearest"}})
        discrete = DiscreteImage.from_function(grid, lambda p: p[:, 0])
        moving = build_interpolator(config).interpolate(discrete)
        with pytest.raises(TypeError):
            build_metric(config, image, moving, TranslationSpace(1), GridSampler(grid))

    def test_registration(self, image, grid):
        config = load_config(overrides={"optimizer": {"name": "adam", "learning_rate": 0.01}})
        metric = build_metric(config, image, image, TranslationSpace(1), GridSampler(grid))
        registration = build_registration(config, metric)
        assert registration.optimizer == "adam"
        assert registration.learning_rate == 0.01
        assert registration.convergence_patience == 20

    def test_proposal(self):
        config = load_config(overrides={"proposal": {"stddev": 0.25, "tag": "step"}})
        proposal = build_proposal(config, make_generator(config))
        assert isinstance(proposal, GaussianRandomWalkProposal)
        assert proposal.stddev == 0.25
        assert proposal.tag == "step"


class TestRuntime:
    def test_seeded_generator_is_reproducible(self):
        config = default_config()
        first = torch.rand(3, generator=make_generator(config))
        second = torch.rand(3, generator=make_generator(config))
        assert torch.equal(first, second)

    def test_no_seed(self):
        assert make_generator(load_config(overrides={"runtime": {"seed": None}})) is None

    def test_configure_runtime(self):
        device, generator = configure_runtime(load_config(overrides={"runtime": {"log_level": "WARNING"}}))
        assert device.type == "cpu"
        assert generator is not None
        assert logging.getLogger("fieldreg").level == logging.WARNING

    def test_runtime_device_is_returned_not_applied(self, grid):
        config = load_config(overrides={"runtime": {"device": "cpu", "log_level": "WARNING"}})
        device, generator = configure_runtime(config)
        assert device == torch.device("cpu")
        points, _ = build_sampler(config, grid, generator).sample()
        assert points.device.type == "cpu"


class TestLogging:
    def test_file_logging(self, tmp_path):
        log_file = tmp_path / "logs" / "run.log"
        setup_logging("DEBUG", log_file=log_file)
        get_logger("test").info("hello from the test")
        for handler in logging.getLogger("fieldreg").handlers:
            handler.flush()
        assert "hello from the test" in log_file.read_text()
        setup_logging("INFO")

    def test_timer_records_elapsed(self):
        with Timer("section") as timer:
            sum(range(1000))
        assert timer.elapsed >= 0.0
