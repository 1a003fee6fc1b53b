"""
fieldreg Configuration Loader

Handles loading, validation, and merging of configuration files.
Supports YAML configuration with default fallbacks, and builds the
configured interpolator, sampler, metric, registration and proposal.
"""

import yaml
from pathlib import Path
from dataclasses import dataclass, field
from typing import Dict, Optional, Any, Union
from copy import deepcopy

import torch

from ..image.interpolation import BSplineInterpolator, LinearInterpolator, NearestNeighborInterpolator
from ..numerics.samplers import GridSampler, RandomGridSampler, UniformSampler
from ..registration.metrics import MeanHuberLossMetric, MeanSquaresMetric
from ..registration.registration import Registration
from ..sampling.proposals import GaussianRandomWalkProposal
from ..utils.device import get_device
from ..utils.logging_config import get_logger, setup_logging

logger = get_logger("config")

# Path to default config
DEFAULT_CONFIG_PATH = Path(__file__).parent / "default_config.yaml"


@dataclass
class RuntimeConfig:
    """Device, random seed and logging"""
    device: str = "cpu"
    seed: Optional[int] = 42
    log_level: str = "INFO"


@dataclass
class InterpolationConfig:
    """Interpolation kernel configuration"""
    kernel: str = "linear"
    bspline_degree: int = 3


@dataclass
class SamplerConfig:
    """Monte Carlo sampler configuration"""
    kind: str = "uniform"
    number_of_points: int = 1000


@dataclass
class MetricConfig:
    """Image metric configuration"""
    loss: str = "mean_squares"
    huber_delta: float = 1.345
    chunk_size: Optional[int] = None


@dataclass
class ConvergenceConfig:
    """Convergence criteria configuration"""
    min_delta: float = 1e-8
    patience: int = 20


@dataclass
class OptimizerConfig:
    """Registration optimizer configuration"""
    name: str = "gradient_descent"
    learning_rate: float = 0.1
    number_of_iterations: int = 100
    regularization_weight: float = 0.0
    convergence: ConvergenceConfig = field(default_factory=ConvergenceConfig)


@dataclass
class ProposalConfig:
    """Random walk proposal configuration"""
    stddev: float = 0.1
    tag: str = "random-walk"


@dataclass
class FieldregConfig:
    """Complete configuration"""
    runtime: RuntimeConfig = field(default_factory=RuntimeConfig)
    interpolation: InterpolationConfig = field(default_factory=InterpolationConfig)
    sampler: SamplerConfig = field(default_factory=SamplerConfig)
    metric: MetricConfig = field(default_factory=MetricConfig)
    optimizer: OptimizerConfig = field(default_factory=OptimizerConfig)
    proposal: ProposalConfig = field(default_factory=ProposalConfig)


def _deep_merge(base: Dict, override: Dict) -> Dict:
    """
    Deep merge two dictionaries, with override taking precedence

    Args:
        base: Base dictionary
        override: Override dictionary

    Returns:
        Merged dictionary
    """
    result = deepcopy(base)

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = deepcopy(value)

    return result


def _dict_to_dataclass(data: Dict, cls: type) -> Any:
    """
    Convert dictionary to dataclass instance

    Args:
        data: Dictionary with configuration values
        cls: Dataclass type

    Returns:
        Dataclass instance
    """
    if not hasattr(cls, "__dataclass_fields__"):
        return data

    field_values = {}
    for field_name, field_info in cls.__dataclass_fields__.items():
        if field_name in data:
            value = data[field_name]
            # Recursively convert nested dataclasses
            if hasattr(field_info.type, "__dataclass_fields__") and isinstance(value, dict):
                value = _dict_to_dataclass(value, field_info.type)
            field_values[field_name] = value

    unknown = set(data) - set(cls.__dataclass_fields__)
    if unknown:
        logger.warning(f"Ignoring unknown {cls.__name__} keys: {sorted(unknown)}")

    return cls(**field_values)


def load_default_config() -> Dict:
    """Load the default configuration from YAML file"""
    if DEFAULT_CONFIG_PATH.exists():
        with open(DEFAULT_CONFIG_PATH, "r") as f:
            return yaml.safe_load(f) or {}
    else:
        logger.warning(f"Default config not found at {DEFAULT_CONFIG_PATH}")
        return {}


def default_config() -> FieldregConfig:
    """
    Get the default configuration

    Returns:
        FieldregConfig with default values
    """
    return _dict_to_dataclass(load_default_config(), FieldregConfig)


def load_config(
    config_path: Optional[Union[str, Path]] = None,
    overrides: Optional[Dict] = None
) -> FieldregConfig:
    """
    Load configuration

    Args:
        config_path: Optional path to user configuration YAML
        overrides: Optional dictionary of override values

    Returns:
        FieldregConfig instance
    """
    config_dict = load_default_config()

    if config_path:
        config_path = Path(config_path)
        if config_path.exists():
            logger.info(f"Loading configuration from: {config_path}")
            with open(config_path, "r") as f:
                user_config = yaml.safe_load(f) or {}
            config_dict = _deep_merge(config_dict, user_config)
        else:
            logger.warning(f"Config file not found: {config_path}")

    if overrides:
        config_dict = _deep_merge(config_dict, overrides)

    config = _dict_to_dataclass(config_dict, FieldregConfig)

    _validate_config(config)

    return config


def _validate_config(config: FieldregConfig):
    """
    Validate configuration

    Args:
        config: Configuration to validate

    Raises:
        ValueError: If configuration is invalid
    """
    valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    if config.runtime.log_level.upper() not in valid_levels:
        raise ValueError(f"Invalid log level: {config.runtime.log_level}. Must be one of {valid_levels}")

    valid_kernels = ["nearest", "linear", "bspline"]
    if config.interpolation.kernel.lower() not in valid_kernels:
        raise ValueError(f"Invalid interpolation kernel: {config.interpolation.kernel}. Must be one of {valid_kernels}")
    if config.interpolation.bspline_degree not in (1, 2, 3):
        raise ValueError(f"Invalid B-spline degree: {config.interpolation.bspline_degree}. Must be 1, 2 or 3")

    valid_samplers = ["grid", "uniform", "random_grid"]
    if config.sampler.kind.lower() not in valid_samplers:
        raise ValueError(f"Invalid sampler: {config.sampler.kind}. Must be one of {valid_samplers}")
    if config.sampler.number_of_points < 1:
        raise ValueError(f"Sampler number_of_points must be positive, got {config.sampler.number_of_points}")

    valid_losses = ["mean_squares", "huber"]
    if config.metric.loss.lower() not in valid_losses:
        raise ValueError(f"Invalid metric loss: {config.metric.loss}. Must be one of {valid_losses}")
    if config.metric.chunk_size is not None and config.metric.chunk_size < 1:
        raise ValueError(f"Metric chunk_size must be positive, got {config.metric.chunk_size}")

    valid_optimizers = ["gradient_descent", "adam"]
    if config.optimizer.name.lower() not in valid_optimizers:
        raise ValueError(f"Invalid optimizer: {config.optimizer.name}. Must be one of {valid_optimizers}")

    if config.proposal.stddev <= 0:
        raise ValueError(f"Proposal stddev must be positive, got {config.proposal.stddev}")

    logger.debug("Configuration validated successfully")


def make_generator(config: FieldregConfig) -> Optional[torch.Generator]:
    """Seeded random source, or None for torch's global generator"""
    if config.runtime.seed is None:
        return None
    return torch.Generator().manual_seed(int(config.runtime.seed))


def configure_runtime(config: FieldregConfig):
    """
    Apply the runtime section: logging level, device and random source

    The device is resolved and returned, not applied. Samplers, images and
    transformations build their tensors on the CPU; a caller that wants
    another device moves the images and sample points there itself.

    Returns:
        (device, generator)
    """
    setup_logging(config.runtime.log_level)
    device = get_device(config.runtime.device, verbose=True)
    return device, make_generator(config)


def build_interpolator(config: FieldregConfig):
    kernel = config.interpolation.kernel.lower()
    if kernel == "nearest":
        return NearestNeighborInterpolator()
    if kernel == "linear":
        return LinearInterpolator()
    return BSplineInterpolator(config.interpolation.bspline_degree)


def build_sampler(config: FieldregConfig, domain, generator: Optional[torch.Generator] = None):
    """
    Args:
        config: Configuration
        domain: DiscreteImageDomain to sample from
        generator: Random source for stochastic samplers
    """
    kind = config.sampler.kind.lower()
    if kind == "grid":
        return GridSampler(domain)
    if kind == "random_grid":
        return RandomGridSampler(domain, config.sampler.number_of_points, generator)
    return UniformSampler(domain.bounding_box(), config.sampler.number_of_points, generator)


def build_metric(config: FieldregConfig, fixed_image, moving_image, transformation_space, sampler):
    if config.metric.loss.lower() == "huber":
        return MeanHuberLossMetric(
            fixed_image, moving_image, transformation_space, sampler,
            delta=config.metric.huber_delta, chunk_size=config.metric.chunk_size,
        )
    return MeanSquaresMetric(
        fixed_image, moving_image, transformation_space, sampler,
        chunk_size=config.metric.chunk_size,
    )


def build_registration(config: FieldregConfig, metric, regularizer=None):
    opt = config.optimizer
    return Registration(
        metric,
        regularizer=regularizer,
        regularization_weight=opt.regularization_weight,
        optimizer=opt.name.lower(),
        learning_rate=opt.learning_rate,
        number_of_iterations=opt.number_of_iterations,
        convergence_delta=opt.convergence.min_delta,
        convergence_patience=opt.convergence.patience,
    )


def build_proposal(config: FieldregConfig, generator: Optional[torch.Generator] = None):
    return GaussianRandomWalkProposal(config.proposal.stddev, config.proposal.tag, generator)
