"""fieldreg Configuration Module"""

from .config_loader import (
    load_config,
    default_config,
    make_generator,
    configure_runtime,
    build_interpolator,
    build_sampler,
    build_metric,
    build_registration,
    build_proposal,
    FieldregConfig,
    RuntimeConfig,
    InterpolationConfig,
    SamplerConfig,
    MetricConfig,
    OptimizerConfig,
    ProposalConfig,
)

__all__ = [
    "load_config",
    "default_config",
    "make_generator",
    "configure_runtime",
    "build_interpolator",
    "build_sampler",
    "build_metric",
    "build_registration",
    "build_proposal",
    "FieldregConfig",
    "RuntimeConfig",
    "InterpolationConfig",
    "SamplerConfig",
    "MetricConfig",
    "OptimizerConfig",
    "ProposalConfig",
]
