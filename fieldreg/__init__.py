"""
fieldreg - Field Registration

Image registration and model fitting toolkit built on continuous fields:
- Domains and fields with pointwise arithmetic and composition
- Discrete images with nearest, linear and B-spline interpolation
- Parametric transformation spaces with analytic parameter Jacobians
- Monte Carlo samplers over image domains
- Pointwise-loss image metrics with analytic gradients
- Metropolis-Hastings proposal generators and chain driver
"""

__version__ = "0.3.0"

from .config import load_config, default_config
from .common import (
    Domain,
    BoxDomain,
    RealSpace,
    Field,
    DifferentiableField,
    FunctionField,
    DifferentiableFunctionField,
    UndefinedAtError,
    DimensionMismatchError,
)
from .image import (
    DiscreteImageDomain,
    DiscreteImage,
    discretize,
    NearestNeighborInterpolator,
    LinearInterpolator,
    BSplineInterpolator,
)
from .transformations import (
    TranslationSpace,
    RotationSpace2D,
    ScalingSpace,
    AffineSpace,
    ProductTransformationSpace,
)
from .numerics import GridSampler, UniformSampler, RandomGridSampler, FixedPointsSampler, SampleOnceSampler
from .registration import MeanSquaresMetric, MeanHuberLossMetric, Registration
from .sampling import (
    MHSample,
    GaussianRandomWalkProposal,
    PartialProposal,
    IdentityProposal,
    MixtureProposal,
    MetropolisHastings,
)

__all__ = [
    # Configuration
    "load_config",
    "default_config",
    # Fields
    "Domain",
    "BoxDomain",
    "RealSpace",
    "Field",
    "DifferentiableField",
    "FunctionField",
    "DifferentiableFunctionField",
    "UndefinedAtError",
    "DimensionMismatchError",
    # Images
    "DiscreteImageDomain",
    "DiscreteImage",
    "discretize",
    "NearestNeighborInterpolator",
    "LinearInterpolator",
    "BSplineInterpolator",
    # Transformations
    "TranslationSpace",
    "RotationSpace2D",
    "ScalingSpace",
    "AffineSpace",
    "ProductTransformationSpace",
    # Samplers
    "GridSampler",
    "UniformSampler",
    "RandomGridSampler",
    "FixedPointsSampler",
    "SampleOnceSampler",
    # Registration
    "MeanSquaresMetric",
    "MeanHuberLossMetric",
    "Registration",
    # MCMC
    "MHSample",
    "GaussianRandomWalkProposal",
    "PartialProposal",
    "IdentityProposal",
    "MixtureProposal",
    "MetropolisHastings",
]
