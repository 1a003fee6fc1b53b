"""
fieldreg Registration

Drives a parametric registration: each iteration evaluates metric value and
derivative on one frozen sample set, adds the regularization term, and hands
the analytic gradient to a torch optimizer.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Any

import torch
import torch.optim as optim

from .metrics import ImageMetric
from .regularizers import Regularizer, ZeroRegularizer
from ..transformations.base import Transformation
from ..utils.device import ArrayLike, as_vector
from ..utils.logging_config import Timer, get_logger

logger = get_logger("registration")

OPTIMIZERS = {
    "gradient_descent": optim.SGD,
    "adam": optim.Adam,
}


@dataclass
class RegistrationState:
    """Objective value and gradient at the parameters of one iteration"""
    iteration: int
    value: float
    parameters: torch.Tensor
    gradient: torch.Tensor


@dataclass
class RegistrationResult:
    """
    Container for registration results

    Attributes:
        transform: Transformation for the final parameters
        parameters: Final parameter vector
        final_value: Objective at the final parameters
        value_history: Objective value per iteration
        metadata: Additional metadata
    """
    transform: Transformation
    parameters: torch.Tensor
    final_value: float
    value_history: List[float] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)


class Registration:
    """
    Gradient-based parametric registration

    Args:
        metric: Image metric providing value and analytic derivative
        regularizer: Penalty on the parameters (default: none)
        regularization_weight: Weight of the penalty
        optimizer: "gradient_descent" or "adam"
        learning_rate: Step size
        number_of_iterations: Maximum iterations
        convergence_delta: Minimum objective improvement that resets patience
        convergence_patience: Iterations without improvement before stopping
    """

    def __init__(
        self,
        metric: ImageMetric,
        regularizer: Optional[Regularizer] = None,
        regularization_weight: float = 0.0,
        optimizer: str = "gradient_descent",
        learning_rate: float = 0.1,
        number_of_iterations: int = 100,
        convergence_delta: float = 1e-8,
        convergence_patience: int = 20,
    ):
        if optimizer not in OPTIMIZERS:
            raise ValueError(f"Unknown optimizer: {optimizer}. Must be one of {sorted(OPTIMIZERS)}")
        self.metric = metric
        self.regularizer = regularizer or ZeroRegularizer()
        self.regularization_weight = regularization_weight
        self.optimizer = optimizer
        self.learning_rate = learning_rate
        self.number_of_iterations = number_of_iterations
        self.convergence_delta = convergence_delta
        self.convergence_patience = convergence_patience

    def objective(self, parameters: ArrayLike):
        """Regularized objective value and gradient at `parameters`"""
        result = self.metric.value_and_derivative(parameters)
        value = result.value + self.regularization_weight * self.regularizer.value(parameters)
        gradient = result.derivative + self.regularization_weight * self.regularizer.derivative(parameters)
        return value, gradient

    def iterator(self, initial_parameters: ArrayLike) -> Iterator[RegistrationState]:
        """
        Yield one state per iteration, then take the optimizer step.

        Each state's value and gradient are evaluated at its own parameters.
        Stops after `number_of_iterations` or once the objective has not
        improved by `convergence_delta` for `convergence_patience` steps.
        """
        params = as_vector(initial_parameters).clone().requires_grad_(True)
        optimizer = OPTIMIZERS[self.optimizer]([params], lr=self.learning_rate)

        best_value = float("inf")
        no_improve_count = 0
        for iteration in range(self.number_of_iterations):
            current = params.detach().clone()
            value, gradient = self.objective(current)

            if value < best_value - self.convergence_delta:
                best_value = value
                no_improve_count = 0
            else:
                no_improve_count += 1

            if (iteration + 1) % 20 == 0 or iteration == 0:
                logger.info(f"  Iter {iteration + 1:3d}: value={value:.6f}, grad={float(gradient.norm()):.4f}")

            yield RegistrationState(iteration, value, current, gradient)

            if no_improve_count >= self.convergence_patience:
                logger.info(f"  Converged at iteration {iteration + 1}")
                break

            optimizer.zero_grad()
            params.grad = gradient.to(params.dtype)
            optimizer.step()

    def register(self, initial_parameters: Optional[ArrayLike] = None) -> RegistrationResult:
        """Run the optimization to the end"""
        space = self.metric.transformation_space
        if initial_parameters is None:
            initial_parameters = space.identity_parameters()

        logger.info(f"Registration with {type(self.metric).__name__}, {space.number_of_parameters} parameters")

        history = []
        state = None
        with Timer("Registration", logger) as timer:
            for state in self.iterator(initial_parameters):
                history.append(state.value)

        if state is None:
            parameters = as_vector(initial_parameters)
            final_value, _ = self.objective(parameters)
        else:
            parameters, final_value = state.parameters, state.value
        logger.info(f"Registration complete: final value={final_value:.6f} after {len(history)} iterations")

        return RegistrationResult(
            transform=space.transformation_for_parameters(parameters),
            parameters=parameters,
            final_value=final_value,
            value_history=history,
            metadata={"optimizer": self.optimizer, "iterations": len(history), "elapsed_seconds": timer.elapsed},
        )
