"""Tests for the gradient-based registration driver."""

import pytest
import torch

from fieldreg.common import BoxDomain, DifferentiableFunctionField
from fieldreg.image import DiscreteImageDomain
from fieldreg.numerics import GridSampler
from fieldreg.registration import L2Regularizer, MeanSquaresMetric, Registration, ZeroRegularizer
from fieldreg.transformations import TranslationSpace


def bump(center):
    domain = BoxDomain([-5.0], [5.0])
    return DifferentiableFunctionField(
        domain,
        lambda p: torch.exp(-(p[:, 0] - center) ** 2),
        lambda p: (-2.0 * (p - center)) * torch.exp(-(p - center) ** 2),
    )


@pytest.fixture
def shifted_bumps_metric():
    sampler = GridSampler(DiscreteImageDomain([-2.0], [0.05], [81]))
    # warped moving image matches the fixed image at translation -0.3
    return MeanSquaresMetric(bump(0.3), bump(0.0), TranslationSpace(1), sampler)


def test_gradient_descent_recovers_translation(shifted_bumps_metric):
    registration = Registration(
        shifted_bumps_metric,
        learning_rate=1.0,
        number_of_iterations=200,
        convergence_delta=1e-12,
        convergence_patience=5,
    )
    result = registration.register()
    assert float(result.parameters[0]) == pytest.approx(-0.3, abs=1e-3)
    assert result.final_value < 1e-6
    assert result.value_history[0] > result.value_history[-1]
    assert result.metadata["iterations"] == len(result.value_history)
    assert torch.allclose(result.transform([0.0]), torch.tensor([float(result.parameters[0])], dtype=torch.float64))


def test_adam_recovers_translation(shifted_bumps_metric):
    registration = Registration(
        shifted_bumps_metric, optimizer="adam", learning_rate=0.02, number_of_iterations=300
    )
    result = registration.register([0.0])
    assert float(result.parameters[0]) == pytest.approx(-0.3, abs=0.05)


def test_iterator_yields_states(shifted_bumps_metric):
    registration = Registration(shifted_bumps_metric, learning_rate=1.0, number_of_iterations=5)
    states = list(registration.iterator([0.0]))
    assert [s.iteration for s in states] == [0, 1, 2, 3, 4]
    assert states[0].gradient.shape == (1,)
    assert float(states[0].parameters[0]) == 0.0
    assert float(states[1].parameters[0]) < 0.0


def test_state_value_belongs_to_its_parameters(shifted_bumps_metric):
    registration = Registration(shifted_bumps_metric, learning_rate=1.0, number_of_iterations=4)
    for state in registration.iterator([0.1]):
        value, gradient = registration.objective(state.parameters)
        assert state.value == pytest.approx(value)
        assert torch.allclose(state.gradient, gradient)


def test_final_value_matches_final_parameters(shifted_bumps_metric):
    result = Registration(shifted_bumps_metric, learning_rate=1.0, number_of_iterations=10).register()
    assert result.final_value == result.value_history[-1]
    assert result.final_value == pytest.approx(shifted_bumps_metric.value(result.parameters))


def test_regularization_pulls_towards_zero(shifted_bumps_metric):
    registration = Registration(
        shifted_bumps_metric,
        regularizer=L2Regularizer(),
        regularization_weight=1.0,
        learning_rate=0.2,
        number_of_iterations=300,
        convergence_delta=1e-12,
        convergence_patience=5,
    )
    t = float(registration.register().parameters[0])
    assert -0.3 < t < -0.02


def test_objective_adds_weighted_penalty(shifted_bumps_metric):
    registration = Registration(shifted_bumps_metric, regularizer=L2Regularizer(), regularization_weight=0.5)
    value, gradient = registration.objective([0.2])
    metric = shifted_bumps_metric.value_and_derivative([0.2])
    assert value == pytest.approx(metric.value + 0.5 * 0.04)
    assert torch.allclose(gradient, metric.derivative + 0.5 * 0.4)


def test_regularizers():
    assert L2Regularizer().value([3.0, 4.0]) == pytest.approx(25.0)
    assert L2Regularizer().derivative([3.0, 4.0]).tolist() == [6.0, 8.0]
    assert ZeroRegularizer().value([3.0]) == 0.0
    assert ZeroRegularizer().derivative([3.0, 4.0]).tolist() == [0.0, 0.0]


def test_unknown_optimizer(shifted_bumps_metric):
    with pytest.raises(ValueError):
        Registration(shifted_bumps_metric, optimizer="lbfgs")
