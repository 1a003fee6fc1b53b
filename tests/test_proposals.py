"""Tests for proposal generators and the Metropolis-Hastings chain."""

import itertools
import math

import pytest
import torch

from fieldreg.sampling import (
    AcceptanceLogger,
    GaussianRandomWalkProposal,
    IdentityProposal,
    MetropolisHastings,
    MHSample,
    MixtureProposal,
    PartialProposal,
)


def gaussian_log_density(residual, stddev):
    return sum(-0.5 * (r / stddev) ** 2 - math.log(stddev * math.sqrt(2.0 * math.pi)) for r in residual)


class TestMHSample:
    def test_create_copies_parameters(self):
        values = torch.zeros(3, dtype=torch.float64)
        sample = MHSample.create(values)
        values[0] = 1.0
        assert sample.parameters[0] == 0.0
        assert sample.generated_by == "initial"
        assert len(sample) == 3

    def test_copy_is_independent(self):
        sample = MHSample.create([1.0, 2.0], "a")
        other = sample.copy(generated_by="b")
        assert other.generated_by == "b"
        assert other.parameters is not sample.parameters
        assert torch.equal(other.parameters, sample.parameters)


class TestGaussianRandomWalk:
    def test_propose_tags_and_moves(self, generator):
        proposal = GaussianRandomWalkProposal(0.5, "walk", generator)
        current = MHSample.create(torch.zeros(4))
        candidate = proposal.propose(current)
        assert candidate.generated_by == "walk"
        assert candidate.parameters.shape == (4,)
        assert not torch.equal(candidate.parameters, current.parameters)
        assert torch.equal(current.parameters, torch.zeros(4, dtype=torch.float64))

    def test_log_transition_probability(self):
        proposal = GaussianRandomWalkProposal(0.5, "walk")
        start = MHSample.create([0.0, 0.0, 0.0])
        end = MHSample.create([0.1, -0.2, 0.3])
        expected = gaussian_log_density([0.1, -0.2, 0.3], 0.5)
        assert proposal.log_transition_probability(start, end) == pytest.approx(expected)
        # symmetric
        assert proposal.log_transition_probability(end, start) == pytest.approx(expected)

    def test_length_mismatch_is_impossible(self):
        proposal = GaussianRandomWalkProposal(1.0, "walk")
        assert proposal.log_transition_probability(MHSample.create([0.0]), MHSample.create([0.0, 0.0])) == -math.inf

    def test_invalid_stddev(self):
        with pytest.raises(ValueError):
            GaussianRandomWalkProposal(0.0, "walk")


class TestPartialProposal:
    def test_only_range_changes(self, generator):
        proposal = GaussianRandomWalkProposal(1.0, "walk", generator).partial(range(2, 4))
        current = MHSample.create(torch.arange(6, dtype=torch.float64) * 0.1)
        candidate = proposal.propose(current)
        assert candidate.generated_by == "walk"
        assert torch.equal(candidate.parameters[:2], current.parameters[:2])
        assert torch.equal(candidate.parameters[4:], current.parameters[4:])
        assert not torch.equal(candidate.parameters[2:4], current.parameters[2:4])

    def test_change_outside_range_is_impossible(self):
        proposal = PartialProposal(GaussianRandomWalkProposal(1.0, "walk"), range(2, 4))
        start = MHSample.create([0.0, 0.0, 0.0, 0.0, 0.0])
        end = MHSample.create([1e-12, 0.0, 0.5, 0.0, 0.0])
        assert proposal.log_transition_probability(start, end) == -math.inf

    def test_log_probability_of_range(self):
        proposal = PartialProposal(GaussianRandomWalkProposal(0.5, "walk"), slice(1, 3))
        start = MHSample.create([7.0, 0.0, 0.0, 7.0])
        end = MHSample.create([7.0, 0.2, -0.4, 7.0])
        expected = gaussian_log_density([0.2, -0.4], 0.5)
        assert proposal.log_transition_probability(start, end) == pytest.approx(expected)

    def test_length_mismatch_is_impossible(self):
        proposal = PartialProposal(GaussianRandomWalkProposal(1.0, "walk"), range(0, 1))
        assert proposal.log_transition_probability(MHSample.create([0.0]), MHSample.create([0.0, 0.0])) == -math.inf


class TestIdentityAndMixture:
    def test_identity(self):
        proposal = IdentityProposal()
        current = MHSample.create([1.0, 2.0])
        candidate = proposal.propose(current)
        assert candidate.generated_by == "ident"
        assert torch.equal(candidate.parameters, current.parameters)
        assert proposal.log_transition_probability(current, candidate) == 0.0

    def test_mixture_log_probability(self):
        walk = GaussianRandomWalkProposal(0.5, "walk")
        mixture = MixtureProposal([(3.0, walk), (1.0, IdentityProposal())])
        start = MHSample.create([0.0, 0.0])
        end = MHSample.create([0.1, 0.1])
        expected = math.log(
            0.75 * math.exp(walk.log_transition_probability(start, end)) + 0.25 * math.exp(0.0)
        )
        assert mixture.log_transition_probability(start, end) == pytest.approx(expected)

    def test_mixture_uses_every_component(self, generator):
        walk = GaussianRandomWalkProposal(0.5, "walk", generator)
        mixture = MixtureProposal([(0.5, walk), (0.5, IdentityProposal())], generator)
        current = MHSample.create([0.0])
        tags = {mixture.propose(current).generated_by for _ in range(50)}
        assert tags == {"walk", "ident"}

    def test_mixture_validation(self):
        with pytest.raises(ValueError):
            MixtureProposal([])
        with pytest.raises(ValueError):
            MixtureProposal([(0.0, IdentityProposal())])


class TestMetropolisHastings:
    def test_accept_reject_edges(self, generator):
        chain = MetropolisHastings(IdentityProposal(), lambda s: 0.0, generator)
        assert chain.accept_reject(0.0)
        assert chain.accept_reject(3.0)
        assert not chain.accept_reject(-math.inf)
        assert not chain.accept_reject(float("nan"))

    def test_gaussian_target(self, generator):
        proposal = GaussianRandomWalkProposal(1.0, "walk", generator)

        def log_density(sample):
            return -0.5 * float(sample.parameters @ sample.parameters)

        chain = MetropolisHastings(proposal, log_density, generator)
        samples = [s.parameters[0] for s in itertools.islice(chain.iterator(MHSample.create([3.0])), 6000)]
        values = torch.stack(samples[1000:])
        assert abs(float(values.mean())) < 0.15
        assert float(values.var()) == pytest.approx(1.0, abs=0.25)
        assert 0.3 < chain.acceptance.acceptance_ratio("walk") < 0.9

    def test_impossible_candidates_are_rejected(self, generator):
        proposal = GaussianRandomWalkProposal(1.0, "walk", generator)
        chain = MetropolisHastings(proposal, lambda s: -math.inf if float(s.parameters[0]) > 0 else 0.0, generator)
        for sample in itertools.islice(chain.iterator(MHSample.create([-1.0])), 200):
            assert float(sample.parameters[0]) <= 0.0


def test_acceptance_logger():
    acceptance = AcceptanceLogger()
    acceptance.record("a", True)
    acceptance.record("a", False)
    acceptance.record("b", True)
    assert acceptance.acceptance_ratio("a") == 0.5
    assert acceptance.acceptance_ratio() == pytest.approx(2.0 / 3.0)
    assert acceptance.acceptance_ratio("missing") == 0.0
