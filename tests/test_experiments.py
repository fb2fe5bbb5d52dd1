"""Tests of numerical experiments."""

import numpy as np
import pytest

from pysurplus import (
    Experiment, ExperimentResults, Integration, LogitSurplus, MixedLogitExperiment, ProbitSurplus,
    PureCharacteristicsExperiment, SurplusInversionExperiment, build_characteristic_shocks, build_shocks,
    compute_logit_utilities, exceptions
)


def test_mixed_logit() -> None:
    """Test that utilities that generated random coefficients logit shares are recovered."""
    experiment = MixedLogitExperiment(J=3, M=2, N=500, seed=0)
    results = experiment.run()
    assert isinstance(results, ExperimentResults)
    assert results.converged
    assert results.residual_norm < 1e-5
    assert results.table.shape == (3, 3)
    assert "Mixed Logit" in str(results)
    assert str(experiment)


def test_mixed_logit_reproducibility() -> None:
    """Test that seeded experiments generate identical models."""
    first = MixedLogitExperiment(J=3, M=2, N=100, seed=1)
    second = MixedLogitExperiment(J=3, M=2, N=100, seed=1)
    np.testing.assert_array_equal(first.shares, second.shares)
    np.testing.assert_array_equal(first.true_utilities, second.true_utilities)


def test_pure_characteristics() -> None:
    """Test that utilities that generated pure characteristics shares are approximately recovered by the simplex
    routine.
    """
    experiment = PureCharacteristicsExperiment(J=3, M=3, N=1000, quadrature=Integration('product', 10), seed=0)
    assert experiment.surplus.shocks.S == 10 * 1000
    assert not experiment.surplus.smooth
    results = experiment.run()
    assert np.isfinite(results.table[:, 0]).all()
    assert results.residual_norm < 0.25


def test_known_logit_surplus() -> None:
    """Test that the exponential criterion recovers known logit utilities with default shares."""
    surplus = LogitSurplus(4)
    shares = np.arange(1, 5) / 10
    experiment = SurplusInversionExperiment(surplus, true_utilities=compute_logit_utilities(shares))
    np.testing.assert_allclose(experiment.shares, shares, rtol=0, atol=1e-15)
    results = experiment.run()
    assert results.residual_norm < 1e-5
    assert "Surplus Inversion" in str(results)


def test_unknown_utilities() -> None:
    """Test that experiments without true utilities still normalize expected surplus to zero."""
    experiment = SurplusInversionExperiment(ProbitSurplus(3), title="Probit")
    results = experiment.run()
    assert np.isnan(results.residual_norm)
    assert np.isnan(results.table[:, 1:]).all()
    np.testing.assert_allclose(results.inversion_results.surplus, 0, rtol=0, atol=1e-7)
    np.testing.assert_allclose(results.inversion_results.probabilities, [1 / 6, 2 / 6, 3 / 6], rtol=0, atol=1e-7)


def test_invalid_experiments() -> None:
    """Test that invalid experiment configurations are rejected."""
    with pytest.raises(ValueError):
        MixedLogitExperiment(J=0)
    with pytest.raises(ValueError):
        PureCharacteristicsExperiment(M=0)
    with pytest.raises(exceptions.InvalidInputError):
        SurplusInversionExperiment(LogitSurplus(3), true_utilities=[0, 0])


@pytest.mark.parametrize(['coarse', 'fine'], [
    pytest.param(
        Integration('monte_carlo', 100, {'seed': 1}), Integration('monte_carlo', 10**4, {'seed': 2}), id="Monte Carlo"
    ),
    pytest.param(Integration('product', 2), Integration('product', 7), id="product rule"),
])
def test_integration_accuracy(coarse: Integration, fine: Integration) -> None:
    """Test that utilities recovered from mixed logit shares get closer to the truth as tastes are integrated more
    accurately.
    """
    state = np.random.RandomState(0)
    characteristics = state.normal(size=(2, 3))
    true_utilities = characteristics.T @ state.uniform(size=2)
    build_surplus = lambda i: LogitSurplus(
        3, build_characteristic_shocks(characteristics, build_shocks(i, 2)), outside_option=True
    )
    shares = build_surplus(Integration('product', 30)).compute_probabilities(true_utilities)
    residual_norms = []
    for integration in [coarse, fine]:
        results = Experiment(build_surplus(integration), shares, 'linear', true_utilities).run()
        assert results.converged
        residual_norms.append(results.residual_norm)
    assert residual_norms[1] < residual_norms[0]
