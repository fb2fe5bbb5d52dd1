"""Tests of expected surplus estimators."""

from typing import Any, Callable

import numpy as np
import pytest
import scipy.special
import scipy.stats

from pysurplus import (
    Integration, LogitSurplus, ProbitSurplus, Shocks, SimulatedSurplus, Surplus, build_characteristic_shocks,
    build_shocks, compute_logit_utilities, exceptions, options
)
from pysurplus.utilities.basics import compute_finite_differences


def build_mixed_logit_surplus() -> Surplus:
    """Build a random coefficients logit estimator with an outside option."""
    state = np.random.RandomState(0)
    tastes = build_shocks(Integration('monte_carlo', 100, {'seed': 0}), 2)
    return LogitSurplus(3, build_characteristic_shocks(state.normal(size=(2, 3)), tastes), outside_option=True)


SMOOTH_SURPLUS_BUILDERS = [
    pytest.param(lambda: LogitSurplus(3), id="logit"),
    pytest.param(lambda: LogitSurplus(3, outside_option=True), id="logit with an outside option"),
    pytest.param(build_mixed_logit_surplus, id="mixed logit"),
    pytest.param(lambda: ProbitSurplus(3), id="probit"),
]


@pytest.mark.parametrize('utilities', [
    pytest.param([0, 0, 0, 0], id="zeros"),
    pytest.param([1, -2, 0.5, 3], id="mixed"),
    pytest.param([700, 701, 699, 700], id="large"),
])
@pytest.mark.parametrize('outside_option', [
    pytest.param(False, id="no outside option"),
    pytest.param(True, id="outside option"),
])
def test_logit_closed_form(utilities: Any, outside_option: bool) -> None:
    """Test that the logit estimator without heterogeneity reproduces the log-sum formula, softmax probabilities, and
    the softmax Jacobian, even for utilities that would overflow if exponentiated directly.
    """
    utilities = np.array(utilities, np.float64)
    surplus = LogitSurplus(4, outside_option=outside_option)
    augmented = np.r_[utilities, 0] if outside_option else utilities
    expected_probabilities = scipy.special.softmax(augmented)[:4]
    np.testing.assert_allclose(
        surplus.compute_surplus(utilities), np.euler_gamma + scipy.special.logsumexp(augmented), rtol=1e-14, atol=0
    )
    np.testing.assert_allclose(surplus.compute_probabilities(utilities), expected_probabilities, rtol=0, atol=1e-14)
    np.testing.assert_allclose(
        surplus.compute_hessian(utilities),
        np.diag(expected_probabilities) - np.outer(expected_probabilities, expected_probabilities),
        rtol=0, atol=1e-14
    )


def test_simulated_gumbel(gumbel_shocks: Shocks) -> None:
    """Test that the simulated maximum over type-one extreme value draws is close to the logit closed form."""
    simulated = SimulatedSurplus(gumbel_shocks)
    exact = LogitSurplus(4)
    for utilities in [np.zeros(4), np.array([0.5, -1, 0, 1])]:
        np.testing.assert_allclose(
            simulated.compute_surplus(utilities), exact.compute_surplus(utilities), rtol=0, atol=0.01
        )
        np.testing.assert_allclose(
            simulated.compute_probabilities(utilities), exact.compute_probabilities(utilities), rtol=0, atol=0.01
        )


def test_simulated_logit_inverse(gumbel_shocks: Shocks) -> None:
    """Test that expected surplus is approximately zero at the closed-form logit inverse."""
    shares = np.arange(1, 5) / 10
    surplus = SimulatedSurplus(gumbel_shocks)
    utilities = compute_logit_utilities(shares)
    np.testing.assert_allclose(surplus.compute_surplus(utilities), 0, rtol=0, atol=0.01)
    np.testing.assert_allclose(surplus.compute_probabilities(utilities), shares, rtol=0, atol=0.01)


@pytest.mark.parametrize('build_surplus', SMOOTH_SURPLUS_BUILDERS)
@pytest.mark.parametrize('utilities', [
    pytest.param([0, 0, 0], id="zeros"),
    pytest.param([0.3, -0.7, 1.1], id="mixed"),
])
def test_derivatives(build_surplus: Callable[[], Surplus], utilities: Any) -> None:
    """Test that analytic choice probabilities and Hessians of smooth estimators are close to finite differences."""
    surplus = build_surplus()
    utilities = np.array(utilities, options.dtype)
    probabilities = surplus.compute_probabilities(utilities)
    hessian = surplus.compute_hessian(utilities)
    np.testing.assert_allclose(
        probabilities, compute_finite_differences(surplus.compute_surplus, utilities), rtol=0, atol=1e-6
    )
    np.testing.assert_allclose(
        hessian, compute_finite_differences(surplus.compute_probabilities, utilities), rtol=0, atol=1e-6
    )
    np.testing.assert_allclose(hessian, hessian.T, rtol=0, atol=1e-12)
    assert np.linalg.eigvalsh(hessian).min() > -1e-10


@pytest.mark.parametrize('build_surplus', SMOOTH_SURPLUS_BUILDERS + [
    pytest.param(lambda: ProbitSurplus(3, Integration('product', 20)), id="probit with 20 nodes"),
    pytest.param(
        lambda: SimulatedSurplus(build_shocks(Integration('monte_carlo', 1000, {'seed': 0}), 3)), id="simulated"
    ),
    pytest.param(
        lambda: SimulatedSurplus(build_shocks(Integration('halton', 1000, {'seed': 0}), 3), outside_option=True),
        id="simulated with an outside option"
    ),
])
def test_monotonicity_and_convexity(build_surplus: Callable[[], Surplus]) -> None:
    """Test that expected surplus weakly increases in each utility and is convex along random segments."""
    surplus = build_surplus()
    state = np.random.RandomState(0)
    for _ in range(10):
        a = state.normal(size=3)
        b = state.normal(size=3)
        midpoint = surplus.compute_surplus((a + b) / 2)
        assert midpoint <= (surplus.compute_surplus(a) + surplus.compute_surplus(b)) / 2 + 1e-10
        for j in range(3):
            increased = a.copy()
            increased[j] += 0.5
            assert surplus.compute_surplus(increased) >= surplus.compute_surplus(a) - 1e-12
        probabilities = surplus.compute_probabilities(a)
        assert (probabilities >= 0).all()
        # quadrature rules only integrate probabilities to one up to their approximation error
        assert probabilities.sum() <= 1 + 1e-6


def test_simulated_maximum() -> None:
    """Test a small simulated maximum by hand, with and without an outside option that clips negative maxima."""
    shocks = Shocks([[-1, 2], [0.5, -3]])
    inside = SimulatedSurplus(shocks)
    outside = SimulatedSurplus(shocks, outside_option=True)
    assert not inside.smooth

    # at zero utilities, the outside alternative is never chosen
    for surplus in [inside, outside]:
        np.testing.assert_allclose(surplus.compute_surplus([0, 0]), 1.25, rtol=0, atol=1e-14)
        np.testing.assert_allclose(surplus.compute_probabilities([0, 0]), [0.5, 0.5], rtol=0, atol=1e-14)
        np.testing.assert_array_equal(surplus.compute_hessian([0, 0]), np.zeros((2, 2)))

    # at low utilities, negative maxima are clipped at zero
    np.testing.assert_allclose(inside.compute_surplus([-5, -5]), -3.75, rtol=0, atol=1e-14)
    np.testing.assert_allclose(inside.compute_probabilities([-5, -5]), [0.5, 0.5], rtol=0, atol=1e-14)
    np.testing.assert_allclose(outside.compute_surplus([-5, -5]), 0, rtol=0, atol=1e-14)
    np.testing.assert_allclose(outside.compute_probabilities([-5, -5]), [0, 0], rtol=0, atol=1e-14)
    np.testing.assert_allclose(outside.compute_surplus([-1.5, -1]), 0.5, rtol=0, atol=1e-14)
    np.testing.assert_allclose(outside.compute_probabilities([-1.5, -1]), [0, 0.5], rtol=0, atol=1e-14)


@pytest.mark.parametrize('outside_option', [
    pytest.param(False, id="no outside option"),
    pytest.param(True, id="outside option"),
])
def test_simulated_paths(outside_option: bool) -> None:
    """Test that expected surplus is the same whether or not choice frequencies are also tracked, and that ties are
    broken in favor of the outside alternative and then the first inside alternative.
    """
    shocks = build_shocks(Integration('monte_carlo', 1000, {'seed': 0}), 4)
    surplus = SimulatedSurplus(shocks, outside_option)
    utilities = np.array([0.3, -0.2, 0.0, 0.1])
    alone = surplus.compute_surplus(utilities)
    together, probabilities, _, errors = surplus._evaluate(utilities, compute_probabilities=True)
    assert not errors
    assert alone == together
    np.testing.assert_array_equal(probabilities, surplus.compute_probabilities(utilities))

    tied = SimulatedSurplus(Shocks([[1, 1, 0], [-1, -2, -1]]), outside_option)
    expected = [0.5, 0, 0] if outside_option else [0.5, 0, 0.5]
    np.testing.assert_allclose(tied.compute_probabilities([0, 0, 1]), expected, rtol=0, atol=1e-14)


def test_simulated_weights() -> None:
    """Test that quadrature weights are used when computing the expected maximum and choice frequencies."""
    shocks = Shocks([[1, 0], [0, 1], [0, 3]], [0.5, 0.25, 0.25])
    surplus = SimulatedSurplus(shocks)
    np.testing.assert_allclose(surplus.compute_surplus([0, 0]), 0.5 + 0.25 + 0.75, rtol=0, atol=1e-14)
    np.testing.assert_allclose(surplus.compute_probabilities([0, 0]), [0.5, 0.5], rtol=0, atol=1e-14)


def test_probit_closed_form() -> None:
    """Test that the probit estimator reproduces the closed-form expected maximum of two independent standard normal
    shocks, and that with one alternative, expected surplus is simply its utility.
    """
    utilities = np.array([0.4, -0.3])
    difference = (utilities[0] - utilities[1]) / np.sqrt(2)
    expected_surplus = (
        utilities[1] + (utilities[0] - utilities[1]) * scipy.stats.norm.cdf(difference) +
        np.sqrt(2) * scipy.stats.norm.pdf(difference)
    )
    expected_probability = scipy.stats.norm.cdf(difference)
    surplus = ProbitSurplus(2)
    np.testing.assert_allclose(surplus.compute_surplus(utilities), expected_surplus, rtol=0, atol=1e-10)
    np.testing.assert_allclose(
        surplus.compute_probabilities(utilities), [expected_probability, 1 - expected_probability], rtol=0, atol=1e-10
    )
    single = ProbitSurplus(1)
    np.testing.assert_allclose(single.compute_surplus([0.7]), 0.7, rtol=0, atol=1e-12)
    np.testing.assert_allclose(single.compute_probabilities([0.7]), [1], rtol=0, atol=1e-12)
    np.testing.assert_allclose(single.compute_hessian([0.7]), [[0]], rtol=0, atol=1e-12)


def test_probit_simulation(normal_shocks: Shocks) -> None:
    """Test that the probit estimator is close to a simulated maximum over standard normal draws."""
    utilities = np.array([0.2, -0.5, 0.4])
    simulated = SimulatedSurplus(normal_shocks)
    probit = ProbitSurplus(3)
    np.testing.assert_allclose(probit.compute_surplus(utilities), simulated.compute_surplus(utilities), atol=0.01)
    np.testing.assert_allclose(
        probit.compute_probabilities(utilities), simulated.compute_probabilities(utilities), rtol=0, atol=0.01
    )
    np.testing.assert_allclose(probit.compute_probabilities(utilities).sum(), 1, rtol=0, atol=1e-10)


def test_probit_quadrature_error() -> None:
    """Test that probit probabilities sum to one up to quadrature error, which shrinks with the number of nodes."""
    state = np.random.RandomState(0)
    coarse = ProbitSurplus(3, Integration('product', 20))
    fine = ProbitSurplus(3)
    coarse_errors = []
    fine_errors = []
    for _ in range(10):
        utilities = state.normal(size=3)
        coarse_errors.append(np.abs(coarse.compute_probabilities(utilities).sum() - 1))
        fine_errors.append(np.abs(fine.compute_probabilities(utilities).sum() - 1))
    assert max(coarse_errors) < 1e-6
    assert max(fine_errors) < 1e-10
    assert max(fine_errors) <= max(coarse_errors)


def test_quadrature_reproducibility() -> None:
    """Test that estimators based on quadrature give bit-identical results across instances and calls."""
    utilities = np.array([0.1, 0.9, -0.4, 0.0])
    first = ProbitSurplus(4)
    second = ProbitSurplus(4)
    assert first.compute_surplus(utilities) == second.compute_surplus(utilities)
    np.testing.assert_array_equal(first.compute_hessian(utilities), second.compute_hessian(utilities))
    product_shocks = build_shocks(Integration('product', 3), 4)
    np.testing.assert_array_equal(
        SimulatedSurplus(product_shocks).compute_probabilities(utilities),
        SimulatedSurplus(build_shocks(Integration('product', 3), 4)).compute_probabilities(utilities)
    )


def test_simulation_variance() -> None:
    """Test that the variance of simulated expected surplus across independent samples is inversely proportional to
    the number of draws.
    """
    utilities = np.array([0.5, 0, -0.5])
    variances = []
    for size in [100, 400]:
        estimates = []
        for seed in range(400):
            integration = Integration('monte_carlo', size, {'distribution': 'gumbel', 'seed': seed})
            estimates.append(SimulatedSurplus(build_shocks(integration, 3)).compute_surplus(utilities))
        variances.append(np.var(estimates))
    assert 2 < variances[0] / variances[1] < 8


@pytest.mark.parametrize(['nodes', 'weights'], [
    pytest.param(np.zeros(3), None, id="vector nodes"),
    pytest.param(np.zeros((0, 2)), None, id="no draws"),
    pytest.param(np.zeros((2, 0)), None, id="no alternatives"),
    pytest.param([[0, np.nan]], None, id="nonfinite nodes"),
    pytest.param(np.zeros((2, 2)), [0.5, 0.25, 0.25], id="too many weights"),
    pytest.param(np.zeros((2, 2)), [1.5, -0.5], id="negative weights"),
    pytest.param(np.zeros((2, 2)), [np.inf, 0], id="nonfinite weights"),
    pytest.param(np.zeros((2, 2)), [1, 1], id="weights that sum to two"),
])
def test_invalid_shocks(nodes: Any, weights: Any) -> None:
    """Test that invalid samples of shocks are rejected."""
    with pytest.raises(exceptions.InvalidInputError):
        Shocks(nodes, weights)


def test_disabled_weights_check() -> None:
    """Test that the check for weights that sum to one can be disabled."""
    old_weights_tol = options.weights_tol
    options.weights_tol = np.inf
    try:
        shocks = Shocks(np.zeros((2, 2)), [1, 1])
    finally:
        options.weights_tol = old_weights_tol
    np.testing.assert_allclose(SimulatedSurplus(shocks).compute_surplus([1, 0]), 2, rtol=0, atol=1e-14)


@pytest.mark.parametrize('utilities', [
    pytest.param([0, 0], id="too few"),
    pytest.param([[0, 0, 0]], id="matrix"),
    pytest.param([0, np.nan, 0], id="missing"),
    pytest.param([0, np.inf, 0], id="infinite"),
])
def test_invalid_utilities(utilities: Any) -> None:
    """Test that invalid utilities are rejected by every estimator."""
    for surplus in [LogitSurplus(3), ProbitSurplus(3), SimulatedSurplus(Shocks(np.zeros((1, 3))))]:
        with pytest.raises(exceptions.InvalidInputError):
            surplus.compute_surplus(utilities)


def test_invalid_configurations() -> None:
    """Test that estimators reject mismatched or unsupported inputs."""
    with pytest.raises(exceptions.InvalidInputError):
        LogitSurplus(2, Shocks(np.zeros((3, 3))))
    with pytest.raises(ValueError):
        ProbitSurplus(3, Integration('monte_carlo', 10, {'distribution': 'gumbel'}))
    with pytest.raises(ValueError):
        LogitSurplus(0)
    with pytest.raises(TypeError):
        SimulatedSurplus(np.zeros((3, 3)))
    with pytest.raises(exceptions.InvalidInputError):
        compute_logit_utilities([0.5, 0])


def test_surplus_degeneracy() -> None:
    """Test that overflow when computing expected surplus is detected."""
    surplus = LogitSurplus(2, Shocks([[1e308, 0]]))
    with pytest.raises(exceptions.SurplusDegeneracyError):
        surplus.compute_surplus([1e308, 0])


def test_formatting() -> None:
    """Test that estimators can be formatted."""
    for surplus in [LogitSurplus(2), ProbitSurplus(2), SimulatedSurplus(Shocks(np.zeros((1, 2))), True)]:
        assert str(surplus)
