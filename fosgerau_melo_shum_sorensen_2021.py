"""Reproduces the numerical examples of Fosgerau, Melo, Shum, and Sørensen (2021), "Some remarks on CCP-based
estimators of dynamic models," Economics Letters 204.

For each example, the inverse of choice probabilities, normalized so that expected surplus is zero, is computed by
minimizing exp(W(v)) - v'p, in which W is the simulated expected maximum of utilities plus shocks. The criterion only
changes in steps at the scale of individual draws, so it is minimized with the default Nelder-Mead routine.
"""

import numpy as np

import pysurplus


J = 5
S = 10**6
SHARES = np.arange(1, J + 1) / np.arange(1, J + 1).sum()


def invert(integration: pysurplus.Integration, title: str, true_utilities: np.ndarray = None) -> None:
    """Simulate shocks and invert the choice probabilities."""
    surplus = pysurplus.SimulatedSurplus(pysurplus.build_shocks(integration, J))
    experiment = pysurplus.SurplusInversionExperiment(surplus, SHARES, true_utilities, title)
    experiment.run()


def main() -> None:
    """Run the burn-in example and the three examples with one million draws each."""
    invert(pysurplus.Integration('monte_carlo', 1000, {'seed': 0}), "Burn In")
    invert(
        pysurplus.Integration('monte_carlo', S, {'distribution': 'gumbel', 'seed': 1}),
        "Independent Type 1 Extreme Value", pysurplus.compute_logit_utilities(SHARES)
    )
    invert(pysurplus.Integration('monte_carlo', S, {'seed': 2}), "Independent N(0, 1)")
    covariance = pysurplus.build_toeplitz_covariance(J, 0.5)
    invert(
        pysurplus.Integration(
            'monte_carlo', S, {'distribution': 'multivariate_normal', 'covariance': covariance, 'seed': 3}
        ),
        "Correlated Normal"
    )


if __name__ == '__main__':
    main()
