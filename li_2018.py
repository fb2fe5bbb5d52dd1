"""Reproduces the numerical examples of Li (2018), "A new method of estimating the BLP demand model," which recovers
mean utilities by minimizing expected surplus minus utilities weighted by market shares.

Random coefficients logit surplus is smooth, so its criterion is minimized with the default Newton trust-region
routine. Pure characteristics surplus is a simulated maximum, so its criterion is minimized with the default
Nelder-Mead routine.
"""

import pysurplus


def main() -> None:
    """Invert random coefficients logit shares and pure characteristics shares."""
    pysurplus.MixedLogitExperiment(J=5, M=4, N=10000, seed=0).run()
    pysurplus.PureCharacteristicsExperiment(J=5, M=4, N=10000, seed=0).run()


if __name__ == '__main__':
    main()
