"""Numerical experiments that invert simulated shares and compare recovered utilities with the truth."""

from typing import Any, Optional

import numpy as np

from . import exceptions, options
from .configurations.integration import Integration
from .configurations.optimization import Optimization
from .construction import build_characteristic_shocks, build_shocks, combine_shocks
from .inversion import Inversion
from .results.experiment_results import ExperimentResults
from .surplus import LogitSurplus, SimulatedSurplus, Surplus
from .utilities.basics import Array, StringRepresentation, format_table, output


class Experiment(StringRepresentation):
    """Inversion of shares generated by a known model.

    Parameters
    ----------
    surplus : `Surplus`
        Estimator of expected surplus used in the inversion criterion.
    shares : `array-like`
        Target shares.
    transform : `str`
        Transform of expected surplus in the criterion, ``'linear'`` or ``'exponential'``.
    true_utilities : `array-like, optional`
        Utilities that generated the shares. By default, these are unknown.
    title : `str, optional`
        Title of the report table.

    """

    surplus: Surplus
    shares: Array
    transform: str
    true_utilities: Array
    title: str

    def __init__(
            self, surplus: Surplus, shares: Any, transform: str, true_utilities: Optional[Any] = None,
            title: str = "Experiment") -> None:
        """Store the inputs."""
        self.surplus = surplus
        self.shares = np.asarray(shares, options.dtype)
        self.transform = transform
        if true_utilities is None:
            true_utilities = np.full(surplus.J, np.nan, options.dtype)
        self.true_utilities = np.asarray(true_utilities, options.dtype)
        if self.true_utilities.shape != (surplus.J,):
            raise exceptions.InvalidInputError(f"true_utilities must be a vector with {surplus.J} elements.")
        self.title = title

    def __str__(self) -> str:
        """Format the experiment as a string."""
        header = [("Alternatives", "J"), ("Criterion", "Transform"), ("Known", "Utilities")]
        values = [self.surplus.J, self.transform.capitalize(), int(np.isfinite(self.true_utilities).sum())]
        return format_table(header, values, title=self.title)

    def run(
            self, optimization: Optional[Optimization] = None, initial_utilities: Optional[Any] = None,
            error_behavior: str = 'warn') -> ExperimentResults:
        """Invert the shares and compare recovered utilities with true ones.

        Parameters
        ----------
        optimization : `Optimization, optional`
            :class:`Optimization` configuration passed to :meth:`Inversion.solve`.
        initial_utilities : `array-like, optional`
            Starting values passed to :meth:`Inversion.solve`.
        error_behavior : `str, optional`
            How to handle a failure to converge, which is passed to :meth:`Inversion.solve`.

        Returns
        -------
        `ExperimentResults`
            :class:`ExperimentResults` with the comparison table.

        """
        output(self)
        output("")
        inversion = Inversion(self.surplus, self.shares, self.transform)
        inversion_results = inversion.solve(initial_utilities, optimization, error_behavior)
        results = ExperimentResults(self, inversion_results)
        output("")
        output(results)
        return results


class MixedLogitExperiment(Experiment):
    r"""Inversion of random coefficients logit shares.

    Mean utilities are :math:`x = Z'\beta` with :math:`\beta \sim U(0, 1)^M` and characteristics
    :math:`Z_j \sim N(0, I_M)`. Consumer :math:`i` gets utility :math:`x_j + \nu_i'Z_j + \varepsilon_{ij}` from
    alternative :math:`j` and zero from the outside alternative, in which tastes :math:`\nu_i \sim N(0, I_M)` are
    simulated and :math:`\varepsilon_{ij}` are type-one extreme value shocks integrated in closed form. Shares are
    computed from the same simulated tastes that are used in the inversion, which uses the linear transform.

    Parameters
    ----------
    J : `int, optional`
        Number of inside alternatives, which is by default ``5``.
    M : `int, optional`
        Number of characteristics, which is by default ``4``.
    N : `int, optional`
        Number of simulated consumers, which is by default ``10000``. This is ignored if ``integration`` is specified.
    integration : `Integration, optional`
        :class:`Integration` configuration for tastes. By default, ``N`` standard normal Monte Carlo draws are used.
    seed : `int, optional`
        Seed for generating coefficients, characteristics, and default tastes.

    """

    beta: Array
    characteristics: Array

    def __init__(
            self, J: int = 5, M: int = 4, N: int = 10000, integration: Optional[Integration] = None,
            seed: Optional[int] = None) -> None:
        """Generate the model and compute its shares."""
        if not all(isinstance(n, int) and n > 0 for n in [J, M, N]):
            raise ValueError("J, M, and N must be positive integers.")
        state = np.random.RandomState(seed)
        taste_seed = None if seed is None else seed + 1
        self.beta = state.uniform(size=M)
        self.characteristics = state.normal(size=(M, J))
        if integration is None:
            integration = Integration('monte_carlo', N, {'seed': taste_seed})
        tastes = build_shocks(integration, M)
        surplus = LogitSurplus(J, build_characteristic_shocks(self.characteristics, tastes), outside_option=True)
        true_utilities = self.characteristics.T @ self.beta
        shares = surplus.compute_probabilities(true_utilities)
        super().__init__(surplus, shares, 'linear', true_utilities, title="Mixed Logit")


class PureCharacteristicsExperiment(Experiment):
    r"""Inversion of pure characteristics shares.

    Mean utilities are :math:`x = Z'\beta` with :math:`\beta = (1, U(0, 1)^{M - 1})` and characteristics
    :math:`Z_j \sim N(0, I_M)`. Consumer :math:`i` gets utility :math:`x_j + \nu_i'Z_j` from alternative :math:`j` and
    zero from the outside alternative, so there are no idiosyncratic shocks. The random taste for the first
    characteristic is integrated with quadrature and the rest are simulated. Expected surplus is the simulated
    :math:`E[\max\{0, \max_j (x_j + \nu'Z_j)\}]`, which is not smooth, so the linear criterion is minimized with
    Nelder-Mead by default.

    Parameters
    ----------
    J : `int, optional`
        Number of inside alternatives, which is by default ``5``.
    M : `int, optional`
        Number of characteristics, which is by default ``4``.
    N : `int, optional`
        Number of simulated consumers for the tastes that are not integrated with quadrature, which is by default
        ``10000``.
    quadrature : `Integration, optional`
        :class:`Integration` configuration for the first taste, which is by default the 50-node Gauss-Hermite rule.
    seed : `int, optional`
        Seed for generating coefficients, characteristics, and simulated tastes.

    """

    beta: Array
    characteristics: Array

    def __init__(
            self, J: int = 5, M: int = 4, N: int = 10000, quadrature: Optional[Integration] = None,
            seed: Optional[int] = None) -> None:
        """Generate the model and compute its shares."""
        if not all(isinstance(n, int) and n > 0 for n in [J, M, N]):
            raise ValueError("J, M, and N must be positive integers.")
        if quadrature is None:
            quadrature = Integration('product', 50)
        state = np.random.RandomState(seed)
        taste_seed = None if seed is None else seed + 1
        self.beta = np.r_[1, state.uniform(size=M - 1)]
        self.characteristics = state.normal(size=(M, J))

        # integrate the first taste with quadrature and simulate the rest
        tastes = build_shocks(quadrature, 1)
        if M > 1:
            tastes = combine_shocks(tastes, build_shocks(Integration('monte_carlo', N, {'seed': taste_seed}), M - 1))
        surplus = SimulatedSurplus(build_characteristic_shocks(self.characteristics, tastes), outside_option=True)
        true_utilities = self.characteristics.T @ self.beta
        shares = surplus.compute_probabilities(true_utilities)
        super().__init__(surplus, shares, 'linear', true_utilities, title="Pure Characteristics")


class SurplusInversionExperiment(Experiment):
    r"""Inversion of conditional choice probabilities with the exponential transform.

    Utilities are normalized so that expected surplus is zero at the optimum. With standard type-one extreme value
    shocks, the truth is :math:`\log(p) - \gamma`, which can be computed with :func:`compute_logit_utilities`.

    Parameters
    ----------
    surplus : `Surplus`
        Estimator of expected surplus.
    shares : `array-like, optional`
        Target shares. By default, these are :math:`(1, 2, \dots, J) / \sum_j j`.
    true_utilities : `array-like, optional`
        True utilities. By default, these are unknown.
    title : `str, optional`
        Title of the report table.

    """

    def __init__(
            self, surplus: Surplus, shares: Optional[Any] = None, true_utilities: Optional[Any] = None,
            title: str = "Surplus Inversion") -> None:
        """Set default shares."""
        if shares is None:
            shares = np.arange(1, surplus.J + 1) / np.arange(1, surplus.J + 1).sum()
        super().__init__(surplus, shares, 'exponential', true_utilities, title)
