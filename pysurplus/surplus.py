"""Estimators of expected surplus, its gradient (choice probabilities), and its Hessian."""

import abc
from typing import Any, List, Optional, Tuple

import numpy as np
import scipy.special

from . import exceptions, options
from .configurations.integration import Integration
from .primitives import Shocks
from .utilities.basics import Array, Error, NumericalErrorHandler, StringRepresentation


class Surplus(abc.ABC, StringRepresentation):
    r"""Abstract estimator of expected surplus.

    Expected surplus, or the social surplus function, is

    .. math:: W(v) = E\left[\max_j (v_j + \varepsilon_j)\right],

    in which the outside alternative's utility of zero is also included in the maximum if there is an outside option.
    By the Williams-Daly-Zachary theorem, its gradient is the vector of choice probabilities.

    Attributes
    ----------
    J : `int`
        Number of inside alternatives.
    outside_option : `bool`
        Whether there is an outside alternative with utility normalized to zero.
    smooth : `bool`
        Whether the estimator is twice differentiable with an informative Hessian. A simulated maximum is piecewise
        linear, so its Hessian is zero almost everywhere.

    """

    J: int
    outside_option: bool
    smooth: bool

    def compute_surplus(self, utilities: Any) -> float:
        """Compute expected surplus at a vector of utilities.

        Parameters
        ----------
        utilities : `array-like`
            Utilities :math:`v` for each of the :math:`J` inside alternatives.

        Returns
        -------
        `float`
            Approximated expected surplus.

        """
        surplus, _, _, errors = self._evaluate(utilities)
        if errors:
            raise exceptions.MultipleErrors(errors)
        return surplus

    def compute_probabilities(self, utilities: Any) -> Array:
        """Compute choice probabilities, which are the gradient of expected surplus.

        With an outside option, probabilities of inside alternatives sum to less than one.

        """
        _, probabilities, _, errors = self._evaluate(utilities, compute_probabilities=True)
        if errors:
            raise exceptions.MultipleErrors(errors)
        return probabilities

    def compute_hessian(self, utilities: Any) -> Array:
        """Compute the :math:`J \\times J` Hessian of expected surplus."""
        _, _, hessian, errors = self._evaluate(utilities, compute_hessian=True)
        if errors:
            raise exceptions.MultipleErrors(errors)
        return hessian

    def _validate_utilities(self, utilities: Any) -> Array:
        """Validate a vector of utilities."""
        utilities = np.asarray(utilities, options.dtype)
        if utilities.ndim != 1 or utilities.size != self.J:
            raise exceptions.InvalidInputError(
                f"utilities must be a vector with {self.J} elements, but they have shape {utilities.shape}."
            )
        if not np.isfinite(utilities).all():
            raise exceptions.InvalidInputError("utilities must be finite.")
        return utilities

    def _evaluate(
            self, utilities: Any, compute_probabilities: bool = False, compute_hessian: bool = False) -> (
            Tuple[float, Optional[Array], Optional[Array], List[Error]]):
        """Validate utilities and compute expected surplus along with any requested derivatives. Any numerical problems
        are returned as a list of errors.
        """
        utilities = self._validate_utilities(utilities)
        surplus, probabilities, hessian, errors = self._compute_with_errors(
            utilities, compute_probabilities, compute_hessian
        )
        if not errors:
            outputs = [np.asarray(surplus)] + [x for x in (probabilities, hessian) if x is not None]
            if not all(np.isfinite(x).all() for x in outputs):
                error = exceptions.SurplusDegeneracyError()
                error._messages.add("non-finite outputs")
                errors.append(error)
        return surplus, probabilities, hessian, errors

    @NumericalErrorHandler(exceptions.SurplusDegeneracyError)
    def _compute_with_errors(
            self, utilities: Array, compute_probabilities: bool, compute_hessian: bool) -> (
            Tuple[float, Optional[Array], Optional[Array], List[Error]]):
        """Compute while detecting any numerical errors."""
        errors: List[Error] = []
        surplus, probabilities, hessian = self._compute(utilities, compute_probabilities, compute_hessian)
        return surplus, probabilities, hessian, errors

    @abc.abstractmethod
    def _compute(
            self, utilities: Array, compute_probabilities: bool, compute_hessian: bool) -> (
            Tuple[float, Optional[Array], Optional[Array]]):
        """Compute expected surplus, choice probabilities, and the Hessian. Derivatives that are not requested can be
        None.
        """


class SimulatedSurplus(Surplus):
    r"""Expected maximum over a sample of shocks.

    Expected surplus is approximated by

    .. math:: W(v) \approx \sum_s w_s \max_j (v_j + \varepsilon_{js}),

    and choice probabilities are weighted frequencies with which each alternative attains the maximum. The maximum is
    computed in a single pass over alternatives, keeping only a running maximum and the index of the maximizing
    alternative for each draw, so memory use beyond the shocks themselves is linear in the number of draws.

    With an outside option, running maxima start at zero instead of :math:`-\infty`, so each draw contributes
    :math:`\max\{0, \max_j (v_j + \varepsilon_{js})\}`, as in the pure characteristics model. Draws at which the outside
    alternative is chosen do not count toward any inside probability.

    The approximation is piecewise linear in utilities, so it is not smooth: its Hessian is zero almost everywhere and a
    linear inversion criterion built from it should be minimized with a derivative-free routine.

    Parameters
    ----------
    shocks : `Shocks`
        The :math:`S \times J` sample of shocks, typically built with :func:`build_shocks` or
        :func:`build_characteristic_shocks`.
    outside_option : `bool, optional`
        Whether to include an outside alternative with zero utility in the maximum. By default, there is none.

    Examples
    --------
    .. code-block:: python

       integration = pysurplus.Integration('monte_carlo', 10**6, {'distribution': 'gumbel', 'seed': 0})
       surplus = pysurplus.SimulatedSurplus(pysurplus.build_shocks(integration, 5))
       surplus.compute_surplus([0, 0, 0, 0, 0])

    """

    shocks: Shocks

    def __init__(self, shocks: Shocks, outside_option: bool = False) -> None:
        """Store the shocks."""
        if not isinstance(shocks, Shocks):
            raise TypeError("shocks must be a Shocks instance.")
        self.shocks = shocks
        self.J = shocks.J
        self.outside_option = bool(outside_option)
        self.smooth = False

    def __str__(self) -> str:
        """Format the estimator as a string."""
        outside = "with" if self.outside_option else "without"
        return (
            f"Simulated expected maximum over {self.shocks.S} nodes for {self.J} alternatives {outside} an outside "
            f"option."
        )

    def _compute(
            self, utilities: Array, compute_probabilities: bool, compute_hessian: bool) -> (
            Tuple[float, Optional[Array], Optional[Array]]):
        """Accumulate running maxima one alternative at a time."""
        draws = self.shocks._draws
        weights = self.shocks.weights
        if self.outside_option:
            maxima = np.zeros(self.shocks.S, options.dtype)
        else:
            maxima = np.full(self.shocks.S, -np.inf, options.dtype)

        # buffers are reused across alternatives and choices of -1 denote the outside alternative
        candidates = np.empty(self.shocks.S, options.dtype)
        if compute_probabilities:
            better = np.empty(self.shocks.S, np.bool_)
            choices = np.full(self.shocks.S, -1, np.int64)
        for j in range(self.J):
            np.add(draws[j], utilities[j], out=candidates)
            if compute_probabilities:
                np.greater(candidates, maxima, out=better)
                choices[better] = j
            np.maximum(maxima, candidates, out=maxima)

        surplus = weights @ maxima
        probabilities = hessian = None
        if compute_probabilities:
            inside = choices >= 0
            probabilities = np.bincount(choices[inside], weights[inside], minlength=self.J).astype(options.dtype)
        if compute_hessian:
            hessian = np.zeros((self.J, self.J), options.dtype)
        return surplus, probabilities, hessian


class LogitSurplus(Surplus):
    r"""Expected surplus with type-one extreme value shocks, integrated in closed form.

    With independent standard type-one extreme value shocks, expected surplus conditional on a node :math:`s` of any
    additional heterogeneity :math:`\mu_s` is the log-sum formula, so

    .. math:: W(v) = \gamma + \sum_s w_s \log\left(1_{\text{outside}} + \sum_j \exp(v_j + \mu_{js})\right),

    in which :math:`\gamma` is the Euler-Mascheroni constant. Without heterogeneity, this is the exact closed form
    :math:`\gamma + \log\sum_j \exp(v_j)`, which is useful for verifying other estimators. With heterogeneity, this is
    the surplus of a random coefficients (mixed) logit model.

    Choice probabilities and the Hessian :math:`\sum_s w_s (\text{diag}(P_s) - P_s P_s')` are analytic, so the estimator
    is smooth. Log-sums are computed after subtracting the largest utility at each node to avoid overflow.

    Parameters
    ----------
    J : `int`
        Number of inside alternatives.
    shocks : `Shocks, optional`
        Sample of heterogeneity :math:`\mu` with :math:`J` columns, typically built with
        :func:`build_characteristic_shocks`. By default, there is no heterogeneity.
    outside_option : `bool, optional`
        Whether to include an outside alternative with zero utility. By default, there is none.

    """

    shocks: Optional[Shocks]
    _nodes: Array
    _weights: Array

    def __init__(self, J: int, shocks: Optional[Shocks] = None, outside_option: bool = False) -> None:
        """Validate the dimensions and store the heterogeneity."""
        if not isinstance(J, int) or J < 1:
            raise ValueError("J must be a positive integer.")
        if shocks is not None:
            if not isinstance(shocks, Shocks):
                raise TypeError("shocks must be None or a Shocks instance.")
            if shocks.J != J:
                raise exceptions.InvalidInputError(f"There are {J} alternatives but shocks have {shocks.J} columns.")
        self.J = J
        self.shocks = shocks
        self.outside_option = bool(outside_option)
        self.smooth = True
        if shocks is None:
            self._nodes = np.zeros((1, J), options.dtype)
            self._weights = np.ones(1, options.dtype)
        else:
            self._nodes = shocks.nodes
            self._weights = shocks.weights

    def __str__(self) -> str:
        """Format the estimator as a string."""
        heterogeneity = "without heterogeneity" if self.shocks is None else f"over {self.shocks.S} nodes"
        outside = "with" if self.outside_option else "without"
        return f"Closed-form logit surplus {heterogeneity} for {self.J} alternatives {outside} an outside option."

    def _compute(
            self, utilities: Array, compute_probabilities: bool, compute_hessian: bool) -> (
            Tuple[float, Optional[Array], Optional[Array]]):
        """Compute log-sums and logit probabilities at each node."""
        values = utilities[None] + self._nodes
        largest = values.max(axis=1)
        if self.outside_option:
            largest = np.maximum(largest, 0)
        exponentiated = np.exp(values - largest[:, None])
        denominators = exponentiated.sum(axis=1)
        if self.outside_option:
            denominators += np.exp(-largest)

        surplus = np.euler_gamma + self._weights @ (largest + np.log(denominators))
        probabilities = hessian = None
        if compute_probabilities or compute_hessian:
            node_probabilities = exponentiated / denominators[:, None]
            probabilities = self._weights @ node_probabilities
            if compute_hessian:
                hessian = np.diag(probabilities) - (node_probabilities.T * self._weights) @ node_probabilities
        return surplus, probabilities, hessian


class ProbitSurplus(Surplus):
    r"""Expected surplus with independent standard normal shocks, integrated with univariate quadrature.

    Conditional on the shock :math:`z` of alternative :math:`i`, the probability that :math:`i` attains the maximum is
    :math:`\prod_{j \neq i} \Phi(v_i + z - v_j)`, so

    .. math::

       P_i(v) = E_z\left[\prod_{j \neq i} \Phi(v_i + z - v_j)\right], \quad
       W(v) = \sum_i E_z\left[(v_i + z) \prod_{j \neq i} \Phi(v_i + z - v_j)\right],

    in which expectations over :math:`z \sim N(0, 1)` are one-dimensional and computed with quadrature. Products of
    normal CDFs are accumulated in logs with :func:`scipy.special.log_ndtr`, and the analytic Hessian is also computed
    in log space. Nothing is random, so results are bit-reproducible for a given rule.

    Parameters
    ----------
    J : `int`
        Number of alternatives.
    integration : `Integration, optional`
        :class:`Integration` configuration for the univariate rule, which must be for standard normal shocks. By
        default, this is the 50-node Gauss-Hermite rule, ``Integration('product', 50)``.

    """

    integration: Integration
    _nodes: Array
    _weights: Array

    def __init__(self, J: int, integration: Optional[Integration] = None) -> None:
        """Validate the dimensions and build the univariate rule."""
        if not isinstance(J, int) or J < 1:
            raise ValueError("J must be a positive integer.")
        if integration is None:
            integration = Integration('product', 50)
        if not isinstance(integration, Integration):
            raise TypeError("integration must be None or an Integration instance.")
        if integration._distribution != 'normal':
            raise ValueError("integration must be configured for independent standard normal shocks.")
        self.J = J
        self.integration = integration
        self.outside_option = False
        self.smooth = True
        nodes, weights = integration._build(1)
        self._nodes = np.asarray(nodes[:, 0], options.dtype)
        self._weights = np.asarray(weights, options.dtype)

    def __str__(self) -> str:
        """Format the estimator as a string."""
        return f"Probit surplus for {self.J} alternatives over {self._nodes.size} nodes."

    def _compute(
            self, utilities: Array, compute_probabilities: bool, compute_hessian: bool) -> (
            Tuple[float, Optional[Array], Optional[Array]]):
        """Integrate products of normal CDFs over each alternative's own shock."""
        diagonal = np.arange(self.J)

        # differences are indexed by the maximizing alternative, the node, and the other alternative
        differences = utilities[:, None, None] + self._nodes[None, :, None] - utilities[None, None, :]
        log_cdfs = scipy.special.log_ndtr(differences)
        log_cdfs[diagonal, :, diagonal] = 0
        log_products = log_cdfs.sum(axis=2)
        products = np.exp(log_products)

        values = utilities[:, None] + self._nodes[None, :]
        surplus = ((values * products) @ self._weights).sum()
        probabilities = hessian = None
        if compute_probabilities or compute_hessian:
            probabilities = products @ self._weights
        if compute_hessian:
            log_pdfs = -0.5 * differences**2 - 0.5 * np.log(2 * np.pi)
            terms = np.exp(log_products[:, :, None] - log_cdfs + log_pdfs)
            hessian = -np.einsum('ikl,k->il', terms, self._weights)
            hessian[diagonal, diagonal] = 0
            hessian[diagonal, diagonal] = -hessian.sum(axis=1)
            hessian = (hessian + hessian.T) / 2
        return surplus, probabilities, hessian


def compute_logit_utilities(shares: Any) -> Array:
    r"""Compute the utilities that rationalize shares when shocks are standard type-one extreme value.

    The closed-form inverse :math:`v = \log(p) - \gamma` normalizes expected surplus to zero, which is where an
    exponential inversion criterion is minimized. It serves as ground truth for other estimators.

    Parameters
    ----------
    shares : `array-like`
        Strictly positive shares :math:`p`.

    Returns
    -------
    `ndarray`
        Utilities :math:`\log(p) - \gamma`.

    """
    shares = np.asarray(shares, options.dtype)
    if shares.ndim != 1 or shares.size == 0:
        raise exceptions.InvalidInputError("shares must be a nonempty vector.")
    if not np.isfinite(shares).all() or (shares <= 0).any():
        raise exceptions.InvalidInputError("shares must be finite and strictly positive.")
    return np.log(shares) - np.euler_gamma
