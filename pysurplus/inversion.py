"""Recovery of utilities from choice probabilities by minimizing a convex criterion built from expected surplus."""

import time
from typing import Any, List, Optional, Tuple

import numpy as np

from . import exceptions, options
from .configurations.optimization import ObjectiveResults, Optimization
from .results.inversion_results import InversionResults
from .surplus import Surplus
from .utilities.basics import (
    Array, Error, NumericalErrorHandler, StringRepresentation, format_seconds, format_table, output, warn
)


class Inversion(StringRepresentation):
    r"""Problem of recovering utilities that rationalize choice probabilities.

    Since choice probabilities are the gradient of expected surplus :math:`W`, utilities :math:`v` that rationalize
    shares :math:`p` satisfy :math:`\nabla W(v) = p` and can be recovered by minimizing a convex criterion. With the
    ``'linear'`` transform, the criterion is

    .. math:: f(v) = W(v) - v'p,

    with gradient :math:`P(v) - p` and Hessian :math:`\nabla^2 W(v)`. With the ``'exponential'`` transform, which
    recovers conditional choice probability inversions normalized so that expected surplus is zero at the optimum, the
    criterion is

    .. math:: f(v) = \exp(W(v)) - v'p,

    with gradient :math:`\exp(W(v)) P(v) - p` and Hessian :math:`\exp(W(v))(\nabla^2 W(v) + P(v)P(v)')`. Unlike the
    linear criterion, the exponential one is strictly convex along the direction of equal utilities, so its minimizer
    is unique even without an outside option.

    Parameters
    ----------
    surplus : `Surplus`
        Estimator of expected surplus, such as :class:`SimulatedSurplus`, :class:`LogitSurplus`, or
        :class:`ProbitSurplus`.
    shares : `array-like`
        Target shares :math:`p` of the :math:`J` inside alternatives, which must be finite and strictly positive.
        Without an outside option and with the linear transform, shares should sum to one. With an outside option, they
        should sum to less than one. Otherwise, the criterion is unbounded below, and a warning is raised.
    transform : `str, optional`
        Transform of expected surplus in the criterion: ``'linear'`` (the default) or ``'exponential'``.

    Examples
    --------
    .. code-block:: python

       shares = np.array([0.1, 0.2, 0.3, 0.4])
       inversion = pysurplus.Inversion(pysurplus.LogitSurplus(4), shares, 'exponential')
       results = inversion.solve()

    """

    surplus: Surplus
    shares: Array
    transform: str
    J: int

    def __init__(self, surplus: Surplus, shares: Any, transform: str = 'linear') -> None:
        """Validate the problem."""
        if not isinstance(surplus, Surplus):
            raise TypeError("surplus must be a Surplus instance.")
        if transform not in {'linear', 'exponential'}:
            raise ValueError("transform must be 'linear' or 'exponential'.")
        shares = np.asarray(shares, options.dtype)
        if shares.ndim != 1 or shares.size != surplus.J:
            raise exceptions.InvalidInputError(
                f"shares must be a vector with {surplus.J} elements, but they have shape {shares.shape}."
            )
        if not np.isfinite(shares).all() or (shares <= 0).any():
            raise exceptions.InvalidInputError("shares must be finite and strictly positive.")

        # the linear criterion is unbounded unless shares are proper probabilities
        total = shares.sum()
        if transform == 'linear' and not surplus.outside_option and not np.isclose(total, 1):
            warn(f"Shares sum to {total}, not one, so the linear criterion is unbounded below.")
        if surplus.outside_option and total >= 1:
            warn(f"Shares sum to {total}, which leaves nothing for the outside alternative.")

        self.surplus = surplus
        self.shares = shares
        self.transform = transform
        self.J = surplus.J

    def __str__(self) -> str:
        """Format the problem as a string."""
        header = [("Alternatives", "J"), ("Criterion", "Transform"), ("Outside", "Option"), ("Smooth", "Surplus")]
        values = [
            self.J, self.transform.capitalize(), "Yes" if self.surplus.outside_option else "No",
            "Yes" if self.surplus.smooth else "No"
        ]
        return "\n\n".join([format_table(header, values, title="Dimensions"), str(self.surplus)])

    def solve(
            self, initial_utilities: Optional[Any] = None, optimization: Optional[Optimization] = None,
            error_behavior: str = 'warn') -> InversionResults:
        r"""Minimize the criterion to recover utilities.

        Parameters
        ----------
        initial_utilities : `array-like, optional`
            Starting values for utilities. By default, optimization starts at zero.
        optimization : `Optimization, optional`
            :class:`Optimization` configuration for how to minimize the criterion. By default, a smooth surplus
            estimator uses ``Optimization('newton_trust_region')`` and a simulated maximum, whose Hessian is
            uninformative, uses ``Optimization('nelder_mead', gradient_tol=1e-6)``. Since a simulated criterion only
            changes in steps at the scale of individual draws, tighter simplex tolerances mostly add evaluations
            without improving accuracy. The Newton trust-region routine is only supported for a simulated maximum with
            the exponential transform, for which the Hessian is the nonzero :math:`\exp(W(v)) P(v) P(v)'`.
        error_behavior : `str, optional`
            How to handle a failure to converge within the iteration or time limit:

                - ``'warn'`` (default) - Output the error, store it in :attr:`InversionResults.errors`, and return
                  results at the best utilities found so far.

                - ``'raise'`` - Raise the error.

            Numerical degeneracies such as overflow are always raised immediately.

        Returns
        -------
        `InversionResults`
            :class:`InversionResults` of the solved problem.

        """
        if error_behavior not in {'warn', 'raise'}:
            raise ValueError("error_behavior must be 'warn' or 'raise'.")

        # validate or choose the optimization configuration
        if optimization is None:
            if self.surplus.smooth:
                optimization = Optimization('newton_trust_region')
            else:
                optimization = Optimization('nelder_mead', gradient_tol=1e-6)
        if not isinstance(optimization, Optimization):
            raise TypeError("optimization must be None or an Optimization instance.")
        if optimization._compute_hessian and not self.surplus.smooth and self.transform == 'linear':
            raise ValueError(
                "The Hessian of a simulated maximum is zero almost everywhere, so the Newton trust-region routine is "
                "not supported with the linear transform. Use Nelder-Mead or the exponential transform instead."
            )

        # validate the initial utilities
        if initial_utilities is None:
            initial_utilities = np.zeros(self.J, options.dtype)
        initial_utilities = self.surplus._validate_utilities(initial_utilities)

        output("Inverting shares ...")
        output(self)
        output("")
        output(optimization)
        output("")

        # define the objective function
        smallest_objective = np.inf

        def wrapper(values: Array, iterations: int, evaluations: int) -> ObjectiveResults:
            """Compute the criterion at one set of utilities and output progress."""
            nonlocal smallest_objective
            assert optimization is not None
            objective, gradient, hessian, *_, criterion_errors = self._compute_criterion(
                values, optimization._compute_gradient, optimization._compute_hessian
            )
            if criterion_errors:
                raise exceptions.MultipleErrors(criterion_errors)
            if optimization._show_trace:
                output(optimization._format_progress(
                    iterations, evaluations, objective, smallest_objective, gradient, values
                ))
            smallest_objective = min(smallest_objective, objective)
            return objective, gradient, hessian

        # minimize the criterion
        output("Starting optimization ...")
        start_time = time.time()
        utilities, stats = optimization._optimize(initial_utilities, wrapper)
        optimization_time = time.time() - start_time
        status = "completed" if stats.converged else "failed"
        output(f"Optimization {status} after {format_seconds(optimization_time)}.")
        errors: List[Error] = []
        if not stats.converged:
            errors.append(exceptions.ConvergenceFailure())
            self._handle_errors(errors, error_behavior)

        # compute results at the final utilities
        criterion = self._compute_criterion(utilities, compute_gradient=True, compute_hessian=True)
        if criterion[-1]:
            raise exceptions.MultipleErrors(criterion[-1])
        stats.evaluations += 1
        results = InversionResults(self, utilities, criterion[:-1], stats, optimization_time, errors)
        output("")
        output(results)
        return results

    @staticmethod
    def _handle_errors(errors: List[Error], error_behavior: str) -> None:
        """Either raise or output information about any errors."""
        if errors:
            if error_behavior == 'raise':
                raise exceptions.MultipleErrors(errors)
            output("")
            output(exceptions.MultipleErrors(errors))
            output("")

    def _compute_criterion(
            self, utilities: Array, compute_gradient: bool, compute_hessian: bool) -> (
            Tuple[float, Optional[Array], Optional[Array], float, Optional[Array], Optional[Array], List[Error]]):
        """Compute the criterion, its gradient, and its Hessian, along with the underlying expected surplus, choice
        probabilities, and Hessian of expected surplus. Any numerical problems are returned as a list of errors.
        """
        surplus, probabilities, surplus_hessian, errors = self.surplus._evaluate(
            utilities, compute_probabilities=compute_gradient or compute_hessian, compute_hessian=compute_hessian
        )
        if errors:
            return np.nan, None, None, np.nan, probabilities, surplus_hessian, errors

        # transform expected surplus and detect any problems that didn't trigger floating point errors
        objective, gradient, hessian, errors = self._transform_surplus(
            utilities, surplus, probabilities, surplus_hessian, compute_gradient, compute_hessian
        )
        if not errors:
            outputs = [np.asarray(objective)] + [x for x in (gradient, hessian) if x is not None]
            if not all(np.isfinite(x).all() for x in outputs):
                error = exceptions.CriterionDegeneracyError()
                error._messages.add("non-finite outputs")
                errors.append(error)
        return float(objective), gradient, hessian, float(surplus), probabilities, surplus_hessian, errors

    @NumericalErrorHandler(exceptions.CriterionDegeneracyError)
    def _transform_surplus(
            self, utilities: Array, surplus: float, probabilities: Optional[Array], surplus_hessian: Optional[Array],
            compute_gradient: bool, compute_hessian: bool) -> (
            Tuple[float, Optional[Array], Optional[Array], List[Error]]):
        """Transform expected surplus into the criterion and its derivatives."""
        errors: List[Error] = []
        gradient = hessian = None
        if self.transform == 'linear':
            objective = surplus - utilities @ self.shares
            if compute_gradient:
                gradient = probabilities - self.shares
            if compute_hessian:
                hessian = surplus_hessian
        else:
            scale = np.exp(surplus)
            objective = scale - utilities @ self.shares
            if compute_gradient:
                gradient = scale * probabilities - self.shares
            if compute_hessian:
                hessian = scale * (surplus_hessian + np.outer(probabilities, probabilities))
        return objective, gradient, hessian, errors
