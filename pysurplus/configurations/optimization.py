"""Optimization routines."""

import functools
import time
from typing import Any, Callable, Optional, Tuple, Union

import numpy as np
import scipy.optimize

from ..utilities.basics import (
    Array, Options, SolverStats, StringRepresentation, format_number, format_options, format_table
)


# objective function types
ObjectiveResults = Tuple[float, Optional[Array], Optional[Array]]
ObjectiveFunction = Callable[[Array], ObjectiveResults]


class Optimization(StringRepresentation):
    r"""Configuration for solving optimization problems.

    Parameters
    ----------
    method : `str or callable`
        The optimization routine that will be used. The following routine does not use analytic gradients:

            - ``'nelder_mead'`` - Uses the :func:`scipy.optimize.minimize` Nelder-Mead simplex routine. The routine
              stops once the simplex is small and objective values at its vertices differ by less than
              ``gradient_tol``. This is the only routine suited to criteria built from a simulated maximum without an
              exponential transform, which are piecewise linear.

        The following routines use analytic gradients:

            - ``'bfgs'`` - Uses the :func:`scipy.optimize.minimize` BFGS routine.

            - ``'newton_trust_region'`` - Uses the :func:`scipy.optimize.minimize` trust-exact routine, a Newton
              trust-region method that also uses analytic Hessians. When the criterion is smooth, this routine
              converges markedly faster and more precisely than the simplex routine.

        The following trivial routine can be used to evaluate an objective at specific values:

            - ``'return'`` - Assume that the initial values are the optimal ones.

        Also accepted is a custom callable method with the following form::

            method(initial, objective_function, iteration_callback, **options) -> (final, converged)

        where ``initial`` is an array of initial values, ``objective_function`` is a callable objective function of the
        form specified below, ``iteration_callback`` is a function that should be called without any arguments after
        each major iteration (it is used to record the number of major iterations and returns ``True`` once the time
        limit has elapsed), ``options`` are specified below, ``final`` is an array of optimized values, and
        ``converged`` is a flag for whether the routine converged.

        The ``objective_function`` has the following form:

            objective_function(values) -> (objective, gradient, hessian)

        where ``gradient`` is ``None`` if ``compute_gradient`` is ``False``.

    method_options : `dict, optional`
        Options for the optimization routine. For any non-custom ``method`` other than ``'return'``, these options will
        be passed to ``options`` in :func:`scipy.optimize.minimize`, overriding any defaults derived from
        ``gradient_tol``. Refer to the SciPy documentation for information about which options are available for each
        optimization routine. Options are simply passed along to custom methods.
    compute_gradient : `bool, optional`
        Whether to compute an analytic gradient during optimization, which must be ``False`` if ``method`` does not use
        analytic gradients, and must be ``True`` if ``method`` is ``'newton_trust_region'``. By default, analytic
        gradients are computed whenever ``method`` uses them.
    gradient_tol : `float, optional`
        Convergence tolerance. For ``'bfgs'`` and ``'newton_trust_region'``, this is the tolerance on the norm of the
        gradient. For ``'nelder_mead'``, this is the tolerance on differences between objective values at simplex
        vertices, and the size of the simplex. By default, this is ``1e-8``, which is above the floating point noise
        of typical criteria. Gradient routines that stop without reporting success are still counted as having
        converged if the infinity norm of the gradient at the final values is within this tolerance.
    time_limit : `float, optional`
        Number of seconds after which a SciPy routine is stopped at its current iterate, which is then reported as not
        having converged. By default, routines are stopped after ``100`` seconds. A time limit of ``numpy.inf``
        disables this check.
    show_trace : `bool, optional`
        Whether to output a row of information about optimization progress after each objective evaluation. By default,
        progress is not displayed. Output is also subject to :attr:`options.verbose`.

    Examples
    --------
    The following code configures a Newton trust-region routine with a tight gradient tolerance:

    .. code-block:: python

       optimization = pysurplus.Optimization('newton_trust_region', gradient_tol=1e-14)

    The following code configures the simplex routine with a one minute time limit and a progress display:

    .. code-block:: python

       optimization = pysurplus.Optimization('nelder_mead', time_limit=60, show_trace=True)

    """

    _optimizer: functools.partial
    _description: str
    _method_options: Options
    _compute_gradient: bool
    _compute_hessian: bool
    _gradient_tol: float
    _time_limit: float
    _show_trace: bool

    def __init__(
            self, method: Union[str, Callable], method_options: Optional[Options] = None,
            compute_gradient: Optional[bool] = None, gradient_tol: float = 1e-8, time_limit: float = 100,
            show_trace: bool = False) -> None:
        """Validate the method and set default options."""
        simple_methods = {
            'nelder_mead': ('Nelder-Mead', "the Nelder-Mead algorithm implemented in SciPy"),
        }
        gradient_methods = {
            'bfgs': ('BFGS', "the BFGS algorithm implemented in SciPy"),
            'newton_trust_region': ('trust-exact', "the Newton trust-region algorithm implemented in SciPy"),
        }
        trivial_methods = {
            'return': (None, "a trivial routine that returns the initial values"),
        }
        methods = {**simple_methods, **gradient_methods, **trivial_methods}

        # validate the configuration
        if method not in methods and not callable(method):
            raise ValueError(f"method must be one of {list(methods)} or a callable object.")
        if method_options is not None and not isinstance(method_options, dict):
            raise ValueError("method_options must be None or a dict.")
        if compute_gradient is None:
            compute_gradient = method not in simple_methods
        if method in simple_methods and compute_gradient:
            raise ValueError(f"compute_gradient must be False when method is '{method}'.")
        if method == 'newton_trust_region' and not compute_gradient:
            raise ValueError(f"compute_gradient must be True when method is '{method}'.")
        if not isinstance(gradient_tol, (int, float)) or gradient_tol <= 0:
            raise ValueError("gradient_tol must be a positive float.")
        if not isinstance(time_limit, (int, float)) or time_limit <= 0:
            raise ValueError("time_limit must be a positive number.")

        # initialize class attributes
        self._compute_gradient = compute_gradient
        self._compute_hessian = method == 'newton_trust_region'
        self._gradient_tol = gradient_tol
        self._time_limit = time_limit
        self._show_trace = show_trace

        # options are by default empty
        if method_options is None:
            method_options = {}

        # options are simply passed along to custom methods
        if callable(method):
            self._optimizer = functools.partial(method)
            self._description = "a custom method"
            self._method_options = method_options
            return

        # identify the non-custom optimizer, configure arguments, and set default options
        scipy_method, self._description = methods[method]
        self._method_options: Options = {}
        if method == 'return':
            self._optimizer = functools.partial(return_optimizer)
        else:
            self._optimizer = functools.partial(
                scipy_optimizer, method=scipy_method, compute_gradient=compute_gradient,
                compute_hessian=self._compute_hessian
            )
            if method in simple_methods:
                self._method_options.update({'fatol': gradient_tol, 'xatol': gradient_tol, 'maxiter': 5000})
            else:
                self._method_options.update({'gtol': gradient_tol, 'maxiter': 1000})

        # update the default options
        self._method_options.update(method_options)
        if method == 'return' and self._method_options:
            raise ValueError("The return method does not support any options.")

    def __str__(self) -> str:
        """Format the configuration as a string."""
        description = f"{self._description} {'with' if self._compute_gradient else 'without'} analytic gradients"
        if self._compute_hessian:
            description = f"{description} and Hessians"
        return (
            f"Configured to optimize using {description}, a time limit of {self._time_limit} seconds, and options "
            f"{format_options(self._method_options)}."
        )

    def _optimize(
            self, initial: Array, verbose_objective_function: Callable[[Array, int, int], ObjectiveResults]) -> (
            Tuple[Array, SolverStats]):
        """Optimize values to minimize a scalar objective."""

        # initialize counters and the clock
        iterations = evaluations = 0
        timed_out = False
        start_time = time.time()

        def iteration_callback() -> bool:
            """Count the number of major iterations and report whether the time limit has elapsed."""
            nonlocal iterations, timed_out
            iterations += 1
            timed_out = time.time() - start_time > self._time_limit
            return timed_out

        def objective_wrapper(raw_values: Any) -> ObjectiveResults:
            """Normalize arrays so they work with all types of routines. Also count the total number of objective
            evaluations.
            """
            nonlocal evaluations
            evaluations += 1
            raw_values = np.asanyarray(raw_values)
            values = raw_values.reshape(initial.shape).astype(initial.dtype, copy=False)
            objective, gradient, hessian = verbose_objective_function(values, iterations, evaluations)
            return (
                float(objective),
                None if gradient is None else gradient.astype(np.float64, copy=False).flatten(),
                None if hessian is None else hessian.astype(np.float64, copy=False),
            )

        # solve the problem and convert the raw final values to the same data type and shape as the initial values
        raw_initial = initial.astype(np.float64, copy=False).flatten()
        raw_final, converged = self._optimizer(
            raw_initial, objective_wrapper, iteration_callback, **self._method_options
        )
        final = np.asanyarray(raw_final).astype(initial.dtype, copy=False).reshape(initial.shape)
        stats = SolverStats(converged and not timed_out, iterations, evaluations)
        return final, stats

    def _format_progress(
            self, iterations: int, evaluations: int, objective: float, smallest_objective: float,
            gradient: Optional[Array], values: Array) -> str:
        """Format a row of optimization progress. The first evaluation also includes the header."""
        header = [("Optimization", "Iterations"), ("Objective", "Evaluations"), ("Objective", "Value")]
        row = [str(iterations), str(evaluations), format_number(objective)]
        header.append(("Objective", "Improvement"))
        improvement = smallest_objective - objective
        if np.isfinite(improvement) and improvement > 0:
            row.append(format_number(improvement))
        else:
            row.append(" " * len(format_number(improvement)))
        if gradient is not None:
            header.append(("Gradient", "Norm"))
            row.append(format_number(np.abs(gradient).max()))
        header.append(("", "Utilities"))
        row.append(", ".join(format_number(v) for v in values.flatten()))
        return format_table(header, row, include_border=False, include_header=evaluations == 1)


def return_optimizer(initial_values: Array, *_: Any, **__: Any) -> Tuple[Array, bool]:
    """Assume the initial values are the optimal ones."""
    success = True
    return initial_values, success


def scipy_optimizer(
        initial_values: Array, objective_function: ObjectiveFunction, iteration_callback: Callable[[], bool],
        method: str, compute_gradient: bool, compute_hessian: bool, **scipy_options: Any) -> Tuple[Array, bool]:
    """Optimize with a SciPy method."""
    cache: Optional[Tuple[Array, ObjectiveResults]] = None

    def evaluate(values: Array) -> ObjectiveResults:
        """Return possibly cached objective information."""
        nonlocal cache
        if cache is None or not np.array_equal(values, cache[0]):
            cache = (values.copy(), objective_function(values))
        return cache[1]

    def callback(*_: Any) -> None:
        """Count the iteration and stop the routine once the time limit has elapsed."""
        if iteration_callback():
            raise StopIteration

    # call the SciPy function
    results = scipy.optimize.minimize(
        lambda x: evaluate(x)[0], initial_values, method=method,
        jac=(lambda x: evaluate(x)[1]) if compute_gradient else None,
        hess=(lambda x: evaluate(x)[2]) if compute_hessian else None,
        callback=callback, options=scipy_options
    )

    # routines such as trust-exact can give up once improvements are lost in floating point noise
    converged = bool(results.success)
    if not converged and compute_gradient and 'gtol' in scipy_options:
        gradient = evaluate(results.x)[1]
        converged = gradient is not None and bool(np.abs(gradient).max() <= scipy_options['gtol'])
    return results.x, converged
