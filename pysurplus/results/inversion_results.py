"""Results of inverting shares into utilities."""

from typing import Any, Dict, List, Optional, Sequence, TYPE_CHECKING, Tuple

import numpy as np

from .. import exceptions, options
from ..utilities.algebra import precisely_compute_eigenvalues
from ..utilities.basics import (
    Array, Error, SolverStats, StringRepresentation, format_number, format_seconds, format_table
)


# only import objects that create import cycles when checking types
if TYPE_CHECKING:
    from ..inversion import Inversion  # noqa


class InversionResults(StringRepresentation):
    r"""Results of a solved inversion problem.

    Attributes
    ----------
    inversion : `Inversion`
        :class:`Inversion` that created these results.
    utilities : `ndarray`
        Recovered utilities :math:`\hat{v}`.
    objective : `float`
        Criterion value at :math:`\hat{v}`.
    gradient : `ndarray`
        Gradient of the criterion at :math:`\hat{v}`, which should be close to zero.
    gradient_norm : `float`
        Infinity norm of :attr:`InversionResults.gradient`.
    probabilities : `ndarray`
        Choice probabilities :math:`P(\hat{v})` implied by the surplus estimator.
    surplus : `float`
        Expected surplus :math:`W(\hat{v})`. With the exponential transform, this should be close to zero.
    hessian : `ndarray`
        Hessian of the criterion at :math:`\hat{v}`.
    hessian_eigenvalues : `ndarray`
        Eigenvalues of :attr:`InversionResults.hessian`.
    converged : `bool`
        Whether the optimization routine converged.
    iterations : `int`
        Number of major iterations completed by the optimization routine.
    evaluations : `int`
        Number of criterion evaluations, including one at the recovered utilities.
    optimization_time : `float`
        Number of seconds it took the optimization routine to finish.
    errors : `list`
        Non-fatal errors encountered while solving the problem, such as a failure to converge.

    """

    inversion: 'Inversion'
    utilities: Array
    objective: float
    gradient: Array
    gradient_norm: float
    probabilities: Array
    surplus: float
    hessian: Array
    hessian_eigenvalues: Array
    converged: bool
    iterations: int
    evaluations: int
    optimization_time: float
    errors: List[Error]

    def __init__(
            self, inversion: 'Inversion', utilities: Array,
            criterion: Tuple[float, Array, Array, float, Array, Array], stats: SolverStats,
            optimization_time: float, errors: Sequence[Error]) -> None:
        """Structure results computed at the recovered utilities."""
        self.inversion = inversion
        self.utilities = utilities
        self.objective, self.gradient, self.hessian, self.surplus, self.probabilities, _ = criterion
        self.gradient_norm = np.abs(self.gradient).max() if self.gradient.size > 0 else np.nan
        self.hessian_eigenvalues, _ = precisely_compute_eigenvalues(self.hessian)
        self.converged = stats.converged
        self.iterations = stats.iterations
        self.evaluations = stats.evaluations
        self.optimization_time = optimization_time
        self.errors = list(errors)

    def __str__(self) -> str:
        """Format inversion results as a string."""
        sections = [self._format_summary(), self._format_statistics(), self._format_utilities()]
        return "\n\n".join(sections)

    def _format_summary(self) -> str:
        """Format a summary table of inversion results."""
        header = [("Criterion", "Value"), ("Gradient", "Norm")]
        values = [format_number(self.objective), format_number(self.gradient_norm)]

        # add information about second order conditions
        if self.inversion.surplus.smooth or self.inversion.transform == 'exponential':
            if self.hessian_eigenvalues.size == 1:
                header.append(("", "Hessian"))
                values.append(format_number(self.hessian[0, 0]))
            else:
                header.extend([("Hessian", "Min Eigenvalue"), ("Hessian", "Max Eigenvalue")])
                values.extend([
                    format_number(self.hessian_eigenvalues.min()),
                    format_number(self.hessian_eigenvalues.max())
                ])

        header.append(("Expected", "Surplus"))
        values.append(format_number(self.surplus))
        return format_table(header, values, title="Inversion Results Summary")

    def _format_statistics(self) -> str:
        """Format a table of optimization statistics."""
        header = [("Computation", "Time"), ("Optimizer", "Converged"), ("Optimization", "Iterations")]
        values = [format_seconds(self.optimization_time), "Yes" if self.converged else "No", str(self.iterations)]
        header.append(("Criterion", "Evaluations"))
        values.append(str(self.evaluations))
        return format_table(header, values, title="Optimization Statistics")

    def _format_utilities(self) -> str:
        """Format recovered utilities along with implied and target shares."""
        header = ["Alternative", "Utility", "Probability", "Share"]
        rows = []
        for j in range(self.utilities.size):
            rows.append([
                str(j), format_number(self.utilities[j]), format_number(self.probabilities[j]),
                format_number(self.inversion.shares[j])
            ])
        return format_table(header, *rows, title="Recovered Utilities")

    def compare(self, true_utilities: Any) -> Array:
        """Compare recovered utilities with true ones.

        Parameters
        ----------
        true_utilities : `array-like`
            True utilities, which can contain ``numpy.nan`` if some are unknown.

        Returns
        -------
        `ndarray`
            Matrix with one row for each alternative and three columns: recovered utilities, true utilities, and
            residuals, which are recovered minus true utilities.

        """
        true_utilities = np.asarray(true_utilities, options.dtype)
        if true_utilities.shape != self.utilities.shape:
            raise exceptions.InvalidInputError(
                f"true_utilities must be a vector with {self.utilities.size} elements, not shape "
                f"{true_utilities.shape}."
            )
        return np.column_stack([self.utilities, true_utilities, self.utilities - true_utilities])

    def format_comparison(self, true_utilities: Any, title: Optional[str] = "Recovered and True Utilities") -> str:
        """Format a comparison of recovered and true utilities as a table."""
        table = self.compare(true_utilities)
        header = ["Alternative", ("Recovered", "Utility"), ("True", "Utility"), ("", "Residual")]
        rows = [[str(j)] + [format_number(x) for x in row] for j, row in enumerate(table)]
        return format_table(header, *rows, title=title)

    def to_dict(
            self, attributes: Sequence[str] = (
                'utilities', 'objective', 'gradient', 'gradient_norm', 'probabilities', 'surplus', 'hessian',
                'hessian_eigenvalues', 'converged', 'iterations', 'evaluations', 'optimization_time', 'errors'
            )) -> Dict[str, Any]:
        """Convert these results into a dictionary that maps attribute names to values.

        Parameters
        ----------
        attributes : `sequence of str, optional`
            Name of attributes that will be added to the dictionary. By default, all :class:`InversionResults`
            attributes are added except for :attr:`InversionResults.inversion`.

        Returns
        -------
        `dict`
            Mapping from attribute names to values.

        """
        return {k: getattr(self, k) for k in attributes}
