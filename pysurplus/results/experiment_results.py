"""Results of a numerical experiment."""

from typing import TYPE_CHECKING

import numpy as np

from .inversion_results import InversionResults
from ..utilities.basics import Array, StringRepresentation


# only import objects that create import cycles when checking types
if TYPE_CHECKING:
    from ..experiments import Experiment  # noqa


class ExperimentResults(StringRepresentation):
    """Results of a numerical experiment.

    Attributes
    ----------
    experiment : `Experiment`
        Experiment that created these results.
    inversion_results : `InversionResults`
        :class:`InversionResults` of the underlying inversion.
    true_utilities : `ndarray`
        True utilities, which are ``numpy.nan`` where unknown.
    table : `ndarray`
        Matrix with one row for each alternative and columns of recovered utilities, true utilities, and residuals.
    residual_norm : `float`
        Infinity norm of residuals for which true utilities are known, which is ``numpy.nan`` if none are.
    converged : `bool`
        Whether the optimization routine converged.

    """

    experiment: 'Experiment'
    inversion_results: InversionResults
    true_utilities: Array
    table: Array
    residual_norm: float
    converged: bool

    def __init__(self, experiment: 'Experiment', inversion_results: InversionResults) -> None:
        """Compare recovered utilities with true ones."""
        self.experiment = experiment
        self.inversion_results = inversion_results
        self.true_utilities = experiment.true_utilities
        self.table = inversion_results.compare(self.true_utilities)
        residuals = self.table[:, 2]
        known = np.isfinite(residuals)
        self.residual_norm = np.abs(residuals[known]).max() if known.any() else np.nan
        self.converged = inversion_results.converged

    def __str__(self) -> str:
        """Format the comparison as a string."""
        return self.inversion_results.format_comparison(self.true_utilities, title=self.experiment.title)
