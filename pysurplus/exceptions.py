"""Exceptions raised or reported when computing and inverting expected surplus."""

import collections
from typing import Any, List, Sequence

from .utilities.basics import DetailedError, Error, NumericalError


class MultipleErrors(Error):
    """Multiple errors that occurred around the same time."""

    _errors: List[Error]

    def __new__(cls, errors: Sequence[Error]) -> Any:
        """Defer to the class of a singular error."""
        if len(errors) == 1:
            return next(iter(errors))
        return super().__new__(cls)

    def __init__(self, errors: Sequence[Error]) -> None:
        """Store distinct errors."""
        super().__init__()
        self._errors = list(collections.OrderedDict.fromkeys(errors))

    def __str__(self) -> str:
        """Combine all the error messages."""
        return "\n".join(str(e) for e in self._errors)


class InvalidInputError(DetailedError):
    """Encountered invalid inputs.

    Shock samples need at least one draw or node and finite, nonnegative weights that sum to one. Target shares need to
    be finite and strictly positive. Utilities, shares, characteristics, and shocks need to have matching dimensions.

    """


class NumericalDegeneracyError(NumericalError):
    """Encountered non-finite values."""


class SurplusDegeneracyError(NumericalDegeneracyError):
    """Encountered non-finite values when computing expected surplus, choice probabilities, or the Hessian of expected
    surplus.

    This problem is often due to overflow from extremely large utilities or shocks, and can sometimes be mitigated by
    choosing smaller initial utilities or rescaling the shocks.

    """


class CriterionDegeneracyError(NumericalDegeneracyError):
    r"""Encountered non-finite values when computing the inversion criterion or its derivatives.

    With an exponential transform, this problem is often due to overflow in :math:`\exp(W(v))` when utilities grow
    large, and can sometimes be mitigated by choosing initial utilities closer to zero or a more conservative
    optimization routine.

    """


class ConvergenceFailure(Error):
    """The optimization routine failed to converge within its iteration or time limit.

    The best utilities found so far were returned. This problem can sometimes be mitigated by increasing the time limit
    or the maximum number of iterations, loosening the gradient tolerance, choosing different initial utilities, or
    making sure that all target shares are bounded away from zero.

    """
