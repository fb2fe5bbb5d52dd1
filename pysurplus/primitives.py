"""Primitive data structures that constitute the foundation of expected surplus computation."""

from typing import Any, Optional

import numpy as np

from . import exceptions, options
from .utilities.basics import Array, StringRepresentation, format_number


class Shocks(StringRepresentation):
    r"""Sample of random shocks, or quadrature nodes, with integration weights.

    Expected surplus is approximated by a weighted sum over the sample,

    .. math:: W(v) \approx \sum_s w_s \max_j (v_j + \varepsilon_{js}).

    Parameters
    ----------
    nodes : `array-like`
        The :math:`S \times J` matrix of shocks :math:`\varepsilon_{js}`, with one row for each draw or quadrature node
        and one column for each alternative (or each random coefficient, before shocks are mapped into product space
        with :func:`build_characteristic_shocks`).
    weights : `array-like, optional`
        Integration weights :math:`w_s`, which must be finite, nonnegative, and sum to one up to
        :attr:`options.weights_tol`. By default, each node gets weight :math:`1 / S`.

    Attributes
    ----------
    S : `int`
        Number of draws or nodes.
    J : `int`
        Number of columns.
    nodes : `ndarray`
        The :math:`S \times J` matrix of shocks.
    weights : `ndarray`
        Integration weights.

    """

    S: int
    J: int
    nodes: Array
    weights: Array
    _draws: Array

    def __init__(self, nodes: Any, weights: Optional[Any] = None) -> None:
        """Validate and store the sample."""
        nodes = np.asarray(nodes, options.dtype)
        if nodes.ndim != 2:
            raise exceptions.InvalidInputError(f"nodes must be a matrix, but they have {nodes.ndim} dimensions.")
        if nodes.shape[0] < 1 or nodes.shape[1] < 1:
            raise exceptions.InvalidInputError(f"nodes must have at least one row and column, not shape {nodes.shape}.")
        if not np.isfinite(nodes).all():
            raise exceptions.InvalidInputError("nodes must be finite.")
        self.S, self.J = nodes.shape
        self.nodes = nodes

        # validate the weights
        if weights is None:
            weights = np.full(self.S, 1 / self.S, options.dtype)
        weights = np.array(weights, options.dtype).flatten()
        if weights.size != self.S:
            raise exceptions.InvalidInputError(f"There are {self.S} nodes but {weights.size} weights.")
        if not np.isfinite(weights).all() or (weights < 0).any():
            raise exceptions.InvalidInputError("weights must be finite and nonnegative.")
        total = weights.sum()
        if np.abs(total - 1) > options.weights_tol:
            raise exceptions.InvalidInputError(
                f"weights sum to {format_number(total).strip()}, which is further than {options.weights_tol} from one."
            )
        self.weights = weights

        # store draws for each alternative contiguously
        self._draws = np.ascontiguousarray(nodes.T)

    def __str__(self) -> str:
        """Format the sample as a string."""
        return f"Shocks with {self.S} nodes for each of {self.J} columns."
