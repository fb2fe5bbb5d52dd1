"""Construction of shock samples."""

from typing import Any, Tuple

import numpy as np
import scipy.linalg

from . import exceptions, options
from .configurations.integration import Integration, gauss_hermite
from .primitives import Shocks
from .utilities.basics import Array


def build_shocks(integration: Integration, dimensions: int) -> Shocks:
    r"""Build a sample of shocks.

    Parameters
    ----------
    integration : `Integration`
        :class:`Integration` configuration for how to build nodes and weights.
    dimensions : `int`
        Number of columns, which is typically the number of alternatives :math:`J`, or the number of random
        coefficients when shocks will be mapped into product space with :func:`build_characteristic_shocks`.

    Returns
    -------
    `Shocks`
        The :math:`S \times` ``dimensions`` sample.

    Examples
    --------
    The following code builds one million standard type-one extreme value shocks for five alternatives:

    .. code-block:: python

       integration = pysurplus.Integration('monte_carlo', 10**6, {'distribution': 'gumbel', 'seed': 0})
       shocks = pysurplus.build_shocks(integration, 5)

    """
    if not isinstance(integration, Integration):
        raise TypeError("integration must be an Integration instance.")
    nodes, weights = integration._build(dimensions)
    return Shocks(nodes, weights)


def build_characteristic_shocks(characteristics: Any, tastes: Shocks) -> Shocks:
    r"""Map random taste shocks into product space.

    Given random tastes :math:`\nu_s` for :math:`M` characteristics and the :math:`M \times J` matrix of characteristics
    :math:`Z`, the shock to alternative :math:`j` at node :math:`s` is :math:`\varepsilon_{js} = \nu_s' Z_j`. Weights
    are those of the tastes.

    Parameters
    ----------
    characteristics : `array-like`
        The :math:`M \times J` matrix of characteristics.
    tastes : `Shocks`
        The :math:`S \times M` sample of random tastes.

    Returns
    -------
    `Shocks`
        The :math:`S \times J` sample of product-level shocks.

    """
    characteristics = np.asarray(characteristics, options.dtype)
    if characteristics.ndim != 2:
        raise exceptions.InvalidInputError("characteristics must be a matrix.")
    if characteristics.shape[0] != tastes.J:
        raise exceptions.InvalidInputError(
            f"There are {tastes.J} random tastes but {characteristics.shape[0]} characteristics."
        )
    return Shocks(tastes.nodes @ characteristics, tastes.weights)


def combine_shocks(*shocks: Shocks) -> Shocks:
    """Combine independent samples into their tensor product.

    Every node of each sample is paired with every node of the others. Columns are concatenated in the order of the
    samples and weights are multiplied. This is useful for integrating some dimensions with quadrature and others with
    simulation.

    """
    if not shocks:
        raise ValueError("At least one sample of shocks must be specified.")
    if not all(isinstance(s, Shocks) for s in shocks):
        raise TypeError("All arguments must be Shocks instances.")
    nodes = shocks[0].nodes
    weights = shocks[0].weights
    for other in shocks[1:]:
        nodes = np.hstack([np.repeat(nodes, other.S, axis=0), np.tile(other.nodes, (nodes.shape[0], 1))])
        weights = np.kron(weights, other.weights)
    return Shocks(nodes, weights)


def build_gauss_hermite(order: int) -> Tuple[Array, Array]:
    """Build nodes and weights of the univariate Gauss-Hermite rule for the standard normal density.

    Nodes are those of :func:`numpy.polynomial.hermite.hermgauss` multiplied by the square root of two, and weights are
    divided by the square root of pi, so they sum to one. Rules are cached, so repeated calls are identical.

    """
    nodes, weights = gauss_hermite(order)
    return nodes.copy(), weights.copy()


def build_toeplitz_covariance(size: int, correlation: float) -> Array:
    r"""Build the covariance matrix :math:`\Sigma_{jk} = \rho^{|j - k|}` of unit-variance shocks whose correlation
    decays with the distance between alternatives.
    """
    if not isinstance(size, int) or size < 1:
        raise ValueError("size must be a positive integer.")
    if not -1 <= correlation <= 1:
        raise ValueError("correlation must be between -1 and 1.")
    return scipy.linalg.toeplitz(correlation ** np.arange(size, dtype=np.float64))
