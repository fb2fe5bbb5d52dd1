"""Construction of shock draws, nodes, and weights for integration."""

import functools
import itertools
from typing import Optional, Tuple

import numpy as np
import scipy.stats

from .. import exceptions
from ..utilities.algebra import compute_covariance_root, precisely_identify_psd
from ..utilities.basics import Array, Options, StringRepresentation, format_options


class Integration(StringRepresentation):
    r"""Configuration for building shock draws or quadrature nodes and weights.

    Parameters
    ----------
    specification : `str`
        How to build nodes and weights. One of the following:

            - ``'monte_carlo'`` - Draw from the configured pseudo-random distribution. Integration weights are
              ``1 / size``. The ``seed`` field of ``options`` can be used to seed the random number generator.

            - ``'halton'`` - Generate nodes according to the Halton sequence and map them into the configured
              distribution with its inverse CDF. A different prime (starting with 2, 3, 5, etc.) is used for each
              dimension of integration. To eliminate correlation between dimensions, the first ``1000`` values are by
              default discarded in each dimension, and sequences are by default scrambled. The ``discard``,
              ``scramble``, and ``seed`` fields of ``options`` can be used to configure these default settings.

            - ``'product'`` - Generate nodes and weights according to the level-``size`` Gauss-Hermite product rule.
              In one dimension, this is simply the ``size``-node Gauss-Hermite rule from :func:`gauss_hermite`. In more
              dimensions, the rule is tensorized, so there are ``size ** dimensions`` nodes.

        Product rules are deterministic, so expected surplus computed with them is bit-reproducible. Monte Carlo
        approximation error instead shrinks with the number of draws.

    size : `int`
        The number of draws if ``specification`` is ``'monte_carlo'`` or ``'halton'``, and the level of the quadrature
        rule otherwise. A size that is not a positive integer raises :exc:`exceptions.InvalidInputError`, like an empty
        sample of :class:`Shocks`. Other invalid configurations raise :exc:`ValueError`.
    specification_options : `dict, optional`
        Options for the integration specification. All specifications support the following options:

            - **distribution** : (`str`) - Distribution of the shocks. One of ``'normal'`` (the default, independent
              standard normal shocks), ``'gumbel'`` (independent standard type-one extreme value shocks, which have
              mean equal to the Euler-Mascheroni constant), or ``'multivariate_normal'`` (mean-zero normal shocks with
              the covariance matrix given by ``covariance``). Product rules do not support ``'gumbel'``.

            - **covariance** : (`array-like`) - Covariance matrix of ``'multivariate_normal'`` shocks. It must be
              positive semidefinite and have as many rows as there are dimensions of integration. A matrix root is
              used to transform independent standard normal nodes.

        The ``'monte_carlo'`` and ``'halton'`` specifications support the following option:

            - **seed** : (`int`) - Passed to :class:`numpy.random.RandomState` to seed the random number generator
              before building nodes. By default, a seed is not passed to the random number generator. For ``'halton'``
              draws, this is only relevant if ``scramble`` is ``True`` (which is the default).

        The ``'halton'`` specification supports the following options:

            - **discard** : (`int`) - How many values at the beginning of each dimension's Halton sequence to discard.
              By default, the first ``1000`` values in each dimension are discarded.

            - **scramble** : (`bool`) - Whether to scramble the sequences. By default, sequences are scrambled.

    Examples
    --------
    The following code configures one million standard type-one extreme value draws:

    .. code-block:: python

       integration = pysurplus.Integration('monte_carlo', 10**6, {'distribution': 'gumbel', 'seed': 0})

    The following code configures the 50-node Gauss-Hermite rule:

    .. code-block:: python

       integration = pysurplus.Integration('product', 50)

    """

    _size: int
    _specification: str
    _distribution: str
    _covariance: Optional[Array]
    _description: str
    _builder: functools.partial
    _specification_options: Options

    def __init__(self, specification: str, size: int, specification_options: Optional[Options] = None) -> None:
        """Validate the specification and identify the builder."""
        specifications = {
            'monte_carlo': (functools.partial(monte_carlo), "with Monte Carlo simulation"),
            'halton': (functools.partial(halton), "with Halton sequences"),
            'product': (functools.partial(product_rule), f"according to the level-{size} Gauss-Hermite product rule")
        }
        distributions = {'normal', 'gumbel', 'multivariate_normal'}

        # validate the configuration
        if specification not in specifications:
            raise ValueError(f"specification must be one of {list(specifications.keys())}.")
        if not isinstance(size, int) or size < 1:
            raise exceptions.InvalidInputError(f"size must be a positive integer, not {size!r}.")
        if specification_options is not None and not isinstance(specification_options, dict):
            raise ValueError("specification_options must be None or a dict.")

        # initialize class attributes
        self._size = size
        self._specification = specification
        self._builder, self._description = specifications[specification]

        # set default options
        self._specification_options: Options = {'distribution': 'normal'}
        if specification == 'halton':
            self._specification_options.update({
                'discard': 1000,
                'scramble': True,
            })

        # update and validate options
        self._specification_options.update(specification_options or {})
        self._distribution = self._specification_options['distribution']
        if self._distribution not in distributions:
            raise ValueError(f"The specification option distribution must be one of {sorted(distributions)}.")
        if specification == 'product' and self._distribution == 'gumbel':
            raise ValueError("Gauss-Hermite product rules only support normal distributions.")
        if specification in {'monte_carlo', 'halton'}:
            seed = self._specification_options.get('seed')
            if seed is not None and not isinstance(seed, int):
                raise ValueError("The specification option seed must be None or an integer.")
        if specification == 'halton':
            discard = self._specification_options['discard']
            if not isinstance(discard, int) or discard < 0:
                raise ValueError("The specification option discard must be a nonnegative integer.")

        # validate any covariance matrix
        self._covariance = None
        if self._distribution == 'multivariate_normal':
            if self._specification_options.get('covariance') is None:
                raise ValueError("The specification option covariance is required for multivariate normal shocks.")
            self._covariance = np.asarray(self._specification_options['covariance'], np.float64)
            if self._covariance.ndim != 2 or self._covariance.shape[0] != self._covariance.shape[1]:
                raise ValueError("The specification option covariance must be a square matrix.")
            if not np.isfinite(self._covariance).all() or not np.allclose(self._covariance, self._covariance.T):
                raise ValueError("The specification option covariance must be a finite symmetric matrix.")
            if not precisely_identify_psd(self._covariance)[0]:
                raise ValueError("The specification option covariance must be positive semidefinite.")
            self._specification_options['covariance'] = self._covariance
        elif 'covariance' in self._specification_options:
            raise ValueError("The specification option covariance is only supported for multivariate normal shocks.")

    def __str__(self) -> str:
        """Format the configuration as a string."""
        return (
            f"Configured to construct {self._distribution.replace('_', ' ')} nodes and weights {self._description} "
            f"with options {format_options(self._specification_options)}."
        )

    def _build(self, dimensions: int) -> Tuple[Array, Array]:
        """Build nodes and weights."""
        if not isinstance(dimensions, int) or dimensions < 1:
            raise ValueError("dimensions must be a positive integer.")
        if self._covariance is not None and self._covariance.shape[0] != dimensions:
            raise ValueError(f"The covariance matrix must be {dimensions} by {dimensions}.")

        # seed any underlying random number generator
        builder = self._builder
        if self._specification in {'monte_carlo', 'halton'}:
            state = np.random.RandomState(self._specification_options.get('seed'))
            builder = functools.partial(builder, state=state)

        # build nodes that are standard normal or standard type-one extreme value
        gumbel = self._distribution == 'gumbel'
        if self._specification == 'halton':
            start = self._specification_options['discard']
            nodes, weights = builder(dimensions, self._size, start, self._specification_options['scramble'], gumbel)
        elif self._specification == 'monte_carlo':
            nodes, weights = builder(dimensions, self._size, gumbel=gumbel)
        else:
            nodes, weights = builder(dimensions, self._size)

        # correlate normal nodes
        if self._covariance is not None:
            nodes = nodes @ compute_covariance_root(self._covariance).T
        return nodes, weights


def monte_carlo(dimensions: int, size: int, state: np.random.RandomState, gumbel: bool = False) -> Tuple[Array, Array]:
    """Draw from a pseudo-random standard normal or standard type-one extreme value distribution."""
    nodes = state.gumbel(size=(size, dimensions)) if gumbel else state.normal(size=(size, dimensions))
    weights = np.repeat(1 / size, size)
    return nodes, weights


def halton(
        dimensions: int, size: int, start: int, scramble: bool, gumbel: bool, state: np.random.RandomState) -> (
        Tuple[Array, Array]):
    """Generate nodes and weights for integration according to the Halton sequence."""

    # generate Halton sequences
    sequences = np.zeros((size, dimensions))
    for dimension in range(dimensions):
        base = get_prime(dimension)
        factor = 1 / base
        indices = np.arange(start, start + size)
        while 1 - factor < 1:
            indices, remainders = np.divmod(indices, base)
            if scramble:
                remainders = state.permutation(base)[remainders]
            sequences[:, dimension] += factor * remainders
            factor /= base

    # transform the sequences and construct weights
    distribution = scipy.stats.gumbel_r() if gumbel else scipy.stats.norm()
    nodes = distribution.ppf(sequences)
    weights = np.repeat(1 / size, size)
    return nodes, weights


def get_prime(dimension: int) -> int:
    """Return the prime number corresponding to a dimension when constructing a Halton sequence."""
    primes = [
        2, 3, 5, 7, 11, 13, 17, 19, 23, 29, 31, 37, 41, 43, 47, 53, 59, 61, 67, 71, 73, 79, 83, 89, 97, 101, 103, 107,
        109, 113, 127, 131, 137, 139, 149, 151, 157, 163, 167, 173, 179, 181, 191, 193, 197, 199, 211, 223, 227, 229
    ]
    try:
        return primes[dimension]
    except IndexError:
        raise ValueError(f"Halton sequences are only available for {len(primes)} dimensions here.")


@functools.lru_cache()
def gauss_hermite(order: int) -> Tuple[Array, Array]:
    """Compute nodes and weights of the univariate Gauss-Hermite rule, rescaled to integrate against the standard normal
    density. Nodes are multiplied by the square root of two and weights are divided by the square root of pi so that
    they sum to one.
    """
    if not isinstance(order, int) or order < 1:
        raise ValueError("order must be a positive integer.")
    nodes, weights = np.polynomial.hermite.hermgauss(order)
    nodes = np.sqrt(2) * nodes
    weights = weights / np.sqrt(np.pi)
    nodes.flags.writeable = weights.flags.writeable = False
    return nodes, weights


def product_rule(dimensions: int, level: int) -> Tuple[Array, Array]:
    """Generate nodes and weights for integration according to the Gauss-Hermite product rule."""
    base_nodes, base_weights = gauss_hermite(level)
    nodes = np.array(list(itertools.product(base_nodes, repeat=dimensions)))
    weights = functools.reduce(np.kron, itertools.repeat(base_weights, dimensions))
    return nodes, weights
