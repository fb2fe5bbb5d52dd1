"""Fixtures used by tests."""

import os
from typing import cast, Any, Iterator

import numpy as np
import pytest

from pysurplus import Integration, Shocks, build_shocks, options


@pytest.fixture(scope='session', autouse=True)
def configure() -> Iterator[None]:
    """Turn off status updates. Next, if a DTYPE environment variable is set in this testing environment that is
    different from the default data type, use it for all numeric calculations.
    """
    old_verbose = options.verbose
    options.verbose = False

    # use any different data type for all numeric calculations
    old_dtype = options.dtype
    dtype_string = os.environ.get('DTYPE')
    if dtype_string:
        options.dtype = cast(Any, np.dtype(dtype_string))
        if np.finfo(options.dtype).dtype == old_dtype:
            pytest.skip(f"The {dtype_string} data type is the same as the default one in this environment.")

    # run tests before reverting all changes
    yield
    options.dtype = old_dtype
    options.verbose = old_verbose


@pytest.fixture(scope='session')
def gumbel_shocks() -> Shocks:
    """Draw one million standard type-one extreme value shocks for each of four alternatives."""
    return build_shocks(Integration('monte_carlo', 10**6, {'distribution': 'gumbel', 'seed': 0}), 4)


@pytest.fixture(scope='session')
def small_gumbel_shocks() -> Shocks:
    """Draw two hundred thousand standard type-one extreme value shocks for each of three alternatives."""
    return build_shocks(Integration('monte_carlo', 2 * 10**5, {'distribution': 'gumbel', 'seed': 1}), 3)


@pytest.fixture(scope='session')
def normal_shocks() -> Shocks:
    """Draw one million standard normal shocks for each of three alternatives."""
    return build_shocks(Integration('monte_carlo', 10**6, {'seed': 2}), 3)
