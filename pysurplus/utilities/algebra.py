"""Algebraic routines."""

from typing import Tuple
import warnings

import numpy as np
import scipy.linalg

from .basics import Array
from .. import options


def precisely_identify_psd(x: Array) -> Tuple[bool, bool]:
    """Compute the SVD of a matrix and use it to identify whether the matrix is PSD with absolute and relative
    tolerances.
    """
    psd = successful = True
    if x.size > 0 and np.isfinite([options.psd_atol, options.psd_rtol]).any():
        try:
            with warnings.catch_warnings():
                warnings.filterwarnings('error')
                _, s, v = scipy.linalg.svd(x)
                psd = np.allclose((v.T * s) @ v, x, atol=options.psd_atol, rtol=options.psd_rtol)
        except (ValueError, scipy.linalg.LinAlgError, scipy.linalg.LinAlgWarning):
            psd = successful = False

    return psd, successful


def precisely_compute_eigenvalues(x: Array) -> Tuple[Array, bool]:
    """Compute the eigenvalues of a real symmetric matrix."""
    try:
        with warnings.catch_warnings():
            warnings.filterwarnings('error')
            eigenvalues = scipy.linalg.eigvalsh(x) if x.size > 0 else x.flatten()
            successful = True
    except (ValueError, scipy.linalg.LinAlgError, scipy.linalg.LinAlgWarning):
        eigenvalues = np.full_like(np.diag(x), np.nan)
        successful = False

    return eigenvalues, successful


def compute_covariance_root(x: Array) -> Array:
    """Compute a root L of a PSD covariance matrix such that L @ L.T reproduces the matrix. This is the lower triangular
    Cholesky factor unless the matrix is singular, for example with perfectly correlated shocks, in which case the root
    comes from the eigendecomposition.
    """
    try:
        with warnings.catch_warnings():
            warnings.filterwarnings('error')
            return scipy.linalg.cholesky(x, lower=True)
    except (ValueError, scipy.linalg.LinAlgError, scipy.linalg.LinAlgWarning):
        eigenvalues, eigenvectors = scipy.linalg.eigh(x)
        return eigenvectors * np.sqrt(np.clip(eigenvalues, 0, None))
