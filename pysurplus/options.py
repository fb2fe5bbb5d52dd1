r"""Global options.

Attributes
----------
digits : `int`
    Number of digits displayed by status updates. The default number of digits is ``7``. The number of digits can be
    changed to, for example, ``2``, with ``pysurplus.options.digits = 2``.
verbose : `bool`
    Whether to output status updates. By default, verbosity is turned on. Verbosity can be turned off with
    ``pysurplus.options.verbose = False``.
verbose_tracebacks : `bool`
    Whether to include full tracebacks in error messages. By default, full tracebacks are turned off. These can be
    useful when attempting to find the source of an error message. Tracebacks can be turned on with
    ``pysurplus.options.verbose_tracebacks = True``.
verbose_output : `callable`
    Function used to output status updates. The default function is simply ``print``. The function can be changed, for
    example, to include an indicator that statuses are from this package, with
    ``pysurplus.options.verbose_output = lambda x: print(f"pysurplus: {x}")``.
flush_output : `bool`
    Whether to call ``sys.stdout.flush()`` after outputting a status update. By default, output is not flushed to
    standard output. To force standard output flushes after every status update, set
    ``pysurplus.options.flush_output = True``.
dtype : `dtype`
    The data type used for internal calculations, which is by default ``numpy.float64``. Values are always converted to
    ``numpy.float64`` before being passed to optimization routines, which may not support extended precision.
finite_differences_epsilon : `float`
    Perturbation :math:`\epsilon` used to numerically approximate derivatives with central finite differences:

    .. math:: f'(x) = \frac{f(x + \epsilon / 2) - f(x - \epsilon / 2)}{\epsilon}.

    By default, this is the square root of the machine epsilon: ``numpy.sqrt(numpy.finfo(options.dtype).eps)``. It is
    useful for checking analytic choice probabilities and Hessians of smooth surplus functions.

weights_tol : `float`
    Tolerance for detecting shock weights that do not sum to one, which is by default ``1e-10``. Weights that sum to
    something further than this from one are rejected when shocks are constructed, since the weighted sum would no
    longer approximate an expectation. The check can be disabled by setting this to ``numpy.inf``.
psd_atol : `float`
    Absolute tolerance for detecting covariance matrices of multivariate normal shocks that are not positive
    semidefinite. The default tolerance is ``1e-8``.
psd_rtol : `float`
    Relative tolerance for detecting covariance matrices that are not positive semidefinite, which is by default also
    ``1e-8``.

"""

import numpy as _np


digits = 7
verbose = True
verbose_tracebacks = False
verbose_output = print
flush_output = False
dtype = _np.float64
finite_differences_epsilon = _np.sqrt(_np.finfo(dtype).eps)
weights_tol = 1e-10
psd_atol = psd_rtol = 1e-8
