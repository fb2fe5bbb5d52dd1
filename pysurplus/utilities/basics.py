"""Basic functionality."""

import functools
import inspect
import re
import sys
import traceback
from typing import Any, Callable, Dict, List, Optional, Sequence, Set, Type
import warnings

import numpy as np

from .. import options


# define common types
Array = Any
Options = Dict[str, Any]


def warn(message: Any) -> None:
    """Output a warning."""
    old_formatwarning = warnings.formatwarning
    warnings.formatwarning = lambda x, *_, **__: f"{x}\n"
    warnings.warn(message)
    warnings.formatwarning = old_formatwarning


def output(message: Any) -> None:
    """Print a message if verbosity is turned on."""
    if options.verbose:
        if not callable(options.verbose_output):
            raise TypeError("options.verbose_output should be callable.")
        options.verbose_output(str(message))
        if options.flush_output:
            sys.stdout.flush()


def format_seconds(seconds: float) -> str:
    """Prepare a number of seconds to be displayed as a string."""
    hours, remainder = divmod(int(round(seconds)), 60**2)
    minutes, seconds = divmod(remainder, 60)
    return f'{hours:02}:{minutes:02}:{seconds:02}'


def format_number(number: Any) -> str:
    """Prepare a number to be displayed as a string."""
    if not isinstance(options.digits, int):
        raise TypeError("options.digits must be an int.")
    template = f"{{:^+{options.digits + 6}.{options.digits - 1}E}}"
    formatted = template.format(float(number))
    if "NAN" in formatted:
        formatted = formatted.replace("+", " ")
    return formatted


def format_options(mapping: Options) -> str:
    """Prepare a mapping of options to be displayed as a string."""
    strings: List[str] = []
    for key, value in mapping.items():
        if callable(value):
            value = f'{value.__module__}.{value.__qualname__}'
        elif isinstance(value, float):
            value = format_number(value)
        elif isinstance(value, np.ndarray):
            value = f'{value.shape[0]}x{value.shape[1]} matrix' if value.ndim == 2 else f'{value.size}-vector'
        strings.append(f'{key}: {value}')

    joined = ', '.join(strings)
    return f'{{{joined}}}'


def format_table(
        header: Sequence, *data: Sequence, title: Optional[str] = None, include_border: bool = True,
        include_header: bool = True) -> str:
    """Format table information as a string with centered fixed-width columns and optionally a title, border, and
    header. Header cells can be strings or sequences of strings, which are stacked and aligned at the bottom.
    """
    columns = [[c] if isinstance(c, str) else list(c) for c in header]
    depth = max(len(c) for c in columns)
    header_rows = [[([""] * (depth - len(c)) + c)[i] for c in columns] for i in range(depth)]
    header_rows = [r for r in header_rows if any(r)]
    data_rows = [[str(c) for c in r] + [""] * (len(columns) - len(r)) for r in data]

    # columns are as wide as their widest cell
    widths = [max(len(r[i]) for r in header_rows + data_rows) for i in range(len(columns))]
    format_row = lambda r: "  ".join(c.center(w) for c, w in zip(r, widths))
    border = "=" * len(format_row([""] * len(widths)))

    lines = [] if title is None else [f"{title}:"]
    if include_border:
        lines.append(border)
    if include_header:
        lines.extend(format_row(r) for r in header_rows)
        lines.append(format_row(["-" * w for w in widths]))
    lines.extend(format_row(r) for r in data_rows)
    if include_border:
        lines.append(border)
    return "\n".join(lines)


def compute_finite_differences(f: Callable[[Array], Array], x: Array, epsilon_scale: float = 1.0) -> Array:
    """Approximate derivatives with central finite differences. Scalar-valued functions give a gradient vector and
    vector-valued functions give a Jacobian with one column for each element of x.
    """
    epsilon = epsilon_scale * options.finite_differences_epsilon

    arrays = []
    for index in range(x.size):
        x1 = x.copy()
        x2 = x.copy()
        x1[index] += epsilon / 2
        x2[index] -= epsilon / 2
        arrays.append((np.asarray(f(x1)) - np.asarray(f(x2))) / epsilon)

    if arrays[0].ndim == 0:
        return np.array(arrays)
    return np.column_stack(arrays)


class SolverStats(object):
    """Structured statistics returned by a generic numerical solver."""

    converged: bool
    iterations: int
    evaluations: int

    def __init__(self, converged: bool = True, iterations: int = 0, evaluations: int = 0) -> None:
        """Structure the statistics."""
        self.converged = converged
        self.iterations = iterations
        self.evaluations = evaluations


class StringRepresentation(object):
    """Object that defers to its string representation."""

    def __repr__(self) -> str:
        """Defer to the string representation."""
        return str(self)


class Error(Exception):
    """Errors that are indistinguishable from others with the same message, which is parsed from the docstring."""

    stack: Optional[str]

    def __init__(self) -> None:
        """Optionally store the full current traceback for debugging purposes."""
        if options.verbose_tracebacks:
            self.stack = ''.join(traceback.format_stack())
        else:
            self.stack = None

    def __eq__(self, other: Any) -> bool:
        """Defer to hashes."""
        return hash(self) == hash(other)

    def __hash__(self) -> int:
        """Hash this instance such that in collections it is indistinguishable from others with the same message."""
        return hash((type(self).__name__, str(self)))

    def __repr__(self) -> str:
        """Defer to the string representation."""
        return str(self)

    def __str__(self) -> str:
        """Replace docstring markdown with simple text."""
        doc = inspect.getdoc(self)
        assert doc is not None

        # math becomes lowercase text without braces or backslashes, and other roles and backticks are dropped
        simplify_math = lambda m: re.sub(r'[\\{}\s]+', ' ', m.group(1)).strip().lower()
        doc = re.sub(r':math:`([^`]+)`', simplify_math, doc)
        doc = re.sub(r'\s+', ' ', re.sub(r':[a-z\-]+:|`', '', doc))

        # optionally add the full traceback
        if self.stack is not None:
            doc = f"{doc} Traceback:\n\n{self.stack}\n"
        return doc


class DetailedError(Error):
    """Error supplemented with details about the offending input."""

    _details: str

    def __init__(self, details: str) -> None:
        """Store the details."""
        super().__init__()
        self._details = details

    def __str__(self) -> str:
        """Supplement the error with the details."""
        return f"{super().__str__()} Details: {self._details}"


class NumericalError(Error):
    """Floating point issues."""

    _messages: Set[str]

    def __init__(self) -> None:
        super().__init__()
        self._messages: Set[str] = set()

    def __str__(self) -> str:
        """Supplement the error with the messages."""
        combined = ", ".join(sorted(self._messages))
        return f"{super().__str__()} Errors encountered: {combined}."


class NumericalErrorHandler(object):
    """Decorator that appends errors to a function's returned list when numerical errors are encountered."""

    error: Type[NumericalError]

    def __init__(self, error: Type[NumericalError]) -> None:
        """Store the error class."""
        self.error = error

    def __call__(self, decorated: Callable) -> Callable:
        """Decorate the function."""
        @functools.wraps(decorated)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            """Configure NumPy to detect numerical errors."""
            detector = NumericalErrorDetector(self.error)
            with np.errstate(divide='call', over='call', under='ignore', invalid='call', call=detector):
                returned = decorated(*args, **kwargs)
            if detector.detected is not None:
                returned[-1].append(detector.detected)
            return returned

        return wrapper


class NumericalErrorDetector(object):
    """Error detector to be passed to NumPy's error call function."""

    error: Type[NumericalError]
    detected: Optional[NumericalError]

    def __init__(self, error: Type[NumericalError]) -> None:
        """By default no error is detected."""
        self.error = error
        self.detected = None

    def __call__(self, message: str, _: int) -> None:
        """Initialize the error and store the error message."""
        if self.detected is None:
            self.detected = self.error()
        self.detected._messages.add(message)
