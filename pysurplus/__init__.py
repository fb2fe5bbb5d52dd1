"""Public-facing objects."""

from . import exceptions, options
from .configurations.integration import Integration
from .configurations.optimization import Optimization
from .construction import (
    build_characteristic_shocks, build_gauss_hermite, build_shocks, build_toeplitz_covariance, combine_shocks
)
from .experiments import Experiment, MixedLogitExperiment, PureCharacteristicsExperiment, SurplusInversionExperiment
from .inversion import Inversion
from .primitives import Shocks
from .results.experiment_results import ExperimentResults
from .results.inversion_results import InversionResults
from .surplus import LogitSurplus, ProbitSurplus, SimulatedSurplus, Surplus, compute_logit_utilities
from .version import __version__

__all__ = [
    'exceptions', 'options', 'Integration', 'Optimization', 'build_characteristic_shocks', 'build_gauss_hermite',
    'build_shocks', 'build_toeplitz_covariance', 'combine_shocks', 'Experiment', 'MixedLogitExperiment',
    'PureCharacteristicsExperiment', 'SurplusInversionExperiment', 'Inversion', 'Shocks', 'ExperimentResults',
    'InversionResults', 'LogitSurplus', 'ProbitSurplus', 'SimulatedSurplus', 'Surplus', 'compute_logit_utilities',
    '__version__'
]
