from .api import MTL, cv_mtl, fit_mtl
from .cv import CVResult, cross_validate, make_folds
from .exceptions import (
    DimensionMismatchError,
    InvalidConfigError,
    LineSearchFailure,
    MTLError,
)
from .model import MTLModel, calc_error, predict
from .sim import SimulatedData, simulate_mtl
from .solver import SolverOptions, accelerated_gradient
from .strategies import ProblemType, Regularization

__all__ = [
    "CVResult",
    "DimensionMismatchError",
    "InvalidConfigError",
    "LineSearchFailure",
    "MTL",
    "MTLError",
    "MTLModel",
    "ProblemType",
    "Regularization",
    "SimulatedData",
    "SolverOptions",
    "accelerated_gradient",
    "calc_error",
    "cross_validate",
    "cv_mtl",
    "fit_mtl",
    "make_folds",
    "predict",
    "simulate_mtl",
]
