"""
RCM Kinematics: kinematics, clearance and uncertainty propagation for a
dual-arm surgical manipulator with a remote-center-of-motion mechanism.

All computations are pure functions of their inputs and an immutable
parameter record, written with JAX primitives.
"""

import jax
jax.config.update("jax_enable_x64", True)

# Import core modules
from . import transforms
from . import core
from . import io
from .core import MechanismParameters, default_parameters
from .engine import KinematicsEngine
from .errors import (
    InvalidInputError,
    InvalidParameterError,
    KinematicsError,
    ParameterFileError,
)
from .io import load_parameters

__version__ = "0.1.0"
__all__ = [
    "transforms",
    "core",
    "io",
    "KinematicsEngine",
    "MechanismParameters",
    "default_parameters",
    "load_parameters",
    "KinematicsError",
    "InvalidInputError",
    "InvalidParameterError",
    "ParameterFileError",
]
