"""Exception taxonomy for the kinematics engine.

Malformed input is raised immediately. Solver outcomes (unreachable target,
non-convergence, propagated failure) are not exceptions: they come back as
result records with ``success=False``.
"""


class KinematicsError(Exception):
    """Base class for errors raised by rcm_kinematics."""


class InvalidInputError(KinematicsError, ValueError):
    """Wrong configuration arity, malformed pose, or index out of range."""


class InvalidParameterError(KinematicsError, ValueError):
    """A mechanism parameter record violates its invariants."""


class ParameterFileError(KinematicsError):
    """A parameter file could not be read or is missing required entries."""
