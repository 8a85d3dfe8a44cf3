"""Core data structures for rcm_kinematics.

This module provides the immutable parameter records describing the
mechanism geometry and joint limits.
"""

from .parameters import (
    ACTIVE_JOINT_NAMES,
    PASSIVE_JOINT_NAMES,
    JointLimits,
    MechanismParameters,
    default_parameters,
)

__all__ = [
    "ACTIVE_JOINT_NAMES",
    "PASSIVE_JOINT_NAMES",
    "JointLimits",
    "MechanismParameters",
    "default_parameters",
]
