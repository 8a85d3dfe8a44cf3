"""Public operation surface of the kinematics engine.

``KinematicsEngine`` binds one immutable parameter record to the functional
API of this package and adds the joint-limit and default-configuration
accessors. It holds no other state, so one engine can be shared freely.
"""

from typing import Optional, Tuple

import jax

from . import active, clearance, passive, unscented
from .core import MechanismParameters, default_parameters
from .geometry import Primitive
from .io import load_parameters

Array = jax.Array


class KinematicsEngine:
    """Kinematics, clearance and uncertainty queries for one arm design."""

    def __init__(self, params: Optional[MechanismParameters] = None):
        self._params = (default_parameters() if params is None else params).validate()

    @classmethod
    def from_file(cls, path: str) -> "KinematicsEngine":
        """Engine for the parameter file at ``path``."""
        return cls(load_parameters(path))

    @property
    def parameters(self) -> MechanismParameters:
        return self._params

    # Forward kinematics
    def intra_fk(self, port: Array, q: Array) -> Array:
        return active.intra_fk(self._params, port, q)

    def passive_fk(self, base: Array, q: Array) -> Array:
        return passive.passive_fk(self._params, base, q)

    def passive_jacobian(self, base: Array, q: Array, step: float = 1e-6) -> Array:
        return passive.passive_jacobian(self._params, base, q, step)

    # Inverse kinematics
    def intra_ik(self, port: Array, pose: Array, reference: Optional[Array] = None) -> active.IKResult:
        return active.intra_ik(self._params, port, pose, reference)

    def passive_ik(self, base: Array, target: Array, step: float = 1e-6, **kwargs) -> passive.PassiveIKResult:
        return passive.passive_ik(self._params, base, target, step, **kwargs)

    # Collision primitives and clearance
    def intra_primitives(self, port: Array, q: Array) -> Tuple[Primitive, ...]:
        return active.intra_primitives(self._params, port, q)

    def passive_primitives(self, base: Array, q: Array) -> Tuple[Primitive, ...]:
        return passive.passive_primitives(self._params, base, q)

    def full_clearances(self, base1, base2, q_passive1, q_passive2, target) -> clearance.ClearanceResult:
        return clearance.full_clearances(self._params, base1, base2, q_passive1, q_passive2, target)

    def passive_clearances(self, base1, base2, q_passive1, q_passive2) -> clearance.ClearanceResult:
        return clearance.passive_clearances(self._params, base1, base2, q_passive1, q_passive2)

    def num_active_clearances(self) -> int:
        return clearance.num_active_clearances()

    def num_passive_clearances(self) -> int:
        return clearance.num_passive_clearances()

    # Uncertainty propagation
    def unscented_ik(self, port, mean_pose, pos_var, rot_var) -> unscented.UnscentedResult:
        return unscented.unscented_ik(self._params, port, mean_pose, pos_var, rot_var)

    def unscented_clearance(
        self, base1, base2, q_passive1, q_passive2, mean_target, pos_var, rot_var
    ) -> unscented.UnscentedResult:
        return unscented.unscented_clearance(
            self._params, base1, base2, q_passive1, q_passive2, mean_target, pos_var, rot_var
        )

    # Joint limits and defaults
    def get_active_joint_min(self, index: int) -> float:
        return self._params.active_limits.minimum(index)

    def get_active_joint_max(self, index: int) -> float:
        return self._params.active_limits.maximum(index)

    def get_passive_joint_min(self, index: int) -> float:
        return self._params.passive_limits.minimum(index)

    def get_passive_joint_max(self, index: int) -> float:
        return self._params.passive_limits.maximum(index)

    def default_active_config(self) -> Array:
        return self._params.active_limits.default

    def default_passive_config(self) -> Array:
        return self._params.passive_limits.default
