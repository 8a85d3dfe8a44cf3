"""Immutable mechanism parameter records.

This module defines the geometry and joint limits of one arm (passive
positioning arm plus intracorporeal RCM mechanism) as flax PyTree
dataclasses, so a parameter record can be passed straight into jitted
kinematics functions. Records are built once and never mutated; use
``with_updates`` to derive a modified copy.
"""

import math
from typing import Tuple

import jax.numpy as jnp
from flax import struct
from jax import Array

from ..errors import InvalidInputError, InvalidParameterError

ACTIVE_JOINT_NAMES = (
    "yaw", "pitch", "insertion", "roll", "wrist_pitch", "wrist_yaw", "grip",
)
PASSIVE_JOINT_NAMES = (
    "column", "shoulder", "elbow", "mount", "tilt", "pan",
)

ACTIVE_LENGTH_NAMES = (
    "wrist_length", "gripper_length",
    "rcm_offset", "parallelogram_length", "parallelogram_height",
    "holder_offset", "housing_length",
    "shaft_radius", "link_radius",
)
PASSIVE_LENGTH_NAMES = (
    "column_offset", "link1_length", "link2_length", "link3_length", "rcm_drop",
    "passive_link_radius", "hub_radius",
)


@struct.dataclass
class JointLimits:
    """Per-joint bounds and default configuration for one kinematic chain.

    Attributes:
        names: Joint names in configuration order. Static for JIT.
        lower: Array of shape (dof,) with the minimum of each coordinate.
        upper: Array of shape (dof,) with the maximum of each coordinate.
        default: Array of shape (dof,) with the home configuration.
    """
    names: Tuple[str, ...] = struct.field(pytree_node=False)
    lower: Array
    upper: Array
    default: Array

    @classmethod
    def from_rows(cls, rows) -> "JointLimits":
        """Build from ``(name, lower, upper, default)`` rows."""
        names = tuple(r[0] for r in rows)
        return cls(
            names=names,
            lower=jnp.array([float(r[1]) for r in rows]),
            upper=jnp.array([float(r[2]) for r in rows]),
            default=jnp.array([float(r[3]) for r in rows]),
        )

    @property
    def dof(self) -> int:
        return len(self.names)

    def minimum(self, index: int) -> float:
        self._check_index(index)
        return float(self.lower[index])

    def maximum(self, index: int) -> float:
        self._check_index(index)
        return float(self.upper[index])

    def contains(self, q, tol: float = 1e-9) -> bool:
        """True when every coordinate of ``q`` lies within its bounds."""
        q = jnp.asarray(q)
        return bool(jnp.all(q >= self.lower - tol) & jnp.all(q <= self.upper + tol))

    def violations(self, q, tol: float = 1e-9) -> Tuple[str, ...]:
        """Names of the joints whose coordinate is outside its bounds."""
        q = jnp.asarray(q)
        outside = (q < self.lower - tol) | (q > self.upper + tol)
        return tuple(name for name, bad in zip(self.names, outside.tolist()) if bad)

    def _check_index(self, index: int) -> None:
        if not isinstance(index, int) or isinstance(index, bool):
            raise InvalidInputError(f"joint index must be an int, got {index!r}")
        if not 0 <= index < self.dof:
            raise InvalidInputError(
                f"joint index {index} out of range for {self.dof} joints"
            )


@struct.dataclass
class MechanismParameters:
    """Geometry of one arm: RCM mechanism, instrument and positioning arm.

    Active mechanism (all lengths in meters):
        wrist_length: wrist joint to gripper base.
        gripper_length: length of each gripper jaw.
        rcm_offset: distance from the yaw pivot down to the RCM.
        parallelogram_length: length of the parallelogram pitch link.
        parallelogram_height: lateral offset of the parallelogram plane
            from the instrument shaft.
        holder_offset: instrument holder to wrist joint (exposed shaft).
        housing_length: instrument housing behind the holder.
        shaft_radius: radius of shaft, wrist and jaw primitives.
        link_radius: radius of parallelogram, holder and housing primitives.

    Passive arm:
        column_offset: column height at zero column travel.
        link1_length, link2_length, link3_length: horizontal links.
        rcm_drop: mount hub down to the RCM.
        passive_link_radius, hub_radius: primitive radii.
    """
    wrist_length: float
    gripper_length: float
    rcm_offset: float
    parallelogram_length: float
    parallelogram_height: float
    holder_offset: float
    housing_length: float
    shaft_radius: float
    link_radius: float

    column_offset: float
    link1_length: float
    link2_length: float
    link3_length: float
    rcm_drop: float
    passive_link_radius: float
    hub_radius: float

    active_limits: JointLimits
    passive_limits: JointLimits

    @property
    def active_dof(self) -> int:
        return self.active_limits.dof

    @property
    def passive_dof(self) -> int:
        return self.passive_limits.dof

    def lengths(self) -> dict:
        """All scalar lengths and radii keyed by name."""
        return {name: getattr(self, name) for name in ACTIVE_LENGTH_NAMES + PASSIVE_LENGTH_NAMES}

    def validate(self) -> "MechanismParameters":
        """Check the record's invariants and return it unchanged."""
        for name, value in self.lengths().items():
            value = float(value)
            if not math.isfinite(value) or value <= 0.0:
                raise InvalidParameterError(f"{name} must be a positive length, got {value}")

        for label, limits, expected in (
            ("active", self.active_limits, ACTIVE_JOINT_NAMES),
            ("passive", self.passive_limits, PASSIVE_JOINT_NAMES),
        ):
            if limits.dof != len(expected):
                raise InvalidParameterError(
                    f"{label} chain needs {len(expected)} joints, got {limits.dof}"
                )
            shapes = {limits.lower.shape, limits.upper.shape, limits.default.shape}
            if shapes != {(limits.dof,)}:
                raise InvalidParameterError(f"{label} joint limit arrays disagree in shape")
            if not bool(jnp.all(limits.lower <= limits.upper)):
                raise InvalidParameterError(f"{label} joint limits have lower > upper")
            if not limits.contains(limits.default):
                raise InvalidParameterError(
                    f"{label} default configuration violates limits: "
                    f"{', '.join(limits.violations(limits.default))}"
                )

        # The wrist joint must be able to sit in front of the RCM.
        if float(self.active_limits.upper[2]) <= 0.0:
            raise InvalidParameterError("insertion upper limit must be positive")
        return self

    def with_updates(self, **changes) -> "MechanismParameters":
        """Copy of this record with ``changes`` applied, validated."""
        return self.replace(**changes).validate()


def default_parameters() -> MechanismParameters:
    """Nominal geometry of the instrument arm."""
    active = JointLimits.from_rows([
        ("yaw", -1.5, 1.5, 0.0),
        ("pitch", -1.2, 1.2, 0.3),
        ("insertion", 0.02, 0.25, 0.10),
        ("roll", -math.pi, math.pi, 0.0),
        ("wrist_pitch", -1.4, 1.4, 0.0),
        ("wrist_yaw", -1.4, 1.4, 0.0),
        ("grip", 0.0, 1.0, 0.3),
    ])
    passive = JointLimits.from_rows([
        ("column", 0.0, 0.4, 0.2),
        ("shoulder", -math.pi, math.pi, 0.0),
        ("elbow", -2.6, 2.6, 1.0),
        ("mount", -2.6, 2.6, -1.0),
        ("tilt", -0.8, 0.8, 0.0),
        ("pan", -0.8, 0.8, 0.0),
    ])
    return MechanismParameters(
        wrist_length=0.009,
        gripper_length=0.012,
        rcm_offset=0.25,
        parallelogram_length=0.30,
        parallelogram_height=0.06,
        holder_offset=0.40,
        housing_length=0.08,
        shaft_radius=0.0042,
        link_radius=0.025,
        column_offset=0.5,
        link1_length=0.45,
        link2_length=0.40,
        link3_length=0.12,
        rcm_drop=0.45,
        passive_link_radius=0.05,
        hub_radius=0.08,
        active_limits=active,
        passive_limits=passive,
    ).validate()
