"""Kinematics of the intracorporeal (active) RCM mechanism.

The mechanism is a double parallelogram pivoting about a yaw axis that
passes through the remote center of motion, carrying an instrument with a
two-axis wrist and a two-jaw gripper. Configurations have seven
coordinates::

    [yaw, pitch, insertion, roll, wrist_pitch, wrist_yaw, grip]

Insertion is the distance from the RCM to the wrist joint along the shaft.
All poses are (4, 4) homogeneous transforms; the port frame has its origin
at the RCM with +z pointing into the patient.
"""

import logging
import math
from typing import Dict, NamedTuple, Optional, Tuple

import jax
import jax.numpy as jnp
import numpy as np

from .core import MechanismParameters
from .errors import InvalidInputError
from .geometry import Cylisphere
from .transforms import se3, so3

Array = jax.Array

logger = logging.getLogger(__name__)

ACTIVE_FRAME_NAMES = (
    "yaw_pivot", "pitch_link", "coupler", "holder", "wrist_joint", "wrist",
)
ACTIVE_PRIMITIVE_NAMES = (
    "pitch_link", "coupler_link", "holder", "housing", "shaft", "wrist",
    "jaw_left", "jaw_right",
)


class IKResult(NamedTuple):
    """Outcome of a closed-form IK solve.

    ``q`` is only meaningful when ``success`` is True; ``reason`` explains a
    failure.
    """
    q: Array
    success: bool
    reason: str = ""


def check_config(q, dof: int, label: str) -> Array:
    """Return ``q`` as a float array, raising if its arity is not ``dof``."""
    q = jnp.asarray(q, dtype=float)
    if q.shape != (dof,):
        raise InvalidInputError(f"{label} configuration must have shape ({dof},), got {q.shape}")
    return q


def check_pose(T, label: str) -> Array:
    """Return ``T`` as a float array, raising unless it is a rigid transform.

    Under ``jit`` or ``vmap`` only the shape can be checked.
    """
    T = jnp.asarray(T, dtype=float)
    try:
        valid = se3.is_pose(T)
    except jax.errors.ConcretizationTypeError:
        valid = T.shape == (4, 4)
    if not valid:
        raise InvalidInputError(f"{label} must be a (4, 4) rigid transform")
    return T


def intra_fk_frames(params: MechanismParameters, port: Array, q: Array) -> Dict[str, Array]:
    """World frames of every stage of the active chain.

    Args:
        params: Mechanism parameters.
        port: (4, 4) port frame (origin at the RCM).
        q: Active configuration of shape (7,).

    Returns:
        Dictionary mapping ``ACTIVE_FRAME_NAMES`` to (4, 4) world poses.
    """
    port = check_pose(port, "port frame")
    q = check_config(q, params.active_dof, "active")
    yaw, pitch, insertion, roll, wrist_pitch, wrist_yaw = (q[i] for i in range(6))

    c = params.rcm_offset
    L = params.parallelogram_length

    yaw_pivot = se3.compose(port, se3.trans_z(-c), se3.rot_z(yaw))
    pitch_link = se3.compose(yaw_pivot, se3.rot_x(pitch), se3.trans_z(-L))
    # The coupler stays parallel to the yaw axis, bringing the chain back onto
    # the shaft line through the RCM.
    coupler = se3.compose(pitch_link, se3.rot_x(-pitch), se3.trans_z(c), se3.rot_x(pitch))
    holder = coupler @ se3.trans_z(L - params.holder_offset + insertion)
    wrist_joint = holder @ se3.trans_z(params.holder_offset)
    wrist = se3.compose(
        wrist_joint,
        se3.rot_z(roll), se3.rot_x(wrist_pitch), se3.rot_y(wrist_yaw),
        se3.trans_z(params.wrist_length),
    )

    return dict(zip(ACTIVE_FRAME_NAMES, (yaw_pivot, pitch_link, coupler, holder, wrist_joint, wrist)))


def intra_fk(params: MechanismParameters, port: Array, q: Array) -> Array:
    """Wrist frame of the active mechanism for configuration ``q``."""
    return intra_fk_frames(params, port, q)["wrist"]


def intra_ik(
    params: MechanismParameters,
    port: Array,
    pose: Array,
    reference: Optional[Array] = None,
) -> IKResult:
    """Closed-form inverse kinematics of the active mechanism.

    The shaft always passes through the RCM, so the wrist joint position
    fixes yaw, pitch and insertion; roll and the two wrist angles then
    absorb the remaining orientation. Two yaw/pitch branches exist; the
    first one inside the joint limits is returned.

    Args:
        params: Mechanism parameters.
        port: (4, 4) port frame.
        pose: (4, 4) desired world pose of the wrist frame.
        reference: Optional configuration supplying the grip coordinate,
            which does not affect the wrist frame. Defaults to the home
            configuration.

    Returns:
        IKResult. ``success`` is False when the wrist joint would sit at or
        behind the RCM, or when no branch is inside the joint limits (this
        includes wrist orientations the mechanism cannot reach).
    """
    port = check_pose(port, "port frame")
    pose = check_pose(pose, "target pose")
    limits = params.active_limits
    if reference is None:
        reference = limits.default
    reference = check_config(reference, params.active_dof, "reference")

    local = se3.inverse(port) @ pose
    R = local[:3, :3]
    wrist_joint = local[:3, 3] - params.wrist_length * R[:, 2]

    insertion = float(jnp.linalg.norm(wrist_joint))
    if insertion < 1e-9:
        logger.debug("active IK: wrist joint coincides with the RCM")
        return IKResult(reference, False, "wrist joint coincides with the RCM")

    sx, sy, sz = (float(v) for v in wrist_joint / insertion)
    if sz <= 0.0:
        logger.debug("active IK: wrist joint behind the RCM (sz=%.4f)", sz)
        return IKResult(reference, False, "wrist joint at or behind the RCM")
    rho = math.hypot(sx, sy)
    if rho < 1e-12:
        branches = [(0.0, 0.0)]
    else:
        pitch = math.atan2(rho, sz)
        branches = [(math.atan2(sx, -sy), pitch), (math.atan2(-sx, sy), -pitch)]
        # Try the branch with the smaller yaw first.
        branches.sort(key=lambda b: abs(b[0]))

    grip = float(reference[6])
    violations = []
    for yaw, pitch in branches:
        roll, wrist_pitch, wrist_yaw = _decompose_zxy(
            so3.rot_x(pitch).T @ so3.rot_z(yaw).T @ R
        )
        q = jnp.array([yaw, pitch, insertion, roll, wrist_pitch, wrist_yaw, grip])
        bad = limits.violations(q)
        if not bad:
            logger.debug("active IK: yaw=%.4f pitch=%.4f insertion=%.4f", yaw, pitch, insertion)
            return IKResult(q, True, "")
        violations.append(bad)

    if all(set(bad) & {"wrist_pitch", "wrist_yaw"} for bad in violations):
        reason = "orientation outside the reachable wrist range"
    else:
        reason = "joint limits violated: " + "; ".join(", ".join(bad) for bad in violations)
    logger.debug("active IK failed: %s", reason)
    return IKResult(reference, False, reason)


def intra_primitives(
    params: MechanismParameters, port: Array, q: Array
) -> Tuple[Cylisphere, ...]:
    """Capsules covering the active mechanism, in ``ACTIVE_PRIMITIVE_NAMES`` order."""
    frames = intra_fk_frames(params, port, q)
    grip = float(check_config(q, params.active_dof, "active")[6])
    lateral = params.parallelogram_height * frames["yaw_pivot"][:3, 0]
    shaft_axis = frames["holder"][:3, 2]

    pivot = se3.get_position(frames["yaw_pivot"])
    pitch_end = se3.get_position(frames["pitch_link"])
    coupler_end = se3.get_position(frames["coupler"])
    holder = se3.get_position(frames["holder"])
    wrist_joint = se3.get_position(frames["wrist_joint"])
    wrist = se3.get_position(frames["wrist"])

    R_wrist = se3.get_rotation(frames["wrist"])
    jaw_left = wrist + params.gripper_length * (R_wrist @ so3.rot_x(0.5 * grip)[:, 2])
    jaw_right = wrist + params.gripper_length * (R_wrist @ so3.rot_x(-0.5 * grip)[:, 2])

    link_r = float(params.link_radius)
    shaft_r = float(params.shaft_radius)
    segments = (
        (pivot + lateral, pitch_end + lateral, link_r),
        (pitch_end + lateral, coupler_end + lateral, link_r),
        (holder + lateral, holder, link_r),
        (holder - params.housing_length * shaft_axis, holder, link_r),
        (holder, wrist_joint, shaft_r),
        (wrist_joint, wrist, shaft_r),
        (wrist, jaw_left, shaft_r),
        (wrist, jaw_right, shaft_r),
    )
    return tuple(
        Cylisphere(name, np.asarray(start), np.asarray(end), radius)
        for name, (start, end, radius) in zip(ACTIVE_PRIMITIVE_NAMES, segments)
    )


def _decompose_zxy(R: Array) -> Tuple[float, float, float]:
    """Angles (z, x, y) with R = Rz(z) @ Rx(x) @ Ry(y), x in [-pi/2, pi/2]."""
    x = math.asin(max(-1.0, min(1.0, float(R[2, 1]))))
    y = math.atan2(-float(R[2, 0]), float(R[2, 2]))
    z = math.atan2(-float(R[0, 1]), float(R[1, 1]))
    return z, x, y
