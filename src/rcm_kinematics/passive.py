"""Kinematics of the passive positioning arm.

The passive arm places the remote center of motion. It is a vertical
prismatic column followed by three horizontal revolute links, a tilt/pan
mount and a fixed drop to the RCM. Configurations have six coordinates::

    [column, shoulder, elbow, mount, tilt, pan]

The output frame is the port frame of the active mechanism: origin at the
RCM, +z pointing down into the patient.
"""

import enum
import logging
import math
from typing import Dict, NamedTuple, Optional, Tuple, Union

import jax
import jax.numpy as jnp
import numpy as np

from .active import check_config, check_pose
from .core import MechanismParameters
from .errors import InvalidInputError
from .geometry import Cylisphere, Sphere
from .transforms import se3

Array = jax.Array

logger = logging.getLogger(__name__)

PASSIVE_FRAME_NAMES = ("base", "column", "elbow", "mount", "hub", "rcm")
PASSIVE_PRIMITIVE_NAMES = ("column", "link1", "link2", "link3", "drop", "hub")


class IKStatus(enum.Enum):
    """States of the passive IK iteration."""
    ITERATING = "iterating"
    CONVERGED = "converged"
    EXHAUSTED = "exhausted"


class PassiveIKResult(NamedTuple):
    """Outcome of the iterative passive IK.

    When ``success`` is False the solver ran out of iterations and ``q`` is
    the last iterate, which does not reach the target.
    """
    q: Array
    success: bool
    status: IKStatus
    iterations: int
    error: float
    within_limits: bool


def passive_fk_frames(params: MechanismParameters, base: Array, q: Array) -> Dict[str, Array]:
    """World frames of every stage of the passive chain.

    Args:
        params: Mechanism parameters.
        base: (4, 4) base frame of the arm.
        q: Passive configuration of shape (6,).

    Returns:
        Dictionary mapping ``PASSIVE_FRAME_NAMES`` to (4, 4) world poses.
    """
    base = check_pose(base, "base frame")
    q = check_config(q, params.passive_dof, "passive")

    column = se3.compose(base, se3.trans_z(params.column_offset + q[0]), se3.rot_z(q[1]))
    elbow = se3.compose(column, se3.trans_x(params.link1_length), se3.rot_z(q[2]))
    mount = se3.compose(elbow, se3.trans_x(params.link2_length), se3.rot_z(q[3]))
    hub = se3.compose(mount, se3.trans_x(params.link3_length), se3.rot_x(q[4]), se3.rot_y(q[5]))
    # Flip so the port frame's z axis points into the patient.
    rcm = se3.compose(hub, se3.trans_z(-params.rcm_drop), se3.rot_x(math.pi))

    return dict(zip(PASSIVE_FRAME_NAMES, (base, column, elbow, mount, hub, rcm)))


def passive_fk(params: MechanismParameters, base: Array, q: Array) -> Array:
    """RCM (port) frame produced by passive configuration ``q``."""
    return passive_fk_frames(params, base, q)["rcm"]


@jax.jit
def _rcm_positions(params: MechanismParameters, base: Array, qs: Array) -> Array:
    """RCM positions for a batch of configurations of shape (N, 6)."""
    return jax.vmap(lambda q: se3.get_position(passive_fk(params, base, q)))(qs)


def passive_jacobian(
    params: MechanismParameters,
    base: Array,
    q: Array,
    step: float = 1e-6,
    method: str = "central",
) -> Array:
    """Finite-difference Jacobian of the RCM position.

    Each coordinate is perturbed by ``step`` and the passive chain is
    re-evaluated; all perturbed configurations go through one vmapped call.

    Args:
        params: Mechanism parameters.
        base: (4, 4) base frame.
        q: Passive configuration of shape (6,).
        step: Perturbation size; trades truncation against cancellation.
        method: ``"central"`` (default) or ``"forward"`` differences.

    Returns:
        (3, 6) matrix of d(position)/dq.
    """
    q = check_config(q, params.passive_dof, "passive")
    base = check_pose(base, "base frame")
    if not step > 0.0:
        raise InvalidInputError(f"finite-difference step must be positive, got {step}")

    offsets = step * jnp.eye(params.passive_dof, dtype=q.dtype)
    if method == "central":
        positions = _rcm_positions(params, base, jnp.concatenate([q + offsets, q - offsets]))
        plus, minus = jnp.split(positions, 2)
        J = (plus - minus) / (2.0 * step)
    elif method == "forward":
        positions = _rcm_positions(params, base, jnp.concatenate([q[None], q + offsets]))
        J = (positions[1:] - positions[0]) / step
    else:
        raise InvalidInputError(f"unknown finite-difference method '{method}'")

    return J.T


def passive_ik(
    params: MechanismParameters,
    base: Array,
    target: Array,
    step: float = 1e-6,
    q0: Optional[Array] = None,
    tolerance: float = 1e-6,
    max_iterations: int = 100,
    max_step: float = 0.2,
) -> PassiveIKResult:
    """Place the RCM at ``target`` by Newton iteration.

    Each iteration solves ``J dq = error`` in the least-squares sense with
    the pseudo-inverse of the (3, 6) Jacobian, scales ``dq`` so no
    coordinate moves more than ``max_step``, and applies it. Iterates are not
    projected onto the joint limits; ``within_limits`` reports whether the
    final configuration respects them.

    Args:
        params: Mechanism parameters.
        base: (4, 4) base frame.
        target: (3,) desired world position of the RCM.
        step: Finite-difference step for the Jacobian.
        q0: Initial configuration; defaults to the home configuration.
        tolerance: Position error (m) at which the solver stops.
        max_iterations: Iteration budget.
        max_step: Largest change of any coordinate in one iteration.

    Returns:
        PassiveIKResult with ``status`` CONVERGED or EXHAUSTED.
    """
    target = jnp.asarray(target, dtype=float)
    if target.shape != (3,):
        raise InvalidInputError(f"target position must have shape (3,), got {target.shape}")
    if max_iterations < 0 or not max_step > 0.0 or not tolerance > 0.0:
        raise InvalidInputError("iteration budget, tolerance and max_step must be positive")

    q = check_config(params.passive_limits.default if q0 is None else q0, params.passive_dof, "passive")
    base = check_pose(base, "base frame")

    status = IKStatus.ITERATING
    iterations = 0
    while status is IKStatus.ITERATING:
        residual = target - _rcm_positions(params, base, q[None])[0]
        error = float(jnp.linalg.norm(residual))

        if error < tolerance:
            status = IKStatus.CONVERGED
        elif iterations >= max_iterations:
            status = IKStatus.EXHAUSTED
        else:
            J = passive_jacobian(params, base, q, step)
            dq = jnp.linalg.pinv(J) @ residual
            largest = float(jnp.max(jnp.abs(dq)))
            if largest > max_step:
                dq = dq * (max_step / largest)
            q = q + dq
            iterations += 1

    within_limits = params.passive_limits.contains(q)
    if status is IKStatus.CONVERGED:
        logger.debug("passive IK converged in %d iterations (err=%.3e)", iterations, error)
    else:
        logger.warning(
            "passive IK did not converge after %d iterations (err=%.4e)", iterations, error
        )
    return PassiveIKResult(q, status is IKStatus.CONVERGED, status, iterations, error, within_limits)


def passive_primitives(
    params: MechanismParameters, base: Array, q: Array
) -> Tuple[Union[Cylisphere, Sphere], ...]:
    """Capsules for the passive links plus a sphere around the mount hub."""
    frames = passive_fk_frames(params, base, q)
    points = [np.asarray(se3.get_position(frames[name])) for name in PASSIVE_FRAME_NAMES]
    radius = float(params.passive_link_radius)

    capsules = tuple(
        Cylisphere(name, start, end, radius)
        for name, start, end in zip(PASSIVE_PRIMITIVE_NAMES[:-1], points[:-1], points[1:])
    )
    hub = Sphere("hub", points[PASSIVE_FRAME_NAMES.index("hub")], float(params.hub_radius))
    return capsules + (hub,)
