"""Unscented propagation of target-pose uncertainty.

A target pose with independent per-axis position and orientation variance
is represented by 2n + 1 sigma points (n = 6). Each sigma point is pushed
through active IK, or through the full clearance computation, and the
weighted sample mean and covariance of the outputs approximate the output
distribution.

Weights follow the scaled unscented transform with ``alpha=1, beta=0,
kappa=1``: ``lambda = 1``, offsets ``±sqrt(7 var_i)``, weight ``1/7`` on the
mean point and ``1/14`` on every other point, shared by mean and
covariance.
"""

import logging
import math
from typing import NamedTuple, Optional

import jax
import jax.numpy as jnp
import numpy as np
from flax import struct

from .active import check_pose, intra_ik
from .clearance import full_clearances
from .core import MechanismParameters
from .errors import InvalidInputError
from .transforms import se3, so3

Array = jax.Array

logger = logging.getLogger(__name__)

POSE_DIM = 6

# Configuration coordinates that are angles (all but insertion).
_ANGULAR_COORDS = np.array([True, True, False, True, True, True, True])


@struct.dataclass
class UnscentedWeights:
    """Sigma-point spread and weights of a scaled unscented transform.

    Attributes:
        n: Dimension of the perturbed state. Static for JIT.
        scale: ``n + lambda``; sigma offsets are ``±sqrt(scale * var)``.
        mean_weights: Array of shape (2n + 1,).
        cov_weights: Array of shape (2n + 1,).
    """
    n: int = struct.field(pytree_node=False)
    scale: float
    mean_weights: Array
    cov_weights: Array

    @classmethod
    def canonical(
        cls, n: int = POSE_DIM, alpha: float = 1.0, beta: float = 0.0, kappa: float = 1.0
    ) -> "UnscentedWeights":
        lam = alpha**2 * (n + kappa) - n
        scale = n + lam
        if scale <= 0.0:
            raise InvalidInputError(f"n + lambda must be positive, got {scale}")
        rest = jnp.full(2 * n, 1.0 / (2.0 * scale))
        w0 = lam / scale
        return cls(
            n=n,
            scale=scale,
            mean_weights=jnp.concatenate([jnp.array([w0]), rest]),
            cov_weights=jnp.concatenate([jnp.array([w0 + 1.0 - alpha**2 + beta]), rest]),
        )


class UnscentedResult(NamedTuple):
    """Weighted mean and covariance of the propagated samples.

    On failure ``mean`` and ``covariance`` are NaN and ``reason`` names the
    sigma point that failed.
    """
    success: bool
    mean: Array
    covariance: Array
    reason: str = ""
    samples: Optional[Array] = None


def sigma_points(
    mean_pose: Array,
    pos_var,
    rot_var,
    weights: Optional[UnscentedWeights] = None,
    frame: Optional[Array] = None,
) -> Array:
    """Sigma poses around ``mean_pose``.

    Point 0 is the mean. Points 1..3 / 7..9 shift the position along x, y, z
    by plus / minus one scaled standard deviation; points 4..6 / 10..12
    rotate the pose about its own origin around x, y, z.

    Args:
        mean_pose: (4, 4) mean pose.
        pos_var: Position variance per axis, shape (3,) or scalar.
        rot_var: Orientation variance (rad^2) per axis, shape (3,) or scalar.
        weights: Spread and weights; ``UnscentedWeights.canonical()`` if None.
        frame: (4, 4) frame whose axes the variances refer to; world axes
            if None.

    Returns:
        (2n + 1, 4, 4) array of poses.
    """
    mean_pose = check_pose(mean_pose, "mean pose")
    weights = UnscentedWeights.canonical() if weights is None else weights
    if weights.n != POSE_DIM:
        raise InvalidInputError(f"pose sigma points need n={POSE_DIM}, got n={weights.n}")
    variances = jnp.concatenate([_variance(pos_var, "position"), _variance(rot_var, "orientation")])
    axes = jnp.eye(3) if frame is None else check_pose(frame, "variance frame")[:3, :3]

    deltas = jnp.sqrt(weights.scale * variances)[:, None] * jnp.eye(POSE_DIM)
    deltas = jnp.concatenate([jnp.zeros((1, POSE_DIM)), deltas, -deltas])

    position = se3.get_position(mean_pose) + deltas[:, :3] @ axes.T
    rotation = axes @ so3.exp(deltas[:, 3:]) @ axes.T @ se3.get_rotation(mean_pose)
    return se3.from_position_and_rotation(position, rotation)


def unscented_ik(
    params: MechanismParameters,
    port: Array,
    mean_pose: Array,
    pos_var,
    rot_var,
    weights: Optional[UnscentedWeights] = None,
) -> UnscentedResult:
    """Mean and covariance of the active configuration for an uncertain pose.

    Variances refer to the port frame axes. Angular coordinates of every
    sample are unwrapped against the mean sigma point before averaging.

    Returns:
        UnscentedResult with a (7,) mean and (7, 7) covariance; fails as a
        whole if IK fails for any sigma point.
    """
    port = check_pose(port, "port frame")
    weights = UnscentedWeights.canonical() if weights is None else weights
    poses = sigma_points(mean_pose, pos_var, rot_var, weights, frame=port)

    samples = []
    for i, pose in enumerate(poses):
        solution = intra_ik(params, port, pose)
        if not solution.success:
            return _failed(params.active_dof, f"sigma point {i}: {solution.reason}")
        samples.append(solution.q)

    samples = jnp.stack(samples)
    center = samples[0]
    wrapped = center + _wrap_angle(samples - center)
    samples = jnp.where(jnp.asarray(_ANGULAR_COORDS), wrapped, samples)

    mean, covariance = _weighted_moments(samples, weights)
    return UnscentedResult(True, mean, covariance, "", samples)


def unscented_clearance(
    params: MechanismParameters,
    base1: Array,
    base2: Array,
    q_passive1: Array,
    q_passive2: Array,
    mean_target: Array,
    pos_var,
    rot_var,
    weights: Optional[UnscentedWeights] = None,
) -> UnscentedResult:
    """Mean and variance of the two-arm clearance for an uncertain target.

    ``mean_target`` is expressed in the port frame, as for
    ``full_clearances``, and the variances refer to its axes.

    Returns:
        UnscentedResult with a (1,) mean and (1, 1) covariance; fails as a
        whole if the clearance fails for any sigma point.
    """
    weights = UnscentedWeights.canonical() if weights is None else weights
    targets = sigma_points(mean_target, pos_var, rot_var, weights)

    samples = []
    for i, target in enumerate(targets):
        result = full_clearances(params, base1, base2, q_passive1, q_passive2, target)
        if not result.success:
            return _failed(1, f"sigma point {i}: {result.reason}")
        samples.append(result.clearance)

    samples = jnp.asarray(samples)[:, None]
    mean, covariance = _weighted_moments(samples, weights)
    return UnscentedResult(True, mean, covariance, "", samples)


def _weighted_moments(samples: Array, weights: UnscentedWeights):
    mean = weights.mean_weights @ samples
    centered = samples - mean
    covariance = jnp.einsum("k,ki,kj->ij", weights.cov_weights, centered, centered)
    return mean, covariance


def _failed(dim: int, reason: str) -> UnscentedResult:
    logger.warning("unscented estimate failed at %s", reason)
    return UnscentedResult(False, jnp.full(dim, jnp.nan), jnp.full((dim, dim), jnp.nan), reason)


def _variance(var, label: str) -> Array:
    var = jnp.asarray(var, dtype=float)
    if var.ndim == 0:
        var = jnp.full(3, var)
    if var.shape != (3,):
        raise InvalidInputError(f"{label} variance must be a scalar or have shape (3,), got {var.shape}")
    if not bool(jnp.all(jnp.isfinite(var))) or bool(jnp.any(var < 0.0)):
        raise InvalidInputError(f"{label} variance must be finite and non-negative")
    return var


def _wrap_angle(angle: Array) -> Array:
    return (angle + math.pi) % (2.0 * math.pi) - math.pi
