"""Pairwise clearances between the two arms.

Both arms are driven to the same intracorporeal target, expressed in each
arm's own port frame, and every cross-arm pair of collision primitives is
measured. The clearance is the smallest of those distances.
"""

import itertools
import logging
import math
from typing import NamedTuple, Sequence, Tuple

import jax
import numpy as np

from .active import ACTIVE_PRIMITIVE_NAMES, check_pose, intra_ik, intra_primitives
from .core import MechanismParameters
from .geometry import Primitive, distance
from .passive import PASSIVE_PRIMITIVE_NAMES, passive_fk, passive_primitives

Array = jax.Array

logger = logging.getLogger(__name__)


class ClearanceResult(NamedTuple):
    """Distances for every cross-arm primitive pair and their minimum.

    On failure ``clearance`` is NaN and ``distances`` is empty.
    """
    success: bool
    clearance: float
    distances: np.ndarray
    reason: str = ""


def num_active_clearances() -> int:
    """Number of distances ``full_clearances`` reports."""
    return len(ACTIVE_PRIMITIVE_NAMES) ** 2


def num_passive_clearances() -> int:
    """Number of distances ``passive_clearances`` reports."""
    return len(PASSIVE_PRIMITIVE_NAMES) ** 2


def active_clearance_pairs() -> Tuple[Tuple[str, str], ...]:
    """Primitive name pairs in the order ``full_clearances`` reports them."""
    return tuple(itertools.product(ACTIVE_PRIMITIVE_NAMES, ACTIVE_PRIMITIVE_NAMES))


def passive_clearance_pairs() -> Tuple[Tuple[str, str], ...]:
    """Primitive name pairs in the order ``passive_clearances`` reports them."""
    return tuple(itertools.product(PASSIVE_PRIMITIVE_NAMES, PASSIVE_PRIMITIVE_NAMES))


def pairwise_distances(first: Sequence[Primitive], second: Sequence[Primitive]) -> np.ndarray:
    """Distances between every primitive of ``first`` and of ``second``, row-major."""
    return np.array([distance(a, b) for a, b in itertools.product(first, second)])


def full_clearances(
    params: MechanismParameters,
    base1: Array,
    base2: Array,
    q_passive1: Array,
    q_passive2: Array,
    target: Array,
) -> ClearanceResult:
    """Clearance between the active mechanisms of two arms.

    Args:
        params: Mechanism parameters shared by both arms.
        base1, base2: (4, 4) base frames of the passive arms.
        q_passive1, q_passive2: Passive configurations of shape (6,).
        target: (4, 4) wrist pose expressed in the port frame; each arm is
            solved for ``port_i @ target``.

    Returns:
        ClearanceResult with ``num_active_clearances()`` distances ordered
        by arm-1 primitive, then arm-2 primitive. Fails when active IK fails
        for either arm.
    """
    target = check_pose(target, "target pose")

    primitives = []
    for arm, (base, q_passive) in enumerate(((base1, q_passive1), (base2, q_passive2)), start=1):
        port = passive_fk(params, base, q_passive)
        solution = intra_ik(params, port, port @ target)
        if not solution.success:
            reason = f"arm {arm}: {solution.reason}"
            logger.warning("clearance undefined, active IK failed for %s", reason)
            return ClearanceResult(False, math.nan, np.empty(0), reason)
        primitives.append(intra_primitives(params, port, solution.q))

    distances = pairwise_distances(*primitives)
    clearance = float(distances.min())
    logger.debug("active clearance %.4f m over %d pairs", clearance, distances.size)
    return ClearanceResult(True, clearance, distances)


def passive_clearances(
    params: MechanismParameters,
    base1: Array,
    base2: Array,
    q_passive1: Array,
    q_passive2: Array,
) -> ClearanceResult:
    """Clearance between the passive arms (links and hub spheres)."""
    distances = pairwise_distances(
        passive_primitives(params, base1, q_passive1),
        passive_primitives(params, base2, q_passive2),
    )
    return ClearanceResult(True, float(distances.min()), distances)
