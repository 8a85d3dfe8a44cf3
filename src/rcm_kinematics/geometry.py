"""Collision primitives and their pairwise distance query.

Links are approximated by cylispheres (capsules: a segment swept by a
radius) and spheres. These are light value types; the distance query itself
is delegated to python-fcl.
"""

from dataclasses import dataclass
from typing import Union

import fcl
import numpy as np

_EPS = 1e-12


@dataclass(frozen=True)
class Cylisphere:
    """Capsule from ``start`` to ``end`` swept by ``radius``.

    Plain frozen dataclass, not a pytree: primitives hold concrete numpy
    endpoints and are only consumed by python-fcl, never traced by JAX.
    """
    name: str
    start: np.ndarray
    end: np.ndarray
    radius: float

    @property
    def length(self) -> float:
        return float(np.linalg.norm(np.asarray(self.end) - np.asarray(self.start)))

    def to_fcl(self) -> fcl.CollisionObject:
        start = np.asarray(self.start, dtype=np.float64)
        end = np.asarray(self.end, dtype=np.float64)
        axis = end - start
        length = float(np.linalg.norm(axis))
        center = 0.5 * (start + end)
        if length < _EPS:
            return fcl.CollisionObject(fcl.Sphere(float(self.radius)), fcl.Transform(center))
        R = _rotation_z_to(axis / length)
        return fcl.CollisionObject(fcl.Capsule(float(self.radius), length), fcl.Transform(R, center))


@dataclass(frozen=True)
class Sphere:
    """Sphere at ``center`` with ``radius``. Not a pytree, like ``Cylisphere``."""
    name: str
    center: np.ndarray
    radius: float

    def to_fcl(self) -> fcl.CollisionObject:
        center = np.asarray(self.center, dtype=np.float64)
        return fcl.CollisionObject(fcl.Sphere(float(self.radius)), fcl.Transform(center))


Primitive = Union[Cylisphere, Sphere]


def distance(a: Primitive, b: Primitive) -> float:
    """Minimum surface distance between two primitives.

    Overlapping primitives report 0.0.
    """
    request = fcl.DistanceRequest()
    result = fcl.DistanceResult()
    d = fcl.distance(a.to_fcl(), b.to_fcl(), request, result)
    return max(float(d), 0.0)


def _rotation_z_to(u: np.ndarray) -> np.ndarray:
    """Rotation matrix taking the +z axis onto unit vector ``u``."""
    z = np.array([0.0, 0.0, 1.0])
    c = float(np.dot(z, u))
    if c > 1.0 - 1e-12:
        return np.eye(3)
    if c < -1.0 + 1e-12:
        return np.diag([1.0, -1.0, -1.0])
    v = np.cross(z, u)
    K = np.array([
        [0.0, -v[2], v[1]],
        [v[2], 0.0, -v[0]],
        [-v[1], v[0], 0.0],
    ])
    return np.eye(3) + K + K @ K / (1.0 + c)
