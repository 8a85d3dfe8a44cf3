"""Tests for collision primitives and the distance query."""

import jax
import numpy as np
import pytest

from rcm_kinematics.geometry import Cylisphere, Sphere, distance


def capsule(start, end, radius=0.1, name="c"):
    return Cylisphere(name, np.array(start, dtype=float), np.array(end, dtype=float), radius)


def test_sphere_sphere_gap():
    """Test the gap between two spheres is center distance minus radii."""
    a = Sphere("a", np.zeros(3), 0.2)
    b = Sphere("b", np.array([1.0, 0.0, 0.0]), 0.3)
    assert distance(a, b) == pytest.approx(0.5, abs=1e-6)


def test_parallel_capsules():
    """Test parallel capsules are separated by axis distance minus radii."""
    a = capsule([0.0, 0.0, 0.0], [0.0, 0.0, 1.0])
    b = capsule([0.9, 0.0, 0.0], [0.9, 0.0, 1.0])
    assert distance(a, b) == pytest.approx(0.7, abs=1e-3)


def test_capsule_end_caps():
    """Test collinear capsules are separated at their rounded ends."""
    a = capsule([0.0, 0.0, 0.0], [0.0, 0.0, 1.0], radius=0.05)
    b = capsule([0.0, 0.0, 1.5], [0.0, 0.0, 2.0], radius=0.05)
    assert distance(a, b) == pytest.approx(0.4, abs=1e-3)


def test_capsule_sphere():
    """Test a sphere beside the middle of a tilted capsule."""
    a = capsule([-1.0, -1.0, 0.0], [1.0, 1.0, 0.0], radius=0.1)
    b = Sphere("s", np.array([-1.0, 1.0, 0.0]), 0.2)
    assert distance(a, b) == pytest.approx(np.sqrt(2.0) - 0.3, abs=1e-3)


def test_distance_is_symmetric():
    """Test swapping the arguments gives the same distance."""
    a = capsule([0.0, 0.0, 0.0], [0.3, 0.2, 0.5], radius=0.02)
    b = capsule([0.5, -0.4, 0.1], [0.1, 0.6, 0.9], radius=0.03)
    assert distance(a, b) == pytest.approx(distance(b, a), abs=1e-6)


def test_overlap_reports_zero():
    """Test intersecting primitives report zero rather than a negative value."""
    a = capsule([0.0, 0.0, 0.0], [1.0, 0.0, 0.0])
    b = capsule([0.5, -0.5, 0.0], [0.5, 0.5, 0.0])
    assert distance(a, b) == 0.0
    assert distance(Sphere("a", np.zeros(3), 0.5), Sphere("b", np.full(3, 0.1), 0.5)) == 0.0


def test_zero_length_capsule_is_sphere():
    """Test a degenerate capsule behaves like a sphere at its end point."""
    point = capsule([0.2, 0.0, 0.0], [0.2, 0.0, 0.0], radius=0.05)
    assert point.length == 0.0

    other = Sphere("s", np.array([1.2, 0.0, 0.0]), 0.15)
    assert distance(point, other) == pytest.approx(0.8, abs=1e-6)


def test_primitives_are_frozen():
    """Test primitives are immutable values."""
    s = Sphere("s", np.zeros(3), 0.1)
    with pytest.raises(AttributeError):
        s.radius = 0.2


def test_primitives_are_single_leaves():
    """Test primitives are opaque to JAX tree utilities."""
    c = capsule([0.0, 0.0, 0.0], [0.0, 0.0, 1.0])
    leaves = jax.tree_util.tree_leaves(c)
    assert len(leaves) == 1 and leaves[0] is c
