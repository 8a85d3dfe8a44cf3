"""SE(3) rigid-body transforms as homogeneous matrices in JAX.

Poses throughout the package are plain (4, 4) arrays. This module provides
the elementary joint transforms (pure translations and axis rotations) the
mechanism chains are composed from, and the block-structured inverse.
All functions are pure, JIT-able, and operate on JAX arrays.
"""


import jax
import jax.numpy as jnp

from . import so3

Array = jax.Array


def from_position_and_rotation(p: Array, R: Array) -> Array:
    """
    Construct SE(3) transform from position and rotation.

    Args:
        p: (..., 3) position vector
        R: (..., 3, 3) rotation matrix

    Returns:
        (..., 4, 4) homogeneous transformation matrix
    """
    p = jnp.asarray(p)
    R = jnp.asarray(R)
    batch_shape = jnp.broadcast_shapes(p.shape[:-1], R.shape[:-2])
    p = jnp.broadcast_to(p, batch_shape + (3,))
    R = jnp.broadcast_to(R, batch_shape + (3, 3))
    dtype = jnp.result_type(p.dtype, R.dtype)

    T = jnp.zeros(batch_shape + (4, 4), dtype=dtype)
    T = T.at[..., :3, :3].set(R)
    T = T.at[..., :3, 3].set(p)
    T = T.at[..., 3, 3].set(1.0)

    return T


def translation(x=0.0, y=0.0, z=0.0) -> Array:
    """Pure translation by ``(x, y, z)``."""
    p = jnp.stack(jnp.broadcast_arrays(
        jnp.asarray(x, dtype=float), jnp.asarray(y, dtype=float), jnp.asarray(z, dtype=float)
    ), axis=-1)
    return from_position_and_rotation(p, jnp.eye(3, dtype=p.dtype))


def trans_x(d) -> Array:
    return translation(x=d)


def trans_z(d) -> Array:
    return translation(z=d)


def rot_x(angle) -> Array:
    """Pure rotation about x, as a (4, 4) transform."""
    R = so3.rot_x(jnp.asarray(angle, dtype=float))
    return from_position_and_rotation(jnp.zeros(R.shape[:-2] + (3,), dtype=R.dtype), R)


def rot_y(angle) -> Array:
    """Pure rotation about y, as a (4, 4) transform."""
    R = so3.rot_y(jnp.asarray(angle, dtype=float))
    return from_position_and_rotation(jnp.zeros(R.shape[:-2] + (3,), dtype=R.dtype), R)


def rot_z(angle) -> Array:
    """Pure rotation about z, as a (4, 4) transform."""
    R = so3.rot_z(jnp.asarray(angle, dtype=float))
    return from_position_and_rotation(jnp.zeros(R.shape[:-2] + (3,), dtype=R.dtype), R)


def compose(*transforms: Array) -> Array:
    """Left-to-right product of a chain of transforms."""
    result = transforms[0]
    for T in transforms[1:]:
        result = jnp.matmul(result, T)
    return result


def inverse(T: Array) -> Array:
    """
    Compute inverse of SE(3) transformation matrix.

    Uses the block structure for efficient computation:
    T^-1 = [[R^T, -R^T @ t], [0, 1]]

    Args:
        T: (..., 4, 4) transformation matrix

    Returns:
        (..., 4, 4) inverse transformation matrix
    """
    R = T[..., :3, :3]
    t = T[..., :3, 3]

    R_inv = jnp.swapaxes(R, -1, -2)
    t_inv = -jnp.einsum("...ij,...j->...i", R_inv, t)

    return from_position_and_rotation(t_inv, R_inv)


def get_position(T: Array) -> Array:
    """
    Extract position from SE(3) transformation matrix.

    Args:
        T: (..., 4, 4) transformation matrix

    Returns:
        (..., 3) position vector
    """
    return T[..., :3, 3]


def get_rotation(T: Array) -> Array:
    """
    Extract rotation matrix from SE(3) transformation matrix.

    Args:
        T: (..., 4, 4) transformation matrix

    Returns:
        (..., 3, 3) rotation matrix
    """
    return T[..., :3, :3]


def is_pose(T: Array, atol: float = 1e-6) -> bool:
    """Check shape, bottom row and rotation block of a homogeneous transform."""
    T = jnp.asarray(T)
    if T.shape != (4, 4):
        return False
    bottom_ok = jnp.allclose(T[3], jnp.array([0.0, 0.0, 0.0, 1.0]), atol=atol)
    return bool(bottom_ok) and so3.is_rotation(T[:3, :3], atol=atol)
