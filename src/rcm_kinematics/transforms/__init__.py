"""
JAX transforms used by the mechanism chains.

This module provides pure, JIT-compilable helpers for:
- SO(3) rotations (so3 module)
- SE(3) homogeneous transforms (se3 module)
"""

from . import so3
from . import se3

__all__ = [
    "so3",
    "se3",
]
