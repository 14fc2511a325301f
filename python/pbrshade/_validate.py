# python/pbrshade/_validate.py
# Shared coercion and vector helpers used across the shading modules.
# Exists so every module normalizes and clamps vectors the same way.
# RELEVANT FILES: python/pbrshade/pbr.py, python/pbrshade/normalmap.py, python/pbrshade/ibl.py
from __future__ import annotations

import logging
from typing import Any, Iterable, Tuple, Union

import numpy as np

logger = logging.getLogger(__name__)

EPSILON = 1e-7

VecLike = Union[np.ndarray, Iterable[float]]


def as_vec(value: Any, size: int, name: str = "vector") -> np.ndarray:
    arr = np.asarray(value, dtype=np.float32)
    if arr.shape != (size,):
        raise ValueError(f"{name} must have shape ({size},), got {arr.shape}")
    return arr


def as_vec2(value: Any, name: str = "vector") -> np.ndarray:
    return as_vec(value, 2, name)


def as_vec3(value: Any, name: str = "vector") -> np.ndarray:
    return as_vec(value, 3, name)


def as_vec4(value: Any, name: str = "vector") -> np.ndarray:
    return as_vec(value, 4, name)


def as_mat4(value: Any, name: str = "matrix") -> np.ndarray:
    arr = np.asarray(value, dtype=np.float32)
    if arr.shape != (4, 4):
        raise ValueError(f"{name} must have shape (4, 4), got {arr.shape}")
    return arr


def normalize(v: VecLike) -> np.ndarray:
    """Return ``v`` scaled to unit length.

    A zero-length input is a caller precondition violation; it is returned
    unchanged (all zeros) instead of producing NaNs.
    """
    arr = np.asarray(v, dtype=np.float32)
    length = float(np.sqrt(np.dot(arr, arr)))
    if length <= 0.0:
        logger.warning("normalize() received a zero-length vector")
        return arr.copy()
    return (arr / length).astype(np.float32)


def reflect(incident: VecLike, normal: VecLike) -> np.ndarray:
    """GLSL-style reflect: ``I - 2 * dot(N, I) * N``."""
    i = np.asarray(incident, dtype=np.float32)
    n = np.asarray(normal, dtype=np.float32)
    return (i - 2.0 * float(np.dot(n, i)) * n).astype(np.float32)


def mix(a: VecLike, b: VecLike, t: Union[float, np.ndarray]) -> np.ndarray:
    a_arr = np.asarray(a, dtype=np.float32)
    b_arr = np.asarray(b, dtype=np.float32)
    return (a_arr * (1.0 - t) + b_arr * t).astype(np.float32)


def clamped_dot(a: VecLike, b: VecLike, floor: float = EPSILON) -> float:
    """Dot product clamped from below; used for cosines that end up as divisors."""
    return max(float(np.dot(a, b)), floor)


def unit_interval(name: str, value: Any) -> float:
    v = float(value)
    if not (0.0 <= v <= 1.0):
        raise ValueError(f"{name} must be within [0, 1], got {v}")
    return v


def size_wh(width: Any, height: Any) -> Tuple[int, int]:
    try:
        w = int(width)
        h = int(height)
    except (TypeError, ValueError) as e:
        raise ValueError("width and height must be integers") from e
    if w <= 0 or h <= 0:
        raise ValueError("width and height must be > 0")
    return w, h
