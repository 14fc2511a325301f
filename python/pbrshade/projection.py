"""
Directional projection between unit directions and equirectangular UVs.

Convention used throughout the package (the panorama-to-cubemap convention)::

    u = (atan2(d.z, d.x) + pi) / (2 pi)
    v = (asin(d.y) + pi / 2) / pi
    uv = 1 - (u, v)

UV ``(0, 0)`` is the top-left texel of the panorama, so ``+Y`` lands on the
top row (``v = 0``). :func:`equirect_uv_to_direction` is the exact inverse of
:func:`direction_to_equirect_uv`; pass ``raw=True`` to both to work with the
uncomplemented form instead.

All functions accept a single vector or a stack of vectors along the last axis.
"""

from __future__ import annotations

from typing import Any

import numpy as np

from ._validate import as_vec3

_TWO_PI = 2.0 * np.pi
_HALF_PI = 0.5 * np.pi


def _last_axis(arr: np.ndarray, size: int, label: str) -> np.ndarray:
    if arr.shape[-1:] != (size,):
        raise ValueError(f"{label} must have shape (..., {size}); got {arr.shape}")
    return arr


def direction_to_equirect_uv(direction: Any, *, raw: bool = False) -> np.ndarray:
    """Map unit direction(s) to equirectangular UV(s) in ``[0, 1]``.

    The direction is normalized first. At the poles (``|d.y| == 1``) the
    azimuth is undefined; ``atan2`` yields whatever its zero-argument
    convention gives, which is still a valid texel on the pole row.
    """
    d = _last_axis(np.asarray(direction, dtype=np.float64), 3, "direction")
    length = np.linalg.norm(d, axis=-1, keepdims=True)
    d = d / np.where(length > 0.0, length, 1.0)

    phi = np.arctan2(d[..., 2], d[..., 0])
    theta = np.arcsin(np.clip(d[..., 1], -1.0, 1.0))
    u = (phi + np.pi) / _TWO_PI
    v = (theta + _HALF_PI) / np.pi
    uv = np.stack([u, v], axis=-1)
    if not raw:
        uv = 1.0 - uv
    return uv.astype(np.float32)


def equirect_uv_to_direction(uv: Any, *, raw: bool = False) -> np.ndarray:
    """Inverse of :func:`direction_to_equirect_uv`; returns unit direction(s)."""
    coords = _last_axis(np.asarray(uv, dtype=np.float64), 2, "uv")
    if not raw:
        coords = 1.0 - coords
    phi = coords[..., 0] * _TWO_PI - np.pi
    theta = coords[..., 1] * np.pi - _HALF_PI
    cos_theta = np.cos(theta)
    direction = np.stack(
        [cos_theta * np.cos(phi), np.sin(theta), cos_theta * np.sin(phi)],
        axis=-1,
    )
    return direction.astype(np.float32)


def skybox_direction(position: Any) -> np.ndarray:
    """Cube-vertex position to the lookup direction used by the skybox pass.

    The x axis is mirrored so the panorama is seen from the inside.
    """
    p = as_vec3(position, "position")
    return np.array([-p[0], p[1], p[2]], dtype=np.float32)


def skybox_clip_position(position: Any, camera: Any) -> np.ndarray:
    """Project a skybox vertex with w = 0 and force depth to the far plane (xyww)."""
    p = as_vec3(position, "position")
    clip = camera.proj @ camera.view @ np.array([p[0], p[1], p[2], 0.0], dtype=np.float32)
    return np.array([clip[0], clip[1], clip[3], clip[3]], dtype=np.float32)


def camera_ray_direction(ndc: Any, camera: Any) -> np.ndarray:
    """World-space ray direction through a normalized-device-coordinate point.

    Used by the panorama preview path: the returned direction can be fed
    directly into :func:`direction_to_equirect_uv`.
    """
    xy = np.asarray(ndc, dtype=np.float32)
    if xy.shape != (2,):
        raise ValueError(f"ndc must have shape (2,), got {xy.shape}")
    inv_proj = np.linalg.inv(camera.proj.astype(np.float64))
    target = inv_proj @ np.array([xy[0], xy[1], 1.0, 1.0])
    view_dir = target[:3] / (target[3] if abs(target[3]) > 1e-12 else 1.0)
    world = camera.view_inverse.astype(np.float64) @ np.array([view_dir[0], view_dir[1], view_dir[2], 0.0])
    world = world[:3]
    length = np.linalg.norm(world)
    if length > 0.0:
        world = world / length
    return world.astype(np.float32)


def sample_equirect(image: np.ndarray, uv: Any) -> np.ndarray:
    """Bilinearly sample an (H, W, C) panorama at UV(s); u wraps, v clamps."""
    img = np.asarray(image, dtype=np.float32)
    if img.ndim != 3:
        raise ValueError(f"panorama must be (H, W, C); got {img.shape}")
    h, w, _ = img.shape
    coords = _last_axis(np.asarray(uv, dtype=np.float64), 2, "uv")

    px = coords[..., 0] * w - 0.5
    py = coords[..., 1] * h - 0.5
    x0 = np.floor(px).astype(np.int64)
    y0 = np.floor(py).astype(np.int64)
    fx = (px - x0)[..., np.newaxis].astype(np.float32)
    fy = (py - y0)[..., np.newaxis].astype(np.float32)

    x1 = (x0 + 1) % w
    x0 = x0 % w
    y1 = np.clip(y0 + 1, 0, h - 1)
    y0 = np.clip(y0, 0, h - 1)

    c00 = img[y0, x0]
    c10 = img[y0, x1]
    c01 = img[y1, x0]
    c11 = img[y1, x1]
    return (c00 * (1 - fx) * (1 - fy)
            + c10 * fx * (1 - fy)
            + c01 * (1 - fx) * fy
            + c11 * fx * fy)


def sample_panorama(image: np.ndarray, direction: Any) -> np.ndarray:
    """Sample a panorama along direction(s) using the package UV convention."""
    return sample_equirect(image, direction_to_equirect_uv(direction))


__all__ = [
    "direction_to_equirect_uv",
    "equirect_uv_to_direction",
    "skybox_direction",
    "skybox_clip_position",
    "camera_ray_direction",
    "sample_equirect",
    "sample_panorama",
]
