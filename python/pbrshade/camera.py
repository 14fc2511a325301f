# python/pbrshade/camera.py
# Camera uniform block (view, proj, view_inverse) and matrix constructors.
# Exists so shading, vertex transform and projection helpers share one camera type.
# RELEVANT FILES:python/pbrshade/shading.py,python/pbrshade/vertex.py,python/pbrshade/projection.py,tests/test_vertex.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

import numpy as np

from ._validate import as_mat4


def camera_look_at(eye: Any, target: Any, up: Any) -> np.ndarray:
    """Right-handed view matrix looking from ``eye`` toward ``target`` (-Z forward)."""
    eye_v = np.array(eye, dtype=np.float32)
    tgt_v = np.array(target, dtype=np.float32)
    up_v = np.array(up, dtype=np.float32)
    if not (np.all(np.isfinite(eye_v)) and np.all(np.isfinite(tgt_v)) and np.all(np.isfinite(up_v))):
        raise ValueError("eye/target/up components must be finite")
    view_dir = tgt_v - eye_v
    if np.linalg.norm(view_dir) < 1e-12:
        raise ValueError("eye and target must differ")
    f = view_dir / np.linalg.norm(view_dir)
    upn = up_v / (np.linalg.norm(up_v) + 1e-12)
    if abs(float(np.dot(f, upn))) > 1.0 - 1e-6:
        raise ValueError("up vector must not be colinear with view direction")
    s = np.cross(f, upn)
    s = s / np.linalg.norm(s)
    u = np.cross(s, f)

    V = np.eye(4, dtype=np.float32)
    V[0, 0:3] = s
    V[1, 0:3] = u
    V[2, 0:3] = -f
    V[0:3, 3] = -(V[0:3, 0:3] @ eye_v)
    return V


def camera_perspective(fovy_deg: float, aspect: float, znear: float, zfar: float) -> np.ndarray:
    """Perspective projection mapping view-space depth to clip z in ``[0, 1]``."""
    if not (np.isfinite(fovy_deg) and 0.0 < float(fovy_deg) < 180.0):
        raise ValueError("fovy_deg must be finite and in (0, 180)")
    if not (np.isfinite(aspect) and float(aspect) > 0.0):
        raise ValueError("aspect must be finite and > 0")
    if not (np.isfinite(znear) and float(znear) > 0.0):
        raise ValueError("znear must be finite and > 0")
    if not (np.isfinite(zfar) and float(zfar) > float(znear)):
        raise ValueError("zfar must be finite and > znear")
    f = 1.0 / np.tan(np.radians(float(fovy_deg)) * 0.5)
    M = np.zeros((4, 4), dtype=np.float32)
    M[0, 0] = f / float(aspect)
    M[1, 1] = f
    M[2, 2] = zfar / (znear - zfar)
    M[2, 3] = (zfar * znear) / (znear - zfar)
    M[3, 2] = -1.0
    return M


def compute_normal_matrix(model: Any) -> np.ndarray:
    """Inverse-transpose of the model's upper 3x3."""
    m = as_mat4(model, "model")
    return np.linalg.inv(m[0:3, 0:3].astype(np.float64)).T.astype(np.float32)


@dataclass(frozen=True, eq=False)
class Camera:
    """Per-draw camera block.

    ``view_inverse`` defaults to ``inverse(view)``; its translation column is
    the world-space eye position.
    """
    view: np.ndarray
    proj: np.ndarray
    view_inverse: Optional[np.ndarray] = None

    def __post_init__(self):
        view = as_mat4(self.view, "view")
        object.__setattr__(self, "view", view)
        object.__setattr__(self, "proj", as_mat4(self.proj, "proj"))
        if self.view_inverse is None:
            inv = np.linalg.inv(view.astype(np.float64)).astype(np.float32)
        else:
            inv = as_mat4(self.view_inverse, "view_inverse")
        object.__setattr__(self, "view_inverse", inv)

    @classmethod
    def look_at(
        cls,
        eye: Any,
        target: Any = (0.0, 0.0, 0.0),
        up: Any = (0.0, 1.0, 0.0),
        *,
        fovy_deg: float = 45.0,
        aspect: float = 1.0,
        znear: float = 0.1,
        zfar: float = 100.0,
    ) -> "Camera":
        return cls(camera_look_at(eye, target, up), camera_perspective(fovy_deg, aspect, znear, zfar))

    @property
    def eye_position(self) -> np.ndarray:
        return self.view_inverse[0:3, 3].copy()

    @property
    def view_proj(self) -> np.ndarray:
        return (self.proj @ self.view).astype(np.float32)


__all__ = ["Camera", "camera_look_at", "camera_perspective", "compute_normal_matrix"]
