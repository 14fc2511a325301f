# python/pbrshade/vertex.py
# Vertex stage: object-to-world/clip transforms and varying interpolation.
# Exists to produce FragmentInput values from mesh attributes for the shading pipeline.
# RELEVANT FILES:python/pbrshade/camera.py,python/pbrshade/shading.py,tests/test_vertex.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Sequence

import numpy as np

from ._validate import as_mat4, as_vec2, as_vec3, as_vec4, normalize
from .camera import Camera, compute_normal_matrix
from .shading import FragmentInput


@dataclass(frozen=True, eq=False)
class Vertex:
    """Per-vertex attributes as laid out in the vertex buffer."""
    position: np.ndarray
    normal: np.ndarray
    uv0: np.ndarray = (0.0, 0.0)
    tangent: Optional[np.ndarray] = None
    uv1: Optional[np.ndarray] = None

    def __post_init__(self):
        object.__setattr__(self, "position", as_vec3(self.position, "position"))
        object.__setattr__(self, "normal", as_vec3(self.normal, "normal"))
        object.__setattr__(self, "uv0", as_vec2(self.uv0, "uv0"))
        if self.tangent is not None:
            tangent = np.asarray(self.tangent, dtype=np.float32)
            if tangent.shape == (3,):
                tangent = np.append(tangent, np.float32(1.0))
            object.__setattr__(self, "tangent", as_vec4(tangent, "tangent"))
        if self.uv1 is not None:
            object.__setattr__(self, "uv1", as_vec2(self.uv1, "uv1"))


@dataclass(frozen=True, eq=False)
class Varyings:
    """Vertex stage output."""
    clip_position: np.ndarray
    world_position: np.ndarray
    normal: np.ndarray
    uv0: np.ndarray
    tangent: Optional[np.ndarray] = None
    uv1: Optional[np.ndarray] = None


def instance_model_matrix(c0: Any, c1: Any, c2: Any, c3: Any) -> np.ndarray:
    """Assemble a 4x4 model matrix from four per-instance column vectors."""
    cols = [as_vec4(c, f"column {i}") for i, c in enumerate((c0, c1, c2, c3))]
    return np.stack(cols, axis=1).astype(np.float32)


def transform_vertex(vertex: Vertex, camera: Camera, model: Optional[Any] = None) -> Varyings:
    """Transform one vertex into world and clip space.

    Normals use the inverse-transpose of the model's upper 3x3 so non-uniform
    scale keeps them perpendicular to the surface. Tangents use the plain 3x3
    and keep their handedness ``w``.
    """
    m = np.eye(4, dtype=np.float32) if model is None else as_mat4(model, "model")
    world = m @ np.append(vertex.position, np.float32(1.0))
    clip = camera.proj @ camera.view @ world

    normal = normalize(compute_normal_matrix(m) @ vertex.normal)
    tangent = None
    if vertex.tangent is not None:
        t = normalize(m[0:3, 0:3] @ vertex.tangent[:3])
        tangent = np.append(t, vertex.tangent[3]).astype(np.float32)

    return Varyings(
        clip_position=clip.astype(np.float32),
        world_position=(world[:3] / world[3]).astype(np.float32),
        normal=normal,
        uv0=vertex.uv0.copy(),
        tangent=tangent,
        uv1=None if vertex.uv1 is None else vertex.uv1.copy(),
    )


def interpolate_varyings(varyings: Sequence[Varyings], barycentric: Any) -> FragmentInput:
    """Barycentric blend of a triangle's varyings (no perspective correction).

    Optional attributes are carried only when all three vertices have them.
    The tangent handedness is taken from the first vertex.
    """
    if len(varyings) != 3:
        raise ValueError(f"expected 3 varyings, got {len(varyings)}")
    w = np.asarray(barycentric, dtype=np.float32)
    if w.shape != (3,):
        raise ValueError(f"barycentric must have shape (3,), got {w.shape}")

    def blend(attr: str) -> np.ndarray:
        return np.einsum("i,ij->j", w, np.stack([getattr(v, attr) for v in varyings])).astype(np.float32)

    tangent = None
    if all(v.tangent is not None for v in varyings):
        t = blend("tangent")
        t[3] = 1.0 if varyings[0].tangent[3] >= 0.0 else -1.0
        tangent = t
    uv1 = blend("uv1") if all(v.uv1 is not None for v in varyings) else None

    return FragmentInput(
        world_position=blend("world_position"),
        normal=blend("normal"),
        uv0=blend("uv0"),
        tangent=tangent,
        uv1=uv1,
    )


__all__ = ["Vertex", "Varyings", "instance_model_matrix", "transform_vertex", "interpolate_varyings"]
