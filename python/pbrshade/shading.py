# python/pbrshade/shading.py
# Per-fragment shading pipeline driven by a feature set instead of per-variant code paths.
# Exists to compose material sampling, direct lighting, IBL and tone mapping into one call.
# RELEVANT FILES:python/pbrshade/materials.py,python/pbrshade/lighting.py,python/pbrshade/ibl.py,python/pbrshade/tonemap.py,tests/test_shading.py
"""
Fragment shading pipeline.

One evaluation path covers every shading variant: an unlit or normal debug
view, direct Cook-Torrance lighting, image-based lighting and normal-mapped
image-based lighting with extra analytic lights. :class:`ShadingFeatures`
selects which stages run.

Each fragment is a pure function of its inputs, so :func:`shade_fragments`
may spread work across threads without changing results.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

import numpy as np

from ._validate import VecLike, as_vec2, as_vec3, normalize
from .camera import Camera
from .config import DEBUG_VIEWS, LIGHTING_MODES
from .ibl import MAX_REFLECTION_LOD, evaluate_ibl
from .lighting import Light, accumulate_direct
from .materials import MaterialSample, PbrMaterial, sample_material
from .tonemap import TONEMAP_MODES, apply_tonemap

logger = logging.getLogger(__name__)

DEFAULT_AMBIENT = 0.03


@dataclass(frozen=True)
class ShadingFeatures:
    """Capability flags selecting the shading stages."""
    has_normal_map: bool = False
    lighting_mode: str = "direct"
    tonemap: str = "reinhard"
    debug_view: str = "none"

    def __post_init__(self):
        if self.lighting_mode not in LIGHTING_MODES:
            raise ValueError(f"Unknown lighting mode '{self.lighting_mode}'. Expected one of {LIGHTING_MODES}.")
        if self.tonemap not in TONEMAP_MODES:
            raise ValueError(f"Unknown tone map '{self.tonemap}'. Expected one of {TONEMAP_MODES}.")
        if self.debug_view not in DEBUG_VIEWS:
            raise ValueError(f"Unknown debug view '{self.debug_view}'. Expected one of {DEBUG_VIEWS}.")


@dataclass(frozen=True, eq=False)
class FragmentInput:
    """Interpolated geometry for one fragment."""
    world_position: np.ndarray
    normal: np.ndarray
    uv0: np.ndarray
    tangent: Optional[np.ndarray] = None
    uv1: Optional[np.ndarray] = None

    def __post_init__(self):
        object.__setattr__(self, "world_position", as_vec3(self.world_position, "world_position"))
        object.__setattr__(self, "normal", as_vec3(self.normal, "normal"))
        object.__setattr__(self, "uv0", as_vec2(self.uv0, "uv0"))
        if self.tangent is not None:
            tangent = np.asarray(self.tangent, dtype=np.float32)
            if tangent.shape not in ((3,), (4,)):
                raise ValueError(f"tangent must have shape (3,) or (4,), got {tangent.shape}")
            object.__setattr__(self, "tangent", tangent)
        if self.uv1 is not None:
            object.__setattr__(self, "uv1", as_vec2(self.uv1, "uv1"))


def view_vector(camera: Camera, world_position: VecLike) -> np.ndarray:
    """Unit vector from the surface toward the eye."""
    return normalize(camera.eye_position - as_vec3(world_position, "world_position"))


def radiance_for_sample(
    sample: MaterialSample,
    view: VecLike,
    world_position: VecLike,
    lights: Sequence[Light],
    probe: Any,
    features: ShadingFeatures,
    *,
    ambient: float = DEFAULT_AMBIENT,
    max_reflection_lod: float = MAX_REFLECTION_LOD,
) -> np.ndarray:
    """Linear outgoing radiance for an already resolved material sample."""
    if features.debug_view == "normal":
        return (sample.normal * 0.5 + 0.5).astype(np.float32)

    mode = features.lighting_mode
    if mode == "none":
        return (sample.albedo + sample.emissive).astype(np.float32)

    direct = accumulate_direct(sample.normal, view, sample, lights, world_position)
    if mode == "direct":
        ambient_term = np.float32(ambient) * sample.albedo * np.float32(sample.ambient_occlusion)
        return (direct + ambient_term + sample.emissive).astype(np.float32)

    if probe is None:
        raise ValueError("lighting_mode 'ibl' requires an environment probe")
    ibl = evaluate_ibl(sample.normal, view, sample, probe, max_reflection_lod=max_reflection_lod)
    return (ibl + direct).astype(np.float32)


def compute_radiance(
    fragment: FragmentInput,
    material: PbrMaterial,
    camera: Camera,
    lights: Sequence[Light] = (),
    probe: Any = None,
    features: Optional[ShadingFeatures] = None,
    *,
    ambient: float = DEFAULT_AMBIENT,
    max_reflection_lod: float = MAX_REFLECTION_LOD,
) -> np.ndarray:
    """Pre-tone-map radiance for one fragment."""
    features = features if features is not None else ShadingFeatures()
    sample = sample_material(
        material,
        fragment.uv0,
        fragment.uv1,
        fragment.normal,
        fragment.tangent,
        use_normal_map=features.has_normal_map,
    )
    view = view_vector(camera, fragment.world_position)
    return radiance_for_sample(
        sample, view, fragment.world_position, lights, probe, features,
        ambient=ambient, max_reflection_lod=max_reflection_lod,
    )


def shade_fragment(
    fragment: FragmentInput,
    material: PbrMaterial,
    camera: Camera,
    lights: Sequence[Light] = (),
    probe: Any = None,
    features: Optional[ShadingFeatures] = None,
    *,
    exposure: float = 1.0,
    ambient: float = DEFAULT_AMBIENT,
    max_reflection_lod: float = MAX_REFLECTION_LOD,
) -> np.ndarray:
    """Shade one fragment to display-referred RGBA with alpha fixed at 1.

    The normal debug view bypasses exposure and tone mapping.
    """
    features = features if features is not None else ShadingFeatures()
    radiance = compute_radiance(
        fragment, material, camera, lights, probe, features,
        ambient=ambient, max_reflection_lod=max_reflection_lod,
    )
    if features.debug_view == "normal":
        rgb = np.clip(radiance, 0.0, 1.0)
    else:
        rgb = apply_tonemap(radiance, features.tonemap, exposure=exposure)
    out = np.ones(4, dtype=np.float32)
    out[:3] = rgb
    return out


def shade_fragments(
    fragments: Sequence[FragmentInput],
    material: PbrMaterial,
    camera: Camera,
    lights: Sequence[Light] = (),
    probe: Any = None,
    features: Optional[ShadingFeatures] = None,
    *,
    exposure: float = 1.0,
    ambient: float = DEFAULT_AMBIENT,
    max_reflection_lod: float = MAX_REFLECTION_LOD,
    workers: Optional[int] = None,
) -> np.ndarray:
    """Shade many fragments; returns (N, 4) float32 in input order.

    ``workers`` > 1 evaluates fragments on a thread pool.
    """
    features = features if features is not None else ShadingFeatures()
    lights = list(lights)
    fragments = list(fragments)
    if not fragments:
        return np.zeros((0, 4), dtype=np.float32)

    def _shade(fragment: FragmentInput) -> np.ndarray:
        return shade_fragment(
            fragment, material, camera, lights, probe, features,
            exposure=exposure, ambient=ambient, max_reflection_lod=max_reflection_lod,
        )

    if workers is not None and workers > 1:
        logger.debug("Shading %d fragments on %d workers", len(fragments), workers)
        with ThreadPoolExecutor(max_workers=int(workers)) as executor:
            results: List[np.ndarray] = list(executor.map(_shade, fragments))
    else:
        results = [_shade(f) for f in fragments]
    return np.stack(results).astype(np.float32)


__all__ = [
    "DEFAULT_AMBIENT",
    "ShadingFeatures",
    "FragmentInput",
    "Camera",
    "view_vector",
    "radiance_for_sample",
    "compute_radiance",
    "shade_fragment",
    "shade_fragments",
]
