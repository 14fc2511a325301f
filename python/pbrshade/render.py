# python/pbrshade/render.py
# Reference CPU renderer: ray-cast material sphere preview and PNG export.
# Exists to exercise the whole shading pipeline end to end without a GPU.
# RELEVANT FILES:python/pbrshade/shading.py,python/pbrshade/projection.py,python/pbrshade/config.py,tests/test_render.py

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, List, Optional, Tuple, Union

import numpy as np

from .camera import Camera
from .config import ConfigSource, load_shading_config
from .lighting import lights_from_config
from .materials import PbrMaterial
from .projection import camera_ray_direction, direction_to_equirect_uv
from .shading import FragmentInput, shade_fragments
from .tonemap import apply_tonemap, encode_srgb, to_rgba8

logger = logging.getLogger(__name__)


def _sphere_fragment(point: np.ndarray) -> FragmentInput:
    n = point / np.linalg.norm(point)
    up = np.array([0.0, 1.0, 0.0], dtype=np.float32)
    if abs(float(n[1])) > 0.999:
        up = np.array([0.0, 0.0, 1.0], dtype=np.float32)
    t = np.cross(up, n)
    t = t / np.linalg.norm(t)
    return FragmentInput(
        world_position=point,
        normal=n,
        uv0=direction_to_equirect_uv(n),
        tangent=np.append(t, np.float32(1.0)),
    )


def _intersect_unit_sphere(origin: np.ndarray, direction: np.ndarray) -> Optional[np.ndarray]:
    b = float(np.dot(origin, direction))
    c = float(np.dot(origin, origin)) - 1.0
    disc = b * b - c
    if disc < 0.0:
        return None
    t = -b - np.sqrt(disc)
    if t <= 0.0:
        return None
    return (origin + t * direction).astype(np.float32)


def render_material_sphere(
    material: PbrMaterial,
    config: ConfigSource = None,
    probe: Any = None,
    size: int = 64,
    workers: Optional[int] = None,
    *,
    camera: Optional[Camera] = None,
) -> np.ndarray:
    """Render a unit sphere with ``material`` and return (size, size, 4) uint8 RGBA.

    Background pixels show the probe's sharpest prefiltered level (tone mapped
    like the sphere) or black when no probe is given.
    """
    if size <= 0:
        raise ValueError("size must be positive")
    cfg = load_shading_config(config)
    if camera is None:
        camera = Camera.look_at((0.0, 0.0, 3.0), fovy_deg=45.0, aspect=1.0)
    features = cfg.features(material.has_normal_map)
    lights = lights_from_config(cfg.lighting.lights)
    eye = camera.eye_position

    fragments: List[FragmentInput] = []
    hit_pixels: List[Tuple[int, int]] = []
    miss_pixels: List[Tuple[int, int]] = []
    miss_dirs: List[np.ndarray] = []
    for j in range(size):
        for i in range(size):
            ndc = ((i + 0.5) / size * 2.0 - 1.0, 1.0 - (j + 0.5) / size * 2.0)
            d = camera_ray_direction(ndc, camera)
            hit = _intersect_unit_sphere(eye, d)
            if hit is None:
                miss_pixels.append((j, i))
                miss_dirs.append(d)
            else:
                hit_pixels.append((j, i))
                fragments.append(_sphere_fragment(hit))

    logger.debug("Rendering %dx%d sphere preview: %d fragments", size, size, len(fragments))
    image = np.zeros((size, size, 3), dtype=np.float32)
    shaded = shade_fragments(
        fragments, material, camera, lights, probe, features,
        exposure=cfg.lighting.exposure,
        ambient=cfg.lighting.ambient,
        max_reflection_lod=cfg.ibl.max_reflection_lod,
        workers=workers,
    )
    for (j, i), rgba in zip(hit_pixels, shaded):
        image[j, i] = rgba[:3]

    if probe is not None and miss_dirs:
        background = probe.prefiltered.levels[0].sample_direction(np.stack(miss_dirs))
        background = apply_tonemap(background, features.tonemap, exposure=cfg.lighting.exposure)
        for (j, i), rgb in zip(miss_pixels, background):
            image[j, i] = rgb

    if features.debug_view == "normal":
        return to_rgba8(image)
    return to_rgba8(encode_srgb(image))


def save_png(image: np.ndarray, path: Union[str, Path]) -> None:
    """Save (H, W, 3|4) uint8 image data as PNG."""
    from PIL import Image

    arr = np.asarray(image)
    if arr.dtype != np.uint8:
        raise TypeError(f"image must be uint8, got {arr.dtype}")
    if arr.ndim != 3 or arr.shape[2] not in (3, 4):
        raise ValueError(f"image must be (H, W, 3|4), got {arr.shape}")
    path = Path(path)
    Image.fromarray(arr).save(path)
    logger.info("Saved PNG: %s", path)


__all__ = ["render_material_sphere", "save_png"]
