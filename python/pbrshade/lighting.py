# python/pbrshade/lighting.py
# Analytic lights and direct-lighting accumulation over a light list.
# Exists to sum Cook-Torrance responses for directional and point lights.
# RELEVANT FILES:python/pbrshade/pbr.py,python/pbrshade/config.py,python/pbrshade/shading.py,tests/test_lighting.py

from __future__ import annotations

import numpy as np
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Optional, Sequence, Tuple

from ._validate import EPSILON, VecLike, as_vec3, normalize
from .pbr import evaluate_brdf


class LightType(Enum):
    """Light type enumeration."""
    DIRECTIONAL = "directional"
    POINT = "point"


@dataclass(frozen=True)
class Light:
    """An analytic light.

    ``vector`` is the direction from the surface toward the light for
    directional lights and the world-space position for point lights.
    ``color * intensity`` is the (unnormalized) radiance it delivers.
    """
    kind: LightType
    vector: Tuple[float, float, float]
    color: Tuple[float, float, float] = (1.0, 1.0, 1.0)
    intensity: float = 1.0

    @classmethod
    def directional(cls, direction: VecLike, color: VecLike = (1.0, 1.0, 1.0), intensity: float = 1.0) -> "Light":
        d = normalize(as_vec3(direction, "direction"))
        if not np.any(d):
            raise ValueError("directional light direction must be non-zero")
        return cls(LightType.DIRECTIONAL, tuple(float(c) for c in d),
                   tuple(float(c) for c in as_vec3(color, "color")), float(intensity))

    @classmethod
    def point(cls, position: VecLike, color: VecLike = (1.0, 1.0, 1.0), intensity: float = 1.0) -> "Light":
        return cls(LightType.POINT, tuple(float(c) for c in as_vec3(position, "position")),
                   tuple(float(c) for c in as_vec3(color, "color")), float(intensity))

    @classmethod
    def from_config(cls, config: Any) -> "Light":
        """Build from a :class:`pbrshade.config.LightConfig`."""
        if config.type == "directional":
            return cls.directional(config.direction, config.color, config.intensity)
        if config.type == "point":
            return cls.point(config.position, config.color, config.intensity)
        raise ValueError(f"Unsupported light type: {config.type!r}")

    @property
    def radiance(self) -> np.ndarray:
        return np.asarray(self.color, dtype=np.float32) * np.float32(self.intensity)

    def incident(self, world_position: Optional[VecLike] = None) -> Tuple[np.ndarray, float]:
        """Return ``(L, attenuation)`` at ``world_position``.

        Point lights fall off with the inverse square of the distance.
        """
        if self.kind is LightType.DIRECTIONAL:
            return np.asarray(self.vector, dtype=np.float32), 1.0
        p = np.zeros(3, dtype=np.float32) if world_position is None else as_vec3(world_position, "world_position")
        to_light = np.asarray(self.vector, dtype=np.float32) - p
        dist2 = float(np.dot(to_light, to_light))
        return normalize(to_light), 1.0 / max(dist2, EPSILON)


def light_contribution(
    normal: VecLike,
    view: VecLike,
    material: Any,
    light: Light,
    world_position: Optional[VecLike] = None,
) -> np.ndarray:
    """Outgoing radiance from one light: ``(diffuse + specular) * radiance * n.l``."""
    n = normalize(as_vec3(normal, "normal"))
    l, attenuation = light.incident(world_position)
    n_dot_l = float(np.dot(n, l))
    if n_dot_l <= 0.0:
        return np.zeros(3, dtype=np.float32)
    brdf = evaluate_brdf(n, view, l, material.albedo, material.roughness, material.metallic)
    radiance = light.radiance * np.float32(attenuation)
    return ((brdf.diffuse + brdf.specular) * radiance * np.float32(n_dot_l)).astype(np.float32)


def accumulate_direct(
    normal: VecLike,
    view: VecLike,
    material: Any,
    lights: Iterable[Light],
    world_position: Optional[VecLike] = None,
) -> np.ndarray:
    """Sum of :func:`light_contribution` over ``lights`` in list order.

    Lights do not occlude each other. An empty list yields black.
    """
    total = np.zeros(3, dtype=np.float32)
    for light in lights:
        total += light_contribution(normal, view, material, light, world_position)
    return total


def lights_from_config(configs: Sequence[Any]) -> list:
    return [Light.from_config(c) for c in configs]


__all__ = [
    "LightType",
    "Light",
    "light_contribution",
    "accumulate_direct",
    "lights_from_config",
]
