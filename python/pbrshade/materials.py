# python/pbrshade/materials.py
# Metallic-roughness material description and per-fragment material sampling.
# Exists to turn factors + channel sources into an immutable MaterialSample.
# RELEVANT FILES: python/pbrshade/textures.py, python/pbrshade/normalmap.py, python/pbrshade/shading.py, tests/test_materials.py

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

import numpy as np

from ._validate import as_vec3, normalize
from .normalmap import reconstruct_normal
from .textures import ChannelSource, Texture, resolve, resolve_occlusion, sample_channel

Color3 = Tuple[float, float, float]
Color4 = Tuple[float, float, float, float]

CHANNEL_NAMES = ("base_color", "metallic_roughness", "occlusion", "emissive", "normal")


@dataclass
class MaterialFactors:
    """Constant factors of a material, laid out like the per-draw uniform block."""
    base_color: Color4 = (1.0, 1.0, 1.0, 1.0)
    emissive: Color3 = (0.0, 0.0, 0.0)
    occlusion_strength: float = 1.0
    roughness_metallic: Tuple[float, float] = (1.0, 1.0)
    normal_scale: float = 1.0

    @property
    def roughness(self) -> float:
        return float(self.roughness_metallic[0])

    @property
    def metallic(self) -> float:
        return float(self.roughness_metallic[1])

    def to_dict(self) -> dict:
        return {
            "base_color": list(self.base_color),
            "emissive": list(self.emissive),
            "occlusion_strength": self.occlusion_strength,
            "roughness_metallic": list(self.roughness_metallic),
            "normal_scale": self.normal_scale,
        }

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "MaterialFactors":
        base = cls()
        if "base_color" in data:
            bc = tuple(float(c) for c in data["base_color"])
            if len(bc) != 4:
                raise ValueError("base_color must be length-4")
            base.base_color = bc
        if "emissive" in data:
            base.emissive = tuple(float(c) for c in as_vec3(data["emissive"], "emissive"))
        if "occlusion_strength" in data:
            base.occlusion_strength = float(data["occlusion_strength"])
        if "roughness" in data or "metallic" in data:
            base.roughness_metallic = (
                float(data.get("roughness", base.roughness)),
                float(data.get("metallic", base.metallic)),
            )
        if "roughness_metallic" in data:
            rm = tuple(float(c) for c in data["roughness_metallic"])
            if len(rm) != 2:
                raise ValueError("roughness_metallic must be length-2")
            base.roughness_metallic = rm
        if "normal_scale" in data:
            base.normal_scale = float(data["normal_scale"])
        return base


@dataclass
class PbrMaterial:
    """Factors plus one ChannelSource per material channel."""
    factors: MaterialFactors = field(default_factory=MaterialFactors)
    base_color: ChannelSource = field(default_factory=ChannelSource.absent)
    metallic_roughness: ChannelSource = field(default_factory=ChannelSource.absent)
    occlusion: ChannelSource = field(default_factory=ChannelSource.absent)
    emissive: ChannelSource = field(default_factory=ChannelSource.absent)
    normal: ChannelSource = field(default_factory=ChannelSource.absent)

    @property
    def has_normal_map(self) -> bool:
        return self.normal.is_texture

    def channels(self) -> Dict[str, ChannelSource]:
        return {name: getattr(self, name) for name in CHANNEL_NAMES}

    def with_channels(self, **channels: ChannelSource) -> "PbrMaterial":
        unknown = set(channels) - set(CHANNEL_NAMES)
        if unknown:
            raise ValueError(f"Unknown material channel(s): {sorted(unknown)}")
        return replace(self, **channels)

    @classmethod
    def from_uniform(
        cls,
        factors: MaterialFactors,
        selectors: Sequence[int],
        textures: Mapping[str, Optional[Texture]],
    ) -> "PbrMaterial":
        """Build from the uniform-block encoding.

        ``selectors`` lists the UV set per channel in :data:`CHANNEL_NAMES`
        order, with ``-1`` meaning the channel has no texture.
        """
        if len(selectors) != len(CHANNEL_NAMES):
            raise ValueError(f"selectors must have {len(CHANNEL_NAMES)} entries, got {len(selectors)}")
        sources = {
            name: ChannelSource.from_selector(textures.get(name), int(sel))
            for name, sel in zip(CHANNEL_NAMES, selectors)
        }
        return cls(factors=factors, **sources)

    def selectors(self) -> Tuple[int, ...]:
        return tuple(src.uv_set if src.is_texture else -1 for src in self.channels().values())


@dataclass(frozen=True, eq=False)
class MaterialSample:
    """Fully resolved material at one fragment. Immutable once built."""
    albedo: np.ndarray
    roughness: float
    metallic: float
    ambient_occlusion: float
    emissive: np.ndarray
    normal: np.ndarray
    alpha: float = 1.0

    def __post_init__(self):
        for name in ("albedo", "emissive", "normal"):
            arr = np.array(as_vec3(getattr(self, name), name), dtype=np.float32)
            arr.setflags(write=False)
            object.__setattr__(self, name, arr)


def sample_material(
    material: PbrMaterial,
    uv0: Any,
    uv1: Optional[Any],
    normal: Any,
    tangent: Optional[Any] = None,
    *,
    use_normal_map: bool = True,
) -> MaterialSample:
    """Resolve every channel of ``material`` at the given UVs.

    The shading normal comes from the normal reconstructor: the normal map
    is applied only when the material has one, ``use_normal_map`` is set
    and a tangent is available.
    """
    f = material.factors

    base = resolve(material.base_color, uv0, uv1, f.base_color)
    rm = resolve(material.metallic_roughness, uv0, uv1, f.roughness_metallic, components=(1, 2))
    ao = resolve_occlusion(material.occlusion, uv0, uv1, f.occlusion_strength)
    emissive = resolve(material.emissive, uv0, uv1, f.emissive)

    normal_sample = None
    if use_normal_map and material.has_normal_map and tangent is not None:
        normal_sample = sample_channel(material.normal, uv0, uv1)
    if normal_sample is not None:
        n = reconstruct_normal(normal, tangent, normal_sample[:3], scale=f.normal_scale)
    else:
        n = normalize(as_vec3(normal, "normal"))

    return MaterialSample(
        albedo=np.clip(base[:3], 0.0, 1.0).astype(np.float32),
        roughness=float(np.clip(rm[0], 0.0, 1.0)),
        metallic=float(np.clip(rm[1], 0.0, 1.0)),
        ambient_occlusion=float(np.clip(ao, 0.0, 1.0)),
        emissive=np.clip(emissive, 0.0, None).astype(np.float32),
        normal=n,
        alpha=float(base[3]),
    )


def validate_pbr_material(material: PbrMaterial) -> Dict[str, Any]:
    """Validate material factors and return detailed results."""
    errors = []
    warnings_list = []

    if not isinstance(material, PbrMaterial):
        errors.append("Invalid material type")
        return {"valid": False, "errors": errors, "warnings": warnings_list, "statistics": {}}

    f = material.factors
    if len(f.base_color) != 4:
        errors.append("base_color must be length-4 tuple/list")
    elif any(not (0.0 <= float(c) <= 1.0) for c in f.base_color):
        errors.append("base_color components must be in [0,1]")

    if not (0.0 <= f.metallic <= 1.0):
        errors.append("metallic out of range [0,1]")
    if not (0.0 <= f.roughness <= 1.0):
        errors.append("roughness out of range [0,1]")
    if not (0.0 <= float(f.occlusion_strength) <= 1.0):
        errors.append("occlusion_strength out of range [0,1]")
    if len(f.emissive) != 3 or any(float(c) < 0.0 for c in f.emissive):
        errors.append("emissive must be three non-negative values")

    if f.roughness < 0.04:
        warnings_list.append("roughness below 0.04 produces near-mirror highlights that alias")
    if material.normal.enabled and not material.has_normal_map:
        warnings_list.append("normal channel is a constant; normal mapping needs a texture")

    stats = {
        "is_metallic": f.metallic > 0.5,
        "is_dielectric": f.metallic < 0.5,
        "is_rough": f.roughness > 0.5,
        "is_emissive": any(float(c) > 0.0 for c in f.emissive),
        "textured_channels": [name for name, src in material.channels().items() if src.is_texture],
    }

    return {
        "valid": len(errors) == 0,
        "errors": errors,
        "warnings": warnings_list,
        "statistics": stats,
    }


def create_test_materials() -> Dict[str, PbrMaterial]:
    """Create standard test materials."""
    def make(color, metallic, roughness):
        return PbrMaterial(factors=MaterialFactors(base_color=color, roughness_metallic=(roughness, metallic)))

    return {
        "white": make((1.0, 1.0, 1.0, 1.0), 0.0, 1.0),
        "black": make((0.0, 0.0, 0.0, 1.0), 0.0, 1.0),
        "metal": make((0.7, 0.7, 0.7, 1.0), 1.0, 0.1),
        "dielectric": make((0.8, 0.2, 0.2, 1.0), 0.0, 0.3),
        "rough_plastic": make((0.2, 0.8, 0.2, 1.0), 0.0, 0.9),
        "smooth_metal": make((0.9, 0.9, 0.9, 1.0), 1.0, 0.05),
    }


__all__ = [
    "MaterialFactors",
    "PbrMaterial",
    "MaterialSample",
    "CHANNEL_NAMES",
    "sample_material",
    "validate_pbr_material",
    "create_test_materials",
]
