# python/pbrshade/config.py
# Shading configuration parsing for lights, lighting mode, tone mapping and IBL baking
# Exists to turn JSON/mapping input into validated dataclasses the pipeline can consume
# RELEVANT FILES: python/pbrshade/shading.py, python/pbrshade/lighting.py, python/pbrshade/envmap.py, tests/test_config.py
from __future__ import annotations

import copy
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

ConfigSource = Union["ShadingConfig", Mapping[str, Any], str, Path, None]

_LIGHT_TYPES: Dict[str, str] = {
    "directional": "directional",
    "dir": "directional",
    "sun": "directional",
    "point": "point",
    "pointlight": "point",
}

_LIGHTING_MODES: Dict[str, str] = {
    "none": "none",
    "unlit": "none",
    "off": "none",
    "direct": "direct",
    "cooktorrance": "direct",
    "ibl": "ibl",
    "imagebased": "ibl",
    "environment": "ibl",
}

_TONEMAPS: Dict[str, str] = {
    "linear": "linear",
    "none": "linear",
    "clamp": "linear",
    "reinhard": "reinhard",
    "neutral": "neutral",
    "pbrneutral": "neutral",
    "khronosneutral": "neutral",
}

_DEBUG_VIEWS: Dict[str, str] = {
    "none": "none",
    "off": "none",
    "normal": "normal",
    "normals": "normal",
}

LIGHTING_MODES = ("none", "direct", "ibl")
DEBUG_VIEWS = ("none", "normal")


def _normalize_key(value: Any) -> str:
    return "".join(
        c
        for c in str(value).strip().lower()
        if c not in {"-", "_", " ", "."}
    )


def _normalize_choice(value: Any, mapping: Mapping[str, str], label: str) -> str:
    key = _normalize_key(value)
    if key not in mapping:
        raise ValueError(f"Unknown {label}: {value!r}")
    return mapping[key]


def _to_float3(value: Any, label: str) -> Tuple[float, float, float]:
    if value is None:
        raise ValueError(f"{label} requires three floats")
    if isinstance(value, (list, tuple)) and len(value) == 3:
        return (float(value[0]), float(value[1]), float(value[2]))
    raise ValueError(f"{label} must be a sequence of three numeric values")


def _to_int2(value: Any, label: str) -> Tuple[int, int]:
    if isinstance(value, (list, tuple)) and len(value) == 2:
        return (int(value[0]), int(value[1]))
    raise ValueError(f"{label} must be a sequence of two integers (width, height)")


def _maybe_float3(value: Any, label: str = "vector") -> Optional[Tuple[float, float, float]]:
    if value is None:
        return None
    return _to_float3(value, label)


@dataclass
class LightConfig:
    type: str = "directional"
    intensity: float = 1.0
    color: Tuple[float, float, float] = (1.0, 1.0, 1.0)
    direction: Optional[Tuple[float, float, float]] = (0.0, 0.0, 1.0)
    position: Optional[Tuple[float, float, float]] = None

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "intensity": self.intensity,
            "color": list(self.color),
            "direction": list(self.direction) if self.direction is not None else None,
            "position": list(self.position) if self.position is not None else None,
        }

    def validate(self, index: int) -> None:
        label = f"lights[{index}]"
        if self.type == "directional":
            if self.direction is None:
                raise ValueError(f"{label}.direction required for directional lights")
            if all(c == 0.0 for c in self.direction):
                raise ValueError(f"{label}.direction must be non-zero")
        if self.type == "point" and self.position is None:
            raise ValueError(f"{label}.position required for point lights")
        if self.intensity < 0.0:
            raise ValueError(f"{label}.intensity must be non-negative")
        if any(c < 0.0 for c in self.color):
            raise ValueError(f"{label}.color components must be non-negative")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], default: Optional["LightConfig"] = None) -> "LightConfig":
        base = copy.deepcopy(default) if default is not None else cls()
        if "type" in data:
            base.type = _normalize_choice(data["type"], _LIGHT_TYPES, "light type")
        if "intensity" in data:
            base.intensity = float(data["intensity"])
        if "color" in data:
            base.color = _to_float3(data["color"], "color")
        if "direction" in data:
            base.direction = _maybe_float3(data["direction"], "direction")
        if "position" in data:
            base.position = _maybe_float3(data["position"], "position")
        if default is None and "direction" not in data and base.type == "point":
            base.direction = None
        return base


@dataclass
class LightingParams:
    lights: List[LightConfig] = field(default_factory=lambda: [LightConfig()])
    exposure: float = 1.0
    ambient: float = 0.03

    def to_dict(self) -> dict:
        return {
            "lights": [light.to_dict() for light in self.lights],
            "exposure": self.exposure,
            "ambient": self.ambient,
        }

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], default: Optional["LightingParams"] = None) -> "LightingParams":
        base = copy.deepcopy(default) if default is not None else cls()
        if "exposure" in data:
            base.exposure = float(data["exposure"])
        if "ambient" in data:
            base.ambient = float(data["ambient"])
        lights_value = data.get("lights", data.get("light"))
        if lights_value is not None:
            lights_list: List[LightConfig] = []
            items = lights_value if isinstance(lights_value, Sequence) and not isinstance(lights_value, (str, bytes)) else [lights_value]
            for item in items:
                if isinstance(item, Mapping):
                    lights_list.append(LightConfig.from_mapping(item))
                else:
                    raise TypeError("lighting.lights entries must be mappings")
            # Zero lights is valid: direct lighting then contributes nothing.
            base.lights = lights_list
        return base


@dataclass
class ShadingParams:
    lighting_mode: str = "direct"
    normal_maps: bool = True
    tonemap: str = "reinhard"
    debug_view: str = "none"

    def to_dict(self) -> dict:
        return {
            "lighting_mode": self.lighting_mode,
            "normal_maps": self.normal_maps,
            "tonemap": self.tonemap,
            "debug_view": self.debug_view,
        }

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], default: Optional["ShadingParams"] = None) -> "ShadingParams":
        base = copy.deepcopy(default) if default is not None else cls()
        if "lighting_mode" in data:
            base.lighting_mode = _normalize_choice(data["lighting_mode"], _LIGHTING_MODES, "lighting mode")
        if "normal_maps" in data:
            base.normal_maps = bool(data["normal_maps"])
        if "tonemap" in data:
            base.tonemap = _normalize_choice(data["tonemap"], _TONEMAPS, "tone map")
        if "debug_view" in data:
            base.debug_view = _normalize_choice(data["debug_view"], _DEBUG_VIEWS, "debug view")
        return base


@dataclass
class IblParams:
    max_reflection_lod: float = 4.0
    brdf_lut_size: int = 32
    irradiance_size: Tuple[int, int] = (32, 16)
    irradiance_step: float = 0.05
    prefilter_size: Tuple[int, int] = (64, 32)
    prefilter_levels: int = 5
    samples: int = 256

    def to_dict(self) -> dict:
        return {
            "max_reflection_lod": self.max_reflection_lod,
            "brdf_lut_size": self.brdf_lut_size,
            "irradiance_size": list(self.irradiance_size),
            "irradiance_step": self.irradiance_step,
            "prefilter_size": list(self.prefilter_size),
            "prefilter_levels": self.prefilter_levels,
            "samples": self.samples,
        }

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], default: Optional["IblParams"] = None) -> "IblParams":
        base = copy.deepcopy(default) if default is not None else cls()
        if "max_reflection_lod" in data:
            base.max_reflection_lod = float(data["max_reflection_lod"])
        if "brdf_lut_size" in data:
            base.brdf_lut_size = int(data["brdf_lut_size"])
        if "irradiance_size" in data:
            base.irradiance_size = _to_int2(data["irradiance_size"], "irradiance_size")
        if "irradiance_step" in data:
            base.irradiance_step = float(data["irradiance_step"])
        if "prefilter_size" in data:
            base.prefilter_size = _to_int2(data["prefilter_size"], "prefilter_size")
        if "prefilter_levels" in data:
            base.prefilter_levels = int(data["prefilter_levels"])
        if "samples" in data:
            base.samples = int(data["samples"])
        return base

    def validate(self) -> None:
        if self.max_reflection_lod < 0.0:
            raise ValueError("ibl.max_reflection_lod must be non-negative")
        if self.brdf_lut_size <= 0:
            raise ValueError("ibl.brdf_lut_size must be greater than zero")
        if min(self.irradiance_size) <= 0 or min(self.prefilter_size) <= 0:
            raise ValueError("ibl map sizes must be greater than zero")
        if not (0.0 < self.irradiance_step < 0.5 * 3.141592653589793):
            raise ValueError("ibl.irradiance_step must be within (0, pi/2)")
        if self.prefilter_levels < 1:
            raise ValueError("ibl.prefilter_levels must be at least 1")
        if self.samples <= 0:
            raise ValueError("ibl.samples must be greater than zero")


@dataclass
class ShadingConfig:
    lighting: LightingParams = field(default_factory=LightingParams)
    shading: ShadingParams = field(default_factory=ShadingParams)
    ibl: IblParams = field(default_factory=IblParams)

    def to_dict(self) -> dict:
        return {
            "lighting": self.lighting.to_dict(),
            "shading": self.shading.to_dict(),
            "ibl": self.ibl.to_dict(),
        }

    def copy(self) -> "ShadingConfig":
        return copy.deepcopy(self)

    def validate(self) -> None:
        for idx, light in enumerate(self.lighting.lights):
            light.validate(idx)
        if self.lighting.exposure <= 0.0:
            raise ValueError("lighting.exposure must be positive")
        if self.lighting.ambient < 0.0:
            raise ValueError("lighting.ambient must be non-negative")
        self.ibl.validate()

    def features(self, has_normal_map: bool = False):
        """Capability set for the shading pipeline.

        ``has_normal_map`` reflects the material; normal mapping is active
        only when the material has a normal map and ``shading.normal_maps``
        allows it.
        """
        from .shading import ShadingFeatures

        return ShadingFeatures(
            has_normal_map=bool(has_normal_map) and self.shading.normal_maps,
            lighting_mode=self.shading.lighting_mode,
            tonemap=self.shading.tonemap,
            debug_view=self.shading.debug_view,
        )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], default: Optional["ShadingConfig"] = None) -> "ShadingConfig":
        base = copy.deepcopy(default) if default is not None else cls()
        if "lighting" in data:
            if isinstance(data["lighting"], Mapping):
                base.lighting = LightingParams.from_mapping(data["lighting"], base.lighting)
            else:
                raise TypeError("lighting must be a mapping")
        if "shading" in data:
            if isinstance(data["shading"], Mapping):
                base.shading = ShadingParams.from_mapping(data["shading"], base.shading)
            else:
                raise TypeError("shading must be a mapping")
        if "ibl" in data:
            if isinstance(data["ibl"], Mapping):
                base.ibl = IblParams.from_mapping(data["ibl"], base.ibl)
            else:
                raise TypeError("ibl must be a mapping")
        return base


def _load_from_path(path: Path) -> Mapping[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Shading config file not found: {path}")
    suffix = path.suffix.lower()
    text = path.read_text(encoding="utf-8")
    if suffix in {".json", ""}:
        return json.loads(text)
    raise ValueError(f"Unsupported shading config file format: {path}")


def _build_override_mapping(overrides: Mapping[str, Any]) -> Dict[str, Dict[str, Any]]:
    out: Dict[str, Dict[str, Any]] = {}
    for key, value in overrides.items():
        if key in {"light", "lights"}:
            out.setdefault("lighting", {})["lights"] = value
        elif key in {"exposure", "ambient"}:
            out.setdefault("lighting", {})[key] = value
        elif key in {"lighting_mode", "mode"}:
            out.setdefault("shading", {})["lighting_mode"] = value
        elif key in {"normal_maps", "tonemap", "debug_view"}:
            out.setdefault("shading", {})[key] = value
        elif key == "ibl":
            if isinstance(value, Mapping):
                out.setdefault("ibl", {}).update(value)
            else:
                raise TypeError("ibl override must be a mapping")
        else:
            raise ValueError(f"Unknown shading override: {key!r}")
    return out


def load_shading_config(config: ConfigSource = None, overrides: Optional[Mapping[str, Any]] = None) -> ShadingConfig:
    if isinstance(config, ShadingConfig):
        cfg = config.copy()
    elif isinstance(config, Mapping):
        cfg = ShadingConfig.from_mapping(config)
    elif isinstance(config, (str, Path)):
        cfg = ShadingConfig.from_mapping(_load_from_path(Path(config)))
    elif config is None:
        cfg = ShadingConfig()
    else:
        raise TypeError("config must be ShadingConfig, mapping, path, or None")

    if overrides:
        merged = _build_override_mapping(overrides)
        if merged:
            cfg = ShadingConfig.from_mapping(merged, cfg)
    cfg.validate()
    return cfg


__all__ = [
    "LightConfig",
    "LightingParams",
    "ShadingParams",
    "IblParams",
    "ShadingConfig",
    "LIGHTING_MODES",
    "DEBUG_VIEWS",
    "load_shading_config",
]
