# tests/test_config.py
# Tests for shading configuration parsing, aliases, overrides and validation
# Exists to ensure mapping/JSON/override inputs resolve to the same validated ShadingConfig
# RELEVANT FILES: python/pbrshade/config.py, python/pbrshade/lighting.py, python/pbrshade/shading.py

from __future__ import annotations

import json
from pathlib import Path

import pytest

from pbrshade.config import (
    IblParams,
    LightConfig,
    ShadingConfig,
    load_shading_config,
)


def test_defaults() -> None:
    cfg = load_shading_config()
    assert cfg.shading.lighting_mode == "direct"
    assert cfg.shading.tonemap == "reinhard"
    assert cfg.shading.debug_view == "none"
    assert cfg.shading.normal_maps is True
    assert len(cfg.lighting.lights) == 1
    assert cfg.lighting.lights[0].direction == (0.0, 0.0, 1.0)
    assert cfg.lighting.exposure == pytest.approx(1.0)
    assert cfg.lighting.ambient == pytest.approx(0.03)
    assert cfg.ibl.max_reflection_lod == pytest.approx(4.0)


def test_to_dict_roundtrip() -> None:
    cfg = load_shading_config(
        {
            "lighting": {"lights": [{"type": "point", "position": [1, 2, 3], "intensity": 5}]},
            "shading": {"lighting_mode": "ibl", "tonemap": "neutral"},
            "ibl": {"prefilter_levels": 3, "irradiance_size": [16, 8]},
        }
    )
    again = ShadingConfig.from_mapping(cfg.to_dict())
    assert again.to_dict() == cfg.to_dict()


@pytest.mark.parametrize(
    "alias, expected",
    [("Cook-Torrance", "direct"), ("image_based", "ibl"), ("UNLIT", "none"), ("environment", "ibl")],
)
def test_lighting_mode_aliases(alias: str, expected: str) -> None:
    cfg = load_shading_config({"shading": {"lighting_mode": alias}})
    assert cfg.shading.lighting_mode == expected


@pytest.mark.parametrize(
    "alias, expected",
    [("PBR-Neutral", "neutral"), ("khronos_neutral", "neutral"), ("none", "linear"), ("Reinhard", "reinhard")],
)
def test_tonemap_aliases(alias: str, expected: str) -> None:
    cfg = load_shading_config(overrides={"tonemap": alias})
    assert cfg.shading.tonemap == expected


def test_unknown_choice_rejected() -> None:
    with pytest.raises(ValueError):
        load_shading_config({"shading": {"lighting_mode": "raytraced"}})
    with pytest.raises(ValueError):
        load_shading_config({"shading": {"debug_view": "uv"}})


def test_json_path(tmp_path: Path) -> None:
    config_path = tmp_path / "shading.json"
    config_path.write_text(
        json.dumps(
            {
                "lighting": {
                    "lights": [{"type": "sun", "direction": [0.0, 1.0, 0.0], "intensity": 4.0}],
                    "exposure": 0.5,
                },
                "shading": {"debug_view": "normals"},
            }
        ),
        encoding="utf-8",
    )
    cfg = load_shading_config(str(config_path))
    light = cfg.lighting.lights[0]
    assert light.type == "directional"
    assert light.intensity == pytest.approx(4.0)
    assert cfg.lighting.exposure == pytest.approx(0.5)
    assert cfg.shading.debug_view == "normal"


def test_missing_path(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_shading_config(tmp_path / "nope.json")


def test_unsupported_file_format(tmp_path: Path) -> None:
    path = tmp_path / "shading.yaml"
    path.write_text("lighting: {}", encoding="utf-8")
    with pytest.raises(ValueError):
        load_shading_config(path)


def test_flat_overrides_merge_into_nested() -> None:
    cfg = load_shading_config(
        {"shading": {"tonemap": "neutral"}},
        overrides={"exposure": 2.0, "mode": "ibl", "ibl": {"samples": 64}},
    )
    assert cfg.shading.tonemap == "neutral"
    assert cfg.shading.lighting_mode == "ibl"
    assert cfg.lighting.exposure == pytest.approx(2.0)
    assert cfg.ibl.samples == 64


def test_light_override_replaces_list() -> None:
    cfg = load_shading_config(
        overrides={"lights": [{"type": "directional", "direction": [1, 0, 0]}, {"type": "point", "position": [0, 0, 4]}]}
    )
    assert [l.type for l in cfg.lighting.lights] == ["directional", "point"]
    assert cfg.lighting.lights[1].direction is None


def test_single_light_mapping_accepted() -> None:
    cfg = load_shading_config({"lighting": {"light": {"type": "point", "position": [0, 1, 0]}}})
    assert len(cfg.lighting.lights) == 1
    assert cfg.lighting.lights[0].position == (0.0, 1.0, 0.0)


def test_zero_lights_allowed() -> None:
    cfg = load_shading_config({"lighting": {"lights": [], "ambient": 0.0}})
    assert cfg.lighting.lights == []
    assert cfg.lighting.ambient == 0.0


def test_unknown_override_rejected() -> None:
    with pytest.raises(ValueError):
        load_shading_config(overrides={"brdf": "toon"})


def test_config_instance_is_copied() -> None:
    original = ShadingConfig()
    cfg = load_shading_config(original, overrides={"exposure": 3.0})
    assert original.lighting.exposure == pytest.approx(1.0)
    assert cfg.lighting.exposure == pytest.approx(3.0)


def test_bad_config_type() -> None:
    with pytest.raises(TypeError):
        load_shading_config(42)
    with pytest.raises(TypeError):
        load_shading_config({"lighting": "bright"})


class TestValidation:
    def test_point_light_requires_position(self) -> None:
        with pytest.raises(ValueError):
            load_shading_config({"lighting": {"lights": [{"type": "point"}]}})

    def test_directional_requires_non_zero_direction(self) -> None:
        with pytest.raises(ValueError):
            load_shading_config({"lighting": {"lights": [{"type": "directional", "direction": [0, 0, 0]}]}})

    def test_negative_intensity(self) -> None:
        with pytest.raises(ValueError):
            LightConfig(intensity=-1.0).validate(0)

    def test_negative_color(self) -> None:
        with pytest.raises(ValueError):
            load_shading_config(overrides={"lights": [{"color": [1.0, -0.5, 0.0]}]})

    def test_color_must_have_three_components(self) -> None:
        with pytest.raises(ValueError):
            load_shading_config(overrides={"lights": [{"color": [1.0, 1.0]}]})

    @pytest.mark.parametrize("overrides", [{"exposure": 0.0}, {"ambient": -0.1}])
    def test_lighting_scalars(self, overrides) -> None:
        with pytest.raises(ValueError):
            load_shading_config(overrides=overrides)

    @pytest.mark.parametrize(
        "ibl",
        [
            {"max_reflection_lod": -1.0},
            {"brdf_lut_size": 0},
            {"irradiance_size": [0, 4]},
            {"irradiance_step": 2.0},
            {"prefilter_levels": 0},
            {"samples": 0},
        ],
    )
    def test_ibl_params(self, ibl) -> None:
        with pytest.raises(ValueError):
            load_shading_config({"ibl": ibl})

    def test_ibl_size_shape(self) -> None:
        with pytest.raises(ValueError):
            IblParams.from_mapping({"prefilter_size": [64]})


def test_features_reflect_shading_params() -> None:
    cfg = load_shading_config(overrides={"mode": "none", "tonemap": "neutral", "debug_view": "normal"})
    features = cfg.features(has_normal_map=True)
    assert features.lighting_mode == "none"
    assert features.tonemap == "neutral"
    assert features.debug_view == "normal"
    assert features.has_normal_map
