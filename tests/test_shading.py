# tests/test_shading.py
# Fragment pipeline: feature-driven lighting modes, debug view, tone mapping and batching
# Exists to cover the end-to-end shading scenarios and the mode switch in one place
# RELEVANT FILES:python/pbrshade/shading.py,python/pbrshade/materials.py,python/pbrshade/lighting.py,python/pbrshade/ibl.py

import numpy as np
import pytest

from pbrshade.config import ShadingConfig, load_shading_config
from pbrshade.envmap import EnvironmentProbe
from pbrshade.ibl import evaluate_ibl
from pbrshade.lighting import Light, accumulate_direct
from pbrshade.materials import MaterialFactors, PbrMaterial, sample_material
from pbrshade.shading import (
    DEFAULT_AMBIENT,
    FragmentInput,
    ShadingFeatures,
    compute_radiance,
    shade_fragment,
    shade_fragments,
    view_vector,
)
from pbrshade.textures import ChannelSource, Texture
from pbrshade.tonemap import tonemap_reinhard

HEAD_ON_LIGHT = Light.directional((0.0, 0.0, 1.0))


def _warm_red() -> PbrMaterial:
    return PbrMaterial(factors=MaterialFactors(base_color=(0.8, 0.2, 0.2, 1.0), roughness_metallic=(0.5, 0.0)))


class TestEndToEnd:
    def test_warm_red_head_on(self, head_on_fragment, head_on_camera):
        out = shade_fragment(head_on_fragment, _warm_red(), head_on_camera, [HEAD_ON_LIGHT])
        assert out.shape == (4,)
        assert out[3] == 1.0
        rgb = out[:3]
        assert np.all(rgb > 0.0)
        assert np.all(rgb < 1.0)
        assert rgb[0] > rgb[1]
        assert rgb[1] == pytest.approx(rgb[2], abs=1e-6)

    def test_warm_red_radiance_breakdown(self, head_on_fragment, head_on_camera):
        radiance = compute_radiance(head_on_fragment, _warm_red(), head_on_camera, [HEAD_ON_LIGHT])
        d = 1.0 / (np.pi * 0.0625)
        specular = d * 0.04 / 4.0
        diffuse = 0.96 * np.array([0.8, 0.2, 0.2]) / np.pi
        ambient = DEFAULT_AMBIENT * np.array([0.8, 0.2, 0.2])
        np.testing.assert_allclose(radiance, diffuse + specular + ambient, rtol=1e-5)
        # diffuse dominates the highlight
        assert diffuse[0] > specular

    def test_white_unlit_by_anything_is_black(self, head_on_fragment, head_on_camera):
        material = PbrMaterial(factors=MaterialFactors(base_color=(1.0, 1.0, 1.0, 1.0)))
        out = shade_fragment(head_on_fragment, material, head_on_camera, [], ambient=0.0)
        np.testing.assert_array_equal(out, [0.0, 0.0, 0.0, 1.0])

    def test_emissive_survives_darkness(self, head_on_fragment, head_on_camera):
        material = PbrMaterial(factors=MaterialFactors(emissive=(1.0, 0.0, 0.0)))
        out = shade_fragment(head_on_fragment, material, head_on_camera, [], ambient=0.0)
        np.testing.assert_allclose(out, [0.5, 0.0, 0.0, 1.0], atol=1e-6)


class TestLightingModes:
    def test_unlit_mode_is_albedo(self, head_on_fragment, head_on_camera):
        features = ShadingFeatures(lighting_mode="none")
        out = shade_fragment(head_on_fragment, _warm_red(), head_on_camera, [HEAD_ON_LIGHT], features=features)
        np.testing.assert_allclose(out[:3], tonemap_reinhard([0.8, 0.2, 0.2]), rtol=1e-6)

    def test_normal_debug_view(self, head_on_fragment, head_on_camera):
        features = ShadingFeatures(debug_view="normal", tonemap="reinhard")
        out = shade_fragment(head_on_fragment, _warm_red(), head_on_camera, [HEAD_ON_LIGHT], features=features,
                             exposure=8.0)
        np.testing.assert_allclose(out, [0.5, 0.5, 1.0, 1.0], atol=1e-6)

    def test_ibl_requires_probe(self, head_on_fragment, head_on_camera):
        with pytest.raises(ValueError):
            compute_radiance(head_on_fragment, _warm_red(), head_on_camera, [], None,
                             ShadingFeatures(lighting_mode="ibl"))

    def test_ibl_adds_direct_lights(self, head_on_fragment, head_on_camera, small_brdf_lut):
        probe = EnvironmentProbe.uniform((0.3, 0.3, 0.3), brdf_lut=small_brdf_lut)
        material = _warm_red()
        features = ShadingFeatures(lighting_mode="ibl")
        radiance = compute_radiance(head_on_fragment, material, head_on_camera, [HEAD_ON_LIGHT], probe, features)

        sample = sample_material(material, head_on_fragment.uv0, None, head_on_fragment.normal)
        view = np.array([0.0, 0.0, 1.0], dtype=np.float32)
        expected = evaluate_ibl(sample.normal, view, sample, probe) + accumulate_direct(
            sample.normal, view, sample, [HEAD_ON_LIGHT], head_on_fragment.world_position
        )
        np.testing.assert_allclose(radiance, expected, rtol=1e-5)

    def test_ibl_ignores_flat_ambient(self, head_on_fragment, head_on_camera, small_brdf_lut):
        probe = EnvironmentProbe.uniform((0.3, 0.3, 0.3), brdf_lut=small_brdf_lut)
        features = ShadingFeatures(lighting_mode="ibl")
        a = compute_radiance(head_on_fragment, _warm_red(), head_on_camera, [], probe, features, ambient=0.0)
        b = compute_radiance(head_on_fragment, _warm_red(), head_on_camera, [], probe, features, ambient=5.0)
        np.testing.assert_allclose(a, b)

    def test_ambient_scaled_by_occlusion(self, head_on_fragment, head_on_camera):
        material = _warm_red().with_channels(occlusion=ChannelSource.texture(Texture.solid((0.5, 0.5, 0.5))))
        full = compute_radiance(head_on_fragment, _warm_red(), head_on_camera, [], ambient=0.1)
        occluded = compute_radiance(head_on_fragment, material, head_on_camera, [], ambient=0.1)
        np.testing.assert_allclose(occluded, full * 0.5, rtol=1e-6)


class TestNormalMapFeature:
    @pytest.fixture
    def bumpy(self):
        # normal map texel tilting the shading normal toward +x
        tex = Texture.solid((0.85, 0.5, 0.8))
        return _warm_red().with_channels(normal=ChannelSource.texture(tex))

    def test_flag_controls_normal_mapping(self, bumpy, head_on_fragment, head_on_camera):
        flat = compute_radiance(head_on_fragment, bumpy, head_on_camera, [HEAD_ON_LIGHT],
                                features=ShadingFeatures(has_normal_map=False))
        mapped = compute_radiance(head_on_fragment, bumpy, head_on_camera, [HEAD_ON_LIGHT],
                                  features=ShadingFeatures(has_normal_map=True))
        plain = compute_radiance(head_on_fragment, _warm_red(), head_on_camera, [HEAD_ON_LIGHT])
        np.testing.assert_allclose(flat, plain, rtol=1e-6)
        assert np.all(mapped < flat)

    def test_normal_debug_view_shows_mapped_normal(self, bumpy, head_on_fragment, head_on_camera):
        out = shade_fragment(head_on_fragment, bumpy, head_on_camera,
                             features=ShadingFeatures(has_normal_map=True, debug_view="normal"))
        assert out[0] > 0.5
        assert out[1] == pytest.approx(0.5, abs=1e-6)

    def test_config_features_gate_normal_maps(self):
        cfg = ShadingConfig()
        assert cfg.features(has_normal_map=True).has_normal_map
        assert not cfg.features(has_normal_map=False).has_normal_map
        cfg = load_shading_config(overrides={"normal_maps": False})
        assert not cfg.features(has_normal_map=True).has_normal_map


def test_exposure_brightens(head_on_fragment, head_on_camera):
    dim = shade_fragment(head_on_fragment, _warm_red(), head_on_camera, [HEAD_ON_LIGHT], exposure=1.0)
    bright = shade_fragment(head_on_fragment, _warm_red(), head_on_camera, [HEAD_ON_LIGHT], exposure=4.0)
    assert np.all(bright[:3] > dim[:3])


@pytest.mark.parametrize("tonemap", ["linear", "reinhard", "neutral"])
def test_tonemaps_stay_displayable(tonemap, head_on_fragment, head_on_camera):
    light = Light.directional((0.0, 0.0, 1.0), intensity=50.0)
    out = shade_fragment(head_on_fragment, _warm_red(), head_on_camera, [light],
                         features=ShadingFeatures(tonemap=tonemap))
    assert np.all(out >= 0.0)
    if tonemap != "linear":
        assert np.all(out[:3] <= 1.0)


class TestFeatureValidation:
    @pytest.mark.parametrize("kwargs", [
        {"lighting_mode": "raytraced"},
        {"tonemap": "aces"},
        {"debug_view": "uv"},
    ])
    def test_unknown_values(self, kwargs):
        with pytest.raises(ValueError):
            ShadingFeatures(**kwargs)


class TestFragmentInput:
    def test_bad_normal_shape(self):
        with pytest.raises(ValueError):
            FragmentInput(world_position=(0.0, 0.0, 0.0), normal=(0.0, 1.0), uv0=(0.0, 0.0))

    def test_bad_tangent_shape(self):
        with pytest.raises(ValueError):
            FragmentInput(world_position=(0.0, 0.0, 0.0), normal=(0.0, 0.0, 1.0), uv0=(0.0, 0.0),
                          tangent=(1.0, 0.0))

    def test_coerces_to_float32(self):
        frag = FragmentInput(world_position=[0, 0, 0], normal=[0, 0, 1], uv0=[0, 0], uv1=[1, 1])
        assert frag.normal.dtype == np.float32
        assert frag.uv1.dtype == np.float32


def test_view_vector_points_at_eye(head_on_camera):
    np.testing.assert_allclose(view_vector(head_on_camera, (0.0, 0.0, 1.0)), [0.0, 0.0, 1.0], atol=1e-6)
    np.testing.assert_allclose(view_vector(head_on_camera, (3.0, 0.0, 3.0)), [-1.0, 0.0, 0.0], atol=1e-6)


class TestBatch:
    def _fragments(self, count=24):
        rng = np.random.default_rng(9)
        frags = []
        for _ in range(count):
            n = rng.normal(size=3)
            n[2] = abs(n[2]) + 0.2
            frags.append(FragmentInput(world_position=rng.uniform(-0.5, 0.5, 3), normal=n,
                                       uv0=rng.uniform(size=2), tangent=(1.0, 0.0, 0.0, 1.0)))
        return frags

    def test_empty_batch(self, head_on_camera):
        out = shade_fragments([], _warm_red(), head_on_camera)
        assert out.shape == (0, 4)

    def test_batch_matches_single(self, head_on_camera):
        frags = self._fragments()
        lights = [HEAD_ON_LIGHT, Light.point((1.0, 1.0, 2.0), intensity=3.0)]
        batch = shade_fragments(frags, _warm_red(), head_on_camera, lights)
        single = np.stack([shade_fragment(f, _warm_red(), head_on_camera, lights) for f in frags])
        np.testing.assert_allclose(batch, single)

    def test_thread_pool_is_deterministic(self, head_on_camera):
        frags = self._fragments()
        lights = [HEAD_ON_LIGHT]
        serial = shade_fragments(frags, _warm_red(), head_on_camera, lights)
        threaded = shade_fragments(frags, _warm_red(), head_on_camera, lights, workers=4)
        np.testing.assert_array_equal(serial, threaded)
