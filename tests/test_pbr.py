#!/usr/bin/env python3
"""
Tests for the Cook-Torrance BRDF terms.

Checks GGX normalization and the roughness-zero guard, Smith k remaps,
Schlick Fresnel endpoints and the energy split between diffuse and specular.
"""

import math

import numpy as np
import pytest

from pbrshade import pbr


class TestDistribution:
    def test_peak_value_at_normal(self):
        # D(1) = 1 / (pi * a^2) with a = r^2
        assert pbr.distribution_ggx(1.0, 0.5) == pytest.approx(1.0 / (math.pi * 0.0625), rel=1e-6)

    def test_peak_is_at_half_vector_aligned_with_normal(self):
        values = [pbr.distribution_ggx(c, 0.4) for c in np.linspace(0.0, 1.0, 50)]
        assert np.all(np.diff(values) > 0.0)

    def test_zero_roughness_is_zero_not_nan(self):
        assert pbr.distribution_ggx(1.0, 0.0) == 0.0
        assert pbr.distribution_ggx(0.3, 0.0) == 0.0

    @pytest.mark.parametrize("roughness", [0.3, 0.6, 1.0])
    def test_projected_area_integrates_to_one(self, roughness):
        # integral of D(h) (n.h) over the hemisphere
        steps = 4000
        theta = (np.arange(steps) + 0.5) * (0.5 * math.pi / steps)
        d_theta = 0.5 * math.pi / steps
        total = sum(
            pbr.distribution_ggx(math.cos(t), roughness) * math.cos(t) * math.sin(t)
            for t in theta
        ) * d_theta * 2.0 * math.pi
        assert total == pytest.approx(1.0, abs=5e-3)

    def test_fully_rough_is_uniform(self):
        assert pbr.distribution_ggx(0.2, 1.0) == pytest.approx(1.0 / math.pi)
        assert pbr.distribution_ggx(0.9, 1.0) == pytest.approx(1.0 / math.pi)


class TestGeometry:
    def test_k_remaps(self):
        assert pbr.smith_k(0.5) == pytest.approx(0.28125)
        assert pbr.smith_k(0.5, ibl=True) == pytest.approx(0.125)

    def test_unshadowed_at_normal_incidence(self):
        assert pbr.geometry_smith(1.0, 1.0, 0.7) == pytest.approx(1.0)

    def test_bounded_and_decreasing_with_roughness(self):
        smooth = pbr.geometry_smith(0.3, 0.4, 0.1)
        rough = pbr.geometry_smith(0.3, 0.4, 0.9)
        assert 0.0 < rough < smooth <= 1.0

    def test_grazing_is_finite(self):
        g = pbr.geometry_smith(0.0, 0.0, 0.5)
        assert math.isfinite(g)
        assert g >= 0.0

    def test_arrays_match_scalars(self):
        nv = np.array([0.1, 0.5, 1.0])
        nl = np.array([[0.2], [0.9]])
        rough = np.array([0.0, 0.4, 1.0])
        g = pbr.geometry_smith(nv, nl, rough, ibl=True)
        assert g.shape == (2, 3)
        for i in range(2):
            for j in range(3):
                expected = pbr.geometry_smith(float(nv[j]), float(nl[i, 0]), float(rough[j]), ibl=True)
                assert g[i, j] == pytest.approx(expected)
        np.testing.assert_allclose(pbr.smith_k(rough, ibl=True), rough * rough / 2.0)


class TestFresnel:
    def test_normal_incidence_returns_f0(self):
        f0 = np.array([0.04, 0.5, 0.9], dtype=np.float32)
        np.testing.assert_allclose(pbr.fresnel_schlick(1.0, f0), f0, atol=1e-7)

    def test_grazing_returns_one(self):
        np.testing.assert_allclose(pbr.fresnel_schlick(0.0, [0.04, 0.04, 0.04]), 1.0, atol=1e-7)

    def test_roughness_variant_limits_grazing(self):
        f = pbr.fresnel_schlick_roughness(0.0, [0.04, 0.04, 0.04], 0.7)
        np.testing.assert_allclose(f, 0.3, atol=1e-6)

    def test_roughness_variant_keeps_metal_f0_peak(self):
        f = pbr.fresnel_schlick_roughness(0.0, [0.9, 0.9, 0.9], 0.7)
        np.testing.assert_allclose(f, 0.9, atol=1e-6)

    def test_smooth_roughness_variant_matches_schlick(self):
        for c in (0.1, 0.5, 0.9):
            np.testing.assert_allclose(
                pbr.fresnel_schlick_roughness(c, [0.04] * 3, 0.0),
                pbr.fresnel_schlick(c, [0.04] * 3),
                atol=1e-7,
            )


def test_base_reflectance_blend():
    albedo = (0.8, 0.2, 0.2)
    np.testing.assert_allclose(pbr.base_reflectance(albedo, 0.0), [0.04] * 3, atol=1e-7)
    np.testing.assert_allclose(pbr.base_reflectance(albedo, 1.0), albedo, atol=1e-7)
    np.testing.assert_allclose(pbr.base_reflectance(albedo, 0.5), [0.42, 0.12, 0.12], atol=1e-6)


class TestEvaluateBrdf:
    def test_head_on_dielectric(self):
        up = (0.0, 0.0, 1.0)
        sample = pbr.evaluate_brdf(up, up, up, (0.8, 0.2, 0.2), 0.5, 0.0)
        d = 1.0 / (math.pi * 0.0625)
        np.testing.assert_allclose(sample.specular, [d * 0.04 / 4.0] * 3, rtol=1e-5)
        np.testing.assert_allclose(sample.diffuse, 0.96 * np.array([0.8, 0.2, 0.2]) / math.pi, rtol=1e-5)

    def test_metal_has_no_diffuse(self):
        sample = pbr.evaluate_brdf((0, 0, 1), (0, 0.6, 0.8), (0.6, 0, 0.8), (0.9, 0.6, 0.2), 0.4, 1.0)
        np.testing.assert_allclose(sample.diffuse, 0.0, atol=1e-7)
        assert np.all(sample.specular > 0.0)

    def test_zero_roughness_gives_zero_specular(self):
        up = (0.0, 0.0, 1.0)
        sample = pbr.evaluate_brdf(up, up, up, (0.5, 0.5, 0.5), 0.0, 0.0)
        np.testing.assert_allclose(sample.specular, 0.0)
        assert np.all(np.isfinite(sample.diffuse))

    def test_inputs_need_not_be_normalized(self):
        a = pbr.evaluate_brdf((0, 0, 5), (0, 1, 1), (1, 0, 1), (0.5, 0.5, 0.5), 0.5, 0.2)
        b = pbr.evaluate_brdf((0, 0, 1), (0, 0.5, 0.5), (3, 0, 3), (0.5, 0.5, 0.5), 0.5, 0.2)
        np.testing.assert_allclose(a.specular, b.specular, rtol=1e-5)
        np.testing.assert_allclose(a.diffuse, b.diffuse, rtol=1e-5)

    def test_outputs_are_non_negative(self):
        rng = np.random.default_rng(2)
        for _ in range(50):
            v = rng.normal(size=3)
            l = rng.normal(size=3)
            v[2] = abs(v[2]) + 0.05
            l[2] = abs(l[2]) + 0.05
            s = pbr.evaluate_brdf((0, 0, 1), v, l, rng.uniform(size=3), rng.uniform(), rng.uniform())
            assert np.all(s.diffuse >= 0.0)
            assert np.all(s.specular >= 0.0)


def test_diffuse_and_fresnel_split_conserves_energy():
    rng = np.random.default_rng(4)
    for _ in range(100):
        f0 = pbr.base_reflectance(rng.uniform(size=3), rng.uniform())
        metallic = rng.uniform()
        f = pbr.fresnel_schlick(rng.uniform(), f0)
        kd = pbr.diffuse_weight(f, metallic)
        assert np.all(kd + f <= 1.0 + 1e-6)
        assert np.all(kd >= 0.0)


def test_diffuse_weight_plus_fresnel_luminance_stays_below_one():
    rng = np.random.default_rng(11)
    for _ in range(200):
        albedo = rng.uniform(size=3)
        metallic = rng.uniform()
        f0 = pbr.base_reflectance(albedo, metallic)
        f = pbr.fresnel_schlick(rng.uniform(), f0)
        kd = pbr.diffuse_weight(f, metallic)
        assert float(np.max(kd)) + pbr.luminance(f) <= 1.0 + 1e-6


@pytest.mark.parametrize(
    "albedo",
    [(1.0, 0.766, 0.336), (0.955, 0.638, 0.538), (1.0, 0.0, 0.0), (0.0, 0.0, 1.0)],
)
@pytest.mark.parametrize("metallic", [0.25, 0.5, 1.0])
@pytest.mark.parametrize("cos_theta", [0.0, 0.3, 1.0])
def test_coloured_metal_energy_in_luminance(albedo, metallic, cos_theta):
    f0 = pbr.base_reflectance(albedo, metallic)
    for f in (pbr.fresnel_schlick(cos_theta, f0), pbr.fresnel_schlick_roughness(cos_theta, f0, 0.7)):
        kd = pbr.diffuse_weight(f, metallic)
        assert float(np.max(kd)) + pbr.luminance(f) <= 1.0 + 1e-6


def test_luminance_of_white_is_one():
    assert pbr.luminance((1.0, 1.0, 1.0)) == pytest.approx(1.0, abs=1e-6)
    assert pbr.luminance((0.0, 1.0, 0.0)) == pytest.approx(0.7152, abs=1e-6)
