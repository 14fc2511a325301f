#!/usr/bin/env python3
# python/pbrshade/pbr.py
# Cook-Torrance BRDF terms (GGX distribution, Smith geometry, Schlick Fresnel).
# Exists to give the direct and image-based lighting paths one set of microfacet terms.
# RELEVANT FILES:python/pbrshade/lighting.py,python/pbrshade/ibl.py,python/pbrshade/envmap.py,tests/test_pbr.py
"""Metallic-roughness Cook-Torrance BRDF evaluation."""

import math
from typing import NamedTuple, Union

import numpy as np

from ._validate import EPSILON, VecLike, as_vec3, mix, normalize

DIELECTRIC_F0 = 0.04

_PI = math.pi


class BrdfSample(NamedTuple):
    """Reflectance split for one light direction (before ``lightColor * n.l``)."""
    diffuse: np.ndarray
    specular: np.ndarray


def base_reflectance(albedo: VecLike, metallic: float) -> np.ndarray:
    """F0: 0.04 for dielectrics, the albedo for metals, blended by ``metallic``."""
    return mix(np.full(3, DIELECTRIC_F0, dtype=np.float32), as_vec3(albedo, "albedo"), float(metallic))


def distribution_ggx(n_dot_h: float, roughness: float) -> float:
    """Trowbridge-Reitz/GGX normal distribution with ``a = roughness^2``.

    A roughness of exactly 0 is a mirror (a delta distribution) which has no
    finite value; it evaluates to 0 instead of NaN.
    """
    a = float(roughness) * float(roughness)
    a2 = a * a
    if a2 <= 0.0:
        return 0.0
    nh = max(float(n_dot_h), 0.0)
    denom = nh * nh * (a2 - 1.0) + 1.0
    return a2 / (_PI * denom * denom)


def geometry_schlick_ggx(n_dot_x, k):
    """``x / (x (1 - k) + k)``; scalars in, float out, arrays broadcast."""
    x = np.maximum(np.asarray(n_dot_x, dtype=np.float64), EPSILON)
    g = x / (x * (1.0 - k) + k)
    return float(g) if g.ndim == 0 else g


def smith_k(roughness, *, ibl: bool = False):
    """Schlick-GGX ``k`` remap: ``(r+1)^2/8`` for analytic lights, ``r^2/2`` for IBL."""
    r = np.asarray(roughness, dtype=np.float64)
    k = (r * r) / 2.0 if ibl else (r + 1.0) * (r + 1.0) / 8.0
    return float(k) if k.ndim == 0 else k


def geometry_smith(n_dot_v, n_dot_l, roughness, *, ibl: bool = False):
    """Smith joint masking-shadowing, product of two Schlick-GGX terms."""
    k = smith_k(roughness, ibl=ibl)
    return geometry_schlick_ggx(n_dot_v, k) * geometry_schlick_ggx(n_dot_l, k)


def fresnel_schlick(cos_theta: float, f0: Union[VecLike, float]) -> np.ndarray:
    """Schlick Fresnel; returns ``F0`` at normal incidence and 1 at grazing."""
    f0_arr = np.asarray(f0, dtype=np.float32)
    c = min(max(float(cos_theta), 0.0), 1.0)
    return (f0_arr + (1.0 - f0_arr) * (1.0 - c) ** 5).astype(np.float32)


def fresnel_schlick_roughness(cos_theta: float, f0: Union[VecLike, float], roughness: float) -> np.ndarray:
    """Roughness-aware Schlick Fresnel used for ambient lighting.

    Limits the grazing-angle reflectance of rough surfaces to
    ``max(1 - roughness, F0)``.
    """
    f0_arr = np.asarray(f0, dtype=np.float32)
    c = min(max(float(cos_theta), 0.0), 1.0)
    peak = np.maximum(np.float32(1.0 - float(roughness)), f0_arr)
    return (f0_arr + (peak - f0_arr) * (1.0 - c) ** 5).astype(np.float32)


def evaluate_brdf(
    normal: VecLike,
    view: VecLike,
    light: VecLike,
    albedo: VecLike,
    roughness: float,
    metallic: float,
) -> BrdfSample:
    """Cook-Torrance specular plus Lambert diffuse for one light direction.

    All direction inputs are normalized here. The caller multiplies the
    sum by ``lightColor * max(n.l, 0)``.
    """
    n = normalize(as_vec3(normal, "normal"))
    v = normalize(as_vec3(view, "view"))
    l = normalize(as_vec3(light, "light"))
    h = normalize(v + l)
    albedo_arr = as_vec3(albedo, "albedo")
    m = float(metallic)

    n_dot_v = max(float(np.dot(n, v)), EPSILON)
    n_dot_l = max(float(np.dot(n, l)), EPSILON)
    n_dot_h = max(float(np.dot(n, h)), 0.0)
    h_dot_v = max(float(np.dot(h, v)), 0.0)

    f0 = base_reflectance(albedo_arr, m)
    d = distribution_ggx(n_dot_h, roughness)
    g = geometry_smith(n_dot_v, n_dot_l, roughness)
    f = fresnel_schlick(h_dot_v, f0)

    specular = (d * g) * f / (4.0 * n_dot_v * n_dot_l)
    kd = (1.0 - f) * (1.0 - m)
    diffuse = kd * albedo_arr / _PI
    return BrdfSample(diffuse=diffuse.astype(np.float32), specular=specular.astype(np.float32))


def diffuse_weight(fresnel: VecLike, metallic: float) -> np.ndarray:
    """``kd = (1 - F) * (1 - metallic)``."""
    return ((1.0 - np.asarray(fresnel, dtype=np.float32)) * (1.0 - float(metallic))).astype(np.float32)


def luminance(rgb: VecLike) -> float:
    """Rec. 709 relative luminance."""
    c = np.asarray(rgb, dtype=np.float32)
    return float(0.2126 * c[..., 0] + 0.7152 * c[..., 1] + 0.0722 * c[..., 2])


__all__ = [
    "DIELECTRIC_F0",
    "BrdfSample",
    "base_reflectance",
    "distribution_ggx",
    "geometry_schlick_ggx",
    "smith_k",
    "geometry_smith",
    "fresnel_schlick",
    "fresnel_schlick_roughness",
    "evaluate_brdf",
    "diffuse_weight",
    "luminance",
]
