# python/pbrshade/ibl.py
# Split-sum image-based lighting evaluation against an EnvironmentProbe.
# Exists to keep the ambient diffuse + specular IBL math in one pure function.
# RELEVANT FILES:python/pbrshade/envmap.py,python/pbrshade/pbr.py,python/pbrshade/shading.py,tests/test_ibl.py
"""Image-based lighting (split-sum approximation)."""

from typing import Any, NamedTuple

import numpy as np

from ._validate import EPSILON, VecLike, as_vec3, normalize, reflect
from .pbr import base_reflectance, diffuse_weight, fresnel_schlick_roughness

MAX_REFLECTION_LOD = 4.0


class IblTerms(NamedTuple):
    """Separated IBL contributions, before ambient occlusion and emissive."""
    diffuse: np.ndarray
    specular: np.ndarray


def _chain_level(lod: float, max_reflection_lod: float, level_count: int) -> float:
    # level i of a baked chain holds roughness i / (level_count - 1)
    if max_reflection_lod <= 0.0:
        return 0.0
    return lod * (level_count - 1) / float(max_reflection_lod)


def evaluate_ibl_terms(
    normal: VecLike,
    view: VecLike,
    material: Any,
    probe: Any,
    *,
    max_reflection_lod: float = MAX_REFLECTION_LOD,
) -> IblTerms:
    n = normalize(as_vec3(normal, "normal"))
    v = normalize(as_vec3(view, "view"))
    r = normalize(reflect(-v, n))
    n_dot_v = max(float(np.dot(n, v)), EPSILON)

    albedo = as_vec3(material.albedo, "albedo")
    roughness = float(material.roughness)
    f0 = base_reflectance(albedo, material.metallic)
    f = fresnel_schlick_roughness(n_dot_v, f0, roughness)
    kd = diffuse_weight(f, material.metallic)

    irradiance = probe.irradiance.sample_direction(n)
    diffuse = irradiance * albedo * kd

    lod = roughness * float(max_reflection_lod)
    chain = probe.prefiltered
    prefiltered = chain.sample_lod(r, _chain_level(lod, max_reflection_lod, chain.level_count))
    scale, bias = probe.brdf_lut.sample(n_dot_v, roughness)
    specular = prefiltered * (f * np.float32(scale) + np.float32(bias))
    return IblTerms(diffuse=diffuse.astype(np.float32), specular=specular.astype(np.float32))


def evaluate_ibl(
    normal: VecLike,
    view: VecLike,
    material: Any,
    probe: Any,
    *,
    max_reflection_lod: float = MAX_REFLECTION_LOD,
) -> np.ndarray:
    """Ambient lighting from ``probe``: ``(diffuse + specular) * ao + emissive``.

    ``material`` is a :class:`pbrshade.materials.MaterialSample`. The
    Fresnel term is the roughness-aware Schlick variant evaluated at ``n.v``
    and is shared by the diffuse weight and the specular response.
    The reflection LOD ``roughness * max_reflection_lod`` is remapped onto
    the probe's prefiltered chain, whatever its level count.
    """
    terms = evaluate_ibl_terms(normal, view, material, probe, max_reflection_lod=max_reflection_lod)
    ambient = (terms.diffuse + terms.specular) * np.float32(material.ambient_occlusion)
    return (ambient + as_vec3(material.emissive, "emissive")).astype(np.float32)


__all__ = ["MAX_REFLECTION_LOD", "IblTerms", "evaluate_ibl_terms", "evaluate_ibl"]
