# python/pbrshade/__init__.py
# Public API for the pbrshade metallic-roughness shading core
# Exists to re-export the material, lighting, IBL, tone mapping and projection entry points
# RELEVANT FILES: python/pbrshade/shading.py, python/pbrshade/config.py, pyproject.toml, tests/conftest.py
import logging

from .camera import Camera, camera_look_at, camera_perspective
from .config import (
    IblParams,
    LightConfig,
    LightingParams,
    ShadingConfig,
    ShadingParams,
    load_shading_config,
)
from .envmap import (
    BrdfLut,
    EnvironmentMap,
    EnvironmentProbe,
    PrefilteredEnvironment,
    convolve_irradiance,
    generate_brdf_lut,
    integrate_brdf,
    prefilter_environment,
    validate_environment_map,
)
from .hdr import load_hdr, load_panorama, save_hdr
from .ibl import MAX_REFLECTION_LOD, evaluate_ibl
from .lighting import Light, LightType, accumulate_direct
from .materials import MaterialFactors, MaterialSample, PbrMaterial, sample_material
from .normalmap import reconstruct_normal
from .pbr import BrdfSample, evaluate_brdf
from .projection import direction_to_equirect_uv, equirect_uv_to_direction
from .render import render_material_sphere, save_png
from .shading import FragmentInput, ShadingFeatures, compute_radiance, shade_fragment, shade_fragments
from .textures import ChannelSource, Texture, resolve, resolve_occlusion
from .tonemap import apply_tonemap, tonemap_neutral, tonemap_reinhard
from .vertex import Vertex, Varyings, interpolate_varyings, transform_vertex

__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "__version__",
    # camera
    "Camera",
    "camera_look_at",
    "camera_perspective",
    # config
    "IblParams",
    "LightConfig",
    "LightingParams",
    "ShadingConfig",
    "ShadingParams",
    "load_shading_config",
    # materials
    "ChannelSource",
    "Texture",
    "MaterialFactors",
    "MaterialSample",
    "PbrMaterial",
    "resolve",
    "resolve_occlusion",
    "sample_material",
    "reconstruct_normal",
    # brdf and lighting
    "BrdfSample",
    "evaluate_brdf",
    "Light",
    "LightType",
    "accumulate_direct",
    # ibl
    "MAX_REFLECTION_LOD",
    "BrdfLut",
    "EnvironmentMap",
    "EnvironmentProbe",
    "PrefilteredEnvironment",
    "convolve_irradiance",
    "generate_brdf_lut",
    "integrate_brdf",
    "prefilter_environment",
    "validate_environment_map",
    "evaluate_ibl",
    "load_hdr",
    "save_hdr",
    "load_panorama",
    # tone mapping and projection
    "apply_tonemap",
    "tonemap_neutral",
    "tonemap_reinhard",
    "direction_to_equirect_uv",
    "equirect_uv_to_direction",
    # pipeline
    "FragmentInput",
    "ShadingFeatures",
    "compute_radiance",
    "shade_fragment",
    "shade_fragments",
    "Vertex",
    "Varyings",
    "transform_vertex",
    "interpolate_varyings",
    "render_material_sphere",
    "save_png",
]
