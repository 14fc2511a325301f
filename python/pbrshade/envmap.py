"""
Environment maps and image-based lighting (IBL) precomputation.

Provides CPU-side equirectangular environment maps, the three lookups that make
up an :class:`EnvironmentProbe` (diffuse irradiance, roughness-prefiltered
specular radiance and the split-sum BRDF integration table) and deterministic
numpy baking routines for each of them.

All sampling is quasi-random (Hammersley) so repeated bakes of the same input
produce identical probes.
"""

import functools
import logging
import math
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np

from ._validate import EPSILON, size_wh
from .pbr import geometry_smith
from .projection import equirect_uv_to_direction, sample_panorama

logger = logging.getLogger(__name__)

_PI = math.pi


class EnvironmentMap:
    """Equirectangular HDR environment map."""

    def __init__(self, width: int, height: int, data: np.ndarray):
        """
        Create environment map from HDR data.

        Args:
            width: Environment map width in pixels
            height: Environment map height in pixels
            data: RGB float data as (height, width, 3) array
        """
        if not isinstance(data, np.ndarray):
            raise TypeError("data must be numpy ndarray")

        if data.shape != (height, width, 3):
            raise ValueError(f"data shape {data.shape} does not match expected ({height}, {width}, 3)")

        if data.dtype not in [np.float32, np.float64]:
            raise TypeError(f"data must be float32 or float64, got {data.dtype}")

        self.width = int(width)
        self.height = int(height)
        self.data = data.astype(np.float32)

    @classmethod
    def from_array(cls, data: np.ndarray) -> "EnvironmentMap":
        arr = np.asarray(data)
        if arr.ndim != 3 or arr.shape[2] < 3:
            raise ValueError(f"panorama must be (H, W, 3+), got {arr.shape}")
        if arr.dtype == np.uint8:
            arr = arr.astype(np.float32) / 255.0
        return cls(arr.shape[1], arr.shape[0], np.ascontiguousarray(arr[..., :3], dtype=np.float32))

    @classmethod
    def uniform(cls, color: Sequence[float], width: int = 8, height: int = 4) -> "EnvironmentMap":
        """Constant-radiance environment."""
        w, h = size_wh(width, height)
        rgb = np.asarray(color, dtype=np.float32)
        if rgb.shape != (3,):
            raise ValueError(f"color must have shape (3,), got {rgb.shape}")
        return cls(w, h, np.broadcast_to(rgb, (h, w, 3)).copy())

    @classmethod
    def create_test_envmap(cls, size: int) -> "EnvironmentMap":
        """
        Create a synthetic environment map for testing.

        Args:
            size: Environment map height; the width is twice that.

        Returns:
            Synthetic environment map with a bright sky and a darker ground
        """
        w, h = size_wh(2 * size, size)
        uv = np.stack(np.meshgrid((np.arange(w) + 0.5) / w, (np.arange(h) + 0.5) / h), axis=-1)
        d = equirect_uv_to_direction(uv)

        sky = np.clip(d[..., 1], 0.0, 1.0)[..., np.newaxis]
        ground = np.clip(-d[..., 1], 0.0, 1.0)[..., np.newaxis]
        data = (np.array([0.4, 0.6, 1.0], dtype=np.float32) * (0.5 + sky)
                + np.array([0.3, 0.25, 0.2], dtype=np.float32) * ground)
        # Warm "sun" lobe around +X.
        sun = np.clip(d[..., 0], 0.0, 1.0) ** 32
        data = data + np.array([4.0, 3.6, 3.0], dtype=np.float32) * sun[..., np.newaxis]
        return cls(w, h, data.astype(np.float32))

    def texel_directions(self) -> np.ndarray:
        """Unit direction through every texel center, (height, width, 3)."""
        return _texel_directions(self.width, self.height)

    def sample_direction(self, direction: Any) -> np.ndarray:
        """
        Sample environment map using direction vector(s).

        Args:
            direction: 3D direction vector (x, y, z) or a (..., 3) stack

        Returns:
            RGB color(s) with the same leading shape
        """
        direction = np.asarray(direction, dtype=np.float32)
        if direction.shape[-1:] != (3,):
            raise ValueError(f"direction must be (..., 3) array, got {direction.shape}")
        return sample_panorama(self.data, direction).astype(np.float32)


class PrefilteredEnvironment:
    """Mip chain of specular-prefiltered environment maps.

    Level ``i`` is prefiltered for roughness ``i / (levels - 1)``.
    """

    def __init__(self, levels: Sequence[EnvironmentMap]):
        if len(levels) == 0:
            raise ValueError("prefiltered environment requires at least one level")
        for level in levels:
            if not isinstance(level, EnvironmentMap):
                raise TypeError("levels must be EnvironmentMap instances")
        self.levels: List[EnvironmentMap] = list(levels)

    @property
    def level_count(self) -> int:
        return len(self.levels)

    def sample_lod(self, direction: Any, lod: float) -> np.ndarray:
        """Trilinear lookup: blend the two mip levels bracketing ``lod``."""
        lod = min(max(float(lod), 0.0), float(self.level_count - 1))
        lo = int(math.floor(lod))
        hi = min(lo + 1, self.level_count - 1)
        t = lod - lo
        c0 = self.levels[lo].sample_direction(direction)
        if hi == lo or t == 0.0:
            return c0
        c1 = self.levels[hi].sample_direction(direction)
        return (c0 * (1.0 - t) + c1 * t).astype(np.float32)


class BrdfLut:
    """Split-sum BRDF integration table.

    ``table[row, col]`` holds ``(scale, bias)`` for ``n.v = (col + 0.5) / N``
    and ``roughness = (row + 0.5) / N``.
    """

    def __init__(self, table: np.ndarray):
        table = np.array(table, dtype=np.float32)
        if table.ndim != 3 or table.shape[2] != 2 or table.shape[0] != table.shape[1]:
            raise ValueError(f"BRDF LUT must be (N, N, 2), got {table.shape}")
        self.table = table
        self.table.setflags(write=False)

    @property
    def size(self) -> int:
        return int(self.table.shape[0])

    def sample(self, n_dot_v: float, roughness: float) -> Tuple[float, float]:
        """Bilinear, clamp-to-edge lookup returning ``(scale, bias)``."""
        n = self.size
        x = min(max(float(n_dot_v) * n - 0.5, 0.0), n - 1.0)
        y = min(max(float(roughness) * n - 0.5, 0.0), n - 1.0)
        x0, y0 = int(x), int(y)
        x1, y1 = min(x0 + 1, n - 1), min(y0 + 1, n - 1)
        fx, fy = x - x0, y - y0
        top = self.table[y0, x0] * (1 - fx) + self.table[y0, x1] * fx
        bottom = self.table[y1, x0] * (1 - fx) + self.table[y1, x1] * fx
        value = top * (1 - fy) + bottom * fy
        return float(value[0]), float(value[1])


class EnvironmentProbe:
    """Immutable bundle of the three IBL lookups."""

    def __init__(self, irradiance: EnvironmentMap, prefiltered: PrefilteredEnvironment, brdf_lut: BrdfLut):
        if not isinstance(irradiance, EnvironmentMap):
            raise TypeError("irradiance must be an EnvironmentMap")
        if not isinstance(prefiltered, PrefilteredEnvironment):
            raise TypeError("prefiltered must be a PrefilteredEnvironment")
        if not isinstance(brdf_lut, BrdfLut):
            raise TypeError("brdf_lut must be a BrdfLut")
        self.irradiance = irradiance
        self.prefiltered = prefiltered
        self.brdf_lut = brdf_lut

    @classmethod
    def uniform(
        cls,
        color: Sequence[float],
        *,
        levels: int = 5,
        brdf_lut: Optional[BrdfLut] = None,
        lut_size: int = 32,
        samples: int = 256,
    ) -> "EnvironmentProbe":
        """Probe for a constant environment.

        Convolution and prefiltering leave a constant environment unchanged,
        so no baking is needed apart from the BRDF table.
        """
        env = EnvironmentMap.uniform(color)
        lut = brdf_lut if brdf_lut is not None else generate_brdf_lut(lut_size, samples)
        return cls(env, PrefilteredEnvironment([env] * max(int(levels), 1)), lut)

    @classmethod
    def from_panorama(cls, panorama: Union[EnvironmentMap, np.ndarray], params: Any = None) -> "EnvironmentProbe":
        """Bake a probe from an equirectangular panorama.

        ``params`` is an :class:`pbrshade.config.IblParams` (defaults used
        when omitted).
        """
        if params is None:
            from .config import IblParams

            params = IblParams()
        params.validate()
        env = panorama if isinstance(panorama, EnvironmentMap) else EnvironmentMap.from_array(panorama)

        logger.info("Baking environment probe from %dx%d panorama", env.width, env.height)
        irradiance = convolve_irradiance(env, *params.irradiance_size, step=params.irradiance_step)
        prefiltered = prefilter_environment(
            env, params.prefilter_levels, *params.prefilter_size, samples=params.samples
        )
        lut = generate_brdf_lut(params.brdf_lut_size, params.samples)
        logger.debug(
            "Probe baked: irradiance %dx%d, %d prefiltered levels, LUT %d",
            irradiance.width, irradiance.height, prefiltered.level_count, lut.size,
        )
        return cls(irradiance, prefiltered, lut)


def _texel_directions(width: int, height: int) -> np.ndarray:
    u = (np.arange(width, dtype=np.float64) + 0.5) / width
    v = (np.arange(height, dtype=np.float64) + 0.5) / height
    uv = np.stack(np.meshgrid(u, v), axis=-1)
    return equirect_uv_to_direction(uv)


def radical_inverse_vdc(bits: Any) -> np.ndarray:
    """Van der Corput radical inverse in base 2 (32-bit reversal)."""
    b = np.atleast_1d(np.asarray(bits, dtype=np.uint32))
    b = (b << np.uint32(16)) | (b >> np.uint32(16))
    b = ((b & np.uint32(0x55555555)) << np.uint32(1)) | ((b & np.uint32(0xAAAAAAAA)) >> np.uint32(1))
    b = ((b & np.uint32(0x33333333)) << np.uint32(2)) | ((b & np.uint32(0xCCCCCCCC)) >> np.uint32(2))
    b = ((b & np.uint32(0x0F0F0F0F)) << np.uint32(4)) | ((b & np.uint32(0xF0F0F0F0)) >> np.uint32(4))
    b = ((b & np.uint32(0x00FF00FF)) << np.uint32(8)) | ((b & np.uint32(0xFF00FF00)) >> np.uint32(8))
    return b.astype(np.float64) * 2.3283064365386963e-10


def hammersley(count: int) -> np.ndarray:
    """First ``count`` points of the 2D Hammersley set, shape (count, 2)."""
    if count <= 0:
        raise ValueError("count must be positive")
    i = np.arange(count, dtype=np.uint32)
    return np.stack([i.astype(np.float64) / count, radical_inverse_vdc(i)], axis=-1)


def _tangent_frame(normal: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    n = np.asarray(normal, dtype=np.float64)
    pole = np.asarray(np.abs(n[..., 2]) >= 0.99999)[..., np.newaxis]
    up = np.where(pole, [1.0, 0.0, 0.0], [0.0, 0.0, 1.0])
    tangent = np.cross(up, n)
    tangent = tangent / np.linalg.norm(tangent, axis=-1, keepdims=True)
    return tangent, np.cross(n, tangent)


def importance_sample_ggx(xi: Any, normal: Any, roughness: Any) -> np.ndarray:
    """GGX-distributed half vectors around ``normal``.

    ``xi`` is a (..., 2) stack of sample points in ``[0, 1)^2``; ``normal``
    and ``roughness`` broadcast against its leading shape.
    """
    xi = np.asarray(xi, dtype=np.float64)
    a = np.asarray(roughness, dtype=np.float64) ** 2
    phi = 2.0 * _PI * xi[..., 0]
    y = xi[..., 1]
    cos_theta = np.sqrt((1.0 - y) / (1.0 + (a * a - 1.0) * y))
    sin_theta = np.sqrt(np.clip(1.0 - cos_theta * cos_theta, 0.0, 1.0))
    cos_theta, sin_theta, phi = np.broadcast_arrays(cos_theta, sin_theta, phi)

    n = np.asarray(normal, dtype=np.float64)
    tangent, bitangent = _tangent_frame(n)
    h = (tangent * (np.cos(phi) * sin_theta)[..., np.newaxis]
         + bitangent * (np.sin(phi) * sin_theta)[..., np.newaxis]
         + n * cos_theta[..., np.newaxis])
    return h / np.linalg.norm(h, axis=-1, keepdims=True)


def _integrate_brdf_grid(n_dot_v: np.ndarray, roughness: np.ndarray, samples: int) -> np.ndarray:
    nv = np.clip(np.asarray(n_dot_v, dtype=np.float64), EPSILON, 1.0)
    r = np.asarray(roughness, dtype=np.float64)
    nv, r = np.broadcast_arrays(nv, r)

    v = np.stack([np.sqrt(1.0 - nv * nv), np.zeros_like(nv), nv], axis=-1)[..., np.newaxis, :]
    h = importance_sample_ggx(hammersley(samples), np.array([0.0, 0.0, 1.0]), r[..., np.newaxis])
    v_dot_h = np.sum(v * h, axis=-1)
    l = 2.0 * v_dot_h[..., np.newaxis] * h - v
    l = l / np.linalg.norm(l, axis=-1, keepdims=True)

    n_dot_l = np.maximum(l[..., 2], 0.0)
    n_dot_h = np.maximum(h[..., 2], 0.0)
    v_dot_h = np.maximum(v_dot_h, 0.0)

    nv_s = nv[..., np.newaxis]
    g = geometry_smith(nv_s, n_dot_l, r[..., np.newaxis], ibl=True)
    g_vis = g * v_dot_h / np.maximum(n_dot_h * nv_s, EPSILON)
    fc = (1.0 - v_dot_h) ** 5
    valid = n_dot_l > 0.0
    a = np.where(valid, (1.0 - fc) * g_vis, 0.0).sum(axis=-1) / samples
    b = np.where(valid, fc * g_vis, 0.0).sum(axis=-1) / samples
    return np.stack([a, b], axis=-1).astype(np.float32)


def integrate_brdf(n_dot_v: float, roughness: float, samples: int = 1024) -> Tuple[float, float]:
    """Split-sum ``(scale, bias)`` for one ``(n.v, roughness)`` pair."""
    if samples <= 0:
        raise ValueError("samples must be positive")
    scale, bias = _integrate_brdf_grid(np.float64(n_dot_v), np.float64(roughness), int(samples))
    return float(scale), float(bias)


@functools.lru_cache(maxsize=8)
def _brdf_table(size: int, samples: int) -> np.ndarray:
    centers = (np.arange(size, dtype=np.float64) + 0.5) / size
    table = _integrate_brdf_grid(centers[np.newaxis, :], centers[:, np.newaxis], samples)
    table.setflags(write=False)
    return table


def generate_brdf_lut(size: int = 32, samples: int = 256) -> BrdfLut:
    """Precompute the BRDF integration table (columns n.v, rows roughness).

    Tables are cached per ``(size, samples)``; the returned LUT is read-only.
    """
    if size <= 0 or samples <= 0:
        raise ValueError("size and samples must be positive")
    logger.debug("Generating %dx%d BRDF LUT with %d samples", size, size, samples)
    return BrdfLut(_brdf_table(int(size), int(samples)))


def convolve_irradiance(env: EnvironmentMap, width: int = 32, height: int = 16, *, step: float = 0.05) -> EnvironmentMap:
    """Cosine-weighted hemisphere convolution of ``env``.

    Riemann sum over a regular ``(phi, theta)`` grid with spacing ``step``
    radians, normalized by ``pi / N`` so a constant environment maps to
    itself.
    """
    w, h = size_wh(width, height)
    if step <= 0.0:
        raise ValueError("step must be positive")
    phi = np.arange(0.0, 2.0 * _PI, step)
    theta = np.arange(0.0, 0.5 * _PI, step)
    phi, theta = (g.ravel() for g in np.meshgrid(phi, theta))
    weights = np.cos(theta) * np.sin(theta)
    count = phi.size

    dirs = _texel_directions(w, h).astype(np.float64)
    out = np.empty((h, w, 3), dtype=np.float32)
    for y in range(h):
        n = dirs[y]
        pole = (np.abs(n[:, 1]) >= 0.99999)[:, np.newaxis]
        up = np.where(pole, [0.0, 0.0, 1.0], [0.0, 1.0, 0.0])
        right = np.cross(up, n)
        right /= np.linalg.norm(right, axis=-1, keepdims=True)
        up = np.cross(n, right)
        up /= np.linalg.norm(up, axis=-1, keepdims=True)

        temp = (np.cos(phi)[np.newaxis, :, np.newaxis] * right[:, np.newaxis, :]
                + np.sin(phi)[np.newaxis, :, np.newaxis] * up[:, np.newaxis, :])
        sample_dirs = (np.cos(theta)[np.newaxis, :, np.newaxis] * n[:, np.newaxis, :]
                       + np.sin(theta)[np.newaxis, :, np.newaxis] * temp)
        radiance = sample_panorama(env.data, sample_dirs.reshape(-1, 3)).reshape(w, count, 3)
        out[y] = _PI * np.einsum("wsc,s->wc", radiance, weights) / count
    return EnvironmentMap(w, h, out)


def prefilter_environment(
    env: EnvironmentMap,
    levels: int = 5,
    width: int = 64,
    height: int = 32,
    *,
    samples: int = 256,
) -> PrefilteredEnvironment:
    """GGX-prefilter ``env`` into a mip chain.

    Level ``i`` uses roughness ``i / (levels - 1)`` and half the resolution
    of level ``i - 1`` (never below 1 texel). Each texel assumes ``N = V = R``
    and averages ``n.l``-weighted importance samples.
    """
    if levels < 1:
        raise ValueError("levels must be at least 1")
    w, h = size_wh(width, height)
    xi = hammersley(int(samples))

    maps = []
    for level in range(levels):
        roughness = level / (levels - 1) if levels > 1 else 0.0
        lw, lh = max(w >> level, 1), max(h >> level, 1)
        dirs = _texel_directions(lw, lh).astype(np.float64)
        out = np.empty((lh, lw, 3), dtype=np.float32)
        for y in range(lh):
            n = dirs[y][:, np.newaxis, :]
            hv = importance_sample_ggx(xi, n, roughness)
            v_dot_h = np.sum(n * hv, axis=-1, keepdims=True)
            l = 2.0 * v_dot_h * hv - n
            n_dot_l = np.maximum(np.sum(n * l, axis=-1), 0.0)
            radiance = sample_panorama(env.data, l.reshape(-1, 3)).reshape(lw, -1, 3)
            total = np.maximum(n_dot_l.sum(axis=-1), EPSILON)[:, np.newaxis]
            out[y] = np.einsum("wsc,ws->wc", radiance, n_dot_l) / total
        maps.append(EnvironmentMap(lw, lh, out))
        logger.debug("Prefiltered level %d (roughness %.3f) at %dx%d", level, roughness, lw, lh)
    return PrefilteredEnvironment(maps)


def validate_environment_map(envmap: EnvironmentMap) -> Dict[str, Any]:
    """
    Validate environment map data.

    Args:
        envmap: Environment map to validate

    Returns:
        Validation results dictionary
    """
    results = {
        'valid': True,
        'errors': [],
        'warnings': [],
        'statistics': {}
    }

    if envmap.width <= 0 or envmap.height <= 0:
        results['valid'] = False
        results['errors'].append(f"Invalid dimensions: {envmap.width}x{envmap.height}")

    if envmap.width != 2 * envmap.height:
        results['warnings'].append(
            f"Equirectangular maps are expected to be 2:1, got {envmap.width}x{envmap.height}"
        )

    if not np.isfinite(envmap.data).all():
        results['valid'] = False
        results['errors'].append("NaN or infinite values found in environment map")
        logger.debug(f"Environment map validation: {results}")
        return results

    data_min = float(np.min(envmap.data))
    data_max = float(np.max(envmap.data))
    results['statistics']['min_value'] = data_min
    results['statistics']['max_value'] = data_max
    results['statistics']['mean_value'] = float(np.mean(envmap.data))

    if data_min < 0.0:
        results['errors'].append(f"Negative values found: min={data_min}")
        results['valid'] = False

    if data_max > 100.0:
        results['warnings'].append(f"Very high HDR values: max={data_max}")

    memory_mb = envmap.data.nbytes / (1024 * 1024)
    results['statistics']['memory_mb'] = float(memory_mb)

    logger.debug(f"Environment map validation: {results}")
    return results


__all__ = [
    'EnvironmentMap',
    'PrefilteredEnvironment',
    'BrdfLut',
    'EnvironmentProbe',
    'radical_inverse_vdc',
    'hammersley',
    'importance_sample_ggx',
    'integrate_brdf',
    'generate_brdf_lut',
    'convolve_irradiance',
    'prefilter_environment',
    'validate_environment_map',
]
