"""
Normal mapping utilities for pbrshade

Reconstructs the shading normal from a tangent-space normal-map sample and
provides helpers for creating, encoding and validating normal maps.

Bitangent convention: ``b = cross(n, t) * w`` where ``w`` is the tangent's
handedness sign (the fourth component of a vec4 tangent, +1 when the
tangent is given as a vec3). A separately interpolated bitangent is not
accepted; mirrored UV islands are handled through ``w``.
"""

from typing import Any, Dict, Optional, Union
from pathlib import Path

import numpy as np

from ._validate import normalize


def reconstruct_normal(
    normal: Any,
    tangent: Optional[Any] = None,
    normal_sample: Optional[Any] = None,
    *,
    scale: float = 1.0,
) -> np.ndarray:
    """Build the unit shading normal.

    Parameters
    ----------
    normal : array-like (3,)
        Interpolated vertex normal; need not be unit length.
    tangent : array-like (3,) or (4,), optional
        Interpolated tangent. A fourth component is the handedness sign.
    normal_sample : array-like (3,), optional
        Raw normal-map texel in ``[0, 1]``. When omitted (or when no tangent
        is given) the interpolated normal is returned normalized.
    scale : float, default 1.0
        Normal-map intensity; scales the decoded ``xy`` components.

    Returns
    -------
    np.ndarray
        Unit-length float32 normal.
    """
    n = normalize(np.asarray(normal, dtype=np.float32))
    if normal_sample is None or tangent is None:
        return n

    tan = np.asarray(tangent, dtype=np.float32)
    if tan.shape not in ((3,), (4,)):
        raise ValueError(f"tangent must have shape (3,) or (4,), got {tan.shape}")
    handedness = -1.0 if (tan.shape == (4,) and tan[3] < 0.0) else 1.0

    # Gram-Schmidt so the frame stays orthonormal after interpolation.
    t = tan[:3] - n * float(np.dot(n, tan[:3]))
    if float(np.dot(t, t)) <= 1e-12:
        return n
    t = normalize(t)
    b = np.cross(n, t) * handedness

    nm = np.asarray(normal_sample, dtype=np.float32)[:3] * 2.0 - 1.0
    nm = np.array([nm[0] * scale, nm[1] * scale, nm[2]], dtype=np.float32)
    return normalize(t * nm[0] + b * nm[1] + n * nm[2])


def create_checkerboard_normal_map(size: int = 256) -> np.ndarray:
    """Create a checkerboard pattern normal map for testing.

    Alternates flat texels ``(0, 0, 1)`` with texels tilted toward ``+x/+y``
    in 8x8 blocks.

    Parameters
    ----------
    size : int, default 256
        Width and height of the normal map texture in pixels

    Returns
    -------
    np.ndarray
        RGBA normal map as (height, width, 4) uint8 array.
    """
    if size <= 0:
        raise ValueError("Size must be positive")

    nx, ny = 0.2, 0.2
    nz = np.sqrt(max(0.0, 1.0 - nx * nx - ny * ny))
    tilted = encode_normal_vector(np.array([nx, ny, nz]))
    flat = encode_normal_vector(np.array([0.0, 0.0, 1.0]))

    yy, xx = np.mgrid[0:size, 0:size]
    checker = ((xx // 8) + (yy // 8)) % 2 == 1

    normal_map = np.empty((size, size, 4), dtype=np.uint8)
    normal_map[..., :3] = flat
    normal_map[checker, :3] = tilted
    normal_map[..., 3] = 255
    return normal_map


def encode_normal_vector(normal: np.ndarray) -> np.ndarray:
    """Encode a normal vector from [-1,1] range to [0,255] texture format.

    Parameters
    ----------
    normal : np.ndarray
        Normal vector(s) in [-1,1] range, shape (3,), (N, 3) or (H, W, 3).

    Returns
    -------
    np.ndarray
        Encoded normal(s) in [0,255] uint8 range, same shape as input
    """
    normal = np.clip(np.asarray(normal, dtype=np.float32), -1.0, 1.0)
    return np.round((normal + 1.0) * 127.5).astype(np.uint8)


def decode_normal_vector(encoded: np.ndarray) -> np.ndarray:
    """Decode a normal vector from [0,255] texture format to [-1,1] range."""
    encoded = np.asarray(encoded, dtype=np.uint8)
    return (encoded.astype(np.float32) / 127.5) - 1.0


def validate_normal_map(normal_map: np.ndarray, tolerance: float = 0.1) -> Dict[str, Any]:
    """Validate a normal map texture for correctness.

    Returns a dict with ``valid``, ``errors``, ``unit_length_ok`` and
    ``z_positive_ok`` entries.
    """
    normal_map = np.asarray(normal_map)
    errors = []
    unit_length_ok = True
    z_positive_ok = True

    if normal_map.ndim != 3 or normal_map.shape[2] not in (3, 4):
        errors.append(f"Normal map must be (H, W, 3|4), got shape {normal_map.shape}")
        return {'valid': False, 'errors': errors, 'unit_length_ok': False, 'z_positive_ok': False}

    if normal_map.dtype != np.uint8:
        errors.append(f"Normal map must be uint8, got {normal_map.dtype}")
        return {'valid': False, 'errors': errors, 'unit_length_ok': False, 'z_positive_ok': False}

    decoded = decode_normal_vector(normal_map[:, :, :3])
    lengths = np.linalg.norm(decoded, axis=2)
    length_errors = np.abs(lengths - 1.0) > tolerance
    if np.any(length_errors):
        errors.append(f"{int(np.sum(length_errors))}/{lengths.size} pixels have non-unit length normals")
        unit_length_ok = False

    negative_z = int(np.sum(decoded[:, :, 2] < 0))
    if negative_z > 0.1 * lengths.size:
        errors.append(f"Too many negative Z components: {negative_z}/{lengths.size}")
        z_positive_ok = False

    return {
        'valid': len(errors) == 0,
        'errors': errors,
        'unit_length_ok': unit_length_ok,
        'z_positive_ok': z_positive_ok,
    }


def load_normal_map(path: Union[str, Path]) -> np.ndarray:
    """Load a normal map from an image file as (H, W, 4) uint8."""
    from PIL import Image

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Normal map file not found: {path}")
    with Image.open(path) as image:
        return np.array(image.convert('RGBA'), dtype=np.uint8)


__all__ = [
    'reconstruct_normal',
    'create_checkerboard_normal_map',
    'encode_normal_vector',
    'decode_normal_vector',
    'validate_normal_map',
    'load_normal_map',
]
