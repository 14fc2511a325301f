"""
Tone mapping operators (Linear/Reinhard/PBR Neutral) and display encoding.

Provides numpy-friendly helpers for compressing linear radiance into a
displayable range. The neutral operator follows the Khronos PBR Neutral
curve: colors below the knee pass through (after a small black-level offset),
highlights are compressed and desaturated toward the new peak.
"""

from __future__ import annotations

import warnings

import numpy as np
from typing import Iterable

TONEMAP_LINEAR = "linear"
TONEMAP_REINHARD = "reinhard"
TONEMAP_NEUTRAL = "neutral"

TONEMAP_MODES = (TONEMAP_LINEAR, TONEMAP_REINHARD, TONEMAP_NEUTRAL)

_TONEMAP_ALIASES = {
    "none": TONEMAP_LINEAR,
    "pbr_neutral": TONEMAP_NEUTRAL,
    "khronos_neutral": TONEMAP_NEUTRAL,
}

NEUTRAL_START_COMPRESSION = 0.8 - 0.04
NEUTRAL_DESATURATION = 0.15


def _as_float_array(color: np.ndarray | Iterable[float]) -> np.ndarray:
    arr = np.asarray(color, dtype=np.float32)
    if arr.shape[-1:] != (3,):
        raise ValueError(f"Expected RGB data with shape (..., 3); got {arr.shape}")
    return arr


def _clip_positive(arr: np.ndarray) -> np.ndarray:
    return np.clip(arr, 0.0, None)


def tonemap_linear(color: np.ndarray | Iterable[float]) -> np.ndarray:
    """Linear (no tone map) path."""
    return _clip_positive(_as_float_array(color))


def tonemap_reinhard(color: np.ndarray | Iterable[float]) -> np.ndarray:
    """Reinhard per-channel tone map, ``c / (c + 1)``."""
    arr = _clip_positive(_as_float_array(color))
    return arr / (arr + 1.0)


def tonemap_neutral(color: np.ndarray | Iterable[float]) -> np.ndarray:
    """PBR Neutral tone map.

    Below the knee (post-offset peak < 0.76) the offset-subtracted color is
    returned unchanged. Above it the peak is compressed toward 1 and the
    color is blended toward the new peak to avoid hue skews in highlights.
    """
    arr = _as_float_array(color).astype(np.float64)
    x = np.min(arr, axis=-1, keepdims=True)
    offset = np.where(x < 0.08, x - 6.25 * x * x, 0.04)
    arr = arr - offset

    peak = np.max(arr, axis=-1, keepdims=True)
    d = 1.0 - NEUTRAL_START_COMPRESSION
    compress = peak >= NEUTRAL_START_COMPRESSION
    safe_peak = np.where(compress, peak, 1.0)
    new_peak = 1.0 - d * d / (safe_peak + d - NEUTRAL_START_COMPRESSION)
    scaled = arr * (new_peak / safe_peak)
    g = 1.0 - 1.0 / (NEUTRAL_DESATURATION * (safe_peak - new_peak) + 1.0)
    blended = scaled * (1.0 - g) + new_peak * g

    out = np.where(compress, blended, arr)
    return out.astype(np.float32)


def apply_tonemap(color: np.ndarray | Iterable[float], mode: str, *, exposure: float = 1.0) -> np.ndarray:
    """Apply specified tone mapping curve after scaling by ``exposure``."""
    normalized = mode.lower()
    if normalized in _TONEMAP_ALIASES:
        warnings.warn(f"Tone mapping mode '{mode}' is an alias for '{_TONEMAP_ALIASES[normalized]}'")
        normalized = _TONEMAP_ALIASES[normalized]
    if normalized not in TONEMAP_MODES:
        raise ValueError(f"Unsupported tone mapping mode '{mode}'. Expected one of {TONEMAP_MODES}.")
    arr = _as_float_array(color) * np.float32(exposure)
    if normalized == TONEMAP_LINEAR:
        return tonemap_linear(arr)
    if normalized == TONEMAP_REINHARD:
        return tonemap_reinhard(arr)
    return tonemap_neutral(arr)


def decode_srgb(color: np.ndarray | Iterable[float]) -> np.ndarray:
    """sRGB transfer function to linear."""
    c = np.clip(np.asarray(color, dtype=np.float32), 0.0, 1.0)
    return np.where(c <= 0.04045, c / 12.92, ((c + 0.055) / 1.055) ** 2.4).astype(np.float32)


def encode_srgb(color: np.ndarray | Iterable[float]) -> np.ndarray:
    """Linear to sRGB transfer function."""
    c = np.clip(np.asarray(color, dtype=np.float32), 0.0, 1.0)
    return np.where(c <= 0.0031308, c * 12.92, 1.055 * np.power(c, 1.0 / 2.4) - 0.055).astype(np.float32)


def to_rgba8(color: np.ndarray | Iterable[float]) -> np.ndarray:
    """Quantize display-referred RGB(A) in [0, 1] to uint8 RGBA with alpha 255."""
    arr = np.asarray(color, dtype=np.float32)
    if arr.shape[-1] not in (3, 4):
        raise ValueError(f"Expected RGB(A) data with shape (..., 3|4); got {arr.shape}")
    rgb = (np.clip(arr[..., :3], 0.0, 1.0) * 255.0 + 0.5).astype(np.uint8)
    alpha = np.full(rgb.shape[:-1] + (1,), 255, dtype=np.uint8)
    return np.concatenate([rgb, alpha], axis=-1)


__all__ = [
    "TONEMAP_LINEAR",
    "TONEMAP_REINHARD",
    "TONEMAP_NEUTRAL",
    "TONEMAP_MODES",
    "tonemap_linear",
    "tonemap_reinhard",
    "tonemap_neutral",
    "apply_tonemap",
    "decode_srgb",
    "encode_srgb",
    "to_rgba8",
]
