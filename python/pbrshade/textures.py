# python/pbrshade/textures.py
# Texture images, bilinear sampling and per-channel material sources.
# Exists so the material sampler resolves every channel through one code path.
# RELEVANT FILES: python/pbrshade/materials.py, python/pbrshade/normalmap.py, tests/test_textures.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Sequence, Tuple, Union

import numpy as np

from .tonemap import decode_srgb

ArrayLike = Union[np.ndarray, "np.typing.NDArray[np.uint8]"]

WRAP_REPEAT = "repeat"
WRAP_CLAMP = "clamp"
_WRAP_MODES = (WRAP_REPEAT, WRAP_CLAMP)

CHANNEL_ABSENT = "absent"
CHANNEL_CONSTANT = "constant"
CHANNEL_TEXTURE = "texture"

# Selector value used by the per-draw uniform block for "no texture".
NO_UV_SET = -1


def _ensure_rgba_float(arr: np.ndarray) -> np.ndarray:
    if not isinstance(arr, np.ndarray):
        raise TypeError("texture must be a numpy array")

    if arr.ndim == 2:
        arr = arr[..., np.newaxis]
    if arr.ndim != 3 or arr.shape[2] not in (1, 2, 3, 4):
        raise ValueError(f"texture must be (H,W) or (H,W,1|2|3|4), got {arr.shape}")
    if arr.shape[0] == 0 or arr.shape[1] == 0:
        raise ValueError("texture must not be empty")

    if arr.dtype == np.uint8:
        data = arr.astype(np.float32) / 255.0
    elif np.issubdtype(arr.dtype, np.floating):
        data = arr.astype(np.float32)
    else:
        raise TypeError(f"texture dtype must be uint8 or floating point, got {arr.dtype}")

    h, w, c = data.shape
    rgba = np.zeros((h, w, 4), dtype=np.float32)
    if c == 1:
        rgba[..., :3] = data
    else:
        rgba[..., :c] = data
    if c < 4:
        rgba[..., 3] = 1.0
    return rgba


class Texture:
    """A 2D image sampled with bilinear filtering.

    Texel data is stored as linear float32 RGBA. ``srgb=True`` marks color
    data (base color, emissive) whose RGB channels are decoded to linear on
    construction; alpha is always linear. UV ``(0, 0)`` is the top-left
    texel center region, matching glTF.
    """

    def __init__(self, data: ArrayLike, *, srgb: bool = False, wrap: str = WRAP_REPEAT):
        if wrap not in _WRAP_MODES:
            raise ValueError(f"Unknown wrap mode '{wrap}'. Expected one of {_WRAP_MODES}.")
        rgba = _ensure_rgba_float(np.asarray(data))
        if srgb:
            rgba[..., :3] = decode_srgb(rgba[..., :3])
        self.data = rgba
        self.srgb = bool(srgb)
        self.wrap = wrap

    @property
    def width(self) -> int:
        return int(self.data.shape[1])

    @property
    def height(self) -> int:
        return int(self.data.shape[0])

    @classmethod
    def solid(cls, value: Sequence[float], size: int = 1) -> "Texture":
        """Single-color texture, handy for tests and default bindings."""
        rgba = np.ones(4, dtype=np.float32)
        vals = np.asarray(value, dtype=np.float32)
        rgba[: vals.shape[0]] = vals
        data = np.broadcast_to(rgba, (size, size, 4)).copy()
        return cls(data, srgb=False)

    def _wrap_index(self, idx: np.ndarray, extent: int) -> np.ndarray:
        if self.wrap == WRAP_REPEAT:
            return idx % extent
        return np.clip(idx, 0, extent - 1)

    def sample(self, uv: Any) -> np.ndarray:
        """Bilinear sample at ``uv``; returns linear RGBA as float32 (4,)."""
        coords = np.asarray(uv, dtype=np.float64)
        if coords.shape != (2,):
            raise ValueError(f"uv must have shape (2,), got {coords.shape}")
        px = coords[0] * self.width - 0.5
        py = coords[1] * self.height - 0.5
        x0 = int(np.floor(px))
        y0 = int(np.floor(py))
        fx = np.float32(px - x0)
        fy = np.float32(py - y0)

        xs = self._wrap_index(np.array([x0, x0 + 1]), self.width)
        ys = self._wrap_index(np.array([y0, y0 + 1]), self.height)

        c00 = self.data[ys[0], xs[0]]
        c10 = self.data[ys[0], xs[1]]
        c01 = self.data[ys[1], xs[0]]
        c11 = self.data[ys[1], xs[1]]
        top = c00 * (1 - fx) + c10 * fx
        bottom = c01 * (1 - fx) + c11 * fx
        return (top * (1 - fy) + bottom * fy).astype(np.float32)


@dataclass(frozen=True)
class ChannelSource:
    """Where a material channel comes from.

    Exactly one of three variants:

    - ``absent``: no texture, the channel resolves to its factor alone.
    - ``constant``: a fixed value standing in for the factor.
    - ``texture``: sample ``image`` with UV set ``uv_set`` (0 or 1).
    """
    kind: str = CHANNEL_ABSENT
    value: Optional[Tuple[float, ...]] = None
    image: Optional[Texture] = None
    uv_set: int = 0

    def __post_init__(self):
        if self.kind not in (CHANNEL_ABSENT, CHANNEL_CONSTANT, CHANNEL_TEXTURE):
            raise ValueError(f"Unknown channel kind: {self.kind!r}")
        if self.kind == CHANNEL_TEXTURE:
            if not isinstance(self.image, Texture):
                raise TypeError("texture channels require a Texture image")
            if self.uv_set not in (0, 1):
                raise ValueError(f"uv_set must be 0 or 1, got {self.uv_set}")
        if self.kind == CHANNEL_CONSTANT and self.value is None:
            raise ValueError("constant channels require a value")

    @classmethod
    def absent(cls) -> "ChannelSource":
        return cls()

    @classmethod
    def constant(cls, value: Union[float, Sequence[float]]) -> "ChannelSource":
        vals = np.atleast_1d(np.asarray(value, dtype=np.float32))
        return cls(kind=CHANNEL_CONSTANT, value=tuple(float(v) for v in vals))

    @classmethod
    def texture(cls, image: Union[Texture, ArrayLike], uv_set: int = 0, *, srgb: bool = False) -> "ChannelSource":
        if not isinstance(image, Texture):
            image = Texture(np.asarray(image), srgb=srgb)
        return cls(kind=CHANNEL_TEXTURE, image=image, uv_set=int(uv_set))

    @classmethod
    def from_selector(cls, image: Optional[Texture], selector: int) -> "ChannelSource":
        """Build a source from the uniform-block encoding (``-1`` = absent)."""
        if selector == NO_UV_SET or image is None:
            return cls.absent()
        return cls.texture(image, selector)

    @property
    def enabled(self) -> bool:
        return self.kind != CHANNEL_ABSENT

    @property
    def is_texture(self) -> bool:
        return self.kind == CHANNEL_TEXTURE


def sample_channel(channel: ChannelSource, uv0: Any, uv1: Optional[Any] = None) -> Optional[np.ndarray]:
    """Raw RGBA value of a channel, or None when the channel is absent.

    A texture channel that selects UV set 1 falls back to ``uv0`` when the
    fragment carries no second UV set.
    """
    if channel.kind == CHANNEL_ABSENT:
        return None
    if channel.kind == CHANNEL_CONSTANT:
        rgba = np.ones(4, dtype=np.float32)
        vals = np.asarray(channel.value, dtype=np.float32)
        if vals.shape[0] == 1:
            rgba[:3] = vals[0]
        else:
            rgba[: vals.shape[0]] = vals
        return rgba
    uv = uv1 if (channel.uv_set == 1 and uv1 is not None) else uv0
    return channel.image.sample(uv)


def resolve(channel: ChannelSource, uv0: Any, uv1: Optional[Any], factor: Union[float, Sequence[float]],
            components: Optional[Sequence[int]] = None) -> np.ndarray:
    """Resolve a channel to ``sample[components] * factor``.

    An absent channel resolves to ``factor`` unchanged and a constant
    channel to its own value, which replaces the factor. ``components``
    selects which texel channels are used (e.g. ``(1, 2)`` for the glTF
    roughness/metallic packing); by default the leading channels matching
    the factor's length are taken.
    """
    f = np.atleast_1d(np.asarray(factor, dtype=np.float32))
    texel = sample_channel(channel, uv0, uv1)
    if texel is None:
        return f.copy()
    idx = list(components) if components is not None else list(range(f.shape[0]))
    if len(idx) != f.shape[0]:
        raise ValueError(f"components {idx} do not match factor length {f.shape[0]}")
    if channel.kind == CHANNEL_CONSTANT:
        return texel[idx].astype(np.float32)
    return (texel[idx] * f).astype(np.float32)


def resolve_occlusion(channel: ChannelSource, uv0: Any, uv1: Optional[Any], strength: float) -> float:
    """Ambient occlusion with the strength remap ``1 + strength * (ao - 1)``.

    A strength of 0 disables occlusion darkening entirely; an absent
    channel yields 1 and a constant channel its own value.
    """
    texel = sample_channel(channel, uv0, uv1)
    if texel is None:
        return 1.0
    if channel.kind == CHANNEL_CONSTANT:
        return float(texel[0])
    return float(1.0 + float(strength) * (float(texel[0]) - 1.0))


def build_channel_sources(
    base_color: Optional[ArrayLike] = None,
    metallic_roughness: Optional[ArrayLike] = None,
    occlusion: Optional[ArrayLike] = None,
    emissive: Optional[ArrayLike] = None,
    normal: Optional[ArrayLike] = None,
    *,
    uv_sets: Optional[Sequence[int]] = None,
) -> dict:
    """Construct channel sources with glTF color-space defaults.

    - base_color and emissive are sRGB.
    - metallic_roughness, occlusion and normal are linear.
    """
    sets = list(uv_sets) if uv_sets is not None else [0, 0, 0, 0, 0]
    if len(sets) != 5:
        raise ValueError("uv_sets must list one selector per channel (5 entries)")
    specs = (
        ("base_color", base_color, True),
        ("metallic_roughness", metallic_roughness, False),
        ("occlusion", occlusion, False),
        ("emissive", emissive, True),
        ("normal", normal, False),
    )
    out = {}
    for (name, image, srgb), uv_set in zip(specs, sets):
        if image is None or uv_set == NO_UV_SET:
            out[name] = ChannelSource.absent()
        else:
            out[name] = ChannelSource.texture(image, uv_set, srgb=srgb)
    return out


def gltf_mr_channels(arr: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Return (roughness, metallic) channels from a glTF MR texture.

    Convention: G = roughness, B = metallic.

    """
    rgba = _ensure_rgba_float(np.asarray(arr))
    return rgba[..., 1], rgba[..., 2]


__all__ = [
    "Texture",
    "ChannelSource",
    "NO_UV_SET",
    "WRAP_REPEAT",
    "WRAP_CLAMP",
    "sample_channel",
    "resolve",
    "resolve_occlusion",
    "build_channel_sources",
    "gltf_mr_channels",
]
