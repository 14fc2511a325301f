"""Radiance HDR (RGBE) panorama loading and saving."""

import logging
from pathlib import Path
from typing import Tuple, Union

import numpy as np

logger = logging.getLogger(__name__)

_MAGICS = (b"#?RADIANCE", b"#?RGBE")
_FORMATS = (b"FORMAT=32-bit_rle_rgbe",)


def load_hdr(path: Union[str, Path]) -> np.ndarray:
    """Load a Radiance HDR file and return it as float32 linear RGB.

    Parameters
    ----------
    path : str or Path
        Path to the HDR file

    Returns
    -------
    np.ndarray
        HDR image data as float32 array of shape (H, W, 3). Row 0 is the top
        of the image.

    Raises
    ------
    FileNotFoundError
        If the HDR file cannot be found
    RuntimeError
        If the file is not a valid RGBE image or cannot be decoded
    """
    path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"HDR file not found: {path}")

    try:
        data = path.read_bytes()
        width, height, flip_y, offset = _parse_header(data)
        rgbe = _read_scanlines(data, offset, width, height)
    except (ValueError, IndexError) as e:
        raise RuntimeError(f"Failed to load HDR file {path}: {e}") from e

    rgb = rgbe_to_float(rgbe)
    if flip_y:
        rgb = rgb[::-1].copy()
    logger.debug("Loaded HDR %s: %dx%d, max %.3f", path, width, height, float(rgb.max(initial=0.0)))
    return rgb


def _parse_header(data: bytes) -> Tuple[int, int, bool, int]:
    """Return ``(width, height, flip_y, offset_of_pixel_data)``."""
    pos = 0

    def next_line() -> bytes:
        nonlocal pos
        end = data.find(b"\n", pos)
        if end < 0:
            raise ValueError("truncated header")
        line = data[pos:end].strip()
        pos = end + 1
        return line

    magic = next_line()
    if not magic.startswith(_MAGICS):
        raise ValueError(f"Invalid HDR magic: {magic!r}")

    format_found = False
    while True:
        line = next_line()
        if not line:
            break
        if line.startswith(b"FORMAT="):
            if line not in _FORMATS:
                raise ValueError(f"Unsupported HDR format: {line.decode('ascii', 'replace')}")
            format_found = True
    if not format_found:
        raise ValueError("HDR file missing FORMAT specification")

    parts = next_line().split()
    if len(parts) != 4 or parts[0] not in (b"-Y", b"+Y") or parts[2] != b"+X":
        raise ValueError(f"Unsupported HDR resolution line: {b' '.join(parts)!r}")
    try:
        height = int(parts[1])
        width = int(parts[3])
    except ValueError as e:
        raise ValueError(f"Invalid HDR dimensions in: {b' '.join(parts)!r}") from e
    if width <= 0 or height <= 0:
        raise ValueError(f"Invalid HDR dimensions: {width}x{height}")
    return width, height, parts[0] == b"+Y", pos


def _read_scanlines(data: bytes, offset: int, width: int, height: int) -> np.ndarray:
    rgbe = np.zeros((height, width, 4), dtype=np.uint8)
    pos = offset
    for y in range(height):
        head = data[pos:pos + 4]
        if len(head) != 4:
            raise ValueError(f"Unexpected end of file at scanline {y}")
        is_rle = (8 <= width < 0x8000 and head[0] == 2 and head[1] == 2
                  and ((head[2] << 8) | head[3]) == width)
        if is_rle:
            pos = _read_rle_scanline(data, pos + 4, width, rgbe[y])
        else:
            end = pos + 4 * width
            if end > len(data):
                raise ValueError(f"Unexpected end of file at scanline {y}")
            rgbe[y] = np.frombuffer(data, dtype=np.uint8, count=4 * width, offset=pos).reshape(width, 4)
            pos = end
    return rgbe


def _read_rle_scanline(data: bytes, pos: int, width: int, out: np.ndarray) -> int:
    # New-style RLE stores each of the four components as its own run stream.
    for component in range(4):
        x = 0
        while x < width:
            count = data[pos]
            pos += 1
            if count > 128:
                count -= 128
                if x + count > width:
                    raise ValueError("RLE run exceeds scanline width")
                out[x:x + count, component] = data[pos]
                pos += 1
            else:
                if count == 0 or x + count > width:
                    raise ValueError("Invalid RLE literal run")
                if pos + count > len(data):
                    raise ValueError("Unexpected end of file in RLE literal")
                out[x:x + count, component] = np.frombuffer(data, dtype=np.uint8, count=count, offset=pos)
                pos += count
            x += count
    return pos


def rgbe_to_float(rgbe: np.ndarray) -> np.ndarray:
    """Decode shared-exponent RGBE texels: ``rgb * 2^(e - 136)``; ``e == 0`` is black."""
    rgbe = np.asarray(rgbe, dtype=np.uint8)
    e = rgbe[..., 3].astype(np.int32)
    scale = np.where(e != 0, np.ldexp(1.0, e - 136), 0.0).astype(np.float32)
    return rgbe[..., :3].astype(np.float32) * scale[..., np.newaxis]


def float_to_rgbe(rgb: np.ndarray) -> np.ndarray:
    """Encode linear RGB to RGBE bytes (negative values are clipped to 0)."""
    rgb = np.clip(np.asarray(rgb, dtype=np.float64), 0.0, None)
    peak = rgb.max(axis=-1)
    mantissa, exponent = np.frexp(peak)
    valid = peak > 1e-32
    scale = np.where(valid, mantissa * 256.0 / np.where(valid, peak, 1.0), 0.0)
    out = np.zeros(rgb.shape[:-1] + (4,), dtype=np.uint8)
    out[..., :3] = np.clip(np.floor(rgb * scale[..., np.newaxis]), 0, 255).astype(np.uint8)
    out[..., 3] = np.where(valid, np.clip(exponent + 128, 0, 255), 0).astype(np.uint8)
    return out


def save_hdr(image: np.ndarray, path: Union[str, Path]) -> None:
    """Write (H, W, 3) linear RGB as an uncompressed Radiance HDR file."""
    arr = np.asarray(image)
    if arr.ndim != 3 or arr.shape[2] != 3:
        raise ValueError(f"image must be (H, W, 3), got {arr.shape}")
    height, width = arr.shape[:2]
    header = (
        b"#?RADIANCE\n"
        b"FORMAT=32-bit_rle_rgbe\n\n"
        + f"-Y {height} +X {width}\n".encode("ascii")
    )
    path = Path(path)
    path.write_bytes(header + float_to_rgbe(arr).tobytes())
    logger.info("Saved HDR panorama: %s", path)


def load_panorama(path: Union[str, Path]) -> np.ndarray:
    """Load an equirectangular panorama as float32 linear RGB (H, W, 3).

    ``.hdr`` files are decoded directly; other formats go through Pillow and
    are treated as sRGB-encoded 8-bit images.
    """
    path = Path(path)
    if path.suffix.lower() == ".hdr":
        return load_hdr(path)
    if not path.exists():
        raise FileNotFoundError(f"Panorama file not found: {path}")

    from PIL import Image
    from .tonemap import decode_srgb

    with Image.open(path) as image:
        rgb = np.asarray(image.convert("RGB"), dtype=np.float32) / 255.0
    return decode_srgb(rgb).astype(np.float32)


__all__ = ["load_hdr", "save_hdr", "rgbe_to_float", "float_to_rgbe", "load_panorama"]
