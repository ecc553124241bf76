"""Image I/O utilities -- decode to and encode from 8-bit pixel buffers."""

import base64
import binascii
import logging
import os
import re
import threading
from io import BytesIO
from pathlib import Path
from typing import Union

import numpy as np
from PIL import Image

from .buffers import PixelBuffer
from .errors import DecodeError

# Disable Pillow's global decompression bomb check; we validate per-call
# in decode_image() against max_pixels instead.
Image.MAX_IMAGE_PIXELS = None

logger = logging.getLogger("map_pipeline")

_DATA_URI_RE = re.compile(r"^data:(?P<mime>[^;,]*)(?P<params>(?:;[^;,]*)*),(?P<payload>.*)$", re.DOTALL)

# Pillow modes converted to RGB / RGBA before wrapping in a PixelBuffer.
_RGB_CONVERT_MODES = {"1", "L", "CMYK", "YCbCr", "LAB", "HSV", "RGBX"}
_RGBA_CONVERT_MODES = {"LA", "La", "PA", "RGBa"}
_HIGH_DEPTH_MODES = {"I", "F", "I;16", "I;16B", "I;16L", "I;16N"}

_LOSSLESS_EXTS = {".png", ".bmp", ".tga", ".tif", ".tiff"}

ImageSource = Union[bytes, bytearray, memoryview, str]


def _decode_data_uri(uri: str) -> bytes:
    """Return the binary payload of a base64 ``data:`` URI."""
    match = _DATA_URI_RE.match(uri.strip())
    if match is None:
        raise DecodeError("Malformed data URI: missing 'data:' prefix or ',' separator")
    params = [p.strip().lower() for p in match.group("params").split(";") if p.strip()]
    if "base64" not in params:
        raise DecodeError("Only base64-encoded data URIs are supported")
    mime = match.group("mime").strip().lower()
    if mime and not mime.startswith("image/"):
        raise DecodeError(f"Data URI does not carry an image (mime type '{mime}')")
    payload = "".join(match.group("payload").split())
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise DecodeError(f"Invalid base64 payload in data URI: {exc}") from exc


def _to_pixel_array(img: Image.Image, source: str) -> np.ndarray:
    """Convert an opened Pillow image to an HxWx3/4 uint8 array."""
    mode = img.mode
    if mode in _HIGH_DEPTH_MODES:
        raise DecodeError(
            f"Unsupported image mode '{mode}' in {source}: only 8-bit "
            "RGB/RGBA-compatible images are accepted"
        )
    if mode in ("RGB", "RGBA"):
        return np.array(img, dtype=np.uint8)
    if mode == "P":
        target = "RGBA" if "transparency" in img.info else "RGB"
        logger.debug("Converting palette image '%s' from P->%s", source, target)
        with img.convert(target) as converted:
            return np.array(converted, dtype=np.uint8)
    if mode in _RGB_CONVERT_MODES:
        logger.debug("Converting image '%s' from %s->RGB", source, mode)
        with img.convert("RGB") as converted:
            return np.array(converted, dtype=np.uint8)
    if mode in _RGBA_CONVERT_MODES:
        logger.debug("Converting image '%s' from %s->RGBA", source, mode)
        with img.convert("RGBA") as converted:
            return np.array(converted, dtype=np.uint8)
    raise DecodeError(f"Unsupported image mode '{mode}' in {source}")


def _decode_bytes(raw: bytes, source: str, max_pixels: int) -> PixelBuffer:
    if max_pixels < 0:
        raise ValueError("max_pixels must be >= 0 (0 = unlimited)")
    if not raw:
        raise DecodeError(f"No image data in {source}")
    try:
        with Image.open(BytesIO(raw)) as img:
            w, h = img.size
            # Memory guard -- checked on the header, before the full decode.
            if max_pixels > 0 and w * h > max_pixels:
                raise DecodeError(
                    f"Image too large: {w}x{h} = {w * h:,} pixels "
                    f"(max {max_pixels:,}) in {source}"
                )
            if w < 1 or h < 1:
                raise DecodeError(f"Image has no pixels: {w}x{h} in {source}")
            img.load()
            arr = _to_pixel_array(img, source)
            logger.debug("Decoded %s: %dx%d mode=%s -> %d channels",
                         source, w, h, img.mode, arr.shape[-1])
    except DecodeError:
        raise
    except Exception as e:
        logger.error("Failed to decode image %s: %s", source, e)
        raise DecodeError(f"Failed to decode image {source}: {e}") from e
    return PixelBuffer(arr, copy=False)


def decode_image(data: ImageSource, max_pixels: int = 0) -> PixelBuffer:
    """Decode raw image bytes or a base64 ``data:`` URI into a `PixelBuffer`.

    Raises:
        DecodeError: The data is malformed, not an image, not 8-bit
            RGB(A)-compatible, or larger than ``max_pixels`` (when > 0).

    """
    if isinstance(data, str):
        if not data.lstrip().startswith("data:"):
            raise DecodeError(
                "String input must be a data URI; pass file contents as bytes "
                "or use load_image() for paths"
            )
        raw = _decode_data_uri(data)
        source = "<data-uri>"
    elif isinstance(data, (bytes, bytearray, memoryview)):
        raw = bytes(data)
        source = "<bytes>"
    else:
        raise TypeError(f"decode_image() expects bytes or str, got {type(data).__name__}")
    return _decode_bytes(raw, source, max_pixels)


def load_image(path: str, max_pixels: int = 0) -> PixelBuffer:
    """Read and decode an image file.

    Missing or unreadable files raise the usual ``OSError``; undecodable
    content raises `DecodeError`.
    """
    with open(path, "rb") as f:
        raw = f.read()
    return _decode_bytes(raw, str(path), max_pixels)


def encode_png(buffer: PixelBuffer, compress_level: int = 6) -> bytes:
    """Serialize a buffer as PNG bytes (lossless, 8 bits per channel)."""
    out = BytesIO()
    with Image.fromarray(np.ascontiguousarray(buffer.pixels)) as img:
        img.save(out, format="PNG", compress_level=compress_level)
    return out.getvalue()


def to_data_uri(buffer: PixelBuffer, compress_level: int = 6) -> str:
    """Serialize a buffer as a ``data:image/png;base64,`` URI."""
    encoded = base64.b64encode(encode_png(buffer, compress_level)).decode("ascii")
    return f"data:image/png;base64,{encoded}"


def save_image(buffer: PixelBuffer, path: str, compress_level: int = 6):
    """Write a buffer to a lossless raster file.

    Uses atomic write (temp file + ``os.replace``) to prevent truncated
    output on crash.
    """
    ext = Path(path).suffix.lower()
    if ext not in _LOSSLESS_EXTS:
        raise ValueError(
            f"Refusing to write derived map as '{ext}': use one of "
            f"{sorted(_LOSSLESS_EXTS)} to keep pixel values exact"
        )

    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    # The temp name ends in the real extension so Pillow picks the format.
    tmp_path = f"{path}.{os.getpid()}-{threading.get_ident()}.tmp{ext}"

    try:
        with Image.fromarray(np.ascontiguousarray(buffer.pixels)) as img:
            if ext == ".png":
                img.save(tmp_path, compress_level=compress_level)
            else:
                img.save(tmp_path)
        os.replace(tmp_path, path)
        logger.debug(f"Saved: {path} ({buffer.width}x{buffer.height}x{buffer.channels})")
    finally:
        if os.path.exists(tmp_path):
            try:
                os.remove(tmp_path)
            except OSError:
                pass


def mean_intensity(buffer: PixelBuffer) -> np.ndarray:
    """Return the per-pixel mean of R, G and B in [0, 255] as float64."""
    return buffer.rgb.sum(axis=-1, dtype=np.float64) / 3.0


def luminance(buffer: PixelBuffer) -> np.ndarray:
    """Return the per-pixel luminance sample, mean(R, G, B) / 255, in [0, 1]."""
    return buffer.rgb.sum(axis=-1, dtype=np.float64) / 765.0
