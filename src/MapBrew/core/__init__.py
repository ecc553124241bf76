"""Core utilities -- re-exports all public symbols for convenience."""

from .errors import (
    DerivationError,
    DecodeError,
    DimensionMismatch,
    RenderContextError,
    MapGenerationError,
)
from .buffers import (
    PixelBuffer,
    MaterialMap,
    MaterialMapSet,
    PartialMaterialMapSet,
    DerivationParams,
    allocate_pixels,
    check_same_size,
    grayscale_map,
    quantize,
)
from .io import (
    decode_image,
    load_image,
    encode_png,
    to_data_uri,
    save_image,
    mean_intensity,
    luminance,
)
from .scanning import scan_inputs, is_derived_map_name
from .paths import get_map_path
from .logging import setup_logging

__all__ = [
    "DerivationError", "DecodeError", "DimensionMismatch",
    "RenderContextError", "MapGenerationError",
    "PixelBuffer", "MaterialMap", "MaterialMapSet", "PartialMaterialMapSet",
    "DerivationParams", "allocate_pixels", "check_same_size",
    "grayscale_map", "quantize",
    "decode_image", "load_image", "encode_png", "to_data_uri", "save_image",
    "mean_intensity", "luminance",
    "scan_inputs", "is_derived_map_name",
    "get_map_path",
    "setup_logging",
]
