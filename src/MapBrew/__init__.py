"""Derive PBR material maps (normal, roughness, AO, metalness, height) from an albedo image."""

import logging as _logging

__version__ = "1.0.0"
_logger = _logging.getLogger("map_pipeline")

from .config import MapKind, PipelineConfig  # noqa: E402
from .core import (  # noqa: E402
    DecodeError,
    DerivationError,
    DerivationParams,
    DimensionMismatch,
    MapGenerationError,
    MaterialMap,
    MaterialMapSet,
    PixelBuffer,
    RenderContextError,
    decode_image,
    encode_png,
    to_data_uri,
)
from .pipeline import MapPipeline, derive_maps, derive_maps_from_bytes  # noqa: E402

__all__ = [
    "__version__",
    "MapKind", "PipelineConfig",
    "DecodeError", "DerivationError", "DimensionMismatch",
    "MapGenerationError", "RenderContextError",
    "DerivationParams", "MaterialMap", "MaterialMapSet", "PixelBuffer",
    "decode_image", "encode_png", "to_data_uri",
    "MapPipeline", "derive_maps", "derive_maps_from_bytes",
]
