"""Generate roughness, ambient-occlusion and metalness maps from albedo.

All three are per-pixel remaps of the RGB mean (or, for metalness, a
solid fill) and write the same value to R, G and B.
"""

import logging
import math

from ..config import MapKind
from ..core import (
    MaterialMap, PixelBuffer, allocate_pixels, grayscale_map, mean_intensity,
)

logger = logging.getLogger("map_pipeline.pbr")

ROUGHNESS_CONTRAST = 1.5
AO_THRESHOLD = 100.0


class PBRGenerator:
    """Generate heuristic PBR material maps from an albedo buffer.

    **Important**: these maps are approximations inferred from color
    alone, not measured material properties:

    - Roughness assumes dark regions (crevices, grooves) are rougher and
      bright regions are smoother.
    - AO darkens only pixels whose RGB mean is below 100; everything
      brighter is treated as unoccluded.
    - Metalness is a single metal/non-metal decision for the whole
      texture rather than a per-pixel estimate.
    """

    def generate_roughness(self, albedo: PixelBuffer, multiplier: float) -> MaterialMap:
        """Invert the RGB mean, scale by ``multiplier`` and boost contrast."""
        if not math.isfinite(multiplier):
            raise ValueError(f"Roughness multiplier must be finite, got {multiplier!r}")
        avg = mean_intensity(albedo)
        val = (255.0 - avg) * multiplier
        val = ((val / 255.0 - 0.5) * ROUGHNESS_CONTRAST + 0.5) * 255.0
        logger.debug(
            "Roughness map %dx%d generated (multiplier=%.3f)",
            albedo.width, albedo.height, multiplier,
        )
        return grayscale_map(MapKind.ROUGHNESS, albedo, val)

    def generate_ao(self, albedo: PixelBuffer) -> MaterialMap:
        """Scale dark pixels by mean / 100; pixels at or above 100 are white."""
        avg = mean_intensity(albedo)
        val = avg / AO_THRESHOLD * 255.0
        val[avg >= AO_THRESHOLD] = 255.0
        logger.debug("AO map %dx%d generated", albedo.width, albedo.height)
        return grayscale_map(MapKind.AO, albedo, val)

    def generate_metalness(self, albedo: PixelBuffer, is_metal: bool) -> MaterialMap:
        """Fill every pixel with 255 for metal, 0 otherwise.

        The output keeps the source channel layout; alpha, if present, is 255.
        """
        value = 255 if is_metal else 0
        out = allocate_pixels(albedo.height, albedo.width, albedo.channels, fill=value)
        if albedo.has_alpha:
            out[:, :, 3] = 255
        logger.debug(
            "Metalness map %dx%d generated (metal=%s)",
            albedo.width, albedo.height, bool(is_metal),
        )
        return MaterialMap(MapKind.METALNESS, out, copy=False)
