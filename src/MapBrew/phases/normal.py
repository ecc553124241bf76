"""Generate normal and height maps from albedo textures.

Both maps are driven by the luminance sample, mean(R, G, B) / 255. The
normal map estimates micro-geometry from luminance gradients over a
box-smoothed height field; the height map is a fixed mild contrast
remap of luminance.
"""

import logging
import math

import numpy as np
from scipy.ndimage import uniform_filter

from ..config import MapKind
from ..core import (
    MaterialMap, PixelBuffer, allocate_pixels, grayscale_map,
    luminance, mean_intensity, quantize,
)

logger = logging.getLogger("map_pipeline.normal_gen")

HEIGHT_CONTRAST = 1.2


class NormalMapGenerator:
    """Derive a tangent-space normal map from albedo luminance.

    The left/right/up/down height taps are 3x3 averages centred on the
    unclamped neighbor coordinate; each of the nine luminance samples is
    then clamped to the nearest edge pixel. At x=0 the left tap is
    therefore the average of column 0 alone. Textures are assumed tileable,
    so wraparound would arguably be more accurate at the seams; clamping
    is kept for compatibility with existing outputs.
    """

    kind = MapKind.NORMAL

    def generate(self, albedo: PixelBuffer, strength: float) -> MaterialMap:
        """Return an RGBA normal map the size of ``albedo``.

        ``strength`` scales the luminance gradient; larger values give
        deeper-looking bumps. Alpha is always 255.
        """
        if not math.isfinite(strength):
            raise ValueError(f"Normal strength must be finite, got {strength!r}")

        height = self._smoothed_height(luminance(albedo))
        dx, dy = self._gradients(height, strength)
        out = self._encode(dx, dy)
        logger.debug(
            "Normal map %dx%d generated (strength=%.3f)",
            albedo.width, albedo.height, strength,
        )
        return MaterialMap(self.kind, out, copy=False)

    @staticmethod
    def _smoothed_height(lum: np.ndarray) -> np.ndarray:
        """3x3 box average of luminance, extended one pixel past each border.

        Luminance is edge-padded by two before smoothing, so the result
        at padded index ``(y + 2, x + 2)`` is the average around ``(x, y)``
        with each of the nine samples clamped individually. The extra
        ring holds the averages centred just outside the image, which
        the gradient taps read at the borders.
        """
        return uniform_filter(np.pad(lum, 2, mode="edge"), size=3, mode="nearest")

    @staticmethod
    def _gradients(height: np.ndarray, strength: float):
        """Central differences of the smoothed height field.

        ``height`` is the output of `_smoothed_height`. Returns
        ``(hL - hR) * strength`` and ``(hU - hD) * strength``.
        """
        h_left = height[2:-2, 1:-3]
        h_right = height[2:-2, 3:-1]
        h_up = height[1:-3, 2:-2]
        h_down = height[3:-1, 2:-2]
        dx = (h_left - h_right) * strength
        dy = (h_up - h_down) * strength
        return dx, dy

    @staticmethod
    def _encode(dx: np.ndarray, dy: np.ndarray) -> np.ndarray:
        """Normalize (dx, dy, 1) and pack it into RGBA bytes."""
        length = np.sqrt(dx * dx + dy * dy + 1.0)
        h, w = dx.shape
        out = allocate_pixels(h, w, 4, fill=255)
        out[:, :, 0] = quantize(((dx / length) * 0.5 + 0.5) * 255.0)
        out[:, :, 1] = quantize(((dy / length) * 0.5 + 0.5) * 255.0)
        out[:, :, 2] = quantize(((1.0 / length) * 0.5 + 0.5) * 255.0)
        return out


class HeightMapGenerator:
    """Derive a displacement map from contrast-adjusted luminance."""

    kind = MapKind.HEIGHT

    def generate(self, albedo: PixelBuffer) -> MaterialMap:
        avg = mean_intensity(albedo)
        val = ((avg / 255.0 - 0.5) * HEIGHT_CONTRAST + 0.5) * 255.0
        logger.debug("Height map %dx%d generated", albedo.width, albedo.height)
        return grayscale_map(self.kind, albedo, val)
