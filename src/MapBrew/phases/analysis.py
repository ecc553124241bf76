"""Turn external material-analysis output into derivation parameters.

A vision-analysis service may suggest a roughness and a metalness value
(each in [0, 1]) for an albedo. Its answer arrives as JSON text shaped
like ``{"suggestedRoughness": 0.7, "suggestedMetalness": 0.1}``. When the
service fails or answers with something unusable, fixed defaults are
substituted instead of failing the derivation.
"""

import json
import logging
import math
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Union

from ..config import PipelineConfig
from ..core import DerivationParams

logger = logging.getLogger("map_pipeline.analysis")

AnalysisResponse = Union[str, bytes, Mapping[str, Any]]
Analyzer = Callable[[Any], AnalysisResponse]

_ROUGHNESS_KEYS = ("suggestedRoughness", "suggested_roughness")
_METALNESS_KEYS = ("suggestedMetalness", "suggested_metalness")


@dataclass(frozen=True)
class MaterialHints:
    """Suggested material scalars for one albedo."""

    suggested_roughness: float
    suggested_metalness: float
    # True when any value came from the defaults rather than the analyzer.
    is_fallback: bool = False


def default_hints(config: Optional[PipelineConfig] = None) -> MaterialHints:
    """Return the fallback hints from ``config`` (or the built-in defaults)."""
    cfg = (config or PipelineConfig()).analysis
    return MaterialHints(
        suggested_roughness=cfg.default_roughness,
        suggested_metalness=cfg.default_metalness,
        is_fallback=True,
    )


def _is_number(value) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def _pick(data: Mapping[str, Any], keys) -> Any:
    for key in keys:
        if key in data:
            return data[key]
    return None


def _unit_value(name: str, value: float) -> float:
    if value < 0.0 or value > 1.0:
        logger.warning("Suggested %s %.4f outside [0, 1]; clamping", name, value)
        return min(max(float(value), 0.0), 1.0)
    return float(value)


def parse_analysis_response(
    response: Optional[AnalysisResponse],
    config: Optional[PipelineConfig] = None,
) -> MaterialHints:
    """Parse an analyzer answer into `MaterialHints`, never raising.

    Invalid JSON or a non-object yields the defaults outright; a missing,
    non-numeric or non-finite field falls back to its own default. A
    suggested roughness of exactly 0 is treated as missing.
    """
    fallback = default_hints(config)

    if isinstance(response, (bytes, bytearray)):
        response = bytes(response).decode("utf-8", errors="replace")
    if isinstance(response, str):
        try:
            data = json.loads(response or "{}")
        except ValueError as exc:
            logger.warning("Material analysis returned invalid JSON (%s); using defaults", exc)
            return fallback
    elif response is None:
        logger.warning("Material analysis returned nothing; using defaults")
        return fallback
    else:
        data = response

    if not isinstance(data, Mapping):
        logger.warning(
            "Material analysis returned %s instead of an object; using defaults",
            type(data).__name__,
        )
        return fallback

    used_default = False
    roughness = _pick(data, _ROUGHNESS_KEYS)
    if _is_number(roughness) and roughness != 0:
        roughness = _unit_value("roughness", roughness)
    else:
        logger.warning(
            "Unusable suggested roughness %r; using default %.2f",
            roughness, fallback.suggested_roughness,
        )
        roughness = fallback.suggested_roughness
        used_default = True

    metalness = _pick(data, _METALNESS_KEYS)
    if _is_number(metalness):
        metalness = _unit_value("metalness", metalness)
    else:
        logger.warning(
            "Unusable suggested metalness %r; using default %.2f",
            metalness, fallback.suggested_metalness,
        )
        metalness = fallback.suggested_metalness
        used_default = True

    return MaterialHints(
        suggested_roughness=roughness,
        suggested_metalness=metalness,
        is_fallback=used_default,
    )


def analyze_with_fallback(
    analyzer: Optional[Analyzer],
    image: Any,
    config: Optional[PipelineConfig] = None,
) -> MaterialHints:
    """Ask ``analyzer`` about ``image``; substitute defaults on any failure.

    ``analyzer`` is the external collaborator: it receives ``image`` as
    given (bytes or a data URI) and returns JSON text or a mapping.
    Retrying is the analyzer's business; it is called exactly once here.
    """
    if analyzer is None:
        logger.debug("No material analyzer configured; using default hints")
        return default_hints(config)
    try:
        response = analyzer(image)
    except Exception as exc:
        logger.warning(
            "Material analysis failed (%s: %s); using default hints",
            exc.__class__.__name__, exc,
        )
        return default_hints(config)
    return parse_analysis_response(response, config)


def load_hints(path: str, config: Optional[PipelineConfig] = None) -> MaterialHints:
    """Read a saved analysis response from ``path``.

    A missing file raises ``OSError``; unusable content falls back like
    any other analysis response.
    """
    with open(path, "r", encoding="utf-8") as f:
        text = f.read()
    return parse_analysis_response(text, config)


def params_from_hints(
    hints: MaterialHints,
    config: Optional[PipelineConfig] = None,
    normal_strength: Optional[float] = None,
) -> DerivationParams:
    """Build generator parameters from hints and caller defaults.

    ``roughness_multiplier = suggested_roughness * analysis.roughness_scale``
    and ``is_metal = suggested_metalness > analysis.metal_threshold``.
    """
    config = config or PipelineConfig()
    strength = config.normal.strength if normal_strength is None else normal_strength
    return DerivationParams(
        normal_strength=float(strength),
        roughness_multiplier=float(
            hints.suggested_roughness * config.analysis.roughness_scale
        ),
        is_metal=bool(hints.suggested_metalness > config.analysis.metal_threshold),
    )
