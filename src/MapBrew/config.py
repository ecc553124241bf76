"""Define typed configuration models for map derivation.

Use `PipelineConfig` to load, validate, and persist caller-side defaults.
The derivation core itself takes every parameter explicitly; these values
only fill in what a caller (CLI, `MapPipeline`) does not supply.
"""

import dataclasses
import math
import os
import logging
import threading
import yaml
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple
from enum import Enum

logger = logging.getLogger("map_pipeline.config")


class MapKind(Enum):
    """Enumerate the derived material map kinds."""

    NORMAL = "normal"
    ROUGHNESS = "roughness"
    AO = "ao"
    METALNESS = "metalness"
    HEIGHT = "height"


# Canonical output order for map sets and written files.
MAP_ORDER: List[MapKind] = [
    MapKind.NORMAL,
    MapKind.ROUGHNESS,
    MapKind.AO,
    MapKind.METALNESS,
    MapKind.HEIGHT,
]

# Filename suffixes that mark a file as an already-derived map. Inputs
# carrying one of these are skipped when scanning a directory.
MAP_SUFFIX_PATTERNS: Dict[MapKind, List[str]] = {
    MapKind.NORMAL:    ["_normal", "_norm", "_nrm"],
    MapKind.ROUGHNESS: ["_roughness", "_rough"],
    MapKind.AO:        ["_ao", "_occlusion", "_ambientocclusion"],
    MapKind.METALNESS: ["_metalness", "_metallic"],
    MapKind.HEIGHT:    ["_height", "_disp", "_displacement"],
}


@dataclass
class NormalConfig:
    """Store caller defaults for normal map generation."""

    strength: float = 2.5


@dataclass
class AnalysisConfig:
    """Store fallback values and mapping for material-analysis hints."""

    default_roughness: float = 0.6
    default_metalness: float = 0.0
    # Multiplier applied to the suggested roughness before it becomes the
    # roughness generator's multiplier.
    roughness_scale: float = 1.0
    metal_threshold: float = 0.5


@dataclass
class OutputConfig:
    """Store settings for written map files."""

    png_compress_level: int = 6
    overwrite: bool = True


CONFIG_VERSION = 1


@dataclass
class PipelineConfig:
    """Top-level settings for the CLI and `MapPipeline`."""

    config_version: int = CONFIG_VERSION
    output_dir: str = "./maps"
    supported_formats: List[str] = field(default_factory=lambda: [
        ".png", ".jpg", ".jpeg", ".bmp", ".tga", ".tiff", ".tif", ".webp"
    ])
    # One thread per generator by default.
    max_workers: int = 5
    log_level: str = "INFO"
    max_image_pixels: int = 8192 * 8192
    fail_fast: bool = True

    normal: NormalConfig = field(default_factory=NormalConfig)
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)
    output: OutputConfig = field(default_factory=OutputConfig)

    @classmethod
    def from_yaml(cls, path: str) -> "PipelineConfig":
        """Read ``path`` over the defaults and validate the result.

        A missing file yields the defaults. Malformed YAML, a non-mapping
        document or invalid values raise ``ValueError``.
        """
        config = cls()
        if not os.path.exists(path):
            logger.info("No config at '%s'; using defaults.", path)
            config.validate()
            return config

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise ValueError(f"Cannot parse YAML config '{path}': {exc}") from exc
        if data is None:
            data = {}
        elif not isinstance(data, dict):
            raise ValueError(
                f"Config '{path}' must be a YAML mapping, not {type(data).__name__}"
            )

        version = data.get("config_version", CONFIG_VERSION)
        if isinstance(version, int) and version > CONFIG_VERSION:
            logger.warning(
                "Config '%s' declares config_version=%d; this build reads "
                "version %d and may ignore newer settings.",
                path, version, CONFIG_VERSION,
            )

        _merge_dict_to_dataclass(config, data)
        try:
            config.validate()
        except ValueError as exc:
            raise ValueError(f"{path}: {exc}") from exc
        return config

    def to_yaml(self, path: str):
        """Write the configuration to ``path`` atomically."""
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        tmp_path = f"{path}.{os.getpid()}-{threading.get_ident()}.tmp"
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                yaml.safe_dump(
                    dataclasses.asdict(self), f,
                    default_flow_style=False, sort_keys=False,
                )
            os.replace(tmp_path, path)
        finally:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)

    def validate(self):
        """Validate configuration values. Raises ValueError on invalid config."""
        errors = []

        levels = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
        if str(self.log_level).upper() not in levels:
            errors.append(f"log_level must be one of {list(levels)}, got '{self.log_level}'")

        if not 1 <= self.max_workers <= 64:
            errors.append(f"max_workers must be in [1, 64], got {self.max_workers}")
        if self.max_image_pixels < 0:
            errors.append("max_image_pixels must be >= 0 (0 = unlimited)")
        if not self.supported_formats:
            errors.append("supported_formats must not be empty; no files would be processed")
        for ext in self.supported_formats:
            if not isinstance(ext, str) or not ext.startswith("."):
                errors.append(f"supported_formats entries must start with '.', got {ext!r}")

        if not math.isfinite(self.normal.strength):
            errors.append("normal.strength must be a finite number")
        elif self.normal.strength < 0:
            errors.append("normal.strength must be >= 0")

        for name in ("default_roughness", "default_metalness", "metal_threshold"):
            if not 0.0 <= getattr(self.analysis, name) <= 1.0:
                errors.append(f"analysis.{name} must be in [0, 1]")
        scale = self.analysis.roughness_scale
        if not math.isfinite(scale) or scale < 0:
            errors.append("analysis.roughness_scale must be a finite number >= 0")

        if not 0 <= self.output.png_compress_level <= 9:
            errors.append("output.png_compress_level must be in [0, 9]")

        if errors:
            raise ValueError(
                "Configuration validation failed:\n"
                + "\n".join(f"  - {e}" for e in errors)
            )


def _coerce(current: Any, value: Any) -> Tuple[bool, Any]:
    """Return ``(accepted, value)`` for assigning ``value`` over ``current``.

    ints widen to float and integral floats narrow to int. bool never
    crosses into a numeric field or back, since YAML reads ``yes``/``no``
    as booleans.
    """
    if isinstance(value, bool) or isinstance(current, bool):
        return isinstance(value, bool) and isinstance(current, bool), value
    if isinstance(current, float) and isinstance(value, int):
        return True, float(value)
    if isinstance(current, int) and isinstance(value, float):
        return value.is_integer(), int(value) if value.is_integer() else value
    return isinstance(value, type(current)), value


def _merge_dict_to_dataclass(obj, data: dict, _path: str = ""):
    """Overlay ``data`` onto the dataclass ``obj`` in place.

    Unknown keys, nulls and values of the wrong type are logged and
    skipped, leaving the existing value.
    """
    for key, value in data.items():
        name = f"{_path}{key}"
        if not hasattr(obj, key):
            logger.warning("Unknown config key ignored: '%s'", name)
            continue

        current = getattr(obj, key)
        if dataclasses.is_dataclass(current) and isinstance(value, dict):
            _merge_dict_to_dataclass(current, value, f"{name}.")
            continue
        if value is None:
            logger.warning("Config key '%s' is null; keeping %r.", name, current)
            continue

        accepted, coerced = _coerce(current, value)
        if not accepted:
            logger.warning(
                "Config type mismatch for '%s': expected %s, got %s (%r); keeping %r.",
                name, type(current).__name__, type(value).__name__, value, current,
            )
            continue
        setattr(obj, key, coerced)
