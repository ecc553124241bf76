"""Command-line interface for the map pipeline."""

import argparse
import logging
import math
import os
import sys

from .config import PipelineConfig
from .core import setup_logging

logger = logging.getLogger("map_pipeline")


def _finite_float(text: str) -> float:
    try:
        value = float(text)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"not a number: {text!r}") from exc
    if not math.isfinite(value):
        raise argparse.ArgumentTypeError(f"must be finite: {text!r}")
    return value


def build_parser() -> argparse.ArgumentParser:
    """Return the argument parser for the `MapBrew` command."""
    parser = argparse.ArgumentParser(
        description="Derive PBR material maps from albedo textures",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  MapBrew --input brick.png --output ./maps
  MapBrew -i ./albedos -o ./maps --config config.yaml
  MapBrew -i brick.png --hints brick_analysis.json
  MapBrew -i steel.png --metal --roughness-multiplier 0.4
  MapBrew --generate-config
        """
    )
    parser.add_argument("--input", "-i", help="Albedo image or directory of images")
    parser.add_argument("--output", "-o", help="Output directory")
    parser.add_argument("--config", "-c", help="Path to config YAML")
    parser.add_argument("--normal-strength", type=_finite_float,
                        help="Normal gradient strength (default from config: 2.5)")
    parser.add_argument("--roughness-multiplier", type=_finite_float,
                        help="Roughness multiplier; overrides analysis hints")
    metal = parser.add_mutually_exclusive_group()
    metal.add_argument("--metal", dest="is_metal", action="store_true", default=None,
                       help="Treat the texture as metal")
    metal.add_argument("--no-metal", dest="is_metal", action="store_false",
                       help="Treat the texture as non-metal")
    parser.add_argument("--hints",
                        help="JSON file with suggestedRoughness/suggestedMetalness")
    parser.add_argument("--workers", type=int, help="Max parallel generator threads")
    parser.add_argument("--partial", action="store_true",
                        help="Write the maps that succeeded even if one generator fails")
    parser.add_argument("--generate-config", action="store_true",
                        help="Generate default config.yaml")
    parser.add_argument("--log-level",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    return parser


def _fail(message: str):
    logger.error(message)
    print(f"Error: {message}")
    sys.exit(1)


def _load_config(path) -> PipelineConfig:
    if not path:
        return PipelineConfig()
    if not os.path.exists(path):
        _fail(f"Config file not found: {path}")
    try:
        return PipelineConfig.from_yaml(path)
    except ValueError as e:
        _fail(f"Invalid config: {e}")


def _apply_overrides(config: PipelineConfig, args) -> dict:
    """Copy CLI flags onto ``config``; return per-run parameter overrides."""
    if args.output:
        config.output_dir = args.output
    if args.workers is not None:
        config.max_workers = args.workers
    if args.partial:
        config.fail_fast = False
    if args.log_level:
        config.log_level = args.log_level
    if args.normal_strength is not None:
        config.normal.strength = args.normal_strength

    overrides = {}
    if args.roughness_multiplier is not None:
        overrides["roughness_multiplier"] = args.roughness_multiplier
    if args.is_metal is not None:
        overrides["is_metal"] = args.is_metal
    return overrides


def main(argv=None):
    """Parse CLI arguments and run the pipeline."""
    args = build_parser().parse_args(argv)

    if args.generate_config:
        dest = args.config or args.output or "config.yaml"
        if os.path.isdir(dest):
            dest = os.path.join(dest, "config.yaml")
        PipelineConfig().to_yaml(dest)
        logger.info("Generated default %s", dest)
        print(f"Generated default {dest}")
        return

    # Surface config warnings on stderr until file logging is up.
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s: %(message)s")

    config = _load_config(args.config)
    overrides = _apply_overrides(config, args)

    if not args.input or not os.path.exists(args.input):
        _fail(f"Input not found: {args.input}")

    os.makedirs(config.output_dir, exist_ok=True)
    setup_logging(config.log_level, os.path.join(config.output_dir, "pipeline.log"))

    try:
        config.validate()
    except ValueError as e:
        _fail(str(e))

    from .phases.analysis import load_hints
    from .pipeline import MapPipeline

    hints = None
    if args.hints:
        try:
            hints = load_hints(args.hints, config)
        except OSError as e:
            _fail(f"Cannot read hints file '{args.hints}': {e}")

    pipeline = MapPipeline(config, hints=hints, overrides=overrides)
    try:
        results = pipeline.run(args.input)
    except KeyboardInterrupt:
        logger.warning("Interrupted by user.")
        sys.exit(130)

    if not results:
        logger.warning("No albedo inputs found in %s", args.input)
    if pipeline.failed_inputs:
        _fail(f"{pipeline.failed_inputs} input(s) failed; see pipeline.log")


if __name__ == "__main__":
    main()
