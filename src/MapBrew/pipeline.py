"""Orchestrate map derivation end-to-end.

`derive_maps` runs the five generators concurrently on one decoded
albedo. `MapPipeline` wraps decode, material analysis, derivation and
file output for single files and directories.
"""

import dataclasses
import logging
import os
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Dict, Optional, Union

from tqdm import tqdm

from .config import MAP_ORDER, MapKind, PipelineConfig
from .core import (
    DerivationError,
    DerivationParams,
    MapGenerationError,
    MaterialMap,
    MaterialMapSet,
    PartialMaterialMapSet,
    PixelBuffer,
    check_same_size,
    decode_image,
    encode_png,
    get_map_path,
    save_image,
    scan_inputs,
    to_data_uri,
)
from .phases.analysis import (
    Analyzer,
    MaterialHints,
    analyze_with_fallback,
    params_from_hints,
)
from .phases.normal import HeightMapGenerator, NormalMapGenerator
from .phases.pbr import PBRGenerator

logger = logging.getLogger("map_pipeline")


def _build_tasks(params: DerivationParams) -> Dict[MapKind, Callable[[PixelBuffer], MaterialMap]]:
    """Bind each map kind to its generator and parameters."""
    normal = NormalMapGenerator()
    height = HeightMapGenerator()
    pbr = PBRGenerator()
    return {
        MapKind.NORMAL: lambda albedo: normal.generate(albedo, params.normal_strength),
        MapKind.ROUGHNESS: lambda albedo: pbr.generate_roughness(
            albedo, params.roughness_multiplier
        ),
        MapKind.AO: pbr.generate_ao,
        MapKind.METALNESS: lambda albedo: pbr.generate_metalness(albedo, params.is_metal),
        MapKind.HEIGHT: height.generate,
    }


def _run_generator(kind: MapKind, generate, albedo: PixelBuffer) -> MaterialMap:
    """Run one generator and check its output against the source."""
    start = time.monotonic()
    result = generate(albedo)
    if not isinstance(result, MaterialMap) or result.kind is not kind:
        raise TypeError(f"{kind.value} generator returned {result!r}")
    check_same_size(albedo, result)
    logger.debug("[%s] done in %.1f ms", kind.value, (time.monotonic() - start) * 1000.0)
    return result


def derive_maps(
    albedo: PixelBuffer,
    params: DerivationParams,
    *,
    max_workers: Optional[int] = None,
    fail_fast: bool = True,
) -> Union[MaterialMapSet, PartialMaterialMapSet]:
    """Derive normal, roughness, AO, metalness and height maps from ``albedo``.

    The generators run as independent thread-pool tasks over the same
    read-only buffer and are joined at the end. With ``fail_fast`` (the
    default) the first generator error cancels tasks that have not
    started and is raised as `MapGenerationError`; otherwise every
    outcome is collected in a `PartialMaterialMapSet`.
    """
    if not isinstance(albedo, PixelBuffer):
        raise TypeError(f"albedo must be a PixelBuffer, got {type(albedo).__name__}")
    if not isinstance(params, DerivationParams):
        raise TypeError(f"params must be DerivationParams, got {type(params).__name__}")

    tasks = _build_tasks(params)
    workers = max(int(max_workers or len(tasks)), 1)
    outcome = PartialMaterialMapSet()
    start = time.monotonic()

    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="derive") as executor:
        futures = {
            executor.submit(_run_generator, kind, tasks[kind], albedo): kind
            for kind in MAP_ORDER
        }
        for future in as_completed(futures):
            kind = futures[future]
            try:
                outcome.maps[kind] = future.result()
            except Exception as exc:
                error = MapGenerationError(kind, f"{exc.__class__.__name__}: {exc}")
                logger.error("[%s] generator failed: %s", kind.value, exc, exc_info=True)
                if fail_fast:
                    for pending in futures:
                        pending.cancel()
                    raise error from exc
                error.__cause__ = exc
                outcome.errors[kind] = error

    logger.info(
        "Derived %d/%d maps for %dx%d albedo in %.1f ms",
        len(outcome.maps), len(MAP_ORDER), albedo.width, albedo.height,
        (time.monotonic() - start) * 1000.0,
    )
    if fail_fast:
        return outcome.require_complete()
    return outcome


def derive_maps_from_bytes(
    data,
    params: DerivationParams,
    *,
    max_pixels: int = 0,
    max_workers: Optional[int] = None,
    compress_level: int = 6,
    as_data_uri: bool = False,
) -> Dict[str, Union[bytes, str]]:
    """Decode ``data``, derive all maps and return them PNG-encoded.

    ``data`` is raw image bytes or a base64 ``data:`` URI. Decode errors
    are raised before any generator runs. Keys are map kind values;
    values are PNG bytes, or data URIs when ``as_data_uri`` is set.
    """
    albedo = decode_image(data, max_pixels=max_pixels)
    maps = derive_maps(albedo, params, max_workers=max_workers, fail_fast=True)
    encode = to_data_uri if as_data_uri else encode_png
    return {m.kind.value: encode(m, compress_level) for m in maps}


class MapPipeline:
    """Derive and write map sets for albedo files or directories.

    Parameters come from, in increasing priority: the material analyzer
    (or its defaults), explicit ``hints``, then ``overrides`` (a mapping
    of `DerivationParams` field names to values).
    """

    def __init__(
        self,
        config: PipelineConfig,
        analyzer: Optional[Analyzer] = None,
        hints: Optional[MaterialHints] = None,
        overrides: Optional[dict] = None,
        progress_callback: Optional[Callable[[int, int], None]] = None,
    ):
        """Initialize pipeline state."""
        self.config = config
        self.analyzer = analyzer
        self.hints = hints
        self.overrides = dict(overrides or {})
        unknown = set(self.overrides) - {f.name for f in dataclasses.fields(DerivationParams)}
        if unknown:
            raise ValueError(f"Unknown parameter overrides: {sorted(unknown)}")
        self.progress_callback = progress_callback
        self.results: Dict[str, dict] = {}
        self.failed_inputs = 0

    def resolve_params(self, image) -> DerivationParams:
        """Work out generator parameters for one encoded albedo."""
        hints = self.hints
        if hints is None:
            hints = analyze_with_fallback(self.analyzer, image, self.config)
        params = params_from_hints(hints, self.config)
        if self.overrides:
            params = dataclasses.replace(params, **self.overrides)
        logger.debug("Resolved parameters: %s (fallback hints=%s)", params, hints.is_fallback)
        return params

    def process_file(self, path: str, rel_path: Optional[str] = None,
                     output_dir: Optional[str] = None) -> dict:
        """Derive and write all maps for one albedo file.

        Returns a result dict with ``maps`` (kind -> written path),
        ``skipped`` (kinds left untouched because the file existed and
        overwriting is off), ``errors`` (kind -> message, partial mode
        only) and ``params``.
        """
        rel_path = rel_path or os.path.basename(path)
        output_dir = output_dir or self.config.output_dir
        with open(path, "rb") as f:
            raw = f.read()

        albedo = decode_image(raw, max_pixels=self.config.max_image_pixels)
        params = self.resolve_params(raw)
        derived = derive_maps(
            albedo, params,
            max_workers=self.config.max_workers,
            fail_fast=self.config.fail_fast,
        )

        result = {
            "maps": {}, "skipped": [], "errors": {},
            "params": dataclasses.asdict(params),
        }
        if isinstance(derived, PartialMaterialMapSet):
            maps = [derived.maps[k] for k in MAP_ORDER if k in derived.maps]
            result["errors"] = {k.value: str(e) for k, e in derived.errors.items()}
        else:
            maps = list(derived)

        for material_map in maps:
            out = get_map_path(rel_path, output_dir, material_map.kind)
            if os.path.exists(out) and not self.config.output.overwrite:
                logger.info("Keeping existing %s (overwrite disabled)", out)
                result["skipped"].append(material_map.kind.value)
                continue
            save_image(material_map, out, compress_level=self.config.output.png_compress_level)
            result["maps"][material_map.kind.value] = out

        logger.info(f"Maps generated for {rel_path}: {len(result['maps'])} written")
        return result

    def _report_progress(self, done: int, total: int) -> None:
        if self.progress_callback is None:
            return
        try:
            self.progress_callback(done, total)
        except Exception as exc:
            logger.debug("Progress callback failed: %s", exc)

    def run(self, input_path: str, output_dir: Optional[str] = None) -> Dict[str, dict]:
        """Process one albedo file, or every albedo under a directory.

        A failing input is logged and recorded as ``{"error": message}``;
        the remaining inputs still run.
        """
        if os.path.isdir(input_path):
            rel_paths = scan_inputs(input_path, self.config)
            inputs = [(os.path.join(input_path, rel), rel) for rel in rel_paths]
        elif os.path.isfile(input_path):
            inputs = [(input_path, os.path.basename(input_path))]
        else:
            raise FileNotFoundError(f"Input not found: {input_path}")

        total = len(inputs)
        for done, (path, rel) in enumerate(tqdm(inputs, desc="Deriving maps"), start=1):
            try:
                self.results[rel] = self.process_file(path, rel, output_dir)
                if self.results[rel]["errors"]:
                    self.failed_inputs += 1
            except (DerivationError, OSError, ValueError) as e:
                self.failed_inputs += 1
                logger.error("Failed %s: %s", rel, e, exc_info=True)
                self.results[rel] = {"error": str(e)}
            finally:
                self._report_progress(done, total)

        logger.info(
            "Processed %d input(s), %d failed", total, self.failed_inputs,
        )
        return self.results
