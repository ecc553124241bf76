"""Albedo input discovery."""

import logging
import os
from pathlib import Path
from typing import List

from ..config import MAP_SUFFIX_PATTERNS, PipelineConfig

logger = logging.getLogger("map_pipeline")


def is_derived_map_name(filename: str) -> bool:
    """Return True when a filename's stem ends with a derived-map suffix."""
    stem = Path(filename).stem.lower()
    return any(
        stem.endswith(suffix)
        for suffixes in MAP_SUFFIX_PATTERNS.values()
        for suffix in suffixes
    )


def scan_inputs(input_dir: str, config: PipelineConfig) -> List[str]:
    """Return sorted relative paths of albedo images under ``input_dir``.

    Files with unsupported extensions, files that look like derived maps
    (``brick_normal.png``), and symlinks escaping the root are skipped.
    """
    found = []
    supported = {ext.lower() for ext in config.supported_formats}
    input_root_real = os.path.realpath(input_dir)

    for root, dirs, files in os.walk(input_dir):
        dirs.sort()
        for fname in sorted(files):
            ext = Path(fname).suffix.lower()
            if ext not in supported:
                continue

            fpath = os.path.join(root, fname)
            real_fpath = os.path.realpath(fpath)
            # Guard against symlink/path escapes outside input_dir.
            try:
                if os.path.commonpath([input_root_real, real_fpath]) != input_root_real:
                    logger.warning(
                        "Skipping file outside input root via symlink/path traversal: "
                        f"{fpath}"
                    )
                    continue
            except ValueError:
                logger.warning(f"Skipping file with incompatible path root: {fpath}")
                continue

            if is_derived_map_name(fname):
                logger.debug("Skipping derived map file: %s", fpath)
                continue

            found.append(Path(os.path.relpath(fpath, input_dir)).as_posix())

    logger.info("Found %d albedo input(s) in %s", len(found), input_dir)
    return found
