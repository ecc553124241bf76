"""Output path helpers for derived map files."""

import os
from pathlib import Path, PurePosixPath

from ..config import MapKind


def _normalize_rel_path(input_rel_path: str) -> Path:
    """Normalize a relative input path to a canonical, traversal-free form."""
    raw = str(input_rel_path).replace("\\", "/")
    p = PurePosixPath(raw)
    if p.is_absolute():
        raise ValueError(f"Input path must be relative, got absolute path: {input_rel_path}")

    parts = []
    for part in p.parts:
        if part in ("", "."):
            continue
        if part == "..":
            if parts:
                parts.pop()
            else:
                raise ValueError(
                    f"Input path escapes root via '..': {input_rel_path}"
                )
            continue
        parts.append(part)

    if not parts:
        raise ValueError(f"Input path is empty after normalization: {input_rel_path}")
    return Path(*parts)


def get_map_path(input_rel_path: str, output_dir: str, kind: MapKind,
                 ext: str = ".png") -> str:
    """Return ``<output_dir>/<subdirs>/<stem>_<kind><ext>`` for an input.

    Subdirectories of the relative input path are mirrored under
    ``output_dir``.
    """
    p = _normalize_rel_path(input_rel_path)
    stem = f"{p.stem}_{MapKind(kind).value}"
    parent = "" if str(p.parent) == "." else str(p.parent)
    return os.path.join(output_dir, parent, stem + ext)
