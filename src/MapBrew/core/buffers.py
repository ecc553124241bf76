"""Pixel buffer and material map containers."""

import math
from dataclasses import dataclass, field
from typing import Dict, Iterator, Optional, Tuple

import numpy as np

from ..config import MAP_ORDER, MapKind
from .errors import DimensionMismatch, RenderContextError


class PixelBuffer:
    """Read-only 8-bit RGB or RGBA image of shape (height, width, channels).

    The wrapped array is never writeable. Pass ``copy=False`` only for an
    array nothing else holds a reference to (freshly allocated output).
    """

    __slots__ = ("_pixels",)

    def __init__(self, pixels: np.ndarray, copy: bool = True):
        arr = np.asarray(pixels)
        if arr.dtype != np.uint8:
            raise ValueError(f"PixelBuffer requires uint8 data, got {arr.dtype}")
        if arr.ndim != 3 or arr.shape[-1] not in (3, 4):
            raise ValueError(
                f"PixelBuffer must be HxWx3 or HxWx4, got shape {arr.shape}"
            )
        if arr.shape[0] < 1 or arr.shape[1] < 1:
            raise ValueError(f"PixelBuffer must not be empty, got shape {arr.shape}")
        if copy:
            arr = arr.copy()
        arr.flags.writeable = False
        self._pixels = arr

    @property
    def pixels(self) -> np.ndarray:
        return self._pixels

    @property
    def shape(self) -> Tuple[int, int, int]:
        return tuple(self._pixels.shape)

    @property
    def width(self) -> int:
        return int(self._pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self._pixels.shape[0])

    @property
    def channels(self) -> int:
        return int(self._pixels.shape[2])

    @property
    def has_alpha(self) -> bool:
        return self.channels == 4

    @property
    def size(self) -> Tuple[int, int]:
        """Return ``(width, height)``."""
        return self.width, self.height

    @property
    def rgb(self) -> np.ndarray:
        return self._pixels[:, :, :3]

    @property
    def alpha(self) -> Optional[np.ndarray]:
        if self.has_alpha:
            return self._pixels[:, :, 3]
        return None

    def __eq__(self, other) -> bool:
        if not isinstance(other, PixelBuffer):
            return NotImplemented
        return (
            self._pixels.shape == other._pixels.shape
            and bool(np.array_equal(self._pixels, other._pixels))
        )

    __hash__ = None

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(width={self.width}, height={self.height}, "
            f"channels={self.channels})"
        )


class MaterialMap(PixelBuffer):
    """A derived map: pixel data tagged with its semantic kind."""

    __slots__ = ("_kind",)

    def __init__(self, kind: MapKind, pixels: np.ndarray, copy: bool = True):
        super().__init__(pixels, copy=copy)
        self._kind = MapKind(kind)

    @property
    def kind(self) -> MapKind:
        return self._kind

    def __eq__(self, other) -> bool:
        if isinstance(other, MaterialMap) and other.kind is not self.kind:
            return False
        return super().__eq__(other)

    __hash__ = None

    def __repr__(self) -> str:
        return (
            f"MaterialMap(kind={self.kind.value}, width={self.width}, "
            f"height={self.height}, channels={self.channels})"
        )


def allocate_pixels(height: int, width: int, channels: int, fill: int = 0) -> np.ndarray:
    """Allocate a uint8 output array, raising `RenderContextError` on failure."""
    try:
        return np.full((height, width, channels), fill, dtype=np.uint8)
    except (MemoryError, ValueError) as exc:
        raise RenderContextError(
            f"Cannot allocate {width}x{height}x{channels} pixel buffer: {exc}"
        ) from exc


def quantize(values: np.ndarray) -> np.ndarray:
    """Round half-to-even and clamp float channel values into uint8."""
    return np.clip(np.rint(values), 0, 255).astype(np.uint8)


def grayscale_map(kind: MapKind, source: PixelBuffer, values: np.ndarray) -> "MaterialMap":
    """Build a map with ``values`` in R, G and B and ``source``'s layout.

    An RGBA source keeps its alpha channel unchanged in the output.
    """
    out = allocate_pixels(source.height, source.width, source.channels)
    out[:, :, :3] = quantize(values)[:, :, None]
    if source.has_alpha:
        out[:, :, 3] = source.alpha
    return MaterialMap(kind, out, copy=False)


def check_same_size(*buffers: PixelBuffer) -> Tuple[int, int]:
    """Return the shared ``(width, height)`` or raise `DimensionMismatch`."""
    if not buffers:
        raise ValueError("check_same_size() needs at least one buffer")
    expected = buffers[0].size
    for buf in buffers[1:]:
        if buf.size != expected:
            raise DimensionMismatch(
                f"{buf!r} is {buf.width}x{buf.height}, expected "
                f"{expected[0]}x{expected[1]}"
            )
    return expected


@dataclass(frozen=True)
class DerivationParams:
    """Per-invocation generator parameters. Every field is required."""

    normal_strength: float
    roughness_multiplier: float
    is_metal: bool

    def __post_init__(self) -> None:
        for name in ("normal_strength", "roughness_multiplier"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise TypeError(f"{name} must be a number, got {type(value).__name__}")
            if not math.isfinite(value):
                raise ValueError(f"{name} must be finite, got {value!r}")
        if not isinstance(self.is_metal, (bool, np.bool_)):
            raise TypeError(f"is_metal must be a bool, got {type(self.is_metal).__name__}")


@dataclass(frozen=True)
class MaterialMapSet:
    """The five derived maps of one albedo, all of one size."""

    normal: MaterialMap
    roughness: MaterialMap
    ao: MaterialMap
    metalness: MaterialMap
    height: MaterialMap

    def __post_init__(self) -> None:
        for kind in MAP_ORDER:
            m = getattr(self, kind.value)
            if not isinstance(m, MaterialMap) or m.kind is not kind:
                raise ValueError(f"MaterialMapSet.{kind.value} must be a {kind.value} MaterialMap")
        check_same_size(*self)

    def __iter__(self) -> Iterator[MaterialMap]:
        return (getattr(self, kind.value) for kind in MAP_ORDER)

    def __getitem__(self, kind) -> MaterialMap:
        return getattr(self, MapKind(kind).value)

    @property
    def size(self) -> Tuple[int, int]:
        return self.normal.size

    def as_dict(self) -> Dict[str, MaterialMap]:
        """Return maps keyed by kind value, in canonical order."""
        return {m.kind.value: m for m in self}

    def check_matches(self, source: PixelBuffer) -> None:
        """Raise `DimensionMismatch` unless the set matches ``source``'s size."""
        check_same_size(source, *self)


@dataclass
class PartialMaterialMapSet:
    """Outcome of a derivation run that keeps going past generator failures."""

    maps: Dict[MapKind, MaterialMap] = field(default_factory=dict)
    errors: Dict[MapKind, BaseException] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors and len(self.maps) == len(MAP_ORDER)

    @property
    def failed_kinds(self) -> list:
        return [k for k in MAP_ORDER if k in self.errors]

    def require_complete(self) -> MaterialMapSet:
        """Convert to a `MaterialMapSet`, raising the first recorded error."""
        for kind in MAP_ORDER:
            if kind in self.errors:
                raise self.errors[kind]
        missing = [k.value for k in MAP_ORDER if k not in self.maps]
        if missing:
            raise ValueError(f"Map set is missing: {', '.join(missing)}")
        return MaterialMapSet(**{k.value: self.maps[k] for k in MAP_ORDER})
