"""Exception hierarchy for map derivation."""


class DerivationError(RuntimeError):
    """Base class for every failure raised by the derivation pipeline."""


class DecodeError(DerivationError):
    """Raised when input image data is malformed or in an unsupported format."""


class DimensionMismatch(DerivationError):
    """Raised when buffers that must share one size are combined."""


class RenderContextError(DerivationError):
    """Raised when an output pixel buffer cannot be allocated."""


class MapGenerationError(DerivationError):
    """Raised when a single map generator fails.

    ``kind`` identifies the map that failed; the original exception is
    available as ``__cause__``.
    """

    def __init__(self, kind, message: str):
        self.kind = kind
        label = getattr(kind, "value", kind)
        super().__init__(f"{label} map generation failed: {message}")
