"""
Exception types for the capture pipeline.

Enhancement errors never leave the enhancer: they are raised by the decode,
surface and encode steps and converted into a pass-through result.
Session errors signal misuse of the capture session and are raised to the caller.
"""


class EnhancementError(Exception):
    """Base class for failures inside the enhancement pipeline."""


class DecodeFailure(EnhancementError):
    """Source bytes could not be rasterized."""


class SurfaceUnavailable(EnhancementError):
    """A pixel buffer could not be acquired for processing."""


class EncodeFailure(EnhancementError):
    """The processed buffer could not be serialized back to bytes."""


class SessionStateError(RuntimeError):
    """Operation is not valid in the current capture session state."""
