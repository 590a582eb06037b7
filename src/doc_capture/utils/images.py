"""
Image enhancement utilities for the document capture pipeline.

Provides:
- Grayscale conversion (BT.601 luminance)
- Auto-adjust (histogram stretching on luminance range)
- Sharpening (3x3 kernel, unsharpened 1-pixel frame)
- Full enhancement pipeline over an encoded capture, failing soft
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np

from ..config import EnhancementOptions, LUMA_WEIGHTS, SHARPEN_KERNEL
from .errors import EnhancementError, SurfaceUnavailable
from .io import EncodedArtifact, RasterImage, decode_artifact, encode_artifact

logger = logging.getLogger(__name__)


# ============================================================================
# Data Classes
# ============================================================================

@dataclass
class EnhancementResult:
    """Result of enhancing one captured image."""
    artifact: EncodedArtifact
    was_processed: bool = False
    transformations: List[str] = field(default_factory=list)


@dataclass
class RasterStats:
    """Statistics about a raster."""
    width: int
    height: int
    channels: int
    min_luminance: float
    max_luminance: float
    mean_luminance: float

    @property
    def is_flat(self) -> bool:
        return self.max_luminance <= self.min_luminance


# ============================================================================
# Helpers
# ============================================================================

def _color_channels(raster: RasterImage) -> int:
    return 3 if raster.channels >= 3 else 1


def _alpha_index(raster: RasterImage) -> Optional[int]:
    if raster.channels in (2, 4):
        return raster.channels - 1
    return None


def _to_uint8(values: np.ndarray) -> np.ndarray:
    return np.clip(np.rint(values), 0, 255).astype(np.uint8)


def luminance(raster: RasterImage) -> np.ndarray:
    """
    Per-pixel luminance as a float plane of shape (height, width).

    Single-channel rasters are their own luminance.
    """
    pixels = raster.pixels
    if _color_channels(raster) == 1:
        return pixels[:, :, 0].astype(np.float64)

    r, g, b = LUMA_WEIGHTS
    rgb = pixels[:, :, :3].astype(np.float64)
    return rgb[:, :, 0] * r + rgb[:, :, 1] * g + rgb[:, :, 2] * b


# ============================================================================
# Enhancement Stages
# ============================================================================

def to_grayscale(raster: RasterImage) -> RasterImage:
    """
    Set R, G and B of every pixel to its luminance. Alpha is left untouched.

    Applying it twice gives the same buffer as applying it once.
    """
    pixels = raster.pixels.copy()
    if _color_channels(raster) == 3:
        pixels[:, :, :3] = _to_uint8(luminance(raster))[:, :, np.newaxis]

    logger.debug("Applied grayscale")
    return RasterImage(width=raster.width, height=raster.height, pixels=pixels)


def auto_adjust(raster: RasterImage) -> RasterImage:
    """
    Stretch the luminance range of the image onto the full 0..255 range.

    Each colour channel is remapped with ``(v - min) * 255 / (max - min)``
    where min and max are the extreme luminances, then clamped to 0..255.
    A flat image (max == min) is returned unchanged.

    Args:
        raster: Input raster

    Returns:
        Contrast-stretched raster
    """
    lum = luminance(raster)
    low = float(lum.min()) if lum.size else 0.0
    high = float(lum.max()) if lum.size else 0.0

    pixels = raster.pixels.copy()
    if high <= low:
        logger.debug("Auto-adjust skipped: flat image")
        return RasterImage(width=raster.width, height=raster.height, pixels=pixels)

    n = _color_channels(raster)
    color = raster.pixels[:, :, :n].astype(np.float64)
    pixels[:, :, :n] = _to_uint8((color - low) * 255.0 / (high - low))

    logger.debug(f"Applied auto-adjust (luminance range {low:.1f}..{high:.1f})")
    return RasterImage(width=raster.width, height=raster.height, pixels=pixels)


def sharpen(raster: RasterImage) -> RasterImage:
    """
    Sharpen colour channels with the kernel [[0,-1,0],[-1,5,-1],[0,-1,0]].

    Only interior pixels are convolved; the outermost row and column on each
    edge are copied unchanged from the input. Convolved pixels get a fully
    opaque alpha.
    """
    import cv2

    if raster.width < 3 or raster.height < 3:
        logger.debug("Sharpen skipped: no interior pixels")
        return RasterImage(width=raster.width, height=raster.height, pixels=raster.pixels.copy())

    n = _color_channels(raster)
    kernel = np.array(SHARPEN_KERNEL, dtype=np.float32)
    color = raster.pixels[:, :, :n].copy()
    if n == 1:
        color = np.ascontiguousarray(color[:, :, 0])

    try:
        # uint8 in, uint8 out: OpenCV saturates to 0..255
        filtered = cv2.filter2D(color, -1, kernel, borderType=cv2.BORDER_REPLICATE)
    except cv2.error as e:
        raise SurfaceUnavailable(f"Convolution failed: {e}") from e

    if n == 1:
        filtered = filtered[:, :, np.newaxis]

    pixels = raster.pixels.copy()
    pixels[1:-1, 1:-1, :n] = filtered[1:-1, 1:-1]
    alpha = _alpha_index(raster)
    if alpha is not None:
        pixels[1:-1, 1:-1, alpha] = 255

    logger.debug("Applied sharpen")
    return RasterImage(width=raster.width, height=raster.height, pixels=pixels)


# ============================================================================
# Main Enhancement Pipeline
# ============================================================================

def enhance_raster(
    raster: RasterImage,
    options: Optional[EnhancementOptions] = None
) -> Tuple[RasterImage, List[str]]:
    """
    Apply the requested stages in fixed order: grayscale, auto-adjust, sharpen.

    Returns:
        Tuple of (processed raster, names of the applied stages)
    """
    options = options or EnhancementOptions()
    processed = raster
    transformations = []

    # 1. Grayscale
    if options.grayscale:
        processed = to_grayscale(processed)
        transformations.append("grayscale")

    # 2. Auto-adjust (measures the grayscale result when both are on)
    if options.auto_adjust:
        processed = auto_adjust(processed)
        transformations.append("auto_adjust")

    # 3. Sharpen the contrast-stretched buffer
    if options.sharpen:
        processed = sharpen(processed)
        transformations.append("sharpen")

    return processed, transformations


def enhance_document_image(
    artifact: EncodedArtifact,
    options: Optional[EnhancementOptions] = None
) -> EnhancementResult:
    """
    Decode, enhance and re-encode a captured photo.

    Never raises: any decode, processing or encode failure returns the
    original artifact untouched with ``was_processed=False``.

    Args:
        artifact: The raw captured image
        options: Stages to apply (defaults: auto-adjust and sharpen)

    Returns:
        EnhancementResult with the JPEG artifact and whether stages were applied
    """
    options = options or EnhancementOptions()

    try:
        raster = decode_artifact(artifact)
        processed, transformations = enhance_raster(raster, options)
        encoded = encode_artifact(processed, artifact)
    except EnhancementError as e:
        logger.warning(f"Enhancement failed for {artifact.filename}, keeping original: {e}")
        return EnhancementResult(artifact=artifact, was_processed=False)
    except Exception as e:
        logger.exception(f"Unexpected enhancement error for {artifact.filename}, keeping original: {e}")
        return EnhancementResult(artifact=artifact, was_processed=False)

    logger.info(
        f"Enhanced {artifact.filename} ({raster.width}x{raster.height}): "
        f"{' -> '.join(transformations) or 'no changes'}"
    )
    return EnhancementResult(
        artifact=encoded,
        was_processed=bool(transformations),
        transformations=transformations,
    )


def get_raster_stats(raster: RasterImage) -> RasterStats:
    """
    Calculate luminance statistics about a raster.
    """
    lum = luminance(raster)
    return RasterStats(
        width=raster.width,
        height=raster.height,
        channels=raster.channels,
        min_luminance=float(lum.min()) if lum.size else 0.0,
        max_luminance=float(lum.max()) if lum.size else 0.0,
        mean_luminance=float(lum.mean()) if lum.size else 0.0,
    )
