"""
Document likelihood heuristic.

Printed text produces dense local contrast transitions, photographs are
mostly smooth. The image is rendered into a small square sample and the
fraction of pixels whose luminance jumps sharply towards the right or bottom
neighbour is compared against a fixed ratio.

This predicate is independent of the enhancement pipeline and is not called
by the capture session.
"""

import logging

import numpy as np

from ..config import (
    CLASSIFIER_SAMPLE_SIZE,
    CLASSIFIER_EDGE_THRESHOLD,
    CLASSIFIER_EDGE_RATIO,
)
from .errors import EnhancementError
from .io import EncodedArtifact, RasterImage, decode_artifact
from .images import luminance

logger = logging.getLogger(__name__)


def render_sample(raster: RasterImage, size: int = CLASSIFIER_SAMPLE_SIZE) -> RasterImage:
    """Resize a raster to a ``size`` x ``size`` RGB sample (alpha dropped)."""
    import cv2

    pixels = raster.pixels
    if raster.channels >= 3:
        pixels = pixels[:, :, :3]
    else:
        pixels = np.repeat(pixels[:, :, :1], 3, axis=2)

    if (raster.width, raster.height) == (size, size):
        sample = np.array(pixels, copy=True)
    else:
        # Area averaging when shrinking, bilinear when enlarging
        shrinking = raster.width >= size and raster.height >= size
        interpolation = cv2.INTER_AREA if shrinking else cv2.INTER_LINEAR
        sample = cv2.resize(pixels.copy(), (size, size), interpolation=interpolation)

    return RasterImage.from_array(sample)


def edge_ratio(
    raster: RasterImage,
    size: int = CLASSIFIER_SAMPLE_SIZE,
    threshold: float = CLASSIFIER_EDGE_THRESHOLD
) -> float:
    """
    Fraction of sampled pixels that sit on a luminance edge.

    Interior pixels of the sample are compared with their right and bottom
    neighbours; the count is divided by the full sample area.
    """
    sample = render_sample(raster, size)
    lum = luminance(sample)

    center = lum[1:-1, 1:-1]
    right = lum[1:-1, 2:]
    bottom = lum[2:, 1:-1]

    edges = (np.abs(center - right) > threshold) | (np.abs(center - bottom) > threshold)
    return float(np.count_nonzero(edges)) / float(size * size)


def is_likely_document(artifact: EncodedArtifact) -> bool:
    """
    Estimate whether an encoded image looks like a scanned document.

    Returns:
        True if more than 15% of the sampled pixels are edges; False
        otherwise, including when the image cannot be decoded
    """
    try:
        raster = decode_artifact(artifact)
    except EnhancementError as e:
        logger.debug(f"Document check failed for {artifact.filename}: {e}")
        return False

    ratio = edge_ratio(raster)
    logger.debug(f"Edge ratio for {artifact.filename}: {ratio:.3f}")
    return ratio > CLASSIFIER_EDGE_RATIO
