"""
Utility modules for the document capture pipeline.
"""

from .errors import (
    EnhancementError, DecodeFailure, SurfaceUnavailable, EncodeFailure, SessionStateError,
)
from .io import EncodedArtifact, RasterImage, load_capture, load_captures_from_folder, save_artifacts
from .images import (
    enhance_document_image, enhance_raster, to_grayscale, auto_adjust, sharpen, luminance,
    EnhancementResult,
)
from .classifier import is_likely_document, edge_ratio
from .previews import PreviewRegistry, PreviewReference
from .session import CaptureSessionController, CapturedPage, FinalizedCapture, SessionState

__all__ = [
    # Errors
    "EnhancementError", "DecodeFailure", "SurfaceUnavailable", "EncodeFailure", "SessionStateError",
    # IO
    "EncodedArtifact", "RasterImage", "load_capture", "load_captures_from_folder", "save_artifacts",
    # Images
    "enhance_document_image", "enhance_raster", "to_grayscale", "auto_adjust", "sharpen", "luminance",
    "EnhancementResult",
    # Classifier
    "is_likely_document", "edge_ratio",
    # Session
    "PreviewRegistry", "PreviewReference",
    "CaptureSessionController", "CapturedPage", "FinalizedCapture", "SessionState",
]
