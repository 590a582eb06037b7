"""
Configuration and constants for the document capture pipeline.

This module provides:
- Global logging setup
- Enhancement options (the only user-facing tuning surface)
- Capture session settings
- Fixed processing constants
"""

import os
from dataclasses import dataclass, field
from typing import Tuple
import logging

# ============================================================================
# Logging Configuration
# ============================================================================

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("doc_capture")


# ============================================================================
# Processing Constants
# ============================================================================

# ITU-R BT.601 luma weights (R, G, B)
LUMA_WEIGHTS: Tuple[float, float, float] = (0.299, 0.587, 0.114)

SHARPEN_KERNEL = (
    (0, -1, 0),
    (-1, 5, -1),
    (0, -1, 0),
)

JPEG_QUALITY = 95
OUTPUT_MEDIA_TYPE = "image/jpeg"

# Document likelihood heuristic
CLASSIFIER_SAMPLE_SIZE = 200
CLASSIFIER_EDGE_THRESHOLD = 30
CLASSIFIER_EDGE_RATIO = 0.15

PREVIEW_MAX_EDGE = 256


# ============================================================================
# Processing Configuration
# ============================================================================

@dataclass
class EnhancementOptions:
    """
    Enhancement stages to apply to a captured photo.

    Stages always run in the order grayscale -> auto_adjust -> sharpen,
    whatever order the flags were given in.
    """
    grayscale: bool = False
    sharpen: bool = True
    auto_adjust: bool = True


@dataclass
class CaptureConfig:
    """Capture session configuration."""
    enhancement: EnhancementOptions = field(default_factory=EnhancementOptions)
    max_workers: int = 2
    debug_mode: bool = False


# ============================================================================
# Default Configuration Instance
# ============================================================================

def _env_flag(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None or value == "":
        return default
    return value.lower() in ("1", "true", "yes", "on")


def get_config() -> CaptureConfig:
    """Get the default capture configuration with environment overrides."""
    config = CaptureConfig()

    options = config.enhancement
    options.grayscale = _env_flag("DOC_CAPTURE_GRAYSCALE", options.grayscale)
    options.sharpen = _env_flag("DOC_CAPTURE_SHARPEN", options.sharpen)
    options.auto_adjust = _env_flag("DOC_CAPTURE_AUTO_ADJUST", options.auto_adjust)

    if os.environ.get("DOC_CAPTURE_DEBUG", "").lower() == "true":
        config.debug_mode = True
        logger.setLevel(logging.DEBUG)

    return config
