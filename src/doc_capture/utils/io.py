"""
I/O utilities for the document capture pipeline.

Handles:
- Encoded artifacts (bytes + file name + media type)
- Decoding artifacts into raster buffers
- Encoding raster buffers back to JPEG
- Loading captures from disk and writing finalized pages
"""

import io
import logging
import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import List, Union, Optional, Sequence

import numpy as np

from ..config import JPEG_QUALITY, OUTPUT_MEDIA_TYPE
from .errors import DecodeFailure, SurfaceUnavailable, EncodeFailure

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = ('.png', '.jpg', '.jpeg', '.tiff', '.tif', '.bmp', '.webp', '.gif')
PDF_MEDIA_TYPE = "application/pdf"


# ============================================================================
# Data Classes
# ============================================================================

@dataclass(frozen=True)
class EncodedArtifact:
    """An encoded file as produced by a capture control or handed to upload."""
    data: bytes
    filename: str
    media_type: str = "application/octet-stream"

    @property
    def is_image(self) -> bool:
        return self.media_type.startswith("image/")

    @property
    def is_pdf(self) -> bool:
        return self.media_type == PDF_MEDIA_TYPE


@dataclass(frozen=True, eq=False)
class RasterImage:
    """
    Decoded pixel buffer with interleaved channels.

    ``pixels`` has shape (height, width, channels) and dtype uint8. The buffer
    is made read-only on construction; stages must produce new arrays.

    Constructing a RasterImage directly takes ownership of the array passed
    in: that array is frozen in place and writing to it afterwards raises.
    Use ``from_array`` to wrap a buffer you still want to modify.
    """
    width: int
    height: int
    pixels: np.ndarray

    def __post_init__(self):
        if self.pixels.ndim != 3:
            raise ValueError(f"Expected (height, width, channels) buffer, got shape {self.pixels.shape}")
        if self.pixels.dtype != np.uint8:
            raise ValueError(f"Expected uint8 buffer, got {self.pixels.dtype}")
        if self.pixels.size != self.width * self.height * self.channels:
            raise ValueError(
                f"Buffer length {self.pixels.size} does not match "
                f"{self.width}x{self.height}x{self.channels}"
            )
        if self.pixels.shape[:2] != (self.height, self.width):
            raise ValueError(f"Buffer shape {self.pixels.shape} does not match {self.width}x{self.height}")
        self.pixels.setflags(write=False)

    @property
    def channels(self) -> int:
        return int(self.pixels.shape[2])

    @classmethod
    def from_array(cls, pixels: np.ndarray) -> "RasterImage":
        """Wrap an array, taking a private copy of it."""
        pixels = np.array(pixels, dtype=np.uint8, copy=True)
        if pixels.ndim == 2:
            pixels = pixels[:, :, np.newaxis]
        height, width = pixels.shape[:2]
        return cls(width=width, height=height, pixels=pixels)


# ============================================================================
# Decoding / Encoding
# ============================================================================

def decode_artifact(artifact: EncodedArtifact) -> RasterImage:
    """
    Decode an encoded image into an RGBA raster.

    EXIF orientation is applied, matching how the photo is displayed.

    Raises:
        DecodeFailure: If the bytes are not a readable image
        SurfaceUnavailable: If the decoded image cannot be turned into a pixel buffer
    """
    from PIL import Image, ImageOps, UnidentifiedImageError

    try:
        with Image.open(io.BytesIO(artifact.data)) as img:
            img.load()
            img = ImageOps.exif_transpose(img)
    except (UnidentifiedImageError, OSError, ValueError, SyntaxError, Image.DecompressionBombError) as e:
        raise DecodeFailure(f"Could not decode {artifact.filename}: {e}") from e

    try:
        rgba = img.convert("RGBA")
        pixels = np.array(rgba, dtype=np.uint8)
    except (MemoryError, OSError, ValueError) as e:
        raise SurfaceUnavailable(f"Could not allocate pixel buffer for {artifact.filename}: {e}") from e

    logger.debug(f"Decoded {artifact.filename}: {pixels.shape}")
    return RasterImage(width=pixels.shape[1], height=pixels.shape[0], pixels=pixels)


def _to_bgr(pixels: np.ndarray) -> np.ndarray:
    import cv2

    pixels = pixels.copy()
    channels = pixels.shape[2]
    if channels == 4:
        return cv2.cvtColor(pixels, cv2.COLOR_RGBA2BGR)
    if channels == 3:
        return cv2.cvtColor(pixels, cv2.COLOR_RGB2BGR)
    if channels == 1:
        return np.ascontiguousarray(pixels[:, :, 0])
    raise ValueError(f"Unsupported channel count: {channels}")


def encode_raster(raster: RasterImage, quality: int = JPEG_QUALITY) -> bytes:
    """
    Encode a raster as JPEG. Alpha is dropped.

    Raises:
        EncodeFailure: If OpenCV cannot serialize the buffer
    """
    import cv2

    try:
        bgr = _to_bgr(raster.pixels)
        ok, buffer = cv2.imencode(".jpg", bgr, [cv2.IMWRITE_JPEG_QUALITY, quality])
    except (cv2.error, ValueError) as e:
        raise EncodeFailure(f"JPEG encoding failed: {e}") from e

    if not ok:
        raise EncodeFailure("JPEG encoding returned no data")

    return buffer.tobytes()


def jpeg_filename(filename: str) -> str:
    """Replace the suffix of a file name with ``.jpg``."""
    stem = Path(filename).stem or "capture"
    return f"{stem}.jpg"


def encode_artifact(raster: RasterImage, source: EncodedArtifact) -> EncodedArtifact:
    """Encode a raster into a JPEG artifact named after its source."""
    data = encode_raster(raster)
    return EncodedArtifact(
        data=data,
        filename=jpeg_filename(source.filename),
        media_type=OUTPUT_MEDIA_TYPE,
    )


# ============================================================================
# File Loading
# ============================================================================

def detect_media_type(path: Union[str, Path]) -> str:
    """Guess the media type of a file from its name."""
    media_type, _ = mimetypes.guess_type(str(path))
    if media_type is None:
        suffix = Path(path).suffix.lower()
        if suffix in IMAGE_EXTENSIONS:
            return f"image/{suffix.lstrip('.')}"
        return "application/octet-stream"
    return media_type


def load_capture(path: Union[str, Path], media_type: Optional[str] = None) -> EncodedArtifact:
    """
    Read a file into an artifact.

    Args:
        path: Path to the captured or selected file
        media_type: Override the guessed media type

    Raises:
        FileNotFoundError: If the file doesn't exist
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Capture file not found: {path}")

    return EncodedArtifact(
        data=path.read_bytes(),
        filename=path.name,
        media_type=media_type or detect_media_type(path),
    )


def load_captures_from_folder(
    folder_path: Union[str, Path],
    extensions: tuple = IMAGE_EXTENSIONS + ('.pdf',),
) -> List[EncodedArtifact]:
    """Load every capture in a folder, sorted by file name."""
    folder_path = Path(folder_path)
    if not folder_path.is_dir():
        raise NotADirectoryError(f"Not a directory: {folder_path}")

    files = sorted(
        f for f in folder_path.iterdir()
        if f.is_file() and f.suffix.lower() in extensions
    )
    logger.info(f"Found {len(files)} captures in {folder_path}")
    return [load_capture(f) for f in files]


def save_artifacts(
    files: Sequence[EncodedArtifact],
    output_dir: Union[str, Path],
) -> List[Path]:
    """
    Write finalized pages to a directory, prefixed with their page number.

    Returns:
        Paths of the written files, in page order
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    paths = []
    for number, artifact in enumerate(files, start=1):
        path = output_dir / f"page_{number:04d}_{artifact.filename}"
        path.write_bytes(artifact.data)
        paths.append(path)

    logger.debug(f"Saved {len(paths)} pages to {output_dir}")
    return paths
