"""
Preview references for captured pages.

Every captured page owns one preview: a small JPEG thumbnail held by the
registry until it is released. References are grouped by session generation
so a reset can drop a whole generation at once. Releasing is explicit and
happens at most once per reference.
"""

import io
import logging
import threading
import uuid
from dataclasses import dataclass
from typing import Dict, Optional

from ..config import PREVIEW_MAX_EDGE
from .io import EncodedArtifact

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PreviewReference:
    """Handle to a live preview, tied to the session generation that created it."""
    generation: int
    token: str

    @property
    def url(self) -> str:
        return f"preview://{self.generation}/{self.token}"


def render_thumbnail(artifact: EncodedArtifact, max_edge: int = PREVIEW_MAX_EDGE) -> Optional[bytes]:
    """
    Render a JPEG thumbnail of an image artifact.

    Returns None for non-image artifacts or images that cannot be decoded.
    """
    from PIL import Image, ImageOps, UnidentifiedImageError

    if not artifact.is_image:
        return None

    try:
        with Image.open(io.BytesIO(artifact.data)) as img:
            img = ImageOps.exif_transpose(img)
            img.thumbnail((max_edge, max_edge))
            out = io.BytesIO()
            img.convert("RGB").save(out, format="JPEG", quality=80)
    except (UnidentifiedImageError, OSError, ValueError, SyntaxError, Image.DecompressionBombError) as e:
        logger.warning(f"No thumbnail for {artifact.filename}: {e}")
        return None

    return out.getvalue()


class PreviewRegistry:
    """
    Ownership map of live preview references, keyed by session generation.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._live: Dict[int, Dict[str, Optional[bytes]]] = {}
        self._released = 0

    def render(self, artifact: EncodedArtifact) -> Optional[bytes]:
        """Render the thumbnail for ``artifact``. Takes no lock."""
        return render_thumbnail(artifact)

    def acquire(self, generation: int, artifact: EncodedArtifact) -> PreviewReference:
        """Create a live preview for ``artifact`` owned by ``generation``."""
        return self.register(generation, self.render(artifact))

    def register(self, generation: int, thumbnail: Optional[bytes]) -> PreviewReference:
        """Record an already rendered thumbnail as a live preview of ``generation``."""
        ref = PreviewReference(generation=generation, token=uuid.uuid4().hex)
        with self._lock:
            self._live.setdefault(generation, {})[ref.token] = thumbnail
        logger.debug(f"Acquired preview {ref.url}")
        return ref

    def release(self, ref: PreviewReference) -> bool:
        """
        Release a preview.

        Returns:
            True if the reference was live, False if it was already released
        """
        with self._lock:
            owned = self._live.get(ref.generation)
            if owned is None or ref.token not in owned:
                logger.warning(f"Preview {ref.url} already released")
                return False
            del owned[ref.token]
            if not owned:
                del self._live[ref.generation]
            self._released += 1

        logger.debug(f"Released preview {ref.url}")
        return True

    def release_generation(self, generation: int) -> int:
        """Release every live preview of a generation. Returns how many were released."""
        with self._lock:
            owned = self._live.pop(generation, {})
            self._released += len(owned)

        if owned:
            logger.debug(f"Released {len(owned)} previews of generation {generation}")
        return len(owned)

    def is_live(self, ref: PreviewReference) -> bool:
        with self._lock:
            return ref.token in self._live.get(ref.generation, {})

    def get(self, ref: PreviewReference) -> Optional[bytes]:
        """Thumbnail bytes of a live preview (None if released or not renderable)."""
        with self._lock:
            return self._live.get(ref.generation, {}).get(ref.token)

    def live_count(self, generation: Optional[int] = None) -> int:
        with self._lock:
            if generation is not None:
                return len(self._live.get(generation, {}))
            return sum(len(owned) for owned in self._live.values())

    @property
    def released_count(self) -> int:
        with self._lock:
            return self._released
