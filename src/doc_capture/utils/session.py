"""
Multi-shot capture session.

The controller owns the ordered list of captured pages. Photos are enhanced
on background workers, but each one is tagged with its submission index and
inserted at that position, so page order always matches capture order no
matter which enhancement finishes first. A generation counter lets a reset
discard results of work that was still running.
"""

import bisect
import logging
import threading
from concurrent import futures
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional

from ..config import EnhancementOptions, get_config
from .errors import SessionStateError
from .images import EnhancementResult, enhance_document_image
from .io import EncodedArtifact
from .previews import PreviewReference, PreviewRegistry

logger = logging.getLogger(__name__)

Enhancer = Callable[[EncodedArtifact, EnhancementOptions], EnhancementResult]


# ============================================================================
# Data Classes and Enums
# ============================================================================

class SessionState(Enum):
    """Lifecycle of a capture session."""
    EMPTY = "empty"
    CAPTURING = "capturing"
    FINALIZING = "finalizing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionState.COMPLETED, SessionState.CANCELLED)


@dataclass
class CapturedPage:
    """One page of the session."""
    artifact: EncodedArtifact
    preview: PreviewReference
    was_enhanced: bool
    ordinal: int
    sequence: int


@dataclass
class FinalizedCapture:
    """Ordered pages handed to the upload step."""
    files: List[EncodedArtifact]
    merge_into_one: bool

    @property
    def page_count(self) -> int:
        return len(self.files)


# ============================================================================
# Controller
# ============================================================================

class CaptureSessionController:
    """
    Builds an ordered set of pages from single captures or batch selections.

    Pages are only changed through add_capture/add_batch, remove_capture,
    reset, finalize and cancel.
    """

    def __init__(
        self,
        options: Optional[EnhancementOptions] = None,
        max_workers: Optional[int] = None,
        enhancer: Enhancer = enhance_document_image,
        previews: Optional[PreviewRegistry] = None
    ):
        config = get_config()
        self._options = replace(options or config.enhancement)
        self._enhancer = enhancer
        self.previews = previews or PreviewRegistry()

        self._lock = threading.RLock()
        self._executor = futures.ThreadPoolExecutor(
            max_workers=max_workers or config.max_workers,
            thread_name_prefix="capture",
        )
        self._closed = False

        self._pages: List[CapturedPage] = []
        self._state = SessionState.EMPTY
        self._generation = 0
        self._next_sequence = 0
        self._in_flight: Dict[futures.Future, int] = {}

    # ─── Observable state ─────────────────────────────────────────
    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def pages(self) -> List[CapturedPage]:
        with self._lock:
            return list(self._pages)

    @property
    def page_count(self) -> int:
        with self._lock:
            return len(self._pages)

    @property
    def options(self) -> EnhancementOptions:
        return replace(self._options)

    @options.setter
    def options(self, value: EnhancementOptions) -> None:
        with self._lock:
            self._check_open()
            self._options = replace(value)

    # ─── Capture ──────────────────────────────────────────────────
    def add_capture(self, raw: EncodedArtifact) -> futures.Future:
        """
        Schedule enhancement of one capture and append it in submission order.

        Returns:
            Future resolving to the CapturedPage, or None if the session was
            reset or ended before the work finished
        """
        with self._lock:
            self._check_open()
            if self._closed:
                raise SessionStateError("Capture session is closed")

            sequence = self._next_sequence
            self._next_sequence += 1
            generation = self._generation
            options = replace(self._options)

            future = self._executor.submit(self._process, raw, options, sequence, generation)
            self._in_flight[future] = generation
            future.add_done_callback(self._forget)

        logger.debug(f"Queued capture #{sequence} ({raw.filename}) in generation {generation}")
        return future

    def add_batch(self, raws: Iterable[EncodedArtifact]) -> List[futures.Future]:
        """
        Add a multi-file selection in selection order.

        Only images and PDFs are accepted; anything else is skipped.
        """
        submitted = []
        for raw in raws:
            if not (raw.is_image or raw.is_pdf):
                logger.warning(f"Skipping {raw.filename}: unsupported type {raw.media_type}")
                continue
            submitted.append(self.add_capture(raw))
        return submitted

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block until captures of the current generation are processed.

        Returns:
            False if the timeout expired with work still running
        """
        with self._lock:
            pending = [f for f, g in self._in_flight.items() if g == self._generation]
        if not pending:
            return True
        _, not_done = futures.wait(pending, timeout=timeout)
        return not not_done

    # ─── Mutation ─────────────────────────────────────────────────
    def remove_capture(self, index: int) -> CapturedPage:
        """
        Remove the page at ``index`` (0-based) and release its preview.

        Raises:
            IndexError: If there is no page at ``index``
        """
        with self._lock:
            self._check_open()
            if not 0 <= index < len(self._pages):
                raise IndexError(f"No captured page at index {index} ({len(self._pages)} pages)")

            page = self._pages.pop(index)
            self.previews.release(page.preview)
            self._renumber()
            if not self._pages:
                self._state = SessionState.EMPTY

        logger.debug(f"Removed page {page.ordinal} ({page.artifact.filename})")
        return page

    def reset(self) -> int:
        """
        Drop every page and start a new generation.

        Work still running finishes, but its result is discarded.

        Returns:
            Number of previews released
        """
        with self._lock:
            released = self._discard()
            self._state = SessionState.EMPTY

        logger.info(f"Capture session reset ({released} previews released)")
        return released

    def finalize(self, merge_into_one: bool = False) -> FinalizedCapture:
        """
        Complete the session and hand over the pages in capture order.

        Merging is only reported for sessions with more than one page.
        All previews are released once the pages are handed over.

        Raises:
            SessionStateError: If the session is empty or already ended
        """
        self.wait()

        with self._lock:
            self._check_open()
            if not self._pages:
                raise SessionStateError("Cannot finalize an empty capture session")

            self._state = SessionState.FINALIZING
            files = [page.artifact for page in self._pages]
            result = FinalizedCapture(
                files=files,
                merge_into_one=bool(merge_into_one) and len(files) > 1,
            )

            released = self.previews.release_generation(self._generation)
            self._pages = []
            self._state = SessionState.COMPLETED

        logger.info(
            f"Capture session finalized: {result.page_count} page(s), "
            f"merge={result.merge_into_one}, {released} previews released"
        )
        return result

    def cancel(self) -> int:
        """
        Abandon the session and release all previews.

        Returns:
            Number of previews released
        """
        with self._lock:
            if self._state is SessionState.CANCELLED:
                return 0
            if self._state is SessionState.COMPLETED:
                raise SessionStateError("Capture session already completed")
            released = self._discard()
            self._state = SessionState.CANCELLED

        logger.info(f"Capture session cancelled ({released} previews released)")
        return released

    # ─── Lifecycle ────────────────────────────────────────────────
    def close(self) -> None:
        """Stop accepting captures and shut the worker pool down."""
        with self._lock:
            self._closed = True
        self._executor.shutdown(wait=True)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        if not self._state.is_terminal:
            self.cancel()
        self.close()
        return False

    # ─── Internal helpers ─────────────────────────────────────────
    def _check_open(self) -> None:
        if self._state.is_terminal:
            raise SessionStateError(f"Capture session is {self._state.value}")

    def _renumber(self) -> None:
        for ordinal, page in enumerate(self._pages, start=1):
            page.ordinal = ordinal

    def _discard(self) -> int:
        stale = self._generation
        self._generation += 1
        self._next_sequence = 0
        self._pages = []
        return self.previews.release_generation(stale)

    def _forget(self, future: futures.Future) -> None:
        with self._lock:
            self._in_flight.pop(future, None)

    def _enhance(self, raw: EncodedArtifact, options: EnhancementOptions) -> EnhancementResult:
        if not raw.is_image:
            return EnhancementResult(artifact=raw, was_processed=False)
        try:
            return self._enhancer(raw, options)
        except Exception as e:
            logger.exception(f"Enhancer raised for {raw.filename}, keeping original: {e}")
            return EnhancementResult(artifact=raw, was_processed=False)

    def _process(
        self,
        raw: EncodedArtifact,
        options: EnhancementOptions,
        sequence: int,
        generation: int
    ) -> Optional[CapturedPage]:
        result = self._enhance(raw, options)
        # Decoding the thumbnail can be slow; the session lock is not held here
        thumbnail = self.previews.render(result.artifact)

        with self._lock:
            if generation != self._generation or self._state.is_terminal:
                logger.debug(f"Discarding stale capture #{sequence} from generation {generation}")
                return None

            page = CapturedPage(
                artifact=result.artifact,
                preview=self.previews.register(generation, thumbnail),
                was_enhanced=result.was_processed,
                ordinal=0,
                sequence=sequence,
            )
            index = bisect.bisect([p.sequence for p in self._pages], sequence)
            self._pages.insert(index, page)
            self._renumber()
            if self._state is SessionState.EMPTY:
                self._state = SessionState.CAPTURING

        logger.debug(f"Captured page {page.ordinal} ({page.artifact.filename}, enhanced={page.was_enhanced})")
        return page
