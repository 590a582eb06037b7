"""
End-to-end integration tests for the Document Capture Pipeline.
"""

import pytest
import numpy as np
import sys
import tempfile
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


def make_document_photo(seed: int, width: int = 320, height: int = 420) -> np.ndarray:
    """Create a low-contrast document-like photo (BGR)."""
    import cv2

    rng = np.random.default_rng(seed)
    img = np.ones((height, width, 3), dtype=np.uint8) * 170
    text_color = (110, 110, 110)

    cv2.putText(img, f"Invoice {seed}", (20, 50),
                cv2.FONT_HERSHEY_SIMPLEX, 1.0, text_color, 2)
    for i, y in enumerate(range(100, height - 40, 28)):
        cv2.putText(img, f"Line item {i + 1}: 12.50 EUR", (20, y),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.5, text_color, 1)

    # Scan noise
    noise = rng.normal(0, 4, img.shape).astype(np.int16)
    return np.clip(img.astype(np.int16) + noise, 0, 255).astype(np.uint8)


class TestEndToEnd:
    """End-to-end capture tests."""

    @pytest.fixture
    def temp_dir(self):
        with tempfile.TemporaryDirectory(prefix="doc_capture_test_") as tmp_dir:
            yield Path(tmp_dir)

    @pytest.fixture
    def capture_files(self, temp_dir):
        """Three photos written to disk as they would come from the camera."""
        import cv2

        paths = []
        for i in range(3):
            path = temp_dir / "camera" / f"IMG_{i:04d}.png"
            path.parent.mkdir(parents=True, exist_ok=True)
            cv2.imwrite(str(path), make_document_photo(i, width=320 + i * 16))
            paths.append(path)
        return paths

    def test_three_page_capture(self, capture_files):
        """Capture three photos, finalize, and check every page."""
        import cv2
        from doc_capture.config import EnhancementOptions
        from doc_capture.utils.io import load_capture
        from doc_capture.utils.session import CaptureSessionController

        options = EnhancementOptions(auto_adjust=True, grayscale=False, sharpen=True)
        sources = [load_capture(p) for p in capture_files]

        with CaptureSessionController(options) as session:
            for source in sources:
                session.add_capture(source)
            result = session.finalize(merge_into_one=True)
            live_previews = session.previews.live_count()

        assert result.merge_into_one is True
        assert [f.filename for f in result.files] == ["IMG_0000.jpg", "IMG_0001.jpg", "IMG_0002.jpg"]
        assert live_previews == 0

        for source, artifact in zip(sources, result.files):
            original = cv2.imdecode(np.frombuffer(source.data, np.uint8), cv2.IMREAD_COLOR)
            enhanced = cv2.imdecode(np.frombuffer(artifact.data, np.uint8), cv2.IMREAD_COLOR)

            assert enhanced.shape[:2] == original.shape[:2]
            assert artifact.data != source.data
            assert artifact.media_type == "image/jpeg"

    def test_enhancement_increases_contrast(self, capture_files):
        import cv2
        from doc_capture.utils.io import load_capture
        from doc_capture.utils.images import enhance_document_image

        source = load_capture(capture_files[0])
        result = enhance_document_image(source)

        original = cv2.imdecode(np.frombuffer(source.data, np.uint8), cv2.IMREAD_GRAYSCALE)
        enhanced = cv2.imdecode(np.frombuffer(result.artifact.data, np.uint8), cv2.IMREAD_GRAYSCALE)

        assert result.was_processed is True
        assert int(enhanced.max()) - int(enhanced.min()) > int(original.max()) - int(original.min())

    def test_folder_selection_and_save(self, capture_files, temp_dir):
        """Select a folder of files, finalize and write the pages out."""
        from doc_capture.utils.io import load_captures_from_folder, save_artifacts
        from doc_capture.utils.session import CaptureSessionController

        (temp_dir / "camera" / "readme.md").write_text("not a capture")
        captures = load_captures_from_folder(temp_dir / "camera")

        with CaptureSessionController() as session:
            session.add_batch(captures)
            result = session.finalize(merge_into_one=False)

        written = save_artifacts(result.files, temp_dir / "out")

        assert [p.name for p in written] == [
            "page_0001_IMG_0000.jpg",
            "page_0002_IMG_0001.jpg",
            "page_0003_IMG_0002.jpg",
        ]
        assert all(p.stat().st_size > 0 for p in written)
        assert result.merge_into_one is False


class TestIO:
    """Test artifact loading helpers."""

    def test_load_capture(self, tmp_path):
        from doc_capture.utils.io import load_capture

        path = tmp_path / "scan.jpeg"
        path.write_bytes(b"\xff\xd8data")

        artifact = load_capture(path)

        assert artifact.filename == "scan.jpeg"
        assert artifact.media_type == "image/jpeg"
        assert artifact.data == b"\xff\xd8data"
        assert artifact.is_image

    def test_load_capture_missing(self, tmp_path):
        from doc_capture.utils.io import load_capture

        with pytest.raises(FileNotFoundError):
            load_capture(tmp_path / "missing.jpg")

    def test_detect_media_type(self):
        from doc_capture.utils.io import detect_media_type

        assert detect_media_type("a.pdf") == "application/pdf"
        assert detect_media_type("a.png") == "image/png"
        assert detect_media_type("a.unknownext") == "application/octet-stream"

    def test_jpeg_filename(self):
        from doc_capture.utils.io import jpeg_filename

        assert jpeg_filename("IMG_1.HEIC") == "IMG_1.jpg"
        assert jpeg_filename("page.png") == "page.jpg"


class TestConfig:
    """Test configuration defaults and environment overrides."""

    def test_defaults(self, monkeypatch):
        from doc_capture.config import get_config

        for name in ("DOC_CAPTURE_GRAYSCALE", "DOC_CAPTURE_SHARPEN", "DOC_CAPTURE_AUTO_ADJUST"):
            monkeypatch.delenv(name, raising=False)

        options = get_config().enhancement

        assert options.grayscale is False
        assert options.sharpen is True
        assert options.auto_adjust is True

    def test_env_overrides(self, monkeypatch):
        from doc_capture.config import get_config

        monkeypatch.setenv("DOC_CAPTURE_GRAYSCALE", "true")
        monkeypatch.setenv("DOC_CAPTURE_SHARPEN", "false")

        options = get_config().enhancement

        assert options.grayscale is True
        assert options.sharpen is False
        assert options.auto_adjust is True


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
