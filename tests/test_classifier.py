"""
Tests for the document likelihood heuristic.
"""

import pytest
import numpy as np
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


def png_artifact(pixels: np.ndarray, filename: str = "sample.png"):
    """Encode an RGB array as a PNG artifact."""
    import cv2
    from doc_capture.utils.io import EncodedArtifact

    ok, buffer = cv2.imencode(".png", cv2.cvtColor(pixels, cv2.COLOR_RGB2BGR))
    assert ok
    return EncodedArtifact(data=buffer.tobytes(), filename=filename, media_type="image/png")


class TestDocumentClassifier:
    """Test edge-density based document detection."""

    @pytest.fixture
    def uniform_image(self):
        return np.full((200, 200, 3), 220, dtype=np.uint8)

    @pytest.fixture
    def checkerboard(self):
        """Black/white checkerboard with 4-pixel cells."""
        y, x = np.indices((200, 200))
        board = (((y // 4) + (x // 4)) % 2 * 255).astype(np.uint8)
        return np.repeat(board[:, :, np.newaxis], 3, axis=2)

    @pytest.fixture
    def smooth_gradient(self):
        """Photographic-like smooth horizontal gradient."""
        ramp = np.linspace(0, 255, 400).astype(np.uint8)
        img = np.tile(ramp, (300, 1))
        return np.repeat(img[:, :, np.newaxis], 3, axis=2)

    def test_uniform_is_not_document(self, uniform_image):
        from doc_capture.utils.io import RasterImage
        from doc_capture.utils.classifier import edge_ratio, is_likely_document

        assert edge_ratio(RasterImage.from_array(uniform_image)) == 0.0
        assert is_likely_document(png_artifact(uniform_image)) is False

    def test_checkerboard_is_document(self, checkerboard):
        from doc_capture.utils.io import RasterImage
        from doc_capture.utils.classifier import edge_ratio, is_likely_document

        ratio = edge_ratio(RasterImage.from_array(checkerboard))

        # 49 boundary columns and rows among the 198 interior positions
        assert ratio == pytest.approx((198 * 198 - 149 * 149) / (200 * 200))
        assert ratio > 0.15
        assert is_likely_document(png_artifact(checkerboard)) is True

    def test_smooth_gradient_is_not_document(self, smooth_gradient):
        from doc_capture.utils.classifier import is_likely_document

        assert is_likely_document(png_artifact(smooth_gradient)) is False

    def test_sample_is_fixed_size(self, smooth_gradient):
        from doc_capture.utils.io import RasterImage
        from doc_capture.utils.classifier import render_sample

        sample = render_sample(RasterImage.from_array(smooth_gradient))

        assert (sample.width, sample.height, sample.channels) == (200, 200, 3)

    def test_shrinking_averages_fine_texture(self):
        """A 1-pixel checkerboard halved in size averages out to flat grey."""
        from doc_capture.utils.io import RasterImage
        from doc_capture.utils.classifier import edge_ratio, render_sample

        y, x = np.indices((400, 400))
        board = ((y + x) % 2 * 255).astype(np.uint8)
        raster = RasterImage.from_array(np.repeat(board[:, :, np.newaxis], 3, axis=2))

        sample = render_sample(raster)

        assert int(sample.pixels.max()) - int(sample.pixels.min()) <= 1
        assert edge_ratio(raster) == 0.0

    def test_interpolation_depends_on_direction(self, monkeypatch):
        import cv2
        from doc_capture.utils.io import RasterImage
        from doc_capture.utils.classifier import render_sample

        used = []
        resize = cv2.resize

        def recording_resize(src, dsize, interpolation):
            used.append(interpolation)
            return resize(src, dsize, interpolation=interpolation)

        monkeypatch.setattr(cv2, "resize", recording_resize)

        render_sample(RasterImage.from_array(np.zeros((600, 800, 3), dtype=np.uint8)))
        render_sample(RasterImage.from_array(np.zeros((50, 80, 3), dtype=np.uint8)))

        assert used == [cv2.INTER_AREA, cv2.INTER_LINEAR]

    def test_deterministic(self, checkerboard):
        from doc_capture.utils.io import RasterImage
        from doc_capture.utils.classifier import edge_ratio

        raster = RasterImage.from_array(checkerboard)

        assert edge_ratio(raster) == edge_ratio(raster)

    def test_decode_failure_is_false(self):
        from doc_capture.utils.io import EncodedArtifact
        from doc_capture.utils.classifier import is_likely_document

        broken = EncodedArtifact(data=b"\x00\x01garbage", filename="broken.png", media_type="image/png")

        assert is_likely_document(broken) is False


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
