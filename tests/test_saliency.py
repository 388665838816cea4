"""Tests for spectral-residual saliency maps."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import cv2
import numpy as np
import pytest

from roicrop.errors import SaliencyComputationError
from roicrop.imaging.image import Image
from roicrop.imaging.saliency import compute_saliency


def _scene() -> Image:
    rng = np.random.default_rng(7)
    pixels = rng.integers(0, 40, size=(120, 160, 3), dtype=np.uint8)
    cv2.circle(pixels, (110, 40), 15, (255, 255, 255), thickness=-1)
    return Image(pixels, "scene.png")


class TestComputeSaliency:
    def test_normalized_map_matches_image(self) -> None:
        saliency_map = compute_saliency(_scene())
        assert saliency_map.shape == (120, 160)
        assert saliency_map.dtype == np.float32
        assert saliency_map.min() == pytest.approx(0.0, abs=1e-5)
        assert saliency_map.max() == pytest.approx(1.0, abs=1e-5)

    def test_degenerate_image_fails(self) -> None:
        image = Image(np.zeros((1, 1, 3), dtype=np.uint8), "dot.png")
        with pytest.raises(SaliencyComputationError, match="dot.png") as exc_info:
            compute_saliency(image)
        assert exc_info.value.source_name == "dot.png"

    def test_backend_failure_raises(self) -> None:
        backend = MagicMock()
        backend.computeSaliency.return_value = (False, None)
        with (
            patch("roicrop.imaging.saliency.cv2.saliency.StaticSaliencySpectralResidual_create", return_value=backend),
            pytest.raises(SaliencyComputationError),
        ):
            compute_saliency(_scene())

    def test_backend_error_is_wrapped(self) -> None:
        backend = MagicMock()
        backend.computeSaliency.side_effect = cv2.error("boom")
        with (
            patch("roicrop.imaging.saliency.cv2.saliency.StaticSaliencySpectralResidual_create", return_value=backend),
            pytest.raises(SaliencyComputationError) as exc_info,
        ):
            compute_saliency(_scene())
        assert isinstance(exc_info.value.__cause__, cv2.error)

    def test_non_finite_values_become_zero(self) -> None:
        raw = np.full((120, 160), np.nan, dtype=np.float32)
        raw[10:20, 10:20] = 5.0
        backend = MagicMock()
        backend.computeSaliency.return_value = (True, raw)
        with patch("roicrop.imaging.saliency.cv2.saliency.StaticSaliencySpectralResidual_create", return_value=backend):
            saliency_map = compute_saliency(_scene())
        assert np.isfinite(saliency_map).all()
        assert saliency_map[15, 15] == pytest.approx(1.0)
        assert saliency_map[100, 100] == pytest.approx(0.0)
