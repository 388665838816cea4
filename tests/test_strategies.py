"""Tests for the ROI strategies."""

from __future__ import annotations

import numpy as np
import pytest

from roicrop.errors import EmptyInputError, SaliencyComputationError
from roicrop.imaging import saliency
from roicrop.imaging.geometry import Point, Rectangle, Size
from roicrop.imaging.image import Image
from roicrop.imaging.padding import PaddingRatio
from roicrop.ml.face_detector import FaceCandidate
from roicrop.roi import strategies
from roicrop.roi.faces import eye_centroid, eye_line_anchor, face_anchor_rect, pick_best_face
from roicrop.roi.options import RoiOptions

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class StubDetector:
    """Async detector stand-in returning fixed faces."""

    def __init__(self, faces: list[FaceCandidate]) -> None:
        self.faces = faces
        self.calls: list[float] = []

    async def detect(self, image: Image, min_score: float) -> list[FaceCandidate]:
        self.calls.append(min_score)
        return [face for face in self.faces if face.score >= min_score]


def _image(width: int, height: int) -> Image:
    return Image(np.zeros((height, width, 3), dtype=np.uint8), "scene.png")


def _face(x: int, y: int, w: int, h: int, score: float = 0.9, **landmarks: Point) -> FaceCandidate:
    return FaceCandidate(Rectangle(x, y, w, h), score, **landmarks)


@pytest.fixture
def flat_saliency(monkeypatch: pytest.MonkeyPatch) -> None:
    """Replace the saliency backend with an all-zero map."""

    def _compute(image: Image) -> np.ndarray:
        return np.zeros((image.height, image.width), dtype=np.float32)

    monkeypatch.setattr(saliency, "compute_saliency", _compute)


def _patch_map(monkeypatch: pytest.MonkeyPatch, saliency_map: np.ndarray) -> None:
    monkeypatch.setattr(saliency, "compute_saliency", lambda image: saliency_map)


# ---------------------------------------------------------------------------
# Center
# ---------------------------------------------------------------------------


class TestCenterRoi:
    def test_centered(self) -> None:
        roi = strategies.center_roi(_image(1000, 1000), Size(400, 300))
        assert roi == Rectangle(300, 350, 400, 300)

    def test_odd_remainder_rounds_down(self) -> None:
        roi = strategies.center_roi(_image(101, 51), Size(50, 50))
        assert roi == Rectangle(25, 0, 50, 50)

    def test_target_larger_than_image_starts_at_origin(self) -> None:
        roi = strategies.center_roi(_image(100, 100), Size(200, 50))
        assert roi.x == 0
        assert roi.size == Size(200, 50)


# ---------------------------------------------------------------------------
# Prominent
# ---------------------------------------------------------------------------


class TestSaliencyKernelSize:
    @pytest.mark.parametrize(
        ("crop", "image_size", "expected"),
        [
            (Size(400, 300), Size(1000, 800), 101),
            (Size(500, 500), Size(2000, 300), 125),
            (Size(1, 1), Size(100, 100), 3),
            (Size(99, 20), Size(100, 100), 25),
            (Size(1600, 1200), Size(2000, 2000), 255),
            (Size(400, 400), Size(2000, 60), 61),
        ],
    )
    def test_kernel(self, crop: Size, image_size: Size, expected: int) -> None:
        assert strategies.saliency_kernel_size(crop, image_size) == expected


class TestProminentRoi:
    def test_flat_map_picks_origin(self) -> None:
        saliency_map = np.zeros((1000, 1000), dtype=np.float32)
        roi = strategies.prominent_roi_from_map(saliency_map, Size(100, 100), PaddingRatio())
        assert roi == Rectangle(0, 0, 100, 100)

    def test_padding_expands_and_clamps(self) -> None:
        saliency_map = np.zeros((1000, 1000), dtype=np.float32)
        roi = strategies.prominent_roi_from_map(saliency_map, Size(100, 100), PaddingRatio.uniform(0.1))
        assert roi == Rectangle(0, 0, 120, 120)

    def test_follows_salient_region(self) -> None:
        saliency_map = np.zeros((600, 800), dtype=np.float32)
        saliency_map[400:560, 560:760] = 1.0

        roi = strategies.prominent_roi_from_map(saliency_map, Size(200, 200), PaddingRatio())

        assert roi.size == Size(200, 200)
        assert Rectangle(0, 0, 800, 600).contains(roi)
        assert roi.contains(Rectangle(610, 450, 20, 20))

    def test_window_capped_to_image(self) -> None:
        saliency_map = np.zeros((50, 80), dtype=np.float32)
        roi = strategies.prominent_roi_from_map(saliency_map, Size(200, 200), PaddingRatio())
        assert roi == Rectangle(0, 0, 80, 50)

    async def test_uses_saliency_backend(self, monkeypatch: pytest.MonkeyPatch) -> None:
        saliency_map = np.zeros((300, 400), dtype=np.float32)
        saliency_map[:60, :60] = 1.0
        _patch_map(monkeypatch, saliency_map)

        roi = await strategies.prominent_roi(_image(400, 300), Size(100, 100), RoiOptions())

        assert roi == Rectangle(0, 0, 100, 100)

    async def test_saliency_failure_propagates(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def _fail(image: Image) -> np.ndarray:
            raise SaliencyComputationError(image.source_name)

        monkeypatch.setattr(saliency, "compute_saliency", _fail)

        with pytest.raises(SaliencyComputationError, match="scene.png"):
            await strategies.prominent_roi(_image(100, 100), Size(50, 50), RoiOptions())


# ---------------------------------------------------------------------------
# Rule of thirds
# ---------------------------------------------------------------------------


class TestFollowRuleOfThirds:
    def test_eye_one_third_down(self) -> None:
        roi = strategies.follow_rule_of_thirds(Rectangle(0, 0, 900, 600), Point(450, 330), Size(300, 300))
        assert roi == Rectangle(300, 230, 300, 300)

    def test_clamped_to_border(self) -> None:
        roi = strategies.follow_rule_of_thirds(Rectangle(0, 0, 900, 600), Point(10, 590), Size(300, 300))
        assert roi == Rectangle(0, 300, 300, 300)


class TestRuleOfThirdsRoi:
    async def test_without_detector_uses_default_ratios(self) -> None:
        roi = await strategies.rule_of_thirds_roi(_image(900, 600), Size(300, 300), RoiOptions(), None)
        assert roi == Rectangle(300, 110, 300, 300)

    async def test_without_faces_uses_configured_ratios(self) -> None:
        options = RoiOptions(eye_center_ratio_x=0.25, eye_center_ratio_y=0.5)
        roi = await strategies.rule_of_thirds_roi(_image(900, 600), Size(300, 300), options, StubDetector([]))
        assert roi == Rectangle(75, 200, 300, 300)

    async def test_eye_landmarks(self) -> None:
        face = _face(400, 300, 100, 100, right_eye=Point(430, 330), left_eye=Point(470, 330))
        detector = StubDetector([face])

        roi = await strategies.rule_of_thirds_roi(_image(900, 600), Size(300, 300), RoiOptions(), detector)

        assert roi == Rectangle(300, 230, 300, 300)
        assert detector.calls == [0.6]

    async def test_face_without_landmarks_uses_eye_line(self) -> None:
        detector = StubDetector([_face(400, 300, 100, 100)])
        roi = await strategies.rule_of_thirds_roi(_image(900, 600), Size(300, 300), RoiOptions(), detector)
        assert roi == Rectangle(300, 235, 300, 300)

    async def test_union_averages_faces(self) -> None:
        faces = [_face(100, 100, 100, 100, 0.9), _face(600, 300, 100, 100, 0.7)]
        roi = await strategies.rule_of_thirds_roi(
            _image(900, 600), Size(300, 300), RoiOptions(faces_union_all=True), StubDetector(faces)
        )
        assert roi == Rectangle(250, 135, 300, 300)

    async def test_best_face_only(self) -> None:
        faces = [_face(100, 100, 100, 100, 0.9), _face(600, 300, 100, 100, 0.7)]
        roi = await strategies.rule_of_thirds_roi(
            _image(900, 600), Size(300, 300), RoiOptions(faces_union_all=False), StubDetector(faces)
        )
        assert roi == Rectangle(0, 35, 300, 300)

    async def test_low_confidence_faces_ignored(self) -> None:
        detector = StubDetector([_face(0, 0, 100, 100, 0.4)])
        roi = await strategies.rule_of_thirds_roi(_image(900, 600), Size(300, 300), RoiOptions(), detector)
        assert roi == Rectangle(300, 110, 300, 300)


# ---------------------------------------------------------------------------
# Attention
# ---------------------------------------------------------------------------


class TestCenterWindowOn:
    def test_centered(self) -> None:
        window = strategies.center_window_on(Rectangle(400, 400, 200, 200), Size(100, 100), Rectangle(0, 0, 1000, 1000))
        assert window == Rectangle(450, 450, 100, 100)

    def test_shifted_inside_border(self) -> None:
        window = strategies.center_window_on(Rectangle(950, 0, 50, 50), Size(200, 200), Rectangle(0, 0, 1000, 1000))
        assert window == Rectangle(800, 0, 200, 200)


class TestAttentionRoi:
    async def test_without_faces_matches_prominent(self, flat_saliency: None) -> None:
        roi = await strategies.attention_roi(_image(1000, 1000), Size(200, 200), RoiOptions(), None)
        assert roi == Rectangle(0, 0, 200, 200)

    async def test_face_pulls_window(self, flat_saliency: None) -> None:
        detector = StubDetector([_face(700, 700, 100, 100)])

        roi = await strategies.attention_roi(_image(1000, 1000), Size(200, 200), RoiOptions(), detector)

        assert roi == Rectangle(300, 300, 200, 200)

    async def test_best_face_with_padding(self, flat_saliency: None) -> None:
        faces = [_face(600, 600, 100, 100, 0.9), _face(100, 800, 50, 50, 0.8)]
        options = RoiOptions(faces_union_all=False, face_padding=PaddingRatio.uniform(0.5))

        roi = await strategies.attention_roi(_image(1000, 1000), Size(200, 200), options, StubDetector(faces))

        assert roi == Rectangle(275, 275, 200, 200)

    async def test_face_and_salient_region_agree(self, monkeypatch: pytest.MonkeyPatch) -> None:
        saliency_map = np.zeros((2000, 2000), dtype=np.float32)
        saliency_map[750:1250, 750:1250] = 1.0
        _patch_map(monkeypatch, saliency_map)
        face = _face(900, 900, 200, 200, 0.99)

        roi = await strategies.attention_roi(_image(2000, 2000), Size(500, 500), RoiOptions(), StubDetector([face]))

        assert roi.size == Size(500, 500)
        assert Rectangle(0, 0, 2000, 2000).contains(roi)
        assert roi.contains(Rectangle(990, 990, 20, 20))

    async def test_window_never_exceeds_image(self, flat_saliency: None) -> None:
        detector = StubDetector([_face(10, 10, 30, 30)])
        roi = await strategies.attention_roi(_image(120, 80), Size(500, 500), RoiOptions(), detector)
        assert roi == Rectangle(0, 0, 120, 80)

    async def test_saliency_failure_propagates(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def _fail(image: Image) -> np.ndarray:
            raise SaliencyComputationError(image.source_name)

        monkeypatch.setattr(saliency, "compute_saliency", _fail)

        with pytest.raises(SaliencyComputationError):
            await strategies.attention_roi(_image(100, 100), Size(50, 50), RoiOptions(), StubDetector([]))


# ---------------------------------------------------------------------------
# Face helpers
# ---------------------------------------------------------------------------


class TestFaceHelpers:
    def test_best_face_highest_score(self) -> None:
        faces = [_face(0, 0, 50, 50, 0.7), _face(100, 100, 10, 10, 0.9)]
        assert pick_best_face(faces) is faces[1]

    def test_best_face_tie_prefers_larger(self) -> None:
        faces = [_face(0, 0, 10, 10, 0.8), _face(100, 100, 40, 40, 0.8 + 1e-7)]
        assert pick_best_face(faces) is faces[1]

    def test_best_face_tie_keeps_first_when_not_larger(self) -> None:
        faces = [_face(0, 0, 40, 40, 0.8), _face(100, 100, 40, 40, 0.8)]
        assert pick_best_face(faces) is faces[0]

    def test_empty_inputs_raise(self) -> None:
        with pytest.raises(EmptyInputError):
            pick_best_face([])
        with pytest.raises(EmptyInputError):
            eye_centroid([], use_all_faces=True)

    def test_face_anchor_rect_policies(self) -> None:
        faces = [_face(0, 0, 10, 10, 0.5), _face(90, 40, 10, 20, 0.9)]
        assert face_anchor_rect(faces, use_all_faces=True) == Rectangle(0, 0, 100, 60)
        assert face_anchor_rect(faces, use_all_faces=False) == Rectangle(90, 40, 10, 20)

    def test_eye_line_anchor(self) -> None:
        assert eye_line_anchor(Rectangle(10, 20, 41, 100)) == Point(30, 55)

    def test_eye_centroid_mixes_landmarks_and_fallback(self) -> None:
        faces = [
            _face(0, 0, 100, 100, right_eye=Point(30, 40), left_eye=Point(70, 40)),
            _face(200, 0, 100, 100),
        ]
        assert eye_centroid(faces, use_all_faces=True) == Point(150, 38)
