from concurrent.futures import Future

import numpy as np
import pytest

from facehud.recognition.matcher import FaceMatch, GalleryMatcher
from facehud.recognition.worker import FaceRecognizer, RecognitionAdapter, crop_region, extract_crop
from facehud.tracking.smoother import FaceTracker
from facehud.types import UNKNOWN_LABEL, FaceCircle

CANVAS = (640, 480)
BOX_LANDMARKS = [(0.3, 0.2), (0.5, 0.4)]


class _ManualExecutor:
    """Executor whose jobs only run when the test says so."""

    def __init__(self):
        self.jobs = []

    def submit(self, fn, *args, **kwargs):
        future = Future()
        self.jobs.append((future, fn, args, kwargs))
        return future

    def run(self, index: int = 0) -> None:
        future, fn, args, kwargs = self.jobs[index]
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as exc:  # noqa: BLE001 - mirror executor behaviour
            future.set_exception(exc)


class _StaticRecognizer:
    def __init__(self, result):
        self.result = result
        self.crops = []

    def recognize(self, crop):
        self.crops.append(crop)
        return self.result


class _FailingRecognizer:
    def recognize(self, crop):
        raise RuntimeError("model exploded")


def _frame() -> np.ndarray:
    return np.zeros((CANVAS[1], CANVAS[0], 3), dtype=np.uint8)


def _start_tracking(tracker: FaceTracker):
    circle = tracker.observe(BOX_LANDMARKS, CANVAS)
    return circle, tracker.snapshot().generation


def test_crop_region_inside_frame():
    rect = crop_region(FaceCircle(256.0, 144.0, 64.0), CANVAS)
    assert (rect.x, rect.y, rect.width, rect.height) == pytest.approx((192.0, 80.0, 128.0, 128.0))


def test_crop_region_clamps_origin_and_extent():
    rect = crop_region(FaceCircle(20.0, 460.0, 50.0), CANVAS)
    assert rect.x == 0.0
    assert rect.y == pytest.approx(410.0)
    assert rect.width == pytest.approx(100.0)
    assert rect.height == pytest.approx(70.0)
    assert not rect.is_empty


def test_crop_region_outside_frame_is_empty():
    rect = crop_region(FaceCircle(700.0, 100.0, 30.0), CANVAS)
    assert rect.is_empty
    assert extract_crop(_frame(), rect, 30.0) is None


def test_extract_crop_stretches_to_diameter():
    rect = crop_region(FaceCircle(20.0, 460.0, 50.0), CANVAS)
    crop = extract_crop(_frame(), rect, 50.0)
    assert crop.shape == (100, 100, 3)


def test_match_label_is_truncated_at_first_space():
    tracker = FaceTracker()
    executor = _ManualExecutor()
    recognizer = _StaticRecognizer("Face1 0.42")
    adapter = RecognitionAdapter(tracker, recognizer, executor=executor)
    circle, generation = _start_tracking(tracker)

    assert adapter.submit(_frame(), circle, generation)
    assert tracker.snapshot().face.label == UNKNOWN_LABEL
    executor.run(0)
    assert tracker.snapshot().face.label == "Face1"
    assert recognizer.crops[0].shape == (128, 128, 3)


def test_face_match_result_is_stored_as_name_only():
    tracker = FaceTracker()
    executor = _ManualExecutor()
    adapter = RecognitionAdapter(tracker, _StaticRecognizer(FaceMatch("Face2", 0.31)), executor=executor)
    circle, generation = _start_tracking(tracker)
    adapter.submit(_frame(), circle, generation)
    executor.run(0)
    assert tracker.snapshot().face.label == "Face2"


def test_no_match_resets_label_to_unknown():
    tracker = FaceTracker()
    executor = _ManualExecutor()
    adapter = RecognitionAdapter(tracker, _StaticRecognizer(None), executor=executor)
    circle, generation = _start_tracking(tracker)
    tracker.merge_label(generation, "Face1")
    adapter.submit(_frame(), circle, generation)
    executor.run(0)
    assert tracker.snapshot().face.label == UNKNOWN_LABEL


def test_stale_result_is_discarded_after_track_reset():
    tracker = FaceTracker()
    executor = _ManualExecutor()
    adapter = RecognitionAdapter(tracker, _StaticRecognizer("Face1 0.42"), executor=executor)
    circle, generation = _start_tracking(tracker)
    assert adapter.submit(_frame(), circle, generation)

    tracker.observe(None, CANVAS)
    tracker.observe(BOX_LANDMARKS, CANVAS)
    executor.run(0)

    state = tracker.snapshot()
    assert state.generation == generation + 1
    assert state.face.label == UNKNOWN_LABEL
    assert not adapter.busy


def test_result_after_track_lost_is_discarded():
    tracker = FaceTracker()
    executor = _ManualExecutor()
    adapter = RecognitionAdapter(tracker, _StaticRecognizer("Face1 0.42"), executor=executor)
    circle, generation = _start_tracking(tracker)
    adapter.submit(_frame(), circle, generation)
    tracker.observe(None, CANVAS)
    executor.run(0)
    assert tracker.snapshot().face is None


def test_only_one_recognition_in_flight():
    tracker = FaceTracker()
    executor = _ManualExecutor()
    adapter = RecognitionAdapter(tracker, _StaticRecognizer("Face1"), executor=executor)
    circle, generation = _start_tracking(tracker)

    assert adapter.submit(_frame(), circle, generation)
    assert adapter.busy
    assert not adapter.submit(_frame(), circle, generation)
    assert adapter.skipped == 1
    assert len(executor.jobs) == 1

    executor.run(0)
    assert not adapter.busy
    assert adapter.submit(_frame(), circle, generation)
    assert len(executor.jobs) == 2


def test_recognition_failure_counts_as_no_match():
    tracker = FaceTracker()
    executor = _ManualExecutor()
    adapter = RecognitionAdapter(tracker, _FailingRecognizer(), executor=executor)
    circle, generation = _start_tracking(tracker)
    tracker.merge_label(generation, "Face2")
    adapter.submit(_frame(), circle, generation)
    executor.run(0)
    assert tracker.snapshot().face.label == UNKNOWN_LABEL
    assert not adapter.busy


def test_slow_recognition_counts_as_no_match():
    ticks = iter([0.0, 5.0])
    tracker = FaceTracker()
    executor = _ManualExecutor()
    adapter = RecognitionAdapter(
        tracker,
        _StaticRecognizer("Face1"),
        executor=executor,
        timeout_s=1.0,
        clock=lambda: next(ticks),
    )
    circle, generation = _start_tracking(tracker)
    tracker.merge_label(generation, "Face2")
    adapter.submit(_frame(), circle, generation)
    executor.run(0)
    assert tracker.snapshot().face.label == UNKNOWN_LABEL


def test_degenerate_crop_is_not_submitted():
    tracker = FaceTracker()
    executor = _ManualExecutor()
    adapter = RecognitionAdapter(tracker, _StaticRecognizer("Face1"), executor=executor)
    assert not adapter.submit(_frame(), FaceCircle(700.0, 100.0, 30.0), 1)
    assert executor.jobs == []
    assert not adapter.busy


def test_submissions_skipped_until_recognizer_loaded():
    tracker = FaceTracker()
    executor = _ManualExecutor()
    adapter = RecognitionAdapter(tracker, executor=executor)
    circle, generation = _start_tracking(tracker)
    assert not adapter.ready
    assert not adapter.submit(_frame(), circle, generation)

    recognizer = _StaticRecognizer("Face1")
    recognizer.matcher = ["Face1"]
    adapter.load_async(lambda: recognizer)
    assert not adapter.ready
    executor.run(0)
    assert adapter.ready
    assert adapter.submit(_frame(), circle, generation)


def test_empty_gallery_leaves_recognition_disabled():
    tracker = FaceTracker()
    executor = _ManualExecutor()
    adapter = RecognitionAdapter(tracker, executor=executor)
    adapter.load_async(lambda: None)
    executor.run(0)
    assert not adapter.ready


def test_close_cancels_pending_recognition():
    tracker = FaceTracker()
    executor = _ManualExecutor()
    adapter = RecognitionAdapter(tracker, _StaticRecognizer("Face1"), executor=executor)
    circle, generation = _start_tracking(tracker)
    adapter.submit(_frame(), circle, generation)
    adapter.close()
    future = executor.jobs[0][0]
    assert future.cancelled()
    assert tracker.snapshot().face.label == UNKNOWN_LABEL


def test_label_with_parentheses_survives_merge():
    tracker = FaceTracker()
    executor = _ManualExecutor()
    adapter = RecognitionAdapter(tracker, _StaticRecognizer(FaceMatch("Bob(2)", 0.2)), executor=executor)
    circle, generation = _start_tracking(tracker)
    adapter.submit(_frame(), circle, generation)
    executor.run(0)
    assert tracker.snapshot().face.label == "Bob(2)"


def test_face_recognizer_describes_crop_and_matches_gallery():
    class _Describer:
        def describe(self, crop):
            return np.array([0.9, 0.1], dtype=np.float32) if crop.any() else None

    matcher = GalleryMatcher({"Face1": [np.array([1.0, 0.0])], "Face2": [np.array([0.0, 1.0])]})
    recognizer = FaceRecognizer(_Describer(), matcher)
    assert recognizer.recognize(np.ones((8, 8, 3), dtype=np.uint8)).label == "Face1"
    assert recognizer.recognize(np.zeros((8, 8, 3), dtype=np.uint8)) is None
