"""MediaPipe Face Landmarker adapter producing one normalized landmark set per frame."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Optional

import cv2
import numpy as np

LOGGER = logging.getLogger("facehud.detectors.landmarks")

# Receives (landmarks or None, frame in BGR); landmarks is an (N, 2) array in [0, 1].
LandmarkCallback = Callable[[Optional[np.ndarray], np.ndarray], None]


def landmarks_from_result(result) -> Optional[np.ndarray]:
    """Extract the first face's (x, y) landmarks from a Face Landmarker result."""
    faces = getattr(result, "face_landmarks", None)
    if not faces:
        return None
    points = np.asarray([(lm.x, lm.y) for lm in faces[0]], dtype=np.float32)
    if points.size == 0:
        return None
    return points


class FaceLandmarkSource:
    """Wraps the Face Landmarker in live-stream mode.

    ``send`` returns immediately; results are delivered on MediaPipe's own
    thread through ``on_landmarks``.
    """

    def __init__(
        self,
        model_path: Path,
        on_landmarks: LandmarkCallback,
        min_detection_confidence: float = 0.4,
        min_tracking_confidence: float = 0.4,
    ) -> None:
        try:
            import mediapipe as mp
            from mediapipe.tasks import python as mp_python
            from mediapipe.tasks.python import vision
        except ImportError as exc:  # pragma: no cover - import guard
            raise RuntimeError(
                "mediapipe is required for FaceLandmarkSource. "
                "Install it via `pip install mediapipe`."
            ) from exc

        model_path = Path(model_path).expanduser()
        if not model_path.exists():
            raise RuntimeError(f"Face Landmarker model not found: {model_path}")

        self._mp = mp
        self._on_landmarks = on_landmarks
        self._last_timestamp_ms = -1
        options = vision.FaceLandmarkerOptions(
            base_options=mp_python.BaseOptions(model_asset_path=str(model_path)),
            running_mode=vision.RunningMode.LIVE_STREAM,
            num_faces=1,
            min_face_detection_confidence=min_detection_confidence,
            min_face_presence_confidence=min_detection_confidence,
            min_tracking_confidence=min_tracking_confidence,
            result_callback=self._handle_result,
        )
        self._landmarker = vision.FaceLandmarker.create_from_options(options)
        LOGGER.info(
            "Loaded Face Landmarker model=%s det_conf=%.2f track_conf=%.2f",
            model_path,
            min_detection_confidence,
            min_tracking_confidence,
        )

    def send(self, frame_bgr: np.ndarray, timestamp_ms: int) -> None:
        # Live-stream mode rejects non-increasing timestamps.
        timestamp_ms = max(int(timestamp_ms), self._last_timestamp_ms + 1)
        self._last_timestamp_ms = timestamp_ms
        rgb = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB)
        image = self._mp.Image(image_format=self._mp.ImageFormat.SRGB, data=rgb)
        self._landmarker.detect_async(image, timestamp_ms)

    def _handle_result(self, result, output_image, timestamp_ms: int) -> None:
        try:
            landmarks = landmarks_from_result(result)
        except Exception as exc:  # noqa: BLE001 - a bad result counts as no face
            LOGGER.debug("Landmark result at %sms unusable: %s", timestamp_ms, exc)
            landmarks = None
        frame_bgr = cv2.cvtColor(output_image.numpy_view(), cv2.COLOR_RGB2BGR)
        self._on_landmarks(landmarks, frame_bgr)

    def close(self) -> None:
        self._landmarker.close()
        LOGGER.info("Face Landmarker closed")
