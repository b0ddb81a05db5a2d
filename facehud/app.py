"""Host application: camera capture, landmark callback and the render loop."""

from __future__ import annotations

import logging
import threading
import time
from functools import partial
from typing import Callable, Optional

import cv2
import numpy as np

from facehud.config import HudConfig
from facehud.detectors.face_retina import RetinaFaceDetector
from facehud.detectors.landmarks_mesh import FaceLandmarkSource
from facehud.recognition.embed_arcface import ArcFaceEmbedder, FaceDescriber
from facehud.recognition.gallery import load_known_faces
from facehud.recognition.matcher import GalleryMatcher
from facehud.recognition.worker import FaceRecognizer, RecognitionAdapter
from facehud.tracking.smoother import FaceTracker, TemporalSmoother
from facehud.types import LandmarkSet, Size, TrackerState
from facehud.viz.overlay import CanvasSurface, Compositor

LOGGER = logging.getLogger("facehud.app")

QUIT_KEYS = {ord("q"), 27}


def build_recognizer(config: HudConfig) -> Optional[FaceRecognizer]:
    """Load models and the known-face gallery; ``None`` when the gallery is empty."""
    detector = RetinaFaceDetector(providers=config.providers, det_size=config.det_size)
    embedder = ArcFaceEmbedder(model_path=config.arcface_model, providers=config.providers)
    describer = FaceDescriber(detector, embedder)
    gallery = load_known_faces(config.known_face_labels, config.known_faces_dir, describer)
    if not gallery:
        return None
    matcher = GalleryMatcher(gallery, match_threshold=config.match_threshold)
    return FaceRecognizer(describer, matcher)


class HudSession:
    """Connects landmark results, the tracker, recognition and the compositor."""

    def __init__(
        self,
        config: HudConfig,
        canvas_size: Size,
        recognition: Optional[RecognitionAdapter] = None,
        tracker: Optional[FaceTracker] = None,
    ) -> None:
        self.canvas_size = canvas_size
        self.tracker = tracker or FaceTracker(TemporalSmoother(config.smooth_factor))
        self.recognition = recognition
        self.compositor = Compositor(
            brightness_gain=config.brightness_gain,
            brightness_bias=config.brightness_bias,
            warning_text=config.warning_text,
            mirror_hud=config.mirror_hud,
        )
        self.surface = CanvasSurface(canvas_size)
        self._frame: Optional[np.ndarray] = None
        self._frame_lock = threading.Lock()

    def on_landmarks(self, landmarks: Optional[LandmarkSet], frame_bgr: np.ndarray) -> None:
        circle = self.tracker.observe(landmarks, self.canvas_size)
        if circle is None or self.recognition is None:
            return
        self.recognition.submit(frame_bgr, circle, self.tracker.snapshot().generation)

    def update_frame(self, frame_bgr: np.ndarray) -> None:
        with self._frame_lock:
            self._frame = frame_bgr

    def snapshot(self) -> TrackerState:
        return self.tracker.snapshot()

    def render_frame(self) -> np.ndarray:
        with self._frame_lock:
            frame = self._frame
        self.compositor.render(self.surface, frame, self.tracker.snapshot())
        return self.surface.buffer


class HudApp:
    def __init__(
        self,
        config: HudConfig,
        landmark_source_factory: Callable[..., FaceLandmarkSource] = FaceLandmarkSource,
        recognizer_loader: Optional[Callable[[], Optional[FaceRecognizer]]] = None,
    ) -> None:
        self.config = config
        self.landmark_source_factory = landmark_source_factory
        self.recognizer_loader = recognizer_loader or partial(build_recognizer, config)
        self.session: Optional[HudSession] = None
        self._stop = threading.Event()

    def open_camera(self):
        cap = cv2.VideoCapture(self.config.camera_index)
        if not cap.isOpened():
            cap.release()
            raise RuntimeError(f"Unable to open camera {self.config.camera_index}")
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.config.frame_width)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.config.frame_height)
        ok, frame = cap.read()
        if not ok or frame is None:
            cap.release()
            raise RuntimeError(f"Camera {self.config.camera_index} opened but returned no frames")
        return cap, frame

    def stop(self) -> None:
        self._stop.set()

    def run(self) -> None:
        cap, first_frame = self.open_camera()
        height, width = first_frame.shape[:2]
        LOGGER.info("Camera %s opened at %dx%d", self.config.camera_index, width, height)

        tracker = FaceTracker(TemporalSmoother(self.config.smooth_factor))
        recognition = RecognitionAdapter(tracker, timeout_s=self.config.recognition_timeout_s)
        session = HudSession(self.config, (width, height), recognition=recognition, tracker=tracker)
        session.update_frame(first_frame)
        self.session = session
        source = None
        reader = None
        self._stop.clear()
        try:
            recognition.load_async(self.recognizer_loader)
            source = self.landmark_source_factory(
                self.config.landmarker_model,
                session.on_landmarks,
                min_detection_confidence=self.config.min_detection_confidence,
                min_tracking_confidence=self.config.min_tracking_confidence,
            )
            reader = threading.Thread(
                target=self._read_frames,
                args=(cap, session, source),
                name="facehud-capture",
                daemon=True,
            )
            reader.start()
            self._render_loop(session, reader)
        finally:
            self._stop.set()
            if reader is not None:
                reader.join(timeout=1.0)
            cap.release()
            if source is not None:
                source.close()
            recognition.close()
            cv2.destroyAllWindows()
            LOGGER.info("HUD stopped")

    def _read_frames(self, cap, session: HudSession, source: FaceLandmarkSource) -> None:
        while not self._stop.is_set():
            ok, frame = cap.read()
            if not ok or frame is None:
                LOGGER.warning("Camera stream ended")
                self._stop.set()
                break
            session.update_frame(frame)
            try:
                source.send(frame, int(time.monotonic() * 1000))
            except Exception as exc:  # noqa: BLE001 - a failed frame means no face
                LOGGER.debug("Landmark source failed on frame: %s", exc)
                session.on_landmarks(None, frame)

    def _render_loop(self, session: HudSession, reader: threading.Thread) -> None:
        title = self.config.window_title
        while not self._stop.is_set():
            if not reader.is_alive():
                LOGGER.error("Capture thread exited unexpectedly; stopping HUD")
                break
            cv2.imshow(title, session.render_frame())
            key = cv2.waitKey(1) & 0xFF
            if key in QUIT_KEYS:
                LOGGER.info("Quit requested")
                break
