"""RetinaFace single-face detection and alignment for recognition crops."""

from __future__ import annotations

import logging
import os
import platform
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import cv2
import numpy as np

LOGGER = logging.getLogger("facehud.detectors.face")

ARCFACE_REFERENCE = np.array(
    [
        [38.2946, 51.6963],
        [73.5318, 51.5014],
        [56.0252, 71.7366],
        [41.5493, 92.3655],
        [70.7299, 92.2041],
    ],
    dtype=np.float32,
)
ALIGNED_SIZE = (112, 112)


def default_providers() -> Tuple[str, ...]:
    """Choose default ONNX providers based on platform."""
    system = platform.system()
    machine = platform.machine().lower()
    if system == "Darwin" and machine in {"arm64", "aarch64"}:
        return ("CoreMLExecutionProvider", "CPUExecutionProvider")
    return ("CPUExecutionProvider",)


@dataclass
class FaceDetection:
    bbox: Tuple[float, float, float, float]
    score: float
    landmarks: Optional[np.ndarray] = None


class RetinaFaceDetector:
    """Wrapper around the InsightFace RetinaFace detector."""

    def __init__(
        self,
        providers: Optional[Sequence[str]] = None,
        det_size: Tuple[int, int] = (320, 320),
        det_thresh: float = 0.5,
    ) -> None:
        os.environ.setdefault("OMP_NUM_THREADS", "2")
        os.environ.setdefault("ORT_INTRA_OP_NUM_THREADS", "2")
        try:
            from insightface.app import FaceAnalysis
        except ImportError as exc:  # pragma: no cover - import guard
            raise RuntimeError(
                "insightface is required for RetinaFaceDetector. "
                "Install it via `pip install insightface`."
            ) from exc

        self.det_size = tuple(det_size)
        self.det_thresh = det_thresh
        self.providers = tuple(providers) if providers is not None else default_providers()
        self.app = FaceAnalysis(name="buffalo_l", allowed_modules=["detection"], providers=list(self.providers))
        self.app.prepare(ctx_id=0, det_size=self.det_size, det_thresh=det_thresh)
        LOGGER.info(
            "Loaded RetinaFace detector det_size=%s det_thresh=%.2f providers=%s",
            self.det_size,
            det_thresh,
            self.providers,
        )

    def detect_single(self, image: np.ndarray) -> Optional[FaceDetection]:
        """Return the highest-scoring face in ``image``, or ``None``."""
        if image is None or image.size == 0:
            return None
        faces = self.app.get(image)
        best: Optional[FaceDetection] = None
        for face in faces:
            score = float(face.det_score)
            if score < self.det_thresh:
                continue
            if best is None or score > best.score:
                landmarks = np.asarray(face.kps, dtype=np.float32) if face.kps is not None else None
                best = FaceDetection(
                    bbox=tuple(float(v) for v in face.bbox),  # type: ignore[arg-type]
                    score=score,
                    landmarks=landmarks,
                )
        return best

    @staticmethod
    def align_to_112(image: np.ndarray, detection: Optional[FaceDetection]) -> np.ndarray:
        """Align a face to 112x112 using its five landmarks, else crop and resize."""
        if detection is None:
            return cv2.resize(image, ALIGNED_SIZE, interpolation=cv2.INTER_LINEAR)
        landmarks = detection.landmarks
        if landmarks is None or landmarks.shape != (5, 2):
            crop = crop_to_bbox(image, detection.bbox)
            return cv2.resize(crop, ALIGNED_SIZE, interpolation=cv2.INTER_LINEAR)
        trans = cv2.estimateAffinePartial2D(landmarks.astype(np.float32), ARCFACE_REFERENCE, method=cv2.LMEDS)[0]
        if trans is None:
            crop = crop_to_bbox(image, detection.bbox)
            return cv2.resize(crop, ALIGNED_SIZE, interpolation=cv2.INTER_LINEAR)
        return cv2.warpAffine(image, trans, ALIGNED_SIZE, borderValue=0.0)


def crop_to_bbox(image: np.ndarray, bbox: Tuple[float, float, float, float]) -> np.ndarray:
    x1, y1, x2, y2 = [int(round(v)) for v in bbox]
    if x2 <= x1 or y2 <= y1:
        return image.copy()
    crop = image[max(0, y1) : max(0, y2), max(0, x1) : max(0, x2)]
    if crop.size == 0:
        return image.copy()
    return crop
