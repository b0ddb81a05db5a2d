"""Face descriptors: ArcFace feature extraction and the distance they are compared with.

A descriptor is a unit-length ArcFace feature. Two descriptors are compared by
cosine distance, ``1 - dot(a, b)``, which is ``0`` for the same direction and
``2`` for opposite ones. The matcher threshold is expressed in that distance.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional, Sequence, Tuple

import numpy as np

from facehud.detectors.face_retina import default_providers

LOGGER = logging.getLogger("facehud.recognition.descriptor")

FALLBACK_PACK = "buffalo_l"


def l2_normalize(vec: np.ndarray, eps: float = 1e-6) -> np.ndarray:
    norm = np.linalg.norm(vec)
    if norm < eps:
        return vec
    return vec / norm


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    if a.shape != b.shape:
        raise ValueError(f"Descriptor shapes do not match: {a.shape} vs {b.shape}")
    return float(np.dot(a, b))


def descriptor_distance(a: np.ndarray, b: np.ndarray) -> float:
    """Cosine distance between two unit descriptors."""
    return 1.0 - cosine_similarity(a, b)


def _load_recognition_model(model_path: Optional[Path], providers: Tuple[str, ...]):
    from insightface.model_zoo import get_model

    if model_path is not None:
        model = get_model(str(model_path), providers=list(providers))
        if model is None:
            raise RuntimeError(f"insightface could not load an ArcFace model from {model_path}")
        return model

    # The recognition head of the model pack the detector already downloads.
    from insightface.app import FaceAnalysis

    analysis = FaceAnalysis(name=FALLBACK_PACK, allowed_modules=["detection", "recognition"], providers=list(providers))
    model = analysis.models.get("recognition")
    if model is None:
        raise RuntimeError(f"Model pack {FALLBACK_PACK} has no recognition model")
    return model


class ArcFaceEmbedder:
    """Raw ArcFace features for aligned 112x112 BGR faces.

    ``model_path`` points at an ArcFace ONNX file; without one the
    recognition model of the ``buffalo_l`` pack is used.
    """

    def __init__(self, model_path: Optional[Path] = None, providers: Optional[Sequence[str]] = None) -> None:
        if model_path is not None:
            model_path = Path(model_path).expanduser()
            if not model_path.exists():
                raise RuntimeError(f"ArcFace model not found: {model_path}")
        os.environ.setdefault("ORT_INTRA_OP_NUM_THREADS", "2")
        try:
            import insightface  # noqa: F401
        except ImportError as exc:  # pragma: no cover - import guard
            raise RuntimeError("insightface is required for recognition. Install it via `pip install insightface`.") from exc

        self.providers: Tuple[str, ...] = tuple(providers) if providers is not None else default_providers()
        self.model = _load_recognition_model(model_path, self.providers)
        self.model.prepare(ctx_id=0)
        LOGGER.info("ArcFace model ready source=%s providers=%s", model_path or FALLBACK_PACK, self.providers)

    def embed(self, aligned_face: np.ndarray) -> np.ndarray:
        return np.asarray(self.model.get_feat(aligned_face), dtype=np.float32).reshape(-1)


class FaceDescriber:
    """Turns an image into a descriptor: detect one face, align it, embed it."""

    def __init__(self, detector, embedder) -> None:
        self.detector = detector
        self.embedder = embedder

    def describe(self, image: np.ndarray) -> Optional[np.ndarray]:
        """Unit descriptor of the most prominent face, or ``None`` when no face is found."""
        detection = self.detector.detect_single(image)
        if detection is None:
            return None
        aligned = self.detector.align_to_112(image, detection)
        return l2_normalize(np.asarray(self.embedder.embed(aligned), dtype=np.float32).reshape(-1))
