"""Known-face gallery loading."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Sequence

import cv2
import numpy as np

from facehud.io_utils import find_label_image, list_images
from facehud.recognition.embed_arcface import FaceDescriber

LOGGER = logging.getLogger("facehud.recognition.gallery")


def _load_image(path: Path) -> np.ndarray:
    image = cv2.imread(str(path))
    if image is None:
        raise FileNotFoundError(f"Unable to read image: {path}")
    return image


def discover_labels(known_faces_dir: Path) -> List[str]:
    """Labels implied by the image file names in ``known_faces_dir``."""
    return [path.stem for path in list_images(known_faces_dir)]


def load_known_faces(
    labels: Sequence[str],
    known_faces_dir: Path,
    describer: FaceDescriber,
) -> Dict[str, List[np.ndarray]]:
    """Build the gallery from ``<known_faces_dir>/<label>.jpg`` images.

    Labels whose image is missing or has no detectable face are skipped.
    """
    known_faces_dir = Path(known_faces_dir)
    if not labels:
        labels = discover_labels(known_faces_dir)
        LOGGER.info("No labels configured; discovered %s in %s", labels, known_faces_dir)

    gallery: Dict[str, List[np.ndarray]] = {}
    for label in labels:
        path = find_label_image(known_faces_dir, label)
        if path is None:
            LOGGER.warning("No gallery image for %s under %s", label, known_faces_dir)
            continue
        try:
            image = _load_image(path)
        except FileNotFoundError as exc:
            LOGGER.warning("Skipping %s: %s", label, exc)
            continue
        descriptor = describer.describe(image)
        if descriptor is None:
            LOGGER.warning("No face detected in gallery image %s", path)
            continue
        gallery.setdefault(label, []).append(descriptor)

    LOGGER.info("Gallery loaded: %d/%d labels", len(gallery), len(labels))
    return gallery
