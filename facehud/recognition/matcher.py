"""Cosine-distance matcher over a small labeled descriptor gallery."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import numpy as np

from facehud.recognition.embed_arcface import descriptor_distance, l2_normalize
from facehud.types import UNKNOWN_LABEL

LOGGER = logging.getLogger("facehud.recognition.matcher")


@dataclass(frozen=True)
class FaceMatch:
    label: str
    distance: float

    def __str__(self) -> str:
        return f"{self.label} ({self.distance:.2f})"


def _as_descriptor(vec) -> np.ndarray:
    return l2_normalize(np.asarray(vec, dtype=np.float32).reshape(-1))


def normalize_label(raw: Optional[object]) -> str:
    """Reduce a matcher result to a bare identity label.

    Anything after the first whitespace is dropped, so ``"Face1 0.42"``
    becomes ``"Face1"`` while ``"Bob(2)"`` is kept whole. ``None``, empty
    strings and the matcher's own "unknown" marker become ``UNKNOWN_LABEL``.
    """
    if raw is None:
        return UNKNOWN_LABEL
    parts = str(raw).split(maxsplit=1)
    label = parts[0] if parts else ""
    if not label or label.lower() == UNKNOWN_LABEL.lower():
        return UNKNOWN_LABEL
    return label


class GalleryMatcher:
    """Best-match lookup against per-label reference descriptors.

    Each label scores the mean cosine distance to its descriptors; the lowest
    score wins and is accepted when it is strictly below ``match_threshold``.
    The default of 0.5 accepts faces whose mean similarity exceeds 0.5.
    """

    def __init__(self, gallery: Dict[str, Sequence[np.ndarray]], match_threshold: float = 0.5) -> None:
        if match_threshold <= 0.0:
            raise ValueError(f"match_threshold must be positive, got {match_threshold}")
        self.gallery: Dict[str, List[np.ndarray]] = {
            label: [_as_descriptor(d) for d in descriptors]
            for label, descriptors in gallery.items()
            if len(descriptors) > 0
        }
        self.match_threshold = match_threshold

    def __len__(self) -> int:
        return len(self.gallery)

    @property
    def labels(self) -> List[str]:
        return list(self.gallery.keys())

    def distances(self, descriptor: np.ndarray) -> List[FaceMatch]:
        """Score every label, closest first, without applying the threshold."""
        descriptor = _as_descriptor(descriptor)
        scored = [
            FaceMatch(label, float(np.mean([descriptor_distance(ref, descriptor) for ref in refs])))
            for label, refs in self.gallery.items()
        ]
        scored.sort(key=lambda match: match.distance)
        return scored

    def best_match(self, descriptor: np.ndarray) -> Optional[FaceMatch]:
        scored = self.distances(descriptor)
        if not scored:
            return None
        best = scored[0]
        if best.distance >= self.match_threshold:
            LOGGER.debug("No match: closest %s above threshold %.2f", best, self.match_threshold)
            return None
        return best
