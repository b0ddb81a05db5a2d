"""Common dataclasses and type aliases used across the facehud package."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional, Sequence, Tuple

UNKNOWN_LABEL = "Unknown"

# Normalized landmark point (x, y) in [0, 1] x [0, 1]
Point = Tuple[float, float]
LandmarkSet = Sequence[Point]
# Canvas / video size order: width, height (pixels)
Size = Tuple[int, int]


@dataclass(frozen=True)
class FaceCircle:
    """Instantaneous bounding circle of a landmark set in canvas pixels."""

    center_x: float
    center_y: float
    radius: float

    @property
    def center(self) -> Point:
        return self.center_x, self.center_y


@dataclass(frozen=True)
class TrackedFace:
    """Smoothed face circle plus the identity label shown on the HUD."""

    center: Point
    radius: float
    label: str = UNKNOWN_LABEL
    generation: int = 0

    def with_label(self, label: str) -> "TrackedFace":
        return replace(self, label=label)


@dataclass(frozen=True)
class SmootherState:
    prev_center: Point
    prev_radius: float
    velocity: Point = (0.0, 0.0)


@dataclass(frozen=True)
class TrackerState:
    """Read-only snapshot of the tracker handed to the renderer each frame."""

    face: Optional[TrackedFace] = None
    smoother: Optional[SmootherState] = None
    generation: int = 0

    @property
    def tracking(self) -> bool:
        return self.face is not None


@dataclass(frozen=True)
class CropRect:
    """Source rectangle (x, y, width, height) clamped to the video bounds."""

    x: float
    y: float
    width: float
    height: float

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def as_slice_bounds(self) -> Tuple[int, int, int, int]:
        """Return integer (x1, y1, x2, y2) suitable for numpy slicing."""
        x1 = int(round(self.x))
        y1 = int(round(self.y))
        x2 = int(round(self.x + self.width))
        y2 = int(round(self.y + self.height))
        return x1, y1, x2, y2
