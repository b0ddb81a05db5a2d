"""Bounding-circle estimation and temporal smoothing for the single tracked face."""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from typing import Optional

import numpy as np

from facehud.types import (
    UNKNOWN_LABEL,
    FaceCircle,
    LandmarkSet,
    Size,
    SmootherState,
    TrackedFace,
    TrackerState,
)

LOGGER = logging.getLogger("facehud.tracking.smoother")


def estimate_circle(landmarks: LandmarkSet, canvas_size: Size) -> FaceCircle:
    """Convert normalized landmarks into a bounding circle in canvas pixels.

    The radius is half the larger box side, scaled by the canvas *width* for
    both axes. Non-square canvases therefore size the circle from the width.
    """
    points = np.asarray(landmarks, dtype=np.float64)
    if points.size == 0:
        raise ValueError("estimate_circle requires at least one landmark")
    points = points.reshape(len(points), -1)[:, :2]
    width, height = canvas_size
    min_x, min_y = points.min(axis=0)
    max_x, max_y = points.max(axis=0)
    center_x = (min_x + max_x) / 2.0 * width
    center_y = (min_y + max_y) / 2.0 * height
    radius = max(max_x - min_x, max_y - min_y) * width * 0.5
    return FaceCircle(float(center_x), float(center_y), float(radius))


class TemporalSmoother:
    """Pure Absent/Tracking transition function over ``TrackerState``."""

    def __init__(self, smooth_factor: float = 0.5) -> None:
        if not 0.0 < smooth_factor <= 1.0:
            raise ValueError(f"smooth_factor must be in (0, 1], got {smooth_factor}")
        self.smooth_factor = smooth_factor

    def step(self, state: TrackerState, circle: Optional[FaceCircle]) -> TrackerState:
        if circle is None:
            return self.reset(state)
        if state.face is None or state.smoother is None:
            return self._start(state, circle)
        return self._smooth(state, circle)

    def reset(self, state: TrackerState) -> TrackerState:
        if state.face is None:
            return state
        return TrackerState(face=None, smoother=None, generation=state.generation)

    def _start(self, state: TrackerState, circle: FaceCircle) -> TrackerState:
        generation = state.generation + 1
        face = TrackedFace(
            center=circle.center,
            radius=circle.radius,
            label=UNKNOWN_LABEL,
            generation=generation,
        )
        smoother = SmootherState(prev_center=face.center, prev_radius=face.radius)
        return TrackerState(face=face, smoother=smoother, generation=generation)

    def _smooth(self, state: TrackerState, circle: FaceCircle) -> TrackerState:
        k = self.smooth_factor
        prev_x, prev_y = state.smoother.prev_center
        velocity = ((circle.center_x - prev_x) * k, (circle.center_y - prev_y) * k)
        center = (prev_x + velocity[0], prev_y + velocity[1])
        radius = state.smoother.prev_radius * (1.0 - k) + circle.radius * k
        face = replace(state.face, center=center, radius=radius)
        smoother = SmootherState(prev_center=center, prev_radius=radius, velocity=velocity)
        return TrackerState(face=face, smoother=smoother, generation=state.generation)


class FaceTracker:
    """Single owner of the tracker state.

    Landmark callbacks and recognition completions arrive on different
    threads; both write through this object and the renderer only ever sees
    immutable snapshots.
    """

    def __init__(self, smoother: Optional[TemporalSmoother] = None) -> None:
        self.smoother = smoother or TemporalSmoother()
        self._state = TrackerState()
        self._lock = threading.Lock()

    def snapshot(self) -> TrackerState:
        return self._state

    def observe(self, landmarks: Optional[LandmarkSet], canvas_size: Size) -> Optional[FaceCircle]:
        """Advance the state machine with one frame of landmark output.

        Returns the instantaneous circle when the frame produced a usable
        face, else ``None``.
        """
        circle = None
        if landmarks is not None and len(landmarks) > 0:
            circle = estimate_circle(landmarks, canvas_size)
            if circle.radius <= 0.0:
                LOGGER.debug("Ignoring zero-extent landmark set at %s", circle.center)
                circle = None
        with self._lock:
            previous = self._state
            self._state = self.smoother.step(previous, circle)
            if previous.tracking != self._state.tracking:
                LOGGER.debug(
                    "Tracker %s -> %s (generation=%d)",
                    "tracking" if previous.tracking else "absent",
                    "tracking" if self._state.tracking else "absent",
                    self._state.generation,
                )
        return circle

    def merge_label(self, generation: int, label: str) -> bool:
        """Apply a recognition label if it still belongs to the current face."""
        with self._lock:
            state = self._state
            if state.face is None or state.generation != generation:
                LOGGER.debug(
                    "Discarding stale label %r (generation=%d current=%d tracking=%s)",
                    label,
                    generation,
                    state.generation,
                    state.tracking,
                )
                return False
            if state.face.label != label:
                LOGGER.debug("Label %r -> %r (generation=%d)", state.face.label, label, generation)
            self._state = replace(state, face=state.face.with_label(label))
            return True
