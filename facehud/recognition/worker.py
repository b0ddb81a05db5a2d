"""Out-of-band identity recognition for the tracked face."""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from functools import partial
from typing import Callable, Optional

import cv2
import numpy as np

from facehud.recognition.embed_arcface import FaceDescriber
from facehud.recognition.matcher import FaceMatch, GalleryMatcher, normalize_label
from facehud.tracking.smoother import FaceTracker
from facehud.types import CropRect, FaceCircle, Size

LOGGER = logging.getLogger("facehud.recognition.worker")


def crop_region(circle: FaceCircle, video_size: Size) -> CropRect:
    """Square ``2r x 2r`` source rectangle around the circle, clamped to the video."""
    width, height = video_size
    side = circle.radius * 2.0
    sx = max(circle.center_x - circle.radius, 0.0)
    sy = max(circle.center_y - circle.radius, 0.0)
    sw = min(side, width - sx)
    sh = min(side, height - sy)
    return CropRect(sx, sy, sw, sh)


def extract_crop(frame: np.ndarray, rect: CropRect, radius: float) -> Optional[np.ndarray]:
    """Copy ``rect`` out of ``frame`` and stretch it to a ``2r x 2r`` image."""
    if rect.is_empty:
        return None
    x1, y1, x2, y2 = rect.as_slice_bounds()
    region = frame[max(0, y1) : max(0, y2), max(0, x1) : max(0, x2)]
    if region.size == 0:
        return None
    side = max(1, int(round(radius * 2.0)))
    return cv2.resize(region, (side, side), interpolation=cv2.INTER_LINEAR)


class FaceRecognizer:
    """Detect, embed and match the face inside a crop."""

    def __init__(self, describer: FaceDescriber, matcher: GalleryMatcher) -> None:
        self.describer = describer
        self.matcher = matcher

    def recognize(self, crop: np.ndarray) -> Optional[FaceMatch]:
        descriptor = self.describer.describe(crop)
        if descriptor is None:
            return None
        return self.matcher.best_match(descriptor)


class RecognitionAdapter:
    """Submits crops for recognition and merges finished labels into the tracker.

    At most one recognition is in flight; frames arriving meanwhile are
    skipped. Each submission is stamped with the tracker generation it was
    taken from so results for a face that has since been lost are dropped.
    """

    def __init__(
        self,
        tracker: FaceTracker,
        recognizer: Optional[FaceRecognizer] = None,
        executor: Optional[Executor] = None,
        timeout_s: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.tracker = tracker
        self.recognizer = recognizer
        self.timeout_s = timeout_s
        self._clock = clock
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="facehud-recognition")
        self._pending: Optional[Future] = None
        self._lock = threading.Lock()
        self.submitted = 0
        self.skipped = 0

    @property
    def ready(self) -> bool:
        return self.recognizer is not None

    @property
    def busy(self) -> bool:
        return self._pending is not None

    def load_async(self, loader: Callable[[], Optional[FaceRecognizer]]) -> Future:
        """Build the recognizer in the background; submissions are skipped until then."""

        def _install(future: Future) -> None:
            if future.cancelled():
                return
            exc = future.exception()
            if exc is not None:
                LOGGER.error("Recognition disabled: gallery failed to load: %s", exc)
                return
            recognizer = future.result()
            if recognizer is None:
                LOGGER.warning("Recognition disabled: no known faces available")
                return
            self.recognizer = recognizer
            LOGGER.info("Recognition ready with %d known faces", len(recognizer.matcher))

        future = self._executor.submit(loader)
        future.add_done_callback(_install)
        return future

    def submit(self, frame: np.ndarray, circle: FaceCircle, generation: int) -> bool:
        """Queue recognition of the face around ``circle``; never blocks on the result."""
        recognizer = self.recognizer
        if recognizer is None:
            return False
        with self._lock:
            if self._pending is not None:
                self.skipped += 1
                return False
            height, width = frame.shape[:2]
            rect = crop_region(circle, (width, height))
            crop = extract_crop(frame, rect, circle.radius)
            if crop is None:
                LOGGER.debug("Skipping degenerate crop %s for circle %s", rect, circle)
                return False
            started = self._clock()
            future = self._executor.submit(recognizer.recognize, crop)
            self._pending = future
            self.submitted += 1
        future.add_done_callback(partial(self._on_done, generation, started))
        return True

    def _on_done(self, generation: int, started: float, future: Future) -> None:
        with self._lock:
            if self._pending is future:
                self._pending = None
        if future.cancelled():
            return
        elapsed = self._clock() - started
        exc = future.exception()
        if exc is not None:
            LOGGER.warning("Recognition failed (generation=%d): %s", generation, exc)
            match = None
        elif self.timeout_s is not None and elapsed > self.timeout_s:
            LOGGER.warning("Recognition timed out after %.2fs (limit %.2fs)", elapsed, self.timeout_s)
            match = None
        else:
            match = future.result()
        label = normalize_label(match)
        self.tracker.merge_label(generation, label)

    def close(self) -> None:
        with self._lock:
            pending, self._pending = self._pending, None
        if pending is not None:
            pending.cancel()
        if self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)
        LOGGER.info("Recognition stopped submitted=%d skipped=%d", self.submitted, self.skipped)
