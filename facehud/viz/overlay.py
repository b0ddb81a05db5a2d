"""HUD compositing: mirrored, brightened video with the tracked-face annotation."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import cv2
import numpy as np

from facehud.types import Point, Size, TrackerState

LOGGER = logging.getLogger("facehud.viz.overlay")

Color = Tuple[int, int, int]

WHITE: Color = (255, 255, 255)
RED: Color = (0, 0, 255)


def brighten(frame: np.ndarray, gain: float = 1.2, bias: float = 20.0) -> np.ndarray:
    """Apply ``min(c * gain + bias, 255)`` to the colour channels; alpha is left alone."""
    out = frame.copy()
    color = out[..., :3] if frame.ndim == 3 else out
    boosted = np.minimum(np.rint(color.astype(np.float32) * gain + bias), 255.0)
    color[...] = np.maximum(boosted, 0.0).astype(frame.dtype)
    return out


class CanvasSurface:
    """Drawing surface backed by a BGR(A) numpy frame buffer."""

    def __init__(self, size: Size, channels: int = 3) -> None:
        width, height = size
        self.size = (int(width), int(height))
        self.buffer = np.zeros((self.size[1], self.size[0], channels), dtype=np.uint8)

    @property
    def width(self) -> int:
        return self.size[0]

    @property
    def height(self) -> int:
        return self.size[1]

    def clear(self) -> None:
        self.buffer[...] = 0

    def draw_image(self, image: np.ndarray, mirrored: bool = True) -> None:
        if image.shape[1] != self.width or image.shape[0] != self.height:
            image = cv2.resize(image, self.size, interpolation=cv2.INTER_LINEAR)
        if mirrored:
            image = cv2.flip(image, 1)
        if image.ndim == 2:
            image = cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
        channels = min(self.buffer.shape[2], image.shape[2])
        self.buffer[..., :channels] = image[..., :channels]

    def get_pixels(self) -> np.ndarray:
        return self.buffer.copy()

    def put_pixels(self, pixels: np.ndarray) -> None:
        if pixels.shape != self.buffer.shape:
            raise ValueError(f"Pixel buffer shape {pixels.shape} does not match surface {self.buffer.shape}")
        self.buffer[...] = pixels

    def stroke_circle(self, center: Point, radius: float, color: Color = WHITE, thickness: int = 2) -> None:
        cx, cy = center
        cv2.circle(
            self.buffer,
            (int(round(cx)), int(round(cy))),
            max(0, int(round(radius))),
            color,
            thickness,
            lineType=cv2.LINE_AA,
        )

    def text_size(self, text: str, scale: float = 0.7, thickness: int = 2) -> Tuple[int, int]:
        (w, h), _ = cv2.getTextSize(text, cv2.FONT_HERSHEY_SIMPLEX, scale, thickness)
        return w, h

    def draw_text(
        self,
        text: str,
        position: Point,
        color: Color = WHITE,
        scale: float = 0.7,
        thickness: int = 2,
    ) -> None:
        x, y = position
        cv2.putText(
            self.buffer,
            text,
            (int(round(x)), int(round(y))),
            cv2.FONT_HERSHEY_SIMPLEX,
            scale,
            color,
            thickness,
            lineType=cv2.LINE_AA,
        )


@dataclass
class HudStyle:
    circle_color: Color = WHITE
    circle_thickness: int = 2
    label_color: Color = WHITE
    label_scale: float = 0.7
    label_offset: Point = (-40.0, -10.0)
    warning_color: Color = RED
    warning_scale: float = 1.0
    text_thickness: int = 2


class Compositor:
    """Draws one HUD frame from the latest tracker snapshot."""

    def __init__(
        self,
        brightness_gain: float = 1.2,
        brightness_bias: float = 20.0,
        warning_text: str = "Pattern Not Found",
        mirror_hud: bool = False,
        style: Optional[HudStyle] = None,
    ) -> None:
        self.brightness_gain = brightness_gain
        self.brightness_bias = brightness_bias
        self.warning_text = warning_text
        self.mirror_hud = mirror_hud
        self.style = style or HudStyle()

    def render(self, surface: CanvasSurface, frame: Optional[np.ndarray], state: TrackerState) -> None:
        surface.clear()
        if frame is not None:
            surface.draw_image(frame, mirrored=True)
            surface.put_pixels(brighten(surface.get_pixels(), self.brightness_gain, self.brightness_bias))
        if state.face is not None:
            self._draw_face(surface, state)
        else:
            self._draw_warning(surface)

    def _draw_face(self, surface: CanvasSurface, state: TrackerState) -> None:
        face = state.face
        cx, cy = face.center
        if self.mirror_hud:
            cx = surface.width - cx
        style = self.style
        surface.stroke_circle((cx, cy), face.radius, style.circle_color, style.circle_thickness)
        dx, dy = style.label_offset
        surface.draw_text(
            face.label,
            (cx + dx, cy - face.radius + dy),
            style.label_color,
            style.label_scale,
            style.text_thickness,
        )

    def _draw_warning(self, surface: CanvasSurface) -> None:
        style = self.style
        text_w, text_h = surface.text_size(self.warning_text, style.warning_scale, style.text_thickness)
        position = ((surface.width - text_w) / 2.0, (surface.height + text_h) / 2.0)
        surface.draw_text(self.warning_text, position, style.warning_color, style.warning_scale, style.text_thickness)
