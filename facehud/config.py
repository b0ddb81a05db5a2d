"""Runtime configuration for the HUD."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from facehud.io_utils import load_yaml, resolve_path

LOGGER = logging.getLogger("facehud.config")

_PATH_KEYS = ("known_faces_dir", "landmarker_model", "arcface_model")
_NULLABLE_KEYS = {"recognition_timeout_s", "providers", "arcface_model"}


@dataclass
class HudConfig:
    # Tracking
    smooth_factor: float = 0.5
    # Recognition
    match_threshold: float = 0.5
    known_face_labels: List[str] = field(default_factory=lambda: ["Face1", "Face2"])
    known_faces_dir: Path = Path("assets/known_faces")
    recognition_timeout_s: Optional[float] = None
    det_size: Tuple[int, int] = (320, 320)
    providers: Optional[Tuple[str, ...]] = None
    arcface_model: Optional[Path] = None
    # Camera / landmarks
    camera_index: int = 0
    frame_width: int = 640
    frame_height: int = 480
    landmarker_model: Path = Path("models/face_landmarker.task")
    min_detection_confidence: float = 0.4
    min_tracking_confidence: float = 0.4
    # Rendering
    brightness_gain: float = 1.2
    brightness_bias: float = 20.0
    warning_text: str = "Pattern Not Found"
    window_title: str = "facehud"
    mirror_hud: bool = False

    def __post_init__(self) -> None:
        missing = sorted(f.name for f in fields(self) if f.name not in _NULLABLE_KEYS and getattr(self, f.name) is None)
        if missing:
            raise ValueError(f"Config values may not be null: {missing}")
        self.known_faces_dir = Path(self.known_faces_dir)
        self.landmarker_model = Path(self.landmarker_model)
        if self.arcface_model is not None:
            self.arcface_model = Path(self.arcface_model)
        if isinstance(self.known_face_labels, str):
            raise ValueError(f"known_face_labels must be a list, got {self.known_face_labels!r}")
        self.known_face_labels = [str(label) for label in self.known_face_labels]
        try:
            self.det_size = tuple(int(v) for v in self.det_size)  # type: ignore[assignment]
        except TypeError as exc:
            raise ValueError(f"det_size must be (width, height), got {self.det_size!r}") from exc
        if self.providers is not None:
            self.providers = tuple(self.providers)
        self.validate()

    def validate(self) -> None:
        if not 0.0 < self.smooth_factor <= 1.0:
            raise ValueError(f"smooth_factor must be in (0, 1], got {self.smooth_factor}")
        if self.match_threshold <= 0.0:
            raise ValueError(f"match_threshold must be positive, got {self.match_threshold}")
        if self.recognition_timeout_s is not None and self.recognition_timeout_s <= 0.0:
            raise ValueError("recognition_timeout_s must be positive when set")
        if len(self.det_size) != 2:
            raise ValueError(f"det_size must be (width, height), got {self.det_size}")
        if self.frame_width <= 0 or self.frame_height <= 0:
            raise ValueError("frame_width and frame_height must be positive")

    def with_overrides(self, **overrides: Any) -> "HudConfig":
        """Return a copy with every non-``None`` override applied."""
        applied = {key: value for key, value in overrides.items() if value is not None}
        unknown = set(applied) - _field_names()
        if unknown:
            raise ValueError(f"Unknown config keys: {sorted(unknown)}")
        if applied:
            LOGGER.debug("Applying config overrides %s", applied)
        return replace(self, **applied)


def _field_names() -> set:
    return {f.name for f in fields(HudConfig)}


def config_from_dict(data: Dict[str, Any], base_dir: Optional[Path] = None) -> HudConfig:
    """Build a config from a mapping, resolving relative paths against ``base_dir``."""
    unknown = set(data) - _field_names()
    if unknown:
        raise ValueError(f"Unknown config keys: {sorted(unknown)}")
    values = dict(data)
    for key in _PATH_KEYS:
        if values.get(key) is not None:
            values[key] = resolve_path(str(values[key]), base_dir)
    return HudConfig(**values)


def load_config(path: Optional[Path]) -> HudConfig:
    """Load a YAML config file; ``None`` yields the defaults."""
    if path is None:
        return HudConfig()
    data = load_yaml(path)
    config = config_from_dict(data, base_dir=path.parent)
    LOGGER.info(
        "Loaded config %s smooth_factor=%.2f match_threshold=%.2f labels=%s",
        path,
        config.smooth_factor,
        config.match_threshold,
        config.known_face_labels,
    )
    return config
