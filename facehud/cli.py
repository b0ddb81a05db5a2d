"""Command-line entrypoint for the webcam HUD."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import List, Optional, Sequence

from facehud.app import HudApp
from facehud.config import HudConfig, load_config
from facehud.io_utils import setup_logging

LOGGER = logging.getLogger("facehud.cli")


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Mirrored webcam HUD with face tracking and recognition")
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Optional YAML config (see configs/hud.yaml)",
    )
    parser.add_argument("--camera-index", type=int, default=None, help="OpenCV capture device index")
    parser.add_argument(
        "--smooth-factor",
        type=float,
        default=None,
        help="Center prediction / radius blend weight in (0, 1]",
    )
    parser.add_argument(
        "--match-threshold",
        type=float,
        default=None,
        help="Maximum cosine distance (1 - similarity) accepted as a known face",
    )
    parser.add_argument(
        "--known-faces-dir",
        type=Path,
        default=None,
        help="Directory holding <label>.jpg gallery images",
    )
    parser.add_argument(
        "--labels",
        type=str,
        nargs="*",
        default=None,
        help="Known-face labels to preload, in order",
    )
    parser.add_argument(
        "--landmarker-model",
        type=Path,
        default=None,
        help="MediaPipe face_landmarker.task model asset",
    )
    parser.add_argument(
        "--arcface-model",
        type=Path,
        default=None,
        help="ArcFace ONNX model (defaults to the buffalo_l recognition model)",
    )
    parser.add_argument(
        "--providers",
        type=str,
        nargs="*",
        default=None,
        help="ONNX execution providers (overrides platform defaults)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    return parser.parse_args(argv)


def resolve_config(args: argparse.Namespace) -> HudConfig:
    config = load_config(args.config)
    return config.with_overrides(
        camera_index=args.camera_index,
        smooth_factor=args.smooth_factor,
        match_threshold=args.match_threshold,
        known_faces_dir=args.known_faces_dir,
        known_face_labels=args.labels,
        landmarker_model=args.landmarker_model,
        arcface_model=args.arcface_model,
        providers=tuple(args.providers) if args.providers else None,
    )


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(getattr(logging, args.log_level))
    try:
        config = resolve_config(args)
    except ValueError as exc:
        LOGGER.error("Invalid configuration: %s", exc)
        return 2
    try:
        HudApp(config).run()
    except RuntimeError as exc:
        LOGGER.error("HUD failed to start: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
