#!/usr/bin/env python3
"""CLI for running the mirrored webcam HUD."""

from __future__ import annotations

from facehud.cli import main


if __name__ == "__main__":
    raise SystemExit(main())
