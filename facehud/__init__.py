"""
Core package init for facehud.

Real-time mirrored webcam HUD with single-face tracking and recognition.
"""

__all__ = [
    "app",
    "config",
    "detectors",
    "recognition",
    "tracking",
    "viz",
    "io_utils",
    "types",
]
