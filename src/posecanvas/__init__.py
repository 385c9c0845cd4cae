# src/posecanvas/__init__.py
"""Real-time pose estimation on a camera feed or a single image."""

__version__ = "0.1.0"
