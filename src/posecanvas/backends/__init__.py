# src/posecanvas/backends/__init__.py
