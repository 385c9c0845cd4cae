# src/posecanvas/core/__init__.py
