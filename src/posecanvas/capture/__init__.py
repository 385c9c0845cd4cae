# src/posecanvas/capture/__init__.py
