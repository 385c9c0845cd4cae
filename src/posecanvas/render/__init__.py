# src/posecanvas/render/__init__.py
