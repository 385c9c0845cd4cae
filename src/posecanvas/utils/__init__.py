# src/posecanvas/utils/__init__.py
