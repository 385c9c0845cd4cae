# src/posecanvas/ui/__init__.py
