# src/posecanvas/utils/resources.py
import os
import sys


def project_root() -> str:
    # Repository root when running from source (src/posecanvas/utils -> ../../..)
    here = os.path.dirname(os.path.abspath(__file__))
    return os.path.abspath(os.path.join(here, "..", "..", ".."))


def resource_path(rel_path: str) -> str:
    """Resolve a bundled resource for both source checkouts and PyInstaller builds.

    Absolute paths are returned unchanged. Relative paths are looked up under the
    PyInstaller extraction dir (``sys._MEIPASS``) when frozen, then under the
    current working directory, and finally under the project root.
    """
    if os.path.isabs(rel_path):
        return rel_path
    meipass = getattr(sys, "_MEIPASS", None)  # set only inside a frozen bundle
    candidates = []
    if meipass:
        candidates.append(os.path.join(meipass, rel_path))
    candidates.append(os.path.join(os.getcwd(), rel_path))
    candidates.append(os.path.join(project_root(), rel_path))
    for p in candidates:
        if os.path.exists(p):
            return p
    return candidates[-1]  # not found anywhere: report the project-relative path
