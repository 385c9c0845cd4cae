# src/posecanvas/ui/qt_image.py
import cv2
import numpy as np
from PySide6 import QtGui


def cvimg_to_qt(frame_bgr: np.ndarray) -> QtGui.QImage:
    # BGR ndarray -> QImage (deep copy so the numpy buffer can be reused)
    rgb = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB)
    h, w = rgb.shape[:2]
    return QtGui.QImage(rgb.data, w, h, 3 * w, QtGui.QImage.Format_RGB888).copy()
