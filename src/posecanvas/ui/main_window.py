# src/posecanvas/ui/main_window.py
import os  # path helpers for the image picker
from typing import Optional  # type hints for clarity

import numpy as np  # frames are numpy arrays
from PySide6 import QtCore, QtGui, QtWidgets  # Qt UI framework (signals, widgets, etc.)
from PySide6.QtGui import QAction  # toolbar actions

# Global configuration values / constants
from ..config import WINDOW_TITLE, MODEL_IDS, MODEL_SPECS, IMAGE_FILE_FILTER, RunState
from ..core.controller import AppController, ControllerListener, FPS_IDLE_TEXT  # mode/state orchestration
from ..utils.logger import get_logger  # package logger
from .qt_image import cvimg_to_qt  # BGR ndarray -> QImage
from .scheduler import QtFrameScheduler  # per-frame callbacks on the Qt event loop

log = get_logger(__name__)


class _WindowListener(ControllerListener):
    # Forwards controller events into the window (keeps the controller Qt-free)
    def __init__(self, window: "MainWindow"):
        self.w = window

    def on_state(self, state): self.w.on_state_changed(state)
    def on_frame(self, image_bgr): self.w.show_frame(image_bgr)
    def on_fps(self, text): self.w.fps_label.setText(text)
    def on_loading(self, loading): self.w.on_loading(loading)
    def on_error(self, title, message): self.w.on_error(title, message)


class MainWindow(QtWidgets.QMainWindow):  # main application window (controls + view)
    def __init__(self, controller: Optional[AppController] = None):
        super().__init__()  # init base QMainWindow
        self.setWindowTitle(WINDOW_TITLE)  # set window title from config
        self.resize(960, 720)  # initial window size
        self.video_label = QtWidgets.QLabel("Press Start for the camera, or Select Image.")  # placeholder text
        self.video_label.setAlignment(QtCore.Qt.AlignCenter)  # center text / later used to show frames
        self.video_label.setMinimumSize(320, 240)  # keep the view usable when shrinking
        self.video_label.setStyleSheet("background-color: black; color: #cccccc;")  # black letterbox
        self.setCentralWidget(self.video_label)  # main central area is the video label
        self._last_frame: Optional[np.ndarray] = None  # last composited frame (rescaled on resize)

        self.controller = controller or AppController(QtFrameScheduler(self), listener=_WindowListener(self))
        if controller is not None:
            self.controller.listener = _WindowListener(self)
        self.build_ui()  # toolbar, status bar, shortcuts

    # ---------------- UI & toolbar ----------------
    def build_ui(self):
        self.status = self.statusBar()  # system status bar at bottom
        self.fps_label = QtWidgets.QLabel(FPS_IDLE_TEXT)  # live FPS readout
        self.fps_label.setStyleSheet("font-weight: bold; color: #00aaaa;")
        self.model_indicator = QtWidgets.QLabel("Model: -")  # active model label
        self.status.addPermanentWidget(self.model_indicator)  # right side of the status bar
        self.status.addPermanentWidget(self.fps_label)

        self.tb = self.addToolBar("Controls")  # top toolbar
        self.cmb_model = QtWidgets.QComboBox()  # model selector (3 options)
        for model_id in MODEL_IDS:
            self.cmb_model.addItem(MODEL_SPECS[model_id].label, model_id)  # label + id as userData
        self.cmb_model.setCurrentIndex(MODEL_IDS.index(self.controller.config.model_id))
        self.cmb_model.currentIndexChanged.connect(self.on_model_change)  # react to change

        self.conf_label = QtWidgets.QLabel()  # "Conf: 0.20"
        self.sld_conf = QtWidgets.QSlider(QtCore.Qt.Horizontal)  # 0.00–1.00 in 0.01 steps
        self.sld_conf.setRange(0, 100); self.sld_conf.setSingleStep(1); self.sld_conf.setFixedWidth(200)
        self.sld_conf.setValue(int(round(self.controller.config.confidence_threshold * 100)))
        self._update_conf_label(self.controller.config.confidence_threshold)
        self.sld_conf.valueChanged.connect(self.on_conf_change)

        self.btn_toggle = QAction("▶ Start", self)  # start/stop toggle
        self.act_image = QAction("📷 Select Image", self)  # image picker

        # toolbar order (add widgets/actions in a neat sequence)
        self.tb.addWidget(QtWidgets.QLabel("Select Model: ")); self.tb.addWidget(self.cmb_model); self.tb.addSeparator()
        self.tb.addWidget(self.conf_label); self.tb.addWidget(self.sld_conf); self.tb.addSeparator()
        self.tb.addAction(self.btn_toggle); self.tb.addAction(self.act_image)

        # connect toolbar actions to handlers
        self.btn_toggle.triggered.connect(self.on_toggle)
        self.act_image.triggered.connect(self.on_select_image)

        # keyboard shortcuts
        QtGui.QShortcut(QtGui.QKeySequence("S"), self, activated=self.on_toggle)  # S = start/stop
        QtGui.QShortcut(QtGui.QKeySequence("O"), self, activated=self.on_select_image)  # O = open image

        self.status.showMessage("Ready. Press Start.")  # status hint

    def _update_conf_label(self, value: float):
        self.conf_label.setText(f"Conf: {value:.2f} ")

    # ---------- controls ----------
    def on_toggle(self):
        if self.controller.loading: return  # button is disabled while a model loads
        self.controller.toggle()

    def on_model_change(self, _idx: int):
        model_id = self.cmb_model.currentData()  # model id stored as userData
        if model_id: self.controller.change_model(model_id)

    def on_conf_change(self, raw: int):
        value = self.controller.set_confidence(raw / 100.0)  # effective from the next render
        self._update_conf_label(value)

    def on_select_image(self):
        path, _ = QtWidgets.QFileDialog.getOpenFileName(self, "Select Image", os.getcwd(), IMAGE_FILE_FILTER)
        if not path: return  # dialog cancelled
        if self.controller.select_image_file(path):
            self.status.showMessage(f"Image: {os.path.basename(path)}")

    # ---------- controller events ----------
    def on_state_changed(self, state: RunState):
        running = state is RunState.LIVE_RUNNING
        self.btn_toggle.setText("⏹ Stop" if running else "▶ Start")  # toggle label
        active = self.controller.registry.active
        self.model_indicator.setText(f"Model: {active.backend.name() if active else '-'}")
        msg = {RunState.LIVE_RUNNING: "Running…", RunState.IMAGE_DISPLAYED: "Image mode", RunState.IDLE: "Stopped"}[state]
        self.status.showMessage(msg)

    def on_loading(self, loading: bool):
        self.btn_toggle.setEnabled(not loading)  # no start/stop while a model loads
        if loading:
            self.status.showMessage("Loading model, please wait...")
            QtWidgets.QApplication.processEvents()  # paint the message before the blocking load

    def on_error(self, title: str, message: str):
        QtWidgets.QMessageBox.critical(self, title, message)  # surface to the user

    def show_frame(self, image_bgr: Optional[np.ndarray]):
        self._last_frame = image_bgr
        if image_bgr is None:
            self.video_label.clear(); return  # blank view (live overlay cleared)
        pix = QtGui.QPixmap.fromImage(cvimg_to_qt(image_bgr))
        self.video_label.setPixmap(pix.scaled(self.video_label.size(), QtCore.Qt.KeepAspectRatio,
                                              QtCore.Qt.SmoothTransformation))  # display size only; overlay stays at intrinsic size

    # ---------- lifecycle ----------
    def resizeEvent(self, ev: QtGui.QResizeEvent) -> None:
        super().resizeEvent(ev)
        if self._last_frame is not None: self.show_frame(self._last_frame)  # rescale the still picture

    def closeEvent(self, ev: QtGui.QCloseEvent) -> None:
        try:
            self.controller.shutdown()  # stop loop, release camera, unload model
        finally:
            super().closeEvent(ev)  # call base close
