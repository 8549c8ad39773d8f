"""Application entrypoint."""

from __future__ import annotations

import logging
import sys
import threading
from typing import Optional

from config import DEFAULT_EXPERIMENT, JsonConfigStore
from errors import SPEECH_UNSUPPORTED, message_for
from experiments import PROFILES, get_profile
from gamification import GamificationStore, NotificationCenter
from hotkey import GlobalHotkeyAdapter
from interfaces import ConfigStore
from models import Notification, RecognitionEvent
from overlay import ToastOverlay
from permissions import SoundDevicePermissionProbe
from recognizer import DashscopeRecognizerAdapter
from recorder import SoundDeviceRecorder
from voice_controller import build_controller
from web_frame import SimulationPage, WebEngineFrameTarget

try:
    from PySide6.QtCore import QObject, QSize, QTimer, QUrl, Signal
    from PySide6.QtGui import QAction, QBrush, QColor, QIcon, QPainter, QPixmap
    from PySide6.QtWebEngineWidgets import QWebEngineView
    from PySide6.QtWidgets import QApplication, QInputDialog, QMenu, QMessageBox, QSystemTrayIcon
except Exception as exc:  # pragma: no cover
    raise SystemExit(f"PySide6 is required to run the desktop app: {exc}")

logger = logging.getLogger(__name__)

PERMISSION_POLL_MS = 5000
NOTIFICATION_MENU_SIZE = 8


def _create_icon(color: str = "#888888", size: int = 22) -> QIcon:
    """Generate a simple circular tray icon with the given color."""
    pixmap = QPixmap(QSize(size, size))
    pixmap.fill(QColor(0, 0, 0, 0))
    painter = QPainter(pixmap)
    painter.setRenderHint(QPainter.Antialiasing, True)
    painter.setBrush(QBrush(QColor(color)))
    painter.setPen(QColor(color))
    painter.drawEllipse(2, 2, size - 4, size - 4)
    painter.end()
    return QIcon(pixmap)


ICON_IDLE = "#888888"       # grey
ICON_LISTENING = "#FF4444"  # red
ICON_ERROR = "#FF8800"      # orange


class UIBridge(QObject):
    command_signal = Signal(str, str, float)  # command, feedback, confidence
    notification_signal = Signal(str, str, str)  # title, message, type
    listening_signal = Signal(bool)
    error_signal = Signal(str)
    badge_signal = Signal(str)
    cleared_signal = Signal()
    ready_signal = Signal()


class App:
    def __init__(self, config_store: Optional[ConfigStore] = None) -> None:
        self.app = QApplication(sys.argv)
        self.app.setQuitOnLastWindowClosed(False)
        self.config_store = config_store or JsonConfigStore()
        self.settings = self.config_store.load_voice_settings()
        try:
            self.profile = get_profile(self.config_store.get_experiment())
        except ValueError as exc:
            logger.warning("%s, falling back to %s", exc, DEFAULT_EXPERIMENT)
            self.profile = get_profile(DEFAULT_EXPERIMENT)

        self.overlay = ToastOverlay()
        self.ui = UIBridge()
        self.ui.command_signal.connect(self._on_command_ui)
        self.ui.notification_signal.connect(self.overlay.show_notification)
        self.ui.listening_signal.connect(self._on_listening_ui)
        self.ui.error_signal.connect(self._on_error_ui)
        self.ui.badge_signal.connect(self._on_badge_ui)
        self.ui.cleared_signal.connect(self.overlay.hide_with_delay)
        self.ui.ready_signal.connect(self._on_ready_ui)

        self.step = 0
        self.notifications = NotificationCenter(on_added=self._on_notification)
        self.gamification = GamificationStore(notifications=self.notifications)

        self.page = SimulationPage(on_inbound=self._on_frame_message)
        self.view = QWebEngineView()
        self.view.setPage(self.page)
        self.view.setWindowTitle(f"STEAM Experiment Hub - {self.profile.title}")
        self.view.resize(1100, 760)
        self.view.setUrl(QUrl(self.profile.simulation_url))

        recorder = SoundDeviceRecorder(microphone=self.settings.microphone)
        self.probe = SoundDevicePermissionProbe(device=recorder.select_device())
        self.controller = build_controller(
            self.profile,
            self.settings,
            recorder=recorder,
            engine=DashscopeRecognizerAdapter(
                api_key=self.config_store.get_api_key(),
                utterance_ms=self.settings.utterance_ms,
            ),
            probe=self.probe,
            gamification=self.gamification,
            notifications=self.notifications,
            frame=WebEngineFrameTarget(self.page),
            on_command=self._on_command,
            on_local_command=self._on_local_command,
            on_listening_change=self.ui.listening_signal.emit,
            on_error=self._on_error,
            on_badge_unlocked=self.ui.badge_signal.emit,
            on_recognition_cleared=lambda _event: self.ui.cleared_signal.emit(),
            on_simulation_ready=self.ui.ready_signal.emit,
        )
        self.hotkey = GlobalHotkeyAdapter(hotkey_name=self.config_store.get_hotkey())

        self.permission_timer = QTimer()
        self.permission_timer.timeout.connect(self.probe.poll)

        self.tray = QSystemTrayIcon()
        self.tray.setIcon(_create_icon(ICON_IDLE))
        self.tray.setToolTip("Voice commands - Off")
        self._setup_menu()
        self.tray.show()

    def _setup_menu(self) -> None:
        menu = QMenu()

        toggle_action = QAction("Toggle Voice Commands", menu)
        toggle_action.triggered.connect(self._toggle_listening)
        toggle_action.setEnabled(self.controller.status().supports_speech_recognition)
        menu.addAction(toggle_action)

        reset_action = QAction("Reset Experiment", menu)
        reset_action.triggered.connect(self.controller.reset_experiment)
        menu.addAction(reset_action)

        experiment_menu = menu.addMenu("Experiment")
        for experiment_id, profile in PROFILES.items():
            action = QAction(profile.title, experiment_menu)
            action.setCheckable(True)
            action.setChecked(experiment_id == self.profile.experiment_id)
            action.triggered.connect(lambda _=False, e=experiment_id: self._set_experiment(e))
            experiment_menu.addAction(action)

        score_action = QAction("Record Score...", menu)
        score_action.triggered.connect(self._record_score)
        menu.addAction(score_action)

        progress_action = QAction("Reset Progress", menu)
        progress_action.triggered.connect(self.gamification.reset_progress)
        menu.addAction(progress_action)

        self.notification_menu = menu.addMenu("Notifications")
        self.notification_menu.aboutToShow.connect(self._fill_notification_menu)

        menu.addSeparator()
        api_action = QAction("Set API Key", menu)
        api_action.triggered.connect(self._set_api_key)
        menu.addAction(api_action)

        hotkey_action = QAction("Set Hotkey", menu)
        hotkey_action.triggered.connect(self._set_hotkey)
        menu.addAction(hotkey_action)

        menu.addSeparator()
        quit_action = QAction("Quit", menu)
        quit_action.triggered.connect(self.quit)
        menu.addAction(quit_action)

        self.tray.setContextMenu(menu)

    def _record_score(self) -> None:
        last, _ = self.gamification.experiment_progress(self.profile.experiment_id)
        label = (
            f"Score for {self.profile.title} (0-100)\n"
            f"Experiments completed: {self.gamification.completed_experiments()}"
        )
        score, ok = QInputDialog.getInt(None, "Experiment Score", label, last, 0, 100)
        if ok:
            self.gamification.update_progress(self.profile.experiment_id, score)

    def _fill_notification_menu(self) -> None:
        menu = self.notification_menu
        menu.clear()
        items = self.notifications.notifications[:NOTIFICATION_MENU_SIZE]
        if not items:
            menu.addAction("No notifications").setEnabled(False)
            return
        for item in items:
            label = item.title if item.read else f"* {item.title}"
            action = menu.addAction(label)
            action.setToolTip(item.message)
            action.triggered.connect(lambda _=False, n=item.id: self.notifications.mark_as_read(n))
        menu.addSeparator()
        menu.addAction("Mark All Read").triggered.connect(self.notifications.mark_all_as_read)
        menu.addAction("Clear All").triggered.connect(self.notifications.clear_all)

    def _set_api_key(self) -> None:
        value, ok = QInputDialog.getText(None, "API Key", "DashScope API Key")
        if not ok:
            return
        self.config_store.set_api_key(value)
        QMessageBox.information(None, "Saved", "API Key saved. Restart app to apply.")

    def _set_hotkey(self) -> None:
        value, ok = QInputDialog.getText(
            None, "Hotkey", "Use pynput key format, e.g. Key.f8"
        )
        if not ok or not value:
            return
        self.config_store.set_hotkey(value)
        QMessageBox.information(None, "Saved", "Hotkey saved. Restart app to apply.")

    def _set_experiment(self, experiment_id: str) -> None:
        self.config_store.set_experiment(experiment_id)
        QMessageBox.information(None, "Saved", "Experiment saved. Restart app to apply.")

    def _toggle_listening(self) -> None:
        # The first toggle can block on the microphone prompt.
        threading.Thread(target=self.controller.toggle_listening, daemon=True).start()

    # ------------------------------------------------------------------
    # Callbacks (called from worker threads → emit signals for UI thread)
    # ------------------------------------------------------------------

    def _on_command(self, event: RecognitionEvent) -> None:
        binding = self.profile.binding_for(event.command)
        feedback = binding.feedback if binding else ""
        self.ui.command_signal.emit(event.command, feedback, event.confidence)

    def _on_local_command(self, command: str) -> None:
        if command == "next step":
            self.step += 1
        elif command == "previous step":
            self.step = max(0, self.step - 1)
        self.ui.notification_signal.emit(self.profile.title, f"Step {self.step + 1}", "info")

    def _on_notification(self, notification: Notification) -> None:
        self.ui.notification_signal.emit(notification.title, notification.message, notification.type)

    def _on_error(self, code: str, message: str) -> None:
        self.ui.error_signal.emit(f"{code}: {message}")

    def _on_frame_message(self, data: dict) -> None:
        self.controller.handle_frame_message(data)

    # ------------------------------------------------------------------
    # UI thread handlers (safe for Qt)
    # ------------------------------------------------------------------

    def _on_command_ui(self, command: str, feedback: str, confidence: float) -> None:
        self.overlay.show_command(command, feedback, confidence, self.settings.display_ms)

    def _on_listening_ui(self, listening: bool) -> None:
        if listening:
            self.tray.setIcon(_create_icon(ICON_LISTENING))
            self.tray.setToolTip("Voice commands - Listening...")
        else:
            self.tray.setIcon(_create_icon(ICON_IDLE))
            self.tray.setToolTip("Voice commands - Off")

    def _on_badge_ui(self, badge_id: str) -> None:
        badge = self.gamification.get_badge(badge_id)
        name = badge.name if badge else badge_id
        self.tray.showMessage("Achievement unlocked", name, QSystemTrayIcon.Information, 4000)

    def _on_ready_ui(self) -> None:
        logger.info("Simulation ready: %s", self.profile.title)
        self.overlay.show_text(f"{self.profile.title} ready", "info", 1500)

    def _on_error_ui(self, msg: str) -> None:
        self.tray.setIcon(_create_icon(ICON_ERROR))
        self.tray.setToolTip(f"Voice commands - {msg}")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def run(self) -> int:
        self.view.show()
        self.controller.mount()
        self.permission_timer.start(PERMISSION_POLL_MS)
        if not self.controller.status().supports_speech_recognition:
            self.overlay.show_text(message_for(SPEECH_UNSUPPORTED), "error", 4000)
            return self.app.exec()
        try:
            self.hotkey.start(on_toggle=self._toggle_listening)
        except Exception as exc:
            logger.warning("Hotkey disabled: %s", exc)
            self.overlay.show_text(f"Hotkey disabled: {exc}", "warning", 2000)
        return self.app.exec()

    def quit(self) -> None:
        self.permission_timer.stop()
        self.hotkey.stop()
        self.controller.close()
        self.app.quit()


def main() -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = App()
    return app.run()


if __name__ == "__main__":
    raise SystemExit(main())
