"""Toast overlay for recognized commands and notifications."""

from __future__ import annotations

from typing import Tuple

try:
    from PySide6.QtCore import Qt, QTimer
    from PySide6.QtWidgets import QApplication, QFrame, QLabel, QVBoxLayout, QWidget
except Exception:  # pragma: no cover
    Qt = None  # type: ignore
    QTimer = None  # type: ignore
    QApplication = None  # type: ignore
    QFrame = object  # type: ignore
    QLabel = object  # type: ignore
    QVBoxLayout = object  # type: ignore
    QWidget = object  # type: ignore

TOAST_COLORS = {
    "achievement": "#FFD54F",
    "info": "#FFFFFF",
    "warning": "#FFB74D",
    "error": "#FF6B6B",
}

_CARD_STYLE = "background: rgba(0,0,0,190); border-radius: 12px;"
TOP_MARGIN_PX = 40


def format_command(command: str, feedback: str, confidence: float) -> Tuple[str, str]:
    """Headline and detail lines for a recognized command."""
    headline = f'🎙️ "{command}"'
    detail = f"Confidence {confidence:.0%}"
    if feedback:
        detail = f"{feedback} · {detail}"
    return headline, detail


class ToastOverlay(QWidget):
    """Frameless always-on-top card with a headline and an optional detail line."""

    def __init__(self, width: int = 600) -> None:
        if Qt is None:
            raise RuntimeError("PySide6 is not installed")
        super().__init__()
        self.setWindowFlags(Qt.WindowStaysOnTopHint | Qt.FramelessWindowHint | Qt.Tool)
        self.setAttribute(Qt.WA_TranslucentBackground, True)
        self.setFixedWidth(width)

        card = QFrame()
        card.setStyleSheet(_CARD_STYLE)
        self._headline = QLabel("")
        self._headline.setWordWrap(True)
        self._detail = QLabel("")
        self._detail.setWordWrap(True)

        inner = QVBoxLayout(card)
        inner.setContentsMargins(16, 12, 16, 12)
        inner.addWidget(self._headline)
        inner.addWidget(self._detail)

        outer = QVBoxLayout()
        outer.setContentsMargins(0, 0, 0, 0)
        outer.addWidget(card)
        self.setLayout(outer)

        self._hide_timer: QTimer | None = None

    def show_text(self, text: str, type: str = "info", hide_after_ms: int = 0, detail: str = "") -> None:
        color = TOAST_COLORS.get(type, TOAST_COLORS["info"])
        self._headline.setStyleSheet(f"color: {color}; font-size: 18px; font-weight: 600;")
        self._detail.setStyleSheet("color: #DDDDDD; font-size: 14px;")
        self._headline.setText(text)
        self._detail.setText(detail)
        self._detail.setVisible(bool(detail))
        self._place()
        self.show()
        if hide_after_ms > 0:
            self.hide_with_delay(hide_after_ms)
        else:
            self._cancel_hide_timer()

    def show_command(self, command: str, feedback: str, confidence: float, hide_after_ms: int = 3000) -> None:
        headline, detail = format_command(command, feedback, confidence)
        self.show_text(headline, "info", hide_after_ms, detail)

    def show_notification(self, title: str, message: str, type: str, hide_after_ms: int = 4000) -> None:
        self.show_text(title, type, hide_after_ms, message)

    def hide_with_delay(self, delay_ms: int = 400) -> None:
        self._cancel_hide_timer()
        self._hide_timer = QTimer(self)
        self._hide_timer.setSingleShot(True)
        self._hide_timer.timeout.connect(self.hide)
        self._hide_timer.start(delay_ms)

    def _cancel_hide_timer(self) -> None:
        if self._hide_timer is not None:
            self._hide_timer.stop()
            self._hide_timer = None

    def _place(self) -> None:
        screen = QApplication.primaryScreen()
        if screen is None:
            return
        geom = screen.availableGeometry()
        self.adjustSize()
        self.move(geom.x() + (geom.width() - self.width()) // 2, geom.y() + TOP_MARGIN_PX)
