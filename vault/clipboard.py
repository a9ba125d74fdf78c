"""
Clipboard access with delayed clearing of sensitive values.
"""

import logging
from typing import Optional

from PyQt5.QtCore import QObject, QTimer, pyqtSignal

from . import config

logger = logging.getLogger(__name__)


def clamp_clear_timeout(seconds: int) -> int:
    """Keep a user-chosen auto-clear delay inside the supported range."""
    return max(config.CLIPBOARD_CLEAR_TIMEOUT_MIN_SECONDS,
               min(int(seconds), config.CLIPBOARD_CLEAR_TIMEOUT_MAX_SECONDS))


class ClipboardService(QObject):
    """Copies text to the system clipboard; sensitive text is cleared after a timeout."""

    copied = pyqtSignal(str)
    cleared = pyqtSignal()

    def __init__(self, clipboard=None, clear_timeout_seconds: int = config.CLIPBOARD_CLEAR_TIMEOUT_DEFAULT_SECONDS,
                 parent: Optional[QObject] = None):
        super().__init__(parent)
        self._clipboard = clipboard
        self.clear_timeout = clamp_clear_timeout(clear_timeout_seconds) * 1000
        self._sensitive_text: Optional[str] = None
        self.clipboard_timer = QTimer(self)
        self.clipboard_timer.setSingleShot(True)
        self.clipboard_timer.timeout.connect(self.clear_clipboard)

    @property
    def clipboard(self):
        if self._clipboard is None:
            from PyQt5.QtWidgets import QApplication
            self._clipboard = QApplication.clipboard()
        return self._clipboard

    def set_clear_timeout(self, seconds: int) -> None:
        self.clear_timeout = clamp_clear_timeout(seconds) * 1000

    def copy(self, text: str, label: str = config.CLIPBOARD_DEFAULT_LABEL, sensitive: bool = False) -> str:
        """
        Put `text` on the clipboard.
        Returns:
            Status message naming what was copied
        """
        self.clipboard.setText(text)
        if sensitive:
            self._sensitive_text = text
            self.clipboard_timer.stop()
            self.clipboard_timer.start(self.clear_timeout)
        else:
            self._sensitive_text = None
            self.clipboard_timer.stop()

        message = config.MSG_COPIED.format(label=label or config.CLIPBOARD_DEFAULT_LABEL)
        self.copied.emit(label)
        return message

    def clear_clipboard(self):
        """Clear the clipboard if it still holds the sensitive value."""
        if self._sensitive_text is not None and self.clipboard.text() == self._sensitive_text:
            self.clipboard.clear()
            logger.debug("Clipboard cleared")
            self.cleared.emit()
        self._sensitive_text = None
