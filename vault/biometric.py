"""
Confirmation gate for destructive and revealing actions.

LEGAL NOTICE:
This module handles user verification. It must only be used for legitimate
personal password management on devices you own or administer.
"""

import os
import hmac
import json
import base64
import hashlib
import logging
import platform
from typing import Callable, Optional, Tuple

from . import config

logger = logging.getLogger(__name__)

# (title, message) -> (entered text, accepted)
PinPrompt = Callable[[str, str], Tuple[str, bool]]


class BiometricGate:
    """
    A capability that answers whether the user confirmed a sensitive action.
    Implementations block the calling (UI) thread until the user answers.
    """

    def request_confirmation(self, reason: str) -> bool:
        raise NotImplementedError


def _dialog_prompt(title: str, message: str) -> Tuple[str, bool]:
    """Ask for the PIN with a password-mode QInputDialog on the active window."""
    from PyQt5.QtWidgets import QApplication, QInputDialog, QLineEdit

    app = QApplication.instance()
    parent = None
    if app:
        for widget in app.topLevelWidgets():
            if widget.isVisible() and widget.isActiveWindow():
                parent = widget
                break

    return QInputDialog.getText(parent, title, message, QLineEdit.Password, "")


class PinGate(BiometricGate):
    """
    PIN-backed gate. The first confirmation sets up the PIN; later ones
    compare a PBKDF2 hash of the entry against the stored hash.
    """

    def __init__(self, auth_dir: Optional[str] = None, prompt: Optional[PinPrompt] = None):
        self.auth_dir = auth_dir or config.get_config_dir()
        self.auth_file = os.path.join(self.auth_dir, config.BIOMETRIC_AUTH_FILE)
        self.prompt = prompt or _dialog_prompt
        self._stored_hash: Optional[str] = None
        self._load_auth_hash()

    @property
    def has_pin(self) -> bool:
        return bool(self._stored_hash)

    @staticmethod
    def _hash_pin(pin: str) -> bytes:
        return hashlib.pbkdf2_hmac(
            'sha256',
            pin.encode('utf-8'),
            config.PIN_HASH_SALT,
            config.KEY_DERIVATION_ITERATIONS
        )

    def _load_auth_hash(self):
        """Load stored PIN hash if it exists."""
        if not os.path.exists(self.auth_file):
            return
        try:
            with open(self.auth_file, 'r') as f:
                data = json.load(f)
            self._stored_hash = data.get('auth_hash')
        except (OSError, ValueError) as e:
            logger.error(f"Could not read {self.auth_file}: {e}")

    def _save_auth_hash(self, pin: str) -> bool:
        os.makedirs(self.auth_dir, exist_ok=True)
        data = {'auth_hash': base64.b64encode(self._hash_pin(pin)).decode()}
        try:
            with open(self.auth_file, 'w') as f:
                json.dump(data, f)
            if platform.system() != 'Windows':
                os.chmod(self.auth_file, 0o600)
        except OSError as e:
            logger.error(f"Error saving PIN hash: {e}")
            return False
        self._stored_hash = data['auth_hash']
        return True

    def verify_pin(self, pin: str) -> bool:
        if not self._stored_hash:
            return False
        stored = base64.b64decode(self._stored_hash)
        return hmac.compare_digest(self._hash_pin(pin), stored)

    def request_confirmation(self, reason: str) -> bool:
        """
        Prompt for the PIN.

        Args:
            reason: Text shown to the user above the PIN field

        Returns:
            True only if the user entered the right PIN (or set one up)
        """
        logger.info(f"Confirmation requested: {reason}")
        message = config.PIN_PROMPT_ENTER if self.has_pin else config.PIN_PROMPT_SETUP
        pin, ok = self.prompt(config.PIN_PROMPT_TITLE, f"{reason}\n\n{message}")

        if not ok or not pin:
            logger.info("Confirmation cancelled")
            return False

        if not self.has_pin:
            if self._save_auth_hash(pin):
                logger.info("PIN set up successfully")
                return True
            return False

        if self.verify_pin(pin):
            logger.info("PIN confirmation successful")
            return True
        logger.warning("PIN confirmation failed")
        return False
