"""
Main entry point for the Vault Credential Manager core.

LEGAL NOTICE:
This tool is for personal use only. It must operate only on the device where
it is installed and only with the explicit consent of the device owner.
"""

import sys
import signal
import logging
from typing import Optional

from PyQt5.QtWidgets import QApplication

from . import config
from .biometric import BiometricGate, PinGate
from .clipboard import ClipboardService
from .repository import AccountRepository, PlatformRepository
from .store import Store
from .utils import configure_audit_log
from .view_model import VaultViewModel
from .workers import TaskRunner

logger = logging.getLogger(__name__)


class VaultApp:
    """Wires the store, repositories, worker pool and view model together."""

    def __init__(self, database_path: Optional[str] = None, gate: Optional[BiometricGate] = None,
                 clipboard: Optional[ClipboardService] = None):
        """Open the database and build the view model. Needs a Qt application instance."""
        self.database_path = database_path or config.get_database_path()
        self.store = Store.open(self.database_path)
        self.platform_repo = PlatformRepository(self.store)
        self.account_repo = AccountRepository(self.store)
        self.runner = TaskRunner()
        self.view_model = VaultViewModel(
            self.platform_repo,
            self.account_repo,
            self.runner,
            gate=gate or PinGate(),
            clipboard=clipboard,
        )
        logger.info(f"{config.APP_TITLE_PREFIX} using database {self.database_path}")

    def start(self):
        self.view_model.start()

    def cleanup(self):
        """Clean up resources."""
        self.view_model.shutdown()
        self.runner.shutdown()
        self.store.close()


def main():
    """Main entry point."""
    logging.basicConfig(level=config.get_log_level(), format=config.LOG_FORMAT)
    audit_log = configure_audit_log()
    logger.debug(f"Audit log at {audit_log}")

    app = QApplication.instance() or QApplication(sys.argv)
    app.setApplicationName(config.APP_NAME)
    app.setOrganizationName(config.APP_NAME)

    # Handle Ctrl+C gracefully
    signal.signal(signal.SIGINT, signal.SIG_DFL)

    vault = VaultApp()
    try:
        vault.start()
        # The UI layer attaches to vault.view_model before the loop starts
        return app.exec_()
    finally:
        vault.cleanup()


if __name__ == "__main__":
    sys.exit(main())
