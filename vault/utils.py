import platform
import os
import stat
import datetime
import logging

from . import config

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("vault.audit")

if platform.system() == "Windows":
    try:
        import win32security
        import win32api
        import win32con
        import win32file
        WINDOWS_SECURITY_AVAILABLE = True
    except ImportError:
        logger.warning("pywin32 not fully installed, cannot set Windows file permissions securely.")
        WINDOWS_SECURITY_AVAILABLE = False
else:
    WINDOWS_SECURITY_AVAILABLE = False


def set_private_permissions(filepath: str) -> bool:
    """
    Set file to be readable/writable by owner only."""
    if platform.system() == 'Windows':
        return _set_windows_file_permissions(filepath)
    try:
        os.chmod(filepath, stat.S_IRUSR | stat.S_IWUSR)  # 600
    except OSError as e:
        logger.error(f"Failed to set file permissions for {filepath}: {e}")
        return False
    return True


def _set_windows_file_permissions(filepath: str) -> bool:
    """
    Grants full control only to the current user, removing access for others.
    """
    if not WINDOWS_SECURITY_AVAILABLE:
        logger.warning(f"Skipping Windows file permission setting for {filepath}: pywin32 not available.")
        return False

    try:
        current_user_name = win32api.GetUserName()
        current_user_sid, _, _ = win32security.LookupAccountName(None, current_user_name)

        dacl = win32security.ACL()
        dacl.AddAccessAllowedAce(
            win32security.ACL_REVISION,
            win32con.GENERIC_READ | win32con.GENERIC_WRITE | win32con.GENERIC_EXECUTE,
            current_user_sid
        )

        file_handle = win32file.CreateFile(
            filepath,
            win32con.WRITE_DAC,
            win32file.FILE_SHARE_READ | win32file.FILE_SHARE_WRITE | win32file.FILE_SHARE_DELETE,
            None,
            win32con.OPEN_EXISTING,
            win32con.FILE_ATTRIBUTE_NORMAL,
            None
        )

        try:
            win32security.SetSecurityInfo(
                file_handle,
                win32security.SE_FILE_OBJECT,
                win32security.DACL_SECURITY_INFORMATION | win32security.PROTECTED_DACL_SECURITY_INFORMATION,
                None,
                None,
                dacl,
                None
            )
            logger.info(f"Set restrictive permissions for {filepath} on Windows.")
        finally:
            win32file.CloseHandle(file_handle)
    except Exception as e:
        if isinstance(e, win32api.error) and e.winerror == 5:  # Access is denied
            logger.warning(f"Could not harden permissions for {filepath}: Access is denied. The database is usable but readable by other accounts with access to the folder.")
            return True
        logger.error(f"Failed to set Windows file permissions for {filepath}: {e}")
        return False
    return True


def configure_audit_log(log_dir: str = None) -> str:
    """
    Attach a file handler for security-relevant actions.
    Returns:
        Path of the audit log file
    """
    log_dir = log_dir or os.path.join(config.get_config_dir(), config.LOG_DIR_NAME)
    os.makedirs(log_dir, exist_ok=True)
    log_file = os.path.join(log_dir, config.AUDIT_LOG_FILE)

    for handler in audit_logger.handlers:
        if isinstance(handler, logging.FileHandler) and handler.baseFilename == os.path.abspath(log_file):
            return log_file

    handler = logging.FileHandler(log_file, encoding='utf-8')
    handler.setFormatter(logging.Formatter('%(message)s'))
    audit_logger.addHandler(handler)
    audit_logger.setLevel(logging.INFO)
    return log_file


def log_action(action: str, details: str) -> None:
    """Log security-relevant actions."""
    timestamp = datetime.datetime.now().isoformat()
    audit_logger.info(f"{timestamp} | {action} | {details}")
