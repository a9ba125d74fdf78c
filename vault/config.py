"""
Configuration constants for the Vault application.
"""

import os

# Application Metadata
APP_VERSION = "1.0"  # Use: Current version of the application. Type: str. Range: Semantic versioning string (e.g., "1.0.0")
APP_NAME = "Vault Credential Manager"  # Use: Full name of the application. Type: str. Range: Any valid string.
APP_TITLE_PREFIX = f"{APP_NAME} v{APP_VERSION}"  # Use: Prefix for window titles and startup logs, combining name and version. Type: str (f-string). Range: Derived from APP_NAME and APP_VERSION.

# File and Directory Names
CONFIG_DIR_NAME = ".vault"  # Use: Name of the hidden directory within the user's home directory where the vault keeps its database, PIN hash and logs. Type: str. Range: Any valid directory name.
DEFAULT_DATABASE_FILE = "vault.db"  # Use: Default filename for the SQLite credential database. Type: str. Range: Any valid filename.
LOG_DIR_NAME = "logs"  # Use: Subdirectory of CONFIG_DIR_NAME holding log files. Type: str. Range: Any valid directory name.
AUDIT_LOG_FILE = "audit.log"  # Use: Filename for the application's security audit log. Type: str. Range: Any valid filename.

# Environment Overrides
DATABASE_PATH_ENV = "VAULT_DATABASE_PATH"  # Use: Environment variable that overrides the database file location. Type: str. Range: Any environment variable name.
LOG_LEVEL_ENV = "VAULT_LOG_LEVEL"  # Use: Environment variable that overrides the root log level (e.g. "DEBUG"). Type: str. Range: Any environment variable name.
LOG_LEVEL_DEFAULT = "INFO"  # Use: Root log level when LOG_LEVEL_ENV is unset. Type: str. Range: Standard logging level names.
LOG_FORMAT = '%(asctime)s - %(levelname)s - %(name)s - %(message)s'  # Use: Format string passed to logging.basicConfig. Type: str. Range: Any logging format string.

# Storage Settings
SCHEMA_VERSION = 4  # Use: Version stamped into PRAGMA user_version. A database carrying another version is wiped and recreated. Type: int. Range: Positive integer.
SQLITE_BUSY_TIMEOUT_SECONDS = 15  # Use: Seconds a connection waits on a locked SQLite database before failing. Type: int. Range: Positive integer.
WORKER_THREAD_COUNT = 2  # Use: Maximum number of background threads performing store I/O. Type: int. Range: 1 to the number of CPU cores.

# Security Settings
KEY_DERIVATION_ITERATIONS = 100000  # Use: Number of iterations for PBKDF2-HMAC-SHA256 used for PIN hashing. Type: int. Range: Recommended to be at least 100,000.
PIN_HASH_SALT = b"Vault_Auth_Salt"  # Use: Static salt mixed into the PIN hash. Type: bytes. Range: Any non-empty byte string.
BIOMETRIC_AUTH_FILE = "auth.json"  # Use: Filename for storing the PIN hash used by the confirmation gate. Type: str. Range: Any valid filename.
PIN_PROMPT_TITLE = "Security Confirmation"  # Use: Title of the PIN dialog. Type: str. Range: Any descriptive string.
PIN_PROMPT_ENTER = "Enter your PIN:"  # Use: Prompt message for the user to enter their PIN. Type: str. Range: Any descriptive string.
PIN_PROMPT_SETUP = "Set up your PIN for quick confirmation:"  # Use: Prompt message for the user to set up their PIN. Type: str. Range: Any descriptive string.
CONFIRM_REASON_DELETE = "Confirm deletion of the selected account"  # Use: Reason shown by the gate before deleting. Type: str. Range: Any descriptive string.
CONFIRM_REASON_DELETE_ALL = "Confirm deletion of every stored account"  # Use: Reason shown by the gate before wiping all accounts. Type: str. Range: Any descriptive string.
CONFIRM_REASON_REVEAL = "Confirm to reveal account details"  # Use: Reason shown by the gate before revealing account details. Type: str. Range: Any descriptive string.

# Clipboard Settings
CLIPBOARD_CLEAR_TIMEOUT_DEFAULT_SECONDS = 30  # Use: Default timeout in seconds after which copied passwords are cleared from the clipboard. Type: int. Range: CLIPBOARD_CLEAR_TIMEOUT_MIN_SECONDS to CLIPBOARD_CLEAR_TIMEOUT_MAX_SECONDS.
CLIPBOARD_CLEAR_TIMEOUT_MIN_SECONDS = 10  # Use: Minimum configurable clipboard clear timeout in seconds. Type: int. Range: Positive integer.
CLIPBOARD_CLEAR_TIMEOUT_MAX_SECONDS = 300  # Use: Maximum configurable clipboard clear timeout in seconds. Type: int. Range: Positive integer.
CLIPBOARD_CLEAR_TIMEOUT_DEFAULT = CLIPBOARD_CLEAR_TIMEOUT_DEFAULT_SECONDS * 1000  # Use: Default clipboard clear timeout in milliseconds. Derived from CLIPBOARD_CLEAR_TIMEOUT_DEFAULT_SECONDS. Type: int. Range: Derived value.
CLIPBOARD_DEFAULT_LABEL = "Content"  # Use: Label used when a copy request does not name what is copied. Type: str. Range: Any string.

# Reorder Settings
REORDER_ITEM_SPACING_PX = 16.0  # Use: Visual gap between stacked platform cards, added to half the neighbour height to form the swap threshold. Type: float. Range: Non-negative pixels.
REORDER_DEFAULT_ITEM_HEIGHT_PX = 120  # Use: Card height assumed when no height has been measured yet. Type: int. Range: Positive pixels.

# Reorder Engine States
STATE_IDLE = "IDLE"  # Use: No drag in progress. Type: str. Range: Any string.
STATE_DRAGGING = "DRAGGING"  # Use: A platform card is being dragged. Type: str. Range: Any string.

# Display Settings
UNKNOWN_PLATFORM_NAME = "Unknown platform"  # Use: Group name for accounts whose platform is not loaded. Type: str. Range: Any string.

# User-facing Messages
MSG_SAVED = "Saved"  # Use: Status after an account was saved. Type: str. Range: Any string.
MSG_DELETED = "Deleted"  # Use: Status after an account was deleted. Type: str. Range: Any string.
MSG_TYPE_UPDATED = "Platform type updated"  # Use: Status after a platform type change. Type: str. Range: Any string.
MSG_ORDER_UPDATED = "Order updated"  # Use: Status after the platform order was persisted. Type: str. Range: Any string.
MSG_NOT_CONFIRMED = "Verification failed or cancelled, nothing deleted"  # Use: Status when the gate refuses a deletion. Type: str. Range: Any string.
MSG_COPIED = "{label} copied to clipboard"  # Use: Status after a clipboard copy; formatted with the label. Type: str. Range: Format string with a {label} field.
MSG_MISSING_NAME_AND_PASSWORD = "Please enter a platform name and password"  # Use: Validation message. Type: str. Range: Any string.
MSG_MISSING_NAME = "Please enter a platform name"  # Use: Validation message. Type: str. Range: Any string.
MSG_MISSING_PASSWORD = "Please enter a password"  # Use: Validation message. Type: str. Range: Any string.
ERR_SAVE = "Save failed: {}"  # Use: Error message prefix for failed saves. Type: str. Range: Format string.
ERR_DELETE = "Delete failed: {}"  # Use: Error message prefix for failed deletions. Type: str. Range: Format string.
ERR_SEARCH = "Search failed: {}"  # Use: Error message prefix for failed searches. Type: str. Range: Format string.
ERR_LOAD = "Loading failed: {}"  # Use: Error message prefix for failed list loads. Type: str. Range: Format string.
ERR_UPDATE_TYPE = "Updating platform type failed: {}"  # Use: Error message prefix for failed type updates. Type: str. Range: Format string.
ERR_REORDER = "Updating order failed: {}"  # Use: Error message prefix for failed reorder persistence. Type: str. Range: Format string.


def get_config_dir() -> str:
    """Directory holding the database, PIN hash and logs."""
    return os.path.join(os.path.expanduser("~"), CONFIG_DIR_NAME)


def get_database_path() -> str:
    """Database location, honouring the VAULT_DATABASE_PATH override."""
    override = (os.environ.get(DATABASE_PATH_ENV) or "").strip()
    if override:
        return override
    return os.path.join(get_config_dir(), DEFAULT_DATABASE_FILE)


def get_log_level() -> str:
    return (os.environ.get(LOG_LEVEL_ENV) or LOG_LEVEL_DEFAULT).strip().upper()
