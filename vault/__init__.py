"""
Vault Credential Manager core.

LEGAL NOTICE AND THREAT MODEL:
This tool is for personal use only. Credentials are kept in a local SQLite
database on the device where it is installed and are never transmitted.
Destructive and revealing actions require a confirmation from the device
owner.
"""

from .config import APP_VERSION as __version__
