"""Credential Vault — Encrypted credentials bound to a master password.

Security Note (Threat Model):
    Secrets are decrypted in process memory during session lifetime.
    The outer vault envelope and the account metadata are keyed from the
    username and the clear salt, so they only obfuscate; the per-credential
    layer keyed from the master password is the secrecy boundary.
    A single IV is reused for every encryption under an account.
    Secure memory wiping is out of scope.
"""

from .session_vault import SessionVault, SessionState, account_exists
from .key_rotation import rotate_master_password
from .config import VaultConfig
from .storage import Storage, FileStorage, MemoryStorage
from .crypto import Algorithm, Mode

__all__ = [
    "SessionVault",
    "SessionState",
    "account_exists",
    "rotate_master_password",
    "VaultConfig",
    "Storage",
    "FileStorage",
    "MemoryStorage",
    "Algorithm",
    "Mode",
]
