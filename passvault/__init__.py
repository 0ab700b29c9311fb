"""PassVault.

Local, file-based password vault core.
"""
from .version import __version__
from .data import CredentialEntry, CredentialMap, ExpirationStatus
from .exceptions import (
    VaultError,
    UnsupportedAlgorithm,
    DecryptionError,
    AuthenticationFailure,
    PaddingFailure,
    InvalidCredential,
    AccountAlreadyExists,
    AccountNotFound,
    MalformedRecord,
    VaultCorrupt,
    SessionClosed,
)
from .vault import (
    SessionVault,
    SessionState,
    account_exists,
    VaultConfig,
    FileStorage,
    MemoryStorage,
    Algorithm,
    Mode,
)

__all__ = (
    "__version__",
    "CredentialEntry",
    "CredentialMap",
    "ExpirationStatus",
    "VaultError",
    "UnsupportedAlgorithm",
    "DecryptionError",
    "AuthenticationFailure",
    "PaddingFailure",
    "InvalidCredential",
    "AccountAlreadyExists",
    "AccountNotFound",
    "MalformedRecord",
    "VaultCorrupt",
    "SessionClosed",
    "SessionVault",
    "SessionState",
    "account_exists",
    "VaultConfig",
    "FileStorage",
    "MemoryStorage",
    "Algorithm",
    "Mode",
)
