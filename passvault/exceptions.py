"""
PassVault exceptions.

Every failure raised by the vault core derives from ``VaultError`` so the
presentation layer can catch a single base class. Cipher-level failures are
grouped under ``DecryptionError``: a wrong key and a corrupted ciphertext are
indistinguishable at that layer and are reported the same way.
"""


class VaultError(Exception):
    """Base class for all vault errors."""


class UnsupportedAlgorithm(VaultError, ValueError):
    """Algorithm or algorithm/mode pair outside the supported matrix."""


class DecryptionError(VaultError):
    """Ciphertext could not be decrypted with the given key and IV."""


class AuthenticationFailure(DecryptionError):
    """GCM authentication tag did not match."""


class PaddingFailure(DecryptionError):
    """Block padding, block length or text encoding did not match."""


class InvalidCredential(VaultError):
    """Master password rejected by the verification token."""


class AccountAlreadyExists(VaultError):
    """An account record already exists for this username."""


class AccountNotFound(VaultError):
    """No account record exists for this username."""


class MalformedRecord(VaultError):
    """Account artifact does not follow the expected layout."""


class VaultCorrupt(VaultError):
    """Vault artifact (or an entry inside it) failed to decrypt."""


class SessionClosed(VaultError):
    """Operation attempted on a session that is not active."""
