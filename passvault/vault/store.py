"""
Credential Vault Store — Encrypted list of credential entries per user.

The vault artifact holds the raw bytes of an AES/GCM encryption of the whole
entry list, keyed by a vault key derived from ``<username>_file_encryption``
and the account salt. Decrypted, it is a newline-separated list of lines::

    <label>||<username>||<ciphertext-b64>||<ISO-date-or-empty>

Each ciphertext is the credential secret encrypted under the *session* key
(master-password-derived) with the account algorithm/mode.

Every mutation decrypts, rewrites and re-encrypts the whole artifact.
No escaping is applied: a label or username containing ``||`` will not
parse back correctly.

Security Note:
    The vault key depends only on the username and the clear salt. The
    outer envelope is obfuscation; the per-entry session-key layer is the
    secrecy boundary. Never log secrets or ciphertext values.
"""
import base64
import logging
from datetime import date
from typing import Optional
from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict, Field

from ..data import CredentialEntry
from ..exceptions import AccountNotFound, DecryptionError, VaultCorrupt
from .account import AccountRecord, AccountStore
from .crypto import Algorithm, Mode, SessionCipher, derive_key, encrypt, decrypt
from .storage import Storage, vault_artifact

logger = logging.getLogger("passvault.vault")

VAULT_KEY_SUFFIX = "_file_encryption"

_SEPARATOR = "||"


class VaultLine(BaseModel):
    """One parsed vault line; the secret is still session-key encrypted."""

    username: str = ""
    ciphertext: str = Field(repr=False)
    expiration: Optional[date] = None

    model_config = ConfigDict(frozen=True)


def format_line(
    label: str,
    username: str,
    ciphertext: str,
    expiration: Optional[date] = None,
) -> str:
    expiration_str = expiration.isoformat() if expiration else ""
    return _SEPARATOR.join((label, username or "", ciphertext, expiration_str))


def parse_lines(content: str) -> dict[str, VaultLine]:
    """Parse decrypted vault content into label -> VaultLine.

    Blank lines are ignored. Lines with fewer than 3 fields are skipped.
    Duplicate labels resolve to the last line.
    """
    lines: dict[str, VaultLine] = {}
    for number, line in enumerate(content.split("\n"), start=1):
        if not line.strip():
            continue
        parts = line.split(_SEPARATOR)
        if len(parts) < 3:
            logger.warning(
                "Skipping vault line %d: expected at least 3 fields, got %d",
                number, len(parts),
            )
            continue
        label, username, ciphertext = parts[0], parts[1], parts[2]
        expiration_str = parts[3] if len(parts) > 3 else ""
        expiration = None
        if expiration_str:
            try:
                expiration = date.fromisoformat(expiration_str)
            except ValueError:
                logger.warning(
                    "Ignoring invalid expiration on vault line %d (label=%s)",
                    number, label,
                )
        lines[label] = VaultLine(
            username=username, ciphertext=ciphertext, expiration=expiration,
        )
    return lines


class CredentialStore:
    """Reads and writes the encrypted vault artifact of each user."""

    def __init__(self, storage: Storage, accounts: Optional[AccountStore] = None):
        self._storage = storage
        self._accounts = accounts or AccountStore(storage)
        self._vault_keys: dict[tuple[str, str], bytes] = {}

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _record(self, username: str) -> AccountRecord:
        record = self._accounts.load(username)
        if record is None:
            raise AccountNotFound(f"No account record for {username!r}")
        return record

    def _vault_key(self, record: AccountRecord) -> bytes:
        """Derive (or reuse) the vault key for an account."""
        cache_key = (record.username, record.salt)
        key = self._vault_keys.get(cache_key)
        if key is None:
            key = derive_key(
                f"{record.username}{VAULT_KEY_SUFFIX}", Algorithm.AES, record.salt,
            )
            self._vault_keys[cache_key] = key
        return key

    def forget_keys(self, username: Optional[str] = None) -> None:
        """Drop cached vault keys, for one user or for all of them."""
        if username is None:
            self._vault_keys.clear()
            return
        for cache_key in [k for k in self._vault_keys if k[0] == username]:
            del self._vault_keys[cache_key]

    def _read_content(self, record: AccountRecord) -> str:
        """Decrypt the vault artifact; empty string if absent or empty."""
        raw = self._storage.read_bytes(vault_artifact(record.username))
        if not raw:
            return ""
        try:
            return decrypt(
                base64.b64encode(raw).decode("ascii"),
                Algorithm.AES, Mode.GCM, self._vault_key(record), record.iv,
            )
        except DecryptionError as err:
            raise VaultCorrupt(
                f"Vault for {record.username!r} could not be decrypted"
            ) from err

    def _write_content(self, record: AccountRecord, content: str) -> None:
        encrypted = encrypt(
            content, Algorithm.AES, Mode.GCM, self._vault_key(record), record.iv,
        )
        self._storage.write_bytes(
            vault_artifact(record.username), base64.b64decode(encrypted),
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def exists(self, username: str) -> bool:
        return self._storage.exists(vault_artifact(username))

    def append(
        self,
        username: str,
        label: str,
        username_field: str,
        encrypted_password: str,
        expiration: Optional[date] = None,
    ) -> None:
        """Append one entry line and rewrite the whole vault.

        Args:
            username: Account owning the vault.
            label: Credential label.
            username_field: Username stored with the credential (may be empty).
            encrypted_password: Secret already encrypted under the session key.
            expiration: Optional expiration date.

        Raises:
            AccountNotFound: If the account record is missing.
            VaultCorrupt: If the current vault cannot be decrypted.
        """
        record = self._record(username)
        content = self._read_content(record)
        if content:
            content += "\n"
        content += format_line(label, username_field, encrypted_password, expiration)
        self._write_content(record, content)
        logger.debug("Vault append: user=%s label=%s", username, label)

    def load_all(self, username: str) -> dict[str, VaultLine]:
        """Decrypt the vault and parse every entry line.

        Returns:
            Mapping label -> VaultLine; empty if no vault artifact exists.

        Raises:
            AccountNotFound: If a vault exists but the account record is missing.
            VaultCorrupt: If the vault cannot be decrypted.
        """
        if not self.exists(username):
            return {}
        record = self._record(username)
        lines = parse_lines(self._read_content(record))
        logger.debug("Vault load: user=%s entries=%d", username, len(lines))
        return lines

    def overwrite(
        self,
        username: str,
        entries: Mapping[str, CredentialEntry],
        cipher: SessionCipher,
    ) -> None:
        """Replace the vault with the given entries.

        Secrets are re-encrypted under the session cipher. An empty mapping
        removes the vault artifact instead of writing an empty blob.

        Raises:
            AccountNotFound: If the account record is missing.
        """
        if not entries:
            self.delete(username)
            return
        record = self._record(username)
        content = "\n".join(
            format_line(
                label,
                entry.username,
                cipher.encrypt(entry.password),
                entry.expiration,
            )
            for label, entry in entries.items()
        )
        self._write_content(record, content)
        logger.debug("Vault overwrite: user=%s entries=%d", username, len(entries))

    def delete(self, username: str) -> bool:
        """Remove the vault artifact. Returns True if it existed."""
        removed = self._storage.delete(vault_artifact(username))
        if removed:
            logger.info("Vault removed: user=%s", username)
        return removed
