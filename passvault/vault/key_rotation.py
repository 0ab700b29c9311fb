"""
Vault Key Rotation — Re-encryption of a vault under a new master password.

The account keeps its salt, IV, algorithm and mode. Rotation derives a new
session key, rewrites every credential under it, then rewrites the
verification token. The vault is written first: if the process dies between
the two writes, the old password still passes verification but its entries
fail to decrypt, which surfaces as ``VaultCorrupt`` on the next login.

Security Note:
    Plaintext exists in memory only inside the active session mapping.
    Never log plaintext, ciphertext or passwords.
"""
import logging
from collections.abc import Mapping

from ..data import CredentialEntry
from ..exceptions import AccountNotFound
from .account import AccountStore
from .crypto import SessionCipher, derive_key
from .store import CredentialStore

logger = logging.getLogger("passvault.vault")


def rotate_master_password(
    accounts: AccountStore,
    store: CredentialStore,
    username: str,
    entries: Mapping[str, CredentialEntry],
    current_password: str,
    new_password: str,
) -> tuple[SessionCipher, dict]:
    """Re-encrypt a user's vault and verification token under a new password.

    Args:
        accounts: Account record store.
        store: Credential vault store.
        username: Account to rotate.
        entries: Decrypted credentials of the active session.
        current_password: Current master password, re-verified first.
        new_password: New master password.

    Returns:
        Tuple of (new SessionCipher, stats dict with keys total and rotated).

    Raises:
        ValueError: If new_password is empty.
        AccountNotFound: If the account record is missing.
        InvalidCredential: If current_password is rejected.
    """
    if not new_password:
        raise ValueError("New master password cannot be empty")
    record = accounts.load(username)
    if record is None:
        raise AccountNotFound(f"No account record for {username!r}")
    accounts.verify_record(record, current_password)

    logger.info(
        "Starting master password rotation for user=%s (%d entries)",
        username, len(entries),
    )
    new_key = derive_key(new_password, record.algorithm, record.salt)
    cipher = SessionCipher(
        algorithm=record.algorithm,
        mode=record.mode,
        key=new_key,
        iv=record.iv,
    )
    store.overwrite(username, entries, cipher)
    accounts.rewrite_verification(record, new_key)

    stats = {"total": len(entries), "rotated": len(entries)}
    logger.info("Master password rotation complete: user=%s %s", username, stats)
    return cipher, stats
