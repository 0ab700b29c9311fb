"""
Account Record Store — Per-user cipher settings and master-password check.

Artifact layout (one text file per user)::

    <salt>||<iv-b64>||ENCRYPTED||<metadata-b64>||VERIFY||<token-b64>

- metadata: ``algorithm=<value>\\nmode=<value>`` encrypted with AES/GCM under
  a config key derived from ``<username>_config_key`` and the salt.
- token: the fixed marker ``VALID_PASSWORD`` encrypted with the user's
  algorithm/mode under the session key derived from the master password.

Security Note:
    The config key depends only on the username and the (clear) salt, so
    the metadata block is obfuscated, not protected. Only the verification
    token depends on the master password.
"""
import base64
import binascii
import logging
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ..exceptions import (
    DecryptionError,
    InvalidCredential,
    MalformedRecord,
    UnsupportedAlgorithm,
)
from .crypto import (
    Algorithm,
    IV_SIZE,
    Mode,
    check_combination,
    derive_key,
    encrypt,
    decrypt,
)
from .storage import Storage, account_artifact

logger = logging.getLogger("passvault.vault")

VERIFICATION_MARKER = "VALID_PASSWORD"
CONFIG_KEY_SUFFIX = "_config_key"

_SEPARATOR = "||"
_ENCRYPTED_MARKER = "||ENCRYPTED||"
_VERIFY_MARKER = "||VERIFY||"


class AccountRecord(BaseModel):
    """Decoded account artifact. The verification token stays encrypted."""

    username: str
    salt: str
    iv: bytes = Field(repr=False)
    algorithm: Algorithm
    mode: Mode
    verification_token: Optional[str] = Field(default=None, repr=False)

    model_config = ConfigDict(frozen=True)


def _config_key(username: str, salt: str) -> bytes:
    return derive_key(f"{username}{CONFIG_KEY_SUFFIX}", Algorithm.AES, salt)


class AccountStore:
    """Reads and writes account records through a Storage backend."""

    def __init__(self, storage: Storage):
        self._storage = storage

    def exists(self, username: str) -> bool:
        """Presence check only, no decryption."""
        return self._storage.exists(account_artifact(username))

    def create(
        self,
        username: str,
        algorithm: "Algorithm | str",
        mode: "Mode | str",
        session_key: bytes,
        iv: bytes,
        salt: str,
    ) -> AccountRecord:
        """Write the account artifact for username.

        Args:
            username: Account identifier.
            algorithm: Algorithm chosen at registration.
            mode: Cipher mode chosen at registration.
            session_key: Key derived from the master password.
            iv: Account IV (16 bytes).
            salt: Account salt text.

        Returns:
            The AccountRecord that was written.
        """
        algo, mode_ = check_combination(algorithm, mode)
        metadata = f"algorithm={algo.value}\nmode={mode_.value}\n"
        encrypted_metadata = encrypt(
            metadata, Algorithm.AES, Mode.GCM, _config_key(username, salt), iv,
        )
        token = encrypt(VERIFICATION_MARKER, algo, mode_, session_key, iv)
        content = (
            f"{salt}{_SEPARATOR}"
            f"{base64.b64encode(iv).decode('ascii')}"
            f"{_ENCRYPTED_MARKER}{encrypted_metadata}"
            f"{_VERIFY_MARKER}{token}"
        )
        self._storage.write_text(account_artifact(username), content)
        logger.info(
            "Account record written: user=%s cipher=%s/%s",
            username, algo.value, mode_.value,
        )
        return AccountRecord(
            username=username,
            salt=salt,
            iv=iv,
            algorithm=algo,
            mode=mode_,
            verification_token=token,
        )

    def load(self, username: str) -> Optional[AccountRecord]:
        """Parse the account artifact and decrypt its metadata block.

        Returns:
            AccountRecord, or None if the artifact does not exist.

        Raises:
            MalformedRecord: If the layout, IV or metadata block is invalid.
        """
        raw = self._storage.read_bytes(account_artifact(username))
        if raw is None:
            return None
        try:
            content = raw.decode("utf-8")
        except UnicodeDecodeError as err:
            raise MalformedRecord(
                f"Account record for {username!r} is not valid UTF-8"
            ) from err

        parts = content.split(_ENCRYPTED_MARKER, 1)
        if len(parts) < 2:
            raise MalformedRecord(
                f"Account record for {username!r} lacks the ENCRYPTED marker"
            )
        headers = parts[0].split(_SEPARATOR)
        if len(headers) < 2:
            raise MalformedRecord(
                f"Account record for {username!r} lacks salt or IV"
            )
        salt = headers[0]
        try:
            iv = base64.b64decode(headers[1], validate=True)
        except (binascii.Error, ValueError) as err:
            raise MalformedRecord(
                f"Account record for {username!r} has an invalid IV"
            ) from err
        if len(iv) != IV_SIZE:
            raise MalformedRecord(
                f"Account record for {username!r} has a {len(iv)}-byte IV "
                f"(expected {IV_SIZE})"
            )

        data_parts = parts[1].split(_VERIFY_MARKER, 1)
        encrypted_metadata = data_parts[0]
        token = data_parts[1] if len(data_parts) > 1 else None

        try:
            metadata = decrypt(
                encrypted_metadata, Algorithm.AES, Mode.GCM,
                _config_key(username, salt), iv,
            )
        except DecryptionError as err:
            raise MalformedRecord(
                f"Account metadata for {username!r} could not be decrypted"
            ) from err

        settings = {}
        for line in metadata.split("\n"):
            key, sep, value = line.partition("=")
            if sep:
                settings[key] = value
        try:
            algo, mode_ = check_combination(
                settings.get("algorithm", ""), settings.get("mode", ""),
            )
        except UnsupportedAlgorithm as err:
            raise MalformedRecord(
                f"Account metadata for {username!r} names an unsupported cipher"
            ) from err

        return AccountRecord(
            username=username,
            salt=salt,
            iv=iv,
            algorithm=algo,
            mode=mode_,
            verification_token=token,
        )

    def verify(
        self,
        username: str,
        candidate_password: str,
        algorithm: "Algorithm | str",
        mode: "Mode | str",
        salt: str,
        iv: bytes,
        verification_token: Optional[str],
    ) -> bytes:
        """Check a candidate master password against the verification token.

        Returns:
            The session key derived from the candidate password.

        Raises:
            InvalidCredential: If the token is missing, fails to decrypt, or
                does not decrypt to the verification marker.
        """
        if not verification_token:
            raise InvalidCredential(
                f"No verification token stored for {username!r}"
            )
        key = derive_key(candidate_password, algorithm, salt)
        try:
            marker = decrypt(verification_token, algorithm, mode, key, iv)
        except DecryptionError as err:
            logger.warning("Master password rejected: user=%s", username)
            raise InvalidCredential("Invalid master password") from err
        if marker != VERIFICATION_MARKER:
            logger.warning("Master password rejected: user=%s", username)
            raise InvalidCredential("Invalid master password")
        return key

    def verify_record(self, record: AccountRecord, candidate_password: str) -> bytes:
        """Shortcut for ``verify`` using the fields of a loaded record."""
        return self.verify(
            record.username,
            candidate_password,
            record.algorithm,
            record.mode,
            record.salt,
            record.iv,
            record.verification_token,
        )

    def rewrite_verification(
        self, record: AccountRecord, session_key: bytes,
    ) -> AccountRecord:
        """Re-encrypt the verification token under a new session key.

        Salt, IV, algorithm and mode are kept unchanged.
        """
        return self.create(
            record.username,
            record.algorithm,
            record.mode,
            session_key,
            record.iv,
            record.salt,
        )
