"""
SessionVault — Credential mapping bound to one authenticated user.

Provides the public API consumed by the presentation layer:
- ``register(...)`` / ``login(...)`` — factories that open an active session
- ``add_credential(label, username, password, expiration)`` — encrypt and append
- ``delete_credential(label)`` — remove and rewrite the vault
- ``get_credential(label)`` / ``list_credentials()`` — in-memory reads
- ``change_master_password(current, new)`` — rotate the session key
- ``close()`` — discard decrypted credentials

States: UNAUTHENTICATED → AUTHENTICATING → ACTIVE → CLOSED.

Calls are synchronous and the session is not thread-safe: the caller must
not issue a second mutation while one is running, since every mutation is a
read-modify-write of the whole vault artifact.

Security Note:
    Never log plaintext or ciphertext values. Only log usernames, labels,
    operations and counts. Decrypted secrets live only in this object's
    mapping until ``close()``.
"""
import logging
from datetime import date
from enum import Enum
from typing import Optional

from ..data import CredentialEntry, CredentialMap, EXPIRING_SOON_DAYS
from ..exceptions import (
    AccountAlreadyExists,
    AccountNotFound,
    DecryptionError,
    SessionClosed,
    VaultCorrupt,
)
from .account import AccountStore
from .config import VaultConfig
from .crypto import (
    Algorithm,
    Mode,
    SessionCipher,
    check_combination,
    derive_key,
    generate_iv,
    generate_salt,
)
from .key_rotation import rotate_master_password
from .storage import Storage
from .store import CredentialStore

logger = logging.getLogger("passvault.vault")


class SessionState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    ACTIVE = "active"
    CLOSED = "closed"


def _resolve_storage(
    storage: Optional[Storage], config: Optional[VaultConfig],
) -> Storage:
    if storage is not None:
        return storage
    return (config or VaultConfig.from_env()).storage()


def _require(value: str, name: str) -> None:
    if not value:
        raise ValueError(f"{name} cannot be empty")


def account_exists(
    username: str,
    storage: Optional[Storage] = None,
    config: Optional[VaultConfig] = None,
) -> bool:
    """Check whether an account record exists for username."""
    return AccountStore(_resolve_storage(storage, config)).exists(username)


class SessionVault:
    """Credential vault of one authenticated user.

    Secrets are encrypted with two layers on disk:
    - **Session layer**: user algorithm/mode, key derived from the master password
    - **Vault layer**: AES-GCM over the whole entry list, key derived from
      the username and salt

    Instances are created through ``register()`` or ``login()``.
    """

    def __init__(self, username: str, storage: Storage):
        self._username = username
        self._storage = storage
        self._accounts = AccountStore(storage)
        self._store = CredentialStore(storage, self._accounts)
        self._cipher: Optional[SessionCipher] = None
        self._entries: dict[str, CredentialEntry] = {}
        self._state = SessionState.UNAUTHENTICATED

    def __repr__(self) -> str:
        return (
            f'<SessionVault [user:{self._username}, state:{self._state.value}] '
            f'entries={len(self._entries)}>'
        )

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, label: object) -> bool:
        return label in self._entries

    def __enter__(self) -> "SessionVault":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def username(self) -> str:
        return self._username

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def active(self) -> bool:
        return self._state is SessionState.ACTIVE

    @property
    def algorithm(self) -> Optional[Algorithm]:
        return self._cipher.algorithm if self._cipher else None

    @property
    def mode(self) -> Optional[Mode]:
        return self._cipher.mode if self._cipher else None

    def _require_active(self) -> SessionCipher:
        if self._state is not SessionState.ACTIVE or self._cipher is None:
            raise SessionClosed(
                f"Session for {self._username!r} is {self._state.value}"
            )
        return self._cipher

    # ------------------------------------------------------------------
    # Factories
    # ------------------------------------------------------------------

    @classmethod
    def register(
        cls,
        username: str,
        master_password: str,
        algorithm: "Algorithm | str | None" = None,
        mode: "Mode | str | None" = None,
        storage: Optional[Storage] = None,
        config: Optional[VaultConfig] = None,
    ) -> "SessionVault":
        """Create a new account and return an active, empty session.

        Args:
            username: New account identifier.
            master_password: Master password for the account.
            algorithm: Cipher algorithm (config default when omitted).
            mode: Cipher mode (config default when omitted).
            storage: Artifact storage; built from config when omitted.
            config: VaultConfig; loaded from environment when omitted.

        Raises:
            ValueError: If username or master_password is empty.
            UnsupportedAlgorithm: If the algorithm/mode pair is unsupported.
            AccountAlreadyExists: If an account record already exists.
        """
        _require(username, "Username")
        _require(master_password, "Master password")
        if algorithm is None or mode is None:
            config = config or VaultConfig.from_env()
            algorithm = algorithm or config.default_algorithm
            mode = mode or config.default_mode
        algo, mode_ = check_combination(algorithm, mode)

        vault = cls(username, _resolve_storage(storage, config))
        if vault._accounts.exists(username):
            raise AccountAlreadyExists(f"Account {username!r} already exists")

        vault._state = SessionState.AUTHENTICATING
        salt = generate_salt()
        iv = generate_iv()
        key = derive_key(master_password, algo, salt)
        vault._accounts.create(username, algo, mode_, key, iv, salt)
        vault._cipher = SessionCipher(algorithm=algo, mode=mode_, key=key, iv=iv)
        vault._state = SessionState.ACTIVE
        logger.info("Vault registered: user=%s cipher=%s/%s", username, algo.value, mode_.value)
        return vault

    @classmethod
    def login(
        cls,
        username: str,
        master_password: str,
        storage: Optional[Storage] = None,
        config: Optional[VaultConfig] = None,
    ) -> "SessionVault":
        """Authenticate an existing account and decrypt all its credentials.

        This is the primary constructor used during the login flow. It only
        reads artifacts; a failed login leaves them untouched.

        Raises:
            ValueError: If username or master_password is empty.
            AccountNotFound: If no account record exists.
            MalformedRecord: If the account artifact is corrupt.
            InvalidCredential: If the master password is rejected.
            VaultCorrupt: If the vault or one of its entries fails to decrypt.
        """
        _require(username, "Username")
        _require(master_password, "Master password")
        vault = cls(username, _resolve_storage(storage, config))

        vault._state = SessionState.AUTHENTICATING
        record = vault._accounts.load(username)
        if record is None:
            raise AccountNotFound(f"Account {username!r} not found")
        key = vault._accounts.verify_record(record, master_password)
        cipher = SessionCipher(
            algorithm=record.algorithm, mode=record.mode, key=key, iv=record.iv,
        )

        entries: dict[str, CredentialEntry] = {}
        for label, line in vault._store.load_all(username).items():
            try:
                password = cipher.decrypt(line.ciphertext)
            except DecryptionError as err:
                raise VaultCorrupt(
                    f"Credential {label!r} of {username!r} could not be decrypted"
                ) from err
            entries[label] = CredentialEntry(
                username=line.username,
                password=password,
                expiration=line.expiration,
            )

        vault._cipher = cipher
        vault._entries = entries
        vault._state = SessionState.ACTIVE
        logger.info("Vault loaded for user=%s: %d credential(s)", username, len(entries))
        return vault

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def add_credential(
        self,
        label: str,
        username: str,
        password: str,
        expiration: Optional[date] = None,
    ) -> CredentialEntry:
        """Encrypt and persist a credential, then add it to the mapping.

        Adding a label that already exists appends a second line to the
        vault and replaces the in-memory entry; the last line wins on the
        next load.

        Raises:
            ValueError: If label or password is empty.
            SessionClosed: If the session is not active.
        """
        cipher = self._require_active()
        _require(label, "Label")
        _require(password, "Password")
        if label in self._entries:
            logger.warning(
                "Vault add: user=%s label=%s already present, appending duplicate",
                self._username, label,
            )
        self._store.append(
            self._username, label, username or "", cipher.encrypt(password), expiration,
        )
        entry = CredentialEntry(
            username=username or "", password=password, expiration=expiration,
        )
        self._entries[label] = entry
        logger.debug("Vault add: user=%s label=%s", self._username, label)
        return entry

    def delete_credential(self, label: str) -> bool:
        """Remove a credential and rewrite the vault.

        Returns:
            True if the label existed, False otherwise (storage untouched).
        """
        cipher = self._require_active()
        if label not in self._entries:
            return False
        remaining = {k: v for k, v in self._entries.items() if k != label}
        self._store.overwrite(self._username, remaining, cipher)
        self._entries = remaining
        logger.debug("Vault delete: user=%s label=%s", self._username, label)
        return True

    def get_credential(self, label: str) -> Optional[CredentialEntry]:
        """Return the credential for label, or None."""
        self._require_active()
        return self._entries.get(label)

    def list_credentials(self) -> CredentialMap:
        """Return a read-only snapshot of every credential."""
        self._require_active()
        return CredentialMap(self._entries)

    def expiring(self, days: int = EXPIRING_SOON_DAYS, today: Optional[date] = None) -> list[str]:
        """Labels expiring within the next ``days`` days."""
        return self.list_credentials().expiring_within(days, today)

    def stats(self, today: Optional[date] = None) -> dict:
        """Totals of all, non-expiring and soon-expiring credentials."""
        return self.list_credentials().stats(today)

    def change_master_password(self, current_password: str, new_password: str) -> dict:
        """Re-encrypt the vault and verification token under a new password.

        Returns:
            Rotation stats dict.
        """
        self._require_active()
        cipher, stats = rotate_master_password(
            self._accounts,
            self._store,
            self._username,
            self._entries,
            current_password,
            new_password,
        )
        self._cipher = cipher
        return stats

    def close(self) -> None:
        """Discard decrypted credentials and the session key."""
        if self._state is SessionState.CLOSED:
            return
        self._entries.clear()
        self._cipher = None
        self._store.forget_keys(self._username)
        self._state = SessionState.CLOSED
        logger.debug("Vault closed: user=%s", self._username)
