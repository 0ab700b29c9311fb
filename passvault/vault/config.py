"""
Vault Configuration — Storage location and default cipher settings.

Reads settings from environment variables:
    VAULT_DATA_DIR = <directory holding the account and vault artifacts>
    VAULT_DEFAULT_ALGORITHM = AES | DES | DESede
    VAULT_DEFAULT_MODE = CBC | ECB | GCM

Security Note:
    Configuration never carries key material. Keys are derived per session
    from the master password and are never persisted.
"""
import os
import logging
from pathlib import Path

from pydantic import BaseModel, Field, field_validator, model_validator

from .crypto import Algorithm, Mode, check_combination
from .storage import FileStorage

logger = logging.getLogger("passvault.vault")

DEFAULT_DATA_DIR = "user_data"


class VaultConfig(BaseModel):
    """Validated vault configuration."""

    data_dir: Path = Field(default=Path(DEFAULT_DATA_DIR))
    default_algorithm: Algorithm = Field(default=Algorithm.AES)
    default_mode: Mode = Field(default=Mode.GCM)

    @field_validator("data_dir")
    @classmethod
    def validate_data_dir(cls, v: Path) -> Path:
        """Reject an empty data directory."""
        if not str(v).strip():
            raise ValueError("data_dir cannot be empty")
        return v.expanduser()

    @model_validator(mode="after")
    def validate_default_cipher(self) -> "VaultConfig":
        """Ensure the default algorithm/mode pair is supported."""
        check_combination(self.default_algorithm, self.default_mode)
        return self

    def storage(self) -> FileStorage:
        """Return a FileStorage rooted at data_dir."""
        return FileStorage(self.data_dir)

    @classmethod
    def from_env(cls) -> "VaultConfig":
        """Create VaultConfig by loading values from environment.

        Returns:
            Populated VaultConfig instance.
        """
        config = cls(
            data_dir=os.environ.get("VAULT_DATA_DIR", DEFAULT_DATA_DIR),
            default_algorithm=os.environ.get("VAULT_DEFAULT_ALGORITHM", "AES"),
            default_mode=os.environ.get("VAULT_DEFAULT_MODE", "GCM"),
        )
        logger.debug(
            "Vault config: data_dir=%s default=%s/%s",
            config.data_dir,
            config.default_algorithm.value,
            config.default_mode.value,
        )
        return config
