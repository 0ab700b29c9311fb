"""
Vault Storage — Artifact persistence behind an injectable interface.

Each account owns two artifacts, addressed by name under a storage root:
- ``<username>_config.txt`` — account record (text)
- ``<username>_passwords.txt`` — encrypted vault blob (raw bytes)

``FileStorage`` keeps them as files under a root directory. ``MemoryStorage``
keeps them in a dict and is meant for tests and throwaway sessions.
"""
import os
import logging
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger("passvault.vault")

ACCOUNT_SUFFIX = "_config.txt"
VAULT_SUFFIX = "_passwords.txt"
_SEPARATORS = ("/", "\\")


def account_artifact(username: str) -> str:
    """Name of the account record artifact for username."""
    return f"{username}{ACCOUNT_SUFFIX}"


def vault_artifact(username: str) -> str:
    """Name of the vault artifact for username."""
    return f"{username}{VAULT_SUFFIX}"


class Storage(ABC):
    """Named-artifact storage used by the account and credential stores."""

    @abstractmethod
    def read_bytes(self, name: str) -> Optional[bytes]:
        """Return the artifact content, or None if it does not exist."""

    @abstractmethod
    def write_bytes(self, name: str, data: bytes) -> None:
        """Create or replace the artifact."""

    @abstractmethod
    def exists(self, name: str) -> bool:
        """Check if the artifact exists."""

    @abstractmethod
    def delete(self, name: str) -> bool:
        """Remove the artifact. Returns True if it existed."""

    def read_text(self, name: str) -> Optional[str]:
        data = self.read_bytes(name)
        if data is None:
            return None
        return data.decode("utf-8")

    def write_text(self, name: str, content: str) -> None:
        self.write_bytes(name, content.encode("utf-8"))


class FileStorage(Storage):
    """Artifacts stored as files in a root directory.

    The directory is created on first write. Writes go to a temporary file
    in the same directory that then replaces the target.
    """

    def __init__(self, root: Union[str, Path] = "user_data"):
        self.root = Path(root)

    def __repr__(self) -> str:
        return f"<FileStorage root={str(self.root)!r}>"

    def path(self, name: str) -> Path:
        """Location of an artifact; name must be a plain file name.

        Raises:
            ValueError: If name is empty, a dot entry, or contains a path
                separator.
        """
        if not name or name in (".", "..") or any(
            sep in name for sep in _SEPARATORS
        ):
            raise ValueError(f"Invalid artifact name: {name!r}")
        return self.root / name

    def read_bytes(self, name: str) -> Optional[bytes]:
        try:
            return self.path(name).read_bytes()
        except FileNotFoundError:
            return None

    def write_bytes(self, name: str, data: bytes) -> None:
        target = self.path(name)
        self.root.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.root, prefix=f".{name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
            os.replace(tmp, target)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def exists(self, name: str) -> bool:
        return self.path(name).is_file()

    def delete(self, name: str) -> bool:
        try:
            self.path(name).unlink()
        except FileNotFoundError:
            return False
        logger.debug("Removed artifact %s from %s", name, self.root)
        return True


class MemoryStorage(Storage):
    """Artifacts kept in process memory."""

    def __init__(self):
        self._artifacts: dict[str, bytes] = {}

    def read_bytes(self, name: str) -> Optional[bytes]:
        return self._artifacts.get(name)

    def write_bytes(self, name: str, data: bytes) -> None:
        self._artifacts[name] = bytes(data)

    def exists(self, name: str) -> bool:
        return name in self._artifacts

    def delete(self, name: str) -> bool:
        return self._artifacts.pop(name, None) is not None

    def names(self) -> list[str]:
        return sorted(self._artifacts)
