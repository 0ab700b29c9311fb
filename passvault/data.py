from typing import Optional
from datetime import date
from enum import Enum
from collections.abc import Iterator, Mapping
from pydantic import BaseModel, ConfigDict, Field


EXPIRING_SOON_DAYS = 30
EXPIRING_WEEK_DAYS = 7


class ExpirationStatus(str, Enum):
    NO_EXPIRATION = "no-expiration"
    EXPIRED = "expired"
    EXPIRES_THIS_WEEK = "expires-this-week"
    EXPIRES_SOON = "expires-soon"
    HEALTHY = "healthy"


class CredentialEntry(BaseModel):
    """CredentialEntry.

    Decrypted credential held in memory for an active session.
    The password is excluded from repr.
    """
    username: str = ""
    password: str = Field(repr=False)
    expiration: Optional[date] = None

    model_config = ConfigDict(frozen=True)

    def days_until_expiration(self, today: Optional[date] = None) -> Optional[int]:
        if self.expiration is None:
            return None
        today = today or date.today()
        return (self.expiration - today).days

    def is_expired(self, today: Optional[date] = None) -> bool:
        days = self.days_until_expiration(today)
        return days is not None and days < 0

    def status(self, today: Optional[date] = None) -> ExpirationStatus:
        """Classify the entry by how close it is to its expiration date."""
        days = self.days_until_expiration(today)
        if days is None:
            return ExpirationStatus.NO_EXPIRATION
        if days < 0:
            return ExpirationStatus.EXPIRED
        if days <= EXPIRING_WEEK_DAYS:
            return ExpirationStatus.EXPIRES_THIS_WEEK
        if days <= EXPIRING_SOON_DAYS:
            return ExpirationStatus.EXPIRES_SOON
        return ExpirationStatus.HEALTHY


class CredentialMap(Mapping[str, CredentialEntry]):
    """Read-only label -> CredentialEntry mapping.

    Returned to callers as a snapshot; mutating the session goes
    through the SessionVault only.
    """

    def __init__(self, entries: Optional[Mapping[str, CredentialEntry]] = None) -> None:
        self._entries: dict[str, CredentialEntry] = dict(entries or {})

    def __repr__(self) -> str:
        return f'<CredentialMap labels={sorted(self._entries)!r}>'

    def __getitem__(self, label: str) -> CredentialEntry:
        return self._entries[label]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, label: object) -> bool:
        return label in self._entries

    def labels(self) -> list[str]:
        return sorted(self._entries)

    def expiring_within(self, days: int = EXPIRING_SOON_DAYS, today: Optional[date] = None) -> list[str]:
        """Labels whose expiration falls between today and today + days."""
        result = []
        for label, entry in self._entries.items():
            remaining = entry.days_until_expiration(today)
            if remaining is not None and 0 <= remaining <= days:
                result.append(label)
        return sorted(result)

    def stats(self, today: Optional[date] = None) -> dict:
        return {
            "total": len(self._entries),
            "no_expiry": sum(
                1 for e in self._entries.values() if e.expiration is None
            ),
            "expiring_soon": len(self.expiring_within(EXPIRING_SOON_DAYS, today)),
        }
