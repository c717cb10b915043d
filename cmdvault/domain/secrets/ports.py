"""Secrets Domain Ports (Interfaces)."""
from abc import ABC, abstractmethod
from typing import List, Optional

from .models import KeyVersion, SecureValue


class PlatformSecretStore(ABC):
    """Abstract Port for the platform secret store holding raw key material.

    ``scope`` is the service name, ``account`` is ``"v<version>"``.
    """

    @abstractmethod
    def put(self, scope: str, account: str, data: bytes) -> None:
        """Store bytes, replacing any existing item. Raises on failure."""
        ...

    @abstractmethod
    def get(self, scope: str, account: str) -> Optional[bytes]:
        ...

    @abstractmethod
    def delete(self, scope: str, account: str) -> None:
        ...


class KeyVersionStore(ABC):
    """Abstract Port for key version metadata rows (append-only)."""

    @abstractmethod
    def get_active_version(self) -> Optional[int]:
        ...

    @abstractmethod
    def get_next_version(self) -> int:
        """Return ``max(version) + 1`` (1 when empty)."""
        ...

    @abstractmethod
    def insert_version(self, key_version: KeyVersion) -> None:
        ...

    @abstractmethod
    def set_active_version(self, version: int) -> None:
        """Activate ``version`` and deactivate every other version."""
        ...

    @abstractmethod
    def get_version(self, version: int) -> Optional[KeyVersion]:
        ...

    @abstractmethod
    def list_versions(self) -> List[KeyVersion]:
        ...


class SecureValueRepository(ABC):
    """Abstract Port for secure value persistence."""

    @abstractmethod
    def insert(self, value: SecureValue) -> None:
        """Insert a row. Raises DuplicateLabel if the label is taken."""
        ...

    @abstractmethod
    def get(self, ref_id: str) -> Optional[SecureValue]:
        ...

    @abstractmethod
    def get_by_label(self, label: str) -> Optional[SecureValue]:
        ...

    @abstractmethod
    def exists(self, ref_id: str) -> bool:
        ...

    @abstractmethod
    def update_ciphertext(self, ref_id: str, ciphertext: str, key_version: int,
                          expected_key_version: Optional[int] = None) -> bool:
        """Replace the sealed payload. With ``expected_key_version`` this is a
        compare-and-swap: returns False when the stored version differs."""
        ...

    @abstractmethod
    def update_label(self, ref_id: str, label: Optional[str]) -> None:
        ...

    @abstractmethod
    def delete(self, ref_id: str) -> bool:
        ...

    @abstractmethod
    def list_values(self) -> List[SecureValue]:
        ...

    @abstractmethod
    def list_stale(self, active_version: int, batch_size: int,
                   cursor: Optional[str] = None) -> List[SecureValue]:
        """Rows with ``key_version < active_version`` ordered by ref_id, after ``cursor``."""
        ...
