"""Secure Value Store with AES-GCM encryption and lazy key migration.

Values are never stored in plaintext. Only the ``ref_id`` of a value ever
appears in persisted text.
"""
import logging
from typing import List, Optional, Tuple

from cmdvault.errors import DuplicateLabel, KeyMissing, NotFound
from cmdvault.utils.id import short_id
from . import cipher
from .key_manager import KeyManager
from .models import KeyInfo, RotationReport, SecureValue, utcnow
from .ports import SecureValueRepository

logger = logging.getLogger(__name__)


class SecureValueStore:
    """Encrypts, decrypts and manages secure values."""

    def __init__(self, repository: SecureValueRepository, key_manager: KeyManager,
                 ref_id_length: int = 6):
        self.repository = repository
        self.key_manager = key_manager
        self.ref_id_length = ref_id_length

    def generate_ref_id(self) -> str:
        return short_id(self.ref_id_length, exists=self.repository.exists)

    def encrypt(self, plaintext: str, label: Optional[str] = None) -> Tuple[str, SecureValue]:
        """Seal ``plaintext`` under the active key and persist it."""
        version = self.key_manager.active_version()
        material = self.key_manager.material(version)
        if material is None:
            raise KeyMissing(f"Active key v{version} is missing from the platform store", version=version)

        ref_id = self.generate_ref_id()
        value = SecureValue(
            ref_id=ref_id,
            ciphertext=cipher.seal(material, plaintext, aad=cipher.aad_for(ref_id)),
            key_version=version,
            label=label,
        )
        self.repository.insert(value)
        logger.info(f"Stored secure value {ref_id} (v{version})")
        return ref_id, value

    def with_label(self, plaintext: str, label: str) -> str:
        """Encrypt under a new unique label. Callers must serialize saves per document."""
        if self.repository.get_by_label(label) is not None:
            raise DuplicateLabel(f"Secure label '{label}' already exists", label=label)
        ref_id, _ = self.encrypt(plaintext, label=label)
        return ref_id

    def resolve_label(self, label: str) -> Optional[str]:
        value = self.repository.get_by_label(label)
        return value.ref_id if value else None

    def label_for(self, ref_id: str) -> Optional[str]:
        value = self.repository.get(ref_id)
        return value.label if value else None

    def decrypt(self, ref_id: str) -> str:
        """Return the plaintext for ``ref_id``.

        Raises NotFound, KeyMissing or AuthFailure. When the value was sealed
        under an older key it is re-sealed under the active key as a side
        effect; the outcome of that rewrite never affects the returned value.
        """
        stored = self.repository.get(ref_id)
        if stored is None:
            raise NotFound(f"Secure value {ref_id} not found", ref_id=ref_id)

        material = self.key_manager.material(stored.key_version)
        if material is None:
            raise KeyMissing(f"Key v{stored.key_version} for {ref_id} is missing",
                             ref_id=ref_id, version=stored.key_version)

        plaintext = cipher.open_sealed(material, stored.ciphertext, aad=cipher.aad_for(ref_id))

        # Lazy migration: older key version -> re-seal under the active key
        try:
            current = self.key_manager.active_version()
            if stored.key_version < current:
                self._migrate(stored, plaintext, current)
        except Exception as e:
            logger.warning(f"Lazy migration of {ref_id} failed: {e}")

        return plaintext

    def update_value(self, ref_id: str, plaintext: str) -> None:
        """Replace the plaintext of an existing value (sealed under the active key)."""
        if not self.repository.exists(ref_id):
            raise NotFound(f"Secure value {ref_id} not found", ref_id=ref_id)
        version = self.key_manager.active_version()
        material = self.key_manager.material(version)
        if material is None:
            raise KeyMissing(f"Active key v{version} is missing from the platform store", version=version)
        self.repository.update_ciphertext(
            ref_id, cipher.seal(material, plaintext, aad=cipher.aad_for(ref_id)), version
        )

    def set_label(self, ref_id: str, label: Optional[str]) -> None:
        if not self.repository.exists(ref_id):
            raise NotFound(f"Secure value {ref_id} not found", ref_id=ref_id)
        if label is not None:
            owner = self.repository.get_by_label(label)
            if owner is not None and owner.ref_id != ref_id:
                raise DuplicateLabel(f"Secure label '{label}' already exists", label=label)
        self.repository.update_label(ref_id, label)

    def delete(self, ref_id: str) -> bool:
        deleted = self.repository.delete(ref_id)
        if deleted:
            logger.info(f"Deleted secure value {ref_id}")
        return deleted

    def list_values(self) -> List[dict]:
        """List secure value metadata (no ciphertext, no plaintext)."""
        return [v.metadata() for v in self.repository.list_values()]

    def rotate_all_to_current_key(self, batch_size: int = 100) -> RotationReport:
        """Eagerly re-seal every value that is behind the active key version."""
        from .rotation import RotationService
        return RotationService(self).rotate_all(batch_size=batch_size)

    def key_info(self) -> KeyInfo:
        version = self.key_manager.active_version()
        counts: dict = {}
        for value in self.repository.list_values():
            counts[value.key_version] = counts.get(value.key_version, 0) + 1
        return KeyInfo(
            active_version=version,
            value_count=counts.get(version, 0),
            stale_counts={v: c for v, c in counts.items() if v < version},
        )

    def _migrate(self, stored: SecureValue, plaintext: str, to_version: int) -> bool:
        material = self.key_manager.material(to_version)
        if material is None:
            logger.warning(f"Cannot migrate {stored.ref_id}: key v{to_version} missing")
            return False
        ciphertext = cipher.seal(material, plaintext, aad=cipher.aad_for(stored.ref_id))
        # CAS on the old version so a concurrent edit is not overwritten
        migrated = self.repository.update_ciphertext(
            stored.ref_id, ciphertext, to_version, expected_key_version=stored.key_version
        )
        if migrated:
            logger.info(f"Migrated {stored.ref_id} v{stored.key_version} -> v{to_version}")
        return migrated
