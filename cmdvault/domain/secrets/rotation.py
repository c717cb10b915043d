"""Secure Value Rotation Service.

Re-seals values under the active key after ``KeyManager.rotate()``. This is
the bulk form of the lazy migration done on every read.
"""
import logging
from typing import TYPE_CHECKING, Optional, Tuple

from cmdvault.errors import VaultError
from . import cipher
from .models import RotationReport

if TYPE_CHECKING:
    from .manager import SecureValueStore

logger = logging.getLogger(__name__)


class RotationService:
    """Service for re-sealing stale secure values in batches."""

    def __init__(self, store: "SecureValueStore"):
        self.store = store

    def rotate_batch(self, batch_size: int = 100,
                     cursor: Optional[str] = None) -> Tuple[int, Optional[str], int, int]:
        """
        Rotates a batch of stale values to the active key.

        Args:
            batch_size: Max values to process in this batch.
            cursor: The ref_id of the last value processed in the previous batch.

        Returns:
            A tuple of (rotated_count, last_ref_id, scanned_count, failed_count).
        """
        key_manager = self.store.key_manager
        current = key_manager.active_version()
        stale = self.store.repository.list_stale(current, batch_size, cursor)
        if not stale:
            return 0, None, 0, 0

        rotated_count = 0
        failed_count = 0
        last_ref_id = None
        material = key_manager.material(current)

        for value in stale:
            last_ref_id = value.ref_id
            try:
                if material is None:
                    raise VaultError(f"Active key v{current} is missing")
                old_material = key_manager.material(value.key_version)
                if old_material is None:
                    raise VaultError(f"Key v{value.key_version} is missing")
                plaintext = cipher.open_sealed(old_material, value.ciphertext,
                                               aad=cipher.aad_for(value.ref_id))
                success = self.store.repository.update_ciphertext(
                    value.ref_id,
                    cipher.seal(material, plaintext, aad=cipher.aad_for(value.ref_id)),
                    current,
                    expected_key_version=value.key_version,
                )
                if success:
                    rotated_count += 1
                    logger.info(f"Rotated secure value: {value.ref_id} (v{value.key_version} -> v{current})")
                else:
                    failed_count += 1
                    logger.warning(f"CAS failure for {value.ref_id}: stale key version v{value.key_version}")
            except VaultError as e:
                failed_count += 1
                logger.error(f"Failed to rotate secure value {value.ref_id}: {e.message}")
            except Exception as e:
                # One bad row never stops the pass
                failed_count += 1
                logger.error(f"Failed to rotate secure value {value.ref_id}: {type(e).__name__}: {e}")

        return rotated_count, last_ref_id, len(stale), failed_count

    def rotate_all(self, batch_size: int = 100) -> RotationReport:
        report = RotationReport(target_version=self.store.key_manager.active_version())
        cursor = None
        while True:
            rotated, cursor, scanned, failed = self.rotate_batch(batch_size, cursor)
            report.rotated += rotated
            report.scanned += scanned
            report.failed += failed
            if scanned < batch_size:
                break
        logger.info(
            f"Rotation to v{report.target_version} complete: "
            f"scanned={report.scanned} rotated={report.rotated} failed={report.failed}"
        )
        return report
