"""SQL-backed repositories for key versions, secure values and variables.

Each call opens its own short session from the factory and commits before
returning. Label uniqueness is also enforced by the unique column
constraint, surfaced as DuplicateLabel.
"""
import logging
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from cmdvault.domain.interfaces import VariableRepository
from cmdvault.domain.secrets.models import KeyVersion, SecureValue, utcnow
from cmdvault.domain.secrets.ports import KeyVersionStore, SecureValueRepository
from cmdvault.domain.variables.models import Variable
from cmdvault.errors import DuplicateLabel
from .models import KeyVersionRow, SecureValueRow, VariableRow

logger = logging.getLogger(__name__)


def _key_version(row: KeyVersionRow) -> KeyVersion:
    return KeyVersion(version=row.version, fingerprint=row.fingerprint,
                      is_active=row.is_active, created_at=row.created_at)


def _secure_value(row: SecureValueRow) -> SecureValue:
    return SecureValue(ref_id=row.ref_id, ciphertext=row.ciphertext, key_version=row.key_version,
                       label=row.label, created_at=row.created_at, updated_at=row.updated_at)


def _variable(row: VariableRow) -> Variable:
    return Variable(ref_id=row.ref_id, value=row.value, label=row.label,
                    created_at=row.created_at, updated_at=row.updated_at)


class SqlKeyVersionStore(KeyVersionStore):
    def __init__(self, session_factory: sessionmaker):
        self._sessions = session_factory

    def get_active_version(self) -> Optional[int]:
        with self._sessions() as db:
            row = db.query(KeyVersionRow).filter(KeyVersionRow.is_active.is_(True)).first()
            return row.version if row else None

    def get_next_version(self) -> int:
        with self._sessions() as db:
            current = db.query(func.max(KeyVersionRow.version)).scalar()
            return (current or 0) + 1

    def insert_version(self, key_version: KeyVersion) -> None:
        with self._sessions() as db:
            db.add(KeyVersionRow(
                version=key_version.version,
                fingerprint=key_version.fingerprint,
                is_active=key_version.is_active,
                created_at=key_version.created_at,
            ))
            db.commit()

    def set_active_version(self, version: int) -> None:
        # Single transaction so exactly one row is active afterwards
        with self._sessions() as db:
            db.query(KeyVersionRow).filter(KeyVersionRow.version != version).update(
                {KeyVersionRow.is_active: False}, synchronize_session=False
            )
            db.query(KeyVersionRow).filter(KeyVersionRow.version == version).update(
                {KeyVersionRow.is_active: True}, synchronize_session=False
            )
            db.commit()

    def get_version(self, version: int) -> Optional[KeyVersion]:
        with self._sessions() as db:
            row = db.get(KeyVersionRow, version)
            return _key_version(row) if row else None

    def list_versions(self) -> List[KeyVersion]:
        with self._sessions() as db:
            return [_key_version(r) for r in db.query(KeyVersionRow).order_by(KeyVersionRow.version)]


class SqlSecureValueRepository(SecureValueRepository):
    def __init__(self, session_factory: sessionmaker):
        self._sessions = session_factory

    def insert(self, value: SecureValue) -> None:
        with self._sessions() as db:
            db.add(SecureValueRow(
                ref_id=value.ref_id,
                ciphertext=value.ciphertext,
                key_version=value.key_version,
                label=value.label,
                created_at=value.created_at,
            ))
            try:
                db.commit()
            except IntegrityError as e:
                db.rollback()
                if value.label is not None and self.get_by_label(value.label) is not None:
                    raise DuplicateLabel(f"Secure label '{value.label}' already exists",
                                         label=value.label) from e
                raise

    def get(self, ref_id: str) -> Optional[SecureValue]:
        with self._sessions() as db:
            row = db.get(SecureValueRow, ref_id)
            return _secure_value(row) if row else None

    def get_by_label(self, label: str) -> Optional[SecureValue]:
        with self._sessions() as db:
            row = db.query(SecureValueRow).filter(SecureValueRow.label == label).first()
            return _secure_value(row) if row else None

    def exists(self, ref_id: str) -> bool:
        with self._sessions() as db:
            return db.query(SecureValueRow.ref_id).filter(SecureValueRow.ref_id == ref_id).first() is not None

    def update_ciphertext(self, ref_id: str, ciphertext: str, key_version: int,
                          expected_key_version: Optional[int] = None) -> bool:
        with self._sessions() as db:
            query = db.query(SecureValueRow).filter(SecureValueRow.ref_id == ref_id)
            if expected_key_version is not None:
                query = query.filter(SecureValueRow.key_version == expected_key_version)
            updated = query.update(
                {
                    SecureValueRow.ciphertext: ciphertext,
                    SecureValueRow.key_version: key_version,
                    SecureValueRow.updated_at: utcnow(),
                },
                synchronize_session=False,
            )
            db.commit()
            return updated == 1

    def update_label(self, ref_id: str, label: Optional[str]) -> None:
        with self._sessions() as db:
            try:
                db.query(SecureValueRow).filter(SecureValueRow.ref_id == ref_id).update(
                    {SecureValueRow.label: label, SecureValueRow.updated_at: utcnow()},
                    synchronize_session=False,
                )
                db.commit()
            except IntegrityError as e:
                db.rollback()
                raise DuplicateLabel(f"Secure label '{label}' already exists", label=label) from e

    def delete(self, ref_id: str) -> bool:
        with self._sessions() as db:
            deleted = db.query(SecureValueRow).filter(SecureValueRow.ref_id == ref_id).delete()
            db.commit()
            return deleted > 0

    def list_values(self) -> List[SecureValue]:
        with self._sessions() as db:
            rows = db.query(SecureValueRow).order_by(SecureValueRow.created_at, SecureValueRow.ref_id)
            return [_secure_value(r) for r in rows]

    def list_stale(self, active_version: int, batch_size: int,
                   cursor: Optional[str] = None) -> List[SecureValue]:
        with self._sessions() as db:
            query = db.query(SecureValueRow).filter(SecureValueRow.key_version < active_version)
            if cursor:
                query = query.filter(SecureValueRow.ref_id > cursor)
            rows = query.order_by(SecureValueRow.ref_id).limit(batch_size).all()
            return [_secure_value(r) for r in rows]


class SqlVariableRepository(VariableRepository):
    def __init__(self, session_factory: sessionmaker):
        self._sessions = session_factory

    def insert(self, variable: Variable) -> None:
        with self._sessions() as db:
            db.add(VariableRow(
                ref_id=variable.ref_id,
                value=variable.value,
                label=variable.label,
                created_at=variable.created_at,
            ))
            try:
                db.commit()
            except IntegrityError as e:
                db.rollback()
                if variable.label is not None and self.get_by_label(variable.label) is not None:
                    raise DuplicateLabel(f"Variable label '{variable.label}' already exists",
                                         label=variable.label) from e
                raise

    def get(self, ref_id: str) -> Optional[Variable]:
        with self._sessions() as db:
            row = db.get(VariableRow, ref_id)
            return _variable(row) if row else None

    def get_by_label(self, label: str) -> Optional[Variable]:
        with self._sessions() as db:
            row = db.query(VariableRow).filter(VariableRow.label == label).first()
            return _variable(row) if row else None

    def exists(self, ref_id: str) -> bool:
        with self._sessions() as db:
            return db.query(VariableRow.ref_id).filter(VariableRow.ref_id == ref_id).first() is not None

    def update_value(self, ref_id: str, value: str) -> None:
        with self._sessions() as db:
            db.query(VariableRow).filter(VariableRow.ref_id == ref_id).update(
                {VariableRow.value: value, VariableRow.updated_at: utcnow()},
                synchronize_session=False,
            )
            db.commit()

    def update_label(self, ref_id: str, label: Optional[str]) -> None:
        with self._sessions() as db:
            try:
                db.query(VariableRow).filter(VariableRow.ref_id == ref_id).update(
                    {VariableRow.label: label, VariableRow.updated_at: utcnow()},
                    synchronize_session=False,
                )
                db.commit()
            except IntegrityError as e:
                db.rollback()
                raise DuplicateLabel(f"Variable label '{label}' already exists", label=label) from e

    def delete(self, ref_id: str) -> bool:
        with self._sessions() as db:
            deleted = db.query(VariableRow).filter(VariableRow.ref_id == ref_id).delete()
            db.commit()
            return deleted > 0

    def list_variables(self) -> List[Variable]:
        with self._sessions() as db:
            return [_variable(r) for r in db.query(VariableRow).order_by(VariableRow.created_at)]
