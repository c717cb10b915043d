"""The initial migration produces the schema the SQL stores expect."""
import importlib.util
from pathlib import Path

import pytest
from alembic.migration import MigrationContext
from alembic.operations import Operations
from sqlalchemy import inspect

from cmdvault.adapters.sql.session import create_db_engine, create_session_factory
from cmdvault.adapters.sql.stores import SqlKeyVersionStore, SqlSecureValueRepository
from cmdvault.domain.secrets.models import KeyVersion, SecureValue
from cmdvault.errors import DuplicateLabel

MIGRATION = Path(__file__).resolve().parents[1] / "alembic" / "versions" / "001_initial.py"


def load_migration():
    spec = importlib.util.spec_from_file_location("migration_001_initial", MIGRATION)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def engine(tmp_path):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'migrated.db'}")
    yield engine
    engine.dispose()


def run(engine, step):
    with engine.begin() as connection:
        with Operations.context(MigrationContext.configure(connection)):
            step()


def test_upgrade_creates_tables(engine):
    migration = load_migration()
    run(engine, migration.upgrade)

    inspector = inspect(engine)
    assert {"key_versions", "secure_values", "variables"} <= set(inspector.get_table_names())
    unique = {c["name"] for c in inspector.get_unique_constraints("secure_values")}
    assert "uq_secure_values_label" in unique
    fks = inspector.get_foreign_keys("secure_values")
    assert fks[0]["referred_table"] == "key_versions"


def test_stores_work_on_migrated_schema(engine):
    run(engine, load_migration().upgrade)
    sessions = create_session_factory(engine)

    SqlKeyVersionStore(sessions).insert_version(KeyVersion(version=1, fingerprint="fp", is_active=True))
    repo = SqlSecureValueRepository(sessions)
    repo.insert(SecureValue(ref_id="abc123", ciphertext="ct", key_version=1, label="db"))
    with pytest.raises(DuplicateLabel):
        repo.insert(SecureValue(ref_id="def456", ciphertext="ct", key_version=1, label="db"))


def test_downgrade_drops_everything(engine):
    migration = load_migration()
    run(engine, migration.upgrade)
    run(engine, migration.downgrade)
    assert inspect(engine).get_table_names() == []
