"""SQL repositories against an in-memory SQLite database."""
import pytest

from cmdvault.adapters.memory_store.stores import MemoryPlatformSecretStore
from cmdvault.adapters.sql.session import create_db_engine, create_session_factory, init_db
from cmdvault.adapters.sql.stores import SqlKeyVersionStore, SqlSecureValueRepository, SqlVariableRepository
from cmdvault.domain.secrets.key_manager import KeyManager
from cmdvault.domain.secrets.manager import SecureValueStore
from cmdvault.domain.secrets.models import KeyVersion, SecureValue
from cmdvault.domain.variables.manager import VariableStore
from cmdvault.domain.variables.models import Variable
from cmdvault.errors import DuplicateLabel


@pytest.fixture
def sessions():
    engine = create_db_engine("sqlite://")
    init_db(engine)
    yield create_session_factory(engine)
    engine.dispose()


@pytest.fixture
def key_store(sessions):
    return SqlKeyVersionStore(sessions)


@pytest.fixture
def secure_repo(sessions, key_store):
    # Secure values reference key_versions.version
    key_store.insert_version(KeyVersion(version=1, fingerprint="fp1", is_active=True))
    key_store.insert_version(KeyVersion(version=2, fingerprint="fp2"))
    return SqlSecureValueRepository(sessions)


def test_key_versions_single_active(key_store):
    assert key_store.get_active_version() is None
    assert key_store.get_next_version() == 1

    key_store.insert_version(KeyVersion(version=1, fingerprint="a", is_active=True))
    key_store.insert_version(KeyVersion(version=2, fingerprint="b"))
    key_store.set_active_version(2)

    assert key_store.get_active_version() == 2
    assert [v.is_active for v in key_store.list_versions()] == [False, True]
    assert key_store.get_version(1).fingerprint == "a"
    assert key_store.get_next_version() == 3


def test_secure_value_crud(secure_repo):
    secure_repo.insert(SecureValue(ref_id="abc123", ciphertext="ct", key_version=1, label="db"))

    assert secure_repo.exists("abc123")
    assert secure_repo.get_by_label("db").ref_id == "abc123"
    secure_repo.update_label("abc123", None)
    assert secure_repo.get("abc123").label is None
    assert secure_repo.delete("abc123") is True
    assert secure_repo.delete("abc123") is False


def test_label_unique_constraint(secure_repo):
    secure_repo.insert(SecureValue(ref_id="aaa111", ciphertext="x", key_version=1, label="db"))
    secure_repo.insert(SecureValue(ref_id="bbb222", ciphertext="y", key_version=1))

    with pytest.raises(DuplicateLabel):
        secure_repo.insert(SecureValue(ref_id="ccc333", ciphertext="z", key_version=1, label="db"))
    with pytest.raises(DuplicateLabel):
        secure_repo.update_label("bbb222", "db")
    assert secure_repo.get("bbb222").label is None


def test_update_ciphertext_compare_and_swap(secure_repo):
    secure_repo.insert(SecureValue(ref_id="aaa111", ciphertext="old", key_version=1))

    assert secure_repo.update_ciphertext("aaa111", "new", 2, expected_key_version=2) is False
    assert secure_repo.get("aaa111").ciphertext == "old"
    assert secure_repo.update_ciphertext("aaa111", "new", 2, expected_key_version=1) is True
    assert secure_repo.get("aaa111").key_version == 2


def test_list_stale_pages_by_ref_id(secure_repo):
    for ref_id in ("ddd", "aaa", "ccc", "bbb"):
        secure_repo.insert(SecureValue(ref_id=ref_id, ciphertext="x", key_version=1))
    secure_repo.update_ciphertext("ccc", "x", 2)

    first = secure_repo.list_stale(active_version=2, batch_size=2)
    assert [v.ref_id for v in first] == ["aaa", "bbb"]
    rest = secure_repo.list_stale(active_version=2, batch_size=2, cursor="bbb")
    assert [v.ref_id for v in rest] == ["ddd"]


def test_variables(sessions):
    repo = SqlVariableRepository(sessions)
    repo.insert(Variable(ref_id="v1", value="one", label="env"))

    with pytest.raises(DuplicateLabel):
        repo.insert(Variable(ref_id="v2", value="two", label="env"))
    repo.update_value("v1", "uno")
    assert repo.get("v1").value == "uno"
    assert [v.ref_id for v in repo.list_variables()] == ["v1"]


def test_end_to_end_rotation_on_sql(sessions):
    platform = MemoryPlatformSecretStore()
    manager = KeyManager(platform, SqlKeyVersionStore(sessions))
    store = SecureValueStore(SqlSecureValueRepository(sessions), manager)

    ref_id, _ = store.encrypt("p@ss")
    manager.rotate()
    report = store.rotate_all_to_current_key()

    assert report.rotated == 1
    assert store.decrypt(ref_id) == "p@ss"
    assert store.key_info().stale_counts == {}


def test_variable_store_on_sql(sessions):
    variables = VariableStore(SqlVariableRepository(sessions))
    ref_id = variables.create_with_label("region", "us-east-1")
    assert variables.resolve_label("region") == ref_id
