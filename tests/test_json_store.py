import json

import pytest

from cmdvault.adapters.json_store.stores import CommandJsonCatalog, EnvironmentJsonStore
from cmdvault.domain.commands.models import Command, Environment, ExecutionType
from cmdvault.errors import NotFound


def test_environment_store(tmp_path):
    store = EnvironmentJsonStore(str(tmp_path / "environments.json"))
    assert store.get_active() is None
    assert store.active_variables() == {}

    store.upsert(Environment(id="stg", name="Staging", order=2, variables={"HOST": "stg"}))
    store.upsert(Environment(id="dev", name="Dev", order=1))
    store.set_active("stg")

    assert [e.id for e in store.list_environments()] == ["dev", "stg"]
    assert store.active_variables() == {"HOST": "stg"}
    with pytest.raises(NotFound):
        store.set_active("prod")

    store.upsert(Environment(id="stg", name="Staging", order=2, variables={"HOST": "stg2"}))
    assert store.get_active().variables == {"HOST": "stg2"}


def test_environment_store_reads_existing_file(tmp_path):
    path = tmp_path / "environments.json"
    path.write_text(json.dumps({
        "active_id": "prod",
        "environments": [{"id": "prod", "name": "Production", "variables": {"HOST": "p"}}],
    }))
    assert EnvironmentJsonStore(str(path)).active_variables() == {"HOST": "p"}


def test_command_catalog(tmp_path):
    path = tmp_path / "commands.json"
    path.write_text(json.dumps({
        "commands": [],
        "clipboard": [{"id": "clip1", "content": "copied", "timestamp": "2024-01-01T00:00:00+00:00"}],
    }))
    catalog = CommandJsonCatalog(str(path))

    catalog.save_command(Command(id="c1", label="login", execution_type=ExecutionType.API,
                                 url="https://x", headers={"Accept": "application/json"}))
    catalog.save_command(Command(id="c1", label="login", execution_type=ExecutionType.API, url="https://y"))

    assert catalog.command_id_by_label("login") == "c1"
    assert catalog.command_id_by_label("nope") is None
    assert [c.url for c in catalog.list_commands()] == ["https://y"]
    assert catalog.get_item("clip1").content == "copied"
    assert catalog.get_item("missing") is None
    # Saving commands keeps the clipboard section intact
    assert json.loads(path.read_text())["clipboard"][0]["id"] == "clip1"
