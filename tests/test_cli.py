import json

import pytest
from click.testing import CliRunner

from cmdvault.adapters.memory_store.stores import MemoryCommandCatalog, MemoryEnvironmentStore
from cmdvault.cli import cli
from cmdvault.dependencies import build_container
from cmdvault.domain.commands.models import ClipboardItem
from cmdvault.settings import Settings


@pytest.fixture
def container():
    settings = Settings(database_url="sqlite://", keychain_backend="memory", redis_url=None,
                        environments_path="", commands_path="")
    container = build_container(settings, catalog=MemoryCommandCatalog(), environments=MemoryEnvironmentStore())
    container.catalog.add_clipboard_item(ClipboardItem(id="clip01", content='{"token": "abc"}'))
    return container


@pytest.fixture
def invoke(container):
    runner = CliRunner()

    def _invoke(*args, input=None):
        return runner.invoke(cli, list(args), obj=container, input=input)
    return _invoke


def test_secure_add_reveal_list(invoke):
    added = invoke("secure", "add", "--label", "db", input="hunter2\n")
    assert added.exit_code == 0, added.output
    ref_id = added.output.strip().splitlines()[-1]

    assert invoke("secure", "reveal", ref_id).output.strip() == "hunter2"
    listed = json.loads(invoke("secure", "list", "--format", "json").output)
    assert [(v["ref_id"], v["label"]) for v in listed] == [(ref_id, "db")]

    dup = invoke("secure", "add", "--label", "db", "--value", "x")
    assert dup.exit_code == 1


def test_secure_set_label_delete(invoke):
    ref_id = invoke("secure", "add", "--value", "one").output.strip()

    assert invoke("secure", "set", ref_id, "--value", "two").exit_code == 0
    assert invoke("secure", "reveal", ref_id).output.strip() == "two"
    assert invoke("secure", "label", ref_id, "main").exit_code == 0
    assert invoke("secure", "delete", ref_id).exit_code == 0
    assert invoke("secure", "reveal", ref_id).exit_code == 1


def test_keys(invoke):
    invoke("secure", "add", "--value", "x")
    assert "v2" in invoke("keys", "rotate").output

    status = json.loads(invoke("keys", "status", "--format", "json").output)
    assert status["active_version"] == 2
    assert status["stale_counts"] == {"1": 1}

    assert "rotated=1" in invoke("keys", "rotate-all").output
    assert "v1" in invoke("keys", "status").output


def test_var_commands(invoke):
    ref_id = invoke("var", "set", "prod", "--label", "env").output.strip()
    assert invoke("var", "get", ref_id).output.strip() == "prod"
    assert invoke("var", "set", "stg", "--id", ref_id).output.strip() == ref_id
    assert "stg" in invoke("var", "list").output
    assert invoke("var", "delete", ref_id).exit_code == 0
    assert invoke("var", "get", ref_id).exit_code == 1


def test_canonicalize_display_resolve(invoke):
    canonical = invoke("canonicalize", "-", input="login {secure#api:s3cr3t} `id@clip01|token`").output.strip()
    assert "s3cr3t" not in canonical

    assert invoke("display", canonical).output.strip() == "login [api] [clip01|token]"
    assert invoke("resolve", canonical).output.strip() == "login s3cr3t abc"


def test_canonicalize_error(invoke):
    result = invoke("canonicalize", "echo {var#missing}")
    assert result.exit_code == 1
    assert "LABEL_NOT_FOUND" in result.output
    assert "{var#missing}" in result.output


def test_run_missing_command(invoke):
    result = invoke("run", "nope")
    assert result.exit_code == 1
    assert "not found" in result.output


def test_canonicalize_error_quotes_the_failing_placeholder(invoke):
    result = invoke("canonicalize", "{var#x:1} {secure#missing}")
    assert result.exit_code == 1
    assert "at 10-26: {secure#missing}" in result.output
