import pytest

from cmdvault.domain.commands.models import ClipboardItem, Command, ExecutionResult, ExecutionType
from cmdvault.domain.commands.runner import CommandRunner, structured_result
from cmdvault.domain.commands.service import CommandService
from cmdvault.domain.interfaces import CommandDispatcher
from cmdvault.errors import NotFound


class RecordingDispatcher(CommandDispatcher):
    def __init__(self, result=None):
        self.result = result or ExecutionResult(text="ok")
        self.seen = []

    async def run(self, command):
        self.seen.append(command)
        return self.result.model_copy()


@pytest.fixture
def shell():
    return RecordingDispatcher()


@pytest.fixture
def http():
    return RecordingDispatcher(ExecutionResult(text='{"token": "t1"}', status_code=200))


@pytest.fixture
def runner(catalog, engine, shell, http):
    runner = CommandRunner(catalog, engine, shell, http)
    engine.executor = runner
    return runner


@pytest.fixture
def service(catalog, canonicalizer):
    return CommandService(catalog, canonicalizer)


def test_structured_result():
    assert structured_result('  {"a": 1}') == {"a": 1}
    assert structured_result("[1, 2]") == [1, 2]
    assert structured_result("plain") is None
    assert structured_result("{broken") is None


@pytest.mark.asyncio
async def test_run_resolves_secrets_but_stores_canonical_text(runner, service, catalog, shell):
    saved, _ = service.save(Command(id="c1", command="echo {secure:pw123}"))
    assert saved
    stored = catalog.get_item("c1")
    assert "pw123" not in stored.command

    result = await runner.execute("c1")

    assert result.text == "ok"
    assert shell.seen[0].command == "echo pw123"
    after = catalog.get_item("c1")
    assert after.command == stored.command
    assert after.last_output == "ok"
    assert after.last_executed_at is not None


@pytest.mark.asyncio
async def test_api_command_goes_to_http(runner, catalog, http, shell):
    catalog.save_command(Command(id="api1", execution_type=ExecutionType.API, url="https://x/login"))

    result = await runner.execute("api1")

    assert result.structured == {"token": "t1"}
    assert shell.seen == []
    after = catalog.get_item("api1")
    assert after.last_response == '{"token": "t1"}'
    assert after.last_status_code == 200


@pytest.mark.asyncio
async def test_api_without_http_dispatcher(catalog, engine, shell):
    runner = CommandRunner(catalog, engine, shell)
    catalog.save_command(Command(id="api1", execution_type=ExecutionType.API))
    result = await runner.execute("api1")
    assert result.error == "HTTP execution is not configured"


@pytest.mark.asyncio
async def test_execute_clipboard_and_missing(runner, catalog, shell):
    catalog.add_clipboard_item(ClipboardItem(id="clip1", content="copied"))
    assert (await runner.execute("clip1")).text == "copied"
    assert shell.seen == []

    with pytest.raises(NotFound):
        await runner.execute("nope")


@pytest.mark.asyncio
async def test_chained_api_token_feeds_header(runner, catalog, http, shell):
    catalog.save_command(Command(id="auth", execution_type=ExecutionType.API, url="https://x/login"))
    catalog.save_command(Command(id="deploy", command="deploy --token `command@auth|token`"))

    await runner.execute("deploy")

    assert shell.seen[0].command == "deploy --token t1"
    assert len(http.seen) == 1


def test_save_keeps_previous_text_of_failed_field(service, catalog):
    service.save(Command(id="c1", command="echo hi", url="https://a"))

    saved, result = service.save(Command(id="c1", command="echo {secure#missing}", url="https://b"))

    assert saved
    assert set(result.errors) == {"command"}
    stored = catalog.get_item("c1")
    assert stored.command == "echo hi"
    assert stored.url == "https://b"


def test_new_command_with_failing_field_is_not_saved(service, catalog):
    saved, result = service.save(Command(id="new1", command="{secure#missing}"))
    assert not saved
    assert "command" in result.errors
    assert catalog.get_item("new1") is None


def test_atomic_service_rejects_whole_save(catalog, canonicalizer, secure_values):
    service = CommandService(catalog, canonicalizer, atomic=True)
    catalog.save_command(Command(id="c1", command="old"))

    saved, _ = service.save(Command(id="c1", command="{secure:x}", url="{var#missing}"))

    assert not saved
    assert catalog.get_item("c1").command == "old"
    assert secure_values.list_values() == []


def test_save_normalizes_smart_quotes_in_command(service, catalog):
    service.save(Command(id="q1", command="echo “hi”", headers={"X-Note": "“kept”"}))
    stored = catalog.get_item("q1")
    assert stored.command == 'echo "hi"'
    assert stored.headers["X-Note"] == "“kept”"


@pytest.mark.asyncio
async def test_self_reference_is_refused_before_dispatch(runner, catalog, shell):
    catalog.save_command(Command(id="a1", command="echo `command@a1`"))

    await runner.execute("a1")

    assert [c.command for c in shell.seen] == ["echo Error: Reference cycle: a1 -> a1"]


@pytest.mark.asyncio
async def test_indirect_cycle_runs_each_command_once(runner, catalog, shell):
    catalog.save_command(Command(id="a1", command="a `command@b1`"))
    catalog.save_command(Command(id="b1", command="b `command@a1`"))

    await runner.execute("a1")

    assert [c.command for c in shell.seen] == ["b Error: Reference cycle: a1 -> b1 -> a1", "a ok"]


def test_failed_new_command_leaves_no_records_behind(service, catalog, secure_values):
    saved, result = service.save(Command(id="n1", url="{secure#tok:abc}", body_data="{var#missing}"))

    assert not saved
    assert set(result.errors) == {"body_data"}
    assert secure_values.list_values() == []

    saved, result = service.save(Command(id="n1", url="{secure#tok:abc}", body_data="plain"))

    assert saved, result.errors
    assert secure_values.resolve_label("tok") is not None
    assert "abc" not in catalog.get_item("n1").url
