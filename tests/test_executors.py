"""Shell and HTTP dispatchers."""
import json
import sys

import httpx
import pytest

from cmdvault.adapters.executors.http import HttpDispatcher, build_request_kwargs
from cmdvault.adapters.executors.shell import ShellDispatcher
from cmdvault.domain.commands.models import BodyType, Command, ExecutionType, HttpMethod

posix_only = pytest.mark.skipif(sys.platform == "win32", reason="needs /bin/sh")


@posix_only
@pytest.mark.asyncio
async def test_shell_success_and_failure():
    shell = ShellDispatcher(timeout=5)

    ok = await shell.run(Command(id="c1", command="echo hello"))
    assert (ok.text, ok.error) == ("hello", None)

    bad = await shell.run(Command(id="c2", command="echo oops >&2; exit 3"))
    assert bad.error == "oops"


@posix_only
@pytest.mark.asyncio
async def test_shell_timeout():
    result = await ShellDispatcher(timeout=0.1).run(Command(id="c1", command="sleep 5"))
    assert result.error.startswith("timed out")


def test_build_request_kwargs():
    form = Command(id="c", http_method=HttpMethod.POST, body_type=BodyType.FORM_DATA,
                   body_data="a=1\nb = two")
    assert build_request_kwargs(form)["data"] == {"a": "1", "b": "two"}

    as_json = Command(id="c", http_method=HttpMethod.POST, body_type=BodyType.JSON, body_data='{"x": 1}')
    kwargs = build_request_kwargs(as_json)
    assert kwargs["content"] == b'{"x": 1}'
    assert kwargs["headers"]["Content-Type"] == "application/json"

    multipart = Command(id="c", http_method=HttpMethod.PUT, body_type=BodyType.MULTIPART,
                        body_data='{"f": "v"}')
    assert build_request_kwargs(multipart)["files"] == {"f": (None, "v")}

    get = Command(id="c", body_type=BodyType.JSON, body_data="{}")
    assert "content" not in build_request_kwargs(get)


@pytest.mark.asyncio
async def test_http_dispatch():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers.get("Authorization")
        seen["query"] = dict(request.url.params)
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json={"token": "abc"})

    dispatcher = HttpDispatcher(transport=httpx.MockTransport(handler))
    command = Command(id="api1", execution_type=ExecutionType.API, url="https://api.test/login",
                      http_method=HttpMethod.POST, headers={"Authorization": "Bearer k"},
                      query_params={"v": "2"}, body_type=BodyType.JSON, body_data='{"u": "me"}')

    result = await dispatcher.run(command)

    assert result.status_code == 201
    assert result.structured == {"token": "abc"}
    assert seen == {"auth": "Bearer k", "query": {"v": "2"}, "body": {"u": "me"}}


@pytest.mark.asyncio
async def test_http_transport_error_is_a_result():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    result = await HttpDispatcher(transport=httpx.MockTransport(handler)).run(
        Command(id="api1", execution_type=ExecutionType.API, url="https://down.test"))
    assert result.error == "connection refused"
    assert result.status_code is None


@pytest.mark.asyncio
async def test_http_non_json_body():
    dispatcher = HttpDispatcher(transport=httpx.MockTransport(lambda r: httpx.Response(200, text="pong")))
    result = await dispatcher.run(Command(id="a", url="https://api.test/ping"))
    assert (result.text, result.structured) == ("pong", None)
