"""HTTP dispatch for API commands."""
import json
import logging
from typing import Any, Dict, Optional

import httpx

from cmdvault.domain.commands.models import BodyType, Command, ExecutionResult, HttpMethod
from cmdvault.domain.interfaces import CommandDispatcher

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


def _form_fields(body: str) -> Dict[str, str]:
    """Form bodies are a JSON object or ``key=value`` lines."""
    try:
        parsed = json.loads(body)
        if isinstance(parsed, dict):
            return {str(k): str(v) for k, v in parsed.items()}
    except ValueError:
        pass
    fields = {}
    for line in body.replace("&", "\n").splitlines():
        key, sep, value = line.partition("=")
        if sep and key.strip():
            fields[key.strip()] = value.strip()
    return fields


def build_request_kwargs(command: Command) -> Dict[str, Any]:
    kwargs: Dict[str, Any] = {
        "headers": dict(command.headers),
        "params": dict(command.query_params) or None,
    }
    if command.http_method == HttpMethod.GET or command.body_type == BodyType.NONE:
        return kwargs
    if command.body_type == BodyType.JSON:
        kwargs["content"] = command.body_data.encode("utf-8")
        kwargs["headers"].setdefault("Content-Type", "application/json")
    elif command.body_type == BodyType.FORM_DATA:
        kwargs["data"] = _form_fields(command.body_data)
    elif command.body_type == BodyType.MULTIPART:
        kwargs["files"] = {k: (None, v) for k, v in _form_fields(command.body_data).items()}
    return kwargs


class HttpDispatcher(CommandDispatcher):
    def __init__(self, timeout: float = DEFAULT_TIMEOUT, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.timeout = timeout
        self.transport = transport

    async def run(self, command: Command) -> ExecutionResult:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.request(command.http_method.value, command.url,
                                                **build_request_kwargs(command))
        except httpx.HTTPError as e:
            logger.warning(f"Request for command {command.id} failed: {type(e).__name__}")
            return ExecutionResult(error=str(e) or type(e).__name__)

        try:
            structured = response.json()
        except ValueError:
            structured = None
        return ExecutionResult(text=response.text, structured=structured, status_code=response.status_code)
