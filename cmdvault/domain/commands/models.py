"""Command, clipboard and environment models (collaborators of the engine)."""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from cmdvault.domain.secrets.models import utcnow


class ExecutionType(str, Enum):
    TERMINAL = "terminal"
    BACKGROUND = "background"
    SCRIPT = "script"
    SCHEDULE = "schedule"
    API = "api"


class HttpMethod(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"


class BodyType(str, Enum):
    NONE = "none"
    JSON = "json"
    FORM_DATA = "formData"
    MULTIPART = "multipart"


class Command(BaseModel):
    id: str
    title: str = ""
    label: Optional[str] = None
    execution_type: ExecutionType = ExecutionType.BACKGROUND
    command: str = ""
    # API commands
    url: str = ""
    http_method: HttpMethod = HttpMethod.GET
    headers: Dict[str, str] = Field(default_factory=dict)
    query_params: Dict[str, str] = Field(default_factory=dict)
    body_type: BodyType = BodyType.NONE
    body_data: str = ""
    # Results of the last run
    last_output: Optional[str] = None
    last_response: Optional[str] = None
    last_status_code: Optional[int] = None
    last_executed_at: Optional[datetime] = None

    def text_fields(self) -> Dict[str, str]:
        """Every user-authored text field, keyed by a stable field name.

        Header values are keyed ``headers.<name>``.
        """
        fields = {"command": self.command, "url": self.url, "body_data": self.body_data}
        for name, value in self.headers.items():
            fields[f"headers.{name}"] = value
        for name, value in self.query_params.items():
            fields[f"query_params.{name}"] = value
        return fields

    def with_text_fields(self, fields: Dict[str, str]) -> "Command":
        """Return a copy with the given text fields replaced."""
        updates: Dict[str, Any] = {}
        headers = dict(self.headers)
        query_params = dict(self.query_params)
        for key, value in fields.items():
            if key.startswith("headers."):
                headers[key[len("headers."):]] = value
            elif key.startswith("query_params."):
                query_params[key[len("query_params."):]] = value
            else:
                updates[key] = value
        updates["headers"] = headers
        updates["query_params"] = query_params
        return self.model_copy(update=updates)


class ClipboardItem(BaseModel):
    id: str
    content: str
    timestamp: datetime = Field(default_factory=utcnow)


class Environment(BaseModel):
    """Named set of variables (dev, staging, prod...)."""
    id: str
    name: str
    color: str = "gray"
    variables: Dict[str, str] = Field(default_factory=dict)
    order: int = 0


class ExecutionResult(BaseModel):
    """Textual result of running a command, plus a structured form when JSON-shaped."""
    text: str = ""
    structured: Optional[Any] = None
    error: Optional[str] = None
    status_code: Optional[int] = None
