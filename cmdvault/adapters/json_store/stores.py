"""JSON File-based Store Implementations.

``environments.json``::

    {"active_id": "prod", "environments": [{"id": "prod", "name": "Production",
                                             "variables": {"HOST": "..."}}]}

``commands.json``::

    {"commands": [{"id": "abc123", "command": "curl ..."}], "clipboard": [...]}
"""
import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from cmdvault.domain.commands.models import ClipboardItem, Command, Environment
from cmdvault.domain.interfaces import CommandCatalog, EnvironmentStore
from cmdvault.errors import NotFound

logger = logging.getLogger(__name__)


class _JsonFile:
    def __init__(self, path: str, empty: Dict[str, Any]):
        self.path = Path(path).expanduser()
        self.empty = empty
        self.lock = threading.Lock()

    def load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return json.loads(json.dumps(self.empty))
        with open(self.path, "r", encoding="utf-8") as f:
            return json.load(f)

    def save(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, default=str, ensure_ascii=False)
        os.replace(tmp, self.path)


class EnvironmentJsonStore(EnvironmentStore):
    def __init__(self, path: str):
        self._file = _JsonFile(path, {"active_id": None, "environments": []})

    def list_environments(self) -> List[Environment]:
        data = self._file.load()
        envs = [Environment(**e) for e in data.get("environments", [])]
        return sorted(envs, key=lambda e: e.order)

    def get_active(self) -> Optional[Environment]:
        data = self._file.load()
        active_id = data.get("active_id")
        if active_id is None:
            return None
        for env in data.get("environments", []):
            if env.get("id") == active_id:
                return Environment(**env)
        logger.warning(f"Active environment {active_id} is not defined")
        return None

    def set_active(self, environment_id: Optional[str]) -> None:
        with self._file.lock:
            data = self._file.load()
            ids = {e.get("id") for e in data.get("environments", [])}
            if environment_id is not None and environment_id not in ids:
                raise NotFound(f"Environment {environment_id} not found", environment_id=environment_id)
            data["active_id"] = environment_id
            self._file.save(data)

    def upsert(self, environment: Environment) -> None:
        with self._file.lock:
            data = self._file.load()
            envs = [e for e in data.get("environments", []) if e.get("id") != environment.id]
            envs.append(environment.model_dump())
            data["environments"] = envs
            self._file.save(data)


class CommandJsonCatalog(CommandCatalog):
    def __init__(self, path: str):
        self._file = _JsonFile(path, {"commands": [], "clipboard": []})

    def list_commands(self) -> List[Command]:
        return [Command(**c) for c in self._file.load().get("commands", [])]

    def command_id_by_label(self, label: str) -> Optional[str]:
        for command in self._file.load().get("commands", []):
            if command.get("label") == label:
                return command["id"]
        return None

    def get_item(self, ref_id: str) -> Optional[Union[Command, ClipboardItem]]:
        data = self._file.load()
        for command in data.get("commands", []):
            if command.get("id") == ref_id:
                return Command(**command)
        for item in data.get("clipboard", []):
            if item.get("id") == ref_id:
                return ClipboardItem(**item)
        return None

    def save_command(self, command: Command) -> None:
        with self._file.lock:
            data = self._file.load()
            commands = data.get("commands", [])
            dumped = command.model_dump(mode="json")
            for i, existing in enumerate(commands):
                if existing.get("id") == command.id:
                    commands[i] = dumped
                    break
            else:
                commands.append(dumped)
            data["commands"] = commands
            self._file.save(data)
