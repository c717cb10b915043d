"""Memory Store Implementations.

State is per instance (no module globals) so tests and embedders can build
isolated stores.
"""
import logging
import threading
from typing import Dict, List, Optional, Tuple, Union

from cmdvault.domain.commands.models import ClipboardItem, Command, Environment
from cmdvault.domain.interfaces import CommandCatalog, EnvironmentStore, VariableRepository
from cmdvault.domain.secrets.models import KeyVersion, SecureValue, utcnow
from cmdvault.domain.secrets.ports import KeyVersionStore, PlatformSecretStore, SecureValueRepository
from cmdvault.domain.variables.models import Variable
from cmdvault.errors import DuplicateLabel, NotFound

logger = logging.getLogger(__name__)


class MemoryPlatformSecretStore(PlatformSecretStore):
    def __init__(self):
        self._items: Dict[Tuple[str, str], bytes] = {}

    def put(self, scope: str, account: str, data: bytes) -> None:
        self._items[(scope, account)] = bytes(data)

    def get(self, scope: str, account: str) -> Optional[bytes]:
        return self._items.get((scope, account))

    def delete(self, scope: str, account: str) -> None:
        self._items.pop((scope, account), None)


class MemoryKeyVersionStore(KeyVersionStore):
    def __init__(self):
        self._versions: Dict[int, KeyVersion] = {}

    def get_active_version(self) -> Optional[int]:
        for kv in self._versions.values():
            if kv.is_active:
                return kv.version
        return None

    def get_next_version(self) -> int:
        return max(self._versions, default=0) + 1

    def insert_version(self, key_version: KeyVersion) -> None:
        if key_version.version in self._versions:
            raise ValueError(f"Key version {key_version.version} already exists")
        self._versions[key_version.version] = key_version.model_copy()

    def set_active_version(self, version: int) -> None:
        for v, kv in self._versions.items():
            kv.is_active = v == version

    def get_version(self, version: int) -> Optional[KeyVersion]:
        kv = self._versions.get(version)
        return kv.model_copy() if kv else None

    def list_versions(self) -> List[KeyVersion]:
        return [self._versions[v].model_copy() for v in sorted(self._versions)]


class MemorySecureValueRepository(SecureValueRepository):
    def __init__(self):
        self._values: Dict[str, SecureValue] = {}
        self._lock = threading.Lock()

    def _label_owner(self, label: str) -> Optional[SecureValue]:
        for value in self._values.values():
            if value.label == label:
                return value
        return None

    def insert(self, value: SecureValue) -> None:
        with self._lock:
            if value.label is not None and self._label_owner(value.label) is not None:
                raise DuplicateLabel(f"Secure label '{value.label}' already exists", label=value.label)
            if value.ref_id in self._values:
                raise ValueError(f"Secure value {value.ref_id} already exists")
            self._values[value.ref_id] = value.model_copy()

    def get(self, ref_id: str) -> Optional[SecureValue]:
        value = self._values.get(ref_id)
        return value.model_copy() if value else None

    def get_by_label(self, label: str) -> Optional[SecureValue]:
        value = self._label_owner(label)
        return value.model_copy() if value else None

    def exists(self, ref_id: str) -> bool:
        return ref_id in self._values

    def update_ciphertext(self, ref_id: str, ciphertext: str, key_version: int,
                          expected_key_version: Optional[int] = None) -> bool:
        with self._lock:
            value = self._values.get(ref_id)
            if value is None:
                return False
            if expected_key_version is not None and value.key_version != expected_key_version:
                return False
            value.ciphertext = ciphertext
            value.key_version = key_version
            value.updated_at = utcnow()
            return True

    def update_label(self, ref_id: str, label: Optional[str]) -> None:
        with self._lock:
            owner = self._label_owner(label) if label is not None else None
            if owner is not None and owner.ref_id != ref_id:
                raise DuplicateLabel(f"Secure label '{label}' already exists", label=label)
            value = self._values[ref_id]
            value.label = label
            value.updated_at = utcnow()

    def delete(self, ref_id: str) -> bool:
        return self._values.pop(ref_id, None) is not None

    def list_values(self) -> List[SecureValue]:
        return [v.model_copy() for v in sorted(self._values.values(), key=lambda v: v.created_at)]

    def list_stale(self, active_version: int, batch_size: int,
                   cursor: Optional[str] = None) -> List[SecureValue]:
        stale = sorted(
            (v for v in self._values.values()
             if v.key_version < active_version and (cursor is None or v.ref_id > cursor)),
            key=lambda v: v.ref_id,
        )
        return [v.model_copy() for v in stale[:batch_size]]


class MemoryVariableRepository(VariableRepository):
    def __init__(self):
        self._variables: Dict[str, Variable] = {}

    def insert(self, variable: Variable) -> None:
        if variable.label is not None and self.get_by_label(variable.label) is not None:
            raise DuplicateLabel(f"Variable label '{variable.label}' already exists", label=variable.label)
        self._variables[variable.ref_id] = variable.model_copy()

    def get(self, ref_id: str) -> Optional[Variable]:
        variable = self._variables.get(ref_id)
        return variable.model_copy() if variable else None

    def get_by_label(self, label: str) -> Optional[Variable]:
        for variable in self._variables.values():
            if variable.label == label:
                return variable.model_copy()
        return None

    def exists(self, ref_id: str) -> bool:
        return ref_id in self._variables

    def update_value(self, ref_id: str, value: str) -> None:
        variable = self._variables[ref_id]
        variable.value = value
        variable.updated_at = utcnow()

    def update_label(self, ref_id: str, label: Optional[str]) -> None:
        variable = self._variables[ref_id]
        variable.label = label
        variable.updated_at = utcnow()

    def delete(self, ref_id: str) -> bool:
        return self._variables.pop(ref_id, None) is not None

    def list_variables(self) -> List[Variable]:
        return [v.model_copy() for v in self._variables.values()]


class MemoryCommandCatalog(CommandCatalog):
    def __init__(self, commands: Optional[List[Command]] = None,
                 clipboard: Optional[List[ClipboardItem]] = None):
        self._commands: Dict[str, Command] = {c.id: c for c in commands or []}
        self._clipboard: Dict[str, ClipboardItem] = {c.id: c for c in clipboard or []}

    def command_id_by_label(self, label: str) -> Optional[str]:
        for command in self._commands.values():
            if command.label == label:
                return command.id
        return None

    def get_item(self, ref_id: str) -> Optional[Union[Command, ClipboardItem]]:
        return self._commands.get(ref_id) or self._clipboard.get(ref_id)

    def save_command(self, command: Command) -> None:
        self._commands[command.id] = command

    def list_commands(self) -> List[Command]:
        return list(self._commands.values())

    def add_clipboard_item(self, item: ClipboardItem) -> None:
        self._clipboard[item.id] = item


class MemoryEnvironmentStore(EnvironmentStore):
    def __init__(self, environments: Optional[List[Environment]] = None,
                 active_id: Optional[str] = None):
        self._environments: Dict[str, Environment] = {e.id: e for e in environments or []}
        self._active_id = active_id

    def list_environments(self) -> List[Environment]:
        return sorted(self._environments.values(), key=lambda e: e.order)

    def get_active(self) -> Optional[Environment]:
        if self._active_id is None:
            return None
        return self._environments.get(self._active_id)

    def set_active(self, environment_id: Optional[str]) -> None:
        if environment_id is not None and environment_id not in self._environments:
            raise NotFound(f"Environment {environment_id} not found", environment_id=environment_id)
        self._active_id = environment_id

    def upsert(self, environment: Environment) -> None:
        self._environments[environment.id] = environment
