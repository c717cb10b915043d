"""Domain interfaces for collaborators of the reference engine."""
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Union

from cmdvault.domain.commands.models import ClipboardItem, Command, Environment, ExecutionResult
from cmdvault.domain.variables.models import Variable


class VariableRepository(ABC):
    @abstractmethod
    def insert(self, variable: Variable) -> None: pass
    @abstractmethod
    def get(self, ref_id: str) -> Optional[Variable]: pass
    @abstractmethod
    def get_by_label(self, label: str) -> Optional[Variable]: pass
    @abstractmethod
    def exists(self, ref_id: str) -> bool: pass
    @abstractmethod
    def update_value(self, ref_id: str, value: str) -> None: pass
    @abstractmethod
    def update_label(self, ref_id: str, label: Optional[str]) -> None: pass
    @abstractmethod
    def delete(self, ref_id: str) -> bool: pass
    @abstractmethod
    def list_variables(self) -> List[Variable]: pass


class CommandCatalog(ABC):
    """Stored commands and clipboard items."""

    @abstractmethod
    def command_id_by_label(self, label: str) -> Optional[str]: pass

    @abstractmethod
    def get_item(self, ref_id: str) -> Optional[Union[Command, ClipboardItem]]: pass

    @abstractmethod
    def save_command(self, command: Command) -> None: pass

    @abstractmethod
    def list_commands(self) -> List[Command]: pass


class EnvironmentStore(ABC):
    @abstractmethod
    def list_environments(self) -> List[Environment]: pass
    @abstractmethod
    def get_active(self) -> Optional[Environment]: pass
    @abstractmethod
    def set_active(self, environment_id: Optional[str]) -> None: pass
    @abstractmethod
    def upsert(self, environment: Environment) -> None: pass

    def active_variables(self) -> Dict[str, str]:
        env = self.get_active()
        return dict(env.variables) if env else {}


class CommandExecutor(ABC):
    """The Command Execution Capability.

    Must be safe to call repeatedly for the same command; no exactly-once
    guarantee is assumed.
    """

    @abstractmethod
    async def execute(self, command_id: str) -> ExecutionResult: pass


class CommandDispatcher(ABC):
    """Runs one fully resolved command (shell or HTTP)."""

    @abstractmethod
    async def run(self, command: Command) -> ExecutionResult: pass
