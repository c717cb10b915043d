import json
import logging
from typing import Any, Dict, Optional

from cmdvault.domain.interfaces import CommandCatalog, CommandDispatcher, CommandExecutor
from cmdvault.domain.references.resolver import ResolutionEngine, chain_frame, current_chain
from cmdvault.domain.secrets.models import utcnow
from cmdvault.errors import NotFound
from .models import ClipboardItem, Command, ExecutionResult, ExecutionType

logger = logging.getLogger(__name__)


def structured_result(text: str) -> Optional[Any]:
    """Parse ``text`` as JSON when it looks like an object or array."""
    stripped = text.strip()
    if not stripped or stripped[0] not in "{[":
        return None
    try:
        return json.loads(stripped)
    except ValueError:
        return None


class CommandRunner(CommandExecutor):
    """Resolves a stored command's fields and dispatches it.

    Used both for top-level runs and as the Command Execution Capability of
    the ResolutionEngine, so chained commands go through the same path.
    """

    def __init__(self, catalog: CommandCatalog, engine: ResolutionEngine,
                 shell: CommandDispatcher, http: Optional[CommandDispatcher] = None):
        self.catalog = catalog
        self.engine = engine
        self.shell = shell
        self.http = http

    async def execute(self, command_id: str) -> ExecutionResult:
        item = self.catalog.get_item(command_id)
        if item is None:
            raise NotFound(f"Command {command_id} not found", ref_id=command_id)
        if isinstance(item, ClipboardItem):
            return ExecutionResult(text=item.content)
        if current_chain()[-1:] == (command_id,):
            # Entered by the engine for a chain reference
            return await self.run(item)
        with chain_frame(command_id, self.engine.max_chain_depth):
            return await self.run(item)

    async def run(self, command: Command) -> ExecutionResult:
        resolved = command.with_text_fields(await self.engine.resolve_fields(command.text_fields()))

        if command.execution_type == ExecutionType.API:
            if self.http is None:
                return ExecutionResult(error="HTTP execution is not configured")
            result = await self.http.run(resolved)
        else:
            result = await self.shell.run(resolved)

        if result.structured is None and result.text:
            result.structured = structured_result(result.text)
        self._record(command, result)
        return result

    def _record(self, command: Command, result: ExecutionResult) -> None:
        # Canonical fields are kept; only the last-run columns change
        updates: Dict[str, Any] = {"last_executed_at": utcnow()}
        output = result.text if result.error is None else f"Error: {result.error}"
        if command.execution_type == ExecutionType.API:
            updates["last_response"] = output
            updates["last_status_code"] = result.status_code
        else:
            updates["last_output"] = output
        self.catalog.save_command(command.model_copy(update=updates))
        logger.info(f"Executed command {command.id} ({command.execution_type.value})")
