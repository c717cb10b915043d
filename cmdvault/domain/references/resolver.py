"""Execution-time resolution of canonical references.

Steps run in a fixed order over each field: command chains, then variables,
then secure values. Unresolvable references stay in the text verbatim;
chained execution failures are substituted inline as ``Error: <description>``.
"""
import asyncio
import json
import logging
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from cmdvault.domain.commands.models import ClipboardItem
from cmdvault.domain.interfaces import CommandCatalog, CommandExecutor, EnvironmentStore
from cmdvault.domain.secrets.manager import SecureValueStore
from cmdvault.domain.variables.manager import VariableStore
from cmdvault.errors import CycleDetected, VaultError
from . import grammar, json_path
from .grammar import Placeholder, PlaceholderKind as K

logger = logging.getLogger(__name__)

# Ids of the commands currently being executed on behalf of chain references
_chain_stack: ContextVar[Tuple[str, ...]] = ContextVar("cmdvault_chain_stack", default=())

CHAIN_KINDS = (K.CHAIN, K.ID_REF)
VAR_KINDS = (K.VAR_REF, K.LEGACY_VAR)
SECURE_KINDS = (K.SECURE_REF, K.LEGACY_SECURE)


def _collect(text: str, kinds: Iterable[K]) -> List[Placeholder]:
    """Matches of several kinds, ordered by position, overlaps dropped."""
    matches = sorted((p for kind in kinds for p in grammar.scan(text, kind)), key=lambda p: p.start)
    kept: List[Placeholder] = []
    for p in matches:
        if kept and p.start < kept[-1].end:
            continue
        kept.append(p)
    return kept


def error_text(message: str) -> str:
    return f"Error: {message}"


def current_chain() -> Tuple[str, ...]:
    return _chain_stack.get()


@contextmanager
def chain_frame(command_id: str, max_depth: int) -> Iterator[Tuple[str, ...]]:
    """Mark ``command_id`` as executing for the duration of the block.

    Raises CycleDetected when the command is already on the stack or the
    stack is ``max_depth`` deep.
    """
    stack = _chain_stack.get()
    if command_id in stack:
        chain = stack + (command_id,)
        raise CycleDetected(f"Reference cycle: {' -> '.join(chain)}", chain=list(chain))
    if len(stack) >= max_depth:
        raise CycleDetected(f"Chain depth limit {max_depth} exceeded at {command_id}", chain=list(stack))

    token = _chain_stack.set(stack + (command_id,))
    try:
        yield stack + (command_id,)
    finally:
        _chain_stack.reset(token)


class ResolutionEngine:
    def __init__(
        self,
        secure_values: SecureValueStore,
        variables: VariableStore,
        catalog: CommandCatalog,
        environments: Optional[EnvironmentStore] = None,
        executor: Optional[CommandExecutor] = None,
        max_chain_depth: int = 16,
        chain_timeout_seconds: Optional[float] = 30.0,
    ):
        self.secure_values = secure_values
        self.variables = variables
        self.catalog = catalog
        self.environments = environments
        self.executor = executor
        self.max_chain_depth = max_chain_depth
        self.chain_timeout_seconds = chain_timeout_seconds

    async def resolve(self, text: str) -> str:
        text = await self.resolve_chains(text)
        text = self.resolve_variables(text)
        return self.resolve_secure(text)

    async def resolve_fields(self, fields: Dict[str, str]) -> Dict[str, str]:
        resolved = {}
        for name, text in fields.items():
            resolved[name] = await self.resolve(text)
        return resolved

    async def resolve_chains(self, text: str) -> str:
        # One occurrence at a time, right to left
        for placeholder in reversed(_collect(text, CHAIN_KINDS)):
            value = await self._chain_value(placeholder)
            if value is None:
                continue
            text = text[:placeholder.start] + value + text[placeholder.end:]
        return text

    def resolve_variables(self, text: str) -> str:
        env_vars = self.environments.active_variables() if self.environments else {}
        replacements = []
        for p in _collect(text, VAR_KINDS):
            value = self.variables.get(p.target)
            if value is None:
                value = env_vars.get(p.target)
            if value is None:
                logger.debug(f"Variable {p.target} unresolved")
                continue
            replacements.append((p, value))
        return grammar.replace_right_to_left(text, replacements)

    def resolve_secure(self, text: str) -> str:
        replacements = []
        for p in _collect(text, SECURE_KINDS):
            try:
                replacements.append((p, self.secure_values.decrypt(p.target)))
            except VaultError as e:
                logger.warning(f"Secure value {p.target} unresolved: {e.code}")
        return grammar.replace_right_to_left(text, replacements)

    async def _chain_value(self, p: Placeholder) -> Optional[str]:
        item = self.catalog.get_item(p.target)
        if item is None:
            logger.debug(f"Chain target {p.target} not found")
            return None

        if isinstance(item, ClipboardItem):
            text, structured = item.content, None
        else:
            outcome = await self._execute(p.target)
            if isinstance(outcome, str):
                return outcome
            if outcome.error:
                return error_text(outcome.error)
            text, structured = outcome.text, outcome.structured

        if not p.path:
            return text
        if structured is None:
            try:
                structured = json.loads(text)
            except ValueError:
                logger.debug(f"Result of {p.target} is not JSON; path '{p.path}' unresolved")
                return None
        return json_path.extract(structured, p.path)

    async def _execute(self, command_id: str):
        """Run a chained command. Returns its ExecutionResult or an inline error string."""
        if self.executor is None:
            logger.warning(f"No executor configured; cannot chain {command_id}")
            return error_text("command execution unavailable")

        try:
            with chain_frame(command_id, self.max_chain_depth):
                return await self._execute_in_frame(command_id)
        except CycleDetected as e:
            logger.warning(e.message)
            return error_text(e.message)

    async def _execute_in_frame(self, command_id: str):
        try:
            return await asyncio.wait_for(self.executor.execute(command_id), self.chain_timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning(f"Chained command {command_id} timed out after {self.chain_timeout_seconds}s")
            return error_text(f"command {command_id} timed out after {self.chain_timeout_seconds}s")
        except VaultError as e:
            return error_text(e.message)
        except Exception as e:
            # Any failure becomes inline text for this reference only
            logger.error(f"Chained command {command_id} failed: {e}")
            return error_text(str(e) or type(e).__name__)
