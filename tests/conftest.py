"""Shared fixtures: in-memory services wired like the composition root."""
import asyncio
from typing import Callable, Dict, List, Union

import pytest

from cmdvault.adapters.memory_store.stores import (
    MemoryCommandCatalog,
    MemoryEnvironmentStore,
    MemoryKeyVersionStore,
    MemoryPlatformSecretStore,
    MemorySecureValueRepository,
    MemoryVariableRepository,
)
from cmdvault.domain.commands.models import ExecutionResult
from cmdvault.domain.interfaces import CommandExecutor
from cmdvault.domain.references.canonicalizer import Canonicalizer
from cmdvault.domain.references.resolver import ResolutionEngine
from cmdvault.domain.secrets.key_manager import KeyManager
from cmdvault.domain.secrets.manager import SecureValueStore
from cmdvault.domain.variables.manager import VariableStore


class FakeExecutor(CommandExecutor):
    """Returns canned results per command id; a callable is awaited for dynamic ones."""

    def __init__(self):
        self.results: Dict[str, Union[ExecutionResult, Exception, Callable]] = {}
        self.calls: List[str] = []

    async def execute(self, command_id: str) -> ExecutionResult:
        self.calls.append(command_id)
        outcome = self.results.get(command_id, ExecutionResult(text=""))
        if isinstance(outcome, Exception):
            raise outcome
        if callable(outcome):
            return await outcome()
        return outcome


class FakeCache:
    """Redis-like get/setex/delete."""

    def __init__(self):
        self.data = {}

    def get(self, key):
        return self.data.get(key)

    def setex(self, key, ttl, value):
        self.data[key] = value.encode() if isinstance(value, str) else value

    def delete(self, key):
        self.data.pop(key, None)


@pytest.fixture
def platform_store():
    return MemoryPlatformSecretStore()


@pytest.fixture
def key_versions():
    return MemoryKeyVersionStore()


@pytest.fixture
def key_manager(platform_store, key_versions):
    return KeyManager(platform_store, key_versions)


@pytest.fixture
def secure_repo():
    return MemorySecureValueRepository()


@pytest.fixture
def secure_values(secure_repo, key_manager):
    return SecureValueStore(secure_repo, key_manager)


@pytest.fixture
def variables():
    return VariableStore(MemoryVariableRepository())


@pytest.fixture
def catalog():
    return MemoryCommandCatalog()


@pytest.fixture
def environments():
    return MemoryEnvironmentStore()


@pytest.fixture
def canonicalizer(secure_values, variables, catalog):
    return Canonicalizer(secure_values, variables, catalog)


@pytest.fixture
def executor():
    return FakeExecutor()


@pytest.fixture
def engine(secure_values, variables, catalog, environments, executor):
    return ResolutionEngine(secure_values, variables, catalog, environments, executor=executor,
                            max_chain_depth=4, chain_timeout_seconds=1.0)


@pytest.fixture
def fake_cache():
    return FakeCache()


async def sleep_forever():
    await asyncio.sleep(3600)
    return ExecutionResult(text="late")
