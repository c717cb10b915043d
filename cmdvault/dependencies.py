"""Dependency Injection Module.

The composition root: every service is built here from Settings and handed
to the API and CLI. The domain layer holds no module-level singletons.
"""
import logging
import threading
from dataclasses import dataclass
from typing import Any, Optional

from cmdvault.adapters.executors.http import HttpDispatcher
from cmdvault.adapters.executors.shell import ShellDispatcher
from cmdvault.adapters.json_store.stores import CommandJsonCatalog, EnvironmentJsonStore
from cmdvault.adapters.keychain.file_keychain import FileKeychain
from cmdvault.adapters.memory_store.stores import (
    MemoryCommandCatalog,
    MemoryEnvironmentStore,
    MemoryPlatformSecretStore,
)
from cmdvault.adapters.redis.client import create_cache_client
from cmdvault.adapters.sql.session import create_db_engine, create_session_factory, init_db
from cmdvault.adapters.sql.stores import SqlKeyVersionStore, SqlSecureValueRepository, SqlVariableRepository
from cmdvault.domain.commands.runner import CommandRunner
from cmdvault.domain.commands.service import CommandService
from cmdvault.domain.interfaces import CommandCatalog, EnvironmentStore
from cmdvault.domain.references.canonicalizer import Canonicalizer
from cmdvault.domain.references.resolver import ResolutionEngine
from cmdvault.domain.secrets.key_manager import KeyManager
from cmdvault.domain.secrets.manager import SecureValueStore
from cmdvault.domain.secrets.ports import PlatformSecretStore
from cmdvault.domain.variables.manager import VariableStore
from cmdvault.settings import Settings

logger = logging.getLogger(__name__)


@dataclass
class Container:
    settings: Settings
    key_manager: KeyManager
    secure_values: SecureValueStore
    variables: VariableStore
    catalog: CommandCatalog
    environments: EnvironmentStore
    canonicalizer: Canonicalizer
    engine: ResolutionEngine
    runner: CommandRunner
    commands: CommandService
    cache_client: Any = None


def get_platform_store(settings: Settings) -> PlatformSecretStore:
    backend = settings.keychain_backend.lower()
    if backend == "file":
        return FileKeychain(settings.keychain_path)
    if backend == "memory":
        logger.warning("Using in-memory keychain: key material is lost on exit")
        return MemoryPlatformSecretStore()
    raise ValueError(f"Unknown keychain backend: {settings.keychain_backend}")


def build_container(
    settings: Settings,
    platform_store: Optional[PlatformSecretStore] = None,
    catalog: Optional[CommandCatalog] = None,
    environments: Optional[EnvironmentStore] = None,
) -> Container:
    """Wire every service. Collaborators can be passed in to replace the defaults."""
    db_engine = create_db_engine(settings.database_url)
    init_db(db_engine)
    sessions = create_session_factory(db_engine)

    cache_client = create_cache_client(settings.redis_url)
    key_manager = KeyManager(
        platform_store or get_platform_store(settings),
        SqlKeyVersionStore(sessions),
        service=settings.keychain_service,
        cache_client=cache_client,
        cache_ttl=settings.key_cache_ttl_seconds,
    )
    secure_values = SecureValueStore(SqlSecureValueRepository(sessions), key_manager,
                                     ref_id_length=settings.ref_id_length)
    variables = VariableStore(SqlVariableRepository(sessions), ref_id_length=settings.ref_id_length)

    if catalog is None:
        catalog = CommandJsonCatalog(settings.commands_path) if settings.commands_path else MemoryCommandCatalog()
    if environments is None:
        environments = (EnvironmentJsonStore(settings.environments_path)
                        if settings.environments_path else MemoryEnvironmentStore())

    canonicalizer = Canonicalizer(secure_values, variables, catalog)
    engine = ResolutionEngine(
        secure_values,
        variables,
        catalog,
        environments,
        max_chain_depth=settings.max_chain_depth,
        chain_timeout_seconds=settings.chain_timeout_seconds,
    )
    runner = CommandRunner(catalog, engine, shell=ShellDispatcher(), http=HttpDispatcher())
    # Chained references execute through the same runner
    engine.executor = runner

    return Container(
        settings=settings,
        key_manager=key_manager,
        secure_values=secure_values,
        variables=variables,
        catalog=catalog,
        environments=environments,
        canonicalizer=canonicalizer,
        engine=engine,
        runner=runner,
        commands=CommandService(catalog, canonicalizer),
        cache_client=cache_client,
    )


_container: Optional[Container] = None
_container_lock = threading.Lock()


def get_container() -> Container:
    """FastAPI dependency. Built lazily from the process settings."""
    global _container
    if _container is None:
        with _container_lock:
            if _container is None:
                from cmdvault.settings import settings
                _container = build_container(settings)
    return _container


def reset_container() -> None:
    global _container
    _container = None
