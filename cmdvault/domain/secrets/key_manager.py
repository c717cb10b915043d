import logging
import threading
from typing import Any, List, Optional

from cmdvault.errors import KeyStoreWriteError
from .cipher import fingerprint, generate_key
from .models import KeyVersion
from .ports import KeyVersionStore, PlatformSecretStore

logger = logging.getLogger(__name__)

DEFAULT_SERVICE = "com.commandbar.securekey"


def account_for(version: int) -> str:
    return f"v{version}"


class KeyManager:
    """Manages versioned symmetric keys (creation, rotation, lookup).

    Key material lives only in the platform secret store; ``versions`` holds
    the metadata (fingerprint, active flag).
    """

    def __init__(
        self,
        platform_store: PlatformSecretStore,
        versions: KeyVersionStore,
        service: str = DEFAULT_SERVICE,
        cache_client: Any = None,
        cache_ttl: int = 10,
    ):
        self.platform_store = platform_store
        self.versions = versions
        self.service = service
        self.cache = cache_client  # Redis-like client interface
        self.CACHE_KEY = f"cmdvault:key:active:{service}"
        self.CACHE_TTL = cache_ttl
        self._lock = threading.RLock()

    def active_version(self, provision: bool = True) -> Optional[int]:
        """Return the active key version.

        With ``provision`` (the default) the first access on an empty store
        creates version 1, so the result is never None.
        """
        # 1. Try Cache
        if self.cache:
            try:
                cached = self.cache.get(self.CACHE_KEY)
                if cached:
                    if isinstance(cached, bytes):
                        cached = cached.decode()
                    return int(cached)
            except Exception as e:
                logger.warning(f"Cache get failed: {e}")

        version = self.versions.get_active_version()
        if version is None:
            if not provision:
                return None
            version = self._initialize()

        # 2. Update Cache
        if self.cache:
            try:
                self.cache.setex(self.CACHE_KEY, self.CACHE_TTL, str(version))
            except Exception as e:
                logger.warning(f"Cache set failed: {e}")

        return version

    def rotate(self) -> int:
        """Create a new key version and make it active.

        The material is written to the platform store first and the version is
        registered last, so a failed write leaves no dangling version row.
        """
        with self._lock:
            version = self.versions.get_next_version()
            material = generate_key()

            try:
                self.platform_store.put(self.service, account_for(version), material)
            except Exception as e:
                logger.error(f"Failed to store key material for v{version}: {e}")
                raise KeyStoreWriteError(f"Platform secret store write failed for v{version}") from e

            self.versions.insert_version(KeyVersion(
                version=version,
                fingerprint=fingerprint(material),
                is_active=False,
            ))
            self.versions.set_active_version(version)

        # Invalidate Cache
        if self.cache:
            try:
                self.cache.delete(self.CACHE_KEY)
            except Exception as e:
                logger.warning(f"Cache delete failed: {e}")

        logger.info(f"Rotated key to v{version}")
        return version

    def material(self, version: int) -> Optional[bytes]:
        """Key bytes for ``version``, or None when absent from the platform store."""
        data = self.platform_store.get(self.service, account_for(version))
        if data is None:
            logger.warning(f"Key material for v{version} not found in platform store")
        return data

    def list_versions(self) -> List[KeyVersion]:
        return self.versions.list_versions()

    def verify(self, version: int) -> bool:
        """True when the material for ``version`` exists and matches its fingerprint."""
        record = self.versions.get_version(version)
        data = self.material(version)
        if record is None or data is None:
            return False
        return fingerprint(data) == record.fingerprint

    def _initialize(self) -> int:
        """Bootstrap version 1 if no key exists yet."""
        with self._lock:
            # Check again under lock
            existing = self.versions.get_active_version()
            if existing is not None:
                return existing
            logger.info("No active key found, provisioning initial key")
            return self.rotate()
