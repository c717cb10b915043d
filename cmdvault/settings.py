"""Settings and configuration."""
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env file if it exists
try:
    from dotenv import load_dotenv
    load_dotenv()
except ImportError:
    pass

CONFIG_DIR = Path.home() / ".commandbar"


class Settings(BaseSettings):
    # Persistence
    database_url: str = f"sqlite:///{CONFIG_DIR / 'cmdvault.db'}"

    # Platform secret store (key material)
    keychain_backend: str = "file"  # file, memory
    keychain_path: str = str(CONFIG_DIR / "keychain.json")
    keychain_service: str = "com.commandbar.securekey"

    # Active key version cache
    redis_url: Optional[str] = None
    key_cache_ttl_seconds: int = 10

    # Reference ids
    ref_id_length: int = 6

    # Command chaining
    max_chain_depth: int = 16
    chain_timeout_seconds: float = 30.0

    # Environments / command catalog
    environments_path: str = str(CONFIG_DIR / "environments.json")
    commands_path: str = str(CONFIG_DIR / "commands.json")

    # Admin API
    admin_token: Optional[str] = None

    log_level: str = "INFO"
    dev_mode: bool = False

    model_config = SettingsConfigDict(
        env_prefix="CMDVAULT_",
        env_file=".env",
        extra="ignore",
    )


settings = Settings()
