"""Configuration loader for Taskboard."""

import os
from pathlib import Path
from typing import Literal, Optional
import yaml
from pydantic import BaseModel


StoreKind = Literal["memory", "keyvalue", "jsonbin", "realtime", "server"]


class ServerConfig(BaseModel):
    host: str = "127.0.0.1"
    port: int = 3001
    debug: bool = False
    # Origins allowed to call the board API from a browser
    cors_origins: list[str] = ["http://localhost:3000"]


class DatabaseConfig(BaseModel):
    path: str = "./data/taskboard.db"


class LoggingConfig(BaseModel):
    level: str = "info"


class StoreConfig(BaseModel):
    """Which Board Store backend this process talks to."""
    kind: StoreKind = "memory"
    # Base URL of the backend (KV REST URL, JSONBin API root, RTDB URL or board server)
    endpoint_url: str = ""
    # Static access credential sent with every request
    credential: str = ""
    # Backend-specific addressing
    key: str = "trello_boards_data"      # keyvalue
    bin_id: str = ""                     # jsonbin
    path: str = "trelloBoards"           # realtime
    timeout_seconds: float = 10.0


class SyncConfig(BaseModel):
    # Display name written to lastUpdatedBy on every save
    user_name: str = "Usuario"
    # Polling interval for stores without push (0 disables polling)
    poll_interval_seconds: float = 30.0


class SmtpConfig(BaseModel):
    enabled: bool = False
    host: str = ""
    port: int = 587
    username: str = ""
    password: str = ""
    from_email: str = ""
    from_name: str = "Taskboard"
    use_tls: bool = False
    start_tls: bool = True


class ReminderConfig(BaseModel):
    sweep_enabled: bool = True
    check_interval_seconds: int = 60
    # Sent reminders older than this are removed by the sweep
    retention_hours: int = 24
    # Board server that accepts reminders from clients
    endpoint_url: str = ""


class Config(BaseModel):
    server: ServerConfig = ServerConfig()
    database: DatabaseConfig = DatabaseConfig()
    logging: LoggingConfig = LoggingConfig()
    store: StoreConfig = StoreConfig()
    sync: SyncConfig = SyncConfig()
    smtp: SmtpConfig = SmtpConfig()
    reminders: ReminderConfig = ReminderConfig()


_config: Optional[Config] = None


def load_config(config_path: Optional[str] = None) -> Config:
    """Load configuration from YAML file and environment variables."""
    global _config

    if _config is not None:
        return _config

    # Determine config path
    if config_path is None:
        config_path = os.environ.get("TASKBOARD_CONFIG", "config.yml")

    config_data = {}

    # Load from file if exists
    if Path(config_path).exists():
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}

    # Create config object
    config = Config(**config_data)

    # Override with environment variables
    if os.environ.get("TASKBOARD_STORE_KIND"):
        # Rebuilt rather than assigned so an unknown kind fails validation here
        config.store = StoreConfig(
            **{**config.store.model_dump(), "kind": os.environ["TASKBOARD_STORE_KIND"]}
        )

    if os.environ.get("TASKBOARD_STORE_URL"):
        config.store.endpoint_url = os.environ["TASKBOARD_STORE_URL"]

    if os.environ.get("TASKBOARD_STORE_CREDENTIAL"):
        config.store.credential = os.environ["TASKBOARD_STORE_CREDENTIAL"]

    if os.environ.get("TASKBOARD_DB_PATH"):
        config.database.path = os.environ["TASKBOARD_DB_PATH"]

    if os.environ.get("TASKBOARD_LOG_LEVEL"):
        config.logging.level = os.environ["TASKBOARD_LOG_LEVEL"]

    if os.environ.get("TASKBOARD_USER_NAME"):
        config.sync.user_name = os.environ["TASKBOARD_USER_NAME"]

    if os.environ.get("TASKBOARD_SMTP_HOST"):
        config.smtp.host = os.environ["TASKBOARD_SMTP_HOST"]
        config.smtp.enabled = True

    if os.environ.get("TASKBOARD_SMTP_PASSWORD"):
        config.smtp.password = os.environ["TASKBOARD_SMTP_PASSWORD"]

    _config = config
    return config


def get_config() -> Config:
    """Get the loaded configuration."""
    global _config
    if _config is None:
        return load_config()
    return _config


def reset_config() -> None:
    """Forget the cached configuration so the next call reloads it."""
    global _config
    _config = None
