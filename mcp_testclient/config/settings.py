from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

from mcp_testclient.config.defaults import (
    DEFAULT_CLIENT_NAME,
    DEFAULT_CLIENT_VERSION,
    DEFAULT_WORKER_COMMAND,
    DEFAULT_WORKER_ENTRY_POINT,
    LATEST_PROTOCOL_VERSION,
)


class ClientSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="MCP_TESTCLIENT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    client_name: str = DEFAULT_CLIENT_NAME
    client_version: str = DEFAULT_CLIENT_VERSION
    protocol_version: str = LATEST_PROTOCOL_VERSION
    worker_command: str = DEFAULT_WORKER_COMMAND
    worker_entry_point: str = DEFAULT_WORKER_ENTRY_POINT
    # Tool calls may hit the network on the worker side; keep this generous
    request_timeout_seconds: float = 60.0
    handshake_timeout_seconds: float = 10.0
    close_grace_seconds: float = 2.0
    max_message_bytes: int = 16 * 1024 * 1024
    http_timeout_seconds: float = 60.0
    log_level: str = "INFO"


@lru_cache(maxsize=1)
def get_settings() -> ClientSettings:
    return ClientSettings()
