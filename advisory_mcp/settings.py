from __future__ import annotations

from fastmcp.server.server import Transport
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # MCP Server
    mcp_transport_mode: Transport = "stdio"
    mcp_host: str = "0.0.0.0"
    mcp_port: int = 18006

    # Advisory database
    advisory_repo_path: str = "external/advisory-database"
    refresh_on_start: bool = True
    refresh_interval_seconds: float = 3600

    # Local REST API
    advisory_api_host: str = "127.0.0.1"
    advisory_api_port: int = 18005
    # When set, MCP tools query this REST API instead of indexing in-process
    advisory_api_base: str = ""

    log_level: str = "INFO"


settings = Settings()
