"""
Catalyst Compiler - Configuration Settings
Defaults for generated programs (host, port, route prefix, base dependencies)
and for the compiler service itself.
"""

from typing import List
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class CompilerSettings(BaseSettings):
    """Catalyst compiler settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Generated Program ─────────────────────────────────────────────
    default_host: str = Field(default="0.0.0.0", alias="CATALYST_DEFAULT_HOST")
    default_port: int = Field(default=8000, alias="CATALYST_DEFAULT_PORT")
    route_prefix: str = Field(default="/workflow", alias="CATALYST_ROUTE_PREFIX")
    fallback_workflow_name: str = "workflow"
    python_version: str = "3.11"
    base_dependencies: List[str] = Field(
        default_factory=lambda: ["fastapi>=0.104.0", "uvicorn[standard]>=0.24.0"],
    )

    # ── Compiler Service ──────────────────────────────────────────────
    environment: str = Field(default="dev", alias="ENVIRONMENT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    api_host: str = Field(default="0.0.0.0", alias="CATALYST_API_HOST")
    api_port: int = Field(default=8090, alias="CATALYST_API_PORT")
    cors_origins: str = Field(default="*", alias="CORS_ORIGINS")

    def cors_origin_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


settings = CompilerSettings()
