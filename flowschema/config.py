"""Application configuration."""

from functools import lru_cache
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="FlowSchema", description="Application name")
    app_version: str = Field(default="0.1.0", description="Application version")
    environment: str = Field(default="development", description="Environment")
    debug: bool = Field(default=False, description="Debug mode")
    log_level: str = Field(default="INFO", description="Log level")

    # Server
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port")
    workers: int = Field(default=1, description="Number of workers")
    reload: bool = Field(default=False, description="Auto-reload on changes")

    # Descriptors
    plugin_paths: List[str] = Field(
        default_factory=list,
        description="Directories of JSON descriptors or Python plugin modules",
    )
    include_builtin_nodes: bool = Field(
        default=True, description="Load the bundled node descriptors"
    )
    default_package: str = Field(
        default="n8n-nodes-base", description="Package prefix used in node type strings"
    )

    # Validation
    valid_type_prefixes: List[str] = Field(
        default=["n8n-nodes-base", "n8n-nodes-langchain", "@n8n/n8n-nodes-langchain"],
        description="Package prefixes accepted in node type strings",
    )
    unknown_parameter_policy: str = Field(
        default="warn", description="Severity for unknown parameters (warn or error)"
    )
    max_nesting_depth: int = Field(
        default=3, description="Maximum nested parameter depth to validate"
    )

    # Artifacts
    schemas_dir: str = Field(default="schemas", description="Output directory for artifacts")
    force_update: bool = Field(
        default=False, description="Rewrite artifacts even when unchanged"
    )

    # Monitoring
    metrics_enabled: bool = Field(default=True, description="Enable metrics")

    # CORS
    cors_enabled: bool = Field(default=True, description="Enable CORS")
    cors_origins: List[str] = Field(default=["*"], description="CORS origins")
    cors_methods: List[str] = Field(
        default=["GET", "POST", "OPTIONS"], description="CORS methods"
    )
    cors_headers: List[str] = Field(default=["Content-Type"], description="CORS headers")

    @field_validator("unknown_parameter_policy")
    @classmethod
    def validate_unknown_parameter_policy(cls, v: str) -> str:
        v = v.lower()
        if v not in ("warn", "error"):
            raise ValueError("unknown_parameter_policy must be 'warn' or 'error'")
        return v

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment.lower() in ("development", "dev")

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment.lower() in ("production", "prod")

    @property
    def is_testing(self) -> bool:
        """Check if running in testing mode."""
        return self.environment.lower() in ("testing", "test")


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
