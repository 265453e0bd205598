"""Root settings model for Steward configuration."""

from typing import Any, Literal

from pydantic import Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from steward.config.models.api import APIConfig
from steward.config.models.observability import ObservabilityConfig
from steward.config.models.orchestration import (
    NotificationsConfig,
    OrchestrationConfig,
    SLAConfig,
)
from steward.config.models.scheduling import SchedulingConfig

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

# TOML config for the custom settings source
_toml_config: dict[str, Any] = {}


def set_toml_config(config: dict[str, Any]) -> None:
    """Set the TOML configuration to be used by Settings."""
    global _toml_config
    _toml_config = config


class TomlConfigSettingsSource(PydanticBaseSettingsSource):
    """Custom settings source that reads from TOML configuration."""

    def get_field_value(
        self, field: Any, field_name: str  # noqa: ARG002
    ) -> tuple[Any, str, bool]:
        """Get field value from TOML config."""
        value = _toml_config.get(field_name)
        return value, field_name, value is not None

    def __call__(self) -> dict[str, Any]:
        """Return the TOML config values."""
        return _toml_config.copy()


class Settings(BaseSettings):
    """Root configuration object containing all nested configuration sections.

    Configuration is loaded in this order:
    1. Pydantic model defaults (in code)
    2. config/default.toml (base configuration)
    3. config/{STEWARD_ENV}.toml (environment overrides)
    4. STEWARD_* environment variables (runtime overrides)
    """

    model_config = SettingsConfigDict(
        env_prefix="STEWARD_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = Field(default="steward", description="Application name for logging/tracing")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: LogLevel = Field(default="INFO", description="Logging level")

    api: APIConfig = Field(default_factory=APIConfig, description="API server configuration")
    orchestration: OrchestrationConfig = Field(
        default_factory=OrchestrationConfig,
        description="Task evaluation, locking and event bus",
    )
    scheduling: SchedulingConfig = Field(
        default_factory=SchedulingConfig,
        description="Working window and slot suggestion bounds",
    )
    sla: SLAConfig = Field(default_factory=SLAConfig, description="SLA monitoring")
    notifications: NotificationsConfig = Field(
        default_factory=NotificationsConfig,
        description="Operator notifications",
    )
    observability: ObservabilityConfig = Field(
        default_factory=ObservabilityConfig,
        description="Observability configuration",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        file_secret_settings: PydanticBaseSettingsSource,  # noqa: ARG003
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customize settings sources to include TOML config.

        Priority order (highest to lowest):
        1. init_settings (constructor arguments)
        2. env_settings (STEWARD_* environment variables)
        3. toml_settings (config/*.toml files)
        4. (defaults from model)
        """
        return (
            init_settings,
            env_settings,
            TomlConfigSettingsSource(settings_cls),
        )
