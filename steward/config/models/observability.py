"""Observability configuration models."""

from typing import Literal

from pydantic import BaseModel, Field

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
LogFormat = Literal["json", "console"]


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: LogLevel = Field(default="INFO", description="Log level")
    format: LogFormat = Field(default="json", description="Output format")
    redact_pii: bool = Field(default=True, description="Mask emails and phone numbers")


class TracingConfig(BaseModel):
    """Distributed tracing configuration."""

    enabled: bool = Field(default=False, description="Instrument the FastAPI app")
    service_name: str = Field(default="steward", description="Service name for traces")


class MetricsConfig(BaseModel):
    """Metrics configuration."""

    enabled: bool = Field(default=True, description="Expose the /metrics endpoint")


class ObservabilityConfig(BaseModel):
    """Observability configuration."""

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    tracing: TracingConfig = Field(default_factory=TracingConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)
