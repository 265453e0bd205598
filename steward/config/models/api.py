"""API server configuration models."""

from pydantic import BaseModel, Field


class APIConfig(BaseModel):
    """HTTP API server configuration."""

    host: str = Field(default="0.0.0.0", description="Bind address")
    port: int = Field(default=8000, ge=1, le=65535, description="Bind port")
    workers: int = Field(default=1, ge=1, description="Uvicorn worker processes")
    cors_origins: list[str] = Field(
        default_factory=lambda: ["*"],
        description="Allowed CORS origins",
    )
    cors_allow_credentials: bool = Field(
        default=False,
        description="Allow credentials on CORS requests",
    )
    decision_page_size: int = Field(
        default=10,
        ge=1,
        le=200,
        description="Decisions returned alongside a task snapshot",
    )
