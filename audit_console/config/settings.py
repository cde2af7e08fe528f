"""Runtime configuration models for the audit console."""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field, field_validator


class GatewayConfig(BaseModel):
    base_url: str = "http://127.0.0.1:8000"
    request_timeout_seconds: float = 300
    user_agent: str = "audit-console/gateway"

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


class SessionConfig(BaseModel):
    default_dataset_name: str = "uploaded_dataset"
    comparison_workers: int = Field(default=2, ge=1)
    max_sessions: int = Field(default=64, ge=1)


class ServerConfig(BaseModel):
    allowed_origins: List[str] = Field(default_factory=list)

    @field_validator("allowed_origins", mode="before")
    @classmethod
    def _split_origins(cls, value):
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value


class ConsoleSettings(BaseModel):
    metadata: dict = Field(default_factory=dict)
    gateway: GatewayConfig = Field(default_factory=GatewayConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
