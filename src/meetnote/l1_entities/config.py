"""Configuration Pydantic models — pure schema, no infrastructure defaults."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class CloudConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    api_key: str | None = Field(default=None, repr=False)
    base_url: str
    model: str

    @property
    def has_credential(self) -> bool:
        return bool(self.api_key)


class RelayConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    base_url: str | None = None
    force: bool = False  # relay only; suppresses the direct-cloud preference and fallback
    provider: str
    model: str


class OnDeviceConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    model: str
    load_timeout: float = Field(gt=0)
    chunk_length: float = Field(gt=0)
    stride_length: float = Field(ge=0)
    in_process: bool = False  # run whisper.cpp on a worker thread instead of a child process


class AppConfig(BaseModel):
    """Process-wide settings. Built once at start-up, read-only afterwards."""

    model_config = ConfigDict(frozen=True)

    cloud: CloudConfig
    relay: RelayConfig
    on_device: OnDeviceConfig
    request_timeout: float = Field(gt=0)
    language: str
