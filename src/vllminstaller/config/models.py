"""Configuration models for the vLLM server installer.

This module contains all configuration-related Pydantic models used throughout the installer.
"""

import re
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator

SUPPORTED_DTYPES = ("auto", "half", "float16", "bfloat16", "float", "float32")


class LoggingConfig(BaseModel):
    """Structlog-based logging configuration."""

    level: str = "INFO"
    json_logs: bool = False  # Console renderer unless explicitly requested
    extra_fields: dict[str, str] = Field(
        default_factory=lambda: {"service": "vllm-server-installer"}
    )


class ServerOptions(BaseModel):
    """Engine launch defaults baked into the generated launcher script."""

    host: str = "0.0.0.0"
    port: int = Field(default=8000, ge=1, le=65535)
    gpu_memory_utilization: float = Field(default=0.90, gt=0.0, le=1.0)
    tensor_parallel_size: int = Field(default=1, ge=1)
    max_model_len: int | None = Field(default=None, ge=1)  # None = engine auto-detects
    dtype: str = "auto"

    @field_validator("host")
    @classmethod
    def validate_host(cls, v: str) -> str:
        """Reject empty bind addresses."""
        if not v.strip():
            raise ValueError("Bind host cannot be empty.")
        return v.strip()

    @field_validator("dtype")
    @classmethod
    def validate_dtype(cls, v: str) -> str:
        """Validate the numeric precision mode."""
        if v not in SUPPORTED_DTYPES:
            raise ValueError(
                f"Invalid dtype '{v}'. Must be one of: {', '.join(SUPPORTED_DTYPES)}."
            )
        return v


class ServiceOptions(BaseModel):
    """Answers for the optional systemd service registration.

    Leaving ``enabled`` unset means the operator is asked interactively.
    """

    enabled: bool | None = None
    model_source: Literal["hf", "local"] | None = None
    model: str | None = None


class InstallerConfig(BaseModel):
    """Configuration settings for the installer."""

    # Dedicated account and layout
    account: str = "vllm"
    install_root: Path = Path("/opt/vllm-server")

    # Runtime environment
    supported_python_versions: list[str] = Field(
        default_factory=lambda: ["3.12", "3.11", "3.10", "3.9"]  # Search order, newest first
    )
    default_python_version: str = "3.11"  # Downloaded by uv when none is found on the host
    package: str = "vllm"
    torch_backend: str = "auto"
    system_packages: list[str] = Field(
        default_factory=lambda: ["python3-pip", "python3-venv", "curl", "wget"]
    )

    # Hardware
    min_compute_capability: str = "7.0"

    # Generated artifacts
    service_name: str = "vllm"
    help_command_name: str = "vllm-help"

    server: ServerOptions = Field(default_factory=ServerOptions)
    service: ServiceOptions = Field(default_factory=ServiceOptions)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("account")
    @classmethod
    def validate_account(cls, v: str) -> str:
        """Validate the system account name format."""
        if not re.match(r"^[a-z_][a-z0-9_-]{0,31}$", v):
            raise ValueError(
                f"Invalid account name '{v}'. "
                "Must start with a lowercase letter or underscore and contain only "
                "lowercase letters, digits, underscores, and hyphens."
            )
        return v

    @field_validator("install_root")
    @classmethod
    def validate_install_root(cls, v: Path) -> Path:
        """Require an absolute install root."""
        if not v.is_absolute():
            raise ValueError(f"Install root must be an absolute path, got '{v}'.")
        return v

    @field_validator("min_compute_capability")
    @classmethod
    def validate_min_compute_capability(cls, v: str) -> str:
        """Validate the major.minor compute capability format."""
        if not re.match(r"^\d+\.\d+$", v):
            raise ValueError(f"Invalid compute capability '{v}'. Expected MAJOR.MINOR.")
        return v
