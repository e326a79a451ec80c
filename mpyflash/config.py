"""Configuration settings for mpyflash.

Uses pydantic-settings for config parsing from environment variables
and defaults. Configuration precedence: CLI flags > env vars > defaults.
"""

import sys
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_data_dir() -> Path:
    """Return the default data directory."""
    return Path.home() / ".local" / "share" / "mpyflash"


def _default_project_dir() -> Path:
    """Return the directory the entry-point file is written to."""
    return _default_data_dir() / "microPython" / "project"


def _default_firmware_dir() -> Path:
    """Return the directory holding bundled firmware images."""
    return _default_data_dir() / "firmwares" / "microPython"


def _default_external_resources_dir() -> Path:
    """Return the directory holding firmware shipped by external resources."""
    return _default_data_dir() / "external-resources"


class Settings(BaseSettings):
    """Application settings.

    Settings are loaded from environment variables with the MPYFLASH_ prefix.
    CLI flags can override these at runtime.
    """

    model_config = SettingsConfigDict(
        env_prefix="MPYFLASH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Paths
    project_dir: Path = Field(
        default_factory=_default_project_dir,
        description="Directory the entry-point code file is written to",
    )
    firmware_dir: Path = Field(
        default_factory=_default_firmware_dir,
        description="Directory for firmware images given as bare file names",
    )
    external_resources_dir: Path = Field(
        default_factory=_default_external_resources_dir,
        description="Base directory for firmware images given with a directory",
    )

    # Tools
    python_executable: str = Field(
        default=sys.executable,
        description="Interpreter used to run the flashing tool modules",
    )
    transfer_module: str = Field(
        default="obmpy", description="File-transfer tool module"
    )
    esptool_module: str = Field(default="esptool", description="ESP flashing module")
    kflash_module: str = Field(default="kflash", description="K210 flashing module")

    # Upload behaviour
    entry_point: str = Field(
        default="main.py",
        description="Code file name that is always overwritten on the device",
    )
    reserved_space: int = Field(
        default=100,
        ge=0,
        description="Bytes kept free on the device file system",
    )
    settle_delay: int = Field(
        default=1,
        ge=0,
        description="Seconds the transfer tool waits for the device to be ready",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="WARNING",
        description="Logging level",
    )

    # Timeouts (in seconds)
    probe_timeout: int = Field(
        default=60,
        ge=1,
        description="Timeout for file listing and free-space queries",
    )
    transfer_timeout: int = Field(
        default=300,
        ge=1,
        description="Timeout for copying a single file",
    )
    flash_timeout: int = Field(
        default=1800,
        ge=60,
        description="Timeout for each firmware erase/write step",
    )


def get_settings() -> Settings:
    """Get the application settings singleton.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()


def print_settings_json(settings: Settings | None = None) -> str:
    """Render effective settings as JSON.

    Args:
        settings: Optional settings instance; uses default if not provided.

    Returns:
        JSON string of effective settings.
    """
    if settings is None:
        settings = get_settings()
    return settings.model_dump_json(indent=2)


__all__ = ["Settings", "get_settings", "print_settings_json"]
