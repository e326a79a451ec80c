"""Pydantic models for board profile validation.

A board profile describes how to flash one kind of MicroPython board:
chip family, firmware image, baud rate and reset behaviour. Profiles are
validated here and turned into an immutable DeviceConfig for a session.
"""

import sys
from pathlib import Path

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from mpyflash.types import DeviceConfig

# Baud rate used when a profile does not set one
DEFAULT_BAUD = 115200


def resolve_baud(baud: int | dict[str, int], platform: str | None = None) -> int:
    """Resolve a baud setting to a single value for a platform.

    Some boards need a different baud rate per host OS, in which case the
    profile maps platform names (``sys.platform`` values such as ``linux``,
    ``darwin``, ``win32``) to baud rates.

    Args:
        baud: Baud rate or per-platform mapping.
        platform: Platform name (defaults to ``sys.platform``).

    Returns:
        Baud rate for the platform.

    Raises:
        ValueError: The mapping has no entry for the platform.
    """
    if isinstance(baud, int):
        return baud
    if platform is None:
        platform = sys.platform
    try:
        return baud[platform]
    except KeyError:
        raise ValueError(f"No baud rate configured for platform '{platform}'") from None


class BoardProfileSchema(BaseModel):
    """Schema for a board profile file.

    Attributes:
        chip: Chip family identifier (esp32, esp8266, k210).
        firmware: Firmware image name; a bare name refers to a bundled image.
        board: Board identifier for kflash.
        baud: Baud rate, or a mapping of platform name to baud rate.
        rtsdtr: Whether the transfer tool toggles RTS/DTR.
        slow_mode: Use kflash slow download mode.
        libraries: Local library directories uploaded with the code.
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    chip: str = Field(description="Chip family identifier")
    firmware: str = Field(description="Firmware image name or relative path")
    board: str | None = Field(default=None, description="kflash board identifier")
    baud: int | dict[str, int] = Field(
        default=DEFAULT_BAUD, description="Baud rate or per-platform mapping"
    )
    rtsdtr: bool = Field(default=True, description="Toggle RTS/DTR on connect")
    slow_mode: bool = Field(
        default=False,
        validation_alias=AliasChoices("slow_mode", "slowMode"),
        description="Use kflash slow mode",
    )
    libraries: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("libraries", "library"),
        description="Local library directories",
    )

    @field_validator("chip")
    @classmethod
    def validate_chip(cls, v: str) -> str:
        """Validate chip is a non-empty identifier."""
        v = v.strip()
        if not v:
            raise ValueError("chip must not be empty")
        return v

    @field_validator("baud")
    @classmethod
    def validate_baud(cls, v: int | dict[str, int]) -> int | dict[str, int]:
        """Validate baud rates are positive."""
        values = v.values() if isinstance(v, dict) else [v]
        for value in values:
            if value <= 0:
                raise ValueError(f"baud must be positive, got {value}")
        return v

    def to_device_config(
        self, peripheral_path: str, platform: str | None = None
    ) -> DeviceConfig:
        """Build the session DeviceConfig for a port.

        The baud rate is resolved here, once, for the current platform.

        Raises:
            ValueError: No baud rate for the platform.
        """
        return DeviceConfig(
            chip=self.chip,
            firmware=self.firmware,
            peripheral_path=peripheral_path,
            baud=resolve_baud(self.baud, platform),
            board=self.board,
            rtsdtr=self.rtsdtr,
            slow_mode=self.slow_mode,
            libraries=tuple(Path(lib).expanduser() for lib in self.libraries),
        )


__all__ = ["DEFAULT_BAUD", "BoardProfileSchema", "resolve_baud"]
