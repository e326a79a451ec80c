"""Shared type definitions for mpyflash.

This module contains dataclasses, enums, and type aliases shared across
subpackages to avoid circular imports.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

# Receives human-readable progress lines (rich markup).
ProgressSink = Callable[[str], None]

# Side-channel to the host application, e.g. ("setUploadAbortEnabled", True).
RemoteRequest = Callable[[str, object], None]


class ChipFamily(str, Enum):
    """Chip families with a known firmware flashing procedure."""

    ESP32 = "esp32"
    ESP8266 = "esp8266"
    K210 = "k210"


class StorageRoot(str, Enum):
    """Device file system path used as the base for all operations."""

    ROOT = "/"
    FLASH = "/flash"
    SD = "/sd"

    @property
    def is_removable(self) -> bool:
        """Whether the root is removable media that must not be erased."""
        return self is StorageRoot.SD


class FlasherState(str, Enum):
    """State of a firmware flash run."""

    IDLE = "idle"
    ERASING = "erasing"
    WRITING = "writing"
    DONE = "done"
    FAILED = "failed"


class UploadOutcome(str, Enum):
    """Terminal outcome of an upload session."""

    SUCCEEDED = "succeeded"
    ABORTED = "aborted"
    FAILED = "failed"


@dataclass(frozen=True)
class DeviceConfig:
    """Resolved configuration for one flash session.

    Attributes:
        chip: Chip family identifier (validated when firmware is flashed).
        firmware: Firmware image file name or relative path.
        peripheral_path: Serial port the board is attached to.
        baud: Baud rate for firmware writes, already resolved for this platform.
        board: Board identifier passed to kflash.
        rtsdtr: Whether the transfer tool toggles RTS/DTR to reset the board.
        slow_mode: Ask kflash to use its slow download mode.
        libraries: Local directories whose files are uploaded with the code.
    """

    chip: str
    firmware: str
    peripheral_path: str
    baud: int = 115200
    board: str | None = None
    rtsdtr: bool = True
    slow_mode: bool = False
    libraries: tuple[Path, ...] = ()


@dataclass
class FileRecord:
    """A file identified by its base name.

    Device-side records carry no path or size.
    """

    name: str
    path: Path | None = None
    size: int | None = None

    @classmethod
    def from_local(cls, path: Path) -> "FileRecord":
        """Build a record for a local file, reading its size."""
        return cls(name=path.name, path=path, size=path.stat().st_size)


@dataclass
class FileSystemSnapshot:
    """Files present on the device at the resolved root.

    Attributes:
        root: Resolved storage root.
        files: Base names in listing order (duplicates are kept).
    """

    root: StorageRoot
    files: list[str] = field(default_factory=list)

    def __contains__(self, name: object) -> bool:
        return name in self.files


@dataclass(frozen=True)
class SpaceReport:
    """Free space reported by the device file system."""

    block_size: int
    free_blocks: int

    @property
    def free_bytes(self) -> int:
        return self.block_size * self.free_blocks


@dataclass
class TransferPlan:
    """Candidate files partitioned into those to write and those to skip.

    Attributes:
        write: Files that will be transferred, in discovery order.
        skip: Files already present on the device.
        total_bytes: Sum of the local sizes of the write set.
    """

    write: list[FileRecord] = field(default_factory=list)
    skip: list[FileRecord] = field(default_factory=list)
    total_bytes: int = 0


__all__ = [
    "ChipFamily",
    "DeviceConfig",
    "FileRecord",
    "FileSystemSnapshot",
    "FlasherState",
    "ProgressSink",
    "RemoteRequest",
    "SpaceReport",
    "StorageRoot",
    "TransferPlan",
    "UploadOutcome",
]
