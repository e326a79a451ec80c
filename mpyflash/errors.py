"""Error definitions for upload sessions.

Every error carries a stable error code that surfaces in CLI JSON output
and in UploadResult.error_code.
"""


class UploadError(Exception):
    """Base exception for upload session errors."""

    def __init__(self, message: str, error_code: str) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code


class ProbeFailedError(UploadError):
    """Listing or free-space query failed or returned unparsable output."""

    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__(message, error_code="PROBE_FAILED")
        self.path = path


class UnknownChipTypeError(UploadError):
    """No firmware flashing procedure exists for the configured chip."""

    def __init__(self, chip: str) -> None:
        super().__init__(f"Unknown chip type: {chip}", error_code="UNKNOWN_CHIP_TYPE")
        self.chip = chip


class FirmwareFlashError(UploadError):
    """Base exception for firmware erase/write failures."""

    def __init__(
        self, message: str, error_code: str, exit_code: int | None = None
    ) -> None:
        super().__init__(message, error_code=error_code)
        self.exit_code = exit_code


class FlasherEraseFailedError(FirmwareFlashError):
    """Erasing the chip flash failed."""

    def __init__(self, message: str, exit_code: int | None = None) -> None:
        super().__init__(
            message, error_code="FLASHER_ERASE_FAILED", exit_code=exit_code
        )


class FlasherWriteFailedError(FirmwareFlashError):
    """Writing the firmware image failed."""

    def __init__(self, message: str, exit_code: int | None = None) -> None:
        super().__init__(
            message, error_code="FLASHER_WRITE_FAILED", exit_code=exit_code
        )


class TransferFailedError(UploadError):
    """Copying a file to the device failed."""

    def __init__(
        self, path: str, exit_code: int | None = None, tool: str = "obmpy"
    ) -> None:
        super().__init__(f"{tool} failed to write {path}", error_code="TRANSFER_FAILED")
        self.path = path
        self.exit_code = exit_code
        self.tool = tool


class SpaceExhaustedError(UploadError):
    """Removable storage has too little free space."""

    def __init__(self, free_bytes: int, required_bytes: int) -> None:
        super().__init__(
            "The free space of the sd card is not enough. "
            "You need to clear it manually",
            error_code="SPACE_EXHAUSTED",
        )
        self.free_bytes = free_bytes
        self.required_bytes = required_bytes


class LocalIOError(UploadError):
    """Writing the entry-point file or reading a library directory failed."""

    def __init__(self, message: str) -> None:
        super().__init__(message, error_code="LOCAL_IO_FAILED")


__all__ = [
    "FirmwareFlashError",
    "FlasherEraseFailedError",
    "FlasherWriteFailedError",
    "LocalIOError",
    "ProbeFailedError",
    "SpaceExhaustedError",
    "TransferFailedError",
    "UnknownChipTypeError",
    "UploadError",
]
