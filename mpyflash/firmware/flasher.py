"""MicroPython firmware flashing.

This module handles:
- Resolving the firmware image path
- Composing esptool and kflash commands
- Running the per-chip flash procedure as a small state machine

ESP chips are erased before the image is written; K210 boards are written
in a single kflash pass. A failed step is never retried; the caller may
start a new session instead.
"""

import logging
from pathlib import Path

from rich.markup import escape

from mpyflash.config import Settings
from mpyflash.errors import (
    FlasherEraseFailedError,
    FlasherWriteFailedError,
    UnknownChipTypeError,
)
from mpyflash.runner import ExternalToolRunner
from mpyflash.types import ChipFamily, DeviceConfig, FlasherState, ProgressSink

logger = logging.getLogger(__name__)

MANUAL_UPLOAD_URL = "https://wiki.openblock.cc/general-hardware-guidelines/boards"

# esptool write_flash arguments that precede the image path
ESP_WRITE_FLASH_ARGS: dict[ChipFamily, list[str]] = {
    ChipFamily.ESP32: ["-z", "0x1000"],
    ChipFamily.ESP8266: ["--flash_size=detect", "0"],
}


def resolve_firmware_path(firmware: str, settings: Settings) -> Path:
    """Resolve a configured firmware name to an image path.

    A bare file name refers to a bundled image in ``settings.firmware_dir``;
    a name with a directory component is relative to
    ``settings.external_resources_dir``.

    Args:
        firmware: Firmware name from the device configuration.
        settings: Application settings.

    Returns:
        Path to the firmware image.
    """
    if Path(firmware).parent == Path("."):
        return settings.firmware_dir / firmware
    return settings.external_resources_dir / firmware


def parse_chip_family(chip: str) -> ChipFamily:
    """Map a chip identifier to a ChipFamily.

    Raises:
        UnknownChipTypeError: No flashing procedure exists for the chip.
    """
    try:
        return ChipFamily(chip)
    except ValueError:
        raise UnknownChipTypeError(chip) from None


def compose_erase_args(
    chip: ChipFamily, config: DeviceConfig, settings: Settings
) -> list[str]:
    """Compose the esptool ``erase_flash`` arguments."""
    return [
        f"-m{settings.esptool_module}",
        "--chip",
        chip.value,
        "--port",
        config.peripheral_path,
        "erase_flash",
    ]


def compose_esp_write_args(
    chip: ChipFamily, config: DeviceConfig, settings: Settings, image: Path
) -> list[str]:
    """Compose the esptool ``write_flash`` arguments."""
    return [
        f"-m{settings.esptool_module}",
        "--chip",
        chip.value,
        "--port",
        config.peripheral_path,
        "--baud",
        str(config.baud),
        "write_flash",
        *ESP_WRITE_FLASH_ARGS[chip],
        str(image),
    ]


def compose_kflash_args(
    config: DeviceConfig, settings: Settings, image: Path
) -> list[str]:
    """Compose the kflash arguments."""
    args = [
        f"-m{settings.kflash_module}",
        f"-p{config.peripheral_path}",
        f"-b{config.baud}",
        f"-B{config.board}",
    ]
    if config.slow_mode:
        args.append("-S")
    args.append(str(image))
    return args


class FirmwareFlasher:
    """Flash the MicroPython firmware for the configured chip.

    Attributes:
        state: Current FlasherState; DONE or FAILED after ``flash()``.
    """

    def __init__(
        self,
        config: DeviceConfig,
        settings: Settings,
        runner: ExternalToolRunner,
        sink: ProgressSink,
    ) -> None:
        self.config = config
        self.settings = settings
        self.runner = runner
        self.sink = sink
        self.state = FlasherState.IDLE

    @property
    def image_path(self) -> Path:
        return resolve_firmware_path(self.config.firmware, self.settings)

    def flash(self) -> None:
        """Run the flash procedure for the configured chip.

        Raises:
            UnknownChipTypeError: Unsupported chip; nothing was started.
            FlasherEraseFailedError: The erase step failed.
            FlasherWriteFailedError: The write step failed.
        """
        self._transition(FlasherState.IDLE)
        try:
            chip = parse_chip_family(self.config.chip)
        except UnknownChipTypeError:
            self._transition(FlasherState.FAILED)
            self.sink(
                "[yellow]Unable to upload the firmware automatically, you may "
                "need to visit the wiki to see how to upload the firmware "
                f"manually: {MANUAL_UPLOAD_URL}[/yellow]\n"
            )
            raise

        logger.info(
            "Flashing %s firmware %s via %s",
            chip.value,
            self.image_path,
            self.config.peripheral_path,
        )

        match chip:
            case ChipFamily.ESP32 | ChipFamily.ESP8266:
                self._flash_esp(chip)
            case ChipFamily.K210:
                self._flash_k210()

        self._transition(FlasherState.DONE)

    def _flash_esp(self, chip: ChipFamily) -> None:
        self._transition(FlasherState.ERASING)
        result = self.runner.run(
            compose_erase_args(chip, self.config, self.settings),
            self._forward,
            timeout=self.settings.flash_timeout,
        )
        if not result.success:
            self._transition(FlasherState.FAILED)
            raise FlasherEraseFailedError(
                "esptool failed to erase", exit_code=result.exit_code
            )

        self._transition(FlasherState.WRITING)
        result = self.runner.run(
            compose_esp_write_args(chip, self.config, self.settings, self.image_path),
            self._forward,
            timeout=self.settings.flash_timeout,
        )
        if not result.success:
            self._transition(FlasherState.FAILED)
            raise FlasherWriteFailedError(
                "esptool failed flash", exit_code=result.exit_code
            )

    def _flash_k210(self) -> None:
        self._transition(FlasherState.WRITING)
        result = self.runner.run(
            compose_kflash_args(self.config, self.settings, self.image_path),
            self._forward,
            timeout=self.settings.flash_timeout,
        )
        if not result.success:
            self._transition(FlasherState.FAILED)
            raise FlasherWriteFailedError(
                "kflash failed flash", exit_code=result.exit_code
            )

    def _forward(self, text: str) -> None:
        self.sink(escape(text))

    def _transition(self, state: FlasherState) -> None:
        logger.debug("Flasher state: %s -> %s", self.state.value, state.value)
        self.state = state


__all__ = [
    "ESP_WRITE_FLASH_ARGS",
    "MANUAL_UPLOAD_URL",
    "FirmwareFlasher",
    "compose_erase_args",
    "compose_esp_write_args",
    "compose_kflash_args",
    "parse_chip_family",
    "resolve_firmware_path",
]
