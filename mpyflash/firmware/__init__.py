"""MicroPython firmware flashing module.

ESP32/ESP8266 boards are erased and written with esptool; K210 boards are
written with kflash.
"""

from mpyflash.firmware.flasher import (
    FirmwareFlasher,
    compose_erase_args,
    compose_esp_write_args,
    compose_kflash_args,
    parse_chip_family,
    resolve_firmware_path,
)

__all__ = [
    "FirmwareFlasher",
    "compose_erase_args",
    "compose_esp_write_args",
    "compose_kflash_args",
    "parse_chip_family",
    "resolve_firmware_path",
]
