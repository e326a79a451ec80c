"""Device file system module.

This module handles:
- obmpy command composition
- File listing and free-space probing
- Storage root resolution (/, /flash, /sd)
- Sequential file transfer
"""

from mpyflash.device.commands import compose_transfer_args
from mpyflash.device.probe import (
    DeviceFileSystemProbe,
    parse_file_listing,
    parse_free_space,
    resolve_storage_root,
)
from mpyflash.device.transfer import FileTransferer

__all__ = [
    "DeviceFileSystemProbe",
    "FileTransferer",
    "compose_transfer_args",
    "parse_file_listing",
    "parse_free_space",
    "resolve_storage_root",
]
