"""Device file system probing.

This module handles:
- Listing files at a device path
- Querying block size and free block count at a device path
- Resolving the effective storage root (/, /flash or /sd)

Each probe is a single obmpy invocation; the tool opens and closes its own
connection to the board.
"""

import json
import logging
from collections.abc import Iterable

from mpyflash.config import Settings
from mpyflash.device.commands import compose_transfer_args
from mpyflash.errors import ProbeFailedError
from mpyflash.runner import ExternalToolRunner
from mpyflash.types import DeviceConfig, ProgressSink, SpaceReport, StorageRoot

logger = logging.getLogger(__name__)


def parse_file_listing(output: str) -> list[str]:
    """Parse ``ls`` output into base names.

    Every line is reduced to the text after its last ``/``. Empty lines and
    duplicates are kept in listing order.

    Args:
        output: Raw tool stdout.

    Returns:
        List of base names.
    """
    data = output.strip().replace("\r", "")
    if not data:
        return []
    return [line[line.rfind("/") + 1 :] for line in data.split("\n")]


def parse_free_space(chunks: Iterable[str]) -> SpaceReport | None:
    """Parse ``fsi`` output into a SpaceReport.

    The tool prints a Python-style dict such as ``{'bsize': 4096, 'bfree': 20}``.
    Chunks are joined before splitting into lines, so a record split across
    reads is parsed whole. Single quotes are normalised before JSON parsing.
    When several records arrive, the last valid one wins.

    Args:
        chunks: Raw stdout chunks in arrival order.

    Returns:
        SpaceReport, or None if no record could be parsed.
    """
    report: SpaceReport | None = None
    for line in "".join(chunks).splitlines():
        text = line.strip().replace("'", '"')
        if not text:
            continue
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            logger.debug("Ignoring unparsable fsi output: %r", line)
            continue
        if not isinstance(data, dict):
            continue
        bsize = data.get("bsize")
        bfree = data.get("bfree")
        if isinstance(bsize, int) and isinstance(bfree, int):
            report = SpaceReport(block_size=bsize, free_blocks=bfree)
    return report


def resolve_storage_root(listing: Iterable[str]) -> StorageRoot:
    """Pick the storage root from the top-level listing.

    Boards with several storage media expose them as ``flash`` and ``sd``
    directories. The SD card takes priority over internal flash.

    Args:
        listing: Base names found at ``/``.

    Returns:
        Resolved StorageRoot.
    """
    names = set(listing)
    if "flash" in names:
        if "sd" in names:
            return StorageRoot.SD
        return StorageRoot.FLASH
    return StorageRoot.ROOT


class DeviceFileSystemProbe:
    """Query the device file system through the transfer tool.

    Args:
        config: Device configuration for the session.
        settings: Application settings.
        runner: Runner used to start the transfer tool.
        sink: Receives status lines.
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

    def list_files(self, path: str = "/") -> list[str]:
        """List base names of the files at a device path.

        Raises:
            ProbeFailedError: The tool exited with a non-zero code.
        """
        self.sink(f'Read the existing files on path "{path}".\n')

        args = compose_transfer_args("ls", path, self.config, self.settings)
        result = self.runner.run(args, timeout=self.settings.probe_timeout)
        if not result.success:
            raise ProbeFailedError(
                f"Failed to list files on {path}: {result.error_message}", path=path
            )

        files = parse_file_listing(result.output)
        logger.info("Found %d entries on %s", len(files), path)
        return files

    def free_space(self, path: str = "/") -> SpaceReport:
        """Query block size and free block count at a device path.

        Raises:
            ProbeFailedError: The tool failed or printed no usable record.
        """
        self.sink(f'Check the size of available free space on path "{path}".\n')

        chunks: list[str] = []
        args = compose_transfer_args("fsi", path, self.config, self.settings)
        result = self.runner.run(
            args, chunks.append, timeout=self.settings.probe_timeout
        )
        if not result.success:
            raise ProbeFailedError(
                f"Failed to read free space on {path}: {result.error_message}",
                path=path,
            )

        report = parse_free_space(chunks)
        if report is None:
            raise ProbeFailedError(
                f"Could not parse free space information for {path}", path=path
            )

        logger.info(
            "Free space on %s: %d blocks of %d bytes",
            path,
            report.free_blocks,
            report.block_size,
        )
        return report


__all__ = [
    "DeviceFileSystemProbe",
    "parse_file_listing",
    "parse_free_space",
    "resolve_storage_root",
]
