"""File transfer to the device file system."""

import logging
from pathlib import Path

from rich.markup import escape

from mpyflash.config import Settings
from mpyflash.device.commands import compose_transfer_args
from mpyflash.errors import TransferFailedError
from mpyflash.runner import ExternalToolRunner
from mpyflash.types import DeviceConfig, ProgressSink

logger = logging.getLogger(__name__)


class FileTransferer:
    """Copy local files to the device with ``obmpy put``.

    Files must be transferred one at a time: the tool holds a stateful
    session on the single serial line.
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

    def put(self, path: str | Path) -> None:
        """Copy one local file to the device.

        Args:
            path: Local file path.

        Raises:
            TransferFailedError: The tool exited with a non-zero code.
        """
        path = str(path)
        args = compose_transfer_args("put", path, self.config, self.settings)

        self.sink(f"writing {escape(path)}...")
        result = self.runner.run(
            args,
            lambda text: self.sink(escape(text)),
            timeout=self.settings.transfer_timeout,
        )
        if not result.success:
            logger.error("Transfer of %s failed: %s", path, result.error_message)
            raise TransferFailedError(
                path, exit_code=result.exit_code, tool=self.settings.transfer_module
            )

        self.sink("OK\n")
        logger.info("Transferred %s", path)


__all__ = ["FileTransferer"]
