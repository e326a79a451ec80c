"""Upload service: copy user code to a MicroPython board.

This module provides the top-level upload flow:
- Write the entry-point code file and collect library files
- Probe the device file system (listing, storage root, free space)
- Reflash the firmware when the board cannot be probed or is full
- Transfer the files that are missing on the device

Abort is cooperative: the session token is checked before the probe
attempt, before the free-space check, before a firmware reflash and before
each file. A tool that is already running is left to finish.
"""

import logging
from dataclasses import dataclass, field

from rich.markup import escape

from mpyflash.config import Settings, get_settings
from mpyflash.device.probe import DeviceFileSystemProbe, resolve_storage_root
from mpyflash.device.transfer import FileTransferer
from mpyflash.errors import LocalIOError, SpaceExhaustedError, UploadError
from mpyflash.firmware.flasher import FirmwareFlasher
from mpyflash.runner import ExternalToolRunner
from mpyflash.types import (
    DeviceConfig,
    FileRecord,
    FileSystemSnapshot,
    ProgressSink,
    RemoteRequest,
    SpaceReport,
    StorageRoot,
    UploadOutcome,
)
from mpyflash.upload.session import UploadSession
from mpyflash.upload.space import (
    format_utilization,
    has_sufficient_space,
    plan_transfer,
)

logger = logging.getLogger(__name__)

ABORT_ENABLED_REQUEST = "setUploadAbortEnabled"


class UploadAborted(Exception):
    """Raised at a poll point once the session has been aborted.

    Not an UploadError: an aborted session is not a failure.
    """


@dataclass
class UploadResult:
    """Result of an upload session.

    Attributes:
        outcome: Terminal outcome (succeeded, aborted or failed).
        message: Human-readable summary.
        error_code: Error code if the session failed.
        root: Resolved storage root (None if probing failed).
        reflashed: Whether the firmware was reflashed.
        total_bytes: Bytes planned for transfer (None if not probed).
        files_written: Local paths transferred to the device.
        files_skipped: Local paths skipped because they already exist.
    """

    outcome: UploadOutcome
    message: str = ""
    error_code: str | None = None
    root: StorageRoot | None = None
    reflashed: bool = False
    total_bytes: int | None = None
    files_written: list[str] = field(default_factory=list)
    files_skipped: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.outcome == UploadOutcome.SUCCEEDED


def _discard(_text: str) -> None:
    pass


class FlashOrchestrator:
    """Sequence probing, optional firmware reflash and file transfer.

    Args:
        config: Device configuration for the session.
        settings: Application settings (defaults to environment settings).
        runner: Tool runner shared by every step.
        sink: Receives progress lines.
        remote_request: Host side-channel toggling the abort affordance.
    """

    def __init__(
        self,
        config: DeviceConfig,
        settings: Settings | None = None,
        runner: ExternalToolRunner | None = None,
        sink: ProgressSink | None = None,
        remote_request: RemoteRequest | None = None,
    ) -> None:
        self.config = config
        self.settings = settings if settings is not None else get_settings()
        self.runner = runner or ExternalToolRunner(self.settings.python_executable)
        self.sink = sink or _discard
        self.remote_request = remote_request

        self.probe = DeviceFileSystemProbe(
            config, self.settings, self.runner, self.sink
        )
        self.transferer = FileTransferer(config, self.settings, self.runner, self.sink)
        self.flasher = FirmwareFlasher(config, self.settings, self.runner, self.sink)

    def upload(self, code: str, session: UploadSession | None = None) -> UploadResult:
        """Upload code (and library files) to the device.

        Args:
            code: Source written to the entry-point file.
            session: Session whose token may be aborted from another thread.

        Returns:
            UploadResult; failures are reported here rather than raised.
        """
        if session is None:
            session = UploadSession()

        logger.info(
            "Upload requested: chip=%s, port=%s",
            self.config.chip,
            self.config.peripheral_path,
        )
        result = UploadResult(outcome=UploadOutcome.SUCCEEDED)

        try:
            self._run(code, session, result)
        except UploadAborted:
            logger.info("Upload aborted")
            result.outcome = UploadOutcome.ABORTED
            result.message = "Aborted"
            return result
        except UploadError as e:
            if session.aborted:
                # Tool failures after an abort request count as the abort.
                logger.info("Upload aborted: %s", e.message)
                result.outcome = UploadOutcome.ABORTED
                result.message = "Aborted"
                return result
            logger.error("Upload failed: %s", e.message)
            session.last_error = e
            result.outcome = UploadOutcome.FAILED
            result.message = e.message
            result.error_code = e.error_code
            return result

        result.message = "Success"
        return result

    def _run(self, code: str, session: UploadSession, result: UploadResult) -> None:
        self._remote(ABORT_ENABLED_REQUEST, True)

        candidates = self._collect_files(code)
        existing: list[str] = []

        self._check_abort(session)
        try:
            snapshot, report = self._probe(session)
        except UploadError as e:
            if session.aborted:
                raise UploadAborted from e
            # Any probe failure is treated as missing or broken firmware,
            # including transient tool crashes.
            logger.warning("Device probe failed, reflashing firmware: %s", e.message)
            self.sink("[yellow]Could not enter raw REPL.[/yellow]\n")
            self.sink("Try to flash micropython firmware to fix.\n")
            self._reflash(session, result)
        else:
            result.root = snapshot.root
            plan = plan_transfer(candidates, snapshot.files, self.settings.entry_point)
            result.total_bytes = plan.total_bytes
            self.sink(format_utilization(plan.total_bytes, report))

            if has_sufficient_space(
                plan.total_bytes, report, self.settings.reserved_space
            ):
                existing = snapshot.files
            elif snapshot.root.is_removable:
                raise SpaceExhaustedError(report.free_bytes, plan.total_bytes)
            else:
                self.sink(
                    "[yellow]The free space of the board is not enough.[/yellow]\n"
                )
                self.sink(
                    "Try to reflash micropython firmware to clear the file "
                    "system of the board.\n"
                )
                self._reflash(session, result)

        self._remote(ABORT_ENABLED_REQUEST, True)
        self._write_files(candidates, existing, session, result)

        self.sink("[green]Success[/green]\n")

    def _collect_files(self, code: str) -> list[FileRecord]:
        """Write the entry-point file and gather library files.

        Missing library directories are skipped.

        Raises:
            LocalIOError: A file could not be written or read.
        """
        project_dir = self.settings.project_dir
        entry_path = project_dir / self.settings.entry_point
        try:
            project_dir.mkdir(parents=True, exist_ok=True)
            entry_path.write_text(code, encoding="utf-8")
        except OSError as e:
            raise LocalIOError(f"Failed to write {entry_path}: {e}") from e

        paths = [entry_path]
        for library in self.config.libraries:
            if not library.exists():
                logger.debug("Library directory not found, skipping: %s", library)
                continue
            try:
                paths.extend(sorted(p for p in library.iterdir() if p.is_file()))
            except OSError as e:
                raise LocalIOError(f"Failed to read library {library}: {e}") from e

        try:
            return [FileRecord.from_local(path) for path in paths]
        except OSError as e:
            raise LocalIOError(f"Failed to read file size: {e}") from e

    def _probe(self, session: UploadSession) -> tuple[FileSystemSnapshot, SpaceReport]:
        """List files, resolve the storage root and read its free space."""
        listing = self.probe.list_files(StorageRoot.ROOT.value)
        root = resolve_storage_root(listing)
        if root is not StorageRoot.ROOT:
            logger.info("Using storage root %s", root.value)
            listing = self.probe.list_files(root.value)
        snapshot = FileSystemSnapshot(root=root, files=listing)

        self._check_abort(session)
        report = self.probe.free_space(root.value)
        return snapshot, report

    def _reflash(self, session: UploadSession, result: UploadResult) -> None:
        self._check_abort(session)
        self._remote(ABORT_ENABLED_REQUEST, False)
        self.flasher.flash()
        result.reflashed = True

    def _write_files(
        self,
        candidates: list[FileRecord],
        existing: list[str],
        session: UploadSession,
        result: UploadResult,
    ) -> None:
        self.sink("Writing files...\n")
        existing_names = set(existing)

        for record in candidates:
            self._check_abort(session)
            path = str(record.path)
            entry_point = record.name == self.settings.entry_point
            if record.name in existing_names and not entry_point:
                self.sink(f"{escape(path)} already exists, skip\n")
                result.files_skipped.append(path)
                continue
            self.transferer.put(path)
            result.files_written.append(path)

    def _check_abort(self, session: UploadSession) -> None:
        if session.aborted:
            raise UploadAborted

    def _remote(self, name: str, value: object) -> None:
        if self.remote_request is not None:
            self.remote_request(name, value)


__all__ = [
    "ABORT_ENABLED_REQUEST",
    "FlashOrchestrator",
    "UploadAborted",
    "UploadResult",
]
