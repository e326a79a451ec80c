"""Thin CLI wrapper for mpyflash.

This module provides the command-line interface using Typer.
All business logic is delegated to core modules.
"""

import json
import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Annotated

import typer
from pydantic import ValidationError
from rich.console import Console

from mpyflash import __version__
from mpyflash.config import get_settings, print_settings_json
from mpyflash.types import DeviceConfig, ProgressSink, UploadOutcome

app = typer.Typer(
    name="mpyflash",
    help="MicroPython uploader - copy code to boards and reflash firmware",
    no_args_is_help=True,
)
console = Console()
err_console = Console(stderr=True)

PortOption = Annotated[
    str, typer.Option("--port", "-p", help="Serial port (e.g., /dev/ttyUSB0)")
]
ProfileOption = Annotated[
    Path | None,
    typer.Option("--profile", help="Board profile file (.yaml, .yml, .json)"),
]
ChipOption = Annotated[
    str | None,
    typer.Option("--chip", "-c", help="Chip family (esp32, esp8266, k210)"),
]
FirmwareOption = Annotated[
    str | None, typer.Option("--firmware", help="Firmware image name or path")
]
BaudOption = Annotated[int | None, typer.Option("--baud", "-b", help="Baud rate")]
BoardOption = Annotated[str | None, typer.Option("--board", help="kflash board id")]
NoRtsDtrOption = Annotated[
    bool, typer.Option("--no-rtsdtr", help="Do not toggle RTS/DTR on connect")
]
SlowOption = Annotated[bool, typer.Option("--slow", help="kflash slow mode")]
JsonOption = Annotated[bool, typer.Option("--json", help="Output as JSON")]


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"mpyflash version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """MicroPython uploader - copy code to boards and reflash firmware."""
    logging.basicConfig(
        level=get_settings().log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _build_device_config(
    port: str,
    profile: Path | None,
    chip: str | None,
    firmware: str | None,
    baud: int | None,
    board: str | None,
    libraries: list[Path] | None,
    no_rtsdtr: bool,
    slow: bool,
) -> DeviceConfig:
    """Merge a board profile with command-line overrides."""
    from mpyflash.boards.io import load_board_profile
    from mpyflash.boards.schema import BoardProfileSchema

    try:
        if profile is not None:
            schema = load_board_profile(profile)
        else:
            if chip is None or firmware is None:
                raise ValueError("either --profile or both --chip and --firmware")
            schema = BoardProfileSchema(chip=chip, firmware=firmware)

        overrides: dict[str, object] = {}
        if chip is not None:
            overrides["chip"] = chip
        if firmware is not None:
            overrides["firmware"] = firmware
        if baud is not None:
            overrides["baud"] = baud
        if board is not None:
            overrides["board"] = board
        if libraries:
            overrides["libraries"] = [str(lib) for lib in libraries]
        if no_rtsdtr:
            overrides["rtsdtr"] = False
        if slow:
            overrides["slow_mode"] = True
        if overrides:
            schema = schema.model_copy(update=overrides)

        return schema.to_device_config(port)
    except (OSError, ValueError, ValidationError) as e:
        err_console.print(f"[red]Invalid device configuration: {e}[/red]")
        raise typer.Exit(code=1) from None


def _probe_config(port: str, chip: str | None, no_rtsdtr: bool) -> DeviceConfig:
    return DeviceConfig(
        chip=chip or "", firmware="", peripheral_path=port, rtsdtr=not no_rtsdtr
    )


def _sink_for(json_output: bool) -> ProgressSink:
    target = err_console if json_output else console

    def sink(text: str) -> None:
        target.print(text, end="", highlight=False)

    return sink


@app.command()
def config(json_output: JsonOption = False) -> None:
    """Show effective configuration."""
    settings = get_settings()
    if json_output:
        console.print(print_settings_json(settings))
    else:
        console.print("[bold]Effective Configuration:[/bold]")
        console.print()
        console.print("[bold]Paths:[/bold]")
        console.print(f"  Project directory:   {settings.project_dir}")
        console.print(f"  Firmware directory:  {settings.firmware_dir}")
        console.print(f"  External resources:  {settings.external_resources_dir}")
        console.print()
        console.print("[bold]Tools:[/bold]")
        console.print(f"  Python executable:   {settings.python_executable}")
        console.print(f"  Transfer module:     {settings.transfer_module}")
        console.print(f"  esptool module:      {settings.esptool_module}")
        console.print(f"  kflash module:       {settings.kflash_module}")
        console.print()
        console.print("[bold]Upload:[/bold]")
        console.print(f"  Entry point:         {settings.entry_point}")
        console.print(f"  Reserved space:      {settings.reserved_space} bytes")
        console.print(f"  Settle delay:        {settings.settle_delay}s")
        console.print(f"  Log level:           {settings.log_level}")
        console.print()
        console.print("[bold]Timeouts (seconds):[/bold]")
        console.print(f"  Probe timeout:       {settings.probe_timeout}")
        console.print(f"  Transfer timeout:    {settings.transfer_timeout}")
        console.print(f"  Flash timeout:       {settings.flash_timeout}")


@app.command()
def upload(
    code_file: Annotated[Path, typer.Argument(help="Code file uploaded as main.py")],
    port: PortOption,
    profile: ProfileOption = None,
    chip: ChipOption = None,
    firmware: FirmwareOption = None,
    baud: BaudOption = None,
    board: BoardOption = None,
    libraries: Annotated[
        list[Path] | None,
        typer.Option("--lib", "-l", help="Library directory (can be repeated)"),
    ] = None,
    no_rtsdtr: NoRtsDtrOption = False,
    slow: SlowOption = False,
    json_output: JsonOption = False,
) -> None:
    """Upload a code file and libraries to a MicroPython board.

    The firmware is reflashed automatically when the board cannot be
    probed or its internal storage is too full.

    Press Ctrl-C to abort after the current step; press it again to
    terminate the running tool.
    """
    from mpyflash.upload.service import FlashOrchestrator
    from mpyflash.upload.session import UploadSession

    try:
        code = code_file.read_text(encoding="utf-8")
    except OSError as e:
        err_console.print(f"[red]Cannot read {code_file}: {e}[/red]")
        raise typer.Exit(code=1) from None

    device_config = _build_device_config(
        port, profile, chip, firmware, baud, board, libraries, no_rtsdtr, slow
    )
    orchestrator = FlashOrchestrator(
        device_config, get_settings(), sink=_sink_for(json_output)
    )
    session = UploadSession()

    with ThreadPoolExecutor(max_workers=1) as pool:
        future = pool.submit(orchestrator.upload, code, session)
        while True:
            try:
                result = future.result()
                break
            except KeyboardInterrupt:
                if session.aborted:
                    orchestrator.runner.terminate()
                else:
                    session.abort()
                    err_console.print(
                        "[yellow]Aborting after the current step "
                        "(Ctrl-C again to terminate it)[/yellow]"
                    )

    if json_output:
        output = {
            "outcome": result.outcome.value,
            "message": result.message,
            "error_code": result.error_code,
            "root": result.root.value if result.root else None,
            "reflashed": result.reflashed,
            "total_bytes": result.total_bytes,
            "files_written": result.files_written,
            "files_skipped": result.files_skipped,
        }
        console.print(json.dumps(output, indent=2))
    elif result.outcome == UploadOutcome.ABORTED:
        console.print("[yellow]Aborted[/yellow]")
    elif not result.success:
        console.print(f"[red]✗ Upload failed: {result.message}[/red]")

    if result.outcome == UploadOutcome.FAILED:
        raise typer.Exit(code=1)


device_app = typer.Typer(help="Inspect the board file system")
app.add_typer(device_app, name="device")


@device_app.command("ls")
def device_ls(
    port: PortOption,
    path: Annotated[str, typer.Argument(help="Device path")] = "/",
    chip: ChipOption = None,
    no_rtsdtr: NoRtsDtrOption = False,
    json_output: JsonOption = False,
) -> None:
    """List files on the board."""
    from mpyflash.device.probe import DeviceFileSystemProbe
    from mpyflash.errors import ProbeFailedError
    from mpyflash.runner import ExternalToolRunner

    settings = get_settings()
    probe = DeviceFileSystemProbe(
        _probe_config(port, chip, no_rtsdtr),
        settings,
        ExternalToolRunner(settings.python_executable),
        _sink_for(json_output),
    )
    try:
        files = probe.list_files(path)
    except ProbeFailedError as e:
        err_console.print(f"[red]{e.message}[/red]")
        raise typer.Exit(code=1) from None

    if json_output:
        console.print(json.dumps(files, indent=2))
    else:
        for name in files:
            console.print(f"  {name}")


@device_app.command("df")
def device_df(
    port: PortOption,
    path: Annotated[str, typer.Argument(help="Device path")] = "/",
    chip: ChipOption = None,
    no_rtsdtr: NoRtsDtrOption = False,
    json_output: JsonOption = False,
) -> None:
    """Show free space on the board."""
    from mpyflash.device.probe import DeviceFileSystemProbe
    from mpyflash.errors import ProbeFailedError
    from mpyflash.runner import ExternalToolRunner

    settings = get_settings()
    probe = DeviceFileSystemProbe(
        _probe_config(port, chip, no_rtsdtr),
        settings,
        ExternalToolRunner(settings.python_executable),
        _sink_for(json_output),
    )
    try:
        report = probe.free_space(path)
    except ProbeFailedError as e:
        err_console.print(f"[red]{e.message}[/red]")
        raise typer.Exit(code=1) from None

    if json_output:
        output = {
            "path": path,
            "block_size": report.block_size,
            "free_blocks": report.free_blocks,
            "free_bytes": report.free_bytes,
        }
        console.print(json.dumps(output, indent=2))
    else:
        console.print(f"  Block size:  {report.block_size} bytes")
        console.print(f"  Free blocks: {report.free_blocks}")
        console.print(f"  Free space:  {report.free_bytes} bytes")


firmware_app = typer.Typer(help="Flash MicroPython firmware")
app.add_typer(firmware_app, name="firmware")


@firmware_app.command("flash")
def firmware_flash(
    port: PortOption,
    profile: ProfileOption = None,
    chip: ChipOption = None,
    firmware: FirmwareOption = None,
    baud: BaudOption = None,
    board: BoardOption = None,
    slow: SlowOption = False,
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Skip confirmation prompts"),
    ] = False,
) -> None:
    """Erase the board and write the MicroPython firmware.

    All files on the board's internal storage are lost.
    """
    from mpyflash.errors import UploadError
    from mpyflash.firmware.flasher import FirmwareFlasher
    from mpyflash.runner import ExternalToolRunner

    settings = get_settings()
    device_config = _build_device_config(
        port, profile, chip, firmware, baud, board, None, False, slow
    )

    if not force:
        console.print(
            f"[bold red]WARNING:[/bold red] This will ERASE the board on {port}"
        )
        console.print(f"  Chip: {device_config.chip}")
        console.print(f"  Firmware: {device_config.firmware}")
        confirm = typer.confirm("Are you sure you want to continue?", default=False)
        if not confirm:
            console.print("[yellow]Aborted[/yellow]")
            raise typer.Exit(code=0)

    flasher = FirmwareFlasher(
        device_config,
        settings,
        ExternalToolRunner(settings.python_executable),
        _sink_for(False),
    )
    try:
        flasher.flash()
    except UploadError as e:
        console.print(f"[red]✗ Firmware flash failed: {e.message}[/red]")
        raise typer.Exit(code=1) from None

    console.print("[green]✓ Firmware flashed[/green]")


__all__ = ["app"]
