"""Command composition for the obmpy file-transfer tool."""

from mpyflash.config import Settings
from mpyflash.types import ChipFamily, DeviceConfig


def compose_transfer_args(
    subcommand: str,
    target: str,
    config: DeviceConfig,
    settings: Settings,
) -> list[str]:
    """Compose the obmpy arguments for a sub-command.

    Args:
        subcommand: One of ``ls``, ``fsi`` or ``put``.
        target: Device path for ``ls``/``fsi``, local file path for ``put``.
        config: Device configuration for the session.
        settings: Application settings.

    Returns:
        Arguments to pass after the interpreter executable.
    """
    port = f"-p{config.peripheral_path}"
    delay = f"-d{settings.settle_delay}"
    # put waits for the device before selecting the port
    if subcommand == "put":
        args = [f"-m{settings.transfer_module}", delay, port]
    else:
        args = [f"-m{settings.transfer_module}", port, delay]

    args.append(f"-r{'T' if config.rtsdtr else 'F'}")

    # K210 boards reset on every abort; only send it once
    if config.chip == ChipFamily.K210:
        args.append("-a1")

    args.extend([subcommand, target])
    return args


__all__ = ["compose_transfer_args"]
