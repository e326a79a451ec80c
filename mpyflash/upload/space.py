"""Free-space accounting for uploads."""

import math
from collections.abc import Iterable

from mpyflash.types import FileRecord, SpaceReport, TransferPlan

# Bytes kept free so the file system is never written to exact capacity
RESERVED_SPACE = 100


def plan_transfer(
    candidates: Iterable[FileRecord],
    existing: Iterable[str],
    entry_point: str = "main.py",
) -> TransferPlan:
    """Partition candidate files into write and skip sets.

    A file is written when its base name is absent from the device, or when
    it is the entry-point file, which is always overwritten.

    Args:
        candidates: Local files in discovery order.
        existing: Base names present on the device.
        entry_point: Name of the always-overwritten code file.

    Returns:
        TransferPlan with the byte total of the write set.
    """
    existing_names = set(existing)
    plan = TransferPlan()
    for record in candidates:
        if record.name not in existing_names or record.name == entry_point:
            plan.write.append(record)
            plan.total_bytes += record.size or 0
        else:
            plan.skip.append(record)
    return plan


def has_sufficient_space(
    total_bytes: int, report: SpaceReport, reserve: int = RESERVED_SPACE
) -> bool:
    """Whether writing total_bytes still leaves the reserve free."""
    return report.free_bytes - total_bytes >= reserve


def utilization_percent(total_bytes: int, report: SpaceReport) -> int:
    """Percentage of free space the upload consumes, rounded up."""
    if report.free_bytes == 0:
        return 0 if total_bytes == 0 else 100
    return math.ceil(total_bytes / report.free_bytes * 100)


def format_utilization(total_bytes: int, report: SpaceReport) -> str:
    """Render the program memory usage line shown before writing."""
    return (
        f"The project uses {total_bytes} bytes "
        f"({utilization_percent(total_bytes, report)}%) of program memory. "
        f"The maximum value is {report.free_bytes} bytes.\n"
    )


__all__ = [
    "RESERVED_SPACE",
    "format_utilization",
    "has_sufficient_space",
    "plan_transfer",
    "utilization_percent",
]
