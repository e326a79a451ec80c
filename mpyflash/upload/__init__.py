"""Upload module.

This module handles:
- Per-session abort state
- Free-space accounting and transfer planning
- The upload flow (probe, optional firmware reflash, file transfer)
"""

from mpyflash.upload.service import (
    ABORT_ENABLED_REQUEST,
    FlashOrchestrator,
    UploadAborted,
    UploadResult,
)
from mpyflash.upload.session import AbortToken, UploadSession
from mpyflash.upload.space import (
    RESERVED_SPACE,
    format_utilization,
    has_sufficient_space,
    plan_transfer,
)

__all__ = [
    "ABORT_ENABLED_REQUEST",
    "RESERVED_SPACE",
    "AbortToken",
    "FlashOrchestrator",
    "UploadAborted",
    "UploadResult",
    "UploadSession",
    "format_utilization",
    "has_sufficient_space",
    "plan_transfer",
]
