"""Board profiles: per-board flashing settings loaded from YAML/JSON."""

from mpyflash.boards.io import load_board_profile
from mpyflash.boards.schema import DEFAULT_BAUD, BoardProfileSchema, resolve_baud

__all__ = ["DEFAULT_BAUD", "BoardProfileSchema", "load_board_profile", "resolve_baud"]
