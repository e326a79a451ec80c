"""Board profile loading.

Profiles are YAML (.yaml, .yml) or JSON (.json) files validated against
BoardProfileSchema. Errors name the offending profile file so a user with
several boards can tell which one is broken.
"""

import json
from pathlib import Path
from typing import Any

import yaml

from mpyflash.boards.schema import BoardProfileSchema

PROFILE_SUFFIXES = (".yaml", ".yml", ".json")


def load_yaml(path: Path) -> dict[str, Any]:
    """Read a YAML board profile into a dict.

    Raises:
        FileNotFoundError: If the file does not exist.
        yaml.YAMLError: If the file is not valid YAML.
        ValueError: If the profile is empty or not a mapping.
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        raise ValueError(f"Board profile {path} is empty")
    if not isinstance(data, dict):
        raise ValueError(
            f"Board profile {path} must be a YAML mapping, got {type(data).__name__}"
        )
    return data


def load_json(path: Path) -> dict[str, Any]:
    """Read a JSON board profile into a dict.

    Raises:
        FileNotFoundError: If the file does not exist.
        json.JSONDecodeError: If the file is not valid JSON.
        ValueError: If the profile is not an object.
    """
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(
            f"Board profile {path} must be a JSON object, got {type(data).__name__}"
        )
    return data


def load_board_profile(path: Path) -> BoardProfileSchema:
    """Load and validate a board profile (YAML or JSON).

    File format is determined by extension.

    Args:
        path: Path to the profile file.

    Returns:
        Validated BoardProfileSchema instance.

    Raises:
        ValueError: If the extension is not supported or the content is
            not a mapping.
        FileNotFoundError: If the file does not exist.
        pydantic.ValidationError: If data does not match schema.
    """
    suffix = path.suffix.lower()
    if suffix not in PROFILE_SUFFIXES:
        raise ValueError(
            f"Unsupported board profile {path}: use one of "
            f"{', '.join(PROFILE_SUFFIXES)}"
        )
    data = load_json(path) if suffix == ".json" else load_yaml(path)
    return BoardProfileSchema.model_validate(data)


__all__ = ["PROFILE_SUFFIXES", "load_board_profile", "load_json", "load_yaml"]
