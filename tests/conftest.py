"""Shared fixtures: a scripted tool runner and test settings."""

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path

import pytest

from mpyflash.config import Settings
from mpyflash.runner import ToolResult
from mpyflash.types import DeviceConfig


@dataclass
class ScriptedResponse:
    """Canned tool behaviour for one invocation.

    A list output is delivered to the sink one chunk at a time.
    """

    output: str | list[str] = ""
    exit_code: int = 0
    action: Callable[[], None] | None = None


def classify(args: Sequence[str]) -> str:
    """Name a tool invocation, e.g. 'ls /flash', 'fsi /', 'put', 'erase'."""
    if "erase_flash" in args:
        return "erase"
    if "write_flash" in args:
        return "write_flash"
    if args[0].startswith("-mkflash"):
        return "kflash"
    subcommand = args[-2]
    if subcommand == "put":
        return "put"
    return f"{subcommand} {args[-1]}"


class FakeToolRunner:
    """Stand-in for ExternalToolRunner that replays scripted responses.

    Responses for a key are consumed in order; the last one repeats.
    Unscripted invocations succeed with no output.
    """

    def __init__(self) -> None:
        self.calls: list[list[str]] = []
        self._responses: dict[str, list[ScriptedResponse]] = {}

    def on(
        self,
        key: str,
        output: str | list[str] = "",
        exit_code: int = 0,
        action: Callable[[], None] | None = None,
    ) -> "FakeToolRunner":
        self._responses.setdefault(key, []).append(
            ScriptedResponse(output=output, exit_code=exit_code, action=action)
        )
        return self

    def run(
        self,
        args: Sequence[str],
        sink: Callable[[str], None] | None = None,
        *,
        timeout: float | None = None,
    ) -> ToolResult:
        args = list(args)
        self.calls.append(args)
        key = classify(args)

        queue = self._responses.get(key)
        if not queue:
            response = ScriptedResponse()
        elif len(queue) > 1:
            response = queue.pop(0)
        else:
            response = queue[0]

        if response.action is not None:
            response.action()
        chunks = (
            [response.output] if isinstance(response.output, str) else response.output
        )
        if sink is not None:
            for chunk in chunks:
                if chunk:
                    sink(chunk)

        success = response.exit_code == 0
        return ToolResult(
            success=success,
            exit_code=response.exit_code,
            command=" ".join(args),
            output="".join(chunks),
            error_message=None if success else "tool failed",
        )

    def terminate(self) -> bool:
        return False

    @property
    def keys(self) -> list[str]:
        return [classify(call) for call in self.calls]


@pytest.fixture
def fake_runner() -> FakeToolRunner:
    return FakeToolRunner()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings pointing every directory into tmp_path."""
    return Settings(
        project_dir=tmp_path / "project",
        firmware_dir=tmp_path / "firmwares",
        external_resources_dir=tmp_path / "external",
        python_executable="python",
    )


@pytest.fixture
def esp32_config() -> DeviceConfig:
    return DeviceConfig(
        chip="esp32",
        firmware="esp32-micropython.bin",
        peripheral_path="/dev/ttyUSB0",
        baud=460800,
    )


@pytest.fixture
def sink_lines() -> list[str]:
    return []
