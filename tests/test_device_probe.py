"""Tests for device/probe.py and device/commands.py."""

import pytest

from mpyflash.device.commands import compose_transfer_args
from mpyflash.device.probe import (
    DeviceFileSystemProbe,
    parse_file_listing,
    parse_free_space,
    resolve_storage_root,
)
from mpyflash.errors import ProbeFailedError
from mpyflash.types import DeviceConfig, SpaceReport, StorageRoot


@pytest.fixture
def probe(esp32_config, settings, fake_runner, sink_lines):
    return DeviceFileSystemProbe(esp32_config, settings, fake_runner, sink_lines.append)


class TestComposeTransferArgs:
    """Tests for compose_transfer_args function."""

    def test_ls_args(self, esp32_config, settings):
        """ls selects the port before the settle delay."""
        args = compose_transfer_args("ls", "/", esp32_config, settings)
        assert args == ["-mobmpy", "-p/dev/ttyUSB0", "-d1", "-rT", "ls", "/"]

    def test_put_args(self, esp32_config, settings):
        """put passes the settle delay before the port."""
        args = compose_transfer_args("put", "/tmp/main.py", esp32_config, settings)
        assert args == [
            "-mobmpy", "-d1", "-p/dev/ttyUSB0", "-rT", "put", "/tmp/main.py"
        ]

    def test_rtsdtr_disabled(self, settings):
        """-rF when RTS/DTR toggling is disabled."""
        config = DeviceConfig(
            chip="esp8266", firmware="fw.bin", peripheral_path="COM3", rtsdtr=False
        )
        args = compose_transfer_args("fsi", "/", config, settings)
        assert "-rF" in args
        assert "-rT" not in args

    def test_k210_sends_abort_once(self, settings):
        """K210 boards get -a1 right before the sub-command."""
        config = DeviceConfig(
            chip="k210", firmware="fw.bin", peripheral_path="/dev/ttyUSB1"
        )
        args = compose_transfer_args("ls", "/flash", config, settings)
        assert args[-3:] == ["-a1", "ls", "/flash"]

    def test_no_abort_flag_for_esp(self, esp32_config, settings):
        """Only K210 gets the reduced-retry flag."""
        args = compose_transfer_args("ls", "/", esp32_config, settings)
        assert "-a1" not in args

    def test_settle_delay_from_settings(self, esp32_config, settings):
        """Settle delay comes from settings."""
        settings.settle_delay = 3
        args = compose_transfer_args("ls", "/", esp32_config, settings)
        assert "-d3" in args


class TestParseFileListing:
    """Tests for parse_file_listing function."""

    def test_base_names(self):
        """Only the text after the last slash is kept."""
        assert parse_file_listing("/boot.py\n/lib/util.py\n") == ["boot.py", "util.py"]

    def test_carriage_returns_stripped(self):
        """CRLF output is handled."""
        assert parse_file_listing("/boot.py\r\n/main.py\r\n") == ["boot.py", "main.py"]

    def test_empty_output(self):
        """No output means no files."""
        assert parse_file_listing("") == []
        assert parse_file_listing("\r\n") == []

    def test_duplicates_kept(self):
        """Duplicates pass through in order."""
        assert parse_file_listing("a.py\nb.py\na.py") == ["a.py", "b.py", "a.py"]

    def test_empty_lines_kept(self):
        """Empty lines inside the listing pass through."""
        assert parse_file_listing("a.py\n\nb.py") == ["a.py", "", "b.py"]

    def test_directory_entries(self):
        """Storage directories keep their names."""
        assert parse_file_listing("/flash\n/sd") == ["flash", "sd"]


class TestParseFreeSpace:
    """Tests for parse_free_space function."""

    def test_single_quoted_record(self):
        """Python-style dicts are accepted."""
        report = parse_free_space(["{'bsize': 512, 'bfree': 10}"])
        assert report == SpaceReport(block_size=512, free_blocks=10)
        assert report.free_bytes == 5120

    def test_double_quoted_record(self):
        """JSON records are accepted."""
        report = parse_free_space(['{"bsize": 4096, "bfree": 3, "bavail": 3}\n'])
        assert report == SpaceReport(block_size=4096, free_blocks=3)

    def test_last_record_wins(self):
        """The last parsed record wins."""
        report = parse_free_space(
            ["{'bsize': 512, 'bfree': 10}\n", "{'bsize': 1024, 'bfree': 2}\n"]
        )
        assert report == SpaceReport(block_size=1024, free_blocks=2)

    def test_noise_ignored(self):
        """Unparsable lines are skipped."""
        report = parse_free_space(["connecting...\n{'bsize': 512, 'bfree': 1}\n"])
        assert report == SpaceReport(block_size=512, free_blocks=1)

    def test_record_split_across_chunks(self):
        """A record cut between two reads is reassembled."""
        report = parse_free_space(["{'bsize': 4096, ", "'bfree': 100}\n"])
        assert report == SpaceReport(block_size=4096, free_blocks=100)

    def test_no_record(self):
        """No usable record yields None."""
        assert parse_free_space([]) is None
        assert parse_free_space(["garbage"]) is None
        assert parse_free_space(["{'bsize': 512}"]) is None
        assert parse_free_space(["[1, 2]"]) is None


class TestResolveStorageRoot:
    """Tests for resolve_storage_root function."""

    def test_plain_root(self):
        assert resolve_storage_root(["boot.py", "main.py"]) == StorageRoot.ROOT

    def test_flash(self):
        assert resolve_storage_root(["boot.py", "flash"]) == StorageRoot.FLASH

    @pytest.mark.parametrize(
        "listing",
        [["flash", "sd"], ["sd", "flash"], ["sd", "boot.py", "flash"]],
    )
    def test_sd_has_priority(self, listing):
        """SD wins over flash regardless of order."""
        assert resolve_storage_root(listing) == StorageRoot.SD

    def test_sd_without_flash(self):
        """An sd entry alone does not change the root."""
        assert resolve_storage_root(["sd", "boot.py"]) == StorageRoot.ROOT

    def test_empty(self):
        assert resolve_storage_root([]) == StorageRoot.ROOT


class TestListFiles:
    """Tests for DeviceFileSystemProbe.list_files."""

    def test_list_files(self, probe, fake_runner, sink_lines):
        """Listing returns base names and reports progress."""
        fake_runner.on("ls /", output="/boot.py\r\n/main.py\r\n")

        assert probe.list_files("/") == ["boot.py", "main.py"]
        assert fake_runner.calls == [
            ["-mobmpy", "-p/dev/ttyUSB0", "-d1", "-rT", "ls", "/"]
        ]
        assert any('path "/"' in line for line in sink_lines)

    def test_list_files_failure(self, probe, fake_runner):
        """Non-zero exit raises ProbeFailedError."""
        fake_runner.on("ls /flash", exit_code=1)

        with pytest.raises(ProbeFailedError) as exc_info:
            probe.list_files("/flash")
        assert exc_info.value.error_code == "PROBE_FAILED"
        assert exc_info.value.path == "/flash"


class TestFreeSpace:
    """Tests for DeviceFileSystemProbe.free_space."""

    def test_free_space(self, probe, fake_runner):
        """Free space is parsed from the tool output."""
        fake_runner.on("fsi /sd", output="{'bsize': 32768, 'bfree': 100}\r\n")

        report = probe.free_space("/sd")
        assert report.free_bytes == 3276800
        assert fake_runner.keys == ["fsi /sd"]

    def test_free_space_split_output(self, probe, fake_runner):
        """Output delivered in several chunks is parsed as one stream."""
        fake_runner.on("fsi /", output=["{'bsize': 51", "2, 'bfree': 10}", "\r\n"])

        report = probe.free_space("/")

        assert report == SpaceReport(block_size=512, free_blocks=10)

    def test_free_space_exit_failure(self, probe, fake_runner):
        """Non-zero exit raises ProbeFailedError."""
        fake_runner.on("fsi /", output="{'bsize': 512, 'bfree': 1}", exit_code=1)

        with pytest.raises(ProbeFailedError):
            probe.free_space("/")

    def test_free_space_unparsable(self, probe, fake_runner):
        """Output without a record raises ProbeFailedError."""
        fake_runner.on("fsi /", output="Traceback (most recent call last)")

        with pytest.raises(ProbeFailedError) as exc_info:
            probe.free_space("/")
        assert "parse" in exc_info.value.message
