from pathlib import Path

import pytest

from volume_mapper.errors import GuestCommandError


FIXTURES = Path(__file__).parent / "fixtures"


class FakeGuest:
    """Stands in for WinRMGuest: answers the partition query and the staged
    extent script from fixture text."""

    def __init__(self, host, partitions_json=None, report=None, fail_on=None):
        self.host = host
        self.partitions_json = partitions_json
        self.report = report
        self.fail_on = fail_on
        self.commands = []
        self.staged = {}
        self.removed = []

    def run_ps(self, script):
        self.commands.append(script)
        if self.fail_on and self.fail_on in script:
            raise GuestCommandError(self.host, 1, "Access is denied.")
        if "Win32_DiskDrive" in script:
            return self.partitions_json
        if "-File" in script:
            return self.report
        return ""

    def stage_file(self, content, remote_dir, remote_name):
        path = remote_dir.rstrip("\\") + "\\" + remote_name
        self.staged[path] = content
        return path

    def remove_file(self, path):
        self.removed.append(path)


@pytest.fixture
def partitions_json() -> str:
    return (FIXTURES / "partitions.json").read_text()


@pytest.fixture
def extent_report() -> str:
    return (FIXTURES / "extent_report.txt").read_text()


@pytest.fixture
def fake_guest(partitions_json, extent_report):
    return FakeGuest("web01", partitions_json, extent_report)
