"""Exceptions raised by the remote collaborators.

The correlation engine itself never raises for missing or malformed data;
these cover failures that abort a single host.
"""

from __future__ import annotations


class VolumeMapperError(Exception):
    """Base class for host-fatal failures."""


class GuestCommandError(VolumeMapperError):
    """A remote PowerShell command exited with a non-zero status."""

    def __init__(self, host: str, status_code: int, stderr: str = "") -> None:
        self.host = host
        self.status_code = status_code
        self.stderr = stderr
        detail = stderr.strip().splitlines()[0] if stderr.strip() else "no error output"
        super().__init__(f"{host}: command failed with status {status_code}: {detail}")


class InventoryError(VolumeMapperError):
    """Disk/partition inventory could not be read from a host."""
