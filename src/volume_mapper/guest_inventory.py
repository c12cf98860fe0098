"""Disk/partition inventory and volume extent report collection from a guest."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Protocol

from .errors import InventoryError
from .guest import ps_quote
from .models import PartitionRecord

logger = logging.getLogger(__name__)

EXTENT_SCRIPT = Path(__file__).parent / "scripts" / "volume_extents.ps1"
EXTENT_SCRIPT_REMOTE_NAME = "volume_extents.ps1"

# One row per (disk, partition). Wrapping in @() keeps a single row an array.
PARTITION_QUERY = r"""
$ErrorActionPreference = 'Stop'
$rows = foreach ($disk in Get-CimInstance -ClassName Win32_DiskDrive) {
    foreach ($part in Get-CimAssociatedInstance -InputObject $disk -ResultClassName Win32_DiskPartition) {
        [pscustomobject]@{
            DiskIndex       = $disk.Index
            StartingOffset  = $part.StartingOffset
            DiskSize        = $disk.Size
            SerialNumber    = $disk.SerialNumber
            PartitionSize   = $part.Size
            SCSIBus         = $disk.SCSIBus
            SCSILogicalUnit = $disk.SCSILogicalUnit
            SCSIPort        = $disk.SCSIPort
            SCSITargetId    = $disk.SCSITargetId
        }
    }
}
ConvertTo-Json -InputObject @($rows) -Compress
"""


class GuestSession(Protocol):
    host: str

    def run_ps(self, script: str) -> str: ...

    def stage_file(self, content: str, remote_dir: str, remote_name: str) -> str: ...

    def remove_file(self, path: str) -> None: ...


def _int(value: Any) -> int:
    if value in (None, ""):
        return 0
    return int(value)


def partitions_from_json(raw: str) -> list[PartitionRecord]:
    """Convert the partition query's JSON output into records."""
    try:
        rows = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise InventoryError(f"partition inventory is not valid JSON: {exc}") from exc
    if isinstance(rows, dict):
        rows = [rows]
    if not isinstance(rows, list):
        raise InventoryError(f"unexpected partition inventory shape: {type(rows).__name__}")

    partitions: list[PartitionRecord] = []
    for row in rows:
        try:
            partitions.append(PartitionRecord(
                disk_id=_int(row["DiskIndex"]),
                offset=_int(row["StartingOffset"]),
                disk_size=_int(row.get("DiskSize")),
                partition_size=_int(row.get("PartitionSize")),
                disk_serial_number=(row.get("SerialNumber") or "").strip(),
                scsi_bus=_int(row.get("SCSIBus")),
                scsi_logical_unit=_int(row.get("SCSILogicalUnit")),
                scsi_port=_int(row.get("SCSIPort")),
                scsi_target_id=_int(row.get("SCSITargetId")),
            ))
        except (KeyError, TypeError, ValueError) as exc:
            raise InventoryError(f"malformed partition row {row!r}: {exc}") from exc
    return partitions


def collect_partitions(guest: GuestSession) -> list[PartitionRecord]:
    """Enumerate disks and their partitions on ``guest``."""
    raw = guest.run_ps(PARTITION_QUERY).strip()
    if not raw:
        raise InventoryError(f"{guest.host}: partition query returned no output")
    partitions = partitions_from_json(raw)
    logger.info("%s: %d partition(s) on %d disk(s)", guest.host, len(partitions),
                len({p.disk_id for p in partitions}))
    return partitions


def run_extent_report(guest: GuestSession, staging_dir: str) -> str:
    """Stage the extent script on ``guest``, run it and return its output."""
    script = EXTENT_SCRIPT.read_text(encoding="utf-8")
    path = guest.stage_file(script, staging_dir, EXTENT_SCRIPT_REMOTE_NAME)
    try:
        return guest.run_ps(
            f"& powershell.exe -NoProfile -ExecutionPolicy Bypass -File {ps_quote(path)}; "
            "exit $LASTEXITCODE"
        )
    finally:
        guest.remove_file(path)
