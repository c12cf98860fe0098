"""Partition lookup by physical address.

Windows numbers SCSI ports from whatever offset the storage stack picked at
boot, while vSphere numbers virtual SCSI controllers from zero. Rebasing each
host's ports onto its own minimum makes the two comparable.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Iterable, Optional

from .models import PartitionRecord

logger = logging.getLogger(__name__)


def rebase_scsi_ports(partitions: Iterable[PartitionRecord]) -> list[PartitionRecord]:
    """Return copies of ``partitions`` with ``scsi_port`` shifted so the
    smallest port on this host becomes 0."""
    partitions = list(partitions)
    if not partitions:
        return []
    base = min(p.scsi_port for p in partitions)
    if base == 0:
        return partitions
    logger.debug("Rebasing SCSI ports by %d", base)
    return [replace(p, scsi_port=p.scsi_port - base) for p in partitions]


class PartitionIndex:
    """Partitions keyed by ``(disk_id, offset)``.

    Duplicate keys keep the last record seen. Every overwritten record is
    kept in ``duplicates`` and logged so the caller can report it.
    """

    def __init__(self) -> None:
        self._by_key: dict[tuple[int, int], PartitionRecord] = {}
        self.duplicates: list[PartitionRecord] = []

    def add(self, partition: PartitionRecord) -> None:
        previous = self._by_key.get(partition.key)
        if previous is not None:
            logger.warning(
                "Duplicate partition key disk=%d offset=%d (serials %r / %r); keeping the later record",
                partition.disk_id, partition.offset,
                previous.disk_serial_number, partition.disk_serial_number,
            )
            self.duplicates.append(previous)
        self._by_key[partition.key] = partition

    def lookup(self, disk_id: int, offset: int) -> Optional[PartitionRecord]:
        return self._by_key.get((disk_id, offset))

    def __len__(self) -> int:
        return len(self._by_key)

    def __contains__(self, key: object) -> bool:
        return key in self._by_key

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PartitionIndex):
            return NotImplemented
        return self._by_key == other._by_key

    def __repr__(self) -> str:
        return f"PartitionIndex({len(self)} partitions, {len(self.duplicates)} duplicates)"


def build_partition_index(partitions: Iterable[PartitionRecord]) -> PartitionIndex:
    index = PartitionIndex()
    for p in partitions:
        index.add(p)
    logger.debug("Indexed %d partition(s)", len(index))
    return index
