"""Join parsed volume extents to guest partitions and vCenter virtual disks.

Two joins, in order:

1. Address join: extent ``(disk_id, offset)`` against the partition index.
2. Identity join (optional): the partition's disk serial, normalized,
   against the normalized UUIDs of the matched VM's virtual disks.

Misses on either side leave the corresponding fields as ``None``. Partition
and extent inventories are taken at slightly different moments, so an
occasional miss is expected and is not an error.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from .identity import normalize_identity
from .models import (
    ExtentRecord,
    OutputRecord,
    PartitionRecord,
    VirtualDiskRecord,
    VMIdentity,
    VolumeRecord,
)
from .partition_index import PartitionIndex

logger = logging.getLogger(__name__)


def build_virtual_disk_index(disks: Iterable[VirtualDiskRecord]) -> dict[str, VirtualDiskRecord]:
    """Key virtual disks by normalized UUID. Disks without a UUID are left out."""
    index: dict[str, VirtualDiskRecord] = {}
    for disk in disks:
        if not disk.normalized_key:
            logger.debug("Virtual disk %s has no UUID; not indexed", disk.name or disk.filename)
            continue
        if disk.normalized_key in index:
            logger.warning("Virtual disks %s and %s share UUID %s",
                           index[disk.normalized_key].name, disk.name, disk.uuid)
        index[disk.normalized_key] = disk
    return index


@dataclass
class VMDiskSet:
    """The matched VM and its virtual disks, indexed for the identity join."""
    vm: VMIdentity
    index: dict[str, VirtualDiskRecord] = field(default_factory=dict)

    @classmethod
    def from_disks(cls, vm: VMIdentity, disks: Iterable[VirtualDiskRecord]) -> "VMDiskSet":
        return cls(vm=vm, index=build_virtual_disk_index(disks))

    def match(self, serial: Optional[str]) -> Optional[VirtualDiskRecord]:
        key = normalize_identity(serial)
        if not key:
            return None
        return self.index.get(key)


def _partition_fields(partition: Optional[PartitionRecord]) -> dict:
    if partition is None:
        return {}
    return dict(
        disk_size=partition.disk_size,
        partition_size=partition.partition_size,
        disk_serial_number=partition.disk_serial_number,
        scsi_bus=partition.scsi_bus,
        scsi_logical_unit=partition.scsi_logical_unit,
        scsi_controller=partition.scsi_port,
        scsi_unit=partition.scsi_target_id,
    )


def _virtual_disk_fields(vm: VMIdentity, disk: Optional[VirtualDiskRecord]) -> dict:
    if disk is None:
        return {}
    return dict(
        vm_name=vm.name,
        vm_id=vm.vcenter_id,
        vm_instance_uuid=vm.instance_uuid,
        vdisk_name=disk.name,
        vdisk_filename=disk.filename,
        vdisk_type=disk.disk_type,
        vdisk_storage_format=disk.storage_format,
        vdisk_uuid=disk.uuid,
    )


def _correlate_extent(
    host: str,
    volume: VolumeRecord,
    extent: ExtentRecord,
    partition_index: PartitionIndex,
    vm_disks: Optional[VMDiskSet],
) -> OutputRecord:
    partition = partition_index.lookup(extent.disk_id, extent.offset)
    if partition is None:
        logger.debug("%s: no partition at disk %d offset %d for %s",
                     host, extent.disk_id, extent.offset, volume.mount_point)

    vdisk = None
    if vm_disks is not None and partition is not None:
        vdisk = vm_disks.match(partition.disk_serial_number)
        if vdisk is None:
            logger.debug("%s: serial %r on disk %d has no virtual disk match",
                         host, partition.disk_serial_number, extent.disk_id)

    return OutputRecord(
        host=host,
        mount_point=volume.mount_point,
        volume_id=volume.volume_id,
        extent_id=extent.extent_id,
        disk_id=extent.disk_id,
        extent_offset=extent.offset,
        extent_size=extent.length,
        **_partition_fields(partition),
        **(_virtual_disk_fields(vm_disks.vm, vdisk) if vm_disks is not None else {}),
    )


def correlate(
    host: str,
    volumes: Iterable[VolumeRecord],
    partition_index: PartitionIndex,
    vm_disks: Optional[VMDiskSet] = None,
) -> list[OutputRecord]:
    """Produce one output record per extent, in volume then extent order."""
    records: list[OutputRecord] = []
    for volume in volumes:
        if not volume.extents:
            logger.debug("%s: volume %s (%s) has no extents", host, volume.volume_id, volume.mount_point)
        for extent in volume.extents:
            records.append(_correlate_extent(host, volume, extent, partition_index, vm_disks))

    matched = sum(1 for r in records if r.has_partition)
    linked = sum(1 for r in records if r.has_virtual_disk)
    logger.debug("%s: %d extent(s), %d matched to partitions, %d linked to virtual disks",
                 host, len(records), matched, linked)
    return records
