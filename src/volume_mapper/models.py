"""Data models for guest storage inventory and the correlated volume map."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from .identity import normalize_identity


@dataclass(frozen=True)
class PartitionRecord:
    """One physical disk partition as reported by the guest OS."""
    disk_id: int = 0
    offset: int = 0
    disk_size: int = 0
    partition_size: int = 0
    disk_serial_number: str = ""

    # Host-OS relative SCSI addressing
    scsi_bus: int = 0
    scsi_logical_unit: int = 0
    scsi_port: int = 0
    scsi_target_id: int = 0

    @property
    def key(self) -> tuple[int, int]:
        return (self.disk_id, self.offset)


@dataclass(frozen=True)
class ExtentRecord:
    """A contiguous run of a disk backing a volume."""
    extent_id: int = 0
    disk_id: int = 0
    offset: int = 0
    length: int = 0


@dataclass
class VolumeRecord:
    volume_id: str = ""
    mount_point: str = ""
    extents: list[ExtentRecord] = field(default_factory=list)


@dataclass(frozen=True)
class VirtualDiskRecord:
    """A virtual disk attached to a VM in vCenter."""
    name: str = ""
    filename: str = ""
    disk_type: str = ""
    storage_format: str = ""
    uuid: str = ""
    normalized_key: str = field(init=False, default="")

    def __post_init__(self) -> None:
        object.__setattr__(self, "normalized_key", normalize_identity(self.uuid))


@dataclass(frozen=True)
class VMIdentity:
    name: str = ""
    vcenter_id: str = ""          # MoRef ID
    instance_uuid: str = ""


@dataclass(frozen=True)
class OutputRecord:
    """Final per-extent view of a mounted volume.

    Partition-side and virtual-disk-side fields are ``None`` when the
    corresponding join found no match.
    """
    # Identity
    host: str
    mount_point: str
    volume_id: str

    # Extent
    extent_id: int
    disk_id: int
    extent_offset: int
    extent_size: int

    # Partition / disk (guest view)
    disk_size: Optional[int] = None
    partition_size: Optional[int] = None
    disk_serial_number: Optional[str] = None
    scsi_bus: Optional[int] = None
    scsi_logical_unit: Optional[int] = None
    scsi_controller: Optional[int] = None   # rebased scsiPort
    scsi_unit: Optional[int] = None         # scsiTargetID

    # Virtual machine / virtual disk (vCenter view)
    vm_name: Optional[str] = None
    vm_id: Optional[str] = None
    vm_instance_uuid: Optional[str] = None
    vdisk_name: Optional[str] = None
    vdisk_filename: Optional[str] = None
    vdisk_type: Optional[str] = None
    vdisk_storage_format: Optional[str] = None
    vdisk_uuid: Optional[str] = None

    @property
    def has_partition(self) -> bool:
        return self.disk_size is not None

    @property
    def has_virtual_disk(self) -> bool:
        return self.vdisk_uuid is not None


@dataclass
class HostTarget:
    """A guest to inventory. ``address`` defaults to ``name`` when empty."""
    name: str = ""
    address: str = ""

    @property
    def endpoint(self) -> str:
        return self.address or self.name


@dataclass
class HostResult:
    host: str = ""
    status: str = "pending"       # complete | error
    error: str = ""
    vm_name: str = ""
    volume_count: int = 0
    duplicate_partitions: int = 0
    records: list[OutputRecord] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status == "complete"
