"""Per-host mapping pipeline and the batch runner.

Usage
-----
    with VCenterSession(cfg.vcenter) as vc:
        results = map_hosts(targets, lambda h: WinRMGuest(h, cfg.guest), vcenter=vc)
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional, Protocol

from .config import DEFAULT_STAGING_DIR
from .correlation import VMDiskSet, correlate
from .extent_parser import parse_extent_report
from .guest_inventory import GuestSession, collect_partitions, run_extent_report
from .models import HostResult, HostTarget
from .partition_index import build_partition_index, rebase_scsi_ports

logger = logging.getLogger(__name__)

GuestFactory = Callable[[str], GuestSession]


class VirtualDiskLookup(Protocol):
    def lookup(self, host: str) -> Optional[VMDiskSet]: ...


def _lookup_vm(vcenter: Optional[VirtualDiskLookup], target: HostTarget) -> Optional[VMDiskSet]:
    if vcenter is None:
        return None
    try:
        vm_disks = vcenter.lookup(target.name)
        if vm_disks is None and target.address and target.address != target.name:
            vm_disks = vcenter.lookup(target.address)
        return vm_disks
    except Exception as exc:
        logger.warning("%s: vCenter lookup failed, continuing without virtual disk data: %s",
                       target.name, exc)
        return None


def map_host(
    target: HostTarget,
    guest_factory: GuestFactory,
    vcenter: Optional[VirtualDiskLookup] = None,
    staging_dir: str = DEFAULT_STAGING_DIR,
) -> HostResult:
    """Inventory one guest and correlate its volumes. Never raises."""
    result = HostResult(host=target.name)
    try:
        guest = guest_factory(target.endpoint)

        partitions = rebase_scsi_ports(collect_partitions(guest))
        index = build_partition_index(partitions)
        result.duplicate_partitions = len(index.duplicates)

        volumes = parse_extent_report(run_extent_report(guest, staging_dir))
        result.volume_count = len(volumes)

        vm_disks = _lookup_vm(vcenter, target)
        if vm_disks is not None:
            result.vm_name = vm_disks.vm.name

        result.records = correlate(target.name, volumes, index, vm_disks)
        result.status = "complete"
        logger.info("%s: %d volume(s), %d extent record(s)",
                    target.name, len(volumes), len(result.records))
    except Exception as exc:
        result.status = "error"
        result.error = str(exc)
        result.records = []
        logger.warning("Volume mapping failed for %s: %s", target.name, exc)
        logger.debug("Traceback for %s", target.name, exc_info=True)
    return result


def map_hosts(
    targets: list[HostTarget],
    guest_factory: GuestFactory,
    vcenter: Optional[VirtualDiskLookup] = None,
    staging_dir: str = DEFAULT_STAGING_DIR,
    max_workers: int = 5,
) -> list[HostResult]:
    """Map many hosts in parallel. Results come back in ``targets`` order."""
    if not targets:
        return []
    workers = max(1, min(max_workers, len(targets)))
    logger.info("Mapping %d host(s) with %d worker(s)", len(targets), workers)

    with ThreadPoolExecutor(max_workers=workers) as pool:
        results = list(pool.map(
            lambda t: map_host(t, guest_factory, vcenter, staging_dir), targets,
        ))

    failed = sum(1 for r in results if not r.ok)
    logger.info("Mapped %d host(s), %d failed", len(results) - failed, failed)
    return results
