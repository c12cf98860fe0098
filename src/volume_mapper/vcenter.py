"""vCenter lookups — finds the VM behind a guest and lists its virtual disks."""

from __future__ import annotations

import logging
import ssl
import threading
from typing import Any, Optional

from pyVim.connect import SmartConnect, Disconnect
from pyVmomi import vim, vmodl

from .config import VCenterConfig
from .correlation import VMDiskSet
from .models import VirtualDiskRecord, VMIdentity

logger = logging.getLogger(__name__)

_VM_PROPERTIES = [
    "name",
    "config.template",
    "config.instanceUuid",
    "config.hardware.device",
    "guest.hostName",
    "guest.net",
]

_BACKING_TYPES = {
    vim.vm.device.VirtualDisk.FlatVer2BackingInfo: "flat",
    vim.vm.device.VirtualDisk.RawDiskMappingVer1BackingInfo: "rdm",
    vim.vm.device.VirtualDisk.SparseVer2BackingInfo: "sparse",
    vim.vm.device.VirtualDisk.SeSparseBackingInfo: "sesparse",
    vim.vm.device.VirtualDisk.FlatVer1BackingInfo: "flat",
    vim.vm.device.VirtualDisk.SparseVer1BackingInfo: "sparse",
}


# ---------------------------------------------------------------------------
# Device extraction
# ---------------------------------------------------------------------------

def _disk_type(backing: Any) -> str:
    for cls, name in _BACKING_TYPES.items():
        if isinstance(backing, cls):
            return name
    return type(backing).__name__ if backing is not None else ""


def _storage_format(backing: Any) -> str:
    if isinstance(backing, vim.vm.device.VirtualDisk.RawDiskMappingVer1BackingInfo):
        return backing.compatibilityMode or ""
    if getattr(backing, "thinProvisioned", False):
        return "thin"
    if hasattr(backing, "eagerlyScrub"):
        return "eagerZeroedThick" if backing.eagerlyScrub else "lazyZeroedThick"
    return ""


def virtual_disks(devices: list) -> list[VirtualDiskRecord]:
    """Extract virtual disks from a VM's ``config.hardware.device`` list."""
    disks: list[VirtualDiskRecord] = []
    for dev in devices or []:
        if not isinstance(dev, vim.vm.device.VirtualDisk):
            continue
        backing = dev.backing
        uuid = getattr(backing, "uuid", None) or getattr(backing, "lunUuid", None) or ""
        disks.append(VirtualDiskRecord(
            name=dev.deviceInfo.label if dev.deviceInfo else "",
            filename=getattr(backing, "fileName", "") or "",
            disk_type=_disk_type(backing),
            storage_format=_storage_format(backing),
            uuid=uuid,
        ))
    return disks


def _guest_ips(guest_nets: list) -> set[str]:
    ips: set[str] = set()
    for gn in guest_nets or []:
        if gn.ipConfig and gn.ipConfig.ipAddress:
            ips.update(ip.ipAddress for ip in gn.ipConfig.ipAddress)
        elif gn.ipAddress:
            ips.update(gn.ipAddress if isinstance(gn.ipAddress, list) else [gn.ipAddress])
    return ips


def _short(name: str) -> str:
    return name.lower().split(".", 1)[0]


def find_vm(vm_props: list[dict], host: str) -> Optional[dict]:
    """Pick the VM behind ``host``: guest hostname, then guest IP, then VM name."""
    wanted = host.lower()
    for props in vm_props:
        guest_name = (props.get("guest.hostName") or "").lower()
        if guest_name and (guest_name == wanted or _short(guest_name) == _short(wanted)):
            return props
    for props in vm_props:
        if host in _guest_ips(props.get("guest.net")):
            return props
    for props in vm_props:
        if (props.get("name") or "").lower() == wanted:
            return props
    return None


def vm_identity(props: dict) -> VMIdentity:
    vm_obj = props.get("_obj")
    return VMIdentity(
        name=props.get("name", "") or "",
        vcenter_id=str(vm_obj._moId) if vm_obj is not None else "",
        instance_uuid=props.get("config.instanceUuid", "") or "",
    )


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------

class VCenterSession:
    """Read-only vCenter handle shared by every host in a batch.

    Open it before the batch and close it after (or use it as a context
    manager). VM properties are fetched once, on first lookup.
    """

    def __init__(self, cfg: VCenterConfig) -> None:
        self.cfg = cfg
        self._si = None
        self._vm_props: Optional[list[dict]] = None
        self._lock = threading.Lock()

    def __enter__(self) -> "VCenterSession":
        self.connect()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def connect(self) -> None:
        context = None
        if self.cfg.disable_ssl:
            context = ssl._create_unverified_context()

        logger.info("Connecting to vCenter %s:%s as %s …", self.cfg.host, self.cfg.port, self.cfg.username)
        self._si = SmartConnect(
            host=self.cfg.host,
            user=self.cfg.username,
            pwd=self.cfg.password,
            port=self.cfg.port,
            sslContext=context,
        )
        logger.info("Connected successfully. API version: %s", self._si.content.about.apiVersion)

    def close(self) -> None:
        if self._si is not None:
            Disconnect(self._si)
            self._si = None
            logger.debug("Disconnected from vCenter %s", self.cfg.host)

    def _bulk_fetch_vm_properties(self) -> list[dict]:
        """Fetch the properties of every VM in one PropertyCollector call."""
        content = self._si.content
        container_view = content.viewManager.CreateContainerView(
            content.rootFolder, [vim.VirtualMachine], recursive=True
        )
        traversal_spec = vmodl.query.PropertyCollector.TraversalSpec(
            name="traverseEntities",
            path="view",
            skip=False,
            type=vim.view.ContainerView,
        )
        obj_spec = vmodl.query.PropertyCollector.ObjectSpec(
            obj=container_view,
            skip=True,
            selectSet=[traversal_spec],
        )
        prop_spec = vmodl.query.PropertyCollector.PropertySpec(
            type=vim.VirtualMachine,
            all=False,
            pathSet=_VM_PROPERTIES,
        )
        filter_spec = vmodl.query.PropertyCollector.FilterSpec(
            objectSet=[obj_spec],
            propSet=[prop_spec],
        )
        try:
            props = content.propertyCollector.RetrieveContents([filter_spec])
        finally:
            container_view.Destroy()

        vm_data_list: list[dict] = []
        for obj_content in props:
            vm_props: dict[str, Any] = {"_obj": obj_content.obj}
            for prop in obj_content.propSet:
                vm_props[prop.name] = prop.val
            vm_data_list.append(vm_props)

        logger.info("PropertyCollector fetched %d VM object(s)", len(vm_data_list))
        return vm_data_list

    def vm_properties(self) -> list[dict]:
        with self._lock:
            if self._vm_props is None:
                if self._si is None:
                    raise RuntimeError("vCenter session is not connected")
                vm_props = self._bulk_fetch_vm_properties()
                self._vm_props = [p for p in vm_props if not p.get("config.template", False)]
                skipped = len(vm_props) - len(self._vm_props)
                if skipped:
                    logger.debug("Excluded %d template(s) from VM matching", skipped)
            return self._vm_props

    def lookup(self, host: str) -> Optional[VMDiskSet]:
        """Return the VM behind ``host`` with its disks indexed, or None."""
        props = find_vm(self.vm_properties(), host)
        if props is None:
            logger.info("%s: no matching VM in vCenter", host)
            return None
        disks = virtual_disks(props.get("config.hardware.device"))
        vm = vm_identity(props)
        logger.info("%s: matched VM %s with %d virtual disk(s)", host, vm.name, len(disks))
        return VMDiskSet.from_disks(vm, disks)
